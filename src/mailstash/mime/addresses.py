# =============================================================================
# Address-List Parsing
# =============================================================================
# Turns raw address header values (From, To, Cc, ...) into structured
# entries. Built on email.utils, which already copes with quoted display
# names, comments and comma-separated lists.
# =============================================================================

import email.utils

# Headers whose values are address lists. All occurrences are concatenated.
ADDRESS_HEADERS = ("from", "sender", "reply-to", "to", "cc", "bcc")


def parse_addresses(value: str) -> list[dict[str, str]]:
    """
    Parse an address header value into a list of address entries.

    Args:
        value: Raw header value, e.g. '"Doe, John" <john@example.com>, bob@x.org'.

    Returns:
        List of {"name": ..., "address": ...} dicts. Unparseable fragments
        are dropped.

    Example:
        >>> parse_addresses('Alice <alice@example.com>, bob@example.com')
        [{'name': 'Alice', 'address': 'alice@example.com'},
         {'name': '', 'address': 'bob@example.com'}]
    """
    if not value:
        return []
    return [
        {"name": name, "address": address}
        for name, address in email.utils.getaddresses([value])
        if name or address
    ]

# =============================================================================
# Header Parameter Decoding
# =============================================================================
# Splits structured header values such as
#
#   Content-Type: text/plain; charset="utf-8"
#   Content-Disposition: attachment; filename*0*=UTF-8''%E2%82%AC; filename*1*=.txt
#
# into their primary value and parameters. RFC 2231 extended parameters
# (name*, name*N, name*N*) are reassembled and re-expressed as a single
# RFC 2047 encoded word, so consumers only need one decoder for both forms.
# =============================================================================

import re
from dataclasses import dataclass, field
from typing import Any

# name*  /  name*0  /  name*0*  /  name*12*
_EXTENDED_KEY = re.compile(r"^([^*]+)\*(\d+)?\*?$")

# Quotes and whitespace around parameter values
_VALUE_TRIM = re.compile(r"^['\"\s]*|['\"\s]*$")

DEFAULT_CHARSET = "ISO-8859-1"


@dataclass
class HeaderValue:
    """
    A decoded structured header value.

    Attributes:
        value: The primary value as written (e.g. "text/plain").
        type: Lower-cased part before the first "/" (e.g. "text").
        subtype: Everything after the first "/" (e.g. "plain").
        params: Parameters keyed by lower-cased name.
        has_params: True if at least one parameter was present.
    """
    value: str = ""
    type: str = ""
    subtype: str = ""
    params: dict[str, str] = field(default_factory=dict)
    has_params: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Plain mapping for serialization."""
        return {
            "value": self.value,
            "type": self.type,
            "subtype": self.subtype,
            "params": dict(self.params),
        }


def parse_value_params(header_value: str) -> HeaderValue:
    """
    Split a header value into its primary value and parameters.

    Args:
        header_value: Raw header value, e.g. 'multipart/mixed; boundary="X"'.

    Returns:
        The decoded HeaderValue.

    Example:
        >>> parse_value_params("text/plain; charset*0*=UTF-8''Hello%20World").params
        {'charset': '=?UTF-8?Q?Hello=20World?='}
    """
    data = HeaderValue()
    # base name -> {continuation index: fragment}
    extended: dict[str, dict[int, str]] = {}

    for i, part in enumerate((header_value or "").split(";")):
        if i == 0:
            data.value = part.strip()
            kind, _, subtype = data.value.partition("/")
            data.type = kind.lower()
            data.subtype = subtype
            continue

        key, _, value = part.partition("=")
        key = key.strip().lower()
        value = _VALUE_TRIM.sub("", value)

        match = _EXTENDED_KEY.match(key)
        if match:
            index = int(match.group(2) or 0)
            extended.setdefault(match.group(1), {})[index] = value
        else:
            data.params[key] = value
        data.has_params = True

    for key, fragments in extended.items():
        data.params[key] = _join_extended(fragments)

    return data


def _join_extended(fragments: dict[int, str]) -> str:
    """
    Reassemble RFC 2231 continuation fragments into an RFC 2047 encoded word.

    The charset is taken from the first fragment that declares one. Percent
    escapes become Q-encoding escapes ("%20" -> "=20").
    """
    charset = ""
    value = ""
    for index in sorted(fragments):
        parts = fragments[index].split("'")
        if len(parts) >= 3:
            charset = charset or parts[0]
            text = parts[-1]
        else:
            text = fragments[index]
        value += text.replace("%", "=")
    return f"=?{(charset or DEFAULT_CHARSET).upper()}?Q?{value}?="

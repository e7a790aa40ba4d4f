# =============================================================================
# MIME Module
# =============================================================================
# Parses raw RFC822 payloads into structured MimeNode trees:
#   - parser: line-oriented, multipart-aware message parser
#   - params: Content-Type style "value; key=value" decoding (RFC 2231)
#   - addresses: address-list headers (From, To, Cc, ...)
#
# The search engine calls parse_message() lazily, once per message, when a
# predicate needs headers or body text.
# =============================================================================

from mailstash.mime.addresses import ADDRESS_HEADERS, parse_addresses
from mailstash.mime.params import HeaderValue, parse_value_params
from mailstash.mime.parser import MessageParser, MimeNode, parse_message

__all__ = [
    "MimeNode",
    "MessageParser",
    "parse_message",
    "HeaderValue",
    "parse_value_params",
    "ADDRESS_HEADERS",
    "parse_addresses",
]

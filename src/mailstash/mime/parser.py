# =============================================================================
# MIME Message Parser
# =============================================================================
# Converts a raw RFC822 payload into a tree of MimeNode objects:
#
#   MimeNode (multipart/mixed)
#     +-- MimeNode (multipart/alternative)
#     |     +-- MimeNode (text/plain)
#     |     +-- MimeNode (text/html)
#     +-- MimeNode (application/pdf)
#
# The parser never fails on malformed MIME. It scans the payload line by
# line, keeping a single "current node" that is either reading its header
# section or its body, and moves between nodes when it sees a boundary line.
# Whatever structure it managed to recognise is returned.
#
# Parent links only exist on the internal _PartBuilder objects used while
# scanning. The returned MimeNode tree is acyclic and can be serialized
# with to_dict() as is.
# =============================================================================

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterator

from mailstash.mime.addresses import ADDRESS_HEADERS, parse_addresses
from mailstash.mime.params import HeaderValue, parse_value_params


logger = logging.getLogger(__name__)

# Folded header whitespace: "value\r\n\tcontinued" -> "value continued"
_FOLD = re.compile(r"\s*\r?\n\s*")
_LINE_BREAK = re.compile(r"\r?\n")
_LEADING_BREAK = re.compile(r"^\r?\n")

# Headers decoded into HeaderValue objects
STRUCTURED_HEADERS = ("content-type", "content-disposition")


@dataclass
class MimeNode:
    """
    One node of a parsed message.

    Attributes:
        header: Header source lines with folded continuation lines merged
                into the line they continue.
        parsed_header: Header values keyed by lower-cased name. A value is a
                       string, a list of strings when the header repeats,
                       a HeaderValue for Content-Type / Content-Disposition,
                       or a list of address dicts for address headers.
        multipart: False, or the multipart subtype ("mixed", "alternative",
                   ...) when the node is a multipart container.
        boundary: The node's own multipart boundary, if any.
        child_nodes: Body parts of a multipart node, in order.
        body: Body text with line endings normalized to CRLF.
        size: Length of `body`.
        line_count: Number of lines in `body`.
        text: Only set on the top-level node. The full message body
              (everything after the top-level header section, boundary
              lines included) used by BODY searches.
    """

    header: list[str] = field(default_factory=list)
    parsed_header: dict[str, Any] = field(default_factory=dict)
    multipart: str | bool = False
    boundary: str | None = None
    child_nodes: list["MimeNode"] = field(default_factory=list)
    body: str = ""
    size: int = 0
    line_count: int = 0
    text: str | None = None

    @property
    def content_type(self) -> HeaderValue:
        """The decoded Content-Type (text/plain when the header was missing)."""
        value = self.parsed_header.get("content-type")
        if isinstance(value, HeaderValue):
            return value
        return parse_value_params("text/plain")

    def header_values(self, name: str) -> list[str]:
        """
        All raw values of header `name` (case-insensitive), in message order.

        Values are taken from the unfolded header lines, so they are not
        affected by the structured decoding done for parsed_header.
        """
        name = name.lower()
        values = []
        for line in self.header:
            key, _, value = line.partition(":")
            if key.strip().lower() == name:
                values.append(value)
        return values

    def walk(self) -> Iterator["MimeNode"]:
        """Yield this node and all descendants, depth first."""
        yield self
        for child in self.child_nodes:
            yield from child.walk()

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the tree into plain dicts and lists.

        Leaf nodes don't get a "childNodes" key at all.
        """
        parsed_header: dict[str, Any] = {}
        for key, value in self.parsed_header.items():
            parsed_header[key] = value.to_dict() if isinstance(value, HeaderValue) else value

        data: dict[str, Any] = {
            "header": list(self.header),
            "parsedHeader": parsed_header,
            "multipart": self.multipart,
            "boundary": self.boundary or False,
            "body": self.body,
            "size": self.size,
            "lineCount": self.line_count,
        }
        if self.child_nodes:
            data["childNodes"] = [child.to_dict() for child in self.child_nodes]
        if self.text is not None:
            data["text"] = self.text
        return data


@dataclass
class _PartBuilder:
    """Scan-time state for one node. Holds the parent link the output tree doesn't."""

    parent: "_PartBuilder | None" = None
    state: str = "header"
    header: list[str] = field(default_factory=list)
    parsed_header: dict[str, Any] = field(default_factory=dict)
    body: list[str] = field(default_factory=list)
    children: list["_PartBuilder"] = field(default_factory=list)
    multipart: str | bool = False
    boundary: str | None = None

    @property
    def parent_boundary(self) -> str | None:
        return self.parent.boundary if self.parent else None


class MessageParser:
    """
    Line-oriented RFC822 / MIME parser.

    Usage:
        >>> parser = MessageParser(raw_bytes)
        >>> root = parser.parse()
        >>> root.child_nodes[0].body
        'hi\\r\\n'

    Attributes:
        raw_body: Every body-state line of the scan joined with its original
                  line break. Becomes MimeNode.text of the top-level node.
    """

    def __init__(self, raw: str | bytes | None) -> None:
        """
        Initialize the parser.

        Args:
            raw: The payload. Bytes are read as an 8-bit clean string
                 (latin-1), so every byte maps to exactly one character.
        """
        if raw is None:
            raw = ""
        if isinstance(raw, (bytes, bytearray)):
            raw = bytes(raw).decode("latin-1")
        if not isinstance(raw, str):
            raise TypeError(f"Cannot parse message of type {type(raw).__name__}")

        self._source = raw
        self._pos = 0
        # Line break after the most recently read line. None once the
        # end of the payload has been reached.
        self._br: str | None = ""

        self.raw_body = ""
        self._top = _PartBuilder()
        self._node = self._top

    def parse(self) -> MimeNode:
        """
        Scan the whole payload and return the top-level node.

        Returns:
            The root MimeNode, with `text` set.
        """
        prev_br = ""

        while self._br is not None:
            line = self._read_line()
            node = self._node

            if node.state == "header":
                if not line:
                    self._process_header(node)
                    node.state = "body"
                else:
                    node.header.append(line)
            else:
                self.raw_body += prev_br + line
                parent_boundary = node.parent_boundary

                if parent_boundary and line in (f"--{parent_boundary}", f"--{parent_boundary}--"):
                    if line == f"--{parent_boundary}":
                        # Next sibling part
                        self._node = self._create_node(node.parent)
                    else:
                        # Closing delimiter, back to the container
                        self._node = node.parent
                elif node.boundary and line == f"--{node.boundary}":
                    # First part of this container
                    self._node = self._create_node(node)
                else:
                    node.body.append(line + (self._br or ""))

            prev_br = self._br or ""

        # Payload ended before the blank line closing the header section
        if self._node.state == "header":
            self._process_header(self._node)
            self._node.state = "body"

        root = self._finalize(self._top)
        root.text = _LEADING_BREAK.sub("", self.raw_body, count=1)
        return root

    def _read_line(self) -> str:
        """Read the next line and remember which line break ended it."""
        end = self._source.find("\n", self._pos)
        if end < 0:
            line = self._source[self._pos:]
            self._pos = len(self._source)
            self._br = None
            return line

        line = self._source[self._pos:end]
        self._pos = end + 1
        if line.endswith("\r"):
            self._br = "\r\n"
            return line[:-1]
        self._br = "\n"
        return line

    def _create_node(self, parent: _PartBuilder | None) -> _PartBuilder:
        """Start a new body part under `parent`."""
        node = _PartBuilder(parent=parent)
        if parent is not None:
            parent.children.append(node)
        return node

    def _process_header(self, node: _PartBuilder) -> None:
        """
        Turn the collected header lines into parsed_header values.

        Folded lines are merged into the line they continue, names are
        lower-cased, and Content-Type, Content-Disposition and the address
        headers are decoded further.
        """
        lines: list[str] = []
        for line in node.header:
            if lines and line[:1].isspace():
                lines[-1] = lines[-1] + "\r\n" + line
            else:
                lines.append(line)
        node.header = lines

        parsed: dict[str, Any] = {}
        for line in lines:
            key, _, value = line.partition(":")
            key = key.strip().lower()
            value = _FOLD.sub(" ", value.strip())

            if key not in parsed:
                parsed[key] = value
            elif isinstance(parsed[key], list):
                parsed[key].append(value)
            else:
                parsed[key] = [parsed[key], value]

        # Content-Type is always present
        if not parsed.get("content-type"):
            parsed["content-type"] = "text/plain"

        for key in STRUCTURED_HEADERS:
            if parsed.get(key):
                value = parsed[key]
                # The last occurrence wins
                if isinstance(value, list):
                    value = value[-1]
                parsed[key] = parse_value_params(value)

        for key in ADDRESS_HEADERS:
            if key in parsed:
                values = parsed[key] if isinstance(parsed[key], list) else [parsed[key]]
                addresses: list[dict[str, str]] = []
                for value in values:
                    addresses.extend(parse_addresses(value))
                parsed[key] = addresses

        node.parsed_header = parsed

        content_type = parsed["content-type"]
        if content_type.type == "multipart" and content_type.params.get("boundary"):
            node.multipart = content_type.subtype
            node.boundary = content_type.params["boundary"]

    def _finalize(self, node: _PartBuilder) -> MimeNode:
        """Build the public MimeNode tree from the scan-time builders."""
        body = _LINE_BREAK.sub("\r\n", "".join(node.body))
        line_count = body.count("\r\n")
        if body and not body.endswith("\r\n"):
            line_count += 1

        return MimeNode(
            header=node.header,
            parsed_header=node.parsed_header,
            multipart=node.multipart,
            boundary=node.boundary,
            child_nodes=[self._finalize(child) for child in node.children],
            body=body,
            size=len(body),
            line_count=line_count,
        )


def parse_message(raw: str | bytes | None) -> MimeNode:
    """
    Parse a raw message into a MimeNode tree.

    Args:
        raw: The RFC822 payload (string or bytes).

    Returns:
        The top-level MimeNode. Its `text` attribute holds the full body
        with a single leading line break removed.

    Example:
        >>> root = parse_message(
        ...     "Content-Type: multipart/mixed; boundary=X\\r\\n\\r\\n"
        ...     "--X\\r\\nContent-Type: text/plain\\r\\n\\r\\nhi\\r\\n--X--\\r\\n"
        ... )
        >>> root.multipart, len(root.child_nodes), root.child_nodes[0].body
        ('mixed', 1, 'hi\\r\\n')
    """
    root = MessageParser(raw).parse()
    logger.debug(
        f"Parsed message: {root.content_type.value}, "
        f"{sum(1 for _ in root.walk())} node(s), {len(root.text or '')} body chars"
    )
    return root

# =============================================================================
# Message Model
# =============================================================================
# Represents one message stored in a folder. The store only keeps what the
# IMAP layer needs to answer commands:
#   - IMAP metadata (UID, flags, internal date)
#   - Free-form properties attached by plugins or the session layer
#   - The raw RFC822 payload, or the blob key to fetch it from
#
# The parsed MIME tree is computed lazily the first time a content-based
# search predicate needs it, and is then kept on the message until the raw
# payload is replaced.
# =============================================================================

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from mailstash.mime import MimeNode


# Standard system flags (RFC 3501)
SEEN = "\\Seen"
ANSWERED = "\\Answered"
FLAGGED = "\\Flagged"
DELETED = "\\Deleted"
DRAFT = "\\Draft"

# Flags every folder accepts when it doesn't declare its own permanent flags
SYSTEM_FLAGS = (ANSWERED, FLAGGED, DRAFT, DELETED, SEEN)

MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
          "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def format_internal_date(date: datetime) -> str:
    """
    Convert a datetime into an IMAP internal date-time string.

    Naive datetimes are treated as local time.

    Example:
        >>> format_internal_date(datetime(2024, 1, 5, 9, 3, 7, tzinfo=timezone.utc))
        '05-Jan-2024 09:03:07 +0000'
    """
    if date.tzinfo is None:
        date = date.astimezone()
    offset = date.utcoffset()
    minutes = int(offset.total_seconds() // 60) if offset else 0
    sign = "-" if minutes < 0 else "+"
    hours, mins = divmod(abs(minutes), 60)
    return (
        f"{date.day:02d}-{MONTHS[date.month - 1]}-{date.year} "
        f"{date.hour:02d}:{date.minute:02d}:{date.second:02d} "
        f"{sign}{hours:02d}{mins:02d}"
    )


@dataclass
class Message:
    """
    A message held in a folder.

    Attributes:
        uid: IMAP UID. 0 until the folder is indexed, then assigned once
             from the folder's uidnext and never changed.
        internaldate: IMAP internal date-time string
                      (e.g. "15-Jan-2024 10:30:00 +0000"). Filled with the
                      current time on indexing when missing.
        flags: Message flags (\\Seen, \\Deleted, custom keywords...).
        properties: Open metadata mapping. Repeated additions to the same
                    key merge into a list.
        raw: The RFC822 payload as an 8-bit string (or bytes). None when
             the payload still lives in the blob store under `key`.
        key: Blob-store key of the payload, if it came from there.

    Example:
        >>> msg = Message(raw="Subject: hi\\r\\n\\r\\nHello\\r\\n")
        >>> msg.parsed.parsed_header["subject"]
        'hi'
    """

    uid: int = 0
    internaldate: str = ""
    flags: set[str] = field(default_factory=set)
    properties: dict[str, Any] = field(default_factory=dict)
    raw: str | bytes | None = None
    key: str | None = None

    # Parse cache. `_parsed_from` remembers which raw payload produced the
    # tree so that assigning a new payload invalidates it.
    _parsed: "MimeNode | None" = field(default=None, init=False, repr=False, compare=False)
    _parsed_from: str | bytes | None = field(default=None, init=False, repr=False, compare=False)

    @property
    def parsed(self) -> "MimeNode":
        """
        The parsed MIME tree of the raw payload, computed at most once.

        Parsing the same bytes twice gives an equivalent tree, so concurrent
        first access is harmless.
        """
        raw = self.raw or ""
        if self._parsed is None or self._parsed_from is not raw:
            from mailstash.mime import parse_message

            self._parsed = parse_message(raw)
            self._parsed_from = raw
        return self._parsed

    @property
    def size(self) -> int:
        """Length of the raw payload in bytes (0 if not loaded)."""
        return len(self.raw or "")

    @property
    def is_seen(self) -> bool:
        """Returns True if the message has been read."""
        return SEEN in self.flags

    @property
    def is_deleted(self) -> bool:
        """Returns True if the message is marked for expunge."""
        return DELETED in self.flags

    @property
    def needs_fetch(self) -> bool:
        """Returns True if the payload must still be fetched from the blob store."""
        return self.raw is None and bool(self.key)

    def to_dict(self) -> dict[str, Any]:
        """Plain mapping for snapshots. The parsed tree is not included."""
        raw = self.raw
        if isinstance(raw, bytes):
            raw = raw.decode("latin-1")
        data: dict[str, Any] = {
            "uid": self.uid,
            "internaldate": self.internaldate,
            "flags": sorted(self.flags),
            "properties": dict(self.properties),
            "raw": raw,
        }
        if self.key:
            data["key"] = self.key
        return data

    @classmethod
    def from_dict(cls, data: "dict[str, Any] | str") -> "Message":
        """
        Build a Message from a snapshot entry.

        A bare string is taken as the raw payload of a new message.
        """
        if isinstance(data, str):
            return cls(raw=data)
        return cls(
            uid=data.get("uid") or 0,
            internaldate=data.get("internaldate") or "",
            flags=set(data.get("flags") or []),
            properties=dict(data.get("properties") or {}),
            raw=data.get("raw"),
            key=data.get("key"),
        )

    def __repr__(self) -> str:
        """Developer-friendly representation."""
        return f"Message(uid={self.uid}, flags={sorted(self.flags)}, size={self.size})"

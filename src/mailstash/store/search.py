# =============================================================================
# Search Engine
# =============================================================================
# Evaluates structured search queries against a folder's messages.
#
# A query is a mapping of predicate name -> argument, as produced by the
# protocol layer from an IMAP SEARCH command:
#
#   {"flags": ["\\Seen", {"not": "\\Deleted"}],
#    "headers": {"subject": "report"},
#    "or": {"body": "invoice", "text": "receipt"}}
#
# Query.parse() turns the mapping into typed predicate objects and rejects
# unknown names up front with InvalidQueryError. The top-level predicates
# are combined with AND; "or" returns the union of its nested predicates.
#
# Predicates that look at headers, dates or body text use the message's
# parsed MIME tree, which is computed lazily and kept on the message.
# =============================================================================

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, ClassVar, Sequence

from mailstash.core import Message
from mailstash.core.message import MONTHS
from mailstash.store.errors import InvalidQueryError
from mailstash.store.ranges import resolve_range


logger = logging.getLogger(__name__)

# "15 Jan 2024", "Mon, 15 Jan 2024 10:30:00 +0000", "15-Jan-2024 10:30:00 +0000"
_DAY_PATTERN = re.compile(r"(\d{1,2})[\s-]+([A-Za-z]{3})[A-Za-z]*[\s-]+(\d{4})")


# =============================================================================
# Date Comparison
# =============================================================================

def parse_day(value: Any) -> date | None:
    """
    Extract the calendar day from a date header or IMAP date string.

    Time and timezone are ignored: only day, month and year take part in
    date searches.

    Returns:
        The date, or None if no "DD Mon YYYY" / "DD-Mon-YYYY" day is found.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    match = _DAY_PATTERN.search(str(value or ""))
    if not match:
        return None
    month = match.group(2).capitalize()
    if month not in MONTHS:
        return None
    try:
        return date(int(match.group(3)), MONTHS.index(month) + 1, int(match.group(1)))
    except ValueError:
        return None


@dataclass(frozen=True)
class DateCondition:
    """
    A day-granularity date comparison.

    Attributes:
        op: "ge" (on or after), "lt" (before) or "eq" (same day).
        day: The reference day.
    """
    op: str
    day: date

    # Checked in this order when a mapping carries several operators
    OPERATORS: ClassVar[tuple[str, ...]] = ("ge", "lt", "eq")

    @classmethod
    def from_value(cls, value: Any) -> "DateCondition | None":
        """Build a condition from {"ge"|"lt"|"eq": "DD-Mon-YYYY"}."""
        if not isinstance(value, Mapping):
            raise InvalidQueryError(f"Date criteria must be a mapping, got {value!r}")
        for op in cls.OPERATORS:
            if value.get(op):
                day = parse_day(value[op])
                if day is None:
                    raise InvalidQueryError(f"Invalid search date: {value[op]!r}")
                return cls(op, day)
        return None

    def matches(self, value: Any) -> bool:
        candidate = parse_day(value)
        if candidate is None:
            return False
        days = (candidate - self.day).days
        same_day_of_month = candidate.day == self.day.day

        if self.op == "lt":
            # An earlier date that falls on the same day of the month is
            # not "less than" (e.g. 15-Jan vs 15-Feb).
            return days < 0 and not same_day_of_month
        if self.op == "ge":
            return days > 0 or (days == 0 and same_day_of_month)
        return days == 0 and same_day_of_month


def _message_date(message: Message) -> str:
    """The Date header of the message, or its internal date without one."""
    header = message.parsed.parsed_header.get("date")
    if isinstance(header, list):
        header = header[0] if header else ""
    return header or message.internaldate


# =============================================================================
# Predicates
# =============================================================================

class Predicate:
    """
    Base class for search predicates.

    Subclasses set `name` (the query key) and implement evaluate(), which
    returns the matching messages in folder order.
    """

    name: ClassVar[str] = ""
    # True if evaluation reads the raw payload or the parsed tree
    needs_content: ClassVar[bool] = False

    @classmethod
    def from_value(cls, value: Any) -> "Predicate":
        raise NotImplementedError

    def evaluate(self, messages: Sequence[Message]) -> list[Message]:
        raise NotImplementedError


@dataclass
class IndexPredicate(Predicate):
    """Messages whose sequence number is in the range."""
    expression: str

    name: ClassVar[str] = "index"

    @classmethod
    def from_value(cls, value: Any) -> "IndexPredicate":
        return cls(str(value or ""))

    def evaluate(self, messages: Sequence[Message]) -> list[Message]:
        return [m.message for m in resolve_range(messages, self.expression, by_uid=False)]


@dataclass
class UidPredicate(IndexPredicate):
    """Messages whose UID is in the range."""

    name: ClassVar[str] = "uid"

    def evaluate(self, messages: Sequence[Message]) -> list[Message]:
        return [m.message for m in resolve_range(messages, self.expression, by_uid=True)]


@dataclass
class HeadersPredicate(Predicate):
    """
    Messages with a header containing a value (case-insensitive).

    An empty value matches any message that has the header at all. A
    "date" header with a {"ge"|"lt"|"eq": ...} value compares days instead.
    Several headers in one predicate match if any of them matches.
    """
    criteria: dict[str, Any] = field(default_factory=dict)

    name: ClassVar[str] = "headers"
    needs_content: ClassVar[bool] = True

    @classmethod
    def from_value(cls, value: Any) -> "HeadersPredicate":
        if not value:
            return cls()
        if not isinstance(value, Mapping):
            raise InvalidQueryError(f"Header criteria must be a mapping, got {value!r}")
        criteria: dict[str, Any] = {}
        for key, val in value.items():
            key = str(key or "").lower()
            if key == "date" and isinstance(val, Mapping):
                criteria[key] = DateCondition.from_value(val)
            else:
                criteria[key] = "" if val is None else str(val)
        return cls(criteria)

    def evaluate(self, messages: Sequence[Message]) -> list[Message]:
        matched: set[int] = set()
        for key, value in self.criteria.items():
            for i, message in enumerate(messages):
                if i not in matched and self._matches(message, key, value):
                    matched.add(i)
        return [message for i, message in enumerate(messages) if i in matched]

    @staticmethod
    def _matches(message: Message, key: str, value: Any) -> bool:
        if isinstance(value, DateCondition):
            return value.matches(_message_date(message))
        if value is None:
            return False
        needle = value.lower()
        return any(needle in line.lower() for line in message.parsed.header_values(key))


@dataclass
class DatePredicate(Predicate):
    """
    Messages sent on, before or since a day.

    Uses the Date header when the message has one, otherwise the internal
    date.
    """
    condition: DateCondition | None = None

    name: ClassVar[str] = "date"
    needs_content: ClassVar[bool] = True

    @classmethod
    def from_value(cls, value: Any) -> "DatePredicate":
        return cls(DateCondition.from_value(value) if value else None)

    def evaluate(self, messages: Sequence[Message]) -> list[Message]:
        if self.condition is None:
            return []
        return [m for m in messages if self.condition.matches(_message_date(m))]


@dataclass
class BodyPredicate(Predicate):
    """Messages whose body text contains a string (case-insensitive)."""
    needle: str = ""

    name: ClassVar[str] = "body"
    needs_content: ClassVar[bool] = True

    @classmethod
    def from_value(cls, value: Any) -> "BodyPredicate":
        return cls("" if value is None else str(value))

    def _haystack(self, message: Message) -> str:
        return message.parsed.text or ""

    def evaluate(self, messages: Sequence[Message]) -> list[Message]:
        if not self.needle:
            return []
        needle = self.needle.lower()
        return [m for m in messages if needle in self._haystack(m).lower()]


@dataclass
class TextPredicate(BodyPredicate):
    """Messages whose raw payload (headers included) contains a string."""

    name: ClassVar[str] = "text"

    def _haystack(self, message: Message) -> str:
        raw = message.raw or ""
        if isinstance(raw, bytes):
            return raw.decode("latin-1")
        return raw


@dataclass
class FlagsPredicate(Predicate):
    """
    Messages with (or without) flags.

    Each entry is a flag name the message must have, or {"not": flag} for
    a flag it must not have. Entries are applied one after another, so all
    of them must hold.
    """
    entries: list[tuple[str, bool]] = field(default_factory=list)

    name: ClassVar[str] = "flags"

    @classmethod
    def from_value(cls, value: Any) -> "FlagsPredicate":
        if value is None:
            values = []
        elif isinstance(value, (str, Mapping)):
            values = [value]
        else:
            values = list(value)

        entries = []
        for entry in values:
            if isinstance(entry, str):
                entries.append((entry, False))
            elif isinstance(entry, Mapping) and entry.get("not"):
                entries.append((str(entry["not"]), True))
            else:
                raise InvalidQueryError(f"Invalid flag criteria: {entry!r}")
        return cls(entries)

    def evaluate(self, messages: Sequence[Message]) -> list[Message]:
        result = list(messages)
        for flag, negate in self.entries:
            result = [m for m in result if (flag in m.flags) != negate]
        return result


@dataclass
class SizePredicate(Predicate):
    """Messages larger than, smaller than or exactly a size in bytes."""
    op: str | None = None
    size: int = 0

    name: ClassVar[str] = "size"
    needs_content: ClassVar[bool] = True

    OPERATORS: ClassVar[tuple[str, ...]] = ("gt", "lt", "eq")

    @classmethod
    def from_value(cls, value: Any) -> "SizePredicate":
        if not value:
            return cls()
        if not isinstance(value, Mapping):
            raise InvalidQueryError(f"Size criteria must be a mapping, got {value!r}")
        for op in cls.OPERATORS:
            if value.get(op) is not None:
                try:
                    return cls(op, int(value[op]))
                except (TypeError, ValueError):
                    raise InvalidQueryError(f"Invalid size: {value[op]!r}") from None
        return cls()

    def evaluate(self, messages: Sequence[Message]) -> list[Message]:
        if self.op == "gt":
            return [m for m in messages if m.size > self.size]
        if self.op == "lt":
            return [m for m in messages if m.size < self.size]
        if self.op == "eq":
            return [m for m in messages if m.size == self.size]
        return []


@dataclass
class OrPredicate(Predicate):
    """
    Messages matched by any of the nested predicates.

    The argument is a mapping of predicate name -> argument, or a list of
    such mappings / (name, argument) pairs when the same predicate name
    appears more than once.
    """
    predicates: list[Predicate] = field(default_factory=list)

    name: ClassVar[str] = "or"

    @property
    def needs_content(self) -> bool:  # type: ignore[override]
        return any(p.needs_content for p in self.predicates)

    @classmethod
    def from_value(cls, value: Any) -> "OrPredicate":
        return cls([build_predicate(key, val) for key, val in _criteria_items(value)])

    def evaluate(self, messages: Sequence[Message]) -> list[Message]:
        matched: set[int] = set()
        for predicate in self.predicates:
            matched.update(id(m) for m in predicate.evaluate(messages))
        return [m for m in messages if id(m) in matched]


PREDICATES: dict[str, type[Predicate]] = {
    cls.name: cls
    for cls in (
        IndexPredicate,
        UidPredicate,
        HeadersPredicate,
        DatePredicate,
        BodyPredicate,
        TextPredicate,
        FlagsPredicate,
        SizePredicate,
        OrPredicate,
    )
}


def _criteria_items(value: Any) -> list[tuple[str, Any]]:
    """Normalize a criteria mapping / list of pairs into (name, argument) pairs."""
    if not value:
        return []
    if isinstance(value, Mapping):
        return list(value.items())

    items = []
    for entry in value:
        if isinstance(entry, Mapping):
            items.extend(entry.items())
        elif isinstance(entry, (tuple, list)) and len(entry) == 2:
            items.append((entry[0], entry[1]))
        else:
            raise InvalidQueryError(f"Invalid search criteria: {entry!r}")
    return items


def build_predicate(name: str, value: Any) -> Predicate:
    """
    Build the predicate registered under `name`.

    Raises:
        InvalidQueryError: If no predicate has that name or the argument
                           is malformed.
    """
    try:
        predicate_cls = PREDICATES[name]
    except KeyError:
        raise InvalidQueryError(f"Unknown search predicate: {name!r}") from None
    return predicate_cls.from_value(value)


# =============================================================================
# Queries
# =============================================================================

@dataclass(frozen=True)
class SearchHit:
    """One search result: the message UID and its sequence number."""
    uid: int
    index: int

    def to_dict(self) -> dict[str, int]:
        return {"uid": self.uid, "index": self.index}


@dataclass
class Query:
    """
    A validated search query.

    Usage:
        >>> query = Query.parse({"flags": {"not": "\\\\Seen"}, "body": "invoice"})
        >>> hits = query.run(folder.messages)
    """
    predicates: list[Predicate] = field(default_factory=list)

    @classmethod
    def parse(cls, criteria: "Mapping[str, Any] | Query") -> "Query":
        """
        Build a Query from a criteria mapping.

        Raises:
            InvalidQueryError: If any predicate name is unknown.
        """
        if isinstance(criteria, Query):
            return criteria
        return cls([build_predicate(key, value) for key, value in _criteria_items(criteria)])

    @property
    def needs_content(self) -> bool:
        """True if evaluating the query reads message payloads."""
        return any(p.needs_content for p in self.predicates)

    def run(self, messages: Sequence[Message]) -> list[SearchHit]:
        """
        Evaluate the query.

        Every top-level predicate must match. Returns one hit per matching
        message, in folder order.
        """
        if not self.predicates:
            return []

        matched: set[int] | None = None
        for predicate in self.predicates:
            uids = {m.uid for m in predicate.evaluate(messages)}
            matched = uids if matched is None else matched & uids
            logger.debug(f"Predicate {predicate.name!r} matched {len(uids)} message(s)")

        hits = []
        seen: set[int] = set()
        for i, message in enumerate(messages):
            if message.uid in matched and message.uid not in seen:
                seen.add(message.uid)
                hits.append(SearchHit(uid=message.uid, index=i + 1))
        return hits


def search(messages: Sequence[Message], criteria: "Mapping[str, Any] | Query") -> list[SearchHit]:
    """
    Search a message list.

    Args:
        messages: Messages in folder order.
        criteria: Criteria mapping or an already parsed Query.

    Returns:
        Matching (uid, index) hits in folder order.

    Raises:
        InvalidQueryError: If the criteria contain an unknown predicate.
    """
    return Query.parse(criteria).run(messages)

# =============================================================================
# Message Range Resolution
# =============================================================================
# Resolves IMAP sequence sets ("1", "2:4", "5:*", "*", "1,3:5") against a
# folder's message list. The same expression can address messages by
# position (sequence numbers) or by UID:
#
#   messages:   [uid=4] [uid=7] [uid=9]
#   "2:*"   -> positions 2..3  -> uid 7, 9
#   UID "5:*" -> uids 5..9     -> uid 7, 9
#
# Ranges are inclusive in both directions ("4:2" is the same as "2:4").
# =============================================================================

import logging
from dataclasses import dataclass
from typing import Sequence

from mailstash.core import Message


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexedMessage:
    """
    A message together with its 1-based position in the folder.

    The message is the stored object itself, so flag changes made through
    it are visible in the folder.
    """
    index: int
    message: Message

    @property
    def uid(self) -> int:
        return self.message.uid


def _parse_token(token: str, total: int) -> tuple[int, int]:
    """
    Turn one sequence-set token into (from, to) bounds.

    "*" stands for `total`. Unparseable or zero bounds fall back to 1 for the
    start and to the start for the end.
    """
    first, _, rest = token.partition(":")
    last = rest.rsplit(":", 1)[-1] if rest else ""

    start = _to_number(str(total) if first == "*" else first) or 1
    if last == "*":
        end = total or start
    else:
        end = _to_number(last) or start
    return start, end


def _to_number(value: str) -> int:
    try:
        return int(value.strip())
    except ValueError:
        return 0


def resolve_range(
    messages: Sequence[Message],
    expression: str | int,
    by_uid: bool = False,
) -> list[IndexedMessage]:
    """
    Select the messages matched by a sequence-set expression.

    Args:
        messages: The folder's messages in folder order.
        expression: Comma-separated tokens (N, N:M, N:*, *).
        by_uid: Match tokens against UIDs instead of positions. "*" is then
                the highest UID in the folder (0 if empty); otherwise it is
                the message count.

    Returns:
        Matching messages in folder order, each at most once.

    Example:
        >>> [m.index for m in resolve_range(five_messages, "2:*")]
        [2, 3, 4, 5]
    """
    tokens = str(expression or "").split(",")
    if by_uid:
        total = max((message.uid for message in messages), default=0)
    else:
        total = len(messages)
    bounds = [_parse_token(token, total) for token in tokens]

    result = []
    for i, message in enumerate(messages):
        number = (message.uid or 1) if by_uid else i + 1
        if any(min(a, b) <= number <= max(a, b) for a, b in bounds):
            result.append(IndexedMessage(index=i + 1, message=message))

    logger.debug(
        f"Range {expression!r} ({'uid' if by_uid else 'index'}) "
        f"matched {len(result)} of {len(messages)} message(s)"
    )
    return result

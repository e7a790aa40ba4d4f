# =============================================================================
# Tests for sequence-set resolution
# =============================================================================

import pytest

from mailstash.core import Message
from mailstash.store import resolve_range


@pytest.fixture
def five_messages():
    """Five messages with UIDs 10, 20, 30, 40, 50."""
    return [Message(uid=uid * 10) for uid in range(1, 6)]


def indexes(result):
    return [match.index for match in result]


def test_open_range_by_index(five_messages):
    assert indexes(resolve_range(five_messages, "2:*")) == [2, 3, 4, 5]


def test_star_is_last_message(five_messages):
    assert indexes(resolve_range(five_messages, "*")) == [5]


def test_reversed_bounds(five_messages):
    assert indexes(resolve_range(five_messages, "4:2")) == [2, 3, 4]


def test_duplicates_are_returned_once_in_folder_order(five_messages):
    assert indexes(resolve_range(five_messages, "3,1,3:3,1")) == [1, 3]


def test_uid_mode(five_messages):
    result = resolve_range(five_messages, "25:*", by_uid=True)

    assert [match.uid for match in result] == [30, 40, 50]
    assert indexes(result) == [3, 4, 5]


def test_uid_mode_star_is_highest_uid(five_messages):
    assert [m.uid for m in resolve_range(five_messages, "*", by_uid=True)] == [50]


def test_uid_mode_gaps_match_nothing(five_messages):
    assert resolve_range(five_messages, "11:19", by_uid=True) == []


def test_empty_folder():
    assert resolve_range([], "1:*") == []
    assert resolve_range([], "*", by_uid=True) == []


def test_out_of_range_index(five_messages):
    assert resolve_range(five_messages, "9") == []


def test_integer_expression(five_messages):
    assert indexes(resolve_range(five_messages, 2)) == [2]


def test_result_wraps_stored_messages(five_messages):
    match = resolve_range(five_messages, "1")[0]

    assert match.message is five_messages[0]

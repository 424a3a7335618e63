"""Tests for range token parsing and test selection."""

import pytest

from tap_dispatch.faults import ConfigurationError, UsageError
from tap_dispatch.selection import parse_ranges, select_indices


@pytest.mark.parametrize(
    ("tokens", "expected"),
    [
        (["3..5"], [3, 4, 5]),
        (["-x", "3..5"], [1, 2, 6, 7, 8, 9, 10]),
        (["-i", "3..5", "-x", "4..4"], [3, 5]),
        ([], [1, 2, 3, 4, 5, 6, 7, 8, 9, 10]),
        (["--exclude", "1..4", "--include", "2..2"], [2]),
        (["-x", "1..2", "3..4"], [5, 6, 7, 8, 9, 10]),
        (["1..3", "8..10"], [1, 2, 3, 8, 9, 10]),
        (["1..10", "-x", "2..9", "-i", "5..5"], [1, 5, 10]),
        (["1..0"], []),
        (["-x", "1..0"], [1, 2, 3, 4, 5, 6, 7, 8, 9, 10]),
    ],
)
def test_select_indices(tokens: list[str], expected: list[int]) -> None:
    """Resolves tokens into ascending indices, last covering range winning."""
    assert list(select_indices(tokens, 1, 10)) == expected


def test_no_available_tests_selects_nothing() -> None:
    """An empty subject selects nothing without error."""
    assert list(select_indices([], 1, 0)) == []


def test_zero_based_origin() -> None:
    """External numbering follows the first index."""
    assert list(select_indices([], 0, 3)) == [0, 1, 2]
    assert list(select_indices(["0..1"], 0, 3)) == [0, 1]


def test_shifted_origin() -> None:
    """Ranges are given in external numbering."""
    assert list(select_indices(["6..7"], 5, 3)) == [6, 7]
    assert list(select_indices(["-x", "5..5"], 5, 3)) == [6, 7]


def test_coloring_is_captured_at_parse_time() -> None:
    """A later mode flag does not recolor earlier ranges."""
    spec = parse_ranges(["1..2", "-x"], 1, 5)

    assert [r.color for r in spec.ranges] == ["include"]


def test_ranges_are_stored_in_internal_numbering() -> None:
    """Endpoints are shifted by the first index."""
    spec = parse_ranges(["-x", "6..7"], 5, 3)

    assert spec.ranges[0].low == 2
    assert spec.ranges[0].high == 3
    assert spec.ranges[0].color == "exclude"
    assert spec.offset == 4


@pytest.mark.parametrize(
    ("token", "message"),
    [
        ("3-5", "does not look like start..end"),
        ("1..2..3", "does not look like start..end"),
        ("7", "does not look like start..end"),
        ("a..3", "error parsing start number"),
        ("1..b", "error parsing end number"),
        ("..", "error parsing start number"),
        ("0..3", "start number 0 in 0..3 out of range"),
        ("11..11", "start number 11 in 11..11 out of range"),
        ("3..11", "end number 11 in 3..11 out of range"),
        ("5..3", "end number 3 in 5..3 out of range"),
        ("--bogus", "does not look like start..end"),
    ],
)
def test_malformed_tokens(token: str, message: str) -> None:
    """Malformed or out-of-bounds tokens are usage errors."""
    with pytest.raises(UsageError, match=message):
        parse_ranges([token], 1, 10)


def test_bounds_message_uses_external_numbering() -> None:
    """Out-of-range messages quote the external bounds."""
    with pytest.raises(UsageError, match="must be at least 5 and at most 7"):
        parse_ranges(["9..9"], 5, 3)


def test_negative_first_index_is_a_configuration_error() -> None:
    """A subject cannot start below zero."""
    with pytest.raises(ConfigurationError, match="cannot be negative"):
        parse_ranges([], -1, 3)

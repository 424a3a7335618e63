"""Parse command-line range tokens into the test indices to run."""

import logging
from collections.abc import Iterable, Sequence

from tap_dispatch.faults import ConfigurationError, UsageError
from tap_dispatch.models.ranges import Color, Range, RangeSpec

log = logging.getLogger(__name__)

INCLUDE_FLAGS = frozenset({"-i", "--include"})
EXCLUDE_FLAGS = frozenset({"-x", "--exclude"})


def parse_ranges(tokens: Iterable[str], start: int, avail: int) -> RangeSpec:
    """Parse range tokens with sticky include/exclude coloring.

    Args:
        tokens: Mode flags (``-i``/``--include``, ``-x``/``--exclude``) and
            ``A..B`` ranges in external numbering, in command-line order
        start: First addressable external index (must be at least 0)
        avail: Number of addressable indices

    Returns:
        The parsed ranges; each keeps the coloring in force when it was read

    Raises:
        ConfigurationError: If ``start`` is negative
        UsageError: If a token is not ``A..B``, an operand is not an integer,
            or an endpoint is out of bounds

    """
    if start < 0:
        raise ConfigurationError(f"first test cannot be negative (got {start})")

    offset = start - 1
    color: Color = "include"
    ranges: list[Range] = []

    for token in tokens:
        if token in INCLUDE_FLAGS:
            color = "include"
            continue
        if token in EXCLUDE_FLAGS:
            color = "exclude"
            continue
        ranges.append(parse_range(token, offset, avail, color))

    spec = RangeSpec(ranges=tuple(ranges), offset=offset, avail=avail)
    log.debug("Parsed %d range(s) over %d index(es)", len(ranges), avail)
    return spec


def parse_range(token: str, offset: int, avail: int, color: Color) -> Range:
    """Parse one ``A..B`` token into a range in internal numbering."""
    operands = token.split("..")
    if len(operands) != 2:
        raise UsageError(f"{token} does not look like start..end")

    low = _parse_operand(operands[0], "start", token) - offset
    if low < 1 or low > avail:
        raise UsageError(
            f"start number {low + offset} in {token} out of range: "
            f"must be at least {1 + offset} and at most {avail + offset}"
        )

    high = _parse_operand(operands[1], "end", token) - offset
    if high < low - 1 or high > avail:
        raise UsageError(
            f"end number {high + offset} in {token} out of range: "
            f"must be at least {low - 1 + offset} and at most {avail + offset}"
        )

    return Range(low=low, high=high, color=color)


def _parse_operand(operand: str, which: str, token: str) -> int:
    try:
        return int(operand)
    except ValueError:
        raise UsageError(
            f"error parsing {which} number {operand!r} in {token}"
        ) from None


def select_indices(tokens: Iterable[str], start: int, avail: int) -> Sequence[int]:
    """Resolve range tokens into ascending external test indices."""
    return parse_ranges(tokens, start, avail).select()

"""Models for parsed test index ranges."""

from collections.abc import Sequence
from typing import Literal

from pydantic import Field

from tap_dispatch.models.base import Model

Color = Literal["include", "exclude"]


class Range(Model):
    """One parsed ``A..B`` range in internal (1-based) numbering.

    ``high == low - 1`` is a deliberately empty range.
    """

    low: int = Field(..., description="First internal index covered")
    high: int = Field(..., description="Last internal index covered")
    color: Color = Field(default="include", description="Coloring at parse time")

    def covers(self, index: int) -> bool:
        """Check whether ``index`` falls inside this range."""
        return self.low <= index <= self.high


class RangeSpec(Model):
    """Ordered list of colored ranges over ``avail`` addressable indices."""

    ranges: Sequence[Range] = Field(default_factory=tuple)
    offset: int = Field(default=0, description="External index = internal + offset")
    avail: int = Field(default=0, ge=0, description="Count of addressable indices")

    def selects(self, index: int) -> bool:
        """Decide whether internal ``index`` is selected.

        The last declared range covering ``index`` wins. An index no range
        covers is selected only when no include range was declared at all.
        """
        for candidate in reversed(self.ranges):
            if candidate.covers(index):
                return candidate.color == "include"
        return not any(r.color == "include" for r in self.ranges)

    def select(self) -> Sequence[int]:
        """Return the selected indices in ascending external numbering."""
        return [
            index + self.offset
            for index in range(1, self.avail + 1)
            if self.selects(index)
        ]

"""Fault taxonomy for dispatched test subjects."""

import enum
import traceback
from collections.abc import Sequence
from dataclasses import dataclass, field


class FaultKind(enum.IntFlag):
    """Independent fault flags, aggregated by union across a run."""

    BADPLAN = 0x0001
    NOTMETH = 0x0002
    BADMETH = 0x0004
    BADINIT = 0x0008
    BADCALL = 0x0010
    ERRINIT = 0x0020


ALL_FAULTS = (
    FaultKind.BADPLAN
    | FaultKind.NOTMETH
    | FaultKind.BADMETH
    | FaultKind.BADINIT
    | FaultKind.BADCALL
    | FaultKind.ERRINIT
)


@dataclass(frozen=True, kw_only=True)
class Fault:
    """A classified fault raised while dispatching one test index."""

    kind: FaultKind
    index: int
    cause: str | None = None
    trace: Sequence[str] = field(default_factory=tuple)
    exc: BaseException | None = field(default=None, compare=False, repr=False)

    @classmethod
    def from_exception(
        cls, kind: FaultKind, index: int, exc: BaseException
    ) -> "Fault":
        """Build a fault carrying the message and traceback of ``exc``."""
        cause = str(exc) or type(exc).__name__
        lines = "".join(traceback.format_exception(exc)).splitlines()
        return cls(kind=kind, index=index, cause=cause, trace=tuple(lines), exc=exc)


class TapError(Exception):
    """Base class for errors raised by tap_dispatch."""


class TapStateError(TapError):
    """Raised when the assertion engine is used out of order."""


class UsageError(TapError):
    """Raised for malformed command-line input."""


class ConfigurationError(TapError):
    """Raised when a test subject cannot describe itself."""


class PlanMismatchError(TapError):
    """Raised in fail-fast mode when a subject misses its subplan."""


class SubjectConstructionError(TapError):
    """Raised in fail-fast mode when a subject factory yields nothing."""


class MissingRoutineError(TapError, LookupError):
    """Raised in fail-fast mode when an index has no registered routine."""


class RoutineLinkageError(TapError, TypeError):
    """Raised in fail-fast mode when a routine cannot be invoked."""


def parse_fault_kinds(kinds: str) -> FaultKind:
    """Parse comma-separated fault kind names into a mask.

    ``all`` selects every kind; names are case-insensitive.

    Raises:
        UsageError: If a name is not a known fault kind

    """
    mask = FaultKind(0)
    for name in (k.strip() for k in kinds.split(",")):
        if not name:
            continue
        if name.lower() == "all":
            mask |= ALL_FAULTS
            continue
        try:
            mask |= FaultKind[name.upper()]
        except KeyError:
            available = ", ".join(k.name.lower() for k in FaultKind if k.name)
            raise UsageError(
                f"unknown fault kind '{name}'. Available kinds: {available}"
            ) from None
    return mask

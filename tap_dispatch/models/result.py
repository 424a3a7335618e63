"""Models for dispatch run results."""

from dataclasses import dataclass

from tap_dispatch.faults import FaultKind


@dataclass(frozen=True, kw_only=True)
class RunResult:
    """Outcome of a dispatch run.

    ``faults`` is the union of every fault kind seen; ``exit_status`` is the
    completion signal for the process.
    """

    faults: FaultKind
    count: int
    failed: int
    planned: int
    exit_status: int = 0

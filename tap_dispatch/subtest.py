"""Single-level subtest bookkeeping for the assertion engine."""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from tap_dispatch.faults import TapStateError

if TYPE_CHECKING:
    from tap_dispatch.engine import TapEngine


def _plural(n: int) -> str:
    return "" if n == 1 else "s"


@dataclass
class SubtestContext:
    """Counters for the currently open subtest.

    This is a flag, not a stack: a subtest cannot be opened inside another
    one, because embedded numbering (``id.n``) assumes exactly one level.
    """

    id: int = 0
    plan: int = 0
    count: int = 0
    failed: int = 0
    open: bool = False
    todo: int = 0
    todo_passed: list[str] = field(default_factory=list)

    def enter(self, subtest_id: int) -> None:
        """Open subtest ``subtest_id`` and reset its local tallies."""
        if self.open:
            raise TapStateError(f"You are already in subtest {self.id}.")
        self.id = subtest_id
        self.count = 0
        self.failed = 0
        self.todo = 0
        self.todo_passed.clear()
        self.open = True

    def leave(self) -> None:
        """Close the open subtest."""
        if not self.open:
            raise TapStateError("You are not in an ongoing subtest.")
        self.open = False

    def record(self, number: str, *, passed: bool, todo: bool) -> None:
        """Fold one assertion into the local tallies."""
        self.count += 1
        if not (passed or todo):
            self.failed += 1
        if todo:
            if passed:
                self.todo_passed.append(number)
            else:
                self.todo += 1

    def report(self, tap: "TapEngine") -> bool:
        """Write the end-of-subtest summary and judge the subtest.

        Embedded runs are chattier: surprise TODO passes are celebrated, TODO
        debt goes to the diagnostic channel, and the count must match the
        declared subplan.
        """
        embedded = tap.embedded
        tap.note("End of subtest %d", self.id)
        tap.note(
            "Ran %d test%s and failed %d test%s.",
            self.count,
            _plural(self.count),
            self.failed,
            _plural(self.failed),
        )

        if embedded and self.todo_passed:
            tap.diag(
                "You passed TODO test%s %s! Nicely done.",
                _plural(len(self.todo_passed)),
                ", ".join(self.todo_passed),
            )
            tap.diag(
                "You may tick %s off your bucket list now.",
                "that" if len(self.todo_passed) == 1 else "those",
            )

        if self.todo > 0:
            tap.log(
                not embedded,
                "You still have %d TODO test%s to go.",
                self.todo,
                _plural(self.todo),
            )

        if self.failed > 0:
            tap.log(
                not embedded, "It seems that subtest %d failed. Tough luck.", self.id
            )
            return False

        if embedded and self.plan > 0 and self.count != self.plan:
            tap.diag(
                "Bad plan! Subtest %d planned to run %d test%s, "
                "but ended up running %d test%s.",
                self.id,
                self.plan,
                _plural(self.plan),
                self.count,
                _plural(self.count),
            )
            return False

        return True

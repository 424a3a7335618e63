"""TAP assertion engine.

The engine tracks how many assertions ran, how many failed, and the plan,
and writes one protocol line per assertion. Protocol output goes to the
informational channel (stdout); diagnostics go to the diagnostic channel
(stderr).
"""

import sys
import traceback
from typing import Any, TextIO

from tap_dispatch.faults import TapStateError
from tap_dispatch.subtest import SubtestContext


def _plural(n: int) -> str:
    return "" if n == 1 else "s"


def _splitlines(text: str) -> list[str]:
    """Split on newlines, dropping one trailing empty line."""
    lines = text.split("\n")
    if lines and not lines[-1]:
        lines.pop()
    return lines


class TapEngine:
    """Assertion state for one logical run.

    ``origin`` offsets displayed assertion numbers. A negative origin selects
    embedded mode: assertions are numbered ``<subtest>.<n>`` and written as
    comments, since an outer harness owns the real protocol framing.
    """

    def __init__(
        self,
        *,
        origin: int = 0,
        trace: bool = False,
        out: TextIO | None = None,
        err: TextIO | None = None,
    ) -> None:
        self.origin = origin
        self.trace = trace
        self._out = out
        self._err = err
        self._count = 0
        self._plan = 0
        self._fail = 0
        self._ended = False
        self.subtest = SubtestContext()

    @property
    def count(self) -> int:
        """Number of assertions run."""
        return self._count

    @property
    def planned(self) -> int:
        """Announced plan, or 0 if no plan was made."""
        return self._plan

    @property
    def failed(self) -> int:
        """Number of failed assertions."""
        return self._fail

    @property
    def ended(self) -> bool:
        """Whether the run has been concluded."""
        return self._ended

    @property
    def embedded(self) -> bool:
        return self.origin < 0

    @property
    def out(self) -> TextIO:
        return self._out if self._out is not None else sys.stdout

    @property
    def err(self) -> TextIO:
        return self._err if self._err is not None else sys.stderr

    def plan(self, n: int) -> int:
        """Announce that ``n`` assertions will run.

        A plan can only be made once. ``plan(0)`` records nothing; use
        :meth:`skip_all` to announce an empty run.

        Raises:
            TapStateError: If a plan already exists or ``n`` is negative

        """
        if self._plan > 0:
            raise TapStateError(f"You already have a plan: {self._plan}")
        if n < 0:
            raise TapStateError("Plan cannot be negative")
        self._plan = n
        if n > 0:
            self._write(self.out, f"1..{n}")
        return n

    def done_testing(self) -> bool:
        """Conclude the run.

        Without a plan, the plan line is synthesized from the count. With a
        plan, a count that misses it is diagnosed and the run stays open.

        Returns:
            True if the run concluded, False if it did not go to plan

        Raises:
            TapStateError: If the run already ended or a subtest is open

        """
        if self._ended:
            raise TapStateError("I thought we were done here!")
        if self.subtest.open:
            raise TapStateError(
                "You are in the middle of a subtest -- "
                "did you mean to call done_subtest()?"
            )

        if self._plan == 0:
            if self._count == 0:
                self._write(self.out, "1..0 # SKIP No tests defined")
            else:
                self._write(self.out, f"1..{self._count}")
        elif self._count != self._plan:
            self.diag(
                "You planned to run %d test%s, but %d test%s ran.",
                self._plan,
                _plural(self._plan),
                self._count,
                _plural(self._count),
            )
            self.diag("Seems like things did not go to plan.")
            return False

        self._ended = True
        return True

    def skip_all(self, reason: str) -> int:
        """Skip everything that is left and end the run.

        Without a plan, an empty plan carrying ``reason`` is written. With a
        plan, failing SKIP results fill every remaining slot.

        Returns:
            Number of synthesized skips

        Raises:
            TapStateError: If the run already ended

        """
        if self._ended:
            raise TapStateError("test has ended; there is nothing to skip")

        skipped = 0
        if self._plan == 0:
            self._write(self.out, f"1..0 # SKIP {reason}")
        else:
            while self._count < self._plan:
                self.fail(f"SKIP {reason}")
                skipped += 1

        self._ended = True
        return skipped

    def bail_out(self, reason: str) -> None:
        self._write(self.out, f"Bail out! {reason}")

    def diag(self, text: str, *args: Any) -> None:
        """Write a comment to the diagnostic channel."""
        self._comment(self.err, text, args)

    def note(self, text: str, *args: Any) -> None:
        """Write a comment to the informational channel."""
        self._comment(self.out, text, args)

    def log(self, ok: bool, text: str, *args: Any) -> None:
        """Route to :meth:`note` when ``ok``, else to :meth:`diag`."""
        if ok:
            self.note(text, *args)
        else:
            self.diag(text, *args)

    def confess(self, exc: BaseException) -> None:
        """Write the traceback of ``exc`` as diagnostics."""
        for line in "".join(traceback.format_exception(exc)).splitlines():
            self.diag(line)

    def ok(
        self,
        passed: bool,
        description: str = "",
        trace: bool | None = None,
        depth: int = 1,
    ) -> bool:
        """Record one assertion and write its result line.

        A first description line containing TODO or SKIP turns the
        description into a directive; TODO failures are not tallied as
        failures. Further description lines are written as detail.

        Args:
            passed: Whether the assertion holds
            description: Description of the assertion, may be empty
            trace: Write the assertion detail block on the diagnostic
                channel; defaults to True for failures and TODO assertions
            depth: Stack frames between the caller to report and this method

        Returns:
            ``passed``

        """
        if self._ended:
            self.diag("Assertion after the end of the test ignored: %s", description)
            return passed

        lines = _splitlines(description)
        first = lines[0] if lines else ""
        is_todo = "TODO" in first
        is_skip = "SKIP" in first
        if trace is None:
            trace = not passed or is_todo

        self._count += 1
        if self.embedded:
            number = f"{self.subtest.id}.{self.subtest.count + 1}"
        else:
            number = str(self._count + self.origin)

        status = f"{'ok' if passed else 'not ok'} {number}"
        if first:
            status += (" # " if is_todo or is_skip else " - ") + first

        if self.embedded:
            self.note(status)
        else:
            self._write(self.out, status)

        if trace or len(lines) > 1:
            self.log(
                not trace,
                "Assertion %s `%s' %s:",
                number,
                first,
                "passed" if passed else "failed",
            )
            for line in self._call_site(depth):
                self.log(not trace, line)
        for line in lines[1:]:
            self.log(not trace, line)

        if not (passed or is_todo):
            self._fail += 1
        self.subtest.record(number, passed=passed, todo=is_todo)
        return passed

    def pass_(self, description: str = "", times: int = 1) -> None:
        for _ in range(times):
            self.ok(True, description, trace=False, depth=2)

    def fail(self, description: str = "", times: int = 1) -> None:
        for _ in range(times):
            self.ok(False, description, trace=False, depth=2)

    def skip(self, times: int, reason: str) -> None:
        """Write ``times`` passing SKIP results."""
        for _ in range(times):
            self.ok(True, f"SKIP {reason}", depth=2)

    def equal(self, got: Any, expected: Any, description: str = "") -> bool:
        """Assert that ``got == expected``, explaining any mismatch."""
        good = got == expected
        lines = [description]
        if not good:
            lines.append(f"Verdict: {got!r} != {expected!r}")
            lines.append(f"      got: {_describe(got)}")
            lines.append(f" expected: {_describe(expected)}")
        return self.ok(good, "\n".join(lines), depth=2)

    def subplan(self, n: int) -> None:
        """Declare how many assertions the current subtest should run."""
        self.subtest.plan = n

    def init_subtest(self, subtest_id: int) -> None:
        """Open subtest ``subtest_id``.

        Raises:
            TapStateError: If a subtest is already open

        """
        self.subtest.enter(subtest_id)
        self.note("Start subtest %d", subtest_id)

    def done_subtest(self) -> bool:
        """Close the open subtest and report on it.

        Returns:
            True if no assertion failed and, in embedded mode, the subtest
            ran exactly its subplan

        Raises:
            TapStateError: If no subtest is open

        """
        self.subtest.leave()
        return self.subtest.report(self)

    def follow(self, parent: "TapEngine") -> None:
        """Continue the numbering of ``parent`` on its output channels."""
        self.origin = parent.origin if parent.embedded else parent.origin + parent.count
        self._out = parent._out
        self._err = parent._err

    def absorb(self, count: int, failed: int) -> None:
        """Fold the tally of a finished child run into this one."""
        self._count += count
        self._fail += failed

    def _call_site(self, depth: int) -> list[str]:
        frames = traceback.extract_stack()[:-1]
        if depth >= len(frames):
            return [
                f"Stack trace unavailable (level {depth} out of bounds "
                f"for call stack of depth {len(frames)})"
            ]
        frame = frames[-1 - depth]
        site = [f"      at {frame.filename}:{frame.lineno} in {frame.name}"]
        if self.trace:
            stack = traceback.format_list(frames[: len(frames) - depth])
            site.extend("".join(stack).splitlines())
        return site

    def _comment(self, stream: TextIO, text: str, args: tuple[Any, ...]) -> None:
        if args:
            text = text % args
        for line in text.split("\n") if text.strip() else [""]:
            self._write(stream, f"# {line}" if line.strip() else "#")

    @staticmethod
    def _write(stream: TextIO, line: str) -> None:
        print(line, file=stream, flush=True)


def _describe(value: Any) -> str:
    if value is None:
        return "None"
    return f"{type(value).__qualname__} - {value!r}"

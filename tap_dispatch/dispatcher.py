"""Dispatch numbered test routines of a subject and report them as TAP."""

import inspect
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import NoReturn

from tap_dispatch.engine import TapEngine
from tap_dispatch.faults import (
    ConfigurationError,
    Fault,
    FaultKind,
    MissingRoutineError,
    PlanMismatchError,
    RoutineLinkageError,
    SubjectConstructionError,
)
from tap_dispatch.models.config import DispatchConfig
from tap_dispatch.models.result import RunResult
from tap_dispatch.selection import select_indices
from tap_dispatch.subjects.base import Routine, SubjectFactory, TestSubject

log = logging.getLogger(__name__)

ABORTED = "aborted due to previous fatal exception"
TOO_AMBITIOUS = "plan too ambitious"

FAULT_DESCRIPTIONS = {
    FaultKind.ERRINIT: "construction failed",
    FaultKind.NOTMETH: "routine not found",
    FaultKind.BADCALL: "invocation error",
    FaultKind.BADINIT: "one-time setup failed",
    FaultKind.BADMETH: "runtime exception",
}

# Faults raised after the routine was located; the subject's count still
# counts and is reconciled against its subplan.
INVOKED = FaultKind.BADINIT | FaultKind.BADMETH


@dataclass(frozen=True, kw_only=True)
class Survey:
    """What a reference subject says about itself."""

    subject: TestSubject
    start: int
    avail: int


@dataclass(frozen=True, kw_only=True)
class Dispatcher:
    """Runs selected test indices of a subject against one TAP stream.

    Every index gets a fresh subject. Faults are classified, reported as
    diagnostics and folded into the result; the announced plan is always
    met by topping up with synthesized results. Fault kinds in the
    configured ``fatal`` mask are re-raised instead.
    """

    factory: SubjectFactory
    config: DispatchConfig = field(default_factory=DispatchConfig)
    tap: TapEngine = field(default_factory=TapEngine)

    @property
    def subject_name(self) -> str:
        return getattr(self.factory, "__qualname__", repr(self.factory))

    def execute(self, tokens: Sequence[str]) -> RunResult:
        """Survey the subject, resolve range tokens and run the selection.

        Raises:
            ConfigurationError: If the subject cannot describe itself
            UsageError: If a range token is malformed or out of bounds

        """
        survey = self.survey()
        indices = select_indices(tokens, survey.start, survey.avail)
        log.debug("Selected %d of %d test(s): %s", len(indices), survey.avail, indices)
        return self.run(indices, survey)

    def survey(self) -> Survey:
        """Build a reference subject and ask for its first index and size.

        Raises:
            ConfigurationError: If the reference cannot be built, refuses to
                answer, or declares a negative first index

        """
        name = self.subject_name
        try:
            reference = self.factory()
        except Exception as exc:
            self._abandon(f"instantiation of {name} failed", exc)
        if not isinstance(reference, TestSubject):
            self._abandon(f"{name} did not produce a test subject")

        try:
            avail = reference.avail()
        except Exception as exc:
            self._abandon(
                f"{name} reference refuses to declare what tests it offers", exc
            )

        try:
            start = reference.start()
        except Exception as exc:
            self._abandon(
                f"{name} reference refuses to declare what its first test is", exc
            )

        if start < 0:
            raise ConfigurationError(f"first test cannot be negative (got {start})")
        if avail < 0:
            raise ConfigurationError(f"test count cannot be negative (got {avail})")

        return Survey(subject=reference, start=start, avail=avail)

    def run(self, indices: Sequence[int], survey: Survey | None = None) -> RunResult:
        """Run ``indices`` in order, recording faults kinds in the config mask."""
        return self._run(indices, survey, self.config.fatal)

    def run_fail_fast(
        self,
        indices: Sequence[int],
        fatal: FaultKind,
        survey: Survey | None = None,
    ) -> RunResult:
        """Run ``indices``, re-raising the original fault for kinds in ``fatal``."""
        return self._run(indices, survey, fatal)

    def _run(
        self, indices: Sequence[int], survey: Survey | None, fatal: FaultKind
    ) -> RunResult:
        reference = (survey or self.survey()).subject
        subplans, faults = self._query_subplans(reference, indices, fatal)

        total = sum(subplans)
        if total == 0:
            log.debug("No assertions planned for %d test(s)", len(indices))
            self.tap.skip_all("nothing to test")
            return self._result(faults)

        log.debug(
            "Announcing plan of %d assertion(s) for %d test(s)", total, len(indices)
        )
        self.tap.plan(total)

        for index, subplan in zip(indices, subplans, strict=True):
            faults |= self._dispatch(index, subplan, fatal)

        return self._result(faults)

    def _query_subplans(
        self, reference: TestSubject, indices: Sequence[int], fatal: FaultKind
    ) -> tuple[list[int], FaultKind]:
        subplans: list[int] = []
        faults = FaultKind(0)
        for index in indices:
            try:
                subplans.append(reference.subplan(index))
            except Exception as exc:
                self.tap.diag("Test %d died on me when I asked for its plan:", index)
                self.tap.confess(exc)
                log.warning("Test %d refused to declare its plan: %s", index, exc)
                if fatal & FaultKind.BADPLAN:
                    raise
                subplans.append(0)
                faults |= FaultKind.BADPLAN
        return subplans, faults

    def _dispatch(self, index: int, subplan: int, fatal: FaultKind) -> FaultKind:
        log.debug("Dispatching test %d (subplan=%d)", index, subplan)
        goal = self.tap.count + subplan
        kinds = FaultKind(0)

        subject, fault = self._construct(index, subplan)
        if subject is not None:
            fault = self._invoke(subject, index)

        if fault is not None:
            kinds |= fault.kind
            self._report(fault, fatal)

        if subject is not None and (fault is None or fault.kind & INVOKED):
            kinds |= self._reconcile(subject, index, subplan, fatal)

        self._top_up(goal, faulted=fault is not None)
        return kinds

    def _construct(
        self, index: int, subplan: int
    ) -> tuple[TestSubject | None, Fault | None]:
        try:
            subject = self.factory()
        except Exception as exc:
            return None, Fault.from_exception(FaultKind.ERRINIT, index, exc)

        if not isinstance(subject, TestSubject):
            error = SubjectConstructionError(
                f"{self.subject_name} did not produce a test subject"
            )
            return None, Fault.from_exception(FaultKind.ERRINIT, index, error)

        subject.tap.follow(self.tap)
        subject.tap.trace = self.config.trace
        subject.tap.subplan(subplan)
        return subject, None

    def _invoke(self, subject: TestSubject, index: int) -> Fault | None:
        routine = subject.routines.get(index)
        if routine is None:
            error: Exception = MissingRoutineError(
                f"no routine registered for test {index} "
                f"in {type(subject).__qualname__}"
            )
            return Fault.from_exception(FaultKind.NOTMETH, index, error)

        if (error := _linkage_error(routine, index)) is not None:
            return Fault.from_exception(FaultKind.BADCALL, index, error)

        try:
            type(subject).prepare()
        except Exception as exc:
            return Fault.from_exception(FaultKind.BADINIT, index, exc)

        try:
            routine()
        except Exception as exc:
            return Fault.from_exception(FaultKind.BADMETH, index, exc)

        return None

    def _report(self, fault: Fault, fatal: FaultKind) -> None:
        description = FAULT_DESCRIPTIONS.get(fault.kind, "fault")
        self.tap.diag("Test %d: %s", fault.index, description)
        self.tap.diag("Test %d aborted with an exception: %s", fault.index, fault.cause)
        if self.config.trace and fault.trace:
            self.tap.diag("Stack trace:")
            for line in fault.trace:
                self.tap.diag(line)
        log.warning(
            "Test %d faulted (%s): %s", fault.index, fault.kind.name, fault.cause
        )

        if fault.kind & fatal and fault.exc is not None:
            raise fault.exc

        self.tap.absorb(0, 1)

    def _reconcile(
        self, subject: TestSubject, index: int, subplan: int, fatal: FaultKind
    ) -> FaultKind:
        ran = subject.tap.count
        self.tap.absorb(ran, subject.tap.failed)
        if ran == subplan:
            return FaultKind(0)

        self.tap.diag(
            "Test %d planned to run %d test%s, but ran %d instead.",
            index,
            subplan,
            "" if subplan == 1 else "s",
            ran,
        )
        log.warning("Test %d ran %d assertion(s), planned %d", index, ran, subplan)
        if fatal & FaultKind.BADPLAN:
            raise PlanMismatchError(f"test {index} subplan foiled")
        return FaultKind.BADPLAN

    def _top_up(self, goal: int, *, faulted: bool) -> None:
        short = goal - self.tap.count
        if short <= 0:
            return
        if faulted:
            self.tap.skip(short, ABORTED)
        else:
            self.tap.fail(TOO_AMBITIOUS, times=short)

    def _result(self, faults: FaultKind) -> RunResult:
        failed = self.tap.failed
        return RunResult(
            faults=faults,
            count=self.tap.count,
            failed=failed,
            planned=self.tap.planned,
            exit_status=1 if self.config.exit_code and failed > 0 else 0,
        )

    def _abandon(self, reason: str, exc: Exception | None = None) -> NoReturn:
        self.tap.skip_all(reason)
        if exc is not None:
            self.tap.confess(exc)
        raise ConfigurationError(reason) from exc


def _linkage_error(routine: Routine, index: int) -> RoutineLinkageError | None:
    """Check that ``routine`` can be called with no arguments."""
    if not callable(routine):
        return RoutineLinkageError(f"routine for test {index} is not callable")
    try:
        inspect.signature(routine).bind()
    except ValueError:
        return None
    except TypeError as exc:
        return RoutineLinkageError(f"routine for test {index} cannot be called: {exc}")
    return None

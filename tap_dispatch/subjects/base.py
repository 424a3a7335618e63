"""Abstract base class for dispatchable test subjects."""

import sys
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping, Sequence
from typing import ClassVar, TypeAlias

from tap_dispatch.engine import TapEngine

Routine: TypeAlias = Callable[[], object]


class TestSubject(ABC):
    """Object under test whose numbered routines the dispatcher invokes.

    Each instance owns a fresh :class:`TapEngine` in ``self.tap``; routines
    assert through it. The dispatcher sets the engine's origin and subplan
    before invoking a routine and reads back its count and failure tally
    afterwards, so routines must not make their own plan.

    Routines are registered at construction time by :meth:`register`, keyed
    by test index.
    """

    __test__ = False

    _prepared: ClassVar[bool] = False

    def __init__(self) -> None:
        self.tap = TapEngine()
        self.routines: Mapping[int, Routine] = self.register()

    @abstractmethod
    def register(self) -> Mapping[int, Routine]:
        """Return the test routines of this subject keyed by test index."""

    def start(self) -> int:
        """First addressable test index; must be at least 0."""
        return 1

    def avail(self) -> int:
        """Number of addressable test indices."""
        return len(self.routines)

    def subplan(self, index: int) -> int:
        """Number of assertions test ``index`` will run, or 0 if undeclared."""
        return 0

    @classmethod
    def setup_subject(cls) -> None:
        """One-time setup, run before the first routine of this class."""

    @classmethod
    def prepare(cls) -> None:
        """Run :meth:`setup_subject` unless it already succeeded."""
        if cls.__dict__.get("_prepared", False):
            return
        cls.setup_subject()
        cls._prepared = True

    @classmethod
    def main(cls, argv: Sequence[str] | None = None) -> None:
        """Run the command line for this subject and exit."""
        from tap_dispatch.cli import run_subject

        sys.exit(run_subject(cls, sys.argv[1:] if argv is None else argv))


SubjectFactory: TypeAlias = Callable[[], TestSubject | None]

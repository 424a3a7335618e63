"""Tests for the built-in self-test subject."""

import pytest

from tap_dispatch.dispatcher import Dispatcher
from tap_dispatch.faults import FaultKind
from tap_dispatch.testing.selftest import SelfTestSubject


def test_selftest_passes(capsys: pytest.CaptureFixture[str]) -> None:
    """Every self-test assertion holds and the plan is met."""
    result = Dispatcher(factory=SelfTestSubject).execute([])

    assert result.faults == FaultKind(0)
    assert result.failed == 0
    assert result.count == result.planned == 18
    assert capsys.readouterr().out.splitlines()[0] == "1..18"


@pytest.mark.parametrize(("index", "expected"), [(1, 4), (2, 3), (5, 4)])
def test_selftest_subplans(index: int, expected: int) -> None:
    assert SelfTestSubject().subplan(index) == expected

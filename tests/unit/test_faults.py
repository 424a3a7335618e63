"""Tests for the fault taxonomy."""

import pytest

from tap_dispatch.faults import (
    ALL_FAULTS,
    Fault,
    FaultKind,
    UsageError,
    parse_fault_kinds,
)


def test_fault_kinds_are_independent_bits() -> None:
    """Each kind is a distinct bit so kinds can be combined."""
    values = [kind.value for kind in FaultKind]

    assert values == [0x01, 0x02, 0x04, 0x08, 0x10, 0x20]
    assert FaultKind.BADMETH | FaultKind.NOTMETH == 0x06


@pytest.mark.parametrize(
    ("kinds", "expected"),
    [
        ("", FaultKind(0)),
        ("badmeth", FaultKind.BADMETH),
        ("BADMETH, errinit", FaultKind.BADMETH | FaultKind.ERRINIT),
        ("badplan,,badcall,", FaultKind.BADPLAN | FaultKind.BADCALL),
        ("all", ALL_FAULTS),
    ],
)
def test_parse_fault_kinds(kinds: str, expected: FaultKind) -> None:
    """Parses comma-separated names case-insensitively."""
    assert parse_fault_kinds(kinds) == expected


def test_parse_fault_kinds_rejects_unknown_name() -> None:
    """Unknown names are usage errors listing the valid kinds."""
    with pytest.raises(UsageError, match="unknown fault kind 'oops'") as exc_info:
        parse_fault_kinds("badmeth,oops")

    assert "badplan" in str(exc_info.value)


def test_fault_from_exception() -> None:
    """Carries the message and traceback of the exception."""
    try:
        raise KeyError("missing")
    except KeyError as exc:
        fault = Fault.from_exception(FaultKind.BADMETH, 3, exc)

    assert fault.kind is FaultKind.BADMETH
    assert fault.index == 3
    assert fault.cause == "'missing'"
    assert fault.trace[0] == "Traceback (most recent call last):"
    assert fault.trace[-1] == "KeyError: 'missing'"


def test_fault_cause_falls_back_to_class_name() -> None:
    """An exception without a message is named by its class."""
    fault = Fault.from_exception(FaultKind.BADMETH, 1, RuntimeError())

    assert fault.cause == "RuntimeError"
    assert fault.trace == ("RuntimeError",)

"""Test subjects consumed by the dispatcher."""

from tap_dispatch.subjects.base import Routine, SubjectFactory, TestSubject

__all__ = ["Routine", "SubjectFactory", "TestSubject"]

"""Helpers for testing tap_dispatch and subjects built on it."""

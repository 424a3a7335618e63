"""Data models for tap_dispatch."""

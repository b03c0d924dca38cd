"""Test helper utilities for notification dispatch worker tests."""

from .factories import (
    FakeClock,
    fake_response,
    insert_job,
    insert_template,
    load_job,
    make_job,
    make_template,
)

__all__ = [
    "FakeClock",
    "fake_response",
    "insert_job",
    "insert_template",
    "load_job",
    "make_job",
    "make_template",
]

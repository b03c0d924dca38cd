"""Tests for logging context propagation."""

import threading

import pytest

from notify_worker.logging.context import (
    clear_log_context,
    get_log_context,
    log_context,
    pop_log_context,
    push_log_context,
)


@pytest.fixture(autouse=True)
def clean_context():
    """Clear logging context before and after each test."""
    clear_log_context()
    yield
    clear_log_context()


def test_empty_context():
    assert get_log_context() == {}


def test_push_and_pop():
    token = push_log_context(run_id="abc123", lease_id=42)
    assert get_log_context() == {"run_id": "abc123", "lease_id": 42}

    pop_log_context(token)
    assert get_log_context() == {}


def test_nested_push_restores_each_layer():
    token1 = push_log_context(run_id="abc123")
    token2 = push_log_context(job_id="jtd-1")
    token3 = push_log_context(channel="sms")

    assert get_log_context() == {"run_id": "abc123", "job_id": "jtd-1", "channel": "sms"}

    pop_log_context(token3)
    assert get_log_context() == {"run_id": "abc123", "job_id": "jtd-1"}

    pop_log_context(token2)
    pop_log_context(token1)
    assert get_log_context() == {}


def test_context_override():
    """Pushing the same key shadows the previous value until popped."""
    token1 = push_log_context(job_id="jtd-1")
    token2 = push_log_context(job_id="jtd-2")
    assert get_log_context() == {"job_id": "jtd-2"}

    pop_log_context(token2)
    assert get_log_context() == {"job_id": "jtd-1"}
    pop_log_context(token1)


def test_context_manager_nested():
    with log_context(run_id="abc123"):
        with log_context(lease_id=7, job_id="jtd-1"):
            assert get_log_context() == {"run_id": "abc123", "lease_id": 7, "job_id": "jtd-1"}

        assert get_log_context() == {"run_id": "abc123"}

    assert get_log_context() == {}


def test_context_manager_exception():
    """Context is restored even when the block raises."""
    with pytest.raises(ValueError):
        with log_context(run_id="abc123"):
            raise ValueError("Test exception")

    assert get_log_context() == {}


def test_clear_context():
    push_log_context(run_id="abc123", job_id="jtd-1")

    clear_log_context()

    assert get_log_context() == {}


def test_get_log_context_returns_copy():
    token = push_log_context(run_id="abc123")

    context = get_log_context()
    context["job_id"] = "modified"

    assert get_log_context() == {"run_id": "abc123"}
    pop_log_context(token)


def test_threads_do_not_share_context():
    seen = {}

    def worker():
        with log_context(run_id="thread-run"):
            seen["inside"] = get_log_context()

    with log_context(run_id="main-run"):
        thread = threading.Thread(target=worker)
        thread.start()
        thread.join()
        assert get_log_context() == {"run_id": "main-run"}

    assert seen["inside"] == {"run_id": "thread-run"}

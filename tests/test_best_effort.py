"""Tests for best-effort side effects."""

from unittest.mock import Mock

from notify_worker.utils.best_effort import SideEffectResult, best_effort


class TestBestEffort:
    """Test suite for best_effort."""

    def test_success(self):
        action = Mock()

        result = best_effort(action, event="status.history")

        action.assert_called_once_with()
        assert result == SideEffectResult(ok=True)
        assert result

    def test_failure_is_logged_not_raised(self, caplog):
        action = Mock(side_effect=RuntimeError("database is locked"))

        result = best_effort(action, event="status.history", job_id="jtd-1")

        assert not result
        assert result.error == "database is locked"
        record = caplog.records[-1]
        assert record.event == "status.history.failed"
        assert record.job_id == "jtd-1"
        assert record.error_type == "RuntimeError"

    def test_error_without_message_uses_type_name(self):
        result = best_effort(Mock(side_effect=KeyError()), event="audit")

        assert result.error == "KeyError"

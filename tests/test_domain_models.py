"""Unit tests for domain models."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from notify_worker.domain.models import (
    SETTLED_STATUSES,
    ChannelCode,
    DeliveryOutcome,
    JobStatus,
    QueueEntry,
)
from tests.helpers import make_job, make_template
from tests.helpers.factories import T0


class TestChannelCode:
    """Tests for channel code parsing."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("email", ChannelCode.EMAIL),
            ("SMS", ChannelCode.SMS),
            (" whatsapp ", ChannelCode.WHATSAPP),
            ("inapp", ChannelCode.INAPP),
        ],
    )
    def test_parse_known(self, value, expected):
        assert ChannelCode.parse(value) == expected

    @pytest.mark.parametrize("value", ["push", "", None])
    def test_parse_unknown(self, value):
        assert ChannelCode.parse(value) is None


class TestJob:
    """Tests for the Job model."""

    def test_required_fields(self):
        with pytest.raises(ValidationError):
            make_job(id="")
        with pytest.raises(ValidationError):
            make_job(tenant_id="")

    def test_channel_code_normalized(self):
        assert make_job(channel_code=" EMAIL ").channel_code == "email"

    def test_negative_retry_count_rejected(self):
        with pytest.raises(ValidationError):
            make_job(retry_count=-1)

    def test_naive_datetimes_become_utc(self):
        job = make_job(scheduled_at=datetime(2025, 1, 1, 12, 0, 0))

        assert job.scheduled_at == T0

    def test_offset_datetimes_converted_to_utc(self):
        ist = timezone(timedelta(hours=5, minutes=30))

        job = make_job(next_retry_at=datetime(2025, 1, 1, 17, 30, tzinfo=ist))

        assert job.next_retry_at == T0
        assert job.next_retry_at.tzinfo == timezone.utc

    def test_effective_max_retries(self):
        assert make_job(max_retries=5).effective_max_retries(3) == 5
        assert make_job(max_retries=None).effective_max_retries(3) == 3
        assert make_job(max_retries=0).effective_max_retries(3) == 0

    def test_settled_statuses(self):
        assert JobStatus.SENT.value in SETTLED_STATUSES
        assert JobStatus.CANCELLED.value in SETTLED_STATUSES
        assert JobStatus.FAILED.value not in SETTLED_STATUSES
        assert JobStatus.QUEUED.value not in SETTLED_STATUSES


class TestRenderVariables:
    """Tests for the variables exposed to templates."""

    def test_template_data_plus_recipient_name(self):
        job = make_job()

        assert job.render_variables() == {"code": "1234", "recipient_name": "Ann"}

    def test_template_variables_override_payload(self):
        job = make_job(
            payload={"template_data": {"code": "1234", "team": "Ops"}},
            template_variables={"code": "9999"},
        )

        assert job.render_variables() == {"code": "9999", "team": "Ops", "recipient_name": "Ann"}

    def test_explicit_recipient_name_not_replaced(self):
        job = make_job(payload={"template_data": {"recipient_name": "Dr. Ann"}})

        assert job.render_variables()["recipient_name"] == "Dr. Ann"

    def test_insertion_order_preserved(self):
        job = make_job(
            payload={"template_data": {"inviter_name": "Bo", "workspace_name": "Acme"}},
        )

        assert list(job.render_variables()) == ["inviter_name", "workspace_name", "recipient_name"]

    def test_values_stringified_and_none_dropped(self):
        job = make_job(payload={"template_data": {"count": 3, "flag": True, "gone": None}})

        variables = job.render_variables()

        assert variables["count"] == "3"
        assert variables["flag"] == "True"
        assert "gone" not in variables

    def test_non_dict_template_data_ignored(self):
        job = make_job(payload={"template_data": ["not", "a", "dict"]}, recipient_name=None)

        assert job.render_variables() == {}


class TestRecipientAddress:
    """Tests for per-channel recipient resolution."""

    def test_email_prefers_recipient_data(self):
        job = make_job(recipient_contact="other@acme.io")

        assert job.recipient_address(ChannelCode.EMAIL) == "ann@acme.io"

    def test_email_falls_back_to_contact(self):
        job = make_job(payload={}, recipient_contact="other@acme.io")

        assert job.recipient_address(ChannelCode.EMAIL) == "other@acme.io"

    def test_sms_uses_mobile_then_phone(self):
        job = make_job(
            channel_code="sms",
            payload={"recipient_data": {"phone": "9876543210"}},
            recipient_contact=None,
        )

        assert job.recipient_address() == "9876543210"

    def test_inapp_uses_user_id(self):
        job = make_job(
            channel_code="inapp",
            payload={"recipient_data": {"user_id": "user-7"}},
            recipient_id="user-8",
        )

        assert job.recipient_address() == "user-7"

    def test_blank_values_skipped(self):
        job = make_job(payload={"recipient_data": {"email": "  "}}, recipient_contact=None)

        assert job.recipient_address(ChannelCode.EMAIL) is None


class TestTemplateAndQueueEntry:
    """Tests for Template and QueueEntry helpers."""

    def test_is_system(self):
        assert make_template().is_system
        assert not make_template(tenant_id="tenant-a").is_system

    def test_queue_entry_job_id(self):
        entry = QueueEntry(lease_id=1, enqueued_at=T0, visible_at=T0, payload={"jtd_id": "jtd-9"})
        legacy = QueueEntry(lease_id=2, enqueued_at=T0, visible_at=T0, payload={"job_id": 42})
        empty = QueueEntry(lease_id=3, enqueued_at=T0, visible_at=T0)

        assert entry.job_id == "jtd-9"
        assert legacy.job_id == "42"
        assert empty.job_id is None


class TestDeliveryOutcome:
    """Tests for DeliveryOutcome constructors."""

    def test_sent(self):
        outcome = DeliveryOutcome.sent("req-1", {"type": "success"})

        assert outcome.success
        assert outcome.provider_message_id == "req-1"
        assert outcome.error is None

    def test_failed(self):
        outcome = DeliveryOutcome.failed("provider down")

        assert not outcome.success
        assert outcome.error == "provider down"

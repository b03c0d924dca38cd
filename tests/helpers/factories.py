"""Builders for jobs, templates and provider responses used across tests."""

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from unittest.mock import Mock

from notify_worker.domain.models import Job, Template
from notify_worker.persistence import JobRepository, TemplateRepository, get_session

T0 = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


def make_job(**overrides: Any) -> Job:
    """Email job for tenant-a with sensible defaults."""
    fields = {
        "id": "jtd-1",
        "tenant_id": "tenant-a",
        "source_type_code": "user_invitation",
        "channel_code": "email",
        "recipient_name": "Ann",
        "recipient_contact": "ann@acme.io",
        "payload": {
            "recipient_data": {"email": "ann@acme.io"},
            "template_data": {"code": "1234"},
        },
        "status_code": "queued",
        "max_retries": 3,
    }
    fields.update(overrides)
    return Job(**fields)


def make_template(**overrides: Any) -> Template:
    fields = {
        "template_key": "user_invitation_email",
        "tenant_id": None,
        "source_type_code": "user_invitation",
        "channel_code": "email",
        "subject": "Welcome {{recipient_name}}",
        "content": "Hello {{recipient_name}}, your code is {{code}}",
        "variables": ["recipient_name", "code"],
    }
    fields.update(overrides)
    return Template(**fields)


def insert_job(job: Optional[Job] = None, **overrides: Any) -> Job:
    job = job or make_job(**overrides)
    with get_session() as session:
        return JobRepository(session).add(job)


def insert_template(template: Optional[Template] = None, **overrides: Any) -> Template:
    template = template or make_template(**overrides)
    with get_session() as session:
        return TemplateRepository(session).add(template)


def load_job(job_id: str) -> Optional[Job]:
    with get_session() as session:
        return JobRepository(session).get(job_id)


def fake_response(status_code: int = 200, body: Any = None, text: Optional[str] = None) -> Mock:
    """Mock requests.Response. A None body with text makes json() fail."""
    response = Mock()
    response.status_code = status_code
    if body is not None:
        response.text = json.dumps(body)
        response.json.return_value = body
    else:
        response.text = text or ""
        response.json.side_effect = ValueError("No JSON object could be decoded")
    return response

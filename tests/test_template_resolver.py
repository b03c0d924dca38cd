"""Unit tests for template resolution."""

import pytest

from notify_worker.persistence import close_database, init_database
from notify_worker.templates import TemplateResolver
from tests.helpers import insert_template


@pytest.fixture
def test_database(tmp_path):
    init_database(f"sqlite:///{tmp_path / 'templates.db'}")
    yield
    close_database()


@pytest.fixture
def resolver(test_database):
    return TemplateResolver()


class TestTemplateResolver:
    """Test suite for TemplateResolver."""

    def test_tenant_template_shadows_system_template(self, resolver):
        insert_template(template_key="system", tenant_id=None)
        insert_template(template_key="tenant", tenant_id="tenant-a")

        template = resolver.resolve("user_invitation", "email", "tenant-a")

        assert template.template_key == "tenant"
        assert not template.is_system

    def test_falls_back_to_system_template(self, resolver):
        insert_template(template_key="system", tenant_id=None)
        insert_template(template_key="other-tenant", tenant_id="tenant-b")

        template = resolver.resolve("user_invitation", "email", "tenant-a")

        assert template.template_key == "system"
        assert template.is_system

    def test_missing_template_returns_none(self, resolver):
        insert_template(channel_code="sms")

        assert resolver.resolve("user_invitation", "email", "tenant-a") is None

    def test_inactive_templates_ignored(self, resolver):
        insert_template(template_key="tenant-old", tenant_id="tenant-a", is_active=False)
        insert_template(template_key="system", tenant_id=None)

        assert resolver.resolve("user_invitation", "email", "tenant-a").template_key == "system"

    def test_no_tenant_resolves_system_only(self, resolver):
        insert_template(template_key="tenant", tenant_id="tenant-a")

        assert resolver.resolve("user_invitation", "email", None) is None

    def test_event_type_must_match(self, resolver):
        insert_template(source_type_code="password_reset")

        assert resolver.resolve("user_invitation", "email", "tenant-a") is None

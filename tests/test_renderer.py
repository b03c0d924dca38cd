"""Unit tests for template rendering."""

import pytest

from notify_worker.templates import find_placeholders, render, render_template
from tests.helpers import make_template


class TestRender:
    """Tests for the render() substitution function."""

    def test_unknown_placeholder_left_verbatim(self):
        assert (
            render("Hello {{name}}, your code is {{code}}", {"name": "Ann"})
            == "Hello Ann, your code is {{code}}"
        )

    def test_template_without_placeholders_unchanged(self):
        text = "Plain text with {single} braces and }} stray {{ marks"
        assert render(text, {"single": "x"}) == text

    def test_rendering_is_repeatable(self):
        template = "{{a}}-{{b}}-{{a}}"
        variables = {"a": "1", "b": "2"}

        first = render(template, variables)
        second = render(template, variables)

        assert first == second == "1-2-1"

    def test_substitution_is_not_recursive(self):
        assert render("{{a}}", {"a": "{{b}}", "b": "boom"}) == "{{b}}"

    @pytest.mark.parametrize("template", ["{{ name }}", "{{na-me}}", "{name}"])
    def test_non_identifier_placeholders_ignored(self, template):
        assert render(template, {"name": "Ann", "na-me": "Ann"}) == template

    def test_empty_template(self):
        assert render("", {"a": "1"}) == ""

    def test_find_placeholders_in_first_appearance_order(self):
        assert find_placeholders("{{b}} {{a}} {{b}}") == ["b", "a"]


class TestRenderTemplate:
    """Tests for render_template() over a Template."""

    def test_renders_all_parts(self):
        template = make_template(
            subject="Hi {{recipient_name}}",
            content="Code {{code}}",
            content_html="<b>{{code}}</b>",
            provider_template_id="tpl-1",
        )

        rendered = render_template(template, {"recipient_name": "Ann", "code": "42"})

        assert rendered.subject == "Hi Ann"
        assert rendered.body == "Code 42"
        assert rendered.body_html == "<b>42</b>"
        assert rendered.provider_template_id == "tpl-1"
        assert rendered.unresolved == []

    def test_optional_parts_stay_none(self):
        rendered = render_template(make_template(subject=None, content_html=None), {})

        assert rendered.subject is None
        assert rendered.body_html is None

    def test_variables_follow_declared_order(self):
        template = make_template(variables=["second", "first"])

        rendered = render_template(template, {"extra": "x", "first": "1", "second": "2"})

        assert list(rendered.variables) == ["second", "first", "extra"]

    def test_unresolved_placeholders_reported(self):
        rendered = render_template(make_template(), {"recipient_name": "Ann"})

        assert rendered.unresolved == ["code"]

"""Placeholder substitution for notification templates.

Placeholders have the form ``{{identifier}}`` where identifier is a run of
word characters. Substitution is a single pass: values that themselves
contain placeholders are not expanded again, and placeholders without a
value are left in place so partial renders stay visible.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from notify_worker.domain.models import Template

PLACEHOLDER_PATTERN = re.compile(r"\{\{(\w+)\}\}")


def render(template: str, variables: Mapping[str, str]) -> str:
    """Substitute every known placeholder in template.

    Example:
        >>> render("Hello {{name}}, your code is {{code}}", {"name": "Ann"})
        'Hello Ann, your code is {{code}}'
    """
    if not template:
        return template

    def _substitute(match: "re.Match[str]") -> str:
        key = match.group(1)
        if key in variables:
            return str(variables[key])
        return match.group(0)

    return PLACEHOLDER_PATTERN.sub(_substitute, template)


def find_placeholders(template: Optional[str]) -> list:
    """Placeholder names in order of first appearance."""
    seen: Dict[str, None] = {}
    for name in PLACEHOLDER_PATTERN.findall(template or ""):
        seen.setdefault(name, None)
    return list(seen)


@dataclass(frozen=True)
class RenderedContent:
    """A template rendered against one job's variables."""

    subject: Optional[str]
    body: str
    body_html: Optional[str]
    provider_template_id: Optional[str]
    variables: Dict[str, str] = field(default_factory=dict)

    @property
    def unresolved(self) -> list:
        """Placeholders left in the output for lack of a value."""
        names = []
        for text in (self.subject, self.body, self.body_html):
            for name in find_placeholders(text):
                if name not in names:
                    names.append(name)
        return names


def render_template(template: Template, variables: Mapping[str, str]) -> RenderedContent:
    """Render subject, plain body and rich body of a template.

    The returned variables are ordered by the template's declared variables,
    followed by any remaining ones in their original order. Channels that map
    variables positionally depend on this order.
    """
    ordered: Dict[str, str] = {}
    for name in template.variables:
        if name in variables:
            ordered[name] = variables[name]
    for name, value in variables.items():
        ordered.setdefault(name, value)

    return RenderedContent(
        subject=render(template.subject, ordered) if template.subject else None,
        body=render(template.content or "", ordered),
        body_html=render(template.content_html, ordered) if template.content_html else None,
        provider_template_id=template.provider_template_id,
        variables=ordered,
    )

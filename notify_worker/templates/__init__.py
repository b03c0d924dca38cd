"""Template resolution and ``{{variable}}`` rendering."""

from .renderer import (
    PLACEHOLDER_PATTERN,
    RenderedContent,
    find_placeholders,
    render,
    render_template,
)
from .resolver import TemplateResolver

__all__ = [
    "PLACEHOLDER_PATTERN",
    "RenderedContent",
    "TemplateResolver",
    "find_placeholders",
    "render",
    "render_template",
]

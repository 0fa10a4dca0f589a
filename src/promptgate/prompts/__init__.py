"""Prompt template versioning and rendering."""

from promptgate.prompts.defaults import DEFAULT_TEMPLATES, TemplateSpec
from promptgate.prompts.store import TemplateStore, placeholders, render_template

__all__ = [
    "DEFAULT_TEMPLATES",
    "TemplateSpec",
    "TemplateStore",
    "placeholders",
    "render_template",
]

"""Versioned prompt templates with placeholder rendering."""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Iterable, Mapping
from typing import Any

from promptgate.prompts.defaults import DEFAULT_TEMPLATES, TemplateSpec
from promptgate.store import PipelineRepository, Template, TemplateNotFoundError

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"\{\{(\w+)\}\}")


def _format_value(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


def render_template(body: str, parameters: Mapping[str, Any]) -> str:
    """Substitute every {{key}} in `body`.

    Keys with no value (missing or None) are left as the literal placeholder.
    """

    def substitute(match: re.Match[str]) -> str:
        value = parameters.get(match.group(1))
        if value is None:
            return match.group(0)
        return _format_value(value)

    return PLACEHOLDER_RE.sub(substitute, body)


def placeholders(body: str) -> list[str]:
    """Return the distinct placeholder keys in `body`, in order of appearance."""
    return list(dict.fromkeys(PLACEHOLDER_RE.findall(body)))


class TemplateStore:
    """Owns template versions; exactly one version per name is active."""

    def __init__(self, repo: PipelineRepository) -> None:
        self.repo = repo
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, name: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(name, threading.Lock())

    def create_version(
        self,
        name: str,
        task: str,
        body: str,
        params: Mapping[str, Any] | None = None,
    ) -> Template:
        """Create and activate the next version of `name`."""
        with self._lock_for(name):
            template = self.repo.create_template(name, task, body, dict(params or {}))
        logger.info("Created template %s (task=%s)", template.ref, task)
        return template

    def activate(self, template_id: str) -> Template:
        """Promote or roll back to a specific version."""
        target = self.repo.get_template(template_id)
        if target is None:
            raise TemplateNotFoundError("id", template_id)
        with self._lock_for(target.name):
            template = self.repo.activate_template(template_id)
        logger.info("Activated template %s", template.ref)
        return template

    def get(self, template_id: str) -> Template:
        template = self.repo.get_template(template_id)
        if template is None:
            raise TemplateNotFoundError("id", template_id)
        return template

    def get_active(self, task: str) -> Template:
        """Get the active template for a task, raising if none exists."""
        template = self.repo.get_active_template(task)
        if template is None:
            raise TemplateNotFoundError("task", task)
        return template

    def find_active(self, task: str) -> Template | None:
        return self.repo.get_active_template(task)

    def list_active(self) -> list[Template]:
        return self.repo.get_active_templates()

    def versions(self, name: str) -> list[Template]:
        return self.repo.get_template_versions(name)

    def names(self) -> list[str]:
        return self.repo.get_template_names()

    @staticmethod
    def render(template: Template, params: Mapping[str, Any] | None = None) -> str:
        """Render with default parameters overlaid by call-time `params`."""
        merged = {**template.default_parameters, **(params or {})}
        return render_template(template.body, merged)

    def seed_defaults(
        self, specs: Iterable[TemplateSpec] = DEFAULT_TEMPLATES
    ) -> list[Template]:
        """Create bundled templates whose name has no version yet."""
        existing = set(self.names())
        created: list[Template] = []
        for spec in specs:
            if spec.name in existing:
                logger.debug("Template %s already exists, skipping", spec.name)
                continue
            created.append(
                self.create_version(spec.name, spec.task, spec.body, spec.parameters)
            )
        return created

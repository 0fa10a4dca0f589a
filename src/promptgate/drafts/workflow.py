"""Draft generation, review state machine and publication."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import cast

from promptgate.drafts.parsing import DraftFields
from promptgate.inference import (
    InferenceClient,
    InferenceError,
    MalformedOutputError,
    generate_with_fallback,
)
from promptgate.prompts import TemplateStore, render_template
from promptgate.prompts.defaults import REPORT_DRAFT_BODY, REPORT_DRAFT_TASK
from promptgate.store import (
    DraftContent,
    PipelineRepository,
    Report,
    ReportDraft,
    ReportIdea,
)
from promptgate.store.models import DRAFT_STATUSES, TERMINAL_STATUSES, DraftStatus

logger = logging.getLogger(__name__)

# Forward-only review edges; published is reachable only through publish().
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "draft": frozenset({"review"}),
    "review": frozenset({"approved", "rejected"}),
}


class InvalidTransitionError(Exception):
    """Raised when a requested status change is not a permitted edge."""

    def __init__(self, draft_id: str, current: str, requested: str) -> None:
        self.draft_id = draft_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Draft {draft_id} cannot move from '{current}' to '{requested}'"
        )


class PreconditionFailedError(Exception):
    """Raised when publish is requested on a draft that is not approved."""

    def __init__(self, draft_id: str, status: str, required: str = "approved") -> None:
        self.draft_id = draft_id
        self.status = status
        self.required = required
        super().__init__(
            f"Draft {draft_id} is '{status}'; publishing requires '{required}'"
        )


def is_allowed_transition(current: str, requested: str) -> bool:
    if current in TERMINAL_STATUSES:
        return False
    return requested in ALLOWED_TRANSITIONS.get(current, frozenset())


class DraftWorkflow:
    """Expands report ideas into drafts and moves drafts through review."""

    def __init__(
        self,
        repo: PipelineRepository,
        client: InferenceClient,
        models: Sequence[str],
        store: TemplateStore,
        timeout: float | None = None,
    ) -> None:
        self.repo = repo
        self.client = client
        self.models = tuple(models)
        self.store = store
        self.timeout = timeout

    # Generation

    def build_prompt(self, idea: ReportIdea) -> str:
        """Render the active report-draft template, or the bundled one."""
        params = idea.to_dict()
        template = self.store.find_active(REPORT_DRAFT_TASK)
        if template is not None:
            return self.store.render(template, params)
        return render_template(REPORT_DRAFT_BODY, params)

    def expand_idea(self, idea: ReportIdea) -> DraftContent:
        """Ask the model for a full draft; omitted fields fall back per field.

        Raises:
            InferenceError: If every model fails or the output is not an object.
        """
        model, output = generate_with_fallback(
            self.client,
            self.models,
            self.build_prompt(idea),
            "structured",
            self.timeout,
        )
        if not isinstance(output, dict):
            raise MalformedOutputError(model, "expected a JSON object")
        return DraftFields.from_output(output).resolve(idea)

    def generate_from_evaluation(self, evaluation_id: str) -> list[ReportDraft]:
        """Create one system draft per report idea of an evaluation.

        A failing idea is logged and skipped.
        """
        evaluation = self.repo.require_evaluation_report(evaluation_id)
        ideas = evaluation.report_ideas
        if not ideas:
            logger.info("Evaluation %s has no report ideas", evaluation_id)
            return []

        logger.info("Generating %d report drafts for %s", len(ideas), evaluation_id)
        drafts: list[ReportDraft] = []
        for idea in ideas:
            try:
                content = self.expand_idea(idea)
            except InferenceError:
                logger.warning(
                    "Failed to generate draft for idea '%s'", idea.title, exc_info=True
                )
                continue
            draft = self.repo.create_draft(content, evaluation_id, created_by="system")
            logger.info("Report draft saved with ID: %s", draft.id)
            drafts.append(draft)
        return drafts

    def create_draft(
        self, content: DraftContent, evaluation_id: str | None = None
    ) -> ReportDraft:
        """Create a human-authored draft."""
        if evaluation_id is not None:
            self.repo.require_evaluation_report(evaluation_id)
        return self.repo.create_draft(content, evaluation_id, created_by="human")

    # Review

    def transition(
        self,
        draft_id: str,
        new_status: str,
        comment: str | None = None,
        reviewer: str | None = None,
    ) -> ReportDraft:
        """Apply a forward review edge.

        Permitted: draft->review, review->approved, review->rejected.
        """
        draft = self.repo.require_draft(draft_id)
        if new_status not in DRAFT_STATUSES or not is_allowed_transition(
            draft.status, new_status
        ):
            raise InvalidTransitionError(draft_id, draft.status, new_status)

        updated = self.repo.update_draft_status(
            draft_id,
            draft.status,
            cast(DraftStatus, new_status),
            reviewer=reviewer,
            comment=comment,
        )
        if not updated:
            # Another writer moved the draft after we read it
            current = self.repo.require_draft(draft_id)
            raise InvalidTransitionError(draft_id, current.status, new_status)

        logger.info("Draft %s moved %s -> %s", draft_id, draft.status, new_status)
        return self.repo.require_draft(draft_id)

    def publish(self, draft_id: str, published_by: str) -> Report:
        """Publish an approved draft as an immutable Report."""
        draft = self.repo.require_draft(draft_id)
        if draft.status != "approved":
            raise PreconditionFailedError(draft_id, draft.status)

        report = self.repo.publish_draft(draft_id, published_by)
        if report is None:
            current = self.repo.require_draft(draft_id)
            raise PreconditionFailedError(draft_id, current.status)

        logger.info("Draft %s published as report %s", draft_id, report.id)
        return report

    # Queries

    def get_draft(self, draft_id: str) -> ReportDraft:
        return self.repo.require_draft(draft_id)

    def list_drafts(self, status: str | None = None) -> list[ReportDraft]:
        return self.repo.get_drafts(status)

    def get_report(self, report_id: str) -> Report:
        return self.repo.require_report(report_id)

    def list_reports(self, limit: int = 20) -> list[Report]:
        return self.repo.get_reports(limit)

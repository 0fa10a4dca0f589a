"""Report idea suggestion from a finished evaluation run."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from promptgate.inference import InferenceClient, InferenceError, generate_with_fallback
from promptgate.prompts import TemplateStore, render_template
from promptgate.prompts.defaults import REPORT_IDEAS_BODY, REPORT_IDEAS_TASK
from promptgate.store import EvaluationReport, ReportIdea

logger = logging.getLogger(__name__)

MAX_IDEAS = 5


def parse_report_ideas(
    data: dict[str, object], limit: int = MAX_IDEAS
) -> list[ReportIdea]:
    """Read `reportIdeas` (or `report_ideas`) from a structured output.

    Entries without a title are dropped.
    """
    raw = data.get("reportIdeas", data.get("report_ideas"))
    if not isinstance(raw, list):
        return []
    ideas: list[ReportIdea] = []
    for item in raw:
        if isinstance(item, dict) and item.get("title"):
            ideas.append(ReportIdea.from_dict(item))
    return ideas[:limit]


class IdeaSuggester:
    """Asks the model for report ideas based on an evaluation report."""

    def __init__(
        self,
        client: InferenceClient,
        models: Sequence[str],
        store: TemplateStore,
        timeout: float | None = None,
        max_ideas: int = MAX_IDEAS,
    ) -> None:
        self.client = client
        self.models = tuple(models)
        self.store = store
        self.timeout = timeout
        self.max_ideas = max_ideas

    def build_prompt(self, report: EvaluationReport) -> str:
        params = {
            "template": str(report.chosen_template or "none"),
            "sample_count": report.aggregate.sample_count,
            "mean_accuracy": f"{report.aggregate.mean_accuracy:.3f}",
            "mean_consistency": f"{report.aggregate.mean_consistency:.3f}",
            "passed": "yes" if report.aggregate.passed else "no",
            "recommendations": "; ".join(report.recommendations) or "none",
            "max_ideas": self.max_ideas,
        }
        template = self.store.find_active(REPORT_IDEAS_TASK)
        if template is not None:
            return self.store.render(template, params)
        return render_template(REPORT_IDEAS_BODY, params)

    def suggest(self, report: EvaluationReport) -> list[ReportIdea]:
        """Return suggested ideas, or [] if the model call fails."""
        try:
            _model, output = generate_with_fallback(
                self.client,
                self.models,
                self.build_prompt(report),
                "structured",
                self.timeout,
            )
        except InferenceError:
            logger.warning("Report idea suggestion failed", exc_info=True)
            return []
        if not isinstance(output, dict):
            return []
        ideas = parse_report_ideas(output, self.max_ideas)
        logger.info("Model suggested %d report ideas", len(ideas))
        return ideas

"""Full evaluation runs: playback every active template, gate, persist."""

from __future__ import annotations

import logging
import secrets
from collections.abc import Sequence
from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from promptgate.evaluation.dataset import ReferenceDatasetManager
from promptgate.evaluation.playback import (
    NoValidSamplesError,
    PlaybackEvaluator,
    PlaybackSummary,
)
from promptgate.evaluation.scoring import (
    ACCURACY_THRESHOLD,
    CONSISTENCY_THRESHOLD,
    passes_thresholds,
)
from promptgate.prompts import TemplateStore
from promptgate.prompts.defaults import GENERATION_TASKS
from promptgate.store import (
    Aggregate,
    CandidateResult,
    EvaluationReport,
    PipelineRepository,
    ReportIdea,
    TemplateNotFoundError,
)

if TYPE_CHECKING:
    from promptgate.evaluation.ideas import IdeaSuggester

logger = logging.getLogger(__name__)


def _percent(value: float) -> str:
    return f"{value * 100:.1f}%"


def threshold_recommendations(summary: PlaybackSummary) -> list[str]:
    """Recommendations for each quality gate `summary` misses."""
    recommendations: list[str] = []
    name = summary.template.name
    if summary.mean_accuracy < ACCURACY_THRESHOLD:
        recommendations.append(
            f"Improve accuracy for {name} (current: {_percent(summary.mean_accuracy)})"
        )
    if summary.mean_consistency < CONSISTENCY_THRESHOLD:
        recommendations.append(
            f"Improve consistency for {name} "
            f"(current: {_percent(summary.mean_consistency)})"
        )
    return recommendations


class EvaluationOrchestrator:
    """Runs playback over every task with an active template."""

    def __init__(
        self,
        repo: PipelineRepository,
        store: TemplateStore,
        evaluator: PlaybackEvaluator,
        datasets: ReferenceDatasetManager,
        playback_limit: int | None = None,
        suggester: IdeaSuggester | None = None,
    ) -> None:
        self.repo = repo
        self.store = store
        self.evaluator = evaluator
        self.datasets = datasets
        self.playback_limit = playback_limit
        self.suggester = suggester

    def active_tasks(self) -> list[str]:
        """Scored tasks with an active template, most recent template first."""
        tasks: list[str] = []
        for template in self.store.list_active():
            if template.task in GENERATION_TASKS:
                continue
            if template.task not in tasks:
                tasks.append(template.task)
        return tasks

    def run_full_evaluation(
        self, report_ideas: Sequence[ReportIdea] = ()
    ) -> EvaluationReport:
        """Evaluate all active templates and persist one new report.

        The best candidate is the first template with strictly greater mean
        accuracy than every template before it. `passed` reflects only that
        candidate.
        """
        timestamp = datetime.now(UTC).isoformat()
        dataset = self.datasets.load(self.playback_limit)
        tasks = self.active_tasks()
        logger.info(
            "Starting evaluation run: %d tasks, %d golden samples",
            len(tasks),
            len(dataset),
        )

        best: PlaybackSummary | None = None
        recommendations: list[str] = []
        candidates: list[CandidateResult] = []

        if not dataset:
            recommendations.append(
                "Golden dataset is empty; build it before evaluating"
            )

        for task in tasks:
            try:
                template = self.store.get_active(task)
            except TemplateNotFoundError as err:
                logger.error("Skipping task %s: %s", task, err)
                recommendations.append(f"Fix evaluation errors for task {task}")
                candidates.append(
                    CandidateResult(task=task, template=None, error=str(err))
                )
                continue

            try:
                summary = self.evaluator.evaluate(template, dataset)
            except NoValidSamplesError as err:
                logger.error("Evaluation failed for %s: %s", template.ref, err)
                recommendations.append(f"Fix evaluation errors for {template.name}")
                candidates.append(
                    CandidateResult(
                        task=task,
                        template=template.ref,
                        error_count=err.error_count,
                        error=str(err),
                    )
                )
                continue

            candidates.append(
                CandidateResult(
                    task=task,
                    template=summary.template,
                    sample_count=summary.sample_count,
                    error_count=len(summary.errors),
                    mean_accuracy=summary.mean_accuracy,
                    mean_consistency=summary.mean_consistency,
                )
            )
            if best is None or summary.mean_accuracy > best.mean_accuracy:
                best = summary
            recommendations.extend(threshold_recommendations(summary))

        if best is None:
            aggregate = Aggregate()
        else:
            aggregate = Aggregate(
                sample_count=best.sample_count,
                mean_accuracy=best.mean_accuracy,
                mean_consistency=best.mean_consistency,
                passed=passes_thresholds(best.mean_accuracy, best.mean_consistency),
            )

        report = EvaluationReport(
            id=secrets.token_hex(4),
            timestamp=timestamp,
            chosen_template=best.template if best else None,
            aggregate=aggregate,
            recommendations=tuple(recommendations),
            candidates=tuple(candidates),
            report_ideas=tuple(report_ideas),
        )
        if self.suggester is not None:
            suggested = self.suggester.suggest(report)
            report = replace(report, report_ideas=(*report.report_ideas, *suggested))

        self.repo.create_evaluation_report(report)
        logger.info(
            "Evaluation run %s finished: chosen=%s passed=%s",
            report.id,
            report.chosen_template or "none",
            report.aggregate.passed,
        )
        return report

    def get_latest_report(self) -> EvaluationReport | None:
        return self.repo.get_latest_evaluation_report()

    @staticmethod
    def passes_quality_gates(report: EvaluationReport) -> bool:
        """Release gate: True iff the chosen candidate met both thresholds."""
        return report.aggregate.passed

"""Run-now and scheduled entry points for evaluation runs."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence
from typing import Literal

from promptgate.evaluation.orchestrator import EvaluationOrchestrator
from promptgate.store import EvaluationReport, ReportIdea

logger = logging.getLogger(__name__)

TriggerKind = Literal["manual", "scheduled"]


def _run(
    orchestrator: EvaluationOrchestrator,
    trigger: TriggerKind,
    report_ideas: Sequence[ReportIdea] = (),
) -> EvaluationReport:
    logger.info("Evaluation triggered (%s)", trigger)
    started = time.monotonic()
    report = orchestrator.run_full_evaluation(report_ideas)
    logger.info(
        "Evaluation (%s) completed in %.1fs: report %s, passed=%s",
        trigger,
        time.monotonic() - started,
        report.id,
        report.aggregate.passed,
    )
    return report


def run_now(
    orchestrator: EvaluationOrchestrator, report_ideas: Sequence[ReportIdea] = ()
) -> EvaluationReport:
    """Run a full evaluation immediately and return the completed report."""
    return _run(orchestrator, "manual", report_ideas)


def run_scheduled(orchestrator: EvaluationOrchestrator) -> EvaluationReport:
    """Scheduled entry point; same effect as run_now."""
    return _run(orchestrator, "scheduled")


class Scheduler:
    """Calls run_scheduled every `interval` seconds until stopped."""

    def __init__(
        self,
        orchestrator: EvaluationOrchestrator,
        interval: float,
        on_report: Callable[[EvaluationReport], None] | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.orchestrator = orchestrator
        self.interval = interval
        self.on_report = on_report
        self._stop = threading.Event()

    def stop(self) -> None:
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def tick(self) -> EvaluationReport | None:
        """Run one scheduled evaluation. A failed run is logged, not raised."""
        try:
            report = run_scheduled(self.orchestrator)
        except Exception:
            logger.exception("Scheduled evaluation failed")
            return None
        if self.on_report is not None:
            self.on_report(report)
        return report

    def run_forever(
        self, run_immediately: bool = False, max_runs: int | None = None
    ) -> int:
        """Block, running evaluations on the interval. Returns the number of runs."""
        logger.info("Evaluation scheduler started (every %.0fs)", self.interval)
        runs = 0
        if run_immediately:
            self.tick()
            runs += 1
        while (max_runs is None or runs < max_runs) and not self._stop.wait(
            self.interval
        ):
            self.tick()
            runs += 1
        logger.info("Evaluation scheduler stopped after %d runs", runs)
        return runs

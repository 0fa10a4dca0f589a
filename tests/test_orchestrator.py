"""Tests for full evaluation runs and triggers."""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from conftest import make_record, scores
from promptgate.evaluation import (
    EvaluationOrchestrator,
    IdeaSuggester,
    PlaybackEvaluator,
    ReferenceDatasetManager,
    Scheduler,
    run_now,
    run_scheduled,
)
from promptgate.inference import ModelUnavailableError, OllamaClient
from promptgate.prompts import TemplateStore
from promptgate.prompts.defaults import REPORT_DRAFT_TASK
from promptgate.store import PipelineRepository, ReportIdea, ScoreTriple

# Expected ratings of every golden sample: hard and fun
EXPECTED = ScoreTriple(9, 5, 9)


def answers(by_marker: dict[str, Any]) -> Any:
    """Responder that picks an answer by the marker word starting the prompt."""

    def responder(model: str, prompt: str) -> Any:
        return by_marker[prompt.split()[0]]

    return responder


@pytest.fixture
def datasets(repo: PipelineRepository) -> ReferenceDatasetManager:
    manager = ReferenceDatasetManager(repo)
    manager.build([make_record(str(i), ratings=EXPECTED) for i in range(3)], 10)
    return manager


def make_orchestrator(
    repo: PipelineRepository,
    store: TemplateStore,
    datasets: ReferenceDatasetManager,
    client: Any,
    **kwargs: Any,
) -> EvaluationOrchestrator:
    return EvaluationOrchestrator(
        repo, store, PlaybackEvaluator(client, "qwen"), datasets, **kwargs
    )


class TestRunFullEvaluation:
    """Tests for EvaluationOrchestrator.run_full_evaluation."""

    def test_pass_reflects_only_best_candidate(
        self,
        repo: PipelineRepository,
        store: TemplateStore,
        datasets: ReferenceDatasetManager,
        fake_client: Any,
    ) -> None:
        store.create_version("precise", "task_a", "PRECISE {{title}}")
        store.create_version("balanced", "task_b", "BALANCED {{title}}")
        client = fake_client(
            answers({"PRECISE": scores(9, 5, 9), "BALANCED": scores(8, 5, 8)})
        )

        report = make_orchestrator(repo, store, datasets, client).run_full_evaluation()

        # precise is exact but implausible (0.5); balanced would pass on its own
        assert report.chosen_template is not None
        assert report.chosen_template.name == "precise"
        assert report.aggregate.mean_accuracy == pytest.approx(1.0)
        assert report.aggregate.mean_consistency == pytest.approx(0.5)
        assert report.aggregate.passed is False
        assert report.recommendations == (
            "Improve consistency for precise (current: 50.0%)",
        )
        assert len(report.candidates) == 2

    def test_passes_when_best_meets_both_gates(
        self,
        repo: PipelineRepository,
        store: TemplateStore,
        datasets: ReferenceDatasetManager,
        fake_client: Any,
    ) -> None:
        store.create_version("balanced", "task_b", "BALANCED {{title}}")
        client = fake_client(answers({"BALANCED": scores(8, 5, 8)}))
        orchestrator = make_orchestrator(repo, store, datasets, client)

        report = orchestrator.run_full_evaluation()

        assert report.aggregate.passed is True
        assert report.aggregate.sample_count == 3
        assert report.recommendations == ()
        assert orchestrator.passes_quality_gates(report) is True

    def test_first_evaluated_wins_ties(
        self,
        repo: PipelineRepository,
        store: TemplateStore,
        datasets: ReferenceDatasetManager,
        fake_client: Any,
    ) -> None:
        store.create_version("older", "task_a", "OLDER {{title}}")
        store.create_version("newer", "task_b", "NEWER {{title}}")
        client = fake_client(
            answers({"OLDER": scores(8, 5, 8), "NEWER": scores(8, 5, 8)})
        )
        orchestrator = make_orchestrator(repo, store, datasets, client)

        assert orchestrator.active_tasks() == ["task_b", "task_a"]
        report = orchestrator.run_full_evaluation()

        assert report.chosen_template is not None
        assert report.chosen_template.name == "newer"

    def test_accuracy_recommendation(
        self,
        repo: PipelineRepository,
        store: TemplateStore,
        datasets: ReferenceDatasetManager,
        fake_client: Any,
    ) -> None:
        store.create_version("sloppy", "task_a", "SLOPPY {{title}}")
        client = fake_client(answers({"SLOPPY": scores(5, 5, 5)}))

        report = make_orchestrator(repo, store, datasets, client).run_full_evaluation()

        assert report.recommendations == (
            "Improve accuracy for sloppy (current: 73.3%)",
        )
        assert report.aggregate.passed is False

    def test_failing_template_does_not_stop_siblings(
        self,
        repo: PipelineRepository,
        store: TemplateStore,
        datasets: ReferenceDatasetManager,
        fake_client: Any,
    ) -> None:
        store.create_version("good", "task_a", "GOOD {{title}}")
        store.create_version("broken", "task_b", "BROKEN {{title}}")
        client = fake_client(
            answers(
                {
                    "GOOD": scores(8, 5, 8),
                    "BROKEN": ModelUnavailableError("qwen", "not pulled"),
                }
            )
        )

        report = make_orchestrator(repo, store, datasets, client).run_full_evaluation()

        assert "Fix evaluation errors for broken" in report.recommendations
        assert report.chosen_template is not None
        assert report.chosen_template.name == "good"
        assert report.aggregate.passed is True
        broken = next(c for c in report.candidates if c.task == "task_b")
        assert broken.error_count == 3
        assert broken.error is not None

    def test_undecodable_reply_does_not_abort_run(
        self,
        repo: PipelineRepository,
        store: TemplateStore,
        datasets: ReferenceDatasetManager,
    ) -> None:
        store.create_version("good", "task_a", "GOOD {{title}}")
        store.create_version("garbled", "task_b", "GARBLED {{title}}")

        def run(cmd: list[str], input: str, **kwargs: Any) -> MagicMock:
            if input.startswith("GARBLED"):
                raise UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")
            return MagicMock(stdout=json.dumps(scores(8, 5, 8)), returncode=0)

        with patch("promptgate.inference.ollama.subprocess.run", side_effect=run):
            report = make_orchestrator(
                repo, store, datasets, OllamaClient()
            ).run_full_evaluation()

        assert report.chosen_template is not None
        assert report.chosen_template.name == "good"
        garbled = next(c for c in report.candidates if c.task == "task_b")
        assert garbled.error_count == 3
        assert repo.get_evaluation_report(report.id) == report

    def test_empty_dataset(
        self,
        repo: PipelineRepository,
        store: TemplateStore,
        fake_client: Any,
    ) -> None:
        store.create_version("good", "task_a", "GOOD {{title}}")
        client = fake_client(answers({"GOOD": scores(8, 5, 8)}))
        orchestrator = make_orchestrator(
            repo, store, ReferenceDatasetManager(repo), client
        )

        report = orchestrator.run_full_evaluation()

        assert report.chosen_template is None
        assert report.aggregate.passed is False
        assert report.aggregate.sample_count == 0
        assert report.recommendations[0].startswith("Golden dataset is empty")
        assert "Fix evaluation errors for good" in report.recommendations

    def test_no_active_templates(
        self,
        repo: PipelineRepository,
        store: TemplateStore,
        datasets: ReferenceDatasetManager,
        fake_client: Any,
    ) -> None:
        client = fake_client(lambda model, prompt: scores(5, 5, 5))
        report = make_orchestrator(repo, store, datasets, client).run_full_evaluation()

        assert report.candidates == ()
        assert report.aggregate.passed is False
        assert client.calls == []

    def test_generation_tasks_not_scored(
        self,
        repo: PipelineRepository,
        store: TemplateStore,
        datasets: ReferenceDatasetManager,
        fake_client: Any,
    ) -> None:
        store.create_version("good", "task_a", "GOOD {{title}}")
        store.create_version("draft-writer", REPORT_DRAFT_TASK, "DRAFT {{title}}")
        store.seed_defaults()
        client = fake_client(lambda model, prompt: scores(8, 5, 8))

        report = make_orchestrator(repo, store, datasets, client).run_full_evaluation()

        assert sorted(c.task for c in report.candidates) == [
            "employer_rating",
            "job_analysis",
            "task_a",
        ]
        assert len(client.calls) == 3 * len(report.candidates)

    def test_playback_limit(
        self,
        repo: PipelineRepository,
        store: TemplateStore,
        datasets: ReferenceDatasetManager,
        fake_client: Any,
    ) -> None:
        store.create_version("good", "task_a", "GOOD {{title}}")
        client = fake_client(answers({"GOOD": scores(8, 5, 8)}))
        orchestrator = make_orchestrator(
            repo, store, datasets, client, playback_limit=1
        )

        assert orchestrator.run_full_evaluation().aggregate.sample_count == 1

    def test_reports_are_append_only(
        self,
        repo: PipelineRepository,
        store: TemplateStore,
        datasets: ReferenceDatasetManager,
        fake_client: Any,
    ) -> None:
        store.create_version("good", "task_a", "GOOD {{title}}")
        client = fake_client(answers({"GOOD": scores(8, 5, 8)}))
        orchestrator = make_orchestrator(repo, store, datasets, client)

        first = orchestrator.run_full_evaluation()
        store.create_version("good", "task_a", "GOOD v2 {{title}}")
        second = orchestrator.run_full_evaluation()

        assert repo.get_evaluation_report(first.id) == first
        latest = orchestrator.get_latest_report()
        assert latest is not None
        assert latest.id == second.id
        assert second.chosen_template is not None
        assert second.chosen_template.version == 2

    def test_explicit_and_suggested_ideas(
        self,
        repo: PipelineRepository,
        store: TemplateStore,
        datasets: ReferenceDatasetManager,
        fake_client: Any,
    ) -> None:
        store.create_version("good", "task_a", "GOOD {{title}}")
        suggested = {
            "reportIdeas": [
                {"title": "Go rates", "estimatedDemand": 9},
                {"description": "missing title is dropped"},
            ]
        }
        client = fake_client(answers({"GOOD": scores(8, 5, 8), "A": suggested}))
        suggester = IdeaSuggester(client, ["qwen"], store)
        orchestrator = make_orchestrator(
            repo, store, datasets, client, suggester=suggester
        )

        report = orchestrator.run_full_evaluation([ReportIdea(title="Manual idea")])

        assert [i.title for i in report.report_ideas] == ["Manual idea", "Go rates"]
        assert report.report_ideas[1].estimated_demand == 9
        stored = repo.get_evaluation_report(report.id)
        assert stored is not None
        assert stored.report_ideas == report.report_ideas

    def test_suggester_failure_yields_no_ideas(
        self,
        repo: PipelineRepository,
        store: TemplateStore,
        datasets: ReferenceDatasetManager,
        fake_client: Any,
    ) -> None:
        store.create_version("good", "task_a", "GOOD {{title}}")
        client = fake_client(
            answers(
                {
                    "GOOD": scores(8, 5, 8),
                    "A": ModelUnavailableError("qwen", "down"),
                }
            )
        )
        suggester = IdeaSuggester(client, ["qwen"], store)
        orchestrator = make_orchestrator(
            repo, store, datasets, client, suggester=suggester
        )

        report = orchestrator.run_full_evaluation()

        assert report.report_ideas == ()
        assert report.aggregate.passed is True


class TestTriggers:
    """Tests for run_now, run_scheduled and Scheduler."""

    @pytest.fixture
    def orchestrator(
        self,
        repo: PipelineRepository,
        store: TemplateStore,
        datasets: ReferenceDatasetManager,
        fake_client: Any,
    ) -> EvaluationOrchestrator:
        store.create_version("good", "task_a", "GOOD {{title}}")
        client = fake_client(answers({"GOOD": scores(8, 5, 8)}))
        return make_orchestrator(repo, store, datasets, client)

    def test_run_now_and_scheduled_persist_reports(
        self, orchestrator: EvaluationOrchestrator, repo: PipelineRepository
    ) -> None:
        first = run_now(orchestrator)
        second = run_scheduled(orchestrator)

        assert first.id != second.id
        assert len(repo.get_evaluation_reports()) == 2

    def test_scheduler_runs_until_max_runs(
        self, orchestrator: EvaluationOrchestrator, repo: PipelineRepository
    ) -> None:
        seen: list[str] = []
        scheduler = Scheduler(orchestrator, 0.01, on_report=lambda r: seen.append(r.id))

        runs = scheduler.run_forever(run_immediately=True, max_runs=2)

        assert runs == 2
        assert len(seen) == 2
        assert len(repo.get_evaluation_reports()) == 2

    def test_stopped_scheduler_does_not_run(
        self, orchestrator: EvaluationOrchestrator
    ) -> None:
        scheduler = Scheduler(orchestrator, 0.01)
        scheduler.stop()

        assert scheduler.stopped is True
        assert scheduler.run_forever() == 0

    def test_tick_logs_failures(self, orchestrator: EvaluationOrchestrator) -> None:
        def explode(*args: Any) -> Any:
            raise RuntimeError("db gone")

        orchestrator.run_full_evaluation = explode  # type: ignore[method-assign]
        assert Scheduler(orchestrator, 1).tick() is None

    def test_interval_must_be_positive(
        self, orchestrator: EvaluationOrchestrator
    ) -> None:
        with pytest.raises(ValueError):
            Scheduler(orchestrator, 0)

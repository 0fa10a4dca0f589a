"""Tests for the CLI."""

from __future__ import annotations

import json
from collections.abc import Iterator
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from conftest import FakeClient, scores
from promptgate import __version__
from promptgate.cli import main
from promptgate.store import PipelineRepository

DRAFT_OUTPUT = {
    "title": "Rust Rates",
    "content": "# Rust Rates",
    "keyInsights": ["Rates rose"],
}


def responder(model: str, prompt: str) -> Any:
    if "report idea" in prompt:
        return DRAFT_OUTPUT
    return scores(8, 5, 8)


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate config and database in tmp_path."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(
        "promptgate.config.loader.get_home_config_path",
        lambda: tmp_path / "home" / "config.yaml",
    )
    monkeypatch.setenv("PROMPTGATE_DB", str(tmp_path / "cli.db"))
    monkeypatch.delenv("PROMPTGATE_MODEL", raising=False)
    monkeypatch.delenv("PROMPTGATE_BACKEND", raising=False)
    return tmp_path


@pytest.fixture
def client(workdir: Path) -> Iterator[FakeClient]:
    fake = FakeClient(responder)
    with patch("promptgate.pipeline.get_client", return_value=fake):
        yield fake


@pytest.fixture
def db(workdir: Path) -> PipelineRepository:
    return PipelineRepository(workdir / "cli.db")


@pytest.fixture
def source_file(workdir: Path) -> Path:
    path = workdir / "jobs.json"
    ratings = {"difficulty": 8, "prospects": 5, "fun": 8}
    path.write_text(
        json.dumps(
            [
                {"id": "1", "title": "ETL", "ratings": ratings},
                {"id": "2", "title": "API", "ratings": ratings},
                {"id": "3", "title": "Unrated"},
            ]
        )
    )
    return path


def invoke(*args: str) -> Any:
    return CliRunner().invoke(main, list(args))


def test_cli_help() -> None:
    """Test that --help exits cleanly."""
    result = invoke("--help")
    assert result.exit_code == 0
    assert "promptgate" in result.output.lower()


def test_cli_version() -> None:
    """Test that --version shows the version."""
    result = invoke("--version")
    assert result.exit_code == 0
    assert __version__ in result.output


class TestTemplateCommands:
    """Tests for the template group."""

    def test_seed_and_list(self, client: FakeClient) -> None:
        result = invoke("template", "seed")
        assert result.exit_code == 0
        assert "job-analysis v1" in result.output

        result = invoke("template", "list")
        assert result.exit_code == 0
        assert "employer-rating" in result.output

        result = invoke("template", "seed")
        assert "already exist" in result.output

    def test_create_show_activate(
        self, client: FakeClient, db: PipelineRepository
    ) -> None:
        for body in ("v1", "v2"):
            result = invoke("template", "create", "greet", "-t", "hello", "-b", body)
            assert result.exit_code == 0
        first = db.get_template_versions("greet")[-1]

        result = invoke("template", "activate", first.id)
        assert result.exit_code == 0
        assert "Activated greet v1" in result.output

        result = invoke("template", "show", "greet")
        assert result.exit_code == 0
        assert "greet v2" in result.output
        assert "greet v1" in result.output

    def test_create_from_file(self, client: FakeClient, workdir: Path) -> None:
        body = workdir / "body.txt"
        body.write_text("Hello {{name}}")

        result = invoke("template", "create", "greet", "-t", "hello", "-f", str(body))
        assert result.exit_code == 0

        result = invoke("template", "render", "hello", "-p", "name=Ada")
        assert result.exit_code == 0
        assert result.output.strip() == "Hello Ada"

    def test_create_requires_one_body(self, client: FakeClient) -> None:
        result = invoke("template", "create", "greet", "-t", "hello")
        assert result.exit_code == 1

    def test_bad_param(self, client: FakeClient) -> None:
        invoke("template", "create", "greet", "-t", "hello", "-b", "Hi {{a}}")
        result = invoke("template", "render", "hello", "-p", "novalue")
        assert result.exit_code != 0

    def test_render_missing_task(self, client: FakeClient) -> None:
        result = invoke("template", "render", "nothing")
        assert result.exit_code == 1
        assert "Template not found" in result.output

    def test_activate_unknown(self, client: FakeClient) -> None:
        assert invoke("template", "activate", "deadbeef").exit_code == 1


class TestDatasetCommands:
    """Tests for the dataset group."""

    def test_build_and_show(self, client: FakeClient, source_file: Path) -> None:
        result = invoke("dataset", "build", str(source_file))
        assert result.exit_code == 0
        assert "2 samples" in result.output

        result = invoke("dataset", "show")
        assert result.exit_code == 0
        assert "golden-1" in result.output

    def test_show_empty(self, client: FakeClient) -> None:
        result = invoke("dataset", "show")
        assert result.exit_code == 0
        assert "empty" in result.output

    def test_build_invalid_source(self, client: FakeClient, workdir: Path) -> None:
        path = workdir / "bad.json"
        path.write_text("{broken")
        assert invoke("dataset", "build", str(path)).exit_code == 1


class TestEvaluateCommands:
    """Tests for playback and evaluate."""

    def test_playback(self, client: FakeClient, source_file: Path) -> None:
        invoke("dataset", "build", str(source_file))
        invoke("template", "create", "rate", "-t", "rating", "-b", "Rate {{title}}")

        result = invoke("playback", "--task", "rating")
        assert result.exit_code == 0
        assert "2 samples" in result.output

    def test_playback_missing_task(self, client: FakeClient) -> None:
        assert invoke("playback", "--task", "nothing").exit_code == 1

    def test_run_passes(self, client: FakeClient, source_file: Path) -> None:
        invoke("dataset", "build", str(source_file))
        invoke("template", "create", "rate", "-t", "rating", "-b", "Rate {{title}}")

        result = invoke("evaluate", "run")
        assert result.exit_code == 0
        assert "Quality gates passed" in result.output

    def test_run_exits_1_on_gate_failure(
        self, client: FakeClient, source_file: Path
    ) -> None:
        invoke("dataset", "build", str(source_file))
        invoke("template", "create", "rate", "-t", "rating", "-b", "Rate {{title}}")
        client.responder = lambda model, prompt: scores(1, 1, 1)

        result = invoke("evaluate", "run")
        assert result.exit_code == 1
        assert "Quality gates failed" in result.output
        assert "Improve accuracy for rate" in result.output

    def test_run_without_dataset_fails(self, client: FakeClient) -> None:
        invoke("template", "create", "rate", "-t", "rating", "-b", "Rate {{title}}")
        result = invoke("evaluate", "run")
        assert result.exit_code == 1
        assert "Golden dataset is empty" in result.output

    def test_latest(self, client: FakeClient, source_file: Path) -> None:
        result = invoke("evaluate", "latest")
        assert result.exit_code == 0
        assert "No evaluation reports yet" in result.output

        invoke("dataset", "build", str(source_file))
        invoke("template", "create", "rate", "-t", "rating", "-b", "Rate {{title}}")
        invoke("evaluate", "run")

        result = invoke("evaluate", "latest")
        assert result.exit_code == 0
        assert "rate v1" in result.output

    def test_schedule_max_runs(
        self, client: FakeClient, source_file: Path, db: PipelineRepository
    ) -> None:
        invoke("dataset", "build", str(source_file))
        invoke("template", "create", "rate", "-t", "rating", "-b", "Rate {{title}}")

        result = invoke("evaluate", "schedule", "--now", "--max-runs", "1")
        assert result.exit_code == 0
        assert len(db.get_evaluation_reports()) == 1


class TestDraftCommands:
    """Tests for drafts and reports."""

    def test_full_publication_flow(
        self, client: FakeClient, source_file: Path, db: PipelineRepository
    ) -> None:
        invoke("dataset", "build", str(source_file))
        invoke("template", "create", "rate", "-t", "rating", "-b", "Rate {{title}}")
        assert invoke("evaluate", "run", "--idea", "Rust rates").exit_code == 0

        result = invoke("drafts", "generate")
        assert result.exit_code == 0
        assert "Generated 1 drafts" in result.output
        draft = db.get_drafts()[0]
        assert draft.content.title == "Rust Rates"

        assert invoke("drafts", "transition", draft.id, "review").exit_code == 0
        result = invoke(
            "drafts", "transition", draft.id, "approved", "-r", "dana", "-c", "ok"
        )
        assert result.exit_code == 0

        result = invoke("drafts", "publish", draft.id, "--by", "editor")
        assert result.exit_code == 0
        report = db.get_report_by_draft(draft.id)
        assert report is not None

        result = invoke("reports", "list")
        assert "Rust Rates" in result.output
        result = invoke("reports", "show", report.id)
        assert result.exit_code == 0
        assert "Rates rose" in result.output

        assert invoke("drafts", "publish", draft.id, "--by", "editor").exit_code == 1

    def test_invalid_transition_exits_1(
        self, client: FakeClient, source_file: Path, db: PipelineRepository
    ) -> None:
        invoke("dataset", "build", str(source_file))
        invoke("template", "create", "rate", "-t", "rating", "-b", "Rate {{title}}")
        invoke("evaluate", "run", "--idea", "Rust rates")
        invoke("drafts", "generate")
        draft = db.get_drafts()[0]

        result = invoke("drafts", "transition", draft.id, "approved")
        assert result.exit_code == 1
        assert "cannot move" in result.output

        result = invoke("drafts", "list", "--status", "draft")
        assert draft.id in result.output

    def test_generate_without_evaluations(self, client: FakeClient) -> None:
        assert invoke("drafts", "generate").exit_code == 1

    def test_show_missing_draft(self, client: FakeClient) -> None:
        result = invoke("drafts", "show", "missing")
        assert result.exit_code == 1
        assert "Draft not found" in result.output

    def test_reports_empty(self, client: FakeClient) -> None:
        result = invoke("reports", "list")
        assert result.exit_code == 0
        assert "No published reports" in result.output

"""Shared fixtures: temporary repository and a scriptable inference client."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from promptgate.prompts import TemplateStore
from promptgate.store import PipelineRepository, SampleInput, ScoreTriple, SourceRecord

Responder = Callable[[str, str], "str | dict[str, Any] | Exception"]


class FakeClient:
    """Inference client whose answers come from a responder function.

    The responder receives (model, prompt) and returns the output, or an
    exception instance to raise.
    """

    def __init__(self, responder: Responder) -> None:
        self.responder = responder
        self.calls: list[tuple[str, str, str, float | None]] = []

    def generate(
        self,
        model: str,
        prompt: str,
        shape: str = "freeform",
        timeout: float | None = None,
    ) -> str | dict[str, Any]:
        self.calls.append((model, prompt, shape, timeout))
        result = self.responder(model, prompt)
        if isinstance(result, Exception):
            raise result
        return result


def scores(difficulty: float, prospects: float, fun: float) -> dict[str, float]:
    return {"difficulty": difficulty, "prospects": prospects, "fun": fun}


def make_record(
    record_id: str,
    title: str = "Build a REST API",
    ratings: ScoreTriple | None = ScoreTriple(5, 5, 5),
) -> SourceRecord:
    return SourceRecord(
        id=record_id,
        input=SampleInput(
            title=title,
            description=f"Description of {title}",
            skills=("python", "sql"),
        ),
        ratings=ratings,
    )


@pytest.fixture
def temp_db(tmp_path: Path) -> Path:
    """Create a temporary database path."""
    return tmp_path / "promptgate.db"


@pytest.fixture
def repo(temp_db: Path) -> PipelineRepository:
    """Create a repository with temporary database."""
    return PipelineRepository(db_path=temp_db)


@pytest.fixture
def store(repo: PipelineRepository) -> TemplateStore:
    return TemplateStore(repo)


@pytest.fixture
def fake_client() -> type[FakeClient]:
    return FakeClient

"""Pipeline data models."""

from __future__ import annotations

import json
from dataclasses import dataclass
from sqlite3 import Row
from typing import Any, Literal, Self

DIMENSIONS: tuple[str, ...] = ("difficulty", "prospects", "fun")

DraftStatus = Literal["draft", "review", "approved", "published", "rejected"]
DRAFT_STATUSES: tuple[str, ...] = (
    "draft",
    "review",
    "approved",
    "published",
    "rejected",
)
TERMINAL_STATUSES: frozenset[str] = frozenset({"published", "rejected"})

CreatedBy = Literal["system", "human"]


@dataclass(frozen=True)
class ScoreTriple:
    """Ratings on the 0..10 scale for the three scored dimensions."""

    difficulty: float
    prospects: float
    fun: float

    def to_dict(self) -> dict[str, float]:
        return {
            "difficulty": self.difficulty,
            "prospects": self.prospects,
            "fun": self.fun,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Build from a mapping; raises KeyError/ValueError on bad input."""
        return cls(
            difficulty=float(data["difficulty"]),
            prospects=float(data["prospects"]),
            fun=float(data["fun"]),
        )


@dataclass(frozen=True)
class SampleInput:
    """Structured input record replayed through a template."""

    title: str
    description: str
    skills: tuple[str, ...] = ()

    def to_params(self) -> dict[str, Any]:
        """Template parameters for rendering."""
        return {
            "title": self.title,
            "description": self.description,
            "skills": list(self.skills),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "skills": list(self.skills),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        skills_raw = data.get("skills") or ()
        if isinstance(skills_raw, str):
            skills_raw = [s.strip() for s in skills_raw.split(",") if s.strip()]
        return cls(
            title=str(data.get("title", "")),
            description=str(data.get("description", "")),
            skills=tuple(str(s) for s in skills_raw),
        )


@dataclass(frozen=True)
class Template:
    """One immutable revision of an instruction template."""

    id: str  # 8 hex chars
    name: str  # logical identity, e.g. "job-analysis"
    version: int  # monotonic per name
    task: str  # category key, e.g. "job_analysis"
    body: str  # text with {{key}} placeholders
    default_parameters: dict[str, Any]
    active: bool
    created_at: str  # ISO8601 UTC

    @property
    def ref(self) -> TemplateRef:
        return TemplateRef(name=self.name, version=self.version)

    @classmethod
    def from_row(cls, row: Row) -> Self:
        """Create a Template from a database row.

        default_parameters is stored as a JSON object.
        """
        params_raw = row["default_parameters"]
        return cls(
            id=row["id"],
            name=row["name"],
            version=row["version"],
            task=row["task"],
            body=row["body"],
            default_parameters=json.loads(params_raw) if params_raw else {},
            active=bool(row["active"]),
            created_at=row["created_at"],
        )


@dataclass(frozen=True)
class TemplateRef:
    """Name and version identifying a template revision."""

    name: str
    version: int

    def __str__(self) -> str:
        return f"{self.name} v{self.version}"

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "version": self.version}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(name=str(data["name"]), version=int(data["version"]))


@dataclass(frozen=True)
class SourceRecord:
    """A verified record offered to the reference dataset builder."""

    id: str
    input: SampleInput
    ratings: ScoreTriple | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Parse a source record; incomplete ratings become None."""
        ratings: ScoreTriple | None = None
        ratings_raw = data.get("ratings")
        if isinstance(ratings_raw, dict):
            try:
                ratings = ScoreTriple.from_dict(ratings_raw)
            except (KeyError, TypeError, ValueError):
                ratings = None
        return cls(
            id=str(data["id"]),
            input=SampleInput.from_dict(data),
            ratings=ratings,
        )


@dataclass(frozen=True)
class GoldenSample:
    """Immutable labeled sample in the reference dataset."""

    id: str  # "golden-<source id>"
    input: SampleInput
    expected: ScoreTriple
    created_at: str

    @classmethod
    def from_row(cls, row: Row) -> Self:
        return cls(
            id=row["id"],
            input=SampleInput.from_dict(json.loads(row["input"])),
            expected=ScoreTriple.from_dict(json.loads(row["expected"])),
            created_at=row["created_at"],
        )


@dataclass(frozen=True)
class Aggregate:
    """Aggregate scores of the chosen template."""

    sample_count: int = 0
    mean_accuracy: float = 0.0
    mean_consistency: float = 0.0
    passed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "sample_count": self.sample_count,
            "mean_accuracy": self.mean_accuracy,
            "mean_consistency": self.mean_consistency,
            "passed": self.passed,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(
            sample_count=int(data.get("sample_count", 0)),
            mean_accuracy=float(data.get("mean_accuracy", 0.0)),
            mean_consistency=float(data.get("mean_consistency", 0.0)),
            passed=bool(data.get("passed", False)),
        )


@dataclass(frozen=True)
class CandidateResult:
    """Outcome of evaluating one task's active template during a run."""

    task: str
    template: TemplateRef | None
    sample_count: int = 0
    error_count: int = 0
    mean_accuracy: float | None = None
    mean_consistency: float | None = None
    error: str | None = None  # set when the template could not be evaluated

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "task": self.task,
            "template": self.template.to_dict() if self.template else None,
            "sample_count": self.sample_count,
            "error_count": self.error_count,
        }
        if self.mean_accuracy is not None:
            result["mean_accuracy"] = self.mean_accuracy
        if self.mean_consistency is not None:
            result["mean_consistency"] = self.mean_consistency
        if self.error is not None:
            result["error"] = self.error
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        template_raw = data.get("template")
        return cls(
            task=str(data["task"]),
            template=TemplateRef.from_dict(template_raw) if template_raw else None,
            sample_count=int(data.get("sample_count", 0)),
            error_count=int(data.get("error_count", 0)),
            mean_accuracy=data.get("mean_accuracy"),
            mean_consistency=data.get("mean_consistency"),
            error=data.get("error"),
        )


@dataclass(frozen=True)
class ReportIdea:
    """A suggested report topic that the draft workflow expands."""

    title: str
    description: str = ""
    category: str = "General"
    estimated_demand: int = 5  # 1..10
    reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "estimated_demand": self.estimated_demand,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Parse an idea; accepts camelCase `estimatedDemand` from model output."""
        demand_raw = data.get("estimated_demand", data.get("estimatedDemand", 5))
        try:
            demand = int(demand_raw)
        except (TypeError, ValueError):
            demand = 5
        return cls(
            title=str(data["title"]),
            description=str(data.get("description") or ""),
            category=str(data.get("category") or "General"),
            estimated_demand=max(1, min(10, demand)),
            reason=str(data.get("reason") or ""),
        )


@dataclass(frozen=True)
class EvaluationReport:
    """Append-only record of one full evaluation run."""

    id: str  # 8 hex chars
    timestamp: str  # ISO8601 UTC
    chosen_template: TemplateRef | None
    aggregate: Aggregate
    recommendations: tuple[str, ...] = ()
    candidates: tuple[CandidateResult, ...] = ()
    report_ideas: tuple[ReportIdea, ...] = ()

    @classmethod
    def from_row(cls, row: Row) -> Self:
        """Create an EvaluationReport from a database row.

        Nested fields are stored as JSON.
        """
        chosen_raw = row["chosen_template"]
        return cls(
            id=row["id"],
            timestamp=row["timestamp"],
            chosen_template=(
                TemplateRef.from_dict(json.loads(chosen_raw)) if chosen_raw else None
            ),
            aggregate=Aggregate.from_dict(json.loads(row["aggregate"])),
            recommendations=tuple(json.loads(row["recommendations"] or "[]")),
            candidates=tuple(
                CandidateResult.from_dict(c)
                for c in json.loads(row["candidates"] or "[]")
            ),
            report_ideas=tuple(
                ReportIdea.from_dict(i) for i in json.loads(row["report_ideas"] or "[]")
            ),
        )


@dataclass(frozen=True)
class DraftContent:
    """Content fields shared by drafts and published reports."""

    title: str
    description: str
    category: str
    audience: str
    insights: tuple[str, ...] = ()
    sources: tuple[str, ...] = ()
    body: str = ""
    estimated_demand: int = 5

    @classmethod
    def from_row(cls, row: Row) -> Self:
        """Read content columns; insights and sources are JSON arrays."""
        return cls(
            title=row["title"],
            description=row["description"],
            category=row["category"],
            audience=row["audience"],
            insights=tuple(json.loads(row["insights"] or "[]")),
            sources=tuple(json.loads(row["sources"] or "[]")),
            body=row["body"],
            estimated_demand=row["estimated_demand"],
        )


@dataclass(frozen=True)
class ReportDraft:
    """AI-generated report draft moving through review."""

    id: str
    content: DraftContent
    status: DraftStatus
    created_by: CreatedBy
    evaluation_id: str | None
    created_at: str

    reviewed_at: str | None = None
    reviewer: str | None = None
    comment: str | None = None
    published_at: str | None = None
    published_by: str | None = None

    @classmethod
    def from_row(cls, row: Row) -> Self:
        return cls(
            id=row["id"],
            content=DraftContent.from_row(row),
            status=row["status"],
            created_by=row["created_by"],
            evaluation_id=row["evaluation_id"],
            created_at=row["created_at"],
            reviewed_at=row["reviewed_at"],
            reviewer=row["reviewer"],
            comment=row["comment"],
            published_at=row["published_at"],
            published_by=row["published_by"],
        )


@dataclass(frozen=True)
class Report:
    """Published, immutable report materialized from an approved draft."""

    id: str
    draft_id: str
    content: DraftContent
    published_by: str
    published_at: str

    @classmethod
    def from_row(cls, row: Row) -> Self:
        return cls(
            id=row["id"],
            draft_id=row["draft_id"],
            content=DraftContent.from_row(row),
            published_by=row["published_by"],
            published_at=row["published_at"],
        )

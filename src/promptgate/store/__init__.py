"""Persistent store for templates, golden samples, reports and drafts."""

from promptgate.store.models import (
    Aggregate,
    CandidateResult,
    DraftContent,
    EvaluationReport,
    GoldenSample,
    Report,
    ReportDraft,
    ReportIdea,
    SampleInput,
    ScoreTriple,
    SourceRecord,
    Template,
    TemplateRef,
)
from promptgate.store.repository import (
    DraftNotFoundError,
    EvaluationReportNotFoundError,
    NotFoundError,
    PipelineRepository,
    ReportNotFoundError,
    TemplateNotFoundError,
)

__all__ = [
    "Aggregate",
    "CandidateResult",
    "DraftContent",
    "DraftNotFoundError",
    "EvaluationReport",
    "EvaluationReportNotFoundError",
    "GoldenSample",
    "NotFoundError",
    "PipelineRepository",
    "Report",
    "ReportDraft",
    "ReportIdea",
    "ReportNotFoundError",
    "SampleInput",
    "ScoreTriple",
    "SourceRecord",
    "Template",
    "TemplateNotFoundError",
    "TemplateRef",
]

"""Typed parsing of model-generated draft content with per-field defaults."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from promptgate.store import DraftContent, ReportIdea

DEFAULT_AUDIENCE = "Freelancers and business decision makers"
DEFAULT_SOURCES: tuple[str, ...] = ("Internal analytics", "Market research")


def _pick(data: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def _text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _text_list(value: Any) -> tuple[str, ...] | None:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return None
    items = tuple(str(v).strip() for v in value if str(v).strip())
    return items or None


def _demand(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        demand = int(round(float(value)))
    except (TypeError, ValueError):
        return None
    return max(1, min(10, demand))


@dataclass(frozen=True)
class DraftFields:
    """Fields read from model output; None means the model omitted the field."""

    title: str | None = None
    description: str | None = None
    category: str | None = None
    audience: str | None = None
    insights: tuple[str, ...] | None = None
    sources: tuple[str, ...] | None = None
    body: str | None = None
    estimated_demand: int | None = None

    @classmethod
    def from_output(cls, data: dict[str, Any]) -> DraftFields:
        """Parse structured output. Wrong-typed values count as omitted."""
        return cls(
            title=_text(data.get("title")),
            description=_text(data.get("description")),
            category=_text(data.get("category")),
            audience=_text(
                _pick(data, "targetAudience", "target_audience", "audience")
            ),
            insights=_text_list(_pick(data, "keyInsights", "key_insights", "insights")),
            sources=_text_list(_pick(data, "dataSources", "data_sources", "sources")),
            body=_text(_pick(data, "content", "body")),
            estimated_demand=_demand(
                _pick(data, "estimatedDemand", "estimated_demand")
            ),
        )

    def resolve(self, idea: ReportIdea) -> DraftContent:
        """Fill omitted fields from the idea, then from fixed defaults."""
        return DraftContent(
            title=self.title if self.title is not None else idea.title,
            description=(
                self.description if self.description is not None else idea.description
            ),
            category=self.category if self.category is not None else idea.category,
            audience=self.audience if self.audience is not None else DEFAULT_AUDIENCE,
            insights=self.insights if self.insights is not None else (),
            sources=self.sources if self.sources is not None else DEFAULT_SOURCES,
            body=self.body if self.body is not None else "",
            estimated_demand=(
                self.estimated_demand
                if self.estimated_demand is not None
                else idea.estimated_demand
            ),
        )

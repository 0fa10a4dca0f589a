"""Prompt regression: golden dataset, playback scoring and evaluation runs."""

from promptgate.evaluation.dataset import (
    DatasetSourceError,
    ReferenceDatasetManager,
    load_source_records,
)
from promptgate.evaluation.ideas import IdeaSuggester, parse_report_ideas
from promptgate.evaluation.orchestrator import (
    EvaluationOrchestrator,
    threshold_recommendations,
)
from promptgate.evaluation.playback import (
    EvaluationResult,
    NoValidSamplesError,
    PlaybackEvaluator,
    PlaybackSummary,
    SampleError,
)
from promptgate.evaluation.scoring import (
    ACCURACY_THRESHOLD,
    CONSISTENCY_THRESHOLD,
    accuracy,
    consistency,
    passes_thresholds,
)
from promptgate.evaluation.trigger import Scheduler, run_now, run_scheduled

__all__ = [
    "ACCURACY_THRESHOLD",
    "CONSISTENCY_THRESHOLD",
    "DatasetSourceError",
    "EvaluationOrchestrator",
    "EvaluationResult",
    "IdeaSuggester",
    "NoValidSamplesError",
    "PlaybackEvaluator",
    "PlaybackSummary",
    "ReferenceDatasetManager",
    "SampleError",
    "Scheduler",
    "accuracy",
    "consistency",
    "load_source_records",
    "parse_report_ideas",
    "passes_thresholds",
    "run_now",
    "run_scheduled",
    "threshold_recommendations",
]

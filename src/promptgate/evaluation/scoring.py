"""Per-sample accuracy and consistency scoring."""

import math
from typing import Any

from promptgate.store.models import DIMENSIONS, ScoreTriple

RATING_SCALE = 10.0

# Quality gates; the consistency buckets below are calibrated against these.
ACCURACY_THRESHOLD = 0.8
CONSISTENCY_THRESHOLD = 0.85

HIGH_DIFFICULTY = 0.7
HIGH_FUN = 0.8
LOW_DIFFICULTY = 0.3
LOW_FUN = 0.5

CONSISTENCY_CONFLICT = 0.5  # hard task rated very enjoyable
CONSISTENCY_MILD_CONFLICT = 0.7  # easy task rated dull
CONSISTENCY_DEFAULT = 0.9


def accuracy(actual: ScoreTriple, expected: ScoreTriple) -> float:
    """1 - mean normalized absolute error over the three dimensions, in [0, 1]."""
    diffs = [
        abs(getattr(actual, dim) - getattr(expected, dim)) / RATING_SCALE
        for dim in DIMENSIONS
    ]
    return max(0.0, min(1.0, 1.0 - sum(diffs) / len(diffs)))


def consistency(scores: ScoreTriple) -> float:
    """Plausibility of an output's own difficulty/fun combination."""
    difficulty = scores.difficulty / RATING_SCALE
    fun = scores.fun / RATING_SCALE

    if difficulty > HIGH_DIFFICULTY and fun > HIGH_FUN:
        return CONSISTENCY_CONFLICT
    if difficulty < LOW_DIFFICULTY and fun < LOW_FUN:
        return CONSISTENCY_MILD_CONFLICT
    return CONSISTENCY_DEFAULT


def passes_thresholds(mean_accuracy: float, mean_consistency: float) -> bool:
    """True iff both quality gates hold."""
    return (
        mean_accuracy >= ACCURACY_THRESHOLD
        and mean_consistency >= CONSISTENCY_THRESHOLD
    )


def parse_scores(data: dict[str, Any]) -> ScoreTriple:
    """Read the three dimensions from a structured model output.

    Values are clamped to the rating scale. Raises ValueError when a
    dimension is missing, not numeric or not finite.
    """
    values: dict[str, float] = {}
    for dim in DIMENSIONS:
        raw = data.get(dim)
        if isinstance(raw, bool) or raw is None:
            raise ValueError(f"missing or invalid '{dim}'")
        try:
            value = float(raw)
        except (TypeError, ValueError) as err:
            raise ValueError(f"non-numeric '{dim}': {raw!r}") from err
        if not math.isfinite(value):
            raise ValueError(f"non-finite '{dim}': {raw!r}")
        values[dim] = max(0.0, min(RATING_SCALE, value))
    return ScoreTriple(**values)

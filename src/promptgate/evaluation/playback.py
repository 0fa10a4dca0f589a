"""Replay a template over the golden dataset and score the outputs."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from promptgate.evaluation.scoring import accuracy, consistency, parse_scores
from promptgate.inference import InferenceClient, InferenceError, MalformedOutputError
from promptgate.prompts import TemplateStore
from promptgate.store import GoldenSample, ScoreTriple, Template, TemplateRef

logger = logging.getLogger(__name__)


class NoValidSamplesError(Exception):
    """Raised when no sample of a playback run produced a usable score."""

    def __init__(self, template: TemplateRef, error_count: int) -> None:
        self.template = template
        self.error_count = error_count
        super().__init__(
            f"No valid samples for {template} ({error_count} sample errors)"
        )


@dataclass(frozen=True)
class EvaluationResult:
    """Score of one golden sample."""

    sample_id: str
    actual: ScoreTriple
    expected: ScoreTriple
    accuracy: float
    consistency: float


@dataclass(frozen=True)
class SampleError:
    """A sample whose inference call failed; excluded from aggregation."""

    sample_id: str
    kind: str  # timeout, malformed_output, model_unavailable
    message: str


@dataclass(frozen=True)
class PlaybackSummary:
    """Aggregate of one playback run."""

    template: TemplateRef
    results: tuple[EvaluationResult, ...]
    errors: tuple[SampleError, ...]
    mean_accuracy: float
    mean_consistency: float

    @property
    def sample_count(self) -> int:
        return len(self.results)


class PlaybackEvaluator:
    """Scores a template against the golden dataset, one sample at a time."""

    def __init__(
        self,
        client: InferenceClient,
        model: str,
        timeout: float | None = None,
    ) -> None:
        self.client = client
        self.model = model
        self.timeout = timeout

    def score_sample(
        self, template: Template, sample: GoldenSample
    ) -> EvaluationResult:
        """Render, call the model and score a single sample.

        Raises:
            InferenceError: If the call fails or the output lacks a dimension.
        """
        prompt = TemplateStore.render(template, sample.input.to_params())
        output = self.client.generate(self.model, prompt, "structured", self.timeout)
        if not isinstance(output, dict):
            raise MalformedOutputError(self.model, "expected a JSON object")
        try:
            actual = parse_scores(output)
        except ValueError as err:
            raise MalformedOutputError(self.model, str(err)) from err

        return EvaluationResult(
            sample_id=sample.id,
            actual=actual,
            expected=sample.expected,
            accuracy=accuracy(actual, sample.expected),
            consistency=consistency(actual),
        )

    def evaluate(
        self, template: Template, dataset: Sequence[GoldenSample]
    ) -> PlaybackSummary:
        """Replay `template` over `dataset`.

        Failed samples are logged and skipped. Raises NoValidSamplesError if
        none succeeded.
        """
        logger.info(
            "Starting playback of %s over %d samples", template.ref, len(dataset)
        )
        results: list[EvaluationResult] = []
        errors: list[SampleError] = []

        for sample in dataset:
            try:
                result = self.score_sample(template, sample)
            except InferenceError as err:
                logger.warning("Sample %s failed (%s): %s", sample.id, err.kind, err)
                errors.append(SampleError(sample.id, err.kind, str(err)))
                continue
            logger.debug(
                "Sample %s: accuracy=%.3f consistency=%.3f",
                sample.id,
                result.accuracy,
                result.consistency,
            )
            results.append(result)

        if not results:
            raise NoValidSamplesError(template.ref, len(errors))

        summary = PlaybackSummary(
            template=template.ref,
            results=tuple(results),
            errors=tuple(errors),
            mean_accuracy=sum(r.accuracy for r in results) / len(results),
            mean_consistency=sum(r.consistency for r in results) / len(results),
        )
        logger.info(
            "Playback of %s finished: %d scored, %d errors, "
            "accuracy=%.3f consistency=%.3f",
            template.ref,
            summary.sample_count,
            len(errors),
            summary.mean_accuracy,
            summary.mean_consistency,
        )
        return summary

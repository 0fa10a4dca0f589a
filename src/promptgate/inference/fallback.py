"""Try a chain of models until one answers."""

import logging
from collections.abc import Sequence
from typing import Any

from promptgate.inference.base import (
    InferenceClient,
    InferenceError,
    OutputShape,
)

logger = logging.getLogger(__name__)


class AllModelsFailedError(InferenceError):
    """Raised when every model in a fallback chain failed."""

    kind = "model_unavailable"

    def __init__(self, models: Sequence[str], errors: Sequence[InferenceError]):
        self.errors = tuple(errors)
        super().__init__(
            ", ".join(models),
            "all models failed: " + "; ".join(str(e) for e in errors),
        )


def generate_with_fallback(
    client: InferenceClient,
    models: Sequence[str],
    prompt: str,
    shape: OutputShape = "freeform",
    timeout: float | None = None,
) -> tuple[str, str | dict[str, Any]]:
    """Call each model in order and return (model, output) of the first success."""
    if not models:
        raise ValueError("At least one model is required")

    errors: list[InferenceError] = []
    for model in models:
        logger.debug("Trying model: %s", model)
        try:
            return model, client.generate(model, prompt, shape, timeout)
        except InferenceError as err:
            logger.warning("Model %s failed: %s", model, err)
            errors.append(err)
    raise AllModelsFailedError(models, errors)

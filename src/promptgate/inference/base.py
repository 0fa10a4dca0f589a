"""Inference client protocol, error taxonomy and output parsing."""

from __future__ import annotations

import json
import re
from typing import Any, Literal, Protocol

OutputShape = Literal["freeform", "structured"]

THINK_BLOCK_RE = re.compile(r"<think>.*?</think>", re.DOTALL)
FENCED_JSON_RE = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)


class InferenceError(Exception):
    """Raised when an inference call fails. Always recoverable by the caller."""

    kind = "inference_error"

    def __init__(self, model: str, message: str) -> None:
        self.model = model
        super().__init__(f"{model}: {message}")


class InferenceTimeoutError(InferenceError):
    kind = "timeout"


class MalformedOutputError(InferenceError):
    kind = "malformed_output"


class ModelUnavailableError(InferenceError):
    kind = "model_unavailable"


class InferenceClient(Protocol):
    """Protocol for calling a language model.

    Structured calls return the parsed JSON object; freeform calls return text.
    """

    def generate(
        self,
        model: str,
        prompt: str,
        shape: OutputShape = "freeform",
        timeout: float | None = None,
    ) -> str | dict[str, Any]: ...


def extract_json(text: str, model: str) -> dict[str, Any]:
    """Pull the JSON object out of raw model output.

    Handles reasoning blocks, fenced code blocks and surrounding prose.
    """
    cleaned = THINK_BLOCK_RE.sub("", text).strip()
    candidates = [cleaned]
    fenced = FENCED_JSON_RE.search(cleaned)
    if fenced:
        candidates.append(fenced.group(1))
    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start != -1 and end > start:
        candidates.append(cleaned[start : end + 1])

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    raise MalformedOutputError(model, "no JSON object found in output")

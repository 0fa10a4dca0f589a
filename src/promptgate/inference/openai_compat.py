"""Inference through any OpenAI-compatible chat completions endpoint."""

from __future__ import annotations

import logging
import os
from typing import Any

import openai

from promptgate.inference.base import (
    InferenceTimeoutError,
    MalformedOutputError,
    ModelUnavailableError,
    OutputShape,
    extract_json,
)

logger = logging.getLogger(__name__)


class OpenAIClient:
    """Chat completions client; point `base_url` at Ollama's /v1 to stay local."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float = 120,
    ) -> None:
        self._base_url = base_url
        self._api_key = api_key
        self.timeout = timeout
        self._client: Any = None

    def _get_client(self) -> Any:
        if self._client is None:
            api_key = self._api_key or os.environ.get("OPENAI_API_KEY")
            if api_key is None and self._base_url:
                # Local OpenAI-compatible servers ignore the key
                api_key = "unused"
            self._client = openai.OpenAI(
                base_url=self._base_url,
                api_key=api_key,
                max_retries=0,
            )
        return self._client

    def generate(
        self,
        model: str,
        prompt: str,
        shape: OutputShape = "freeform",
        timeout: float | None = None,
    ) -> str | dict[str, Any]:
        """Send one user message and return the reply."""
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "timeout": timeout or self.timeout,
        }
        if shape == "structured":
            kwargs["response_format"] = {"type": "json_object"}

        try:
            client = self._get_client()
        except openai.OpenAIError as exc:
            raise ModelUnavailableError(model, str(exc)) from exc

        try:
            response = client.chat.completions.create(**kwargs)
        except openai.APITimeoutError as err:
            raise InferenceTimeoutError(model, "request timed out") from err
        except openai.APIResponseValidationError as err:
            raise MalformedOutputError(model, str(err)) from err
        except openai.APIError as exc:
            raise ModelUnavailableError(model, str(exc)) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise MalformedOutputError(model, "empty completion")
        if shape == "structured":
            return extract_json(content, model)
        return content.strip()

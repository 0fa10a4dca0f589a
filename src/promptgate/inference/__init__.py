"""Language-inference clients."""

from promptgate.config.schema import InferenceConfig
from promptgate.inference.base import (
    InferenceClient,
    InferenceError,
    InferenceTimeoutError,
    MalformedOutputError,
    ModelUnavailableError,
    OutputShape,
    extract_json,
)
from promptgate.inference.fallback import AllModelsFailedError, generate_with_fallback
from promptgate.inference.ollama import OllamaClient, is_ollama_available


def get_client(config: InferenceConfig) -> InferenceClient:
    """Create the inference client for the configured backend."""
    match config.backend:
        case "ollama":
            return OllamaClient(timeout=config.timeout)
        case "openai":
            from promptgate.inference.openai_compat import OpenAIClient

            return OpenAIClient(base_url=config.base_url, timeout=config.timeout)
        case _:
            raise ValueError(f"Unknown inference backend: {config.backend}")


__all__ = [
    "AllModelsFailedError",
    "InferenceClient",
    "InferenceError",
    "InferenceTimeoutError",
    "MalformedOutputError",
    "ModelUnavailableError",
    "OllamaClient",
    "OutputShape",
    "extract_json",
    "generate_with_fallback",
    "get_client",
    "is_ollama_available",
]

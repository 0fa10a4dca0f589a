"""Inference through the local `ollama` CLI."""

import logging
import shutil
import subprocess
from typing import Any

from promptgate.inference.base import (
    InferenceTimeoutError,
    MalformedOutputError,
    ModelUnavailableError,
    OutputShape,
    extract_json,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120


def is_ollama_available(binary: str = "ollama") -> bool:
    """Check if the ollama CLI is on PATH."""
    return shutil.which(binary) is not None


class OllamaClient:
    """Runs `ollama run <model>` with the prompt on stdin."""

    def __init__(self, binary: str = "ollama", timeout: float = DEFAULT_TIMEOUT):
        self.binary = binary
        self.timeout = timeout

    def generate(
        self,
        model: str,
        prompt: str,
        shape: OutputShape = "freeform",
        timeout: float | None = None,
    ) -> str | dict[str, Any]:
        """Run one prompt through ollama.

        Raises:
            InferenceTimeoutError: If the call exceeds the timeout.
            ModelUnavailableError: If ollama is missing or exits non-zero.
            MalformedOutputError: If a structured call returns no JSON object
                or the output is not valid UTF-8.
        """
        timeout = timeout or self.timeout
        cmd = [self.binary, "run", model, "--nowordwrap"]
        if shape == "structured":
            cmd += ["--format", "json"]

        logger.debug("Running %s (timeout=%ss)", " ".join(cmd), timeout)
        try:
            result = subprocess.run(
                cmd,
                input=prompt,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
            result.check_returncode()
        except subprocess.TimeoutExpired as err:
            raise InferenceTimeoutError(model, f"timed out after {timeout}s") from err
        except subprocess.CalledProcessError as exc:
            raise ModelUnavailableError(
                model, f"ollama exited with {exc.returncode}: {exc.stderr}"
            ) from exc
        except FileNotFoundError as err:
            raise ModelUnavailableError(model, f"{self.binary} CLI not found") from err
        except UnicodeDecodeError as err:
            raise MalformedOutputError(
                model, f"output is not valid UTF-8: {err}"
            ) from err

        output = result.stdout.strip()
        if shape == "structured":
            return extract_json(output, model)
        return output

"""Configuration schema and validation for promptgate."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Literal, cast

BackendType = Literal["ollama", "openai"]

BACKENDS: tuple[str, ...] = ("ollama", "openai")


@dataclass(frozen=True)
class InferenceConfig:
    """Configuration for the language-inference backend.

    `model` is used for playback scoring; draft generation walks
    `fallback_models` in order after `model` fails.
    """

    backend: BackendType = "ollama"
    model: str = "qwen2.5-coder:7b"
    fallback_models: tuple[str, ...] = ("deepseek-r1:latest",)
    timeout: int = 120  # seconds per call
    base_url: str | None = None  # OpenAI-compatible endpoint override
    # Field names a config file set, so overlay keeps them even at default values
    explicit: frozenset[str] = field(default=frozenset(), compare=False, repr=False)

    @property
    def model_chain(self) -> tuple[str, ...]:
        """Primary model followed by fallbacks, without duplicates."""
        chain = [self.model]
        for name in self.fallback_models:
            if name not in chain:
                chain.append(name)
        return tuple(chain)

    def overlay(self, other: InferenceConfig) -> InferenceConfig:
        """Return a new config with the fields set in `other` overlaid.

        A field counts as set when a config file named it explicitly or
        when it differs from the built-in default.
        """
        default = InferenceConfig()
        values: dict[str, Any] = {}
        for f in fields(self):
            if f.name == "explicit":
                continue
            theirs = getattr(other, f.name)
            if f.name in other.explicit or theirs != getattr(default, f.name):
                values[f.name] = theirs
            else:
                values[f.name] = getattr(self, f.name)
        return InferenceConfig(**values, explicit=self.explicit | other.explicit)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result: dict[str, Any] = {
            "backend": self.backend,
            "model": self.model,
            "fallback_models": list(self.fallback_models),
            "timeout": self.timeout,
        }
        if self.base_url is not None:
            result["base_url"] = self.base_url
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InferenceConfig:
        """Create from a dictionary. Unknown keys are ignored.

        Keys that are present with a usable value are recorded in `explicit`.
        """
        default = cls()
        explicit: set[str] = set()
        backend_raw = data.get("backend")
        backend: BackendType = default.backend
        if backend_raw in BACKENDS:
            backend = cast(BackendType, backend_raw)
            explicit.add("backend")
        model = default.model
        if data.get("model"):
            model = str(data["model"])
            explicit.add("model")
        fallback_raw = data.get("fallback_models")
        fallback_models = default.fallback_models
        if isinstance(fallback_raw, (list, tuple)):
            fallback_models = tuple(str(m) for m in fallback_raw)
            explicit.add("fallback_models")
        elif isinstance(fallback_raw, str):
            fallback_models = (fallback_raw,)
            explicit.add("fallback_models")
        timeout = default.timeout
        if data.get("timeout") is not None:
            timeout = int(data["timeout"])
            explicit.add("timeout")
        base_url = data.get("base_url")
        if base_url is not None:
            explicit.add("base_url")
        return cls(
            backend=backend,
            model=model,
            fallback_models=fallback_models,
            timeout=timeout,
            base_url=base_url,
            explicit=frozenset(explicit),
        )


@dataclass
class PromptgateConfig:
    """promptgate configuration schema.

    None values indicate "not set" and will use defaults or be inherited.
    """

    # Storage
    db_path: str | None = None

    # Reference dataset and playback
    dataset_size: int | None = None
    playback_limit: int | None = None

    # Scheduler
    schedule_interval_hours: float | None = None

    # Report idea suggestion after each evaluation
    suggest_ideas: bool | None = None

    # Inference backend
    inference: InferenceConfig = InferenceConfig()

    def merge(self, other: PromptgateConfig) -> PromptgateConfig:
        """Merge another config into this one.

        Values from `other` take precedence when they are not None.
        Returns a new PromptgateConfig instance.
        """
        return PromptgateConfig(
            db_path=other.db_path if other.db_path is not None else self.db_path,
            dataset_size=(
                other.dataset_size
                if other.dataset_size is not None
                else self.dataset_size
            ),
            playback_limit=(
                other.playback_limit
                if other.playback_limit is not None
                else self.playback_limit
            ),
            schedule_interval_hours=(
                other.schedule_interval_hours
                if other.schedule_interval_hours is not None
                else self.schedule_interval_hours
            ),
            suggest_ideas=(
                other.suggest_ideas
                if other.suggest_ideas is not None
                else self.suggest_ideas
            ),
            inference=self.inference.overlay(other.inference),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary, excluding None values."""
        result: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "inference":
                result["inference"] = value.to_dict()
            elif value is not None:
                result[f.name] = value
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PromptgateConfig:
        """Create a PromptgateConfig from a dictionary.

        Unknown keys are ignored. Type validation is performed.
        """
        db_path_raw = data.get("db_path")
        db_path = str(db_path_raw) if db_path_raw is not None else None
        dataset_size_raw = data.get("dataset_size")
        dataset_size = int(dataset_size_raw) if dataset_size_raw is not None else None
        playback_limit_raw = data.get("playback_limit")
        playback_limit = (
            int(playback_limit_raw) if playback_limit_raw is not None else None
        )
        interval_raw = data.get("schedule_interval_hours")
        schedule_interval_hours = (
            float(interval_raw) if interval_raw is not None else None
        )
        suggest_raw = data.get("suggest_ideas")
        suggest_ideas = bool(suggest_raw) if suggest_raw is not None else None

        inference_raw = data.get("inference")
        inference = (
            InferenceConfig.from_dict(inference_raw)
            if isinstance(inference_raw, dict)
            else InferenceConfig()
        )

        return cls(
            db_path=db_path,
            dataset_size=dataset_size,
            playback_limit=playback_limit,
            schedule_interval_hours=schedule_interval_hours,
            suggest_ideas=suggest_ideas,
            inference=inference,
        )


# Default configuration values (used when not specified anywhere)
DEFAULT_CONFIG = PromptgateConfig(
    dataset_size=50,
    playback_limit=10,
    schedule_interval_hours=168.0,
    suggest_ideas=False,
)

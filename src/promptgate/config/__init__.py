"""Configuration loading."""

from promptgate.config.loader import (
    load_config,
    resolve_db_path,
    save_config,
)
from promptgate.config.schema import (
    DEFAULT_CONFIG,
    InferenceConfig,
    PromptgateConfig,
)

__all__ = [
    "DEFAULT_CONFIG",
    "InferenceConfig",
    "PromptgateConfig",
    "load_config",
    "resolve_db_path",
    "save_config",
]

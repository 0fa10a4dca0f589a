"""Configuration file loading and merging."""

import logging
import os
from dataclasses import replace
from pathlib import Path

import yaml

from promptgate.config.schema import (
    BACKENDS,
    DEFAULT_CONFIG,
    PromptgateConfig,
)

logger = logging.getLogger(__name__)

CONFIG_DIRNAME = ".promptgate"
CONFIG_FILENAME = "config.yaml"
DB_FILENAME = "promptgate.db"


def get_home_config_path() -> Path:
    """Get path to global config: ~/.promptgate/config.yaml."""
    return Path.home() / CONFIG_DIRNAME / CONFIG_FILENAME


def get_local_config_path() -> Path:
    """Get path to local config: ./.promptgate/config.yaml."""
    return Path.cwd() / CONFIG_DIRNAME / CONFIG_FILENAME


def load_yaml_config(path: Path) -> dict[str, object] | None:
    """Load a YAML config file, return None if not found or empty."""
    if not path.exists():
        return None
    try:
        with path.open() as f:
            data = yaml.safe_load(f)
            if data is None:
                return None
            if not isinstance(data, dict):
                logger.warning("Ignoring config %s: top level is not a mapping", path)
                return None
            result: dict[str, object] = data
            return result
    except yaml.YAMLError:
        logger.warning("Ignoring unparsable config %s", path, exc_info=True)
        return None


def apply_env_overrides(config: PromptgateConfig) -> PromptgateConfig:
    """Apply PROMPTGATE_* environment variables on top of file config."""
    model = os.environ.get("PROMPTGATE_MODEL")
    backend = os.environ.get("PROMPTGATE_BACKEND")
    db_path = os.environ.get("PROMPTGATE_DB")

    inference = config.inference
    if model:
        inference = replace(inference, model=model)
    if backend in BACKENDS:
        inference = replace(inference, backend=backend)  # type: ignore[arg-type]
    elif backend:
        logger.warning("Ignoring unknown PROMPTGATE_BACKEND=%s", backend)

    return replace(
        config,
        db_path=db_path or config.db_path,
        inference=inference,
    )


def load_config() -> PromptgateConfig:
    """Load merged configuration.

    Precedence (lowest to highest):
    1. Built-in defaults
    2. Global config (~/.promptgate/config.yaml)
    3. Local config (./.promptgate/config.yaml)
    4. PROMPTGATE_* environment variables
    """
    config = DEFAULT_CONFIG

    home_data = load_yaml_config(get_home_config_path())
    if home_data:
        config = config.merge(PromptgateConfig.from_dict(home_data))

    local_data = load_yaml_config(get_local_config_path())
    if local_data:
        config = config.merge(PromptgateConfig.from_dict(local_data))

    return apply_env_overrides(config)


def save_config(config: PromptgateConfig, path: Path) -> None:
    """Save config to a YAML file, creating parent directories if needed."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.to_dict()
    with path.open("w") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)


def resolve_db_path(config: PromptgateConfig) -> Path:
    """Resolve the SQLite database path (default ./.promptgate/promptgate.db)."""
    if config.db_path:
        return Path(config.db_path).expanduser()
    return Path.cwd() / CONFIG_DIRNAME / DB_FILENAME

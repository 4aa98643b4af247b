"""Configuration for questionflow sessions.

Settings are loaded with the following rules:
- Base: built-in defaults on `FlowSettings`.
- File: an optional YAML document (top-level mapping of setting names).
- Overrides: `QUESTIONFLOW_*` environment variables.
- Validation: Pydantic enforces types and value constraints.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator, model_validator


ENV_PREFIX = "QUESTIONFLOW_"
logger = logging.getLogger(__name__)

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class FlowSettings(BaseModel):
    cross_validate_on_answer: bool = Field(default=True)
    log_level: str = Field(default="INFO")
    rating_min: int = Field(default=1)
    rating_max: int = Field(default=5)

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        level = str(v).strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}")
        return level

    @model_validator(mode="after")
    def rating_bounds_must_be_ordered(self) -> "FlowSettings":
        if self.rating_min >= self.rating_max:
            raise ValueError("rating_min must be lower than rating_max")
        return self


def _read_yaml_file(path: Path) -> Dict[str, Any]:
    try:
        if path.exists():
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
            if not isinstance(data, dict):
                logger.warning("Ignoring settings file %s: top level is not a mapping", path)
                return {}
            return data
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        logger.error("Failed to read settings file %s: %s", path, e)
    return {}


def _env_overrides(env: Mapping[str, str]) -> Dict[str, str]:
    overrides: Dict[str, str] = {}
    for name in FlowSettings.model_fields:
        key = ENV_PREFIX + name.upper()
        if key in env:
            overrides[name] = env[key]
    return overrides


def load_settings(
    path: Optional[Union[str, Path]] = None,
    env: Optional[Mapping[str, str]] = None,
) -> FlowSettings:
    """Load settings with validation.

    Precedence (highest first):
    1) Environment variables (QUESTIONFLOW_LOG_LEVEL, ...)
    2) YAML file at `path` (optional)
    3) Defaults
    """
    values: Dict[str, Any] = {}
    if path is not None:
        values.update(_read_yaml_file(Path(path)))
    values.update(_env_overrides(os.environ if env is None else env))

    try:
        return FlowSettings(**values)
    except PydanticValidationError as e:
        logger.error("Invalid questionflow settings: %s", e)
        raise


__all__ = ["ENV_PREFIX", "FlowSettings", "load_settings"]

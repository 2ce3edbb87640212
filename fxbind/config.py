"""Configuration for fxbind.

Rules:
- Primary source: `fxbind_config.json` in the working directory (optional).
- Overrides: environment variables `FXBIND_MODE` and `FXBIND_LOG_LEVEL`.
- Validation: Pydantic models enforce allowed values.

The pytest plugin layers its own ini option and per-group marker on top of
the mode loaded here.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator

from fxbind.logic.identity import Mode


ROOT_CONFIG = Path("fxbind_config.json")
logger = logging.getLogger(__name__)

_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(key, default)


def _read_json_file(path: Path) -> dict:
    try:
        if path.exists():
            data = json.loads(path.read_text(encoding="utf-8"))
            return data if isinstance(data, dict) else {}
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error("Failed to read JSON config %s: %s", path, e)
    return {}


class FxConfig(BaseModel):
    mode: Mode = Field(default=Mode.SCOPED)
    log_level: str = Field(default="WARNING")

    @field_validator("mode", mode="before")
    @classmethod
    def mode_must_be_known(cls, v: object) -> object:
        if isinstance(v, str):
            v = v.strip().lower()
            aliases = {"async": "scoped", "sync": "global"}
            return aliases.get(v, v)
        return v

    @field_validator("log_level")
    @classmethod
    def level_must_be_known(cls, v: str) -> str:
        level = str(v).strip().upper()
        if level not in _LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LEVELS)}")
        return level

    @property
    def scoped(self) -> bool:
        return self.mode is Mode.SCOPED


def load_config(path: Optional[Path] = None) -> FxConfig:
    """Load configuration with validation.

    Precedence (highest first):
    1) Environment variables
    2) fxbind_config.json
    3) Defaults (scoped mode, WARNING)
    """
    base = _read_json_file(path or ROOT_CONFIG)

    mode = _env("FXBIND_MODE") or base.get("mode") or Mode.SCOPED.value
    log_level = _env("FXBIND_LOG_LEVEL") or base.get("log_level") or "WARNING"

    try:
        return FxConfig(mode=mode, log_level=log_level)
    except PydanticValidationError as e:
        logger.error("Invalid fxbind configuration: %s", e)
        raise


__all__ = ["FxConfig", "load_config", "ROOT_CONFIG"]

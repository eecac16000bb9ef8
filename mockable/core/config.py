"""
Generator configuration.

Two layers:

- ``GeneratorOptions`` is the closed per-declaration option set handed to the
  pipeline (currently only ``force_portable_lock``).
- ``Settings`` holds tool-wide defaults, read from an optional YAML/JSON file
  and ``MOCKABLE_*`` environment variables.

Override file format (YAML or JSON):
    log_level: DEBUG
    default_force_portable_lock: true
    output_suffix: _mocks

Environment variables:
    MOCKABLE_CONFIG_FILE          path to the override file (optional)
    MOCKABLE_LOG_LEVEL            logging level name
    MOCKABLE_FORCE_PORTABLE_LOCK  1/true/yes/on to always use LegacyLock
    MOCKABLE_OUTPUT_SUFFIX        suffix for generated module names
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

_log = logging.getLogger("mockable.config")

_TRUTHY = ("1", "true", "yes", "on")
_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class GeneratorOptions(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    force_portable_lock: bool = False


class Settings(BaseModel):
    log_level: str = "INFO"
    default_force_portable_lock: bool = False
    output_suffix: str = "_mocks"

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in _LEVELS:
            raise ValueError(f"unknown log level {value!r}")
        return level

    @field_validator("output_suffix")
    @classmethod
    def _identifier_suffix(cls, value: str) -> str:
        if not value or not value.replace("_", "a").isalnum():
            raise ValueError(f"output_suffix must be identifier characters, got {value!r}")
        return value

    def options(self, force_portable_lock: Optional[bool] = None) -> GeneratorOptions:
        if force_portable_lock is None:
            force_portable_lock = self.default_force_portable_lock
        return GeneratorOptions(force_portable_lock=force_portable_lock)


def _env_flag(name: str) -> Optional[bool]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return raw.strip().lower() in _TRUTHY


def load_settings_file(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Read the override file as JSON, then YAML.

    Returns an empty dict if the file is absent, unreadable, or not a mapping;
    the caller falls back to defaults in that case.
    """
    resolved = _resolve_path(path)
    if resolved is None or not resolved.exists():
        return {}

    try:
        raw_text = resolved.read_text(encoding="utf-8")
    except OSError as exc:
        _log.warning("Cannot read settings file %s: %s", resolved, exc)
        return {}

    try:
        data = json.loads(raw_text)
    except json.JSONDecodeError:
        try:
            data = yaml.safe_load(raw_text)
        except yaml.YAMLError as exc:
            _log.warning("Failed to parse settings file %s as JSON or YAML: %s", resolved, exc)
            return {}

    if data is None:
        return {}
    if not isinstance(data, dict):
        _log.warning("Settings file %s must be a mapping, got %s", resolved, type(data).__name__)
        return {}
    _log.info("Loaded %d settings from %s", len(data), resolved)
    return data


def _resolve_path(path: Optional[Path]) -> Optional[Path]:
    if path is not None:
        return Path(path)
    env_path = os.getenv("MOCKABLE_CONFIG_FILE", "").strip()
    if env_path:
        return Path(env_path)
    return None


def load_settings(path: Optional[Path] = None) -> Settings:
    """Defaults, then the override file, then environment variables."""
    data = {k: v for k, v in load_settings_file(path).items() if k in Settings.model_fields}

    level = os.getenv("MOCKABLE_LOG_LEVEL", "").strip()
    if level:
        data["log_level"] = level
    portable = _env_flag("MOCKABLE_FORCE_PORTABLE_LOCK")
    if portable is not None:
        data["default_force_portable_lock"] = portable
    suffix = os.getenv("MOCKABLE_OUTPUT_SUFFIX", "").strip()
    if suffix:
        data["output_suffix"] = suffix

    try:
        return Settings(**data)
    except ValidationError as exc:
        raise ValueError(f"Invalid mockable settings: {exc}") from exc

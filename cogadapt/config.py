"""
Configuration loading.

Settings come from a YAML file with four optional sections:

    tracker:    sampling, thresholds and capacities for the signal processor
    adaptive:   initial adaptive UI policy
    storage:    preference persistence key and file
    logging:    log level and file

Anything not given keeps its compiled default. An operator-supplied file
with unknown keys or wrong-typed values is rejected with ConfigurationError.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from loguru import logger

from cogadapt.core.contracts import (
    AdaptationSpeed,
    AdaptiveUIConfig,
    Level,
    TrackerConfig,
    coerce_enum,
)
from cogadapt.core.errors import ConfigurationError

DEFAULT_SETTINGS_PATH = Path(__file__).resolve().parent.parent / "config" / "settings.yaml"

# loguru's built-in levels
LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


@dataclass
class StorageSettings:
    key: str = "adaptive-preferences"
    path: Optional[str] = None  # None = keep preferences in memory only


@dataclass
class LoggingSettings:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class Settings:
    tracker: TrackerConfig = field(default_factory=TrackerConfig)
    adaptive: AdaptiveUIConfig = field(default_factory=AdaptiveUIConfig)
    storage: StorageSettings = field(default_factory=StorageSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)


_ENUM_FIELDS = {
    "sensitivity_level": Level,
    "adaptation_speed": AdaptationSpeed,
}


def _check_value(section: str, key: str, value: Any, default: Any) -> Any:
    name = f"{section}.{key}"
    if key in _ENUM_FIELDS:
        return coerce_enum(_ENUM_FIELDS[key], value, name)
    if section == "logging" and key == "level":
        if not isinstance(value, str) or value.upper() not in LOG_LEVELS:
            raise ValueError(f"{name} must be one of {list(LOG_LEVELS)}, got {value!r}")
        return value.upper()
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise ValueError(f"{name} must be a boolean")
    elif isinstance(default, int):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{name} must be an integer")
    elif isinstance(default, float) or key.startswith("viewport"):
        if value is None and default is None:
            return value
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{name} must be a number")
        if not math.isfinite(value):
            raise ValueError(f"{name} must be finite, got {value}")
        return float(value)
    elif value is not None and not isinstance(value, str):
        raise ValueError(f"{name} must be a string")
    return value


def _build(cls, section: str, data: Any):
    """Instantiate a settings dataclass from a mapping, checking keys and types."""
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ConfigurationError(f"Section '{section}' must be a mapping")

    defaults = cls()
    known = {f.name for f in fields(cls)}
    kwargs: Dict[str, Any] = {}

    for key, value in data.items():
        if key not in known:
            raise ConfigurationError(f"Unknown setting '{section}.{key}'")

        try:
            value = _check_value(section, key, value, getattr(defaults, key))
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

        kwargs[key] = value

    return cls(**kwargs)


def parse_settings(data: Any) -> Settings:
    """Build Settings from an already-parsed YAML document."""
    if data is None:
        return Settings()
    if not isinstance(data, dict):
        raise ConfigurationError("Settings file must contain a mapping")

    sections = {
        "tracker": TrackerConfig,
        "adaptive": AdaptiveUIConfig,
        "storage": StorageSettings,
        "logging": LoggingSettings,
    }
    unknown = set(data) - set(sections)
    if unknown:
        raise ConfigurationError(f"Unknown settings sections: {sorted(unknown)}")

    settings = Settings(**{
        name: _build(cls, name, data.get(name)) for name, cls in sections.items()
    })

    problems = settings.tracker.validate()
    if problems:
        raise ConfigurationError("; ".join(problems))
    return settings


def load_settings(path: Optional[Union[str, Path]] = None) -> Settings:
    """
    Load settings from a YAML file.

    Args:
        path: Settings file; falls back to config/settings.yaml, then
            to compiled defaults if neither exists

    Raises:
        ConfigurationError: if the file exists but is invalid
    """
    candidates = [Path(path)] if path else []
    candidates.append(DEFAULT_SETTINGS_PATH)

    for candidate in candidates:
        if not candidate.exists():
            if path and candidate == Path(path):
                logger.warning(f"Settings file {candidate} not found")
            continue
        try:
            with open(candidate) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Could not parse {candidate}: {e}") from e
        logger.debug(f"Loaded settings from {candidate}")
        return parse_settings(data)

    return Settings()

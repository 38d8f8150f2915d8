"""
Settings for the analytics engine and its data layer.

Settings come from a YAML file with ${ENV_VAR} expansion. A .env
file in the working directory is loaded first so deployments can
override paths and limits without editing the YAML.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union
import structlog
import yaml
from dotenv import load_dotenv

from quakewatch.errors import ConfigurationError

logger = structlog.get_logger(__name__)

DEFAULT_CONFIG_PATH = "config/settings.yaml"

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


@dataclass(frozen=True)
class AnalyticsSettings:
    """Tunables for the statistic processors."""
    completeness_magnitude: float = 2.0
    b_value_recompute_every: int = 100


@dataclass(frozen=True)
class RetentionSettings:
    """Retention limits. None disables a limit."""
    max_events: Optional[int] = 50000
    retention_days: Optional[float] = 30.0


@dataclass(frozen=True)
class Settings:
    """Top-level settings."""
    log_level: str = "INFO"
    log_format: str = "console"
    validate_events: bool = True
    analytics: AnalyticsSettings = field(default_factory=AnalyticsSettings)
    retention: RetentionSettings = field(default_factory=RetentionSettings)


def _expand_env_vars(value: Any) -> Any:
    """Expand ${VAR} references in string values, recursively."""
    if isinstance(value, str) and "${" in value:
        def replace_env(match):
            return os.environ.get(match.group(1), match.group(0))
        return _ENV_PATTERN.sub(replace_env, value)
    if isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env_vars(v) for v in value]
    return value


def _optional_number(raw: Any, name: str, cast) -> Optional[Any]:
    if raw is None or raw == "" or (isinstance(raw, str) and raw.lower() in ("none", "null")):
        return None
    try:
        value = cast(raw)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")
    return value


def settings_from_dict(raw: dict) -> Settings:
    """
    Build Settings from a parsed (and env-expanded) mapping.
    
    Raises:
        ConfigurationError: If a value is missing its expected type or range
    """
    raw = _expand_env_vars(raw or {})
    
    analytics_raw = raw.get("analytics") or {}
    retention_raw = raw.get("retention") or {}
    validation_raw = raw.get("validation") or {}
    
    try:
        completeness = float(analytics_raw.get("completeness_magnitude", 2.0))
        cadence = int(analytics_raw.get("b_value_recompute_every", 100))
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"invalid analytics settings: {e}") from e
    
    if cadence <= 0:
        raise ConfigurationError(
            f"b_value_recompute_every must be positive, got {cadence}"
        )
    
    retention = RetentionSettings(
        max_events=_optional_number(
            retention_raw.get("max_events", 50000), "max_events", int
        ),
        retention_days=_optional_number(
            retention_raw.get("retention_days", 30.0), "retention_days", float
        ),
    )
    
    log_format = str(raw.get("log_format", "console")).lower()
    if log_format not in ("console", "json"):
        raise ConfigurationError(f"log_format must be console or json, got {log_format}")
    
    return Settings(
        log_level=str(raw.get("log_level", "INFO")).upper(),
        log_format=log_format,
        validate_events=bool(validation_raw.get("enabled", True)),
        analytics=AnalyticsSettings(
            completeness_magnitude=completeness,
            b_value_recompute_every=cadence,
        ),
        retention=retention,
    )


def load_settings(path: Union[str, Path] = DEFAULT_CONFIG_PATH) -> Settings:
    """
    Load settings from a YAML file.
    
    Args:
        path: Path to the settings file
    
    Returns:
        Parsed Settings (defaults if the file does not exist)
    """
    load_dotenv()
    
    config_path = Path(path)
    if not config_path.exists():
        logger.warning("config_not_found_using_defaults", path=str(path))
        return Settings()
    
    try:
        with open(config_path) as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"cannot parse {config_path}: {e}") from e
    
    if raw is not None and not isinstance(raw, dict):
        raise ConfigurationError(f"{config_path} must contain a mapping")
    
    settings = settings_from_dict(raw or {})
    logger.info("config_loaded", path=str(config_path))
    return settings

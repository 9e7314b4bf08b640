"""Load scraper settings from YAML with environment overrides."""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from career_scraper.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/config.yaml"


class ScraperSettings(BaseModel):
    """
    Tunables for the orchestration engine.

    All durations are in seconds.
    """

    # Orchestrator
    global_timeout: float = Field(default=60.0, gt=0)
    max_retries: int = Field(default=1, ge=1, description="Attempt budget per call")
    retry_delay_step: float = Field(default=1.0, ge=0)
    retry_delay_cap: float = Field(default=3.0, ge=0)
    min_step_budget: float = Field(
        default=5.0, ge=0, description="Refuse to start a step with less time left"
    )
    step_deadline_margin: float = Field(default=2.0, ge=0)
    worker_pool_size: int = Field(default=8, ge=1)

    # Planner
    default_step_timeout: float = Field(default=20.0, gt=0)
    max_adaptive_timeout: float = Field(default=40.0, gt=0)
    timeout_multiplier: float = Field(default=1.2, gt=0)
    adaptive_timeout: bool = True
    intelligent_step_selection: bool = True
    max_generic_candidates: int = Field(default=5, ge=1)
    max_unknown_platform_candidates: int = Field(default=3, ge=1)
    max_platform_fallbacks: int = Field(default=1, ge=0)
    max_wordpress_fallbacks: int = Field(default=2, ge=0)

    # Validator
    min_content_length: int = Field(default=100, ge=0)

    # Domain profiles
    max_profiles: int = Field(default=1000, ge=1)
    pattern_history_size: int = Field(default=10, ge=1)
    learning_enabled: bool = True
    fast_track_threshold: float = Field(default=70.0, ge=0, le=100)
    fast_track_min_attempts: int = Field(default=2, ge=1)
    reprofiling_failure_threshold: int = Field(default=3, ge=1)
    reprofiling_age_days: int = Field(default=30, ge=1)

    # Platform detection fetch
    detection_timeout: float = Field(default=10.0, gt=0)
    detection_min_length: int = Field(default=500, ge=0)

    # Cache
    cache_backend: str = Field(default="file", pattern="^(file|memory)$")
    cache_dir: str = "data/cache"
    cache_ttl_hours: float = Field(default=24.0, gt=0)

    # Batch runner
    batch_concurrency_limit: int = Field(default=3, ge=1)
    batch_pacing_delay: float = Field(default=1.0, ge=0)

    # Background re-scraping
    background_interval: float = Field(default=86400.0, gt=0)
    background_max_urls: int = Field(default=50, ge=1)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ScraperSettings":
        """
        Build settings from a nested config dictionary.

        Accepts either a flat mapping or the sections used in config.yaml
        (orchestrator, planner, profiles, cache, batch, background, ...).
        """
        flat: Dict[str, Any] = {}
        for key, value in (data or {}).items():
            if isinstance(value, dict):
                flat.update(value)
            else:
                flat[key] = value

        try:
            return cls(**flat)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid scraper settings: {e}") from e


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    """Apply SCRAPER_* environment variable overrides on top of the file config."""
    overrides = {
        "SCRAPER_GLOBAL_TIMEOUT": "global_timeout",
        "SCRAPER_MAX_RETRIES": "max_retries",
        "SCRAPER_CACHE_DIR": "cache_dir",
        "SCRAPER_CACHE_BACKEND": "cache_backend",
        "SCRAPER_MAX_PROFILES": "max_profiles",
    }

    result = dict(data)
    for env_name, field_name in overrides.items():
        value = os.getenv(env_name)
        if value:
            result[field_name] = value
            logger.debug(f"Config override from {env_name}: {field_name}={value}")
    return result


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load the raw configuration dictionary from YAML.

    Args:
        config_path: Path to the YAML file. Defaults to $CONFIG_PATH or config/config.yaml.

    Returns:
        Configuration dictionary (empty if the file does not exist).
    """
    path = Path(config_path or os.getenv("CONFIG_PATH", DEFAULT_CONFIG_PATH))

    if not path.exists():
        logger.info(f"Config file not found at {path}, using defaults")
        return {}

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")

    logger.info(f"Loaded configuration from {path}")
    return data


def load_settings(config_path: Optional[str] = None) -> ScraperSettings:
    """
    Load settings: .env, then YAML file, then SCRAPER_* environment overrides.

    Args:
        config_path: Optional explicit path to the YAML config file.

    Returns:
        Validated ScraperSettings.
    """
    load_dotenv()

    data = load_config(config_path)
    scraping_section = data.get("scraping", data)

    flat = ScraperSettings.from_dict(scraping_section).model_dump()
    return ScraperSettings.from_dict(_apply_env_overrides(flat))

"""Logging configuration and structured log helpers."""

import logging
import os
import sys
from pathlib import Path
from typing import Dict, Optional, Tuple

import yaml

# Global configuration cache
_logging_config: Optional[Dict] = None


def _load_logging_config() -> Dict:
    """
    Load logging display options from config/logging.yaml.

    Returns:
        Dict with logging configuration, or defaults if the file is missing.
    """
    global _logging_config

    if _logging_config is not None:
        return _logging_config

    config_path = Path(os.getenv("LOGGING_CONFIG_PATH", "config/logging.yaml"))

    if config_path.exists():
        try:
            with open(config_path, "r") as f:
                _logging_config = yaml.safe_load(f) or {}
        except Exception as e:
            print(f"⚠️  Failed to load logging config from {config_path}: {e}", file=sys.stderr)
            _logging_config = {}
    else:
        _logging_config = {}

    _logging_config.setdefault("console", {})
    _logging_config.setdefault("structured", {})
    _logging_config["console"].setdefault("max_url_length", 80)
    _logging_config["console"].setdefault("max_text_preview_length", 60)
    _logging_config["structured"].setdefault("include_display_fields", True)

    return _logging_config


def format_url(url: str, max_length: Optional[int] = None) -> Tuple[str, str]:
    """
    Format a URL for logging with both full and display versions.

    Args:
        url: The full URL.
        max_length: Maximum display length. If None, uses the config value.

    Returns:
        Tuple of (full_url, display_url); display_url is truncated with "..."

    Example:
        >>> format_url("https://example.com/careers/engineering/backend", max_length=30)
        ('https://example.com/careers/engineering/backend', 'https://example.com/careers...')
    """
    if not url:
        return "", ""

    full_url = url.strip()

    if max_length is None:
        max_length = _load_logging_config()["console"]["max_url_length"]

    if max_length <= 0 or len(full_url) <= max_length:
        return full_url, full_url

    if max_length <= 3:
        return full_url, full_url[:max_length]

    return full_url, full_url[: max_length - 3] + "..."


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Configure console and file logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Path to log file. If None, uses logs/career_scraper.log.

    Environment Variables:
        LOG_LEVEL: Override log level.
        LOG_FILE: Override log file path.
        ENVIRONMENT: Environment name (development, staging, production), used as prefix.
    """
    log_level = os.getenv("LOG_LEVEL", log_level).upper()
    log_file = os.getenv("LOG_FILE", log_file or "logs/career_scraper.log")
    environment = os.getenv("ENVIRONMENT", "development")

    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handlers = [
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(log_file),
    ]

    log_format = f"[{environment.upper()}] %(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format=log_format,
        handlers=handlers,
        force=True,
    )

    # requests/urllib3 are chatty at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured: environment={environment}, level={log_level}, file={log_file}")


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance (typically called with __name__)."""
    return logging.getLogger(name)


class StructuredLogger:
    """
    Helper class for structured logging with consistent formatting.

    Produces lines of the form "[TAG] action - subject | key=value, ...".
    """

    def __init__(self, logger: logging.Logger):
        """
        Initialize structured logger.

        Args:
            logger: Base logger instance
        """
        self.logger = logger

    @staticmethod
    def _format(prefix: str, details: Optional[Dict]) -> str:
        if details:
            detail_str = ", ".join(f"{k}={v}" for k, v in details.items())
            return f"{prefix} | {detail_str}"
        return prefix

    def scrape_activity(self, url: str, action: str, details: Optional[Dict] = None) -> None:
        """
        Log a scrape call transition.

        Args:
            url: Target URL (truncated for display)
            action: Action or state (STARTED, CACHE_HIT, SUCCESS, DEGRADED, ...)
            details: Optional additional details
        """
        _, display_url = format_url(url)
        message = self._format(f"[SCRAPE] {action} - {display_url}", details)

        if action.upper() in ("FAILED", "TIMEOUT"):
            self.logger.error(message)
        elif action.upper() == "DEGRADED":
            self.logger.warning(message)
        else:
            self.logger.info(message)

    def step_activity(
        self, step_name: str, status: str, details: Optional[Dict] = None
    ) -> None:
        """
        Log a strategy step transition.

        Args:
            step_name: Strategy name
            status: Step status (executing, success, partial, no_result, error, skipped)
            details: Optional additional details
        """
        message = self._format(f"[STEP:{step_name}] {status.upper()}", details)

        if status.lower() in ("error", "timeout"):
            self.logger.warning(message)
        elif status.lower() in ("skipped", "not_applicable"):
            self.logger.debug(message)
        else:
            self.logger.info(message)

    def cache_activity(self, url: str, action: str, details: Optional[Dict] = None) -> None:
        """Log cache operations."""
        _, display_url = format_url(url)
        self.logger.info(self._format(f"[CACHE] {action} - {display_url}", details))

    def profile_activity(self, domain: str, action: str, details: Optional[Dict] = None) -> None:
        """Log domain profile updates."""
        self.logger.info(self._format(f"[PROFILE] {action} - {domain}", details))

    def plan_activity(self, domain: str, step_names, details: Optional[Dict] = None) -> None:
        """Log an execution plan."""
        message = self._format(f"[PLAN] {domain}: {' -> '.join(step_names) or '(empty)'}", details)
        self.logger.info(message)


def get_structured_logger(name: str) -> StructuredLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__).

    Returns:
        StructuredLogger instance.
    """
    return StructuredLogger(logging.getLogger(name))

"""Exception hierarchy and error kinds for the scraping engine."""

from typing import Optional


class ScraperError(Exception):
    """Base class for all career scraper errors."""


class ConfigurationError(ScraperError):
    """Raised when settings cannot be loaded or fail validation."""


class StrategyError(ScraperError):
    """Raised by a strategy when execution fails (network, navigation, page structure)."""

    def __init__(self, message: str, strategy_name: Optional[str] = None):
        super().__init__(message)
        self.strategy_name = strategy_name


class InsufficientTimeError(ScraperError):
    """Raised when the global budget has too little time left to start a step."""


class ScrapeCancelled(ScraperError):
    """Raised at a suspension point once the call has been cancelled."""


class PersistenceError(ScraperError):
    """Raised when a cache or profile write fails."""


class StepErrorKind:
    """
    Error kinds reported to the metrics recorder.

    Kept as plain strings so they serialize into metrics and failure histograms as-is.
    """

    NOT_APPLICABLE = "StepNotApplicable"
    NO_RESULT = "NoResult"
    PARTIAL_RESULT = "PartialResult"
    INVALID_RESULT = "InvalidResult"
    EXECUTION_ERROR = "ExecutionError"
    STEP_TIMEOUT = "StepTimeout"
    GLOBAL_TIMEOUT = "GlobalTimeout"
    CACHE_ERROR = "CacheError"
    CACHE_SAVE_ERROR = "CacheSaveError"
    MINIMUM_CACHE_ERROR = "MinimumCacheError"
    FAST_TRACK_FAILED = "FastTrackFailed"
    FAST_TRACK_ERROR = "FastTrackError"

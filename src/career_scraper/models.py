"""
Pydantic models shared by the scraping engine.

A ScrapeResult is produced by a strategy and treated as immutable once returned;
the orchestrator only ever works on copies (model_copy) when it annotates status
or detected platform/language.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    """Timezone-aware current time, used for every timestamp in the engine."""
    return datetime.now(timezone.utc)


class ScrapeStatus(str, Enum):
    """
    Outcome status attached to every result returned by the orchestrator.

    - OK: a strategy produced a valid result (or a full-quality cache hit)
    - DEGRADED: minimum-quality placeholder, eligible for background re-scraping
    - FAILED: no content at all (global timeout, or degradation persistence failed)
    """

    OK = "ok"
    DEGRADED = "degraded"
    FAILED = "failed"


class CacheQuality(str, Enum):
    """Quality marker stored with cached results."""

    FULL = "full"
    PARTIAL = "partial"
    MINIMUM = "minimum"


class JobLink(BaseModel):
    """A link extracted from a career page."""

    url: str
    text: str = ""
    is_job_posting: bool = False
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    link_type: Optional[str] = None
    location: Optional[str] = None
    department: Optional[str] = None
    job_type: Optional[str] = None


class ScrapeResult(BaseModel):
    """
    Result of one strategy execution, or of a full scrape call.

    Status fields are only meaningful on results returned by the orchestrator.
    """

    url: str
    title: str = ""
    text: str = ""
    links: List[JobLink] = Field(default_factory=list)
    detected_platform: Optional[str] = None
    detected_language: Optional[str] = None
    method: Optional[str] = None
    scraped_at: datetime = Field(default_factory=utcnow)

    # Strategy-reported interaction count (clicks, load-more, pages)
    interaction_count: int = 0
    jobs_found: int = 0

    # Cache markers
    is_empty: bool = False
    is_minimum_cache: bool = False
    cache_quality: Optional[CacheQuality] = None

    # Status annotations
    status: ScrapeStatus = ScrapeStatus.OK
    status_reason: Optional[str] = None
    should_retry: bool = False
    retry_strategy: Optional[str] = None

    model_config = ConfigDict(use_enum_values=True)

    @property
    def is_degraded(self) -> bool:
        """True when the result is a minimum-quality placeholder."""
        return self.is_minimum_cache or self.cache_quality == CacheQuality.MINIMUM.value

    def with_status(
        self,
        status: ScrapeStatus,
        reason: Optional[str] = None,
        should_retry: bool = False,
        retry_strategy: Optional[str] = None,
    ) -> "ScrapeResult":
        """Return a copy annotated with status metadata."""
        return self.model_copy(
            update={
                "status": status.value,
                "status_reason": reason,
                "should_retry": should_retry,
                "retry_strategy": retry_strategy,
            }
        )


class ScrapeOptions(BaseModel):
    """Configuration bag accepted by ScrapeOrchestrator.scrape()."""

    detected_language: Optional[str] = None
    search_query: Optional[str] = None
    skip_profiling: bool = False
    timeout_seconds: Optional[float] = Field(
        default=None, gt=0, description="Override of the global deadline for this call"
    )
    max_retries: Optional[int] = Field(
        default=None, ge=1, description="Override of the attempt budget for this call"
    )
    special_platform: Optional[str] = None
    force_refresh: bool = Field(default=False, description="Bypass the cache lookup")

    @classmethod
    def from_value(cls, value: Any) -> "ScrapeOptions":
        """Accept None, a dict or a ScrapeOptions instance."""
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        return cls(**value)


class SessionRecord(BaseModel):
    """
    Ephemeral per-call record handed to the profiling and telemetry collaborators.

    Not retained by the orchestrator after the call completes.
    """

    url: str
    domain: str
    strategy_used: Optional[str] = None
    was_headless: bool = False
    started_at: datetime = Field(default_factory=utcnow)
    ended_at: Optional[datetime] = None
    success: bool = False
    content_text: str = ""
    jobs_found: int = 0
    platform: Optional[str] = None
    language: Optional[str] = None
    cache_created: bool = False
    is_minimum_cache: bool = False
    fast_track: bool = False
    error_message: Optional[str] = None

    @property
    def duration_seconds(self) -> float:
        if not self.ended_at:
            return 0.0
        return max(0.0, (self.ended_at - self.started_at).total_seconds())

    def finish(self, **updates: Any) -> None:
        """Stamp the end time and apply final field values."""
        for key, value in updates.items():
            setattr(self, key, value)
        self.ended_at = utcnow()


class StepOutcome(str, Enum):
    """Outcome of a single plan entry execution."""

    SUCCESS = "success"
    PARTIAL = "partial"
    INVALID = "invalid"
    NO_RESULT = "no_result"
    NOT_APPLICABLE = "not_applicable"
    ERROR = "error"
    TIMEOUT = "timeout"


class PlanEntry(BaseModel):
    """A (strategy, derived configuration) pair produced by the execution planner."""

    strategy: Any
    config: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def name(self) -> str:
        return self.strategy.name

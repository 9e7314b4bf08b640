"""Pydantic models for per-domain learning data."""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from career_scraper.models import utcnow


def blend(old: float, sample: float) -> float:
    """
    Smoothing used for every rolling average in a domain profile.

    ``(old + sample) / 2``: the latest sample always weighs 50%, including the
    first sample blended against a zero starting value.
    """
    return (old + sample) / 2


class StrategySuccessStats(BaseModel):
    """Aggregates for a strategy that has succeeded at least once on a domain."""

    success_count: int = 0
    total_attempts: int = 0
    success_rate: float = 0.0
    avg_execution_time: float = 0.0
    avg_text_length: float = 0.0
    avg_links_count: float = 0.0
    avg_job_terms: float = 0.0
    avg_job_links: float = 0.0
    avg_interactions: float = 0.0
    detected_platforms: Dict[str, int] = Field(default_factory=dict)

    def recompute_rate(self) -> None:
        self.success_rate = (
            self.success_count / self.total_attempts * 100 if self.total_attempts else 0.0
        )


class StrategyFailureStats(BaseModel):
    """Aggregates for a strategy that has failed at least once on a domain."""

    failure_count: int = 0
    total_attempts: int = 0
    failure_rate: float = 0.0
    common_errors: Dict[str, int] = Field(default_factory=dict)


class PerformanceMetric(BaseModel):
    """Latest timing and quality data for a strategy's valid result."""

    last_execution_time: float = 0.0
    avg_execution_time: float = 0.0
    quality: float = 0.0
    detected_platform: Optional[str] = None
    job_terms_found: int = 0
    job_links_found: int = 0


class ErrorMetric(BaseModel):
    """Timing of invalid or failed strategy executions."""

    error_count: int = 0
    total_time: float = 0.0
    avg_error_time: float = 0.0
    last_error_message: Optional[str] = None
    last_error_at: Optional[datetime] = None


class OutcomePattern(BaseModel):
    """One entry in a domain's capped success or failure history."""

    strategy: str
    success: bool
    timestamp: datetime = Field(default_factory=utcnow)
    text_length: int = 0
    links_count: int = 0
    job_terms_count: int = 0
    job_links_count: int = 0
    method: Optional[str] = None
    detected_platform: Optional[str] = None
    error_type: Optional[str] = None
    error_message: Optional[str] = None


class DomainProfile(BaseModel):
    """
    Accumulated learning data for one hostname.

    Strategy-level fields are updated after each strategy attempt; session-level
    fields (preferred strategy, language, consecutive failures, ...) are updated
    once per scrape call and drive the fast-track decision.
    """

    domain: str
    last_url: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    # Call-level outcome totals
    total_attempts: int = 0
    success_count: int = 0
    failure_count: int = 0
    success_rate: float = 0.0
    avg_quality: float = 0.0
    avg_job_terms: float = 0.0
    avg_job_links: float = 0.0
    detected_platform: Optional[str] = None
    last_success_at: Optional[datetime] = None
    last_failure_at: Optional[datetime] = None

    # Strategy-level statistics
    last_successful_strategy: Optional[str] = None
    successful_strategies: Dict[str, StrategySuccessStats] = Field(default_factory=dict)
    failed_strategies: Dict[str, StrategyFailureStats] = Field(default_factory=dict)
    performance_metrics: Dict[str, PerformanceMetric] = Field(default_factory=dict)
    error_metrics: Dict[str, ErrorMetric] = Field(default_factory=dict)
    success_patterns: List[OutcomePattern] = Field(default_factory=list)
    failure_patterns: List[OutcomePattern] = Field(default_factory=list)

    # Session-level profile
    preferred_strategy: Optional[str] = None
    language: Optional[str] = None
    headless: bool = False
    session_attempts: int = 0
    session_successes: int = 0
    consecutive_failures: int = 0
    avg_session_time: float = 0.0
    last_jobs: int = 0
    last_successful_scrape: Optional[datetime] = None
    needs_reprofiling: bool = False
    reprofiling_reason: Optional[str] = None
    reprofiling_triggered_at: Optional[datetime] = None
    hit_count: int = 0
    cache_hits: int = 0
    scraping_hits: int = 0
    last_hit_at: Optional[datetime] = None

    @property
    def session_success_rate(self) -> float:
        if not self.session_attempts:
            return 0.0
        return round(self.session_successes / self.session_attempts * 100)

    def has_history(self) -> bool:
        return bool(self.successful_strategies)

    def mark_for_reprofiling(self, reason: str) -> None:
        self.needs_reprofiling = True
        self.reprofiling_reason = reason
        self.reprofiling_triggered_at = utcnow()


class FastTrackDecision(BaseModel):
    """Proven strategy to run directly for a well-understood domain."""

    strategy: str
    success_rate: float
    language: Optional[str] = None
    platform: Optional[str] = None
    headless: bool = False
    avg_time: float = 0.0

"""
Bounded in-memory store of domain profiles.

The store holds at most ``max_profiles`` profiles. When a new domain would exceed
the bound, the domain inserted earliest is evicted; reads do not refresh a
domain's position. Updates to one domain are serialized by a per-domain lock,
and planners read deep copies via ``snapshot()``.
"""

import logging
import threading
from datetime import timedelta
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from career_scraper.models import ScrapeResult, SessionRecord, utcnow
from career_scraper.profiles.models import (
    DomainProfile,
    ErrorMetric,
    FastTrackDecision,
    OutcomePattern,
    PerformanceMetric,
    StrategyFailureStats,
    StrategySuccessStats,
    blend,
)
from career_scraper.validation import ResultValidator

logger = logging.getLogger(__name__)

ErrorLike = Union[BaseException, str, None]


def _error_type(error: ErrorLike) -> str:
    if error is None:
        return "UnknownError"
    if isinstance(error, BaseException):
        return type(error).__name__
    return str(error)


def _error_message(error: ErrorLike) -> str:
    if error is None:
        return "Unknown error"
    return str(error) or _error_type(error)


class DomainProfileStore:
    """
    Thread-safe, bounded table of DomainProfile objects keyed by hostname.

    None of the ``record_*`` methods raise: a failed update is logged and dropped
    so that learning never aborts a scrape call.
    """

    def __init__(
        self,
        max_profiles: int = 1000,
        validator: Optional[ResultValidator] = None,
        pattern_history_size: int = 10,
        learning_enabled: bool = True,
        fast_track_threshold: float = 70.0,
        fast_track_min_attempts: int = 2,
        reprofiling_failure_threshold: int = 3,
        reprofiling_age_days: int = 30,
    ):
        """
        Initialize the store.

        Args:
            max_profiles: Maximum number of domains held at once
            validator: Validator used for job-term/job-link/quality statistics
            pattern_history_size: Length of the per-domain success/failure history
            learning_enabled: Whether outcome patterns are recorded
            fast_track_threshold: Minimum session success rate (%) for fast-track
            fast_track_min_attempts: Minimum recorded sessions for fast-track
            reprofiling_failure_threshold: Consecutive failed sessions before re-profiling
            reprofiling_age_days: Age of the last success that forces re-profiling
        """
        if max_profiles < 1:
            raise ValueError("max_profiles must be at least 1")

        self.max_profiles = max_profiles
        self.validator = validator or ResultValidator()
        self.pattern_history_size = pattern_history_size
        self.learning_enabled = learning_enabled
        self.fast_track_threshold = fast_track_threshold
        self.fast_track_min_attempts = fast_track_min_attempts
        self.reprofiling_failure_threshold = reprofiling_failure_threshold
        self.reprofiling_age = timedelta(days=reprofiling_age_days)

        # dict preserves insertion order; the first key is always the eviction candidate
        self._profiles: Dict[str, DomainProfile] = {}
        self._domain_locks: Dict[str, threading.RLock] = {}
        self._lock = threading.Lock()
        self.evictions = 0

    @classmethod
    def from_settings(cls, settings, validator: Optional[ResultValidator] = None):
        """Build a store from ScraperSettings."""
        return cls(
            max_profiles=settings.max_profiles,
            validator=validator,
            pattern_history_size=settings.pattern_history_size,
            learning_enabled=settings.learning_enabled,
            fast_track_threshold=settings.fast_track_threshold,
            fast_track_min_attempts=settings.fast_track_min_attempts,
            reprofiling_failure_threshold=settings.reprofiling_failure_threshold,
            reprofiling_age_days=settings.reprofiling_age_days,
        )

    # ------------------------------------------------------------------
    # Table access
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._profiles)

    def __contains__(self, domain: str) -> bool:
        return domain in self._profiles

    def domains(self) -> List[str]:
        """Held domains in insertion order."""
        with self._lock:
            return list(self._profiles)

    def get(self, domain: str) -> Optional[DomainProfile]:
        """Live profile for a domain, or None. Does not affect eviction order."""
        return self._profiles.get(domain)

    def get_or_create(self, domain: str) -> DomainProfile:
        """Return the domain's profile, creating it (and evicting if full) when absent."""
        with self._lock:
            profile = self._profiles.get(domain)
            if profile is not None:
                return profile

            if len(self._profiles) >= self.max_profiles:
                self._evict_oldest()

            profile = DomainProfile(domain=domain)
            self._profiles[domain] = profile
            self._domain_locks.setdefault(domain, threading.RLock())
            logger.debug(f"Created domain profile for {domain} ({len(self._profiles)} held)")
            return profile

    def _evict_oldest(self) -> None:
        oldest = next(iter(self._profiles))
        del self._profiles[oldest]
        self._domain_locks.pop(oldest, None)
        self.evictions += 1
        logger.info(f"Evicted oldest domain profile: {oldest} ({len(self._profiles)} held)")

    def _domain_lock(self, domain: str) -> threading.RLock:
        with self._lock:
            return self._domain_locks.setdefault(domain, threading.RLock())

    def snapshot(self, domain: str) -> Optional[DomainProfile]:
        """Deep copy of a profile for planning, safe to read without locks."""
        profile = self._profiles.get(domain)
        if profile is None:
            return None
        with self._domain_lock(domain):
            return profile.model_copy(deep=True)

    def reset(self, domain: str) -> bool:
        """Forget everything learned about a domain."""
        with self._lock:
            removed = self._profiles.pop(domain, None)
            self._domain_locks.pop(domain, None)
        if removed:
            logger.info(f"Reset domain profile: {domain}")
        return removed is not None

    def clear(self) -> None:
        with self._lock:
            self._profiles.clear()
            self._domain_locks.clear()

    # ------------------------------------------------------------------
    # Strategy-level recording
    # ------------------------------------------------------------------

    def record_success(self, domain: str, strategy_name: str, result: ScrapeResult) -> None:
        """Record a valid result from a strategy."""
        try:
            profile = self.get_or_create(domain)
            with self._domain_lock(domain):
                stats = profile.successful_strategies.setdefault(
                    strategy_name, StrategySuccessStats()
                )
                job_terms = self.validator.count_job_terms(result.text)
                job_links = self.validator.count_job_links(result.links)

                stats.success_count += 1
                stats.total_attempts += 1
                stats.avg_text_length = blend(stats.avg_text_length, len(result.text or ""))
                stats.avg_links_count = blend(stats.avg_links_count, len(result.links))
                stats.avg_job_terms = blend(stats.avg_job_terms, job_terms)
                stats.avg_job_links = blend(stats.avg_job_links, job_links)
                stats.avg_interactions = blend(stats.avg_interactions, result.interaction_count)
                stats.recompute_rate()

                if result.detected_platform:
                    platforms = stats.detected_platforms
                    platforms[result.detected_platform] = platforms.get(result.detected_platform, 0) + 1

                profile.last_successful_strategy = strategy_name
                profile.last_success_at = utcnow()

                if self.learning_enabled:
                    self._append_pattern(
                        profile.success_patterns,
                        OutcomePattern(
                            strategy=strategy_name,
                            success=True,
                            text_length=len(result.text or ""),
                            links_count=len(result.links),
                            job_terms_count=job_terms,
                            job_links_count=job_links,
                            method=result.method,
                            detected_platform=result.detected_platform,
                        ),
                    )
        except Exception as e:
            logger.warning(f"Failed to record success for {domain}/{strategy_name}: {e}")

    def record_failure(
        self,
        domain: str,
        strategy_name: str,
        result: Optional[ScrapeResult] = None,
        error: ErrorLike = None,
    ) -> None:
        """
        Record a strategy attempt that produced no valid result.

        Args:
            domain: Domain key
            strategy_name: Strategy that ran
            result: Partial result, if any
            error: Exception raised or error kind, if any
        """
        try:
            profile = self.get_or_create(domain)
            with self._domain_lock(domain):
                stats = profile.failed_strategies.setdefault(strategy_name, StrategyFailureStats())
                stats.failure_count += 1
                stats.total_attempts += 1
                stats.failure_rate = stats.failure_count / stats.total_attempts * 100

                if error is not None:
                    error_type = _error_type(error)
                    stats.common_errors[error_type] = stats.common_errors.get(error_type, 0) + 1

                # A failure also lowers the success rate of a strategy that worked before
                success_stats = profile.successful_strategies.get(strategy_name)
                if success_stats is not None:
                    success_stats.total_attempts += 1
                    success_stats.recompute_rate()

                if self.learning_enabled:
                    self._append_pattern(
                        profile.failure_patterns,
                        OutcomePattern(
                            strategy=strategy_name,
                            success=False,
                            text_length=len(result.text or "") if result else 0,
                            links_count=len(result.links) if result else 0,
                            error_type=_error_type(error),
                            error_message=_error_message(error),
                        ),
                    )
        except Exception as e:
            logger.warning(f"Failed to record failure for {domain}/{strategy_name}: {e}")

    def record_performance(
        self, domain: str, strategy_name: str, elapsed: float, result: ScrapeResult
    ) -> None:
        """Record timing and quality of a valid result (elapsed in seconds)."""
        try:
            profile = self.get_or_create(domain)
            with self._domain_lock(domain):
                stats = profile.successful_strategies.get(strategy_name)
                if stats is not None:
                    stats.avg_execution_time = blend(stats.avg_execution_time, elapsed)

                previous = profile.performance_metrics.get(strategy_name)
                profile.performance_metrics[strategy_name] = PerformanceMetric(
                    last_execution_time=elapsed,
                    avg_execution_time=blend(previous.avg_execution_time, elapsed)
                    if previous
                    else elapsed,
                    quality=self.validator.calculate_result_quality(result),
                    detected_platform=result.detected_platform,
                    job_terms_found=self.validator.count_job_terms(result.text),
                    job_links_found=self.validator.count_job_links(result.links),
                )
        except Exception as e:
            logger.warning(f"Failed to record performance for {domain}/{strategy_name}: {e}")

    def record_error(
        self, domain: str, strategy_name: str, elapsed: float, error: ErrorLike = None
    ) -> None:
        """Record timing of an invalid or failed execution (elapsed in seconds)."""
        try:
            profile = self.get_or_create(domain)
            with self._domain_lock(domain):
                metric = profile.error_metrics.setdefault(strategy_name, ErrorMetric())
                metric.error_count += 1
                metric.total_time += elapsed
                metric.avg_error_time = metric.total_time / metric.error_count
                metric.last_error_message = _error_message(error)
                metric.last_error_at = utcnow()
        except Exception as e:
            logger.warning(f"Failed to record error for {domain}/{strategy_name}: {e}")

    def _append_pattern(self, history: List[OutcomePattern], pattern: OutcomePattern) -> None:
        history.append(pattern)
        if len(history) > self.pattern_history_size:
            del history[: len(history) - self.pattern_history_size]

    # ------------------------------------------------------------------
    # Call-level recording
    # ------------------------------------------------------------------

    def record_outcome(
        self, domain: str, result: Optional[ScrapeResult], success: bool
    ) -> None:
        """Update call-level totals after a terminal outcome."""
        try:
            profile = self.get_or_create(domain)
            with self._domain_lock(domain):
                profile.total_attempts += 1

                if success:
                    profile.success_count += 1
                    profile.last_success_at = utcnow()
                    if result is not None:
                        profile.avg_quality = blend(
                            profile.avg_quality, self.validator.calculate_result_quality(result)
                        )
                        if result.detected_platform:
                            profile.detected_platform = result.detected_platform
                        profile.avg_job_terms = blend(
                            profile.avg_job_terms, self.validator.count_job_terms(result.text)
                        )
                        profile.avg_job_links = blend(
                            profile.avg_job_links, self.validator.count_job_links(result.links)
                        )
                else:
                    profile.failure_count += 1
                    profile.last_failure_at = utcnow()

                profile.success_rate = profile.success_count / profile.total_attempts * 100

                if profile.total_attempts % 5 == 0:
                    logger.info(
                        f"Domain {domain} stats - success rate: {profile.success_rate:.1f}%, "
                        f"quality: {profile.avg_quality:.1f}, "
                        f"platform: {profile.detected_platform or 'None'}"
                    )
        except Exception as e:
            logger.warning(f"Failed to record outcome for {domain}: {e}")

    def record_session(self, session: SessionRecord) -> Optional[DomainProfile]:
        """
        Update the session-level profile from a finished call.

        A session counts as a success only when it produced jobs and was not
        served from a minimum-quality placeholder.
        """
        try:
            profile = self.get_or_create(session.domain)
            with self._domain_lock(session.domain):
                if session.language and session.language != "unknown":
                    if session.language != "en" or not profile.language:
                        profile.language = session.language
                elif not profile.language:
                    profile.language = "en"

                if session.url:
                    profile.last_url = session.url
                profile.session_attempts += 1
                effective_success = (
                    not session.is_minimum_cache
                    and (session.success or session.cache_created)
                    and session.jobs_found > 0
                )

                if effective_success:
                    self._record_session_success(profile, session)
                else:
                    profile.consecutive_failures += 1
                    if profile.consecutive_failures >= self.reprofiling_failure_threshold:
                        profile.mark_for_reprofiling(
                            f"{profile.consecutive_failures}_consecutive_failures"
                        )
                        logger.info(
                            f"Domain {session.domain} marked for re-profiling: "
                            f"{profile.consecutive_failures} failures"
                        )

                logger.debug(
                    f"Session recorded for {session.domain}: strategy={profile.preferred_strategy}, "
                    f"language={profile.language}, success={profile.session_success_rate}%"
                )
                return profile
        except Exception as e:
            logger.warning(f"Failed to record session for {session.domain}: {e}")
            return None

    def _record_session_success(self, profile: DomainProfile, session: SessionRecord) -> None:
        profile.session_successes += 1
        profile.consecutive_failures = 0
        profile.last_successful_scrape = utcnow()

        if profile.needs_reprofiling:
            profile.needs_reprofiling = False
            profile.reprofiling_reason = None
            profile.reprofiling_triggered_at = None
            logger.info(f"✓ Domain {profile.domain} re-profiling completed")

        if session.strategy_used:
            profile.preferred_strategy = session.strategy_used
        if session.was_headless:
            profile.headless = True
        if session.platform:
            profile.detected_platform = session.platform

        duration = session.duration_seconds
        if duration > 0:
            profile.avg_session_time = (
                duration if profile.avg_session_time == 0 else blend(profile.avg_session_time, duration)
            )
        profile.last_jobs = session.jobs_found

    def record_hit(self, domain: str, source: str = "scraping") -> None:
        """Count a request served from cache ("cache", "cache-minimum") or by scraping."""
        try:
            profile = self.get_or_create(domain)
            with self._domain_lock(domain):
                profile.hit_count += 1
                profile.last_hit_at = utcnow()
                if source.startswith("cache"):
                    profile.cache_hits += 1
                else:
                    profile.scraping_hits += 1
        except Exception as e:
            logger.warning(f"Failed to record hit for {domain}: {e}")

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def fast_track_recommendation(self, domain: str) -> Optional[FastTrackDecision]:
        """
        Return the proven strategy for a domain, or None when fast-track is not allowed.

        Requires a preferred strategy, a session success rate at or above the
        threshold, enough recorded sessions, no pending re-profiling, and a last
        success more recent than the re-profiling age (older profiles are flagged).
        """
        profile = self._profiles.get(domain)
        if profile is None:
            return None

        with self._domain_lock(domain):
            if not profile.preferred_strategy:
                logger.debug(f"No fast-track for {domain}: no preferred strategy")
                return None

            if (
                profile.last_successful_scrape
                and utcnow() - profile.last_successful_scrape > self.reprofiling_age
                and not profile.needs_reprofiling
            ):
                profile.mark_for_reprofiling("monthly_reprofiling_required")
                logger.info(f"Domain {domain} marked for periodic re-profiling")

            rate = profile.session_success_rate
            if rate < self.fast_track_threshold:
                logger.debug(f"No fast-track for {domain}: success rate too low ({rate}%)")
                return None
            if profile.session_attempts < self.fast_track_min_attempts:
                logger.debug(f"No fast-track for {domain}: insufficient attempts")
                return None
            if profile.needs_reprofiling:
                logger.debug(f"No fast-track for {domain}: {profile.reprofiling_reason}")
                return None

            logger.info(
                f"Fast-track approved for {domain}: {profile.preferred_strategy} ({rate}% success)"
            )
            return FastTrackDecision(
                strategy=profile.preferred_strategy,
                success_rate=rate,
                language=profile.language,
                platform=profile.detected_platform,
                headless=profile.headless,
                avg_time=profile.avg_session_time,
            )

    def force_reprofile_all(self) -> int:
        """Flag every held profile for re-profiling. Returns the number flagged."""
        with self._lock:
            profiles = list(self._profiles.values())
        for profile in profiles:
            with self._domain_lock(profile.domain):
                profile.mark_for_reprofiling("forced_reprofiling")
        logger.info(f"Forced re-profiling on {len(profiles)} domains")
        return len(profiles)

    def reprofiling_urls(self) -> List[str]:
        """Last scraped URL of every profile flagged for re-profiling, oldest flag first."""
        with self._lock:
            flagged = [p for p in self._profiles.values() if p.needs_reprofiling and p.last_url]
        flagged.sort(key=lambda p: p.reprofiling_triggered_at or p.created_at)
        return [p.last_url for p in flagged]

    # ------------------------------------------------------------------
    # Persistence round-trip
    # ------------------------------------------------------------------

    def export_all(self) -> Dict[str, Dict[str, Any]]:
        """JSON-serializable copy of every profile, in insertion order."""
        with self._lock:
            profiles = list(self._profiles.values())
        return {p.domain: p.model_dump(mode="json") for p in profiles}

    def import_all(self, data: Dict[str, Any]) -> int:
        """
        Load profiles exported by ``export_all``.

        Malformed entries are skipped with a warning. The bound is enforced on
        import, so importing more than ``max_profiles`` entries keeps the last ones.

        Returns:
            Number of profiles imported
        """
        if not isinstance(data, dict):
            logger.warning(f"Ignoring profile import of type {type(data).__name__}")
            return 0

        imported = 0
        for domain, raw in data.items():
            try:
                profile = DomainProfile.model_validate(raw)
            except (ValidationError, TypeError) as e:
                logger.warning(f"Skipping malformed profile for {domain}: {e}")
                continue

            with self._lock:
                if domain not in self._profiles and len(self._profiles) >= self.max_profiles:
                    self._evict_oldest()
                self._profiles[domain] = profile
                self._domain_locks.setdefault(domain, threading.RLock())
            imported += 1

        logger.info(f"Imported {imported} domain profiles")
        return imported

    def stats(self) -> Dict[str, Any]:
        """Aggregate statistics over held profiles."""
        with self._lock:
            profiles = list(self._profiles.values())

        with_sessions = [p for p in profiles if p.session_attempts]
        avg_rate = (
            sum(p.session_success_rate for p in with_sessions) / len(with_sessions)
            if with_sessions
            else 0.0
        )

        return {
            "total_profiles": len(profiles),
            "max_profiles": self.max_profiles,
            "evictions": self.evictions,
            "with_preferred_strategy": sum(1 for p in profiles if p.preferred_strategy),
            "needs_reprofiling": sum(1 for p in profiles if p.needs_reprofiling),
            "headless_domains": sum(1 for p in profiles if p.headless),
            "avg_session_success_rate": round(avg_rate, 1),
            "total_hits": sum(p.hit_count for p in profiles),
            "cache_hits": sum(p.cache_hits for p in profiles),
        }

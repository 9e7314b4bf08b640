"""
Scrape orchestrator: the control loop that picks, sequences, times out, retries
and learns from extraction strategies.

Per call:
    cache check -> fast-track check -> platform/language detection -> candidate
    filtering -> plan -> attempt loop -> success (persist + learn) or
    exhaustion (minimum placeholder, flagged for retry)

Strategies run on a shared worker pool so every step can be bounded by its own
timeout and by the call's global deadline. Each step gets a child of the call's
cancellation token; a step timeout cancels the child and the global deadline
cancels the call token, so cooperative strategies stop at their next network
boundary and give their worker back.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from typing import Any, Dict, List, Optional, Tuple

from career_scraper.cache import ResultCache, create_cache
from career_scraper.config import ScraperSettings
from career_scraper.deadline import CancellationToken, Deadline
from career_scraper.degradation import DegradationWriter
from career_scraper.dictionaries import DEFAULT_LANGUAGE, DictionaryProvider
from career_scraper.exceptions import (
    InsufficientTimeError,
    PersistenceError,
    ScrapeCancelled,
    StepErrorKind,
)
from career_scraper.fetcher import FetchError, HtmlFetcher
from career_scraper.logging_config import get_structured_logger
from career_scraper.metrics import ScrapingMetrics
from career_scraper.models import (
    PlanEntry,
    ScrapeOptions,
    ScrapeResult,
    ScrapeStatus,
    SessionRecord,
    StepOutcome,
)
from career_scraper.planner import ExecutionPlanner
from career_scraper.platforms import PlatformDetector
from career_scraper.profiles.models import DomainProfile, FastTrackDecision
from career_scraper.profiles.store import DomainProfileStore
from career_scraper.strategies.base import KIND_HEADLESS, KIND_IFRAME, BaseStrategy
from career_scraper.strategies.registry import StrategyRegistry
from career_scraper.utils.url_utils import extract_domain
from career_scraper.validation import ResultValidator

logger = logging.getLogger(__name__)
slog = get_structured_logger(__name__)

# Status reasons and retry hints attached to non-ok results
REASON_MINIMUM_CACHE_SERVED = "minimum_cache_served"
REASON_MINIMUM_CACHE_CREATED = "all_steps_failed_minimum_cache_created"
REASON_NO_CACHE_CREATED = "all_steps_failed_no_cache_created"
REASON_GLOBAL_TIMEOUT = "global_timeout"
REASON_UNEXPECTED_ERROR = "unexpected_error"

RETRY_ALTERNATIVE_STEPS = "alternative_steps"
RETRY_BACKGROUND_RESCRAPING = "background_rescraping"
RETRY_FULL_LATER = "full_retry_later"

FAST_TRACK_DEFAULT_TIMEOUT = 30.0


class _GlobalTimeout(Exception):
    """The call's global deadline elapsed."""


class _StepTimeout(Exception):
    """A step exceeded its own timeout."""


class ScrapeOrchestrator:
    """
    Adaptive multi-strategy scraping engine.

    Usage:
        orchestrator = ScrapeOrchestrator(load_settings())
        result = orchestrator.scrape("https://example.com/careers", {"search_query": "engineer"})
        if result.status != "ok":
            schedule_retry(result.retry_strategy)
        orchestrator.close()

    ``scrape`` never raises; every outcome is a ScrapeResult carrying status metadata.
    """

    def __init__(
        self,
        settings: Optional[ScraperSettings] = None,
        registry: Optional[StrategyRegistry] = None,
        cache: Optional[ResultCache] = None,
        profiles: Optional[DomainProfileStore] = None,
        detector: Optional[PlatformDetector] = None,
        dictionaries: Optional[DictionaryProvider] = None,
        metrics: Optional[ScrapingMetrics] = None,
        fetcher: Optional[HtmlFetcher] = None,
        validator: Optional[ResultValidator] = None,
        planner: Optional[ExecutionPlanner] = None,
    ):
        self.settings = settings or ScraperSettings()
        self.dictionaries = dictionaries or DictionaryProvider()
        self.detector = detector or PlatformDetector()
        self.validator = validator or ResultValidator(
            self.dictionaries, min_content_length=self.settings.min_content_length
        )
        self.registry = registry or StrategyRegistry.with_builtins(self.dictionaries)
        self.cache = cache if cache is not None else create_cache(self.settings)
        self.profiles = profiles or DomainProfileStore.from_settings(self.settings, self.validator)
        self.metrics = metrics or ScrapingMetrics(max_domains=self.settings.max_profiles)
        self.fetcher = fetcher or HtmlFetcher(
            timeout=self.settings.detection_timeout,
            min_length=self.settings.detection_min_length,
        )
        self.planner = planner or ExecutionPlanner(self.settings, self.detector, self.dictionaries)
        self.degradation = DegradationWriter(self.cache, self.metrics)

        self._executor = ThreadPoolExecutor(
            max_workers=self.settings.worker_pool_size, thread_name_prefix="strategy"
        )

        logger.info(
            f"Orchestrator ready: {len(self.registry)} strategies, "
            f"global timeout {self.settings.global_timeout}s, max retries {self.settings.max_retries}"
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def scrape(self, url: str, options: Any = None) -> ScrapeResult:
        """
        Scrape a career page.

        Args:
            url: Career page URL
            options: None, a dict, or ScrapeOptions

        Returns:
            ScrapeResult with ``status`` ok, degraded or failed
        """
        token = CancellationToken()
        slog.scrape_activity(url, "STARTED")

        try:
            opts = ScrapeOptions.from_value(options)
            deadline = Deadline(opts.timeout_seconds or self.settings.global_timeout)
            result = self._perform_scrape(url, opts, deadline, token)

        except _GlobalTimeout:
            token.cancel("global timeout")
            return self._handle_global_timeout(url, options)

        except Exception as e:
            token.cancel("unexpected error")
            logger.exception(f"✗ Unexpected error scraping {url}: {e}")
            return ScrapeResult(url=url, is_empty=True).with_status(
                ScrapeStatus.FAILED, REASON_UNEXPECTED_ERROR, True, RETRY_FULL_LATER
            )

        slog.scrape_activity(
            url,
            result.status.upper(),
            {"method": result.method, "reason": result.status_reason, "links": len(result.links)},
        )
        return result

    def get_system_stats(self) -> Dict[str, Any]:
        """Aggregated profile, cache and metrics statistics."""
        return {
            "profiles": self.profiles.stats(),
            "cache": self.cache.get_stats(),
            "metrics": self.metrics.get_summary(),
            "steps": self.metrics.get_step_stats(),
            "strategies": self.registry.names(),
            "settings": {
                "global_timeout": self.settings.global_timeout,
                "max_retries": self.settings.max_retries,
                "max_profiles": self.settings.max_profiles,
            },
        }

    def force_reprofile_all(self) -> int:
        """Flag every known domain for re-profiling; disables fast-track until re-learned."""
        return self.profiles.force_reprofile_all()

    def close(self) -> None:
        """Release strategies and the worker pool."""
        self.registry.close_all()
        self._executor.shutdown(wait=False, cancel_futures=True)
        logger.info("Orchestrator closed")

    def __enter__(self) -> "ScrapeOrchestrator":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _perform_scrape(
        self, url: str, opts: ScrapeOptions, deadline: Deadline, token: CancellationToken
    ) -> ScrapeResult:
        domain = extract_domain(url)

        if not opts.force_refresh:
            cached = self._check_cache(url, domain)
            if cached is not None:
                return cached

        decision = self.profiles.fast_track_recommendation(domain)
        if decision is not None:
            strategy = self.registry.get(decision.strategy)
            if strategy is not None:
                fast_result = self._run_fast_track(url, domain, strategy, decision, opts, deadline, token)
                if fast_result is not None:
                    return fast_result
            else:
                logger.info(f"Preferred strategy {decision.strategy} for {domain} is not registered")

        profile = self.profiles.get_or_create(domain)
        html_content, platform, language = self._detect(url, opts, decision, profile, token)

        pool = self.registry.all()
        candidates = None
        if decision is not None:
            candidates = self.planner.profile_candidates(pool, decision.strategy)
        if candidates is None:
            candidates = self.planner.filter_candidates(pool, platform)

        snapshot = self.profiles.snapshot(domain)
        plan = self.planner.build_plan(url, domain, snapshot, candidates, opts, platform)
        slog.plan_activity(
            domain,
            [entry.name for entry in plan],
            {"candidates": f"{len(candidates)}/{len(pool)}", "platform": platform, "language": language},
        )

        session = SessionRecord(url=url, domain=domain, platform=platform, language=language)
        context: Dict[str, Any] = {
            "domain": domain,
            "url": url,
            "detected_platform": platform,
            "html_content": html_content,
            "detected_language": language,
            "dictionary": self.dictionaries.get(language),
            "search_query": opts.search_query,
            "previous_result": None,
        }

        result = self._run_attempts(url, domain, plan, context, opts, snapshot, session, deadline, token)

        if result is not None:
            return self._handle_success(url, domain, result, session, opts, language)
        return self._handle_exhaustion(url, domain, session, opts, platform, language)

    def _check_cache(self, url: str, domain: str) -> Optional[ScrapeResult]:
        try:
            cached = self.cache.get(url)
        except Exception as e:
            logger.warning(f"Cache error for {url}: {e}")
            self.metrics.record_step_error(url, "cache", StepErrorKind.CACHE_ERROR, str(e))
            return None

        if cached is None:
            self.metrics.record_cache_miss(url)
            return None

        self.metrics.record_cache_hit(url)
        content_stats = {
            "text_length": len(cached.text or ""),
            "links_count": len(cached.links),
            "detected_platform": cached.detected_platform,
            "cache_quality": cached.cache_quality,
        }

        if cached.is_degraded:
            started = self.metrics.record_step_attempt(url, "cache-minimum")
            self.metrics.record_step_success(url, "cache-minimum", started, {**content_stats, "degraded": True})
            self.profiles.record_hit(domain, "cache-minimum")
            slog.cache_activity(url, "HIT_MINIMUM")
            return cached.with_status(
                ScrapeStatus.DEGRADED, REASON_MINIMUM_CACHE_SERVED, True, RETRY_ALTERNATIVE_STEPS
            )

        started = self.metrics.record_step_attempt(url, "cache")
        self.metrics.record_step_success(url, "cache", started, content_stats)
        self.profiles.record_hit(domain, "cache")
        slog.cache_activity(url, "HIT", {"quality": cached.cache_quality})
        return cached.with_status(ScrapeStatus.OK)

    def _detect(
        self,
        url: str,
        opts: ScrapeOptions,
        decision: Optional[FastTrackDecision],
        profile: DomainProfile,
        token: CancellationToken,
    ) -> Tuple[Optional[str], Optional[str], str]:
        """Return (html_content, platform, language) for the session."""
        html_content: Optional[str] = None

        if decision is not None:
            platform = decision.platform
            profile_language = decision.language
        else:
            profile_language = profile.language
            try:
                html_content = self.fetcher.fetch(url, token)
                platform = self.detector.detect(url, html_content)
            except (FetchError, ScrapeCancelled) as e:
                logger.info(f"Could not fetch HTML for platform detection: {e}")
                platform = self.detector.detect(url)

        if not platform and opts.special_platform:
            platform = opts.special_platform

        language = (
            opts.detected_language
            or profile_language
            or self.dictionaries.detect_language(html_content)
            or DEFAULT_LANGUAGE
        )
        if platform:
            logger.info(f"Platform detected for {url}: {platform}")
        return html_content, platform, language

    def _run_attempts(
        self,
        url: str,
        domain: str,
        plan: List[PlanEntry],
        context: Dict[str, Any],
        opts: ScrapeOptions,
        snapshot: Optional[DomainProfile],
        session: SessionRecord,
        deadline: Deadline,
        token: CancellationToken,
    ) -> Optional[ScrapeResult]:
        max_attempts = self.settings.max_retries
        if opts.max_retries is not None:
            max_attempts = opts.max_retries

        for attempt in range(1, max_attempts + 1):
            logger.info(f"Attempt {attempt}/{max_attempts} for {url}")

            for entry in plan:
                if deadline.expired:
                    raise _GlobalTimeout()

                outcome, result = self._execute_entry(
                    entry, url, domain, context, opts, attempt, snapshot, session, deadline, token
                )
                if outcome == StepOutcome.SUCCESS:
                    logger.info(f"✓ Strategy {entry.name} succeeded on attempt {attempt}")
                    return result

            if attempt < max_attempts:
                context.update(self.adjust_context_for_retry(context, attempt + 1, max_attempts))
                delay = min(self.settings.retry_delay_step * attempt, self.settings.retry_delay_cap)
                logger.info(f"Attempt {attempt} failed, retrying in {delay}s")
                token.wait(min(delay, deadline.remaining()))
                if deadline.expired:
                    raise _GlobalTimeout()

        logger.warning(f"✗ All attempts failed for {url}")
        return None

    @staticmethod
    def adjust_context_for_retry(
        context: Dict[str, Any], attempt: int, max_attempts: int
    ) -> Dict[str, Any]:
        """
        Context for an upcoming retry attempt.

        Args:
            context: Current step context
            attempt: Number of the attempt about to run (2 for the first retry)
            max_attempts: Attempt budget for the call

        Returns:
            New context dict with retry flags set
        """
        return {
            **context,
            "retry_attempt": attempt,
            "more_aggressive": attempt > 1,
            "extended_timeout": False,
            "enable_fallbacks": attempt > 1,
            "use_alternative_selectors": attempt > 1,
            "force_deep_scraping": attempt == max_attempts,
        }

    # ------------------------------------------------------------------
    # Step execution
    # ------------------------------------------------------------------

    def _execute_entry(
        self,
        entry: PlanEntry,
        url: str,
        domain: str,
        context: Dict[str, Any],
        opts: ScrapeOptions,
        attempt: int,
        snapshot: Optional[DomainProfile],
        session: SessionRecord,
        deadline: Deadline,
        token: CancellationToken,
    ) -> Tuple[StepOutcome, Optional[ScrapeResult]]:
        strategy = entry.strategy
        name = strategy.name
        platform = context.get("detected_platform")
        language = context.get("detected_language")

        started = self.metrics.record_step_attempt(url, name)
        step_started = time.monotonic()

        try:
            applicable = strategy.is_applicable(url, context)
        except Exception as e:
            logger.warning(f"Applicability check failed for {name}: {e}")
            applicable = False

        if not applicable:
            slog.step_activity(name, "not_applicable")
            self.metrics.record_step_error(
                url, name, StepErrorKind.NOT_APPLICABLE, "Step not applicable", started
            )
            return StepOutcome.NOT_APPLICABLE, None

        step_options = {
            **opts.model_dump(exclude_none=True),
            **entry.config,
            **context,
            "attempt": attempt,
            "domain_profile": snapshot,
        }
        session.was_headless = strategy.headless or strategy.kind in (KIND_HEADLESS, KIND_IFRAME)
        slog.step_activity(name, "executing", {"timeout": entry.config.get("timeout"), "attempt": attempt})

        try:
            result = self._run_step(strategy, url, step_options, deadline, token)
        except _GlobalTimeout:
            self.profiles.record_error(domain, name, time.monotonic() - step_started, "GlobalTimeout")
            raise
        except _StepTimeout as e:
            elapsed = time.monotonic() - step_started
            slog.step_activity(name, "timeout", {"elapsed": f"{elapsed:.1f}s"})
            self.metrics.record_step_error(url, name, StepErrorKind.STEP_TIMEOUT, str(e), started)
            self.profiles.record_failure(domain, name, None, StepErrorKind.STEP_TIMEOUT)
            self.profiles.record_error(domain, name, elapsed, e)
            return StepOutcome.TIMEOUT, None
        except InsufficientTimeError as e:
            slog.step_activity(name, "error", {"error": str(e)})
            self.metrics.record_step_error(url, name, StepErrorKind.EXECUTION_ERROR, str(e), started)
            return StepOutcome.ERROR, None
        except Exception as e:
            elapsed = time.monotonic() - step_started
            slog.step_activity(name, "error", {"error": str(e)})
            self.metrics.record_step_error(url, name, StepErrorKind.EXECUTION_ERROR, str(e), started)
            self.profiles.record_failure(domain, name, None, e)
            self.profiles.record_error(domain, name, elapsed, e)
            return StepOutcome.ERROR, None

        elapsed = time.monotonic() - step_started

        if result is not None and not self._locally_valid(strategy, result):
            logger.debug(f"Strategy {name} returned a result that failed its own check")
            self.profiles.record_error(domain, name, elapsed, "Invalid result")
            result = None

        if result is None:
            slog.step_activity(name, "no_result")
            self.metrics.record_step_error(url, name, StepErrorKind.NO_RESULT, "No result returned", started)
            self.profiles.record_failure(domain, name, None, None)
            return StepOutcome.NO_RESULT, None

        if self.validator.is_valid(result, platform, language):
            result = result.model_copy(
                update={
                    "detected_platform": result.detected_platform or platform,
                    "detected_language": language,
                }
            )
            self.metrics.record_step_success(
                url,
                name,
                started,
                {
                    "text_length": len(result.text or ""),
                    "links_count": len(result.links),
                    "detected_platform": result.detected_platform,
                    "job_terms_found": self.validator.count_job_terms(result.text, language),
                    "job_links_found": self.validator.count_job_links(result.links, language),
                },
            )
            self.profiles.record_success(domain, name, result)
            self.profiles.record_performance(domain, name, elapsed, result)
            session.strategy_used = name
            session.platform = result.detected_platform
            slog.step_activity(name, "success", {"elapsed": f"{elapsed:.1f}s", "links": len(result.links)})
            return StepOutcome.SUCCESS, result

        if not self.validator.is_partial(result):
            slog.step_activity(name, "invalid")
            self.metrics.record_step_error(
                url, name, StepErrorKind.INVALID_RESULT, "Result failed validation", started
            )
            self.profiles.record_failure(domain, name, result, StepErrorKind.INVALID_RESULT)
            return StepOutcome.INVALID, None

        slog.step_activity(name, "partial", {"text_length": len(result.text or "")})
        context["previous_result"] = result
        self.metrics.record_step_error(
            url, name, StepErrorKind.PARTIAL_RESULT, "Partial result returned", started
        )
        self.profiles.record_failure(domain, name, result, None)
        return StepOutcome.PARTIAL, None

    def _locally_valid(self, strategy: BaseStrategy, result: ScrapeResult) -> bool:
        try:
            return bool(strategy.is_result_valid(result))
        except Exception as e:
            logger.warning(f"Result check failed for {strategy.name}: {e}")
            return False

    def _run_step(
        self,
        strategy: BaseStrategy,
        url: str,
        step_options: Dict[str, Any],
        deadline: Deadline,
        token: CancellationToken,
    ) -> Optional[ScrapeResult]:
        """
        Run one strategy on the worker pool under its timeout and the global deadline.

        The step timeout starts when a worker picks the step up, not when it is
        queued. The strategy gets its own child of the call token in
        ``cancel_token``; it is cancelled when the step times out.

        Raises:
            InsufficientTimeError: Less than the minimum step budget is left
            _StepTimeout: The strategy exceeded its own timeout
            _GlobalTimeout: The strategy was cut off by the global deadline
        """
        remaining = deadline.remaining()
        if remaining < self.settings.min_step_budget:
            raise InsufficientTimeError(
                f"Insufficient time remaining for step execution ({remaining:.1f}s)"
            )

        requested = float(step_options.get("timeout") or strategy.default_timeout)
        step_token = token.child()
        step_options["cancel_token"] = step_token
        window: Dict[str, Any] = {}
        picked_up = threading.Event()

        def run_on_worker() -> Optional[ScrapeResult]:
            left = deadline.remaining()
            allowed = left - self.settings.step_deadline_margin
            window["started"] = time.monotonic()
            window["timeout"] = min(requested, allowed)
            window["deadline_bound"] = allowed <= requested
            picked_up.set()
            if left < self.settings.min_step_budget:
                raise InsufficientTimeError(
                    f"Insufficient time remaining for step execution ({left:.1f}s)"
                )
            step_options["timeout"] = window["timeout"]
            return strategy.scrape(url, step_options)

        future = self._executor.submit(run_on_worker)
        try:
            if not picked_up.wait(deadline.remaining()) and future.cancel():
                logger.warning(f"No free worker for {strategy.name} before the deadline")
                token.cancel("global timeout")
                raise _GlobalTimeout()
            picked_up.wait()

            wait_for = window["timeout"] - (time.monotonic() - window["started"])
            try:
                return future.result(timeout=max(0.0, wait_for))
            except FuturesTimeout:
                step_token.cancel("step timeout")
                if window["deadline_bound"]:
                    token.cancel("global timeout")
                    raise _GlobalTimeout()
                raise _StepTimeout(f"Strategy {strategy.name} exceeded {window['timeout']:.1f}s")
        finally:
            token.release(step_token)

    # ------------------------------------------------------------------
    # Fast-track
    # ------------------------------------------------------------------

    def _run_fast_track(
        self,
        url: str,
        domain: str,
        strategy: BaseStrategy,
        decision: FastTrackDecision,
        opts: ScrapeOptions,
        deadline: Deadline,
        token: CancellationToken,
    ) -> Optional[ScrapeResult]:
        """Run the proven strategy directly. Returns None to fall through to full planning."""
        name = strategy.name
        language = opts.detected_language or decision.language or DEFAULT_LANGUAGE
        dictionary = self.dictionaries.get(language)
        logger.info(f"Fast-track for {domain}: {name} ({decision.success_rate}% success)")

        if decision.avg_time:
            timeout = max(decision.avg_time * self.settings.timeout_multiplier, strategy.default_timeout)
        else:
            timeout = FAST_TRACK_DEFAULT_TIMEOUT

        started = self.metrics.record_step_attempt(url, name)
        step_started = time.monotonic()
        step_options = {
            **opts.model_dump(exclude_none=True),
            "timeout": timeout,
            "detected_platform": decision.platform,
            "detected_language": language,
            "dictionary": dictionary,
            "search_query": opts.search_query,
            "fast_track": True,
        }

        try:
            result = self._run_step(strategy, url, step_options, deadline, token)
        except _GlobalTimeout:
            raise
        except Exception as e:
            logger.warning(f"✗ Fast-track error for {domain}: {e}")
            self.metrics.record_step_error(url, name, StepErrorKind.FAST_TRACK_ERROR, str(e), started)
            return None

        if result is None or not self.validator.is_valid(result, decision.platform, language):
            logger.info(f"✗ Fast-track failed for {domain}, falling back to full planning")
            self.metrics.record_step_error(
                url, name, StepErrorKind.FAST_TRACK_FAILED, "Fast-track execution failed", started
            )
            return None

        elapsed = time.monotonic() - step_started
        result = result.model_copy(
            update={
                "detected_platform": decision.platform or result.detected_platform,
                "detected_language": language,
            }
        )
        jobs_found = self.validator.extract_job_count(result, language)
        self.metrics.record_step_success(
            url,
            name,
            started,
            {
                "text_length": len(result.text or ""),
                "links_count": len(result.links),
                "detected_platform": result.detected_platform,
                "fast_track": True,
            },
        )

        session = SessionRecord(
            url=url,
            domain=domain,
            strategy_used=name,
            was_headless=strategy.headless or strategy.kind in (KIND_HEADLESS, KIND_IFRAME),
            fast_track=True,
        )
        cache_created = self.degradation.save_result(url, result)
        session.finish(
            success=True,
            content_text=result.text or "",
            jobs_found=jobs_found,
            platform=result.detected_platform,
            language=language,
            cache_created=cache_created,
        )
        self._record_session(session, opts)

        self.profiles.record_success(domain, name, result)
        self.profiles.record_performance(domain, name, elapsed, result)
        self.profiles.record_outcome(domain, result, True)
        self.profiles.record_hit(domain, "scraping")

        logger.info(f"✓ Fast-track success for {domain}: {jobs_found} jobs")
        return result.model_copy(update={"jobs_found": jobs_found})

    # ------------------------------------------------------------------
    # Terminal outcomes
    # ------------------------------------------------------------------

    def _handle_success(
        self,
        url: str,
        domain: str,
        result: ScrapeResult,
        session: SessionRecord,
        opts: ScrapeOptions,
        language: str,
    ) -> ScrapeResult:
        jobs_found = self.validator.extract_job_count(result, language)
        self.profiles.record_hit(domain, "scraping")

        cache_created = self.degradation.save_result(url, result)
        session.finish(
            success=True,
            content_text=result.text or "",
            jobs_found=jobs_found,
            platform=result.detected_platform,
            language=language,
            cache_created=cache_created,
        )
        self._record_session(session, opts)
        self.profiles.record_outcome(domain, result, True)

        return result.model_copy(update={"jobs_found": jobs_found})

    def _handle_exhaustion(
        self,
        url: str,
        domain: str,
        session: SessionRecord,
        opts: ScrapeOptions,
        platform: Optional[str],
        language: str,
    ) -> ScrapeResult:
        try:
            minimum = self.degradation.save_minimum(url)
        except PersistenceError as e:
            logger.error(f"✗ {e}")
            return ScrapeResult(url=url, is_empty=True).with_status(
                ScrapeStatus.FAILED, REASON_NO_CACHE_CREATED, True, RETRY_FULL_LATER
            )

        session.finish(
            success=False,
            error_message="All scraping attempts failed",
            strategy_used=session.strategy_used or "failed-minimum-cache",
            platform=platform,
            language=language,
            cache_created=True,
            jobs_found=0,
            is_minimum_cache=True,
        )
        self._record_session(session, opts)
        self.profiles.record_outcome(domain, minimum, False)

        return minimum.with_status(
            ScrapeStatus.DEGRADED, REASON_MINIMUM_CACHE_CREATED, True, RETRY_BACKGROUND_RESCRAPING
        )

    def _handle_global_timeout(self, url: str, options: Any) -> ScrapeResult:
        domain = extract_domain(url)
        self.metrics.record_step_error(
            url, "global", StepErrorKind.GLOBAL_TIMEOUT, "Global timeout reached"
        )

        opts = ScrapeOptions.from_value(options)
        session = SessionRecord(url=url, domain=domain)
        session.finish(success=False, error_message="Global timeout reached")
        self._record_session(session, opts)
        self.profiles.record_outcome(domain, None, False)

        return ScrapeResult(url=url, is_empty=True).with_status(
            ScrapeStatus.FAILED, REASON_GLOBAL_TIMEOUT, True, RETRY_FULL_LATER
        )

    def _record_session(self, session: SessionRecord, opts: ScrapeOptions) -> None:
        self.metrics.record_session(session)
        if not opts.skip_profiling:
            self.profiles.record_session(session)
            slog.profile_activity(
                session.domain,
                "UPDATED",
                {"strategy": session.strategy_used, "success": session.success},
            )

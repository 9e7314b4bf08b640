"""Shared fixtures and fake collaborators for the career scraper tests."""

import time
from typing import Any, Callable, Dict, List, Optional, Union
from unittest.mock import Mock

import pytest

from career_scraper.cache import MemoryResultCache
from career_scraper.config import ScraperSettings
from career_scraper.dictionaries import DictionaryProvider
from career_scraper.fetcher import FetchError, HtmlFetcher
from career_scraper.models import JobLink, ScrapeResult
from career_scraper.orchestrator import ScrapeOrchestrator
from career_scraper.platforms import PlatformDetector
from career_scraper.profiles.store import DomainProfileStore
from career_scraper.strategies.base import KIND_LIGHTWEIGHT, BaseStrategy
from career_scraper.strategies.registry import StrategyRegistry
from career_scraper.validation import ResultValidator

CAREERS_URL = "https://acme.example/careers"

JOB_TEXT = (
    "We are hiring! Open positions at Acme: Senior Software Engineer, Backend Developer, "
    "Product Manager and Data Analyst. Apply today and help us build the future of work."
)


def make_result(
    url: str = CAREERS_URL,
    text: str = JOB_TEXT,
    links: Optional[List[JobLink]] = None,
    **kwargs: Any,
) -> ScrapeResult:
    """A result that passes both the strategy-local and the global validation."""
    if links is None:
        links = [
            JobLink(url=f"{url}/jobs/1", text="Senior Software Engineer", is_job_posting=True),
            JobLink(url=f"{url}/jobs/2", text="Backend Developer", is_job_posting=True),
        ]
    return ScrapeResult(url=url, text=text, links=links, **kwargs)


ResultSource = Union[None, ScrapeResult, Exception, Callable[[str, Dict[str, Any]], Any]]


class FakeStrategy(BaseStrategy):
    """
    Strategy returning scripted outcomes.

    ``outcomes`` is consumed one entry per call (the last entry repeats). Each entry
    is a ScrapeResult, None, an exception to raise, or a callable(url, options).
    """

    def __init__(
        self,
        name: str,
        outcomes: Optional[List[ResultSource]] = None,
        priority: int = 10,
        kind: str = KIND_LIGHTWEIGHT,
        default_timeout: float = 5.0,
        applicable: bool = True,
        delay: float = 0.0,
    ):
        super().__init__()
        self.name = name
        self.priority = priority
        self.kind = kind
        self.default_timeout = default_timeout
        self.applicable = applicable
        self.delay = delay
        self.outcomes: List[ResultSource] = list(outcomes) if outcomes is not None else [None]
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    def is_applicable(self, url: str, context: Dict[str, Any]) -> bool:
        return self.applicable

    def scrape(self, url: str, options: Dict[str, Any]) -> Optional[ScrapeResult]:
        self.calls.append(options)
        index = min(len(self.calls) - 1, len(self.outcomes) - 1)
        outcome = self.outcomes[index]

        if self.delay:
            token = options.get("cancel_token")
            if token is not None:
                token.wait(self.delay)
                token.raise_if_cancelled()
            else:
                time.sleep(self.delay)

        if isinstance(outcome, Exception):
            raise outcome
        if callable(outcome):
            return outcome(url, options)
        return outcome

    def close(self) -> None:
        self.closed = True

    @property
    def call_count(self) -> int:
        return len(self.calls)


@pytest.fixture
def dictionaries():
    """Packaged dictionaries."""
    return DictionaryProvider()


@pytest.fixture
def validator(dictionaries):
    return ResultValidator(dictionaries)


@pytest.fixture
def settings():
    """Fast settings: no retry delays, in-memory cache, short global budget."""
    return ScraperSettings(
        global_timeout=10,
        retry_delay_step=0,
        retry_delay_cap=0,
        min_step_budget=0.5,
        step_deadline_margin=0.2,
        cache_backend="memory",
        batch_pacing_delay=0,
        worker_pool_size=4,
    )


@pytest.fixture
def failing_fetcher():
    """Detection fetcher that never reaches the network."""
    fetcher = Mock(spec=HtmlFetcher)
    fetcher.fetch.side_effect = FetchError("offline")
    return fetcher


@pytest.fixture
def cache():
    return MemoryResultCache(ttl_seconds=3600)


@pytest.fixture
def store(validator):
    return DomainProfileStore(max_profiles=100, validator=validator)


@pytest.fixture
def make_orchestrator(settings, cache, store, dictionaries, validator, failing_fetcher):
    """Factory building an orchestrator around the given fake strategies."""
    created = []

    def _make(*strategies: BaseStrategy, **overrides: Any) -> ScrapeOrchestrator:
        kwargs = {
            "settings": settings,
            "registry": StrategyRegistry(strategies),
            "cache": cache,
            "profiles": store,
            "detector": PlatformDetector(),
            "dictionaries": dictionaries,
            "validator": validator,
            "fetcher": failing_fetcher,
        }
        kwargs.update(overrides)
        orchestrator = ScrapeOrchestrator(**kwargs)
        created.append(orchestrator)
        return orchestrator

    yield _make

    for orchestrator in created:
        orchestrator.close()

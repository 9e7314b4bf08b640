"""Adaptive multi-strategy scraping engine for corporate career pages."""

from career_scraper.background import BackgroundRescraper
from career_scraper.batch import BatchScrapeRunner
from career_scraper.config import ScraperSettings, load_settings
from career_scraper.exceptions import (
    ConfigurationError,
    InsufficientTimeError,
    PersistenceError,
    ScrapeCancelled,
    ScraperError,
    StrategyError,
)
from career_scraper.models import JobLink, ScrapeOptions, ScrapeResult, ScrapeStatus
from career_scraper.orchestrator import ScrapeOrchestrator

__all__ = [
    "BackgroundRescraper",
    "BatchScrapeRunner",
    "ConfigurationError",
    "InsufficientTimeError",
    "JobLink",
    "PersistenceError",
    "ScrapeCancelled",
    "ScrapeOptions",
    "ScrapeOrchestrator",
    "ScrapeResult",
    "ScrapeStatus",
    "ScraperError",
    "ScraperSettings",
    "StrategyError",
    "load_settings",
]

"""Main entry point for the career scraper."""

import argparse
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from career_scraper.background import BackgroundRescraper
from career_scraper.batch import BatchScrapeRunner
from career_scraper.config import load_settings
from career_scraper.exceptions import ConfigurationError
from career_scraper.logging_config import get_logger, setup_logging
from career_scraper.models import ScrapeResult
from career_scraper.orchestrator import ScrapeOrchestrator
from career_scraper.profiles.store import DomainProfileStore

# Configure logging (will be called in main())
logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Career Scraper - Adaptive multi-strategy scraping of career pages"
    )
    parser.add_argument("urls", nargs="+", metavar="URL", help="Career page URL(s) to scrape")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to configuration file (default: $CONFIG_PATH or config/config.yaml)",
    )
    parser.add_argument("--language", help="Force the session language (e.g. en, fr, de)")
    parser.add_argument("--search-query", help="Only keep job postings matching this query")
    parser.add_argument(
        "--skip-profiling",
        action="store_true",
        help="Do not update domain session profiles from these runs",
    )
    parser.add_argument("--output", help="Write results JSON to this file")
    parser.add_argument(
        "--profiles",
        metavar="FILE",
        help="Domain profiles JSON file: loaded before the run and saved after it",
    )
    parser.add_argument(
        "--rescrape-degraded",
        action="store_true",
        help="Re-scrape degraded pages once more with the cache bypassed",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    return parser


def load_profiles(store: DomainProfileStore, path: Optional[str]) -> int:
    """Import domain profiles from a JSON file, if it exists."""
    if not path or not Path(path).exists():
        return 0

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(f"Could not read profiles from {path}: {e}")
        return 0

    count = store.import_all(data)
    logger.info(f"Loaded {count} domain profiles from {path}")
    return count


def save_profiles(store: DomainProfileStore, path: Optional[str]) -> None:
    """Export domain profiles to a JSON file."""
    if not path:
        return

    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(store.export_all(), f, indent=2)
    logger.info(f"Saved {len(store)} domain profiles to {path}")


def save_results(results: Dict[str, ScrapeResult], summary: Dict[str, Any], path: str) -> None:
    """Write scrape results and the batch summary as JSON."""
    payload = {
        "summary": summary,
        "results": {url: result.model_dump(mode="json") for url, result in results.items()},
    }
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
    logger.info(f"Results saved to {path}")


def print_summary(results: Dict[str, ScrapeResult], summary: Dict[str, Any]) -> None:
    print("\n" + "=" * 60)
    print("CAREER SCRAPER SUMMARY")
    print("=" * 60)
    for url, result in results.items():
        marker = {"ok": "✓", "degraded": "~", "failed": "✗"}.get(result.status, "?")
        reason = f" ({result.status_reason})" if result.status_reason else ""
        print(f"  {marker} {url}: {result.jobs_found} jobs via {result.method or 'n/a'}{reason}")
    print(f"\nTotal:    {summary['total']}")
    print(f"OK:       {summary['ok']}")
    print(f"Degraded: {summary['degraded']}")
    print(f"Failed:   {summary['failed']}")
    print(f"Skipped:  {summary['skipped']}")
    print(f"Jobs:     {summary['jobs_found']}")
    print("=" * 60 + "\n")


def main(argv: Optional[List[str]] = None) -> int:
    """Main execution function."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Set up logging first (before any logging calls)
    setup_logging(log_level=args.log_level)

    try:
        settings = load_settings(args.config)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2

    options = {
        "detected_language": args.language,
        "search_query": args.search_query,
        "skip_profiling": args.skip_profiling,
    }

    orchestrator = ScrapeOrchestrator(settings)
    try:
        load_profiles(orchestrator.profiles, args.profiles)

        logger.info(f"Starting career scraper for {len(args.urls)} URL(s)...")
        runner = BatchScrapeRunner(orchestrator)
        outcome = runner.run(args.urls, options)

        if args.rescrape_degraded:
            rescraper = BackgroundRescraper(runner)
            if rescraper.add_results(outcome["results"]):
                rescraped = rescraper.run_once()
                outcome["results"].update(rescraped["results"])
                outcome["summary"].update(BatchScrapeRunner.summarize(outcome["results"]))

        print_summary(outcome["results"], outcome["summary"])
        if args.output:
            save_results(outcome["results"], outcome["summary"], args.output)
        save_profiles(orchestrator.profiles, args.profiles)
    finally:
        orchestrator.close()

    return 0 if outcome["summary"]["failed"] == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())

"""Tests for platform detection."""

import pytest

from career_scraper.platforms import PlatformCatalog, PlatformDetector


@pytest.fixture
def detector():
    return PlatformDetector()


class TestPlatformCatalog:
    """Test loading the platform catalog."""

    def test_packaged_catalog(self):
        catalog = PlatformCatalog()

        assert len(catalog) >= 15
        assert catalog.get("greenhouse").strategy == "greenhouse-api"
        assert catalog.get("WORKDAY").heavy_javascript is True
        assert catalog.fallback_strategies == ["headless-rendering", "iframe-aware-rendering"]

    def test_invalid_entries_skipped(self):
        catalog = PlatformCatalog(
            {
                "platforms": [
                    {"name": "Good", "url_patterns": ["good.example"]},
                    {"url_patterns": ["missing-name.example"]},
                    {"name": "Bad", "min_indicators": 0},
                ]
            }
        )

        assert [p.name for p in catalog.platforms] == ["Good"]
        assert catalog.get(None) is None


class TestDetect:
    """Test URL and HTML based detection."""

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://boards.greenhouse.io/acme", "Greenhouse"),
            ("https://jobs.lever.co/acme", "Lever"),
            ("https://acme.wd5.myworkdayjobs.com/en-US/External", "Workday"),
            ("https://apply.workable.com/acme/", "Workable"),
            ("https://acme.bamboohr.com/careers", "BambooHR"),
            ("https://careers-acme.icims.com/jobs", "iCIMS"),
            ("https://jobs.ashbyhq.com/acme", "Ashby"),
            ("https://acme.example/careers", None),
        ],
    )
    def test_detect_from_url(self, detector, url, expected):
        assert detector.detect(url) == expected

    def test_detect_from_html(self, detector):
        html = '<div id="grnhse_app"></div><script src="https://boards.greenhouse.io/embed/job_board/js?for=acme"></script>'

        assert detector.detect("https://acme.example/careers", html) == "Greenhouse"

    def test_min_indicators_respected(self, detector):
        one_indicator = '<link href="/wp-content/themes/acme/style.css">'
        two_indicators = one_indicator + '<script src="/wp-includes/js/jquery.js"></script>'

        assert detector.detect("https://acme.example", one_indicator) is None
        assert detector.detect("https://acme.example", two_indicators) == "WordPress"

    def test_url_wins_over_html(self, detector):
        html = "<div>wp-content wp-includes wp-json</div>"

        assert detector.detect("https://jobs.lever.co/acme", html) == "Lever"

    def test_best_indicator_count_wins(self, detector):
        html = "lever.co lever-jobs-container postings-group greenhouse.io"

        assert detector.detect("https://acme.example", html) == "Lever"

    def test_strategy_lookups(self, detector):
        assert detector.recommended_strategy("Lever") == "lever-api"
        assert detector.recommended_strategy(None) is None
        assert "greenhouse-api" in detector.blocked_strategies("WordPress")
        assert detector.blocked_strategies("Unknown") == []

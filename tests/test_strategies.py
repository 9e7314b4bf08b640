"""Tests for the built-in HTTP strategies and the strategy registry."""

import json
from unittest.mock import Mock, patch

import pytest
import requests

from conftest import JOB_TEXT, FakeStrategy, make_result
from career_scraper.deadline import CancellationToken
from career_scraper.exceptions import ScrapeCancelled, StrategyError
from career_scraper.models import JobLink
from career_scraper.strategies import (
    GreenhouseStrategy,
    LeverStrategy,
    LightweightStrategy,
    StrategyRegistry,
    WorkdayStrategy,
)

CAREERS_HTML = """
<html>
  <head><title>Careers at Acme</title><script>var tracking = "ignored";</script></head>
  <body>
    <h1>Join our team</h1>
    <p>We are hiring engineers and designers to build the future of work at Acme.</p>
    <a href="/jobs/1">Senior Software Engineer</a>
    <a href="/jobs/2">Product Designer</a>
    <a href="/jobs/1">Senior Software Engineer</a>
    <a href="/about">About us</a>
    <a href="#top">Back to top</a>
  </body>
</html>
"""


def json_response(payload, status_code=200):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload
    response.text = json.dumps(payload)
    response.headers = {"content-type": "application/json"}
    response.raise_for_status.return_value = None
    return response


def html_response(html):
    response = Mock()
    response.status_code = 200
    response.text = html
    response.headers = {"content-type": "text/html; charset=utf-8"}
    response.raise_for_status.return_value = None
    return response


class TestBaseStrategy:
    """Test shared strategy helpers."""

    def test_is_result_valid(self):
        strategy = FakeStrategy("fake")

        assert strategy.is_result_valid(make_result()) is True
        assert strategy.is_result_valid(None) is False
        assert strategy.is_result_valid(make_result(text="Too short")) is False
        assert strategy.is_result_valid(make_result(links=[])) is False

    def test_blocking_content_is_invalid(self):
        strategy = FakeStrategy("fake")
        text = JOB_TEXT + " Please complete the CAPTCHA to continue."

        assert strategy.is_result_valid(make_result(text=text)) is False

    def test_check_cancelled(self):
        token = CancellationToken()
        FakeStrategy.check_cancelled({"cancel_token": token})
        FakeStrategy.check_cancelled(None)

        token.cancel("deadline")

        with pytest.raises(ScrapeCancelled):
            FakeStrategy.check_cancelled({"cancel_token": token})

    def test_parse_html(self):
        parsed = FakeStrategy("fake").parse_html(CAREERS_HTML, "https://acme.example/careers")

        assert parsed["title"] == "Careers at Acme"
        assert "ignored" not in parsed["text"]
        assert "We are hiring engineers" in parsed["text"]
        assert [link.url for link in parsed["links"]] == [
            "https://acme.example/jobs/1",
            "https://acme.example/jobs/2",
            "https://acme.example/about",
        ]
        assert parsed["links"][0].is_job_posting is True
        assert parsed["links"][2].is_job_posting is False

    def test_matches_search(self):
        strategy = FakeStrategy("fake")

        assert strategy.matches_search("Backend Engineer", {}) is True
        assert strategy.matches_search("Backend Engineer", {"search_query": "engineer"}) is True
        assert strategy.matches_search("Designer", {"search_query": "engineer"}) is False

    @patch("career_scraper.strategies.base.requests.request")
    def test_fetch_wraps_http_errors(self, mock_request):
        response = Mock()
        response.raise_for_status.side_effect = requests.HTTPError("503 Server Error")
        mock_request.return_value = response

        with pytest.raises(StrategyError) as exc_info:
            FakeStrategy("fake").fetch("https://acme.example/careers", {"timeout": 5})

        assert exc_info.value.strategy_name == "fake"

    @patch("career_scraper.strategies.base.requests.request")
    def test_fetch_respects_cancellation(self, mock_request):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(ScrapeCancelled):
            FakeStrategy("fake").fetch("https://acme.example", {"cancel_token": token})

        mock_request.assert_not_called()

    @patch("career_scraper.strategies.base.requests.request")
    def test_fetch_caps_request_timeout(self, mock_request):
        mock_request.return_value = html_response("<html></html>")

        FakeStrategy("fake").fetch("https://acme.example", {"timeout": 60})

        assert mock_request.call_args.kwargs["timeout"] == 10.0


class TestLightweightStrategy:
    """Test the HTTP variants strategy."""

    def test_variants(self):
        variants = LightweightStrategy().generate_variants("https://acme.example/careers/")

        assert variants[0] == {"name": "original", "url": "https://acme.example/careers/"}
        assert {"name": "json", "url": "https://acme.example/careers.json"} in variants
        assert {"name": "print", "url": "https://acme.example/careers/?print=1"} in variants

    @patch("career_scraper.strategies.base.requests.request")
    def test_uses_detection_html_and_skips_failed_variants(self, mock_request):
        mock_request.side_effect = requests.ConnectionError("refused")

        result = LightweightStrategy().scrape(
            "https://acme.example/careers", {"timeout": 10, "html_content": CAREERS_HTML}
        )

        assert result.method == "lightweight-variants"
        assert result.title == "Careers at Acme"
        assert len(result.links) == 3
        assert result.interaction_count == 1
        assert mock_request.call_count == 6

    @patch("career_scraper.strategies.base.requests.request")
    def test_merges_json_variant(self, mock_request):
        feed = {
            "jobs": [
                {"title": "Data Engineer", "url": "https://acme.example/jobs/3"},
                {"title": "Support Engineer", "url": "https://acme.example/jobs/4"},
            ],
            "description": "Open engineering positions across all of our offices worldwide.",
        }

        def respond(method, url, **kwargs):
            if url.endswith(".json"):
                return json_response(feed)
            if url == "https://acme.example/careers":
                return html_response(CAREERS_HTML)
            raise requests.ConnectionError("no variant")

        mock_request.side_effect = respond

        result = LightweightStrategy().scrape("https://acme.example/careers", {"timeout": 10})

        urls = [link.url for link in result.links]
        assert "https://acme.example/jobs/1" in urls
        assert "https://acme.example/jobs/3" in urls
        assert "Open engineering positions" in result.text
        assert result.interaction_count == 2

    @patch("career_scraper.strategies.base.requests.request")
    def test_nothing_useful(self, mock_request):
        mock_request.return_value = html_response("<html><body><p>Welcome</p></body></html>")

        assert LightweightStrategy().scrape("https://acme.example", {"timeout": 10}) is None

    @patch("career_scraper.strategies.base.requests.request")
    def test_search_query_filters_links(self, mock_request):
        mock_request.side_effect = requests.ConnectionError("refused")

        result = LightweightStrategy().scrape(
            "https://acme.example/careers",
            {"html_content": CAREERS_HTML, "search_query": "designer"},
        )

        assert [link.text for link in result.links] == ["Product Designer"]


class TestGreenhouseStrategy:
    """Test the Greenhouse board API strategy."""

    @pytest.mark.parametrize(
        "url,token",
        [
            ("https://boards.greenhouse.io/acme", "acme"),
            ("https://job-boards.greenhouse.io/acme/jobs/123", "acme"),
            ("https://boards.greenhouse.io/embed/job_board?for=acme", "acme"),
            ("https://acme.example/careers", None),
        ],
    )
    def test_extract_board_token(self, url, token):
        assert GreenhouseStrategy().extract_board_token(url) == token

    def test_token_from_embed_markup(self):
        html = '<script src="https://boards.greenhouse.io/embed/job_board/js?for=acme"></script>'
        strategy = GreenhouseStrategy()

        assert strategy.extract_board_token("https://acme.example/careers", html) == "acme"
        assert strategy.is_applicable("https://acme.example/careers", {"html_content": html})

    @patch("career_scraper.strategies.base.requests.request")
    def test_scrape(self, mock_request):
        mock_request.return_value = json_response(
            {
                "jobs": [
                    {
                        "title": "Backend Engineer",
                        "absolute_url": "https://boards.greenhouse.io/acme/jobs/1",
                        "location": {"name": "Remote"},
                        "departments": [{"name": "Engineering"}],
                    },
                    {"title": "Broken job without a URL"},
                    {
                        "title": "Designer",
                        "absolute_url": "https://boards.greenhouse.io/acme/jobs/2",
                        "location": None,
                    },
                ]
            }
        )

        result = GreenhouseStrategy().scrape("https://boards.greenhouse.io/acme", {})

        assert mock_request.call_args.args[1] == "https://boards-api.greenhouse.io/v1/boards/acme/jobs"
        assert result.jobs_found == 2
        assert result.detected_platform == "Greenhouse"
        assert result.links[0].location == "Remote"
        assert result.links[0].department == "Engineering"
        assert all(link.is_job_posting for link in result.links)
        assert "Backend Engineer - Remote - Engineering" in result.text

    @patch("career_scraper.strategies.base.requests.request")
    def test_empty_board(self, mock_request):
        mock_request.return_value = json_response({"jobs": []})

        assert GreenhouseStrategy().scrape("https://boards.greenhouse.io/acme", {}) is None


class TestLeverStrategy:
    """Test the Lever postings API strategy."""

    def test_extract_company(self):
        strategy = LeverStrategy()

        assert strategy.extract_company("https://jobs.lever.co/acme") == ("jobs.lever.co", "acme")
        assert strategy.extract_company("https://jobs.eu.lever.co/acme/123") == (
            "jobs.eu.lever.co",
            "acme",
        )
        assert strategy.extract_company("https://jobs.lever.co/") is None
        assert strategy.extract_company(
            "https://acme.example", '<a href="https://jobs.lever.co/acme">Jobs</a>'
        ) == ("jobs.lever.co", "acme")

    @patch("career_scraper.strategies.base.requests.request")
    def test_scrape(self, mock_request):
        mock_request.return_value = json_response(
            [
                {
                    "text": "Site Reliability Engineer",
                    "hostedUrl": "https://jobs.lever.co/acme/abc",
                    "categories": {"location": "Berlin", "team": "Platform", "commitment": "Full-time"},
                },
                {
                    "text": "Account Executive",
                    "hostedUrl": "https://jobs.lever.co/acme/def",
                    "categories": {"location": "London", "team": "Sales"},
                },
            ]
        )

        result = LeverStrategy().scrape(
            "https://jobs.lever.co/acme", {"search_query": "engineer", "detected_language": "de"}
        )

        assert mock_request.call_args.args[1] == "https://api.lever.co/v0/postings/acme"
        assert result.jobs_found == 1
        assert result.links[0].job_type == "Full-time"
        assert result.detected_language == "de"

    @patch("career_scraper.strategies.base.requests.request")
    def test_unexpected_payload(self, mock_request):
        mock_request.return_value = json_response({"ok": False})

        assert LeverStrategy().scrape("https://jobs.lever.co/acme", {}) is None


class TestWorkdayStrategy:
    """Test the Workday CXS API strategy."""

    def test_parse_site(self):
        strategy = WorkdayStrategy()

        assert strategy.parse_site("https://acme.wd5.myworkdayjobs.com/en-US/External") == {
            "host": "acme.wd5.myworkdayjobs.com",
            "tenant": "acme",
            "site_id": "External",
        }
        assert strategy.parse_site("https://acme.wd5.myworkdayjobs.com/Careers")["site_id"] == "Careers"
        assert strategy.parse_site("https://acme.wd5.myworkdayjobs.com/en-US") is None
        assert strategy.parse_site("https://acme.example/careers") is None

    @patch("career_scraper.strategies.base.requests.request")
    def test_scrape_paginates(self, mock_request):
        def page(offset, count):
            return [
                {
                    "title": f"Engineer {offset + i}",
                    "externalPath": f"/job/Remote/Engineer_{offset + i}",
                    "locationsText": "Remote",
                }
                for i in range(count)
            ]

        mock_request.side_effect = [
            json_response({"total": 25, "jobPostings": page(0, 20)}),
            json_response({"total": 25, "jobPostings": page(20, 5)}),
        ]

        result = WorkdayStrategy().scrape(
            "https://acme.wd5.myworkdayjobs.com/en-US/External", {"timeout": 30}
        )

        assert mock_request.call_count == 2
        assert mock_request.call_args.kwargs["json"]["offset"] == 20
        assert result.jobs_found == 25
        assert result.interaction_count == 2
        assert result.links[0].url == (
            "https://acme.wd5.myworkdayjobs.com/External/job/Remote/Engineer_0"
        )

    @patch("career_scraper.strategies.base.requests.request")
    def test_max_pages(self, mock_request):
        postings = [{"title": "Engineer", "externalPath": f"/job/{i}"} for i in range(20)]
        mock_request.return_value = json_response({"total": 500, "jobPostings": postings})

        result = WorkdayStrategy().scrape(
            "https://acme.wd5.myworkdayjobs.com/External", {"max_pages": 3}
        )

        assert mock_request.call_count == 3
        assert result.jobs_found == 60

    def test_parse_job_location_fallback(self):
        site = {"host": "acme.wd5.myworkdayjobs.com", "tenant": "acme", "site_id": "External"}
        strategy = WorkdayStrategy()

        link = strategy.parse_job(
            {"title": "Analyst", "externalPath": "/job/1", "primaryLocation": {"descriptor": "Paris"}},
            site,
        )

        assert link.location == "Paris"
        assert strategy.parse_job({"title": None, "externalPath": "/job/2"}, site) is None


class TestStrategyRegistry:
    """Test strategy registration and ordering."""

    def test_builtins_sorted_by_priority(self):
        registry = StrategyRegistry.with_builtins()

        assert registry.names() == ["lightweight-variants", "greenhouse-api", "workday-api", "lever-api"]
        assert "lever-api" in registry
        assert len(registry) == 4

    def test_register_replaces_same_name(self):
        registry = StrategyRegistry([FakeStrategy("a", priority=5)])
        replacement = FakeStrategy("a", priority=1)

        registry.register(replacement)

        assert registry.get("a") is replacement
        assert registry.get(None) is None
        assert registry.unregister("a") is replacement
        assert len(registry) == 0

    def test_close_all_continues_after_failure(self):
        failing = FakeStrategy("failing", priority=1)
        failing.close = Mock(side_effect=RuntimeError("boom"))
        healthy = FakeStrategy("healthy", priority=2)

        StrategyRegistry([failing, healthy]).close_all()

        assert healthy.closed is True

    def test_job_link_model_defaults(self):
        link = JobLink(url="https://acme.example/jobs/1")

        assert link.is_job_posting is False
        assert link.confidence == 0.0

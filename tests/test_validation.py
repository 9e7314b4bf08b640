"""Tests for result validation and content statistics."""

import pytest

from conftest import JOB_TEXT, make_result
from career_scraper.models import JobLink, ScrapeResult
from career_scraper.validation import MAX_TEXT_JOB_COUNT, ResultValidator, has_unrendered_templates


class TestTemplates:
    """Test detection of unrendered template placeholders."""

    @pytest.mark.parametrize(
        "text",
        [
            "Open roles: {{ job.jobTitle }}",
            "Team: {{department}}",
            "{% for job in jobs %}",
            "<% if jobs %>",
            "Location ${location}",
        ],
    )
    def test_templates_detected(self, text):
        assert has_unrendered_templates(text) is True

    def test_plain_text(self):
        assert has_unrendered_templates("Senior Engineer - Remote") is False
        assert has_unrendered_templates(None) is False


class TestIsValid:
    """Test the global validity rules."""

    def test_none_is_invalid(self, validator):
        assert validator.is_valid(None) is False

    def test_generic_result_with_links(self, validator):
        assert validator.is_valid(make_result()) is True

    def test_generic_result_with_job_terms_only(self, validator):
        assert validator.is_valid(make_result(links=[])) is True

    def test_generic_result_without_terms_or_links(self, validator):
        text = "Lorem ipsum dolor sit amet, consectetur adipiscing elit. " * 3
        assert validator.is_valid(make_result(text=text, links=[])) is False

    def test_length_must_exceed_minimum(self, validator):
        assert validator.is_valid(make_result(text="x" * 100)) is False
        assert validator.is_valid(make_result(text="job " * 26)) is True

    def test_platform_only_requires_length(self, validator):
        text = "Lorem ipsum dolor sit amet, consectetur adipiscing elit. " * 3
        result = make_result(text=text, links=[])

        assert validator.is_valid(result, detected_platform="Workday") is True
        assert validator.is_valid(result.model_copy(update={"detected_platform": "Lever"})) is True
        assert validator.is_valid(make_result(text="short"), detected_platform="Workday") is False

    def test_templates_invalidate_platform_results(self, validator):
        result = make_result(text=JOB_TEXT + " {{ job.location }}")
        assert validator.is_valid(result, detected_platform="Workday") is False

    def test_custom_minimum_length(self, dictionaries):
        validator = ResultValidator(dictionaries, min_content_length=10)
        assert validator.is_valid(make_result(text="Hiring engineers now")) is True

    def test_language_specific_terms(self, validator):
        text = "Rejoignez-nous ! Nous recrutons. Consultez nos offres d'emploi et postulez " * 2
        result = make_result(text=text, links=[])

        assert validator.is_valid(result, language="fr") is True

    def test_is_partial(self, validator):
        assert validator.is_partial(make_result(text="Jobs", links=[])) is True
        assert validator.is_partial(ScrapeResult(url="https://acme.example")) is False
        assert validator.is_partial(None) is False

    def test_template_output_is_not_partial(self, validator):
        assert validator.is_partial(make_result(text=JOB_TEXT + " {{ job.title }}")) is False


class TestContentStatistics:
    """Test job term, job link and job count helpers."""

    def test_count_job_terms(self, validator):
        assert validator.count_job_terms("Engineer and developer jobs") >= 3
        assert validator.count_job_terms("") == 0

    def test_is_job_link(self, validator):
        assert validator.is_job_link(JobLink(url="https://x.example/a", is_job_posting=True))
        assert validator.is_job_link(JobLink(url="https://x.example/careers/123", text="Details"))
        assert validator.is_job_link(JobLink(url="https://x.example/a", text="Backend Engineer"))
        assert not validator.is_job_link(JobLink(url="https://x.example/about", text="About us"))

    def test_extract_job_count_prefers_job_links(self, validator):
        links = [
            JobLink(url="https://x.example/jobs/1", text="Engineer"),
            JobLink(url="https://x.example/about", text="About us"),
        ]
        assert validator.extract_job_count(make_result(links=links)) == 1

    def test_extract_job_count_falls_back_to_links(self, validator):
        links = [
            JobLink(url="https://x.example/about", text="About us"),
            JobLink(url="https://x.example/team", text="Team"),
        ]
        assert validator.extract_job_count(make_result(links=links)) == 2

    def test_extract_job_count_from_text_is_capped(self, validator):
        result = make_result(text="job " * 500, links=[])
        assert validator.extract_job_count(result) == MAX_TEXT_JOB_COUNT

    def test_result_quality_range(self, validator):
        assert validator.calculate_result_quality(None) == 0
        rich = make_result(
            text="engineer developer manager analyst designer " * 200,
            links=[JobLink(url=f"https://x.example/jobs/{i}", text="Job") for i in range(40)],
            detected_platform="Greenhouse",
        )
        assert validator.calculate_result_quality(rich) == 10
        assert 0 < validator.calculate_result_quality(make_result()) < 10

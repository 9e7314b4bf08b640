"""
Result validation and content statistics.

Every function here is pure: the validator only reads the result it is given
and the dictionary provider's lookup tables.
"""

import logging
import re
from typing import Iterable, Optional

from career_scraper.dictionaries import DictionaryProvider
from career_scraper.models import JobLink, ScrapeResult

logger = logging.getLogger(__name__)

# Placeholder syntax left behind when a page is rendered without data bound
TEMPLATE_PATTERNS = [
    re.compile(r"\{\{\s*department\s*\}\}", re.IGNORECASE),
    re.compile(r"\{\{\s*job\.jobTitle\s*\}\}", re.IGNORECASE),
    re.compile(r"\{\{\s*job\.location\s*\}\}", re.IGNORECASE),
    re.compile(r"\{\{\s*[^}]+\}\}"),
    re.compile(r"\{%[^%]+%\}"),
    re.compile(r"<%[^%]+%>"),
    re.compile(r"\$\{[^}]+\}"),
]

MAX_TEXT_JOB_COUNT = 200


def has_unrendered_templates(text: Optional[str]) -> bool:
    """True if the text contains an unresolved template placeholder."""
    if not text:
        return False
    return any(pattern.search(text) for pattern in TEMPLATE_PATTERNS)


class ResultValidator:
    """
    Decide whether a strategy's output counts as a usable result.

    Rules, in order:
    1. Unrendered template artifacts always invalidate the result.
    2. With a detected platform (from the caller or the result), the result is
       valid iff its text is longer than ``min_content_length``.
    3. Otherwise the text must be longer than ``min_content_length`` and the
       result must contain job terms, job links, or any links at all.
    """

    def __init__(
        self,
        dictionaries: Optional[DictionaryProvider] = None,
        min_content_length: int = 100,
    ):
        self.dictionaries = dictionaries or DictionaryProvider()
        self.min_content_length = min_content_length

    def is_valid(
        self,
        result: Optional[ScrapeResult],
        detected_platform: Optional[str] = None,
        language: Optional[str] = None,
    ) -> bool:
        """
        Validate a scrape result.

        Args:
            result: Result returned by a strategy
            detected_platform: Platform detected by the caller, if any
            language: Language used for the job-term lookup (default English)

        Returns:
            True if the result is usable
        """
        if result is None:
            return False

        text = result.text or ""

        if has_unrendered_templates(text):
            logger.debug(f"Result for {result.url} contains unrendered templates, invalid")
            return False

        has_minimum_content = len(text) > self.min_content_length

        platform = result.detected_platform or detected_platform
        if platform:
            if not has_minimum_content:
                logger.debug(
                    f"Platform result ({platform}) too short: {len(text)} chars "
                    f"<= {self.min_content_length}"
                )
            return has_minimum_content

        if not has_minimum_content:
            logger.debug(f"Generic result too short: {len(text)} chars")
            return False

        if result.links:
            return True

        if self.count_job_terms(text, language) > 0:
            return True

        logger.debug(f"Generic result for {result.url} has no job terms and no links")
        return False

    def is_partial(self, result: Optional[ScrapeResult]) -> bool:
        """
        True if output that failed ``is_valid`` is still worth handing to the next step.

        Needs some text or links and no unrendered template artifacts.
        """
        if result is None or has_unrendered_templates(result.text):
            return False
        return bool((result.text or "").strip()) or bool(result.links)

    def count_job_terms(self, text: Optional[str], language: Optional[str] = None) -> int:
        """Number of distinct dictionary job terms present in the text."""
        if not text:
            return 0
        text_lower = text.lower()
        terms = self.dictionaries.get(language).job_terms()
        return sum(1 for term in terms if term.lower() in text_lower)

    def count_job_term_occurrences(self, text: Optional[str], language: Optional[str] = None) -> int:
        """Total occurrences of dictionary job terms (word-bounded) in the text."""
        if not text:
            return 0
        text_lower = text.lower()
        return sum(
            len(re.findall(rf"\b{re.escape(term.lower())}\b", text_lower))
            for term in self.dictionaries.get(language).job_terms()
        )

    def is_job_link(self, link: Optional[JobLink], language: Optional[str] = None) -> bool:
        """
        Classify a link as a job link.

        A link counts when it is flagged as a posting, its URL matches a job-URL
        pattern, or its label contains a job term.
        """
        if link is None:
            return False
        if link.is_job_posting:
            return True

        dictionary = self.dictionaries.get(language)
        if any(pattern.search(link.url or "") for pattern in dictionary.job_url_patterns()):
            return True

        label = (link.text or "").lower()
        return bool(label) and any(term.lower() in label for term in dictionary.job_terms())

    def count_job_links(
        self, links: Optional[Iterable[JobLink]], language: Optional[str] = None
    ) -> int:
        if not links:
            return 0
        return sum(1 for link in links if self.is_job_link(link, language))

    def extract_job_count(self, result: Optional[ScrapeResult], language: Optional[str] = None) -> int:
        """
        Estimate the number of jobs in a result.

        Job links first, then any links, then job-term occurrences in the text
        (capped at MAX_TEXT_JOB_COUNT).
        """
        if result is None:
            return 0

        job_links = self.count_job_links(result.links, language)
        if job_links:
            return job_links
        if result.links:
            return len(result.links)

        return min(self.count_job_term_occurrences(result.text, language), MAX_TEXT_JOB_COUNT)

    def calculate_result_quality(
        self, result: Optional[ScrapeResult], language: Optional[str] = None
    ) -> float:
        """
        Quality score from 0 to 10.

        Content length contributes up to 5, job terms up to 3, links up to 2,
        job links up to 3, and a detected platform adds 2.
        """
        if result is None:
            return 0.0

        text = result.text or ""
        score = min(len(text) / 1000, 5)
        score += min(self.count_job_terms(text, language) / 5, 3)
        score += min(len(result.links) / 10, 2)
        score += min(self.count_job_links(result.links, language) / 3, 3)
        if result.detected_platform:
            score += 2

        return min(score, 10.0)

"""
Per-language job terminology and selector dictionaries.

Dictionaries are loaded once from the packaged dictionaries.yaml and exposed as
read-only lookups keyed by a language code. Unknown languages fall back to English.
"""

import logging
import re
from importlib import resources
from typing import Any, Dict, List, Optional, Pattern

import yaml
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "en"

# Selectors we refuse to hand to a strategy
_WILDCARD_ATTRIBUTE = re.compile(r"\[[^\]]*\*\]|\[\*")


def _load_packaged_dictionaries() -> Dict[str, Any]:
    text = (
        resources.files("career_scraper")
        .joinpath("data/dictionaries.yaml")
        .read_text(encoding="utf-8")
    )
    return yaml.safe_load(text) or {}


def validate_selector(selector: Any) -> bool:
    """
    Check that a CSS selector is safe to pass to a strategy.

    Rejects empty values, unbalanced brackets/parentheses/quotes and
    wildcard attribute selectors such as ``[*]``.

    Args:
        selector: Candidate selector

    Returns:
        True if the selector is usable
    """
    if not isinstance(selector, str) or not selector.strip():
        return False

    if selector.count("[") != selector.count("]"):
        return False
    if selector.count("(") != selector.count(")"):
        return False
    if selector.count('"') % 2 or selector.count("'") % 2:
        return False

    return not _WILDCARD_ATTRIBUTE.search(selector)


class Dictionary:
    """Read-only terminology for one language (plus shared selector lists)."""

    def __init__(self, language: str, data: Dict[str, Any], shared: Dict[str, Any]):
        self.language = language
        self._data = data
        self._shared = shared
        self._url_patterns: Optional[List[Pattern]] = None

    def job_terms(self) -> List[str]:
        return list(self._data.get("job_terms", []))

    def job_url_patterns(self) -> List[Pattern]:
        """Compiled job-URL regexes (case-insensitive)."""
        if self._url_patterns is None:
            compiled = []
            for pattern in self._data.get("job_url_patterns", []):
                try:
                    compiled.append(re.compile(pattern, re.IGNORECASE))
                except re.error as e:
                    logger.warning(f"Skipping invalid job URL pattern {pattern!r}: {e}")
            self._url_patterns = compiled
        return self._url_patterns

    def show_more_text(self) -> Dict[str, List[str]]:
        text = self._data.get("show_more_text", {})
        return {
            "positive": list(text.get("positive", [])),
            "negative": list(text.get("negative", [])),
        }

    def cookie_text(self) -> List[str]:
        return list(self._data.get("cookie_text", []))

    def job_listing_selectors(self) -> List[str]:
        return [s for s in self._shared.get("job_listing_selectors", []) if validate_selector(s)]

    def show_more_selectors(self) -> List[str]:
        return [s for s in self._shared.get("show_more_selectors", []) if validate_selector(s)]

    def pagination_selectors(self) -> List[str]:
        return [s for s in self._shared.get("pagination_selectors", []) if validate_selector(s)]

    def cookie_selectors(self) -> List[str]:
        return [s for s in self._shared.get("cookie_selectors", []) if validate_selector(s)]

    def blocking_text(self) -> List[str]:
        return list(self._shared.get("blocking_text", []))

    def __repr__(self) -> str:
        return f"Dictionary(language={self.language}, terms={len(self.job_terms())})"


class DictionaryProvider:
    """
    Lookup of per-language dictionaries.

    Usage:
        provider = DictionaryProvider()
        terms = provider.get("fr").job_terms()
    """

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        """
        Initialize the provider.

        Args:
            data: Optional dictionary tree with ``shared`` and ``languages`` keys.
                  Defaults to the packaged dictionaries.yaml.
        """
        if data is None:
            data = _load_packaged_dictionaries()

        self._shared = data.get("shared", {})
        self._dictionaries = {
            code: Dictionary(code, entries or {}, self._shared)
            for code, entries in (data.get("languages") or {}).items()
        }

        if DEFAULT_LANGUAGE not in self._dictionaries:
            raise ValueError("Dictionary data must include an English ('en') entry")

        logger.debug(f"Loaded dictionaries for: {', '.join(sorted(self._dictionaries))}")

    @property
    def languages(self) -> List[str]:
        return sorted(self._dictionaries)

    def supports(self, language: Optional[str]) -> bool:
        return bool(language) and language.lower() in self._dictionaries

    def get(self, language: Optional[str] = None) -> Dictionary:
        """Dictionary for a language code, English when the code is unknown."""
        code = (language or DEFAULT_LANGUAGE).lower().split("-")[0]
        return self._dictionaries.get(code, self._dictionaries[DEFAULT_LANGUAGE])

    def complex_domains(self) -> List[str]:
        return list(self._shared.get("complex_domains", []))

    def is_complex_domain(self, domain: str) -> bool:
        """True when the domain matches the complex-domain allow-list."""
        domain = (domain or "").lower()
        return any(domain == entry or domain.endswith("." + entry) for entry in self.complex_domains())

    def detect_language(self, html: Optional[str]) -> Optional[str]:
        """
        Detect the page language.

        Reads ``<html lang>`` first; otherwise counts job-term hits per language
        and returns the best supported language.

        Args:
            html: Raw HTML

        Returns:
            Language code or None if nothing could be determined
        """
        if not html:
            return None

        soup = BeautifulSoup(html, "html.parser")
        html_tag = soup.find("html")
        if html_tag and html_tag.get("lang"):
            code = html_tag["lang"].strip().lower().split("-")[0]
            if code:
                return code

        text = soup.get_text(" ", strip=True).lower()
        if not text:
            return None

        best_language = None
        best_hits = 0
        for code, dictionary in self._dictionaries.items():
            hits = sum(
                len(re.findall(rf"\b{re.escape(term.lower())}\b", text))
                for term in dictionary.job_terms()
            )
            if hits > best_hits:
                best_language, best_hits = code, hits

        return best_language

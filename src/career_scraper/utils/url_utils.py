"""URL helpers shared by the cache, the profile store and the strategies."""

import hashlib
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlparse, urlunparse

# Query parameters that never change page content
TRACKING_PARAMS = {
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
    "gclid",
    "fbclid",
    "ref",
}


def extract_domain(url: str) -> str:
    """
    Extract the hostname used as the domain profile key.

    Args:
        url: Any URL

    Returns:
        Lowercased hostname, or the input itself when it cannot be parsed
    """
    if not url:
        return ""

    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return url

    return hostname.lower() if hostname else url


def display_domain(url: str) -> str:
    """Hostname without a leading www., used in human-readable placeholder text."""
    domain = extract_domain(url)
    return domain[4:] if domain.startswith("www.") else domain


def normalize_url(url: str) -> str:
    """
    Normalize a URL for cache lookups.

    Lowercases scheme and host, drops fragments and tracking parameters,
    and strips a trailing slash from the path.
    """
    if not url:
        return ""

    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return url.strip()

    query = urlencode(
        [(k, v) for k, v in parse_qsl(parsed.query) if k.lower() not in TRACKING_PARAMS]
    )
    path = parsed.path.rstrip("/") if parsed.path != "/" else ""

    return urlunparse(
        (parsed.scheme.lower(), parsed.netloc.lower(), path, parsed.params, query, "")
    )


def url_hash(url: str, length: int = 32) -> str:
    """Stable short hash of the normalized URL, used for cache file names."""
    return hashlib.sha256(normalize_url(url).encode("utf-8")).hexdigest()[:length]


def absolute_url(href: str, base_url: str) -> Optional[str]:
    """
    Resolve an href against the page URL.

    Returns None for anchors, javascript: and mailto: links.
    """
    if not href:
        return None

    href = href.strip()
    if href.startswith(("#", "javascript:", "mailto:", "tel:")):
        return None

    try:
        return urljoin(base_url, href)
    except ValueError:
        return None

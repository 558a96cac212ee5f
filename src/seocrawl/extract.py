"""
HTML link and canonical extraction.

All HTML parsing used by the crawl engine goes through this module.
"""
from __future__ import annotations

from typing import List, Optional

from bs4 import BeautifulSoup, SoupStrainer

from seocrawl.urls import is_same_origin, normalize_url

# Any tag carrying an href, not only <a>
HREF_STRAINER = SoupStrainer(href=True)
LINK_TAG_STRAINER = SoupStrainer("link")

SKIP_SCHEMES: tuple[str, ...] = ("javascript:", "mailto:", "tel:")


def extract_links(html: str) -> List[str]:
    """Return raw href values, minus empty, fragment-only and non-navigational ones."""
    soup = BeautifulSoup(html, "lxml", parse_only=HREF_STRAINER)
    hrefs = []
    for tag in soup.find_all(href=True):
        href = tag["href"].strip()
        if not href or href.startswith("#") or href.lower().startswith(SKIP_SCHEMES):
            continue
        hrefs.append(href)
    return hrefs


def extract_internal_links(html: str, page_url: str, origin: str) -> List[str]:
    """Normalized, de-duplicated links from ``html`` that stay on ``origin``."""
    links: dict[str, None] = {}
    for href in extract_links(html):
        target = normalize_url(href, page_url)
        if target and is_same_origin(target, origin):
            links.setdefault(target)
    return list(links)


def _rel_values(tag) -> List[str]:
    rel = tag.get("rel") or []
    if isinstance(rel, str):
        rel = rel.split()
    return [r.lower() for r in rel]


def extract_canonical(html: str, base_url: str) -> Optional[str]:
    """Return the normalized ``<link rel="canonical">`` target, if declared."""
    soup = BeautifulSoup(html, "lxml", parse_only=LINK_TAG_STRAINER)
    for tag in soup.find_all("link"):
        if "canonical" in _rel_values(tag) and tag.get("href") is not None:
            return normalize_url(tag["href"], base_url)
    return None

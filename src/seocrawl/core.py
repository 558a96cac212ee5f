"""
Core crawling logic and data structures.

The crawl is a breadth-first traversal run in batches: up to ``concurrency``
frontier entries pass the pre-fetch filters, are fetched in parallel, and the
whole batch settles before the results are folded back into the session and
the next batch is formed.
"""
from __future__ import annotations

import logging
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, List, Optional, Pattern, Set, Union
from urllib.parse import urlsplit

import requests

from seocrawl.config import Analyzer, CrawlConfig
from seocrawl.extract import extract_canonical, extract_internal_links
from seocrawl.fetcher import FetchedPage, FetchError, fetch_page
from seocrawl.robots import RobotsRules, load_robots
from seocrawl.urls import compile_patterns, normalize_url, origin_of, should_deny_url

logger = logging.getLogger(__name__)


class PageStatus(str, Enum):
    SUCCESS = "success"
    HTTP_ERROR = "http_error"
    FETCH_ERROR = "fetch_error"
    SKIPPED_NON_HTML = "skipped_non_html"
    DUPLICATE_CANONICAL = "duplicate_canonical"
    BLOCKED_ROBOTS = "blocked_robots"
    BLOCKED_PATTERN = "blocked_pattern"


@dataclass(frozen=True, slots=True)
class FrontierEntry:
    url: str
    depth: int


@dataclass(slots=True)
class PageResult:
    """Outcome of one processed frontier entry."""
    url: str
    status: PageStatus
    depth: int
    http_status: Optional[int] = None
    internal_links: Optional[List[str]] = None
    error: Optional[str] = None
    reports: Optional[List[Dict[str, Any]]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"url": self.url, "status": self.status.value}
        if self.http_status is not None:
            data["http_status"] = self.http_status
        if self.internal_links is not None:
            data["internal_links"] = list(self.internal_links)
        data["depth"] = self.depth
        if self.error is not None:
            data["error"] = self.error
        if self.reports is not None:
            data["reports"] = self.reports
        return data


@dataclass(slots=True)
class CrawlSummary:
    """Counters collected during a crawl."""
    errors: int = 0
    blocked: int = 0
    duplicates: int = 0
    dropped_queue_full: int = 0
    duration_ms: int = 0
    robots_txt: str = "not_found"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "errors": self.errors,
            "blocked": self.blocked,
            "duplicates": self.duplicates,
            "dropped_queue_full": self.dropped_queue_full,
            "duration_ms": self.duration_ms,
            "robots_txt": self.robots_txt,
        }


@dataclass(slots=True)
class CrawlReport:
    start_url: str
    max_pages: int
    pages: List[PageResult] = field(default_factory=list)
    summary: CrawlSummary = field(default_factory=CrawlSummary)
    error: Optional[str] = None

    @property
    def total_pages_crawled(self) -> int:
        return len(self.pages)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "start_url": self.start_url,
            "max_pages": self.max_pages,
            "total_pages_crawled": self.total_pages_crawled,
            "pages": [p.to_dict() for p in self.pages],
            "summary": self.summary.to_dict(),
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass(slots=True)
class CrawlSession:
    """
    All mutable state of one crawl run.

    Only the engine loop touches it, between batches; fetch workers never do.
    """
    origin: str
    max_queue_size: int
    frontier: Deque[FrontierEntry] = field(default_factory=deque)
    visited: Set[str] = field(default_factory=set)
    canonical_seen: Set[str] = field(default_factory=set)
    pages: List[PageResult] = field(default_factory=list)
    summary: CrawlSummary = field(default_factory=CrawlSummary)

    def enqueue(self, url: str, depth: int) -> bool:
        """Queue ``url`` unless already visited; drop it if the frontier is full."""
        if url in self.visited:
            return False
        if len(self.frontier) >= self.max_queue_size:
            self.summary.dropped_queue_full += 1
            return False
        self.frontier.append(FrontierEntry(url, depth))
        return True

    def record_canonical(self, page_url: str, canonical: Optional[str]) -> bool:
        """
        Track a page's declared canonical.

        Returns True if the page duplicates content already seen under a
        different URL.
        """
        if not canonical:
            return False
        if canonical != page_url and canonical in self.canonical_seen:
            return True
        self.canonical_seen.add(canonical)
        return False

    def record(self, result: PageResult) -> None:
        self.pages.append(result)
        if result.status in (PageStatus.HTTP_ERROR, PageStatus.FETCH_ERROR):
            self.summary.errors += 1
        elif result.status in (PageStatus.BLOCKED_ROBOTS, PageStatus.BLOCKED_PATTERN):
            self.summary.blocked += 1
        elif result.status is PageStatus.DUPLICATE_CANONICAL:
            self.summary.duplicates += 1


FetchOutcome = Union[FetchedPage, Exception]


def _robots_target(url: str) -> str:
    parts = urlsplit(url)
    return (parts.path or "/") + (f"?{parts.query}" if parts.query else "")


def _run_analyzers(
    analyzers: List[Analyzer],
    html: str,
    url: str,
    headers: Dict[str, str],
) -> List[Dict[str, Any]]:
    reports = []
    for analyzer in analyzers:
        name = getattr(analyzer, "__name__", analyzer.__class__.__name__)
        try:
            reports.append(analyzer(html, url, headers))
        except Exception as e:
            logger.warning("Analyzer %s failed on %s: %s", name, url, e)
            reports.append({
                "module": name,
                "status": "FAIL",
                "issues": [{"level": "error", "message": f"Analyzer error: {e}"}],
            })
    return reports


class Crawler:
    """Drives one crawl run over a prepared CrawlSession."""

    def __init__(
        self,
        config: CrawlConfig,
        session: CrawlSession,
        http: requests.Session,
        robots: RobotsRules,
        allow_patterns: List[Pattern[str]],
        deny_patterns: List[Pattern[str]],
    ):
        self.config = config
        self.session = session
        self.http = http
        self.robots = robots
        self.allow_patterns = allow_patterns
        self.deny_patterns = deny_patterns

    def next_batch(self) -> List[FrontierEntry]:
        """
        Pull entries off the frontier head until ``concurrency`` of them are
        ready to fetch, recording robots/pattern blocks as they are found.
        """
        session, config = self.session, self.config
        batch: List[FrontierEntry] = []

        while (
            len(batch) < config.concurrency
            and session.frontier
            and len(session.pages) + len(batch) < config.max_pages
        ):
            entry = session.frontier.popleft()

            if entry.url in session.visited:
                session.summary.duplicates += 1
                continue
            session.visited.add(entry.url)

            # Past max depth: dropped without a result
            if entry.depth > config.max_depth:
                continue

            if not self.robots.is_allowed(_robots_target(entry.url)):
                logger.debug("ROBOTS %s", entry.url)
                session.record(PageResult(entry.url, PageStatus.BLOCKED_ROBOTS, entry.depth))
                continue

            if should_deny_url(entry.url, self.deny_patterns, self.allow_patterns):
                logger.debug("PATTERN %s", entry.url)
                session.record(PageResult(entry.url, PageStatus.BLOCKED_PATTERN, entry.depth))
                continue

            batch.append(entry)

        return batch

    def fetch(self, entry: FrontierEntry) -> FetchOutcome:
        """Worker body: fetch only, never touch session state."""
        try:
            return fetch_page(self.http, entry.url, self.config.user_agent, self.config.timeout_s)
        except Exception as e:
            return e

    def process(self, entry: FrontierEntry, outcome: FetchOutcome) -> PageResult:
        """Classify a settled fetch and grow the frontier from its links."""
        result = PageResult(entry.url, PageStatus.SUCCESS, entry.depth, internal_links=[])

        if isinstance(outcome, FetchError):
            result.status = PageStatus.FETCH_ERROR
            result.error = "Timeout" if outcome.timeout else outcome.message
            return result
        if isinstance(outcome, Exception):
            result.status = PageStatus.FETCH_ERROR
            result.error = str(outcome) or "Unknown fetch error"
            return result

        page = outcome
        result.http_status = page.status_code

        if not page.ok:
            result.status = PageStatus.HTTP_ERROR
            result.error = f"HTTP {page.status_code}"
            return result

        if not page.is_html:
            result.status = PageStatus.SKIPPED_NON_HTML
            return result

        canonical = extract_canonical(page.text, entry.url)
        if self.session.record_canonical(entry.url, canonical):
            result.status = PageStatus.DUPLICATE_CANONICAL
            return result

        links = extract_internal_links(page.text, entry.url, self.session.origin)
        result.internal_links = links
        for link in links:
            self.session.enqueue(link, entry.depth + 1)

        if self.config.analyzers:
            result.reports = _run_analyzers(self.config.analyzers, page.text, entry.url, page.headers)

        return result

    def run(self) -> None:
        session = self.session
        # Workers share self.http for session.get only; Session mutation stays on this thread
        with ThreadPoolExecutor(max_workers=self.config.concurrency) as pool:
            while session.frontier and len(session.pages) < self.config.max_pages:
                batch = self.next_batch()
                if not batch:
                    continue

                outcomes = list(pool.map(self.fetch, batch))

                for entry, outcome in zip(batch, outcomes):
                    try:
                        result = self.process(entry, outcome)
                    except Exception as e:
                        logger.warning("Failed to process %s: %s", entry.url, e)
                        result = PageResult(
                            entry.url, PageStatus.FETCH_ERROR, entry.depth,
                            internal_links=[], error=str(e) or e.__class__.__name__,
                        )
                    logger.debug("%s %s (+%d links)", result.status.value, entry.url,
                                 len(result.internal_links or ()))
                    session.record(result)


def _error_report(start_url: str, max_pages: int, message: str) -> CrawlReport:
    logger.warning("Crawl not started for %r: %s", start_url, message)
    return CrawlReport(start_url=start_url, max_pages=max_pages, error=message)


def crawl(config: CrawlConfig, http: Optional[requests.Session] = None) -> CrawlReport:
    """
    Crawl same-origin pages breadth-first from ``config.start_url``.

    Args:
        config: Crawl options.
        http: Optional requests session; one is created (and closed) otherwise.

    Returns:
        The crawl report. Invalid seeds or patterns yield a report carrying
        ``error`` and no pages.
    """
    started = time.monotonic()

    start_url = normalize_url(config.start_url, config.start_url) if config.start_url else None
    origin = origin_of(start_url) if start_url else None
    if not start_url or not origin:
        return _error_report(config.start_url, config.max_pages, "Invalid start_url")

    try:
        allow_patterns = compile_patterns(config.allow_patterns)
        deny_patterns = compile_patterns(config.deny_patterns)
    except ValueError as e:
        return _error_report(config.start_url, config.max_pages, str(e))

    owns_http = http is None
    if owns_http:
        http = requests.Session()
        http.headers["User-Agent"] = config.user_agent

    try:
        logger.info("Starting crawl from %s (max pages %d, max depth %d, concurrency %d)",
                    start_url, config.max_pages, config.max_depth, config.concurrency)

        robots = load_robots(http, origin, config.user_agent, config.timeout_s)

        session = CrawlSession(origin=origin, max_queue_size=config.max_queue_size)
        session.summary.robots_txt = "found" if robots.found else "not_found"
        session.frontier.append(FrontierEntry(start_url, 0))

        Crawler(config, session, http, robots, allow_patterns, deny_patterns).run()
    finally:
        if owns_http:
            http.close()

    session.summary.duration_ms = int((time.monotonic() - started) * 1000)
    logger.info("Crawl finished: %d pages, %d errors, %d blocked, %d duplicates in %d ms",
                len(session.pages), session.summary.errors, session.summary.blocked,
                session.summary.duplicates, session.summary.duration_ms)

    return CrawlReport(
        start_url=start_url,
        max_pages=config.max_pages,
        pages=session.pages,
        summary=session.summary,
    )

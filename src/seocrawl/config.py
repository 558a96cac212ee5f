"""
Crawl configuration, defaults and limits.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

DEFAULT_MAX_PAGES = 50
MAX_PAGES_LIMIT = 2000
DEFAULT_MAX_DEPTH = 10
DEFAULT_CONCURRENCY = 3
MAX_CONCURRENCY = 10
DEFAULT_TIMEOUT_MS = 15_000
MAX_TIMEOUT_MS = 30_000
DEFAULT_MAX_QUEUE_SIZE = 10_000
DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; SEO-Crawler/1.0)"

# (html, page_url, response_headers) -> {"module", "status", "score"?, "issues"}
Analyzer = Callable[[str, str, Mapping[str, str]], Dict[str, Any]]


def _clamp(value: int, low: int, high: Optional[int] = None) -> int:
    value = max(low, value)
    return min(value, high) if high is not None else value


def _number_or(value: Any, default: int) -> int:
    """Missing, zero or non-numeric values fall back to ``default``."""
    if not value:
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [str(v) for v in value]


@dataclass(slots=True)
class CrawlConfig:
    """Options for one crawl run; numeric limits are clamped on construction."""
    start_url: str
    max_pages: int = DEFAULT_MAX_PAGES
    max_depth: int = DEFAULT_MAX_DEPTH
    concurrency: int = DEFAULT_CONCURRENCY
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    user_agent: str = DEFAULT_USER_AGENT
    allow_patterns: List[str] = field(default_factory=list)
    deny_patterns: List[str] = field(default_factory=list)
    max_queue_size: int = DEFAULT_MAX_QUEUE_SIZE
    analyzers: List[Analyzer] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.start_url = (self.start_url or "").strip()
        self.max_pages = _clamp(int(self.max_pages), 1, MAX_PAGES_LIMIT)
        self.max_depth = _clamp(int(self.max_depth), 0)
        self.concurrency = _clamp(int(self.concurrency), 1, MAX_CONCURRENCY)
        self.timeout_ms = _clamp(int(self.timeout_ms), 1, MAX_TIMEOUT_MS)
        self.max_queue_size = _clamp(int(self.max_queue_size), 1)
        self.user_agent = self.user_agent or DEFAULT_USER_AGENT

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000.0

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> "CrawlConfig":
        """
        Build a config from a loosely typed request body
        (``start_url``, ``max_pages``, ``max_depth``, ``concurrency``,
        ``timeout``, ``user_agent``, ``allow_patterns``, ``deny_patterns``).
        """
        raw_max_pages = options.get("max_pages") or DEFAULT_MAX_PAGES
        try:
            max_pages = int(float(raw_max_pages))
        except (TypeError, ValueError, OverflowError):
            max_pages = 1

        return cls(
            start_url=str(options.get("start_url") or ""),
            max_pages=max_pages,
            max_depth=_number_or(options.get("max_depth"), DEFAULT_MAX_DEPTH),
            concurrency=_number_or(options.get("concurrency"), DEFAULT_CONCURRENCY),
            timeout_ms=_number_or(options.get("timeout"), DEFAULT_TIMEOUT_MS),
            user_agent=str(options.get("user_agent") or DEFAULT_USER_AGENT),
            allow_patterns=_string_list(options.get("allow_patterns")),
            deny_patterns=_string_list(options.get("deny_patterns")),
            max_queue_size=_number_or(options.get("max_queue_size"), DEFAULT_MAX_QUEUE_SIZE),
        )

"""
Same-origin site crawler: breadth-first, batch-parallel traversal from a seed URL
that honours robots.txt, skips crawl traps and suppresses canonical duplicates.
Outputs a JSON-ready report of per-page outcomes and summary counters.
"""
from seocrawl.config import CrawlConfig
from seocrawl.core import crawl, CrawlReport, CrawlSummary, PageResult, PageStatus

__version__ = "1.0.0"
__all__ = ["crawl", "CrawlConfig", "CrawlReport", "CrawlSummary", "PageResult", "PageStatus"]

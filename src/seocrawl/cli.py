"""
Command-line interface for the crawler.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlparse

from seocrawl.config import (
    DEFAULT_CONCURRENCY,
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_PAGES,
    DEFAULT_MAX_QUEUE_SIZE,
    DEFAULT_TIMEOUT_MS,
    DEFAULT_USER_AGENT,
    CrawlConfig,
)
from seocrawl.core import crawl, CrawlReport


def print_summary(report: CrawlReport) -> None:
    """Print crawl summary to stderr."""
    summary = report.summary
    sys.stderr.write("=" * 50 + "\n")
    sys.stderr.write("CRAWL SUMMARY\n")
    sys.stderr.write("=" * 50 + "\n\n")

    sys.stderr.write(f"Start URL:              {report.start_url}\n")
    sys.stderr.write(f"Total pages crawled:    {report.total_pages_crawled}\n")
    sys.stderr.write(f"Errors:                 {summary.errors}\n")
    sys.stderr.write(f"Blocked:                {summary.blocked}\n")
    sys.stderr.write(f"Duplicates:             {summary.duplicates}\n")
    if summary.dropped_queue_full:
        sys.stderr.write(f"Dropped (queue full):   {summary.dropped_queue_full}\n")
    sys.stderr.write(f"robots.txt:             {summary.robots_txt}\n")
    sys.stderr.write(f"Duration:               {summary.duration_ms} ms\n\n")

    by_status = Counter(p.status.value for p in report.pages)
    if by_status:
        sys.stderr.write("Pages by status:\n")
        for status, count in sorted(by_status.items()):
            sys.stderr.write(f"  {status}: {count}\n")
    sys.stderr.write("\n")


def generate_output_path(start_url: str) -> Path:
    """Generate output path: crawls/{hostname}_{datetime}.json"""
    hostname = urlparse(start_url).hostname or "unknown"
    hostname_safe = hostname.replace(".", "_")
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return Path("crawls") / f"{hostname_safe}_{timestamp}.json"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="seocrawl",
        description="Crawl same-origin pages from a start URL and output a JSON crawl report.",
    )
    parser.add_argument("start_url", help="Start URL (e.g. https://example.com)")
    parser.add_argument("--max-pages", type=int, default=DEFAULT_MAX_PAGES,
                        help=f"Maximum pages to record, 1-2000 (default: {DEFAULT_MAX_PAGES})")
    parser.add_argument("--max-depth", type=int, default=DEFAULT_MAX_DEPTH,
                        help=f"Maximum link depth from the start URL (default: {DEFAULT_MAX_DEPTH})")
    parser.add_argument("--concurrency", type=int, default=DEFAULT_CONCURRENCY,
                        help=f"Parallel fetches per batch, at most 10 (default: {DEFAULT_CONCURRENCY})")
    parser.add_argument("--timeout", type=int, default=DEFAULT_TIMEOUT_MS,
                        help=f"Per-request timeout in milliseconds, at most 30000 (default: {DEFAULT_TIMEOUT_MS})")
    parser.add_argument("--user-agent", default=DEFAULT_USER_AGENT, help="User-Agent header")
    parser.add_argument("--allow", action="append", default=[], metavar="REGEX",
                        help="Only crawl URLs matching this regex (repeatable)")
    parser.add_argument("--deny", action="append", default=[], metavar="REGEX",
                        help="Never crawl URLs matching this regex (repeatable)")
    parser.add_argument("--max-queue-size", type=int, default=DEFAULT_MAX_QUEUE_SIZE,
                        help=f"Frontier size cap (default: {DEFAULT_MAX_QUEUE_SIZE})")
    parser.add_argument("--out", help="Output file path, or '-' for stdout (default: auto-generated in crawls/)")
    parser.add_argument("--pretty", action="store_true", help="Pretty-print JSON")
    parser.add_argument("--verbose", action="store_true", help="Show progress and summary")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the crawler CLI."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    config = CrawlConfig(
        start_url=args.start_url,
        max_pages=args.max_pages,
        max_depth=args.max_depth,
        concurrency=args.concurrency,
        timeout_ms=args.timeout,
        user_agent=args.user_agent,
        allow_patterns=args.allow,
        deny_patterns=args.deny,
        max_queue_size=args.max_queue_size,
    )
    report = crawl(config)

    if args.verbose:
        print_summary(report)

    json_text = json.dumps(report.to_dict(), ensure_ascii=False, indent=2 if args.pretty else None)

    if args.out == "-":
        print(json_text)
    else:
        output_path = Path(args.out) if args.out else generate_output_path(report.start_url)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(json_text, encoding="utf-8")
        if args.verbose:
            sys.stderr.write(f"Results written to: {output_path}\n")

    if report.error:
        sys.stderr.write(f"Error: {report.error}\n")
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

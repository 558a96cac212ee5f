import io
import json
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest.mock import patch

from seocrawl import cli
from seocrawl.core import CrawlReport, CrawlSummary, PageResult, PageStatus


def sample_report(error=None):
    if error:
        return CrawlReport(start_url="bad", max_pages=50, error=error)
    return CrawlReport(
        start_url="https://x.com/",
        max_pages=50,
        pages=[
            PageResult("https://x.com/", PageStatus.SUCCESS, 0, http_status=200,
                       internal_links=["https://x.com/admin"]),
            PageResult("https://x.com/admin", PageStatus.BLOCKED_ROBOTS, 1),
        ],
        summary=CrawlSummary(blocked=1, duration_ms=12, robots_txt="found"),
    )


class TestMain(unittest.TestCase):
    def test_stdout_output_and_config(self):
        out = io.StringIO()
        with patch("seocrawl.cli.crawl", return_value=sample_report()) as crawl_mock, redirect_stdout(out):
            code = cli.main([
                "https://x.com/", "--max-pages", "5000", "--concurrency", "4",
                "--timeout", "2000", "--deny", "/private", "--allow", "^/news/",
                "--allow", "^/blog/", "--out", "-",
            ])

        self.assertEqual(code, 0)
        config = crawl_mock.call_args[0][0]
        self.assertEqual(config.max_pages, 2000)
        self.assertEqual(config.concurrency, 4)
        self.assertEqual(config.timeout_ms, 2000)
        self.assertEqual(config.deny_patterns, ["/private"])
        self.assertEqual(config.allow_patterns, ["^/news/", "^/blog/"])

        data = json.loads(out.getvalue())
        self.assertEqual(data["total_pages_crawled"], 2)
        self.assertEqual(data["pages"][1], {"url": "https://x.com/admin", "status": "blocked_robots", "depth": 1})
        self.assertEqual(data["summary"]["robots_txt"], "found")

    def test_writes_file_with_verbose_summary(self):
        with tempfile.TemporaryDirectory() as tmp:
            target = Path(tmp) / "nested" / "report.json"
            err = io.StringIO()
            with patch("seocrawl.cli.crawl", return_value=sample_report()), redirect_stderr(err):
                code = cli.main(["https://x.com/", "--out", str(target), "--pretty", "--verbose"])

            self.assertEqual(code, 0)
            self.assertEqual(json.loads(target.read_text(encoding="utf-8"))["start_url"], "https://x.com/")
            self.assertIn("CRAWL SUMMARY", err.getvalue())
            self.assertIn("blocked_robots: 1", err.getvalue())

    def test_error_exit_code(self):
        out, err = io.StringIO(), io.StringIO()
        with patch("seocrawl.cli.crawl", return_value=sample_report(error="Invalid start_url")), \
                redirect_stdout(out), redirect_stderr(err):
            code = cli.main(["bad", "--out", "-"])

        self.assertEqual(code, 2)
        self.assertEqual(json.loads(out.getvalue())["error"], "Invalid start_url")
        self.assertIn("Invalid start_url", err.getvalue())

    def test_generate_output_path(self):
        path = cli.generate_output_path("https://www.example.com/a")
        self.assertEqual(path.parent, Path("crawls"))
        self.assertTrue(path.name.startswith("www_example_com_"))
        self.assertEqual(path.suffix, ".json")


if __name__ == "__main__":
    unittest.main()

import itertools
import unittest
from unittest.mock import MagicMock, patch

import requests
from urllib3.exceptions import ReadTimeoutError

from seocrawl.fetcher import ACCEPT_HEADER, FetchError, fetch_page
from tests.support import FakeResponse


def session_returning(response):
    session = MagicMock()
    session.get.return_value = response
    return session


class TestFetchPage(unittest.TestCase):
    def test_html_success_reads_body(self):
        resp = FakeResponse(200, "<html><title>café</title></html>")
        page = fetch_page(session_returning(resp), "https://x.com/", "TestBot", 5.0)
        self.assertTrue(page.ok)
        self.assertTrue(page.is_html)
        self.assertIn("café", page.text)
        self.assertTrue(resp.closed)

    def test_request_headers_and_options(self):
        session = session_returning(FakeResponse(200, "<html></html>"))
        fetch_page(session, "https://x.com/a", "TestBot/1.0", 7.5)
        session.get.assert_called_once()
        args, kwargs = session.get.call_args
        self.assertEqual(args, ("https://x.com/a",))
        self.assertEqual(kwargs["headers"], {"User-Agent": "TestBot/1.0", "Accept": ACCEPT_HEADER})
        self.assertEqual(kwargs["timeout"], 7.5)
        self.assertTrue(kwargs["allow_redirects"])

    def test_non_html_body_not_read(self):
        resp = FakeResponse(200, b"%PDF-1.4", "application/pdf")
        page = fetch_page(session_returning(resp), "https://x.com/doc", "TestBot", 5.0)
        self.assertTrue(page.ok)
        self.assertFalse(page.is_html)
        self.assertEqual(page.text, "")

    def test_http_error_status_returned_not_raised(self):
        page = fetch_page(session_returning(FakeResponse(404, "missing")), "https://x.com/x", "TestBot", 5.0)
        self.assertFalse(page.ok)
        self.assertEqual(page.status_code, 404)
        self.assertEqual(page.text, "")

    def test_timeout_flagged(self):
        session = MagicMock()
        session.get.side_effect = requests.ReadTimeout("read timed out")
        with self.assertRaises(FetchError) as cm:
            fetch_page(session, "https://x.com/slow", "TestBot", 1.0)
        self.assertTrue(cm.exception.timeout)
        self.assertEqual(cm.exception.message, "Timeout")
        self.assertEqual(cm.exception.url, "https://x.com/slow")

    def test_connection_error_not_flagged_as_timeout(self):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("connection reset")
        with self.assertRaises(FetchError) as cm:
            fetch_page(session, "https://x.com/", "TestBot", 1.0)
        self.assertFalse(cm.exception.timeout)
        self.assertEqual(cm.exception.message, "connection reset")

    def test_deadline_exceeded_while_reading_body(self):
        resp = FakeResponse(200, "<html>" + "x" * 10 + "</html>")
        clock = itertools.chain([0.0], itertools.repeat(100.0))
        with patch("seocrawl.fetcher.time.monotonic", side_effect=clock):
            with self.assertRaises(FetchError) as cm:
                fetch_page(session_returning(resp), "https://x.com/", "TestBot", 15.0)
        self.assertTrue(cm.exception.timeout)
        self.assertTrue(resp.closed)

    def test_read_timeout_while_streaming_body_flagged(self):
        stalled = requests.ConnectionError(ReadTimeoutError(None, "https://x.com/", "Read timed out."))
        resp = FakeResponse(200, "<html>partial body</html>", read_error=stalled)
        with self.assertRaises(FetchError) as cm:
            fetch_page(session_returning(resp), "https://x.com/", "TestBot", 0.5)
        self.assertTrue(cm.exception.timeout)
        self.assertEqual(cm.exception.message, "Timeout")
        self.assertTrue(resp.closed)

    def test_connection_reset_while_streaming_body_not_a_timeout(self):
        reset = requests.ConnectionError("connection reset by peer")
        resp = FakeResponse(200, "<html>partial body</html>", read_error=reset)
        with self.assertRaises(FetchError) as cm:
            fetch_page(session_returning(resp), "https://x.com/", "TestBot", 5.0)
        self.assertFalse(cm.exception.timeout)
        self.assertEqual(cm.exception.message, "connection reset by peer")


if __name__ == "__main__":
    unittest.main()

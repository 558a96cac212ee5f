"""
Offline stand-ins for requests.Session used across the test suite.
"""
import threading

import requests
from requests.structures import CaseInsensitiveDict


class FakeResponse:
    def __init__(self, status_code=200, body="", content_type="text/html; charset=utf-8", headers=None,
                 read_error=None):
        self.status_code = status_code
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        self.headers = CaseInsensitiveDict(headers or {})
        if content_type is not None:
            self.headers.setdefault("Content-Type", content_type)
        self.encoding = "utf-8" if "charset=" in (content_type or "") else None
        self.closed = False
        self.read_error = read_error

    def iter_content(self, chunk_size=1):
        if self.read_error is not None:
            yield self._body[:chunk_size]
            raise self.read_error
        for i in range(0, len(self._body), chunk_size):
            yield self._body[i:i + chunk_size]

    def close(self):
        self.closed = True


def html_page(*hrefs, canonical=None):
    links = "".join(f'<a href="{h}">{h}</a>' for h in hrefs)
    head = f'<link rel="canonical" href="{canonical}">' if canonical else ""
    return f"<html><head>{head}<title>t</title></head><body>{links}</body></html>"


class FakeSession:
    """
    Serves canned responses keyed by exact URL.

    Values may be FakeResponse instances or exceptions to raise; unknown
    URLs get a 404.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.headers = {}
        self.requested = []
        self._lock = threading.Lock()

    def get(self, url, **kwargs):
        with self._lock:
            self.requested.append(url)
        outcome = self.routes.get(url)
        if outcome is None:
            return FakeResponse(404, "not found")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def close(self):
        pass

    def count(self, url):
        return self.requested.count(url)


def no_robots():
    return requests.ConnectionError("robots unreachable")

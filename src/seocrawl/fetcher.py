"""
Single-page HTTP fetching with a whole-request deadline.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Dict

import requests
from urllib3.exceptions import ReadTimeoutError

ACCEPT_HEADER = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
CHUNK_SIZE = 64 * 1024


class FetchError(Exception):
    """A fetch that produced no HTTP response (network failure or timeout)."""

    def __init__(self, url: str, message: str, timeout: bool = False):
        super().__init__(message)
        self.url = url
        self.message = message
        self.timeout = timeout


@dataclass(slots=True)
class FetchedPage:
    url: str
    status_code: int
    content_type: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    text: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_html(self) -> bool:
        return "text/html" in self.content_type


def _decode(body: bytes, resp: requests.Response, content_type: str) -> str:
    # requests falls back to ISO-8859-1 for text/* without a charset
    encoding = resp.encoding if "charset=" in content_type else None
    try:
        return body.decode(encoding or "utf-8", errors="replace")
    except LookupError:
        return body.decode("utf-8", errors="replace")


def _is_read_timeout(exc: BaseException) -> bool:
    """Streaming reads surface a socket timeout as ConnectionError(ReadTimeoutError)."""
    causes = (*exc.args, exc.__cause__, exc.__context__)
    return any(isinstance(c, ReadTimeoutError) for c in causes)


def fetch_page(
    session: requests.Session,
    url: str,
    user_agent: str,
    timeout_s: float,
    read_any: bool = False,
) -> FetchedPage:
    """
    GET ``url`` following redirects; the body is read only for 2xx HTML
    responses (any 2xx body when ``read_any``).

    Raises FetchError on network failure, or with ``timeout=True`` once the
    request as a whole has exceeded ``timeout_s``.
    """
    deadline = time.monotonic() + timeout_s
    headers = {"User-Agent": user_agent, "Accept": ACCEPT_HEADER}

    try:
        resp = session.get(
            url,
            headers=headers,
            timeout=timeout_s,
            allow_redirects=True,
            stream=True,
        )
        try:
            content_type = (resp.headers.get("content-type") or "").lower()
            page = FetchedPage(
                url=url,
                status_code=resp.status_code,
                content_type=content_type,
                headers=dict(resp.headers),
            )
            if page.ok and (read_any or page.is_html):
                chunks = []
                for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                    if time.monotonic() > deadline:
                        raise FetchError(url, "Timeout", timeout=True)
                    chunks.append(chunk)
                page.text = _decode(b"".join(chunks), resp, content_type)
        finally:
            resp.close()
    except requests.Timeout as e:
        raise FetchError(url, "Timeout", timeout=True) from e
    except requests.RequestException as e:
        if _is_read_timeout(e):
            raise FetchError(url, "Timeout", timeout=True) from e
        raise FetchError(url, str(e) or e.__class__.__name__) from e

    return page

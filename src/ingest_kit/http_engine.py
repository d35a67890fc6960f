from __future__ import annotations

"""
http_engine.py - the single place where HTTP happens.

requests.Session + default headers + per-request timeout + a short
diagnostic line per request (DEBUG). No retries and no rate limiting:
a failed request is reported once and the caller decides.

Two ways in:
- request(...)    -> (resp | None, err | None, elapsed_ms), never raises
- get_text(url)   -> str, raises NetworkError / HTTPError / ParseError
"""

import logging
import threading
import time
from typing import Any, Optional
from urllib.parse import urlparse

import requests

from .errors import HTTPError, NetworkError, ParseError
from .resp_read import read_text_safely


logger = logging.getLogger(__name__)


DEFAULT_HTML_HEADERS: dict[str, str] = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}

DEFAULT_BINARY_HEADERS: dict[str, str] = {
    "Accept": "application/gzip, application/octet-stream, */*",
}


def _domain_of(url: str) -> str:
    try:
        return urlparse(url).netloc.lower()
    except ValueError:
        return ""


class HttpEngine:
    """
    requests.Session wrapper shared by the page fetcher and the downloader.

    requests does not promise that a Session is thread-safe, and the scrape
    pool calls one engine from several threads. Without an explicit
    `session`, every thread gets its own Session (same headers and timeout),
    created on first use and closed by close(). A `session` passed in is used
    as is by all threads.
    """

    def __init__(
        self,
        *,
        default_timeout: float = 30.0,
        default_headers: Optional[dict[str, str]] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.default_timeout = float(default_timeout)
        self.default_headers = dict(default_headers or {})
        self._shared = session
        self._local = threading.local()
        self._owned: list[requests.Session] = []
        self._owned_lock = threading.Lock()

    @property
    def session(self) -> requests.Session:
        if self._shared is not None:
            return self._shared
        s = getattr(self._local, "session", None)
        if s is None:
            s = requests.Session()
            self._local.session = s
            with self._owned_lock:
                self._owned.append(s)
        return s

    def close(self) -> None:
        if self._shared is not None:
            self._shared.close()
        with self._owned_lock:
            owned, self._owned = self._owned, []
        for s in owned:
            s.close()

    def __enter__(self) -> "HttpEngine":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _emit_diag(self, d: dict[str, Any]) -> None:
        logger.debug(
            "[HTTP] %s %s sc=%s err=%s elapsed=%sms url=%s",
            d.get("method"), d.get("domain"), d.get("status"), d.get("err"), d.get("elapsed_ms"), d.get("url"),
        )

    def request(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: Optional[dict[str, str]] = None,
        timeout: Optional[float] = None,
        stream: bool = False,
        expect: str = "html",
    ) -> tuple[Optional[requests.Response], Optional[str], int]:
        # default_headers -> mode headers -> request headers
        merged_headers = dict(self.default_headers)
        merged_headers.update(DEFAULT_BINARY_HEADERS if expect == "binary" else DEFAULT_HTML_HEADERS)
        if headers:
            merged_headers.update(headers)

        resp: Optional[requests.Response] = None
        err: Optional[str] = None
        t0 = time.monotonic()
        try:
            resp = self.session.request(
                method=method,
                url=url,
                headers=merged_headers,
                timeout=float(timeout or self.default_timeout),
                stream=stream,
            )
            if not (200 <= int(resp.status_code) < 300):
                err = f"http_{resp.status_code}"
        except requests.Timeout as e:
            err = f"timeout: {e}"
        except requests.RequestException as e:
            err = f"{type(e).__name__}: {e}"
        elapsed_ms = int((time.monotonic() - t0) * 1000)

        self._emit_diag({
            "method": method,
            "domain": _domain_of(url),
            "url": url,
            "status": None if resp is None else resp.status_code,
            "err": err,
            "elapsed_ms": elapsed_ms,
        })
        return resp, err, elapsed_ms

    def get_text(self, url: str, *, timeout: Optional[float] = None) -> str:
        """GET an HTML page and return its decoded body."""
        resp, err, _elapsed_ms = self.request(url, timeout=timeout, expect="html")
        if resp is None:
            raise NetworkError(f"request failed for '{url}': {err}", url=url)
        if int(resp.status_code) != 200:
            raise HTTPError(url, resp.status_code)
        text = read_text_safely(resp)
        if text is None:
            raise ParseError(f"'{url}' returned non-text content ({resp.headers.get('Content-Type', '')})")
        return text

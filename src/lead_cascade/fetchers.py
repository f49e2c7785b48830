"""Outbound HTTP plumbing: retrying sessions and a robots-aware page fetcher."""

from __future__ import annotations

import logging
import urllib.robotparser
from threading import Lock
from urllib.parse import urlparse

from requests import Session
from requests.adapters import HTTPAdapter
from requests.exceptions import RequestException
from urllib3.util.retry import Retry

from .validation import is_supported_url

MAX_PAGE_BYTES = 2_000_000


def make_retry_session(user_agent: str) -> Session:
    """Create requests session with retry/backoff defaults shared by all providers."""
    session = Session()
    session.headers.update({"User-Agent": user_agent})
    retry = Retry(
        total=2,
        backoff_factor=0.5,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=frozenset({"GET", "POST"}),
    )
    adapter = HTTPAdapter(max_retries=retry, pool_maxsize=16)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


class RobotsPolicy:
    """Per-origin robots.txt cache, safe to share between adapter threads."""

    def __init__(self, user_agent: str) -> None:
        self._user_agent = user_agent
        self._cache: dict[str, urllib.robotparser.RobotFileParser | None] = {}
        self._lock = Lock()

    def allowed(self, url: str) -> bool:
        if not is_supported_url(url):
            return False
        parsed = urlparse(url)
        origin = f"{parsed.scheme}://{parsed.netloc}"

        with self._lock:
            if origin not in self._cache:
                parser: urllib.robotparser.RobotFileParser | None = urllib.robotparser.RobotFileParser()
                parser.set_url(origin + "/robots.txt")
                try:
                    parser.read()
                except OSError:
                    parser = None
                self._cache[origin] = parser
            cached = self._cache[origin]

        # Unreachable robots.txt means no stated policy.
        if cached is None:
            return True
        return cached.can_fetch(self._user_agent, url)


class RequestsFetcher:
    """Fetches contact pages for the page-scrape adapter."""

    def __init__(
        self,
        *,
        session: Session,
        robots_policy: RobotsPolicy,
        timeout: float,
        logger: logging.Logger,
    ) -> None:
        self._session = session
        self._robots_policy = robots_policy
        self._timeout = timeout
        self._logger = logger

    def fetch(self, url: str) -> str:
        if not is_supported_url(url):
            self._logger.debug("Skipping unsupported URL: %s", url)
            return ""
        if not self._robots_policy.allowed(url):
            self._logger.info("Skipping due to robots.txt: %s", url)
            return ""
        try:
            response = self._session.get(url, timeout=self._timeout)
            response.raise_for_status()
        except RequestException as exc:
            self._logger.debug("Page fetch failed for %s: %s", url, exc)
            return ""
        if "html" not in response.headers.get("Content-Type", "text/html"):
            return ""
        return str(response.text)[:MAX_PAGE_BYTES]

import logging
from typing import Any

import pytest
import requests

from lead_cascade.fetchers import MAX_PAGE_BYTES, RequestsFetcher, RobotsPolicy, make_retry_session


class FakeRobotsPolicy:
    def __init__(self, allowed: bool) -> None:
        self._allowed = allowed

    def allowed(self, _url: str) -> bool:
        return self._allowed


class FakeResponse:
    def __init__(self, *, status_code: int = 200, text: str = "", content_type: str = "text/html") -> None:
        self.status_code = status_code
        self.text = text
        self.headers = {"Content-Type": content_type}

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.RequestException("bad status")


class FakeSession:
    def __init__(self, response: FakeResponse) -> None:
        self._response = response
        self.calls: list[str] = []

    def get(self, url: str, **_kwargs: Any) -> FakeResponse:
        self.calls.append(url)
        return self._response


def _fetcher(session: FakeSession, allowed: bool = True) -> RequestsFetcher:
    return RequestsFetcher(
        session=session,  # type: ignore[arg-type]
        robots_policy=FakeRobotsPolicy(allowed=allowed),  # type: ignore[arg-type]
        timeout=5.0,
        logger=logging.getLogger("test"),
    )


def test_requests_fetcher_rejects_invalid_urls() -> None:
    session = FakeSession(FakeResponse(text="<html/>"))
    assert _fetcher(session).fetch("file:///tmp/test") == ""
    assert session.calls == []


def test_requests_fetcher_skips_blocked_robots() -> None:
    session = FakeSession(FakeResponse(text="<html/>"))
    assert _fetcher(session, allowed=False).fetch("https://example.com") == ""
    assert session.calls == []


def test_requests_fetcher_returns_html_for_success() -> None:
    session = FakeSession(FakeResponse(text="<p>Hello</p>"))
    assert _fetcher(session).fetch("https://example.com") == "<p>Hello</p>"
    assert session.calls == ["https://example.com"]


def test_requests_fetcher_ignores_errors_and_non_html() -> None:
    assert _fetcher(FakeSession(FakeResponse(status_code=503))).fetch("https://example.com") == ""
    pdf = FakeResponse(text="%PDF", content_type="application/pdf")
    assert _fetcher(FakeSession(pdf)).fetch("https://example.com/press-kit.pdf") == ""


def test_requests_fetcher_caps_page_size() -> None:
    session = FakeSession(FakeResponse(text="a" * (MAX_PAGE_BYTES + 10)))
    assert len(_fetcher(session).fetch("https://example.com")) == MAX_PAGE_BYTES


def test_make_retry_session_sets_user_agent_and_retries() -> None:
    session = make_retry_session("my-agent")
    assert session.headers["User-Agent"] == "my-agent"
    retry = session.get_adapter("https://example.com").max_retries
    assert retry.total == 2
    assert 429 in retry.status_forcelist
    assert "POST" in retry.allowed_methods


class FakeRobotParser:
    def __init__(self, should_allow: bool, read_error: bool = False) -> None:
        self.url: str | None = None
        self._should_allow = should_allow
        self._read_error = read_error

    def set_url(self, value: str) -> None:
        self.url = value

    def read(self) -> None:
        if self._read_error:
            raise OSError("cannot read robots")

    def can_fetch(self, user_agent: str, _url: str) -> bool:
        _ = user_agent
        return self._should_allow


def test_robots_policy_blocks_when_parser_disallows(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        "lead_cascade.fetchers.urllib.robotparser.RobotFileParser",
        lambda: FakeRobotParser(should_allow=False),
    )
    policy = RobotsPolicy("agent")
    assert policy.allowed("https://example.com/path") is False


def test_robots_policy_allows_when_robots_unavailable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        "lead_cascade.fetchers.urllib.robotparser.RobotFileParser",
        lambda: FakeRobotParser(should_allow=True, read_error=True),
    )
    policy = RobotsPolicy("agent")
    assert policy.allowed("https://example.com/path") is True


def test_robots_policy_caches_per_origin(monkeypatch: pytest.MonkeyPatch) -> None:
    created: list[FakeRobotParser] = []

    def factory() -> FakeRobotParser:
        parser = FakeRobotParser(should_allow=True)
        created.append(parser)
        return parser

    monkeypatch.setattr("lead_cascade.fetchers.urllib.robotparser.RobotFileParser", factory)
    policy = RobotsPolicy("agent")
    policy.allowed("https://example.com/a")
    policy.allowed("https://example.com/b")
    policy.allowed("https://other.example/c")

    assert [parser.url for parser in created] == [
        "https://example.com/robots.txt",
        "https://other.example/robots.txt",
    ]

"""Web search clients: Serper (Google) with a DuckDuckGo HTML fallback."""

from __future__ import annotations

import logging
from urllib.parse import unquote

from bs4 import BeautifulSoup
from requests import Session
from requests.exceptions import RequestException

from .models import SearchClient, SearchHit
from .validation import is_supported_url

SERPER_URL = "https://google.serper.dev/search"
DUCKDUCKGO_BASES = ["https://html.duckduckgo.com/html/", "https://duckduckgo.com/html/"]

SERPER_COUNTRIES = {
    "ZA": "za",
    "UK": "uk",
    "GB": "uk",
    "USA": "us",
    "US": "us",
    "NG": "ng",
    "GH": "gh",
    "KE": "ke",
    "DE": "de",
    "FR": "fr",
    "AU": "au",
    "CA": "ca",
    "JP": "jp",
    "BR": "br",
}


def _decode_ddg_href(href: str) -> str | None:
    if not href:
        return None
    if "uddg=" not in href:
        return href
    encoded = href.split("uddg=")[-1].split("&", maxsplit=1)[0]
    return unquote(encoded)


class SerperSearchClient:
    """Google results through the Serper API."""

    def __init__(
        self, *, session: Session, api_key: str, timeout: float, logger: logging.Logger
    ) -> None:
        self._session = session
        self._api_key = api_key
        self._timeout = timeout
        self._logger = logger

    def search(self, query: str, country: str, num: int) -> list[SearchHit]:
        payload = {"q": query, "gl": SERPER_COUNTRIES.get(country.upper(), "us"), "num": num}
        try:
            response = self._session.post(
                SERPER_URL,
                json=payload,
                headers={"X-API-KEY": self._api_key, "Content-Type": "application/json"},
                timeout=self._timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (RequestException, ValueError) as exc:
            self._logger.warning("Serper search failed: %s", exc)
            return []

        hits: list[SearchHit] = []
        for item in data.get("organic", []) if isinstance(data, dict) else []:
            link = item.get("link")
            if not isinstance(link, str) or not is_supported_url(link):
                continue
            hits.append(
                SearchHit(
                    title=str(item.get("title") or ""),
                    link=link,
                    snippet=str(item.get("snippet") or ""),
                    position=int(item.get("position") or len(hits) + 1),
                    source="Google (Serper)",
                )
            )
        return hits[:num]


class DuckDuckGoSearchClient:
    """Keyless fallback that parses DuckDuckGo's HTML results page."""

    def __init__(
        self, *, session: Session, user_agent: str, timeout: float, logger: logging.Logger
    ) -> None:
        self._session = session
        self._user_agent = user_agent
        self._timeout = timeout
        self._logger = logger

    def search(self, query: str, country: str, num: int) -> list[SearchHit]:
        _ = country
        headers = {"User-Agent": self._user_agent}
        for base in DUCKDUCKGO_BASES:
            try:
                response = self._session.get(
                    base, params={"q": query}, headers=headers, timeout=self._timeout
                )
            except RequestException as exc:
                self._logger.debug("DuckDuckGo search failed: %s", exc)
                continue
            if response.status_code != 200:
                continue
            hits = self._parse(response.text, num)
            if hits:
                return hits
        return []

    def _parse(self, html: str, num: int) -> list[SearchHit]:
        soup = BeautifulSoup(html, "html.parser")
        hits: list[SearchHit] = []
        for result in soup.select(".result"):
            anchor = result.select_one("a.result__a") or result.find("a", href=True)
            if anchor is None:
                continue
            link = _decode_ddg_href(str(anchor.get("href", "")).strip()) or ""
            if not is_supported_url(link) or "duckduckgo.com" in link:
                continue
            snippet = result.select_one(".result__snippet")
            hits.append(
                SearchHit(
                    title=anchor.get_text(" ", strip=True),
                    link=link,
                    snippet=snippet.get_text(" ", strip=True) if snippet else "",
                    position=len(hits) + 1,
                    source="DuckDuckGo",
                )
            )
            if len(hits) >= num:
                break
        return hits


class FallbackSearchClient:
    """Tries each client in order and returns the first non-empty result set."""

    def __init__(self, clients: list[SearchClient]) -> None:
        self._clients = clients

    def search(self, query: str, country: str, num: int) -> list[SearchHit]:
        for client in self._clients:
            hits = client.search(query, country, num)
            if hits:
                return hits
        return []

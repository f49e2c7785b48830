"""Source adapters: each wraps one external source behind ``discover``.

Provider payload shapes stay inside the adapter that reads them; everything
leaving this module is a ``RawContact``.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .dedupe import normalize_followers
from .errors import AdapterError
from .extraction import (
    domain_from_url,
    extract_emails,
    extract_social_links,
    find_contact_links,
    is_profile_url,
    platform_for_url,
)
from .models import Fetcher, IdentityResolver, RawContact, SearchBrief, SearchClient, SearchHit
from .validation import normalize_market

DirectoryRecord = dict[str, Any]

ARTICLE_TITLE_PATTERNS = [
    re.compile(
        r"^(experience|discover|explore|learn|how to|the best|top \d+|best \d+|\d+ best|\d+ top|"
        r"a guide|guide to|everything you|why you|what you|welcome to|introducing)",
        re.IGNORECASE,
    ),
    re.compile(
        r"\b(tips for|ways to|things to|reasons to|steps to|click here|subscribe|sign up|download|"
        r"privacy policy|terms of|cookie|loading)\b",
        re.IGNORECASE,
    ),
]
MAX_NAME_LENGTH = 80

MUSIC_CONTEXT_KEYWORDS = [
    "music", "artist", "rapper", "dj", "producer", "label", "song", "album", "genre",
    "playlist", "curator", "radio", "hip-hop", "amapiano", "afrobeats", "gqom", "r&b",
    "pop", "rock", "jazz", "dance", "singer", "songwriter", "entertainment", "media",
    "press", "journalist", "blogger", "influencer", "content creator", "promoter",
    "festival", "concert",
]
SOCIAL_SITES = {
    "instagram": "instagram.com",
    "tiktok": "tiktok.com",
    "twitter": "twitter.com",
    "linkedin": "linkedin.com/in",
}
DEFAULT_SOCIAL_PLATFORMS = ("instagram", "tiktok", "twitter", "linkedin")
TITLE_SEPARATORS = (" | ", " - ", " • ", " (@")


def _humanize(value: str) -> str:
    return value.replace("_", " ").strip()


def build_search_query(brief: SearchBrief) -> str:
    """Combine the brief into one keyword query for web search."""
    parts = [brief.genre, " ".join(_humanize(t) for t in brief.contact_types), brief.specific_location]
    parts.append(" ".join(brief.markets))
    parts.append("email contact")
    query = " ".join(" ".join(part for part in parts if part).split())
    free_text = brief.query.strip()
    if free_text and free_text.lower() not in query.lower():
        return f"{free_text} {query}"
    return query


def primary_market(brief: SearchBrief) -> str:
    return normalize_market(brief.markets[0]) if brief.markets else "ZA"


def _compact(value: str) -> str:
    return re.sub(r"[\s_-]", "", value.lower())


# ---------- Static directory ----------


def load_directory(data_dir: str | Path, logger: logging.Logger | None = None) -> dict[str, list[DirectoryRecord]]:
    """Load every ``db_<CODE>.json`` file under ``data_dir``, keyed by code."""
    directory: dict[str, list[DirectoryRecord]] = {}
    root = Path(data_dir)
    if not root.is_dir():
        return directory
    for path in sorted(root.glob("db_*.json")):
        code = path.stem[len("db_") :].upper()
        try:
            records = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            if logger is not None:
                logger.warning("Could not read directory file %s: %s", path, exc)
            continue
        directory[code] = [record for record in records if isinstance(record, dict)] if isinstance(records, list) else []
    return directory


def filter_directory(
    records: list[DirectoryRecord],
    *,
    category: str = "",
    min_followers: int = 0,
    max_followers: int = 0,
    search_term: str = "",
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[DirectoryRecord], int]:
    """Filter, sort by follower count (descending) and paginate directory records.

    Returns the requested page and the total number of matches.
    """
    filtered = list(records)

    if category:
        wanted = _compact(category)
        filtered = [
            record
            for record in filtered
            if wanted in _compact(str(record.get("industry") or ""))
            or wanted in _compact(str(record.get("title") or ""))
        ]
    if min_followers:
        filtered = [r for r in filtered if normalize_followers(r.get("followers")) >= min_followers]
    if max_followers:
        filtered = [r for r in filtered if normalize_followers(r.get("followers")) <= max_followers]
    if search_term:
        term = search_term.lower()
        fields = ("person", "company", "industry", "instagram", "title")
        filtered = [
            record
            for record in filtered
            if any(term in str(record.get(name) or "").lower() for name in fields)
        ]

    filtered.sort(key=lambda record: normalize_followers(record.get("followers")), reverse=True)
    total = len(filtered)
    return filtered[offset : offset + limit], total


def directory_record_to_contact(record: DirectoryRecord, country: str, source: str) -> RawContact:
    socials = {
        platform: str(record.get(platform) or "").strip()
        for platform in ("instagram", "tiktok", "twitter", "linkedin", "website")
        if str(record.get(platform) or "").strip()
    }
    company = str(record.get("company") or "").strip()
    return RawContact(
        name=str(record.get("person") or "").strip() or company,
        source=source,
        title=str(record.get("title") or "").strip(),
        company=company,
        email=str(record.get("email") or "").strip(),
        country=country,
        socials=socials,
        followers=str(record.get("followers") or "").strip(),
        category=str(record.get("industry") or "").strip(),
    )


class DirectoryAdapter:
    """Cheapest tier: looks contacts up in the pre-loaded directory files."""

    def __init__(
        self,
        directory: Mapping[str, list[DirectoryRecord]],
        *,
        page_size: int,
        logger: logging.Logger,
        name: str = "Local Directory",
    ) -> None:
        self.name = name
        self._directory = directory
        self._page_size = page_size
        self._logger = logger

    def discover(self, brief: SearchBrief, seeds: tuple[RawContact, ...] = ()) -> list[RawContact]:
        _ = seeds
        codes = list(dict.fromkeys(normalize_market(market) for market in brief.markets))
        if not any(code in self._directory for code in codes):
            raise AdapterError(f"no directory data for {', '.join(codes)}")
        contacts: list[RawContact] = []
        for code in codes:
            records = self._directory.get(code, [])
            matched: dict[int, DirectoryRecord] = {}
            for contact_type in brief.contact_types:
                results, total = filter_directory(
                    records, category=_humanize(contact_type), limit=self._page_size
                )
                if not results:
                    results, total = filter_directory(
                        records, search_term=_humanize(contact_type), limit=self._page_size
                    )
                self._logger.debug("%s (%s) %s: %d matches", self.name, code, contact_type, total)
                for record in results:
                    matched.setdefault(id(record), record)
            ordered = sorted(
                matched.values(), key=lambda r: normalize_followers(r.get("followers")), reverse=True
            )
            contacts.extend(
                directory_record_to_contact(record, code, f"{self.name} ({code})") for record in ordered
            )
        return contacts


# ---------- Live web search ----------


def looks_like_article(title: str) -> bool:
    """True for page titles that name an article rather than a person or outlet."""
    if len(title) > MAX_NAME_LENGTH:
        return True
    return any(pattern.search(title) for pattern in ARTICLE_TITLE_PATTERNS)


def clean_profile_name(title: str) -> str:
    name = title
    for separator in TITLE_SEPARATORS:
        name = name.split(separator)[0]
    return name.strip()


def search_hit_to_contact(hit: SearchHit, country: str, source: str) -> RawContact | None:
    name = hit.title.strip()
    if not name or looks_like_article(name):
        return None
    socials: dict[str, str] = {}
    platform = platform_for_url(hit.link)
    if platform and is_profile_url(hit.link):
        socials[platform] = hit.link
        name = clean_profile_name(name)
    emails = sorted(extract_emails(hit.snippet))
    return RawContact(
        name=name,
        source=hit.source or source,
        email=emails[0] if emails else "",
        country=country,
        socials=socials,
        url=hit.link,
        bio=hit.snippet,
    )


class WebSearchAdapter:
    """Issues one keyword query built from the brief to a web search provider."""

    def __init__(
        self,
        client: SearchClient,
        *,
        max_results: int,
        logger: logging.Logger,
        name: str = "Web Search",
    ) -> None:
        self.name = name
        self._client = client
        self._max_results = max_results
        self._logger = logger

    def discover(self, brief: SearchBrief, seeds: tuple[RawContact, ...] = ()) -> list[RawContact]:
        _ = seeds
        country = primary_market(brief)
        query = build_search_query(brief)
        self._logger.debug("%s query: %s", self.name, query)
        hits = self._client.search(query, country, self._max_results)
        contacts = [search_hit_to_contact(hit, country, self.name) for hit in hits]
        return [contact for contact in contacts if contact is not None]


def has_music_context(query: str) -> bool:
    lower = query.lower()
    return any(keyword in lower for keyword in MUSIC_CONTEXT_KEYWORDS)


class SocialSearchAdapter:
    """Finds social profiles with ``site:`` queries, one per platform."""

    def __init__(
        self,
        client: SearchClient,
        *,
        max_results: int,
        logger: logging.Logger,
        name: str = "Social Search",
    ) -> None:
        self.name = name
        self._client = client
        self._max_results = max_results
        self._logger = logger

    def platforms_for(self, brief: SearchBrief) -> tuple[str, ...]:
        if brief.preferred_platform in SOCIAL_SITES:
            return (brief.preferred_platform,)
        return DEFAULT_SOCIAL_PLATFORMS

    def query_for(self, brief: SearchBrief) -> str:
        parts = [brief.genre, *(_humanize(t) for t in brief.contact_types), brief.specific_location]
        terms = " ".join(part for part in parts if part) or build_search_query(brief)
        if not has_music_context(terms):
            terms = f"{terms} music"
        return terms

    def discover(self, brief: SearchBrief, seeds: tuple[RawContact, ...] = ()) -> list[RawContact]:
        _ = seeds
        country = primary_market(brief)
        terms = self.query_for(brief)
        contacts: list[RawContact] = []
        for platform in self.platforms_for(brief):
            hits = self._client.search(f"site:{SOCIAL_SITES[platform]} {terms}", country, self._max_results)
            for hit in hits:
                if platform_for_url(hit.link) != platform or not is_profile_url(hit.link):
                    continue
                name = clean_profile_name(hit.title)
                if not name:
                    continue
                emails = sorted(extract_emails(hit.snippet))
                contacts.append(
                    RawContact(
                        name=name,
                        source=f"{self.name} ({platform})",
                        email=emails[0] if emails else "",
                        country=country,
                        socials={platform: hit.link},
                        url=hit.link,
                        bio=hit.snippet,
                    )
                )
        return contacts


# ---------- Enrichment ----------


def needs_enrichment(contact: RawContact) -> bool:
    missing = not (contact.email and contact.phone and contact.title and contact.socials.get("linkedin"))
    return missing and bool(contact.email or contact.company)


def enrich_contact(contact: RawContact, resolver: IdentityResolver, source: str) -> RawContact:
    """Fill e-mail, phone, title and socials from an identity resolver.

    A contact with neither e-mail nor company is returned unchanged. The
    name is never taken from the provider, and present values are kept.
    """
    if not (contact.email or contact.company):
        return contact
    match = resolver.match_person(name=contact.name, email=contact.email, company=contact.company)
    if not match:
        return contact

    phones = match.get("phone_numbers") or []
    phone = ""
    if isinstance(phones, list) and phones and isinstance(phones[0], dict):
        phone = str(phones[0].get("raw_number") or phones[0].get("sanitized_number") or "")
    organization = match.get("organization") if isinstance(match.get("organization"), dict) else {}

    socials = dict(contact.socials)
    for platform, key in (("linkedin", "linkedin_url"), ("twitter", "twitter_url")):
        if not socials.get(platform) and match.get(key):
            socials[platform] = str(match[key])

    return RawContact(
        name=contact.name,
        source=source,
        title=contact.title or str(match.get("title") or ""),
        company=contact.company or str(organization.get("name") or ""),
        email=contact.email or str(match.get("email") or ""),
        phone=contact.phone or phone,
        country=contact.country,
        socials=socials,
        followers=contact.followers,
        category=contact.category,
        url=contact.url,
        bio=contact.bio,
    )


class EnrichmentAdapter:
    """Refines contacts from earlier tiers through a people-match provider."""

    def __init__(
        self,
        resolver: IdentityResolver,
        *,
        max_enrichments: int,
        logger: logging.Logger,
        name: str = "Apollo Enrichment",
    ) -> None:
        self.name = name
        self._resolver = resolver
        self._max_enrichments = max_enrichments
        self._logger = logger

    def discover(self, brief: SearchBrief, seeds: tuple[RawContact, ...] = ()) -> list[RawContact]:
        _ = brief
        candidates = [seed for seed in seeds if needs_enrichment(seed)][: self._max_enrichments]
        enriched: list[RawContact] = []
        for seed in candidates:
            result = enrich_contact(seed, self._resolver, self.name)
            if result is not seed:
                enriched.append(result)
        self._logger.debug("%s: %d of %d candidates matched", self.name, len(enriched), len(candidates))
        return enriched


class PageScrapeAdapter:
    """Visits the pages behind e-mail-less contacts looking for contact details."""

    def __init__(
        self,
        fetcher: Fetcher,
        *,
        max_urls: int,
        logger: logging.Logger,
        max_contact_pages: int = 2,
        name: str = "Page Scrape",
    ) -> None:
        self.name = name
        self._fetcher = fetcher
        self._max_urls = max_urls
        self._max_contact_pages = max_contact_pages
        self._logger = logger

    def _scrape(self, url: str) -> tuple[set[str], dict[str, str]]:
        html = self._fetcher.fetch(url)
        if not html:
            return set(), {}
        emails = extract_emails(html)
        socials = extract_social_links(html, url)
        followed = 0
        for link in find_contact_links(html, url):
            if link.startswith("mailto:"):
                emails.add(link.split(":", maxsplit=1)[1].lower())
                continue
            if followed >= self._max_contact_pages:
                continue
            followed += 1
            child = self._fetcher.fetch(link)
            emails |= extract_emails(child)
            for platform, profile in extract_social_links(child, link).items():
                socials.setdefault(platform, profile)
        return emails, socials

    def discover(self, brief: SearchBrief, seeds: tuple[RawContact, ...] = ()) -> list[RawContact]:
        _ = brief
        candidates = [
            seed for seed in seeds if seed.url and not seed.email and not platform_for_url(seed.url)
        ][: self._max_urls]
        found: list[RawContact] = []
        for seed in candidates:
            emails, socials = self._scrape(seed.url)
            if not emails and not socials:
                continue
            site = domain_from_url(seed.url)
            on_site = sorted(email for email in emails if email.endswith(f"@{site}"))
            email = (on_site or sorted(emails) or [""])[0]
            merged_socials = {**socials, **seed.socials}
            found.append(
                RawContact(
                    name=seed.name,
                    source=self.name,
                    title=seed.title,
                    company=seed.company,
                    email=email,
                    country=seed.country,
                    socials=merged_socials,
                    url=seed.url,
                )
            )
        return found

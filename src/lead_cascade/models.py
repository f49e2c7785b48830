"""Protocols and model types shared by every stage of a search run."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

SOCIAL_PLATFORMS = ("instagram", "tiktok", "twitter", "linkedin", "website")


class SearchDepth(str, Enum):
    """How far a run may escalate through the tier plan."""

    QUICK = "quick"
    DEEP = "deep"
    FULL = "full"

    @property
    def tier_limit(self) -> int | None:
        """Number of tiers this depth allows. ``None`` means all of them."""
        return {SearchDepth.QUICK: 1, SearchDepth.DEEP: 2, SearchDepth.FULL: None}[self]


@dataclass(frozen=True)
class SearchBrief:
    """Immutable description of the contacts a caller wants."""

    contact_types: tuple[str, ...]
    markets: tuple[str, ...]
    genre: str = ""
    search_depth: SearchDepth = SearchDepth.DEEP
    target_count: int = 50
    query: str = ""
    preferred_platform: str = ""
    specific_location: str = ""


@dataclass(frozen=True)
class RawContact:
    """A contact exactly as one adapter produced it. No score, no merge history."""

    name: str = ""
    source: str = ""
    title: str = ""
    company: str = ""
    email: str = ""
    phone: str = ""
    country: str = ""
    socials: dict[str, str] = field(default_factory=dict)
    followers: str = ""
    category: str = ""
    url: str = ""
    bio: str = ""


@dataclass
class Contact:
    """Canonical contact owned by a single run.

    Only the merger fills fields and only the scorer sets ``match_score``.
    """

    identity_key: str
    name: str = ""
    title: str = ""
    company: str = ""
    email: str = ""
    phone: str = ""
    country: str = ""
    socials: dict[str, str] = field(default_factory=dict)
    followers_raw: str = ""
    followers_normalized: int = 0
    category: str = ""
    url: str = ""
    bio: str = ""
    match_score: float = 0.0
    source: str = ""
    provenance: list[str] = field(default_factory=list)
    discovered_at: int = 0

    def to_raw(self) -> RawContact:
        """Freeze the current state into a snapshot safe to hand to adapters."""
        return RawContact(
            name=self.name,
            source=self.source,
            title=self.title,
            company=self.company,
            email=self.email,
            phone=self.phone,
            country=self.country,
            socials=dict(self.socials),
            followers=self.followers_raw,
            category=self.category,
            url=self.url,
            bio=self.bio,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "identityKey": self.identity_key,
            "name": self.name,
            "title": self.title,
            "company": self.company,
            "email": self.email,
            "phone": self.phone,
            "country": self.country,
            "socials": dict(self.socials),
            "followersRaw": self.followers_raw,
            "followersNormalized": self.followers_normalized,
            "category": self.category,
            "url": self.url,
            "matchScore": round(self.match_score, 4),
            "source": self.source,
            "provenance": list(self.provenance),
        }


class SourceAdapter(Protocol):
    """Contract for one external data source.

    ``seeds`` is a frozen snapshot of contacts found by earlier tiers.
    Adapters that do not refine existing contacts ignore it.
    """

    name: str

    def discover(
        self, brief: SearchBrief, seeds: tuple[RawContact, ...] = ()
    ) -> list[RawContact]:
        """Return raw contacts for a brief."""


@dataclass(frozen=True)
class Tier:
    """One step of the escalation plan."""

    name: str
    adapters: tuple[SourceAdapter, ...]
    cost_weight: int = 0
    min_acceptable_yield: int = 1


class CreditGate(Protocol):
    """Contract for the usage budget shared by all runs."""

    def check_balance(self, principal: str) -> int:
        """Return the remaining balance for a principal."""

    def debit(self, principal: str, amount: int, reason: str) -> bool:
        """Atomically debit ``amount``. Return False when it cannot be paid."""


@dataclass(frozen=True)
class SearchHit:
    """One organic result from a web search provider."""

    title: str
    link: str
    snippet: str = ""
    position: int = 0
    source: str = ""


class SearchClient(Protocol):
    """Contract for web search providers."""

    def search(self, query: str, country: str, num: int) -> list[SearchHit]:
        """Return organic results for a query."""


class IdentityResolver(Protocol):
    """Contract for people-match enrichment providers."""

    def match_person(self, *, name: str, email: str, company: str) -> dict[str, Any]:
        """Return the provider's person record or an empty dict."""


class Fetcher(Protocol):
    """Contract for HTML fetchers."""

    def fetch(self, url: str) -> str:
        """Return HTML content for a URL or an empty string."""


@dataclass(frozen=True)
class SearchOutcome:
    """Final result of a run, handed back to the caller."""

    contacts: list[Contact]
    total: int
    logs: list[str]

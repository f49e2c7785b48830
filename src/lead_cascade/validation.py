"""Validation and runtime guardrails."""

from __future__ import annotations

from collections.abc import Mapping
from urllib.parse import urlparse

from .errors import BriefError, ConfigError
from .models import SearchBrief, SearchDepth

DEFAULT_TARGET_COUNT = 50

COUNTRY_NAME_TO_CODE = {
    "south africa": "ZA",
    "nigeria": "NG",
    "ghana": "GH",
    "kenya": "KE",
    "united kingdom": "UK",
    "uk": "UK",
    "united states": "USA",
    "usa": "USA",
    "us": "USA",
    "germany": "DE",
    "france": "FR",
    "australia": "AU",
    "canada": "CA",
    "japan": "JP",
    "brazil": "BR",
    "tanzania": "TZ",
    "uganda": "UG",
    "egypt": "EG",
    "morocco": "MA",
    "india": "IN",
    "netherlands": "NL",
    "sweden": "SE",
    "italy": "IT",
    "spain": "ES",
    "portugal": "PT",
    "mexico": "MX",
    "colombia": "CO",
    "argentina": "AR",
    "chile": "CL",
    "new zealand": "NZ",
    "ireland": "IE",
    "jamaica": "JM",
    "trinidad and tobago": "TT",
}


def normalize_market(market: str) -> str:
    """Map a country name or code to the code used by the directory files."""
    lower = market.strip().lower()
    if lower in COUNTRY_NAME_TO_CODE:
        return COUNTRY_NAME_TO_CODE[lower]
    return market.strip().upper()[:2]


def is_supported_url(url: str) -> bool:
    """Allow only absolute HTTP(S) URLs with a hostname."""
    parsed = urlparse(url)
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def split_csv_param(value: str | None) -> tuple[str, ...]:
    """Split a comma-separated parameter, dropping blanks."""
    if not value:
        return tuple()
    return tuple(part.strip() for part in value.split(",") if part.strip())


def validate_brief(brief: SearchBrief) -> None:
    """Reject a brief before any tier runs."""
    missing = [
        label
        for label, values in (("contactTypes", brief.contact_types), ("markets", brief.markets))
        if not values
    ]
    if missing:
        raise BriefError(f"Missing required parameters: {', '.join(missing)}")
    if brief.target_count < 1:
        raise BriefError("targetCount must be a positive integer.")
    if not isinstance(brief.search_depth, SearchDepth):
        raise BriefError(f"Unsupported searchDepth: {brief.search_depth!r}")


def brief_from_params(params: Mapping[str, str]) -> SearchBrief:
    """Build and validate a brief from HTTP query parameters."""
    contact_types = split_csv_param(params.get("contactTypes"))
    markets = split_csv_param(params.get("markets"))
    if not contact_types or not markets:
        raise BriefError("Missing required parameters: contactTypes, markets")

    depth_value = (params.get("searchDepth") or SearchDepth.DEEP.value).strip().lower()
    try:
        depth = SearchDepth(depth_value)
    except ValueError as exc:
        raise BriefError(f"searchDepth must be one of quick, deep, full (got {depth_value!r}).") from exc

    raw_target = params.get("targetCount") or str(DEFAULT_TARGET_COUNT)
    try:
        target_count = int(raw_target)
    except ValueError as exc:
        raise BriefError(f"targetCount must be an integer (got {raw_target!r}).") from exc

    brief = SearchBrief(
        contact_types=contact_types,
        markets=markets,
        genre=(params.get("genre") or "").strip(),
        search_depth=depth,
        target_count=target_count,
        query=(params.get("query") or "").strip(),
        preferred_platform=(params.get("platform") or "").strip().lower(),
        specific_location=(params.get("location") or "").strip(),
    )
    validate_brief(brief)
    return brief


def validate_runtime_constraints(
    *,
    adapter_timeout: float,
    request_timeout: float,
    min_acceptable_yield: int,
    event_buffer_size: int,
    max_results_per_query: int,
    max_enrichments: int,
    max_scrape_urls: int,
    enrichment_cost: int,
) -> None:
    """Validate runtime configuration and raise ConfigError on invalid values."""
    if adapter_timeout <= 0 or request_timeout <= 0:
        raise ConfigError("Timeouts must be > 0.")
    if min_acceptable_yield < 0:
        raise ConfigError("min_acceptable_yield must be >= 0.")
    if event_buffer_size < 2:
        raise ConfigError("event_buffer_size must be >= 2.")
    if max_results_per_query < 1:
        raise ConfigError("max_results_per_query must be >= 1.")
    if max_enrichments < 0 or max_scrape_urls < 0:
        raise ConfigError("Enrichment and scrape limits must be >= 0.")
    if enrichment_cost < 0:
        raise ConfigError("enrichment_cost must be >= 0.")

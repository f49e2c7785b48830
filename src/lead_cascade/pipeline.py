"""Wires concrete sources, tiers and the credit gate into a scheduler."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from requests import Session

from .adapters import (
    DirectoryAdapter,
    DirectoryRecord,
    EnrichmentAdapter,
    PageScrapeAdapter,
    SocialSearchAdapter,
    WebSearchAdapter,
    load_directory,
)
from .config import CascadeConfig
from .credits import InMemoryCreditGate
from .enrichment import ApolloClient
from .events import RunHandle
from .fetchers import RequestsFetcher, RobotsPolicy, make_retry_session
from .models import CreditGate, SearchBrief, SearchClient, SearchOutcome, SourceAdapter, Tier
from .orchestrator import TierScheduler
from .search_backends import DuckDuckGoSearchClient, FallbackSearchClient, SerperSearchClient

TIER_DIRECTORY = "Directory"
TIER_LIVE_WEB = "Live Web"
TIER_ENRICHMENT = "Enrichment"


def build_search_client(config: CascadeConfig, *, session: Session, logger: logging.Logger) -> SearchClient:
    """Serper when a key is configured, DuckDuckGo otherwise or as fallback."""
    clients: list[SearchClient] = []
    if config.serper_key:
        clients.append(
            SerperSearchClient(
                session=session, api_key=config.serper_key, timeout=config.request_timeout, logger=logger
            )
        )
    clients.append(
        DuckDuckGoSearchClient(
            session=session, user_agent=config.user_agent, timeout=config.request_timeout, logger=logger
        )
    )
    return FallbackSearchClient(clients)


def build_default_tiers(
    config: CascadeConfig,
    *,
    logger: logging.Logger,
    session: Session | None = None,
    directory: Mapping[str, list[DirectoryRecord]] | None = None,
) -> list[Tier]:
    """Directory, then live web, then paid enrichment."""
    session = session or make_retry_session(config.user_agent)
    if directory is None:
        directory = load_directory(config.data_dir, logger)
        logger.info("Loaded directory markets: %s", ", ".join(sorted(directory)) or "none")
    search_client = build_search_client(config, session=session, logger=logger)

    enrichment_adapters: list[SourceAdapter] = []
    if config.apollo_key:
        enrichment_adapters.append(
            EnrichmentAdapter(
                ApolloClient(
                    session=session, api_key=config.apollo_key, timeout=config.request_timeout, logger=logger
                ),
                max_enrichments=config.max_enrichments,
                logger=logger,
            )
        )
    else:
        logger.warning("APOLLO_API_KEY not configured; enrichment tier will only scrape pages.")
    enrichment_adapters.append(
        PageScrapeAdapter(
            RequestsFetcher(
                session=session,
                robots_policy=RobotsPolicy(config.user_agent),
                timeout=config.request_timeout,
                logger=logger,
            ),
            max_urls=config.max_scrape_urls,
            logger=logger,
        )
    )

    return [
        Tier(
            name=TIER_DIRECTORY,
            adapters=(DirectoryAdapter(directory, page_size=config.directory_page_size, logger=logger),),
            min_acceptable_yield=config.min_acceptable_yield,
        ),
        Tier(
            name=TIER_LIVE_WEB,
            adapters=(
                WebSearchAdapter(search_client, max_results=config.max_results_per_query, logger=logger),
                SocialSearchAdapter(search_client, max_results=config.max_results_per_query, logger=logger),
            ),
            min_acceptable_yield=config.min_acceptable_yield,
        ),
        Tier(
            name=TIER_ENRICHMENT,
            adapters=tuple(enrichment_adapters),
            cost_weight=config.enrichment_cost,
            min_acceptable_yield=config.min_acceptable_yield,
        ),
    ]


def build_scheduler(
    config: CascadeConfig,
    *,
    logger: logging.Logger,
    credit_gate: CreditGate | None = None,
    tiers: list[Tier] | None = None,
) -> TierScheduler:
    gate = credit_gate or InMemoryCreditGate(default_balance=config.starting_credits, logger=logger)
    return TierScheduler(
        tiers if tiers is not None else build_default_tiers(config, logger=logger),
        credit_gate=gate,
        adapter_timeout=config.adapter_timeout,
        logger=logger,
    )


def start_run(
    scheduler: TierScheduler,
    brief: SearchBrief,
    *,
    config: CascadeConfig,
    principal: str,
    logger: logging.Logger,
) -> RunHandle:
    """Launch a run on a background thread and return its event handle."""
    exempt = config.is_exempt(principal)

    def target(emit, cancel_event) -> SearchOutcome:
        return scheduler.run(brief, emit=emit, principal=principal, exempt=exempt, cancel_event=cancel_event)

    return RunHandle(target, buffer_size=config.event_buffer_size, logger=logger).start()

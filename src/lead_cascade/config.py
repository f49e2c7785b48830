"""Runtime configuration model."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .credits import credit_cost
from .errors import ConfigError
from .validation import split_csv_param, validate_runtime_constraints

DEFAULT_USER_AGENT = "LeadCascade/1.0 (+https://github.com/lead-cascade/lead-cascade)"
DEFAULT_REQUEST_TIMEOUT = 15.0
DEFAULT_ADAPTER_TIMEOUT = 25.0
DEFAULT_MIN_ACCEPTABLE_YIELD = 1
DEFAULT_EVENT_BUFFER_SIZE = 64
DEFAULT_MAX_RESULTS_PER_QUERY = 15
DEFAULT_DIRECTORY_PAGE_SIZE = 200
DEFAULT_MAX_ENRICHMENTS = 25
DEFAULT_MAX_SCRAPE_URLS = 10
DEFAULT_ENRICHMENT_COST = credit_cost("deep_contact_enrichment")
DEFAULT_STARTING_CREDITS = 20
DEFAULT_DATA_DIR = "data"


@dataclass(frozen=True)
class CascadeConfig:
    """Validated configuration used by the tier scheduler and its adapters."""

    serper_key: str | None = None
    apollo_key: str | None = None
    data_dir: str = DEFAULT_DATA_DIR
    adapter_timeout: float = DEFAULT_ADAPTER_TIMEOUT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    user_agent: str = DEFAULT_USER_AGENT
    min_acceptable_yield: int = DEFAULT_MIN_ACCEPTABLE_YIELD
    event_buffer_size: int = DEFAULT_EVENT_BUFFER_SIZE
    max_results_per_query: int = DEFAULT_MAX_RESULTS_PER_QUERY
    directory_page_size: int = DEFAULT_DIRECTORY_PAGE_SIZE
    max_enrichments: int = DEFAULT_MAX_ENRICHMENTS
    max_scrape_urls: int = DEFAULT_MAX_SCRAPE_URLS
    enrichment_cost: int = DEFAULT_ENRICHMENT_COST
    starting_credits: int = DEFAULT_STARTING_CREDITS
    exempt_principals: tuple[str, ...] = tuple()
    host: str = "127.0.0.1"
    port: int = 8000

    def __post_init__(self) -> None:
        validate_runtime_constraints(
            adapter_timeout=self.adapter_timeout,
            request_timeout=self.request_timeout,
            min_acceptable_yield=self.min_acceptable_yield,
            event_buffer_size=self.event_buffer_size,
            max_results_per_query=self.max_results_per_query,
            max_enrichments=self.max_enrichments,
            max_scrape_urls=self.max_scrape_urls,
            enrichment_cost=self.enrichment_cost,
        )

    def is_exempt(self, principal: str) -> bool:
        return principal in self.exempt_principals

    @classmethod
    def from_env(cls, **overrides: object) -> "CascadeConfig":
        """Build a config from environment variables; explicit overrides win."""
        values: dict[str, object] = {
            "serper_key": os.getenv("SERPER_API_KEY") or None,
            "apollo_key": os.getenv("APOLLO_API_KEY") or None,
            "data_dir": os.getenv("LEAD_CASCADE_DATA_DIR", DEFAULT_DATA_DIR),
            "exempt_principals": split_csv_param(os.getenv("LEAD_CASCADE_EXEMPT")),
        }
        try:
            if os.getenv("LEAD_CASCADE_ADAPTER_TIMEOUT"):
                values["adapter_timeout"] = float(os.environ["LEAD_CASCADE_ADAPTER_TIMEOUT"])
            if os.getenv("LEAD_CASCADE_MIN_YIELD"):
                values["min_acceptable_yield"] = int(os.environ["LEAD_CASCADE_MIN_YIELD"])
        except ValueError as exc:
            raise ConfigError(f"Invalid numeric environment value: {exc}") from exc
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)  # type: ignore[arg-type]

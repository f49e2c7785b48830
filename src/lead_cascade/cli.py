"""CLI entrypoint for lead-cascade."""

from __future__ import annotations

import argparse
import json
from collections.abc import Sequence

import uvicorn
from tqdm import tqdm

from .api import create_app
from .config import CascadeConfig
from .errors import BriefError, ConfigError
from .events import CompleteEvent, ProgressEvent, ProgressUpdate
from .logging_utils import configure_logging, get_logger
from .models import SearchBrief, SearchDepth
from .pipeline import build_scheduler
from .validation import DEFAULT_TARGET_COUNT, brief_from_params


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser."""
    parser = argparse.ArgumentParser(
        description="Lead Cascade - tiered contact discovery with progressive escalation."
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    parser.add_argument("--data-dir", help="Directory holding db_<CODE>.json files.")
    parser.add_argument("--serper-key", help="Serper key (or set SERPER_API_KEY env var).")
    parser.add_argument("--apollo-key", help="Apollo key (or set APOLLO_API_KEY env var).")
    parser.add_argument(
        "--adapter-timeout", type=float, help="Seconds each adapter may run before it is ignored."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    search = subparsers.add_parser("search", help="Run one brief and print the ranked contacts.")
    search.add_argument(
        "--contact-types", nargs="+", required=True, help="Contact types, e.g. playlist_curator."
    )
    search.add_argument("--markets", nargs="+", required=True, help="Market codes or country names.")
    search.add_argument("--genre", default="", help="Genre to bias scoring and queries.")
    search.add_argument(
        "--depth",
        choices=[depth.value for depth in SearchDepth],
        default=SearchDepth.DEEP.value,
        help="How many tiers may run.",
    )
    search.add_argument(
        "--target-count", type=int, default=DEFAULT_TARGET_COUNT, help="Contacts wanted."
    )
    search.add_argument("--query", default="", help="Free-text query prepended to searches.")
    search.add_argument("--platform", default="", help="Restrict social search to one platform.")
    search.add_argument("--location", default="", help="City or region inside the market.")
    search.add_argument("--principal", default="cli", help="Principal debited for costed tiers.")
    search.add_argument("--output", help="Write the result JSON to this path instead of stdout.")
    search.add_argument("--no-progress", action="store_true", help="Disable tqdm progress bar.")

    serve = subparsers.add_parser("serve", help="Serve the streaming HTTP API.")
    serve.add_argument("--host", help="Bind address.")
    serve.add_argument("--port", type=int, help="Bind port.")
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def namespace_to_config(args: argparse.Namespace) -> CascadeConfig:
    """Convert CLI args to a validated CascadeConfig; flags override the environment."""
    return CascadeConfig.from_env(
        data_dir=args.data_dir,
        serper_key=args.serper_key,
        apollo_key=args.apollo_key,
        adapter_timeout=args.adapter_timeout,
        host=getattr(args, "host", None),
        port=getattr(args, "port", None),
    )


def namespace_to_brief(args: argparse.Namespace) -> SearchBrief:
    return brief_from_params(
        {
            "contactTypes": ",".join(args.contact_types),
            "markets": ",".join(args.markets),
            "genre": args.genre,
            "searchDepth": args.depth,
            "targetCount": str(args.target_count),
            "query": args.query,
            "platform": args.platform,
            "location": args.location,
        }
    )


class ProgressBar:
    """Feeds progress events into a tqdm bar sized to the target count."""

    def __init__(self, target: int, enabled: bool) -> None:
        self._bar = tqdm(total=target, desc="Contacts", unit="contact", disable=not enabled)

    def __call__(self, event: ProgressEvent) -> None:
        if isinstance(event, ProgressUpdate):
            self._bar.set_postfix_str(f"{event.tier}: {event.status}")
            self._advance_to(event.found)
        elif isinstance(event, CompleteEvent):
            self._advance_to(event.total)

    def _advance_to(self, found: int) -> None:
        found = min(found, self._bar.total)
        if found > self._bar.n:
            self._bar.update(found - self._bar.n)

    def close(self) -> None:
        self._bar.close()


def run_search(args: argparse.Namespace, config: CascadeConfig) -> int:
    logger = get_logger()
    brief = namespace_to_brief(args)
    scheduler = build_scheduler(config, logger=logger)
    progress = ProgressBar(brief.target_count, enabled=not args.no_progress)
    try:
        outcome = scheduler.run(
            brief, emit=progress, principal=args.principal, exempt=config.is_exempt(args.principal)
        )
    finally:
        progress.close()

    payload = CompleteEvent(contacts=outcome.contacts, total=outcome.total, logs=outcome.logs).to_payload()
    rendered = json.dumps(payload, indent=2, ensure_ascii=False)
    if args.output:
        with open(args.output, "w", encoding="utf-8") as handle:
            handle.write(rendered + "\n")
        logger.info("Wrote %d contacts to %s", outcome.total, args.output)
    else:
        print(rendered)
    return 0


def run_server(config: CascadeConfig) -> int:
    uvicorn.run(create_app(config), host=config.host, port=config.port)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entrypoint."""
    args = parse_args(argv)
    configure_logging(args.verbose)
    logger = get_logger()
    try:
        config = namespace_to_config(args)
    except ConfigError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2

    if args.command == "serve":
        return run_server(config)
    try:
        return run_search(args, config)
    except BriefError as exc:
        logger.error("Invalid search brief: %s", exc)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())

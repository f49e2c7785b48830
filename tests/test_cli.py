import json
import logging
from pathlib import Path

import pytest

from lead_cascade import cli
from lead_cascade.config import CascadeConfig
from lead_cascade.models import RawContact, SearchBrief, Tier
from lead_cascade.orchestrator import TierScheduler


class DummyAdapter:
    name = "Local Directory"

    def discover(self, brief: SearchBrief, seeds: tuple[RawContact, ...] = ()) -> list[RawContact]:
        _ = (brief, seeds)
        return [RawContact(name="Thando", email="thando@example.com", country="ZA", source="Local Directory (ZA)")]


def _fake_scheduler(config: CascadeConfig, *, logger: logging.Logger) -> TierScheduler:
    _ = config
    return TierScheduler(
        [Tier(name="Directory", adapters=(DummyAdapter(),))],
        credit_gate=None,
        adapter_timeout=5.0,
        logger=logger,
    )


def test_parse_args_search() -> None:
    args = cli.parse_args(
        ["search", "--contact-types", "playlist_curator", "blogger", "--markets", "ZA", "--depth", "quick"]
    )
    assert args.command == "search"
    assert args.contact_types == ["playlist_curator", "blogger"]
    assert args.depth == "quick"
    assert args.target_count == 50


def test_parse_args_requires_command() -> None:
    with pytest.raises(SystemExit):
        cli.parse_args([])


def test_namespace_to_brief_joins_lists() -> None:
    args = cli.parse_args(
        ["search", "--contact-types", "dj", "radio_host", "--markets", "South Africa", "NG", "--target-count", "7"]
    )
    brief = cli.namespace_to_brief(args)
    assert brief.contact_types == ("dj", "radio_host")
    assert brief.markets == ("South Africa", "NG")
    assert brief.target_count == 7


def test_main_search_writes_json(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(cli, "build_scheduler", _fake_scheduler)
    output = tmp_path / "contacts.json"

    code = cli.main(
        [
            "search",
            "--contact-types",
            "playlist_curator",
            "--markets",
            "ZA",
            "--no-progress",
            "--output",
            str(output),
        ]
    )

    assert code == 0
    payload = json.loads(output.read_text(encoding="utf-8"))
    assert payload["type"] == "complete"
    assert payload["total"] == 1
    assert payload["contacts"][0]["email"] == "thando@example.com"


def test_main_returns_two_on_invalid_brief(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "build_scheduler", _fake_scheduler)
    code = cli.main(["search", "--contact-types", "dj", "--markets", "ZA", "--target-count", "0", "--no-progress"])
    assert code == 2


def test_main_returns_two_on_invalid_config() -> None:
    assert cli.main(["--adapter-timeout", "0", "search", "--contact-types", "dj", "--markets", "ZA"]) == 2


def test_main_serve_runs_uvicorn(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict[str, object]] = []
    monkeypatch.setattr(cli.uvicorn, "run", lambda app, **kwargs: calls.append({"app": app, **kwargs}))
    monkeypatch.setattr(cli, "create_app", lambda config: "app")

    assert cli.main(["serve", "--host", "0.0.0.0", "--port", "9001"]) == 0
    assert calls == [{"app": "app", "host": "0.0.0.0", "port": 9001}]

import pytest

from lead_cascade.config import DEFAULT_ADAPTER_TIMEOUT, CascadeConfig
from lead_cascade.credits import credit_cost
from lead_cascade.errors import ConfigError
from lead_cascade.logging_utils import RunLog


def test_from_env_reads_keys_and_tunables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SERPER_API_KEY", "serper")
    monkeypatch.setenv("APOLLO_API_KEY", "apollo")
    monkeypatch.setenv("LEAD_CASCADE_DATA_DIR", "/srv/data")
    monkeypatch.setenv("LEAD_CASCADE_EXEMPT", "admin, ops")
    monkeypatch.setenv("LEAD_CASCADE_ADAPTER_TIMEOUT", "7.5")
    monkeypatch.setenv("LEAD_CASCADE_MIN_YIELD", "3")

    config = CascadeConfig.from_env()

    assert config.serper_key == "serper"
    assert config.apollo_key == "apollo"
    assert config.data_dir == "/srv/data"
    assert config.exempt_principals == ("admin", "ops")
    assert config.adapter_timeout == 7.5
    assert config.min_acceptable_yield == 3
    assert config.is_exempt("ops") is True
    assert config.is_exempt("anonymous") is False


def test_from_env_overrides_win_and_none_is_ignored(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SERPER_API_KEY", raising=False)
    monkeypatch.delenv("LEAD_CASCADE_ADAPTER_TIMEOUT", raising=False)
    config = CascadeConfig.from_env(serper_key="flag", adapter_timeout=None, port=9000)
    assert config.serper_key == "flag"
    assert config.adapter_timeout == DEFAULT_ADAPTER_TIMEOUT
    assert config.port == 9000


def test_default_enrichment_cost_follows_credit_table() -> None:
    assert CascadeConfig().enrichment_cost == credit_cost("deep_contact_enrichment") == 5


def test_from_env_rejects_bad_numbers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LEAD_CASCADE_MIN_YIELD", "many")
    with pytest.raises(ConfigError):
        CascadeConfig.from_env()


def test_config_validates_on_construction() -> None:
    with pytest.raises(ConfigError):
        CascadeConfig(adapter_timeout=0)


def test_run_log_keeps_order_drops_duplicates_and_drains_deltas() -> None:
    log = RunLog()
    assert log.add("[Pipeline] start") is True
    assert log.add("[Directory] 3 contacts") is True
    assert log.add("[Pipeline] start") is False
    assert log.drain() == ["[Pipeline] start", "[Directory] 3 contacts"]

    log.extend(["[Directory] 3 contacts", "[Live Web] 2 contacts"])
    assert log.drain() == ["[Live Web] 2 contacts"]
    assert log.drain() == []
    assert log.snapshot() == ["[Pipeline] start", "[Directory] 3 contacts", "[Live Web] 2 contacts"]
    assert "[Live Web] 2 contacts" in log
    assert len(log) == 3

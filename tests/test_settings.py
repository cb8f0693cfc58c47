"""
Tests for environment-driven settings.
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest

from backend_inflow.config import Settings, get_settings
from backend_inflow.config.env import get_solana_rpc_url, mask_rpc_url
from backend_inflow.core.exceptions import ConfigError
from chain_fakes import WALLET

_ENV_NAMES = (
    "WALLET_ADDRESS",
    "SOLANA_RPC_URL",
    "HELIUS_API_KEY",
    "DAILY_API_CALL_LIMIT",
    "FULL_SCAN_INTERVAL_HOURS",
    "SCAN_SCHEDULE",
    "SCAN_TIMEZONE",
    "RUN_SCAN_ON_BOOT",
    "STATE_PATH",
    "BATCH_CONCURRENCY",
    "SIGNATURES_PAGE_LIMIT",
    "MAX_SIGNATURE_PAGES",
    "PAGE_DELAY_MS",
    "SCAN_TIMEOUT_SEC",
    "EXCLUDE_SELF_TRANSFERS",
    "API_HOST",
    "API_PORT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_NAMES:
        monkeypatch.setenv(name, "")


def test_defaults(monkeypatch):
    monkeypatch.setenv("WALLET_ADDRESS", WALLET)
    monkeypatch.setenv("SOLANA_RPC_URL", "http://localhost:8899")

    s = get_settings()

    assert s.wallet_address == WALLET
    assert s.rpc_url == "http://localhost:8899"
    assert s.daily_api_call_limit == 100_000
    assert s.full_scan_interval == timedelta(days=7)
    assert s.scan_schedule == "06:30,18:30"
    assert s.scan_timezone == "America/New_York"
    assert s.run_scan_on_boot is True
    assert s.state_path == Path("inflow_state.json")
    assert s.signatures_page_limit == 1000
    assert s.page_delay_sec == pytest.approx(0.06)
    assert s.api_port == 3000


def test_overrides(monkeypatch):
    monkeypatch.setenv("WALLET_ADDRESS", f"  {WALLET}  ")
    monkeypatch.setenv("DAILY_API_CALL_LIMIT", "500")
    monkeypatch.setenv("FULL_SCAN_INTERVAL_HOURS", "24")
    monkeypatch.setenv("RUN_SCAN_ON_BOOT", "false")
    monkeypatch.setenv("STATE_PATH", "/tmp/inflow.db")
    monkeypatch.setenv("SCAN_TIMEOUT_SEC", "0")

    s = get_settings()

    assert s.wallet_address == WALLET
    assert s.daily_api_call_limit == 500
    assert s.full_scan_interval == timedelta(hours=24)
    assert s.run_scan_on_boot is False
    assert s.state_path == Path("/tmp/inflow.db")
    assert s.scan_timeout_sec is None


def test_missing_wallet_raises():
    with pytest.raises(ConfigError, match="non-empty"):
        get_settings()


def test_invalid_wallet_raises():
    with pytest.raises(ConfigError, match="Invalid Solana wallet"):
        Settings(wallet_address="not-a-valid-pubkey", rpc_url="http://rpc.test")


@pytest.mark.parametrize(
    "name, value",
    [("DAILY_API_CALL_LIMIT", "lots"), ("BATCH_CONCURRENCY", "0"), ("RUN_SCAN_ON_BOOT", "maybe")],
)
def test_malformed_values_raise(monkeypatch, name, value):
    monkeypatch.setenv("WALLET_ADDRESS", WALLET)
    monkeypatch.setenv(name, value)
    with pytest.raises(ConfigError):
        get_settings()


def test_rpc_url_resolution(monkeypatch):
    assert get_solana_rpc_url() == "https://api.mainnet-beta.solana.com"
    monkeypatch.setenv("HELIUS_API_KEY", "secret")
    assert get_solana_rpc_url() == "https://mainnet.helius-rpc.com/?api-key=secret"
    assert mask_rpc_url(get_solana_rpc_url()) == "https://mainnet.helius-rpc.com/?api-key=***"
    monkeypatch.setenv("SOLANA_RPC_URL", "http://localhost:8899")
    assert get_solana_rpc_url() == "http://localhost:8899"

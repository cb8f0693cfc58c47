"""
Application settings.

Responsibilities:
- Load configuration from environment variables and .env files.
- Validate required settings and provide defaults for optional ones.
- Expose typed settings (tracked wallet, RPC URL, budgets, schedule, paths)
  passed explicitly to the coordinator, scheduler and API server.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path

from solders.pubkey import Pubkey

from backend_inflow.config.env import (
    env_bool,
    env_float,
    env_int,
    env_str,
    get_solana_rpc_url,
    load_inflow_env,
)
from backend_inflow.core.exceptions import ConfigError

DEFAULT_DAILY_API_CALL_LIMIT = 100_000
DEFAULT_FULL_SCAN_INTERVAL_HOURS = 24 * 7
DEFAULT_SCAN_SCHEDULE = "06:30,18:30"
DEFAULT_SCAN_TIMEZONE = "America/New_York"
DEFAULT_STATE_PATH = "inflow_state.json"
DEFAULT_BATCH_CONCURRENCY = 8
DEFAULT_SIGNATURES_PAGE_LIMIT = 1000
DEFAULT_MAX_SIGNATURE_PAGES = 50_000
DEFAULT_PAGE_DELAY_MS = 60
DEFAULT_SCAN_TIMEOUT_SEC = 6 * 3600
DEFAULT_API_PORT = 3000


def validate_wallet_address(address: str) -> str:
    """Return the stripped address; raise ConfigError if it is not a valid Solana pubkey."""
    address = (address or "").strip()
    if not address:
        raise ConfigError("WALLET_ADDRESS must be non-empty")
    try:
        Pubkey.from_string(address)
    except ValueError as e:
        raise ConfigError(f"Invalid Solana wallet address: {address!r}") from e
    return address


@dataclass
class Settings:
    """Typed service configuration. Built by get_settings() or directly in tests."""

    wallet_address: str
    rpc_url: str
    rpc_commitment: str = "finalized"
    daily_api_call_limit: int = DEFAULT_DAILY_API_CALL_LIMIT
    full_scan_interval: timedelta = field(
        default_factory=lambda: timedelta(hours=DEFAULT_FULL_SCAN_INTERVAL_HOURS)
    )
    scan_schedule: str = DEFAULT_SCAN_SCHEDULE
    scan_timezone: str = DEFAULT_SCAN_TIMEZONE
    run_scan_on_boot: bool = True
    state_path: Path = field(default_factory=lambda: Path(DEFAULT_STATE_PATH))
    batch_concurrency: int = DEFAULT_BATCH_CONCURRENCY
    signatures_page_limit: int = DEFAULT_SIGNATURES_PAGE_LIMIT
    max_signature_pages: int = DEFAULT_MAX_SIGNATURE_PAGES
    page_delay_sec: float = DEFAULT_PAGE_DELAY_MS / 1000.0
    scan_timeout_sec: float | None = float(DEFAULT_SCAN_TIMEOUT_SEC)
    exclude_self_transfers: bool = False
    api_host: str = "0.0.0.0"
    api_port: int = DEFAULT_API_PORT

    def __post_init__(self) -> None:
        self.wallet_address = validate_wallet_address(self.wallet_address)
        if not self.rpc_url.strip():
            raise ConfigError("rpc_url must be non-empty")
        if not (1 <= self.signatures_page_limit <= 1000):
            raise ConfigError("SIGNATURES_PAGE_LIMIT must be between 1 and 1000")
        if self.batch_concurrency < 1:
            raise ConfigError("BATCH_CONCURRENCY must be >= 1")
        self.state_path = Path(self.state_path)


def get_settings() -> Settings:
    """
    Return settings built from the environment (after loading .env).

    Raises ConfigError for a missing WALLET_ADDRESS or malformed values.
    """
    load_inflow_env()
    timeout = env_float("SCAN_TIMEOUT_SEC", float(DEFAULT_SCAN_TIMEOUT_SEC), minimum=0)
    return Settings(
        wallet_address=env_str("WALLET_ADDRESS", ""),
        rpc_url=get_solana_rpc_url(),
        rpc_commitment=env_str("RPC_COMMITMENT", "finalized"),
        daily_api_call_limit=env_int(
            "DAILY_API_CALL_LIMIT", DEFAULT_DAILY_API_CALL_LIMIT, minimum=1
        ),
        full_scan_interval=timedelta(
            hours=env_float("FULL_SCAN_INTERVAL_HOURS", DEFAULT_FULL_SCAN_INTERVAL_HOURS, minimum=0)
        ),
        scan_schedule=env_str("SCAN_SCHEDULE", DEFAULT_SCAN_SCHEDULE),
        scan_timezone=env_str("SCAN_TIMEZONE", DEFAULT_SCAN_TIMEZONE),
        run_scan_on_boot=env_bool("RUN_SCAN_ON_BOOT", True),
        state_path=Path(env_str("STATE_PATH", DEFAULT_STATE_PATH)),
        batch_concurrency=env_int("BATCH_CONCURRENCY", DEFAULT_BATCH_CONCURRENCY, minimum=1),
        signatures_page_limit=env_int(
            "SIGNATURES_PAGE_LIMIT", DEFAULT_SIGNATURES_PAGE_LIMIT, minimum=1
        ),
        max_signature_pages=env_int("MAX_SIGNATURE_PAGES", DEFAULT_MAX_SIGNATURE_PAGES, minimum=1),
        page_delay_sec=env_int("PAGE_DELAY_MS", DEFAULT_PAGE_DELAY_MS, minimum=0) / 1000.0,
        scan_timeout_sec=timeout or None,
        exclude_self_transfers=env_bool("EXCLUDE_SELF_TRANSFERS", False),
        api_host=env_str("API_HOST", "0.0.0.0"),
        api_port=env_int("API_PORT", DEFAULT_API_PORT, minimum=1),
    )

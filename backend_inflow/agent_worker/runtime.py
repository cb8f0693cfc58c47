"""
Wiring from Settings to a ready ScanCoordinator, plus a one-shot CLI.

Usage:
  python -m backend_inflow.agent_worker.runtime          # one scan (full or incremental as due)
  python -m backend_inflow.agent_worker.runtime --full   # force a full history walk
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from backend_inflow.agent_worker.coordinator import CoordinatorConfig, ScanCoordinator
from backend_inflow.config import Settings, get_settings
from backend_inflow.config.env import mask_rpc_url
from backend_inflow.core.exceptions import InflowError
from backend_inflow.database import get_state_store
from backend_inflow.inflow_logging import get_logger
from backend_inflow.ingestion import BatchFetcher
from backend_inflow.solana_rpc import CallBudget, SignaturePaginator, SolanaRpcClient

logger = get_logger(__name__)


def build_coordinator(settings: Settings) -> ScanCoordinator:
    """Create the RPC client, paginator, fetcher and store described by settings."""
    budget = CallBudget(settings.daily_api_call_limit)
    client = SolanaRpcClient(
        settings.rpc_url,
        budget=budget,
        commitment=settings.rpc_commitment,
    )
    paginator = SignaturePaginator(
        client,
        page_limit=settings.signatures_page_limit,
        max_pages=settings.max_signature_pages,
        page_delay_sec=settings.page_delay_sec,
    )
    fetcher = BatchFetcher(
        client,
        concurrency=settings.batch_concurrency,
        exclude_self_transfers=settings.exclude_self_transfers,
    )
    store = get_state_store(settings.state_path, settings.wallet_address)
    config = CoordinatorConfig(
        wallet_address=settings.wallet_address,
        full_scan_interval=settings.full_scan_interval,
        batch_concurrency=settings.batch_concurrency,
        scan_timeout_sec=settings.scan_timeout_sec,
    )
    logger.info(
        "coordinator_built",
        wallet_id=settings.wallet_address,
        rpc_url=mask_rpc_url(settings.rpc_url),
        state_path=str(settings.state_path),
        daily_api_call_limit=settings.daily_api_call_limit,
    )
    return ScanCoordinator(
        config,
        store=store,
        client=client,
        paginator=paginator,
        fetcher=fetcher,
    )


async def _run_once(settings: Settings, force_full: bool) -> None:
    coordinator = build_coordinator(settings)
    try:
        await coordinator.run_scan(force_full=force_full)
    finally:
        await coordinator.aclose()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run one lifetime-inbound scan and exit.")
    parser.add_argument("--full", action="store_true", help="Force a full history walk.")
    args = parser.parse_args(argv)
    try:
        settings = get_settings()
        asyncio.run(_run_once(settings, args.full))
        return 0
    except KeyboardInterrupt:
        logger.info("runtime_shutdown_signal")
        return 0
    except InflowError as e:
        logger.error("runtime_scan_failed", error_type=type(e).__name__, error=str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())

"""
Pytest fixtures for Backend Inflow tests.

`chain` is a FakeChain (see chain_fakes.py) served through httpx.MockTransport;
`build_coordinator` wires a real ScanCoordinator over it with a temporary state file.
"""

from __future__ import annotations

from typing import Any, Callable

import pytest

from chain_fakes import WALLET, FakeChain, no_sleep


@pytest.fixture
def chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def build_coordinator(chain: FakeChain, tmp_path) -> Callable[..., Any]:
    """
    Factory for a ScanCoordinator over `chain` with a JSON state file in tmp_path.
    Keyword args: daily_limit, page_limit, max_pages, state_path, clock, scan_timeout_sec.
    """
    from backend_inflow.agent_worker import CoordinatorConfig, ScanCoordinator
    from backend_inflow.database import get_state_store
    from backend_inflow.ingestion import BatchFetcher
    from backend_inflow.solana_rpc import SignaturePaginator

    def _build(
        *,
        daily_limit: int = 10_000,
        page_limit: int = 2,
        max_pages: int = 1000,
        state_path=None,
        scan_timeout_sec: float | None = None,
        **kwargs: Any,
    ):
        client = chain.client(daily_limit=daily_limit)
        paginator = SignaturePaginator(
            client, page_limit=page_limit, max_pages=max_pages, page_delay_sec=0, sleep=no_sleep
        )
        fetcher = BatchFetcher(client, concurrency=3, pause_every=2, pause_sec=0, sleep=no_sleep)
        store = get_state_store(state_path or tmp_path / "state.json", WALLET)
        config = CoordinatorConfig(
            wallet_address=WALLET,
            batch_concurrency=3,
            scan_timeout_sec=scan_timeout_sec,
        )
        return ScanCoordinator(
            config,
            store=store,
            client=client,
            paginator=paginator,
            fetcher=fetcher,
            **kwargs,
        )

    return _build

"""
Scan coordinator — single-flight full or incremental scan of one wallet.

State machine: Idle → Running → Idle (success | failure). A second request
while Running is rejected, never queued. Each run loads the checkpoint,
decides full vs incremental, walks signatures, sums inbound deltas, and
saves the whole new record only when the run completed. A failed run leaves
totals and cursor exactly as last saved; only the call-budget fields are
written back so spent quota survives a restart.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from backend_inflow.agent_worker.status import ScanStatus
from backend_inflow.core.exceptions import ScanAlreadyRunning, ScanTimeout, StateStoreError
from backend_inflow.database import LedgerState, LedgerStateStore
from backend_inflow.inflow_logging import bind_scan_type, get_logger, scan_context
from backend_inflow.ingestion import BatchFetcher, BatchResult
from backend_inflow.solana_rpc import SignatureInfo, SignaturePaginator, SolanaRpcClient, lamports_to_sol

logger = get_logger(__name__)

SCAN_FULL = "full"
SCAN_INCREMENTAL = "incremental"

DEFAULT_FULL_SCAN_INTERVAL = timedelta(days=7)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CoordinatorConfig:
    """
    wallet_address: Tracked wallet (base58).
    full_scan_interval: Max age of the last full walk before the next run is full.
    batch_concurrency: Worker count for transaction fetches.
    scan_timeout_sec: Overall deadline for one run; None disables it.
    """

    wallet_address: str
    full_scan_interval: timedelta = field(default_factory=lambda: DEFAULT_FULL_SCAN_INTERVAL)
    batch_concurrency: int = 8
    scan_timeout_sec: float | None = None


@dataclass
class ScanOutcome:
    """Result of one completed run."""

    scan_type: str
    new_signatures: int
    batch: BatchResult
    state: LedgerState
    truncated: bool
    duration_ms: int = 0


def choose_scan_type(
    state: LedgerState,
    *,
    force_full: bool,
    now: datetime,
    full_scan_interval: timedelta,
) -> str:
    """Full when forced, never done, no cursor yet, or the last full walk is too old."""
    if force_full:
        return SCAN_FULL
    if state.last_full_scan_at is None or state.last_processed_signature is None:
        return SCAN_FULL
    if now - state.last_full_scan_at > full_scan_interval:
        return SCAN_FULL
    return SCAN_INCREMENTAL


class ScanCoordinator:
    """Owns the LedgerState during a run and the process-wide ScanStatus."""

    def __init__(
        self,
        config: CoordinatorConfig,
        *,
        store: LedgerStateStore,
        client: SolanaRpcClient,
        paginator: SignaturePaginator | None = None,
        fetcher: BatchFetcher | None = None,
        clock: Callable[[], datetime] = _utc_now,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._store = store
        self._client = client
        self._paginator = paginator or SignaturePaginator(client)
        self._fetcher = fetcher or BatchFetcher(client, concurrency=config.batch_concurrency)
        self._clock = clock
        self._monotonic = monotonic
        self._task: asyncio.Task[Any] | None = None
        self.status = ScanStatus()

    @property
    def wallet_address(self) -> str:
        return self._config.wallet_address

    @property
    def running(self) -> bool:
        return self.status.running

    def status_snapshot(self) -> dict[str, Any]:
        return self.status.to_dict()

    def load_status_from_store(self) -> None:
        """Show the last saved totals before the first run of this process finishes."""
        try:
            state = self._store.load()
        except StateStoreError as e:
            logger.warning("coordinator_status_prime_failed", wallet_id=self.wallet_address, error=str(e))
            return
        self._client.budget.restore(state.api_calls_today, state.api_calls_reset_date)
        if state.last_full_scan_at is None and state.last_incremental_scan_at is None:
            return
        self.status.total_sol = lamports_to_sol(state.total_lamports_in)
        self.status.total_lamports_in = state.total_lamports_in
        self.status.transaction_count = state.transaction_count
        self.status.last_updated = max(
            t for t in (state.last_full_scan_at, state.last_incremental_scan_at) if t is not None
        )
        self.status.history_truncated = state.history_truncated
        self.status.api_calls_used = self._client.budget.used

    async def run_scan(self, force_full: bool = False) -> ScanOutcome:
        """
        Run one scan to completion in the caller's task.

        Raises ScanAlreadyRunning if a scan is active, otherwise re-raises
        whatever aborted the run after logging it.
        """
        if self.status.running:
            raise ScanAlreadyRunning(f"scan already running for {self.wallet_address}")
        self.status.running = True
        return await self._execute(force_full)

    def request_refresh(self, force_full: bool = False) -> bool:
        """
        Start a scan in the background. Returns False (conflict) if one is running.

        Must be called from the event loop thread.
        """
        if self.status.running:
            logger.info("scan_refresh_rejected", wallet_id=self.wallet_address, reason="already_running")
            return False
        self.status.running = True
        self._task = asyncio.create_task(self._execute_in_background(force_full))
        return True

    async def wait_idle(self) -> None:
        """Wait for the background scan started by request_refresh, if any."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.gather(task, return_exceptions=True)

    async def aclose(self) -> None:
        """Wait for a background scan to finish, then close the RPC client."""
        await self.wait_idle()
        await self._client.aclose()

    async def _execute_in_background(self, force_full: bool) -> None:
        try:
            await self._execute(force_full)
        except Exception as e:
            # traceback already logged and recorded in status by _execute
            logger.debug("scan_refresh_task_failed", wallet_id=self.wallet_address, error=str(e))

    async def _execute(self, force_full: bool) -> ScanOutcome:
        with scan_context(self.wallet_address):
            started = self._monotonic()
            self.status.started_at = self._clock()
            self.status.last_error = None
            try:
                state = await asyncio.to_thread(self._store.load)
                self._client.budget.restore(state.api_calls_today, state.api_calls_reset_date)
                scan_type = choose_scan_type(
                    state,
                    force_full=force_full,
                    now=self._clock(),
                    full_scan_interval=self._config.full_scan_interval,
                )
                bind_scan_type(scan_type)
                logger.info(
                    "scan_started",
                    forced=force_full,
                    api_calls_remaining=self._client.budget.remaining,
                    since_signature=state.last_processed_signature if scan_type == SCAN_INCREMENTAL else None,
                )
                outcome = await self._run_with_deadline(state, scan_type)
                outcome.duration_ms = int((self._monotonic() - started) * 1000)
                await asyncio.to_thread(self._store.save, outcome.state)
            except Exception as e:
                await self._record_failure(e, started)
                raise
            else:
                self._record_success(outcome)
                return outcome
            finally:
                self.status.running = False

    async def _run_with_deadline(self, state: LedgerState, scan_type: str) -> ScanOutcome:
        timeout = self._config.scan_timeout_sec
        if not timeout:
            return await self._scan(state, scan_type)
        try:
            return await asyncio.wait_for(self._scan(state, scan_type), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise ScanTimeout(f"{scan_type} scan exceeded {timeout}s") from e

    async def _scan(self, state: LedgerState, scan_type: str) -> ScanOutcome:
        wallet = self.wallet_address
        since = state.last_processed_signature if scan_type == SCAN_INCREMENTAL else None

        signatures: list[SignatureInfo] = []
        async for info in self._paginator.paginate(wallet, since):
            signatures.append(info)
        truncated = self._paginator.truncated
        logger.info(
            "scan_signatures_collected",
            signatures=len(signatures),
            pages=self._paginator.pages_fetched,
            truncated=truncated,
        )

        batch = await self._fetcher.fetch_and_sum(
            signatures, wallet, concurrency=self._config.batch_concurrency
        )

        new_state = state.copy()
        new_state.wallet = wallet
        now = self._clock()
        if scan_type == SCAN_FULL:
            new_state.total_lamports_in = batch.total_inbound
            new_state.transaction_count = batch.count_inbound
            new_state.last_full_scan_at = now
        else:
            new_state.total_lamports_in += batch.total_inbound
            new_state.transaction_count += batch.count_inbound
            new_state.last_incremental_scan_at = now
        if signatures:
            new_state.last_processed_signature = signatures[0].signature
        new_state.history_truncated = truncated
        new_state.api_calls_today = self._client.budget.used
        new_state.api_calls_reset_date = self._client.budget.reset_date

        return ScanOutcome(
            scan_type=scan_type,
            new_signatures=len(signatures),
            batch=batch,
            state=new_state,
            truncated=truncated,
        )

    def _record_success(self, outcome: ScanOutcome) -> None:
        state = outcome.state
        status = self.status
        status.total_sol = lamports_to_sol(state.total_lamports_in)
        status.total_lamports_in = state.total_lamports_in
        status.transaction_count = state.transaction_count
        status.last_updated = self._clock()
        status.last_run_ms = outcome.duration_ms
        status.api_calls_used = self._client.budget.used
        status.last_scan_type = outcome.scan_type
        status.errors = outcome.batch.errors
        status.history_truncated = outcome.truncated
        log = logger.warning if outcome.truncated else logger.info
        log(
            "scan_completed",
            new_signatures=outcome.new_signatures,
            inbound_lamports=outcome.batch.total_inbound,
            inbound_count=outcome.batch.count_inbound,
            errors=outcome.batch.errors,
            total_lamports_in=state.total_lamports_in,
            total_sol=str(status.total_sol),
            last_processed_signature=state.last_processed_signature,
            history_truncated=outcome.truncated,
            duration_ms=outcome.duration_ms,
            api_calls_used=status.api_calls_used,
        )

    async def _record_failure(self, error: Exception, started: float) -> None:
        self.status.last_error = f"{type(error).__name__}: {error}"
        self.status.last_run_ms = int((self._monotonic() - started) * 1000)
        self.status.api_calls_used = self._client.budget.used
        logger.exception(
            "scan_failed",
            error_type=type(error).__name__,
            error=str(error),
            api_calls_used=self.status.api_calls_used,
        )
        try:
            durable = await asyncio.to_thread(self._store.load)
            durable.api_calls_today = self._client.budget.used
            durable.api_calls_reset_date = self._client.budget.reset_date
            await asyncio.to_thread(self._store.save, durable)
        except StateStoreError as e:
            logger.warning("scan_budget_persist_failed", error=str(e))

"""
Batch fetcher: signatures → getTransaction → balance delta → inbound totals.

Best-effort per signature: a transaction that cannot be fetched or read is
counted as an error and contributes zero while the batch carries on.
QuotaExceeded always aborts the batch, and so does a run of consecutive
upstream failures (the endpoint is down, not one transaction bad).
Aggregation is commutative; worker scheduling order never changes totals.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Iterator

from backend_inflow.core.exceptions import (
    MalformedRecord,
    RateLimited,
    RpcResponseError,
    Unavailable,
)
from backend_inflow.inflow_logging import get_logger
from backend_inflow.solana_rpc.client import SolanaRpcClient
from backend_inflow.solana_rpc.models import LAMPORTS_PER_SOL, SignatureInfo, TransactionRecord
from backend_inflow.solana_rpc.parser import extract_delta

logger = get_logger(__name__)

DEFAULT_CONCURRENCY = 8
DEFAULT_PAUSE_EVERY = 50
DEFAULT_PAUSE_SEC = 0.25
DEFAULT_MAX_CONSECUTIVE_FAILURES = 10
DEFAULT_LARGE_TRANSFER_LAMPORTS = 100 * LAMPORTS_PER_SOL


@dataclass
class BatchResult:
    """Aggregate of one batch. Times are unix seconds of the oldest/newest fetched transaction."""

    total_inbound: int = 0
    count_inbound: int = 0
    processed: int = 0
    errors: int = 0
    skipped: int = 0
    earliest_time: int | None = None
    latest_time: int | None = None

    def observe_time(self, block_time: int | None) -> None:
        if block_time is None:
            return
        if self.earliest_time is None or block_time < self.earliest_time:
            self.earliest_time = block_time
        if self.latest_time is None or block_time > self.latest_time:
            self.latest_time = block_time

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_inbound": self.total_inbound,
            "count_inbound": self.count_inbound,
            "processed": self.processed,
            "errors": self.errors,
            "skipped": self.skipped,
            "earliest_time": self.earliest_time,
            "latest_time": self.latest_time,
        }


class BatchFetcher:
    """Bounded-concurrency transaction fetch and sum for one tracked address."""

    def __init__(
        self,
        client: SolanaRpcClient,
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
        pause_every: int = DEFAULT_PAUSE_EVERY,
        pause_sec: float = DEFAULT_PAUSE_SEC,
        max_consecutive_failures: int = DEFAULT_MAX_CONSECUTIVE_FAILURES,
        large_transfer_lamports: int = DEFAULT_LARGE_TRANSFER_LAMPORTS,
        exclude_self_transfers: bool = False,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._client = client
        self._concurrency = concurrency
        self._pause_every = max(0, pause_every)
        self._pause_sec = pause_sec
        self._max_consecutive_failures = max(1, max_consecutive_failures)
        self._large_transfer_lamports = large_transfer_lamports
        self._exclude_self_transfers = exclude_self_transfers
        self._sleep = sleep

    async def fetch_and_sum(
        self,
        signatures: Iterable[SignatureInfo],
        tracked_address: str,
        concurrency: int | None = None,
    ) -> BatchResult:
        """
        Fetch every signature's transaction and sum strictly positive deltas.

        Raises QuotaExceeded, or Unavailable after max_consecutive_failures
        upstream failures in a row. Any other per-signature failure is counted
        in `errors`.
        """
        items = list(signatures)
        result = BatchResult()
        if not items:
            return result
        workers = max(1, min(concurrency or self._concurrency, len(items)))
        source = iter(items)
        failures = {"consecutive": 0}

        tasks = [
            asyncio.create_task(self._worker(source, tracked_address, result, failures))
            for _ in range(workers)
        ]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        logger.info(
            "batch_completed",
            signatures=len(items),
            workers=workers,
            **result.to_dict(),
        )
        return result

    async def _worker(
        self,
        source: Iterator[SignatureInfo],
        tracked_address: str,
        result: BatchResult,
        failures: dict[str, int],
    ) -> None:
        for info in source:
            await self._process_one(info, tracked_address, result, failures)
            result.processed += 1
            if self._pause_every and result.processed % self._pause_every == 0:
                await self._sleep(self._pause_sec)

    async def _process_one(
        self,
        info: SignatureInfo,
        tracked_address: str,
        result: BatchResult,
        failures: dict[str, int],
    ) -> None:
        if info.failed:
            # Failed at discovery time: zero contribution, no RPC call
            result.skipped += 1
            return

        try:
            raw = await self._client.get_transaction(info.signature)
            if raw is None:
                raise MalformedRecord(f"transaction {info.signature} not found")
            tx = TransactionRecord.from_rpc_result(raw, signature=info.signature)
        except (RateLimited, Unavailable) as e:
            result.errors += 1
            failures["consecutive"] += 1
            logger.warning(
                "batch_tx_fetch_failed",
                signature=info.signature,
                consecutive_failures=failures["consecutive"],
                error=str(e),
            )
            if failures["consecutive"] >= self._max_consecutive_failures:
                raise Unavailable(
                    f"{failures['consecutive']} consecutive transaction fetches failed",
                    method="getTransaction",
                    attempts=failures["consecutive"],
                ) from e
            return
        except (RpcResponseError, MalformedRecord) as e:
            result.errors += 1
            logger.warning(
                "batch_tx_malformed",
                signature=info.signature,
                error=str(e),
            )
            return

        failures["consecutive"] = 0
        result.observe_time(tx.block_time if tx.block_time is not None else info.block_time)
        delta = extract_delta(tx, tracked_address, exclude_self_transfers=self._exclude_self_transfers)
        if delta <= 0:
            return
        result.total_inbound += delta
        result.count_inbound += 1
        if delta >= self._large_transfer_lamports:
            logger.info(
                "batch_large_inbound",
                signature=info.signature,
                amount_lamports=delta,
                block_time=tx.block_time,
            )

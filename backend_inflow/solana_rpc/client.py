"""
Solana JSON-RPC client with bounded retries and a daily call budget.

Responsibilities:
- Issue one logical JSON-RPC call over httpx and return its result.
- Enforce the daily call budget before any request is sent (QuotaExceeded).
- Retry rate-limit answers with a delay proportional to the attempt number,
  then give up with RateLimited.
- Retry transport failures and 5xx with a short fixed delay, then give up
  with Unavailable.
- Count a call against the budget only when it succeeds, exactly once.
"""

from __future__ import annotations

import asyncio
import threading
from datetime import date, datetime, timezone
from typing import Any, Awaitable, Callable

import httpx

from backend_inflow.core.exceptions import (
    QuotaExceeded,
    RateLimited,
    RpcResponseError,
    Unavailable,
)
from backend_inflow.inflow_logging import get_logger

logger = get_logger(__name__)

DEFAULT_REQUEST_TIMEOUT_SEC = 30.0
DEFAULT_MAX_RATE_LIMIT_ATTEMPTS = 5
DEFAULT_RATE_LIMIT_BASE_DELAY_SEC = 1.0
DEFAULT_MAX_SERVER_ERROR_ATTEMPTS = 3
DEFAULT_SERVER_ERROR_DELAY_SEC = 0.5

# JSON-RPC error codes some providers use for throttling
RATE_LIMIT_RPC_CODES = frozenset({429, -32429})
# Node-side transient faults: node behind, block not available, internal error
RETRYABLE_SERVER_RPC_CODES = frozenset({-32004, -32005, -32603})


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


def rate_limit_delay(attempt: int, base_delay_sec: float = DEFAULT_RATE_LIMIT_BASE_DELAY_SEC) -> float:
    """Delay before retrying after the given (1-based) rate-limited attempt."""
    return base_delay_sec * max(1, attempt)


def _is_rate_limit_error(code: Any, message: str) -> bool:
    if code in RATE_LIMIT_RPC_CODES:
        return True
    lowered = message.lower()
    return "rate limit" in lowered or "too many requests" in lowered


class CallBudget:
    """
    Daily RPC call budget.

    `used` counts successful calls since `reset_date` (UTC). A call reserves a
    slot before it is sent so concurrent workers cannot overshoot the limit;
    the slot is released on completion and counted only on success. The
    counter rolls over to zero at the first reservation after the date changes.
    """

    def __init__(
        self,
        daily_limit: int,
        *,
        used: int = 0,
        reset_date: date | None = None,
        today: Callable[[], date] = _utc_today,
    ) -> None:
        if daily_limit < 1:
            raise ValueError("daily_limit must be >= 1")
        self.daily_limit = daily_limit
        self._today = today
        self._used = max(0, int(used))
        self._reset_date = reset_date or today()
        self._in_flight = 0
        self._lock = threading.Lock()

    @property
    def used(self) -> int:
        return self._used

    @property
    def reset_date(self) -> date:
        return self._reset_date

    @property
    def remaining(self) -> int:
        with self._lock:
            self._roll_over()
            return max(0, self.daily_limit - self._used - self._in_flight)

    def restore(self, used: int, reset_date: date | None) -> None:
        """
        Seed the counter from a persisted record.

        A record from an earlier day is ignored (the next reservation starts a
        fresh day). For the same day the larger count wins, so a restore never
        lowers the counter within a day.
        """
        with self._lock:
            if reset_date is None:
                return
            if reset_date > self._reset_date:
                self._reset_date = reset_date
                self._used = max(0, int(used))
            elif reset_date == self._reset_date:
                self._used = max(self._used, int(used))
            self._roll_over()

    def reserve(self, method: str | None = None) -> None:
        """Claim a slot for one call or raise QuotaExceeded without side effects."""
        with self._lock:
            self._roll_over()
            if self._used + self._in_flight >= self.daily_limit:
                raise QuotaExceeded(
                    f"daily RPC call limit reached ({self.daily_limit})",
                    method=method,
                )
            self._in_flight += 1

    def release(self, succeeded: bool) -> None:
        with self._lock:
            self._in_flight = max(0, self._in_flight - 1)
            if succeeded:
                self._roll_over()
                self._used += 1

    def _roll_over(self) -> None:
        today = self._today()
        if today != self._reset_date:
            logger.info(
                "rpc_budget_reset",
                previous_date=self._reset_date.isoformat(),
                previous_used=self._used,
                reset_date=today.isoformat(),
            )
            self._reset_date = today
            self._used = 0


class SolanaRpcClient:
    """
    Async JSON-RPC client for a single Solana endpoint.

    Owns the CallBudget. One `call()` is one logical request: the budget is
    checked once, retries happen inside, and the budget is charged once on
    success.
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        budget: CallBudget,
        client: httpx.AsyncClient | None = None,
        commitment: str = "finalized",
        request_timeout_sec: float = DEFAULT_REQUEST_TIMEOUT_SEC,
        max_rate_limit_attempts: int = DEFAULT_MAX_RATE_LIMIT_ATTEMPTS,
        rate_limit_base_delay_sec: float = DEFAULT_RATE_LIMIT_BASE_DELAY_SEC,
        max_server_error_attempts: int = DEFAULT_MAX_SERVER_ERROR_ATTEMPTS,
        server_error_delay_sec: float = DEFAULT_SERVER_ERROR_DELAY_SEC,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if not rpc_url.strip():
            raise ValueError("rpc_url must be non-empty")
        if max_rate_limit_attempts < 1 or max_server_error_attempts < 1:
            raise ValueError("attempt limits must be >= 1")
        self._rpc_url = rpc_url.strip()
        self.budget = budget
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(request_timeout_sec))
        self._commitment = commitment
        self._max_rate_limit_attempts = max_rate_limit_attempts
        self._rate_limit_base_delay = rate_limit_base_delay_sec
        self._max_server_error_attempts = max_server_error_attempts
        self._server_error_delay = server_error_delay_sec
        self._sleep = sleep
        self._next_rpc_id = 0

    async def __aenter__(self) -> "SolanaRpcClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _next_id(self) -> int:
        self._next_rpc_id += 1
        return self._next_rpc_id

    async def call(self, method: str, params: list[Any]) -> Any:
        """
        Perform one logical JSON-RPC call and return its `result`.

        Raises QuotaExceeded (no request sent), RateLimited, Unavailable or
        RpcResponseError.
        """
        self.budget.reserve(method)
        succeeded = False
        try:
            result = await self._call_with_retries(method, params)
            succeeded = True
            return result
        finally:
            self.budget.release(succeeded)

    async def _call_with_retries(self, method: str, params: list[Any]) -> Any:
        rate_limited = 0
        server_errors = 0
        while True:
            body = {
                "jsonrpc": "2.0",
                "id": self._next_id(),
                "method": method,
                "params": params,
            }
            try:
                resp = await self._client.post(self._rpc_url, json=body)
            except httpx.TransportError as e:
                server_errors += 1
                await self._server_error_backoff(method, server_errors, f"transport: {e}")
                continue

            if resp.status_code == 429:
                rate_limited += 1
                await self._rate_limit_backoff(method, rate_limited, "HTTP 429")
                continue
            if resp.status_code >= 500:
                server_errors += 1
                await self._server_error_backoff(method, server_errors, f"HTTP {resp.status_code}")
                continue
            if resp.status_code >= 400:
                raise RpcResponseError(
                    f"Solana RPC HTTP {resp.status_code} for {method}",
                    method=method,
                    code=resp.status_code,
                    attempts=rate_limited + server_errors + 1,
                )

            try:
                data = resp.json()
            except ValueError:
                server_errors += 1
                await self._server_error_backoff(method, server_errors, "invalid JSON body")
                continue
            if not isinstance(data, dict):
                server_errors += 1
                await self._server_error_backoff(method, server_errors, "non-object JSON body")
                continue

            err = data.get("error")
            if err:
                code = err.get("code") if isinstance(err, dict) else None
                message = str(err.get("message", err)) if isinstance(err, dict) else str(err)
                if _is_rate_limit_error(code, message):
                    rate_limited += 1
                    await self._rate_limit_backoff(method, rate_limited, message)
                    continue
                if code in RETRYABLE_SERVER_RPC_CODES:
                    server_errors += 1
                    await self._server_error_backoff(method, server_errors, message)
                    continue
                raise RpcResponseError(
                    f"Solana RPC error: {message} (code={code})",
                    method=method,
                    code=code,
                    attempts=rate_limited + server_errors + 1,
                )
            if "result" not in data:
                raise RpcResponseError(
                    f"Solana RPC returned no result for {method}",
                    method=method,
                    attempts=rate_limited + server_errors + 1,
                )
            return data["result"]

    async def _rate_limit_backoff(self, method: str, attempt: int, reason: str) -> None:
        """Sleep before the next attempt, or raise RateLimited once attempts are used up."""
        if attempt >= self._max_rate_limit_attempts:
            logger.error("rpc_rate_limited_give_up", method=method, attempts=attempt, reason=reason)
            raise RateLimited(
                f"{method} still rate limited after {attempt} attempts",
                method=method,
                attempts=attempt,
            )
        delay = rate_limit_delay(attempt, self._rate_limit_base_delay)
        logger.warning(
            "rpc_rate_limited_retry",
            method=method,
            attempt=attempt,
            max_attempts=self._max_rate_limit_attempts,
            delay_sec=delay,
            reason=reason,
        )
        await self._sleep(delay)

    async def _server_error_backoff(self, method: str, attempt: int, reason: str) -> None:
        """Sleep a fixed delay before the next attempt, or raise Unavailable."""
        if attempt >= self._max_server_error_attempts:
            logger.error("rpc_unavailable_give_up", method=method, attempts=attempt, reason=reason)
            raise Unavailable(
                f"{method} failed after {attempt} attempts: {reason}",
                method=method,
                attempts=attempt,
            )
        logger.warning(
            "rpc_server_error_retry",
            method=method,
            attempt=attempt,
            max_attempts=self._max_server_error_attempts,
            delay_sec=self._server_error_delay,
            reason=reason,
        )
        await self._sleep(self._server_error_delay)

    async def get_signatures_for_address(
        self,
        address: str,
        *,
        limit: int,
        before: str | None = None,
        until: str | None = None,
    ) -> list[dict[str, Any]]:
        """getSignaturesForAddress page, newest first."""
        opts: dict[str, Any] = {"limit": limit, "commitment": self._commitment}
        if before is not None:
            opts["before"] = before
        if until is not None:
            opts["until"] = until
        result = await self.call("getSignaturesForAddress", [address, opts])
        if result is None:
            return []
        if not isinstance(result, list):
            raise RpcResponseError(
                "getSignaturesForAddress result is not a list",
                method="getSignaturesForAddress",
            )
        return result

    async def get_transaction(self, signature: str) -> dict[str, Any] | None:
        """getTransaction (json encoding, versioned transactions allowed); None if not found."""
        return await self.call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "json",
                    "maxSupportedTransactionVersion": 0,
                    "commitment": self._commitment,
                },
            ],
        )

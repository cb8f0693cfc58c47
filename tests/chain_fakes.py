"""
Fake Solana JSON-RPC endpoint and transaction builders for tests.

FakeChain serves getSignaturesForAddress / getTransaction through
httpx.MockTransport so the real SolanaRpcClient, paginator, batch fetcher
and coordinator run end to end without network access.
"""

from __future__ import annotations

import json
from typing import Any

import httpx

from backend_inflow.solana_rpc import CallBudget, SolanaRpcClient

# Valid Solana pubkeys (base58, 32 bytes)
WALLET = "9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka"
OTHER = "7F1WzVNQ1Qpurqxxdyv3UrFQR3uoNepULVW9A4bAJ5nZ"
SYSTEM_PROGRAM = "11111111111111111111111111111111"
RPC_URL = "http://rpc.test"


async def no_sleep(_seconds: float) -> None:
    return None


def make_tx(
    signature: str,
    keys: list[str],
    pre: list[int],
    post: list[int],
    *,
    err: Any = None,
    writable: list[str] | None = None,
    readonly: list[str] | None = None,
    block_time: int | None = 1_700_000_000,
) -> dict[str, Any]:
    """Raw getTransaction result (json encoding)."""
    meta: dict[str, Any] = {
        "err": err,
        "fee": 5000,
        "preBalances": pre,
        "postBalances": post,
    }
    if writable is not None or readonly is not None:
        meta["loadedAddresses"] = {"writable": writable or [], "readonly": readonly or []}
    return {
        "slot": 250_000_000,
        "blockTime": block_time,
        "meta": meta,
        "transaction": {
            "signatures": [signature],
            "message": {"accountKeys": keys, "instructions": []},
        },
        "version": 0 if writable or readonly else "legacy",
    }


def inbound_tx(signature: str, lamports: int, **kwargs: Any) -> dict[str, Any]:
    """Transfer of `lamports` from OTHER into WALLET (negative lamports = outbound)."""
    return make_tx(
        signature,
        [OTHER, WALLET, SYSTEM_PROGRAM],
        [10_000_000_000, 1_000_000_000, 1],
        [10_000_000_000 - lamports - 5000, 1_000_000_000 + lamports, 1],
        **kwargs,
    )


class FakeChain:
    """In-memory JSON-RPC endpoint for one wallet's history (newest first)."""

    def __init__(self) -> None:
        self.signatures: list[dict[str, Any]] = []
        self.transactions: dict[str, dict[str, Any] | None] = {}
        self.requests: list[dict[str, Any]] = []
        self.failing: set[str] = set()
        self.rate_limit_next = 0
        self.server_error_next = 0
        self.always_full_pages = False

    def add(
        self,
        signature: str,
        tx: dict[str, Any] | None = None,
        *,
        err: Any = None,
        block_time: int | None = 1_700_000_000,
    ) -> None:
        """Append a transaction newer than every existing one."""
        self.signatures.insert(
            0,
            {
                "signature": signature,
                "slot": 250_000_000 + len(self.signatures),
                "err": err,
                "blockTime": block_time,
                "memo": None,
                "confirmationStatus": "finalized",
            },
        )
        self.transactions[signature] = tx

    def add_inbound(self, signature: str, lamports: int) -> None:
        self.add(signature, inbound_tx(signature, lamports))

    def count(self, method: str) -> int:
        return sum(1 for r in self.requests if r.get("method") == method)

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        if self.rate_limit_next > 0:
            self.rate_limit_next -= 1
            return httpx.Response(429, json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": 429, "message": "Too many requests"}})
        if self.server_error_next > 0:
            self.server_error_next -= 1
            return httpx.Response(503, text="upstream down")
        method = body["method"]
        params = body["params"]
        if method == "getSignaturesForAddress":
            return self._ok(body, self._signatures_page(params[1]))
        if method == "getTransaction":
            sig = params[0]
            if sig in self.failing:
                return httpx.Response(503, text="upstream down")
            return self._ok(body, self.transactions.get(sig))
        return httpx.Response(
            200,
            json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": -32601, "message": "Method not found"}},
        )

    def _signatures_page(self, opts: dict[str, Any]) -> list[dict[str, Any]]:
        limit = opts["limit"]
        before = opts.get("before")
        until = opts.get("until")
        if self.always_full_pages:
            n = self.count("getSignaturesForAddress")
            return [{"signature": f"endless-{n}-{i}", "slot": i, "err": None, "blockTime": None} for i in range(limit)]
        start = 0
        if before is not None:
            start = [s["signature"] for s in self.signatures].index(before) + 1
        page: list[dict[str, Any]] = []
        for item in self.signatures[start:]:
            if until is not None and item["signature"] == until:
                break
            page.append(item)
            if len(page) >= limit:
                break
        return page

    @staticmethod
    def _ok(body: dict[str, Any], result: Any) -> httpx.Response:
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    def client(
        self,
        *,
        daily_limit: int = 10_000,
        budget: CallBudget | None = None,
        **kwargs: Any,
    ) -> SolanaRpcClient:
        http = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        kwargs.setdefault("rate_limit_base_delay_sec", 0.0)
        kwargs.setdefault("server_error_delay_sec", 0.0)
        kwargs.setdefault("sleep", no_sleep)
        return SolanaRpcClient(
            RPC_URL,
            budget=budget or CallBudget(daily_limit),
            client=http,
            **kwargs,
        )

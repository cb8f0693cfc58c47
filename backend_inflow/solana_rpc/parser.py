"""
Balance-delta extraction — tracked account's lamport change per transaction.

Purely structural and side-effect free: never raises, malformed or missing
data yields a zero delta. Only positive deltas count as inbound; callers do
the summing.

Self-transfers: amounts come from the pre/post balance arrays only. A
transfer whose source and destination are both the tracked address nets to
minus the fee in those arrays, so it never yields a positive delta; the
exclude_self_transfers flag is accepted for API symmetry and has no further
effect in this view.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from backend_inflow.core.exceptions import MalformedRecord
from backend_inflow.solana_rpc.models import LAMPORTS_PER_SOL, BalanceDelta, TransactionRecord


def lamports_to_sol(lamports: int) -> Decimal:
    """Exact lamports → SOL conversion (1 SOL = 1_000_000_000 lamports)."""
    return Decimal(int(lamports)) / Decimal(LAMPORTS_PER_SOL)


def find_account_index(account_keys: tuple[str, ...] | list[str], address: str) -> int | None:
    """First index of address in the combined account list, or None."""
    for i, key in enumerate(account_keys):
        if key == address:
            return i
    return None


def extract_delta(
    tx: TransactionRecord,
    tracked_address: str,
    *,
    exclude_self_transfers: bool = False,
) -> int:
    """
    Return post - pre lamports for tracked_address in tx.

    0 when the transaction failed on-chain (its balances only reflect the
    reverted attempt plus fees), when the address is absent, or when its
    index is outside either balance array.
    """
    if tx.err is not None:
        return 0
    idx = find_account_index(tx.account_keys, tracked_address)
    if idx is None:
        return 0
    if idx >= len(tx.pre_balances) or idx >= len(tx.post_balances):
        return 0
    return tx.post_balances[idx] - tx.pre_balances[idx]


def extract_balance_delta(
    raw: dict[str, Any] | None,
    tracked_address: str,
    *,
    signature: str | None = None,
    block_time: int | None = None,
    exclude_self_transfers: bool = False,
) -> BalanceDelta:
    """
    Build a BalanceDelta from a raw getTransaction result.

    Malformed payloads produce a zero delta rather than an error. Use
    TransactionRecord.from_rpc_result directly when the caller needs to count
    malformed records.
    """
    try:
        tx = TransactionRecord.from_rpc_result(raw or {}, signature=signature)
    except MalformedRecord:
        return BalanceDelta(signature=signature, block_time=block_time, amount_lamports=0)
    amount = extract_delta(tx, tracked_address, exclude_self_transfers=exclude_self_transfers)
    return BalanceDelta(
        signature=tx.signature or signature,
        block_time=tx.block_time if tx.block_time is not None else block_time,
        amount_lamports=amount,
    )

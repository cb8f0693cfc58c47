"""
Data models for Solana RPC payloads.

- SignatureInfo: one getSignaturesForAddress item (the pagination unit).
- TransactionRecord: the slice of a getTransaction result the delta
  extractor needs (combined account keys, balance arrays, error flag).
- BalanceDelta: lamport change of the tracked account in one transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from backend_inflow.core.exceptions import MalformedRecord

LAMPORTS_PER_SOL = 1_000_000_000


@dataclass(frozen=True)
class SignatureInfo:
    """
    Normalized transaction signature info from getSignaturesForAddress.

    Mirrors Solana RPC response fields. Pages arrive newest first.
    """

    signature: str
    slot: int | None = None
    err: Any = None  # None if success; dict/object from RPC if failed
    block_time: int | None = None  # Unix timestamp; None if not available
    memo: str | None = None
    confirmation_status: str | None = None  # processed | confirmed | finalized

    @property
    def failed(self) -> bool:
        return self.err is not None

    @classmethod
    def from_rpc_item(cls, item: dict[str, Any]) -> "SignatureInfo":
        """Build from a single getSignaturesForAddress result item."""
        slot = item.get("slot")
        return cls(
            signature=item["signature"],
            slot=int(slot) if slot is not None else None,
            err=item.get("err"),
            block_time=item.get("blockTime"),
            memo=item.get("memo"),
            confirmation_status=item.get("confirmationStatus"),
        )


def _key_to_str(key: Any) -> str:
    """accountKeys entries are strings (json) or {"pubkey": ...} dicts (jsonParsed)."""
    if isinstance(key, str):
        return key
    if isinstance(key, dict):
        return str(key.get("pubkey") or "")
    return ""


def _key_list(values: Any, field_name: str) -> list[str]:
    if values is None:
        return []
    if not isinstance(values, list):
        raise MalformedRecord(f"{field_name} is not a list")
    return [_key_to_str(k) for k in values]


def _int_list(values: Any) -> list[int]:
    if not isinstance(values, list):
        return []
    return [int(v) for v in values]


@dataclass(frozen=True)
class TransactionRecord:
    """
    Balance-relevant view of one getTransaction result.

    account_keys is the combined list: static keys, then
    meta.loadedAddresses.writable, then meta.loadedAddresses.readonly. That
    is the order pre/post balances are indexed in for versioned transactions
    that use address lookup tables.
    """

    account_keys: tuple[str, ...]
    pre_balances: tuple[int, ...]
    post_balances: tuple[int, ...]
    err: Any = None
    signature: str | None = None
    block_time: int | None = None
    slot: int | None = None

    @classmethod
    def from_rpc_result(
        cls,
        raw: dict[str, Any],
        *,
        signature: str | None = None,
    ) -> "TransactionRecord":
        """
        Build from a getTransaction result (json or jsonParsed encoding).

        Raises MalformedRecord when the payload has no transaction message or
        meta, or when the key lists or balance arrays have the wrong shape.
        """
        if not isinstance(raw, dict):
            raise MalformedRecord("transaction result is not an object")
        tx_obj = raw.get("transaction")
        message = tx_obj.get("message") if isinstance(tx_obj, dict) else None
        meta = raw.get("meta")
        if not isinstance(message, dict) or not isinstance(meta, dict):
            raise MalformedRecord("transaction result lacks message or meta")

        keys = _key_list(message.get("accountKeys"), "message.accountKeys")
        loaded = meta.get("loadedAddresses") or {}
        if not isinstance(loaded, dict):
            raise MalformedRecord("meta.loadedAddresses is not an object")
        writable = _key_list(loaded.get("writable"), "meta.loadedAddresses.writable")
        readonly = _key_list(loaded.get("readonly"), "meta.loadedAddresses.readonly")

        if signature is None:
            sigs = tx_obj.get("signatures")
            if isinstance(sigs, list) and sigs and isinstance(sigs[0], str):
                signature = sigs[0]

        try:
            pre = _int_list(meta.get("preBalances"))
            post = _int_list(meta.get("postBalances"))
        except (TypeError, ValueError) as e:
            raise MalformedRecord(f"balance arrays are not integers: {e}") from e

        block_time = raw.get("blockTime")
        slot = raw.get("slot")
        return cls(
            account_keys=tuple(keys + writable + readonly),
            pre_balances=tuple(pre),
            post_balances=tuple(post),
            err=meta.get("err"),
            signature=signature,
            block_time=int(block_time) if isinstance(block_time, (int, float)) else None,
            slot=int(slot) if isinstance(slot, int) else None,
        )


@dataclass(frozen=True)
class BalanceDelta:
    """Lamport change of the tracked account in one transaction."""

    signature: str | None
    block_time: int | None
    amount_lamports: int

    @property
    def is_inbound(self) -> bool:
        return self.amount_lamports > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "signature": self.signature,
            "block_time": self.block_time,
            "amount_lamports": self.amount_lamports,
        }

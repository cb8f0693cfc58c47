"""
Domain model for the persisted ledger checkpoint.

One LedgerState per tracked wallet. Serialized with camelCase keys; new
fields are additive and optional so older records keep loading.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from typing import Any


def _dt_to_str(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _str_to_dt(value: Any) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _str_to_date(value: Any) -> date | None:
    if not value:
        return None
    return date.fromisoformat(str(value)[:10])


@dataclass
class LedgerState:
    """Accumulated gross inbound totals, checkpoint cursor, scan timestamps and call budget."""

    total_lamports_in: int = 0
    transaction_count: int = 0
    last_processed_signature: str | None = None
    last_full_scan_at: datetime | None = None
    """UTC time the last full history walk completed; None if never."""
    last_incremental_scan_at: datetime | None = None
    api_calls_today: int = 0
    api_calls_reset_date: date | None = None
    wallet: str | None = None
    history_truncated: bool = False
    """True when the last scan stopped at the pagination cap."""

    def copy(self) -> "LedgerState":
        return replace(self)

    def to_dict(self) -> dict[str, Any]:
        """JSON-serializable record. totalLamportsIn is a decimal string to keep full precision."""
        return {
            "wallet": self.wallet,
            "totalLamportsIn": str(self.total_lamports_in),
            "transactionCount": self.transaction_count,
            "lastProcessedSignature": self.last_processed_signature,
            "lastFullScanAt": _dt_to_str(self.last_full_scan_at),
            "lastIncrementalScanAt": _dt_to_str(self.last_incremental_scan_at),
            "apiCallsToday": self.api_calls_today,
            "apiCallsResetDate": (
                self.api_calls_reset_date.isoformat() if self.api_calls_reset_date else None
            ),
            "historyTruncated": self.history_truncated,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LedgerState":
        """Inverse of to_dict. Unknown keys are ignored; missing keys take defaults."""
        return cls(
            total_lamports_in=int(data.get("totalLamportsIn") or 0),
            transaction_count=int(data.get("transactionCount") or 0),
            last_processed_signature=data.get("lastProcessedSignature") or None,
            last_full_scan_at=_str_to_dt(data.get("lastFullScanAt")),
            last_incremental_scan_at=_str_to_dt(data.get("lastIncrementalScanAt")),
            api_calls_today=int(data.get("apiCallsToday") or 0),
            api_calls_reset_date=_str_to_date(data.get("apiCallsResetDate")),
            wallet=data.get("wallet") or None,
            history_truncated=bool(data.get("historyTruncated", False)),
        )

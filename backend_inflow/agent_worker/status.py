"""
In-memory scan status snapshot, read by the HTTP status endpoint.

Written only by the ScanCoordinator with plain attribute assignment
(last value wins); readers take a dict copy via to_dict().
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any


@dataclass
class ScanStatus:
    running: bool = False
    total_sol: Decimal | None = None
    total_lamports_in: int | None = None
    last_updated: datetime | None = None
    last_run_ms: int = 0
    transaction_count: int = 0
    api_calls_used: int = 0
    last_scan_type: str | None = None
    last_error: str | None = None
    errors: int = 0
    history_truncated: bool = False
    started_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "running": self.running,
            "total_sol": float(self.total_sol) if self.total_sol is not None else None,
            "total_lamports_in": (
                str(self.total_lamports_in) if self.total_lamports_in is not None else None
            ),
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
            "last_run_ms": self.last_run_ms,
            "transaction_count": self.transaction_count,
            "api_calls_used": self.api_calls_used,
            "last_scan_type": self.last_scan_type,
            "last_error": self.last_error,
            "errors": self.errors,
            "history_truncated": self.history_truncated,
            "started_at": self.started_at.isoformat() if self.started_at else None,
        }

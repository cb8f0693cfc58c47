"""
Ledger state persistence — whole-record replace on every save.

Two backends behind one interface:
- JsonFileStateStore: one JSON file, written to a temp file and swapped in
  with os.replace so a crash never leaves a half-written checkpoint.
- SQLiteStateStore: one row per tracked wallet in `ledger_state`; every
  column is rewritten on save.

load() returns a zero-valued LedgerState when nothing is persisted yet.
"""

from __future__ import annotations

import json
import os
import sqlite3
import tempfile
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from backend_inflow.core.exceptions import StateStoreError
from backend_inflow.database.models import LedgerState
from backend_inflow.inflow_logging import get_logger

logger = get_logger(__name__)

SQLITE_SUFFIXES = (".db", ".sqlite", ".sqlite3")

SCHEMA_LEDGER_STATE = """
CREATE TABLE IF NOT EXISTS ledger_state (
    wallet TEXT PRIMARY KEY,
    total_lamports_in TEXT NOT NULL,
    transaction_count INTEGER NOT NULL,
    last_processed_signature TEXT,
    last_full_scan_at TEXT,
    last_incremental_scan_at TEXT,
    api_calls_today INTEGER NOT NULL,
    api_calls_reset_date TEXT,
    history_truncated INTEGER NOT NULL DEFAULT 0,
    updated_at TEXT
);
"""

_SQLITE_COLUMNS = {
    "total_lamports_in": "totalLamportsIn",
    "transaction_count": "transactionCount",
    "last_processed_signature": "lastProcessedSignature",
    "last_full_scan_at": "lastFullScanAt",
    "last_incremental_scan_at": "lastIncrementalScanAt",
    "api_calls_today": "apiCallsToday",
    "api_calls_reset_date": "apiCallsResetDate",
    "history_truncated": "historyTruncated",
}


class LedgerStateStore(ABC):
    """Abstract checkpoint store; implement for a file, SQLite or another database."""

    @abstractmethod
    def load(self) -> LedgerState:
        """Return the persisted state, or a default LedgerState if none exists."""
        ...

    @abstractmethod
    def save(self, state: LedgerState) -> None:
        """Replace the persisted record with state. Raises StateStoreError."""
        ...


class JsonFileStateStore(LedgerStateStore):
    """Checkpoint as a single JSON document."""

    def __init__(self, path: str | Path, wallet: str | None = None) -> None:
        self._path = Path(path)
        self._wallet = wallet

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> LedgerState:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return LedgerState(wallet=self._wallet)
        except OSError as e:
            raise StateStoreError(f"cannot read {self._path}: {e}") from e
        try:
            data = json.loads(text)
            state = LedgerState.from_dict(data)
        except (json.JSONDecodeError, TypeError, ValueError, AttributeError) as e:
            raise StateStoreError(f"corrupt ledger state in {self._path}: {e}") from e
        if self._wallet and state.wallet and state.wallet != self._wallet:
            logger.warning(
                "state_store_wallet_mismatch",
                path=str(self._path),
                stored_wallet=state.wallet,
                wallet_id=self._wallet,
            )
            return LedgerState(wallet=self._wallet)
        if state.wallet is None:
            state.wallet = self._wallet
        return state

    def save(self, state: LedgerState) -> None:
        payload = json.dumps(state.to_dict(), indent=2, sort_keys=True)
        tmp_name: str | None = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self._path.name}.", suffix=".tmp", dir=str(self._path.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self._path)
            tmp_name = None
        except OSError as e:
            raise StateStoreError(f"cannot write {self._path}: {e}") from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
        logger.debug("state_store_saved", path=str(self._path), wallet_id=state.wallet)


class SQLiteStateStore(LedgerStateStore):
    """Checkpoint as one row per wallet; one connection per operation."""

    def __init__(self, path: str | Path, wallet: str, *, timeout_sec: float = 5.0) -> None:
        if not wallet:
            raise ValueError("wallet must be non-empty for SQLiteStateStore")
        self._path = Path(path)
        self._wallet = wallet
        self._timeout_sec = timeout_sec
        self._schema_ready = False

    def _connect(self) -> sqlite3.Connection:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self._path), timeout=self._timeout_sec)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    @contextmanager
    def _cursor(self) -> Iterator[sqlite3.Cursor]:
        try:
            conn = self._connect()
        except (sqlite3.Error, OSError) as e:
            raise StateStoreError(f"cannot open {self._path}: {e}") from e
        try:
            cur = conn.cursor()
            if not self._schema_ready:
                cur.executescript(SCHEMA_LEDGER_STATE)
                self._schema_ready = True
            yield cur
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StateStoreError(f"ledger_state query failed: {e}") from e
        finally:
            conn.close()

    def load(self) -> LedgerState:
        with self._cursor() as cur:
            cur.execute("SELECT * FROM ledger_state WHERE wallet = ?", (self._wallet,))
            row = cur.fetchone()
        if row is None:
            return LedgerState(wallet=self._wallet)
        data: dict[str, Any] = {key: row[col] for col, key in _SQLITE_COLUMNS.items()}
        data["wallet"] = row["wallet"]
        try:
            return LedgerState.from_dict(data)
        except (TypeError, ValueError) as e:
            raise StateStoreError(f"corrupt ledger_state row in {self._path}: {e}") from e

    def save(self, state: LedgerState) -> None:
        record = state.to_dict()
        values = [record[key] for key in _SQLITE_COLUMNS.values()]
        values[-1] = 1 if state.history_truncated else 0
        updated_at = datetime.now(timezone.utc).isoformat()
        columns = ", ".join(["wallet", *_SQLITE_COLUMNS, "updated_at"])
        placeholders = ", ".join("?" for _ in range(len(_SQLITE_COLUMNS) + 2))
        assignments = ", ".join(f"{col} = excluded.{col}" for col in [*_SQLITE_COLUMNS, "updated_at"])
        with self._cursor() as cur:
            cur.execute(
                f"""
                INSERT INTO ledger_state ({columns})
                VALUES ({placeholders})
                ON CONFLICT(wallet) DO UPDATE SET {assignments}
                """,
                (self._wallet, *values, updated_at),
            )
        logger.debug("state_store_saved", path=str(self._path), wallet_id=self._wallet)


def get_state_store(path: str | Path, wallet: str) -> LedgerStateStore:
    """
    Return the store for path: SQLite for .db/.sqlite/.sqlite3, JSON otherwise.
    """
    path = Path(path)
    if path.suffix.lower() in SQLITE_SUFFIXES:
        return SQLiteStateStore(path, wallet)
    return JsonFileStateStore(path, wallet)

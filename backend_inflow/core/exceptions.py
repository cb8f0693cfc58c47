"""
Application-level exceptions.

Scan-level errors (RpcError subclasses other than per-transaction failures,
StateStoreError, ScanTimeout) abort the running scan. MalformedRecord is
absorbed per transaction and counted. TruncatedHistory is a warning
category, not an exception: pagination stops but the scan completes.
"""

from __future__ import annotations


class InflowError(Exception):
    """Base class for all Backend Inflow errors."""


class ConfigError(InflowError):
    """Missing or malformed configuration value."""


class RpcError(InflowError):
    """Base for failures of a single logical RPC call."""

    def __init__(self, message: str, *, method: str | None = None, attempts: int = 0) -> None:
        super().__init__(message)
        self.method = method
        self.attempts = attempts


class RateLimited(RpcError):
    """Upstream kept answering 429 / rate-limit errors after all retries."""


class Unavailable(RpcError):
    """Transport failure or 5xx persisted after all retries."""


class QuotaExceeded(RpcError):
    """Daily call budget used up; no request was sent. Fatal for the current scan."""


class RpcResponseError(RpcError):
    """Non-retryable JSON-RPC error object (e.g. invalid params)."""

    def __init__(
        self,
        message: str,
        *,
        method: str | None = None,
        code: int | None = None,
        attempts: int = 1,
    ) -> None:
        super().__init__(message, method=method, attempts=attempts)
        self.code = code


class MalformedRecord(InflowError):
    """A transaction body is missing or cannot be interpreted."""


class StateStoreError(InflowError):
    """Ledger state could not be read or written."""


class ScanAlreadyRunning(InflowError):
    """A scan is already in progress in this process."""


class ScanTimeout(InflowError):
    """The scan exceeded its overall deadline."""


class TruncatedHistory(UserWarning):
    """Signature pagination stopped at the page-count safety cap."""

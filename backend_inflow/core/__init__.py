"""
Core utilities — shared exceptions and cross-cutting concerns.

Error taxonomy used by the RPC client, paginator, batch fetcher, state
store and scan coordinator.
"""

from backend_inflow.core.exceptions import (
    ConfigError,
    InflowError,
    MalformedRecord,
    QuotaExceeded,
    RateLimited,
    RpcError,
    RpcResponseError,
    ScanAlreadyRunning,
    ScanTimeout,
    StateStoreError,
    TruncatedHistory,
    Unavailable,
)

__all__ = [
    "ConfigError",
    "InflowError",
    "MalformedRecord",
    "QuotaExceeded",
    "RateLimited",
    "RpcError",
    "RpcResponseError",
    "ScanAlreadyRunning",
    "ScanTimeout",
    "StateStoreError",
    "TruncatedHistory",
    "Unavailable",
]

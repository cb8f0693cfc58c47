"""
Agent worker package — scan orchestration.

ScanCoordinator runs single-flight full or incremental scans and owns the
in-memory ScanStatus read by the API server.
"""

from backend_inflow.agent_worker.coordinator import (
    SCAN_FULL,
    SCAN_INCREMENTAL,
    CoordinatorConfig,
    ScanCoordinator,
    ScanOutcome,
    choose_scan_type,
)
from backend_inflow.agent_worker.status import ScanStatus

__all__ = [
    "SCAN_FULL",
    "SCAN_INCREMENTAL",
    "CoordinatorConfig",
    "ScanCoordinator",
    "ScanOutcome",
    "ScanStatus",
    "choose_scan_type",
]

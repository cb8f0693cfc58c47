"""
Structured logging for Backend Inflow.

JSON logs keyed on event_type; a running scan's wallet_id, scan_id and
scan_type are attached through scan_context().
"""

from backend_inflow.inflow_logging.logger import (
    bind_scan_type,
    configure_logging,
    get_logger,
    scan_context,
)

__all__ = ["bind_scan_type", "configure_logging", "get_logger", "scan_context"]

"""
Test that inflow_logging can be imported without circular import, and that
scan context and api-key masking behave.
"""

from __future__ import annotations

import structlog


def test_logging_import():
    """Import get_logger from inflow_logging and use the logger."""
    from backend_inflow.inflow_logging import get_logger

    logger = get_logger("test")
    assert logger is not None
    assert hasattr(logger, "info")
    assert hasattr(logger, "warning")
    assert hasattr(logger, "exception")
    # Smoke test: call info (should not raise)
    logger.info("test_message", key="value")


def test_scan_context_binds_and_clears():
    from backend_inflow.inflow_logging import bind_scan_type, scan_context

    with scan_context("wallet-1") as scan_id:
        bind_scan_type("full")
        bound = structlog.contextvars.get_contextvars()
        assert bound["wallet_id"] == "wallet-1"
        assert bound["scan_id"] == scan_id
        assert bound["scan_type"] == "full"

    leftover = structlog.contextvars.get_contextvars()
    assert "wallet_id" not in leftover
    assert "scan_id" not in leftover
    assert "scan_type" not in leftover


def test_api_keys_are_masked():
    from backend_inflow.inflow_logging.logger import _mask_api_keys

    event = _mask_api_keys(
        None,
        "info",
        {"rpc_url": "https://mainnet.helius-rpc.com/?api-key=secret123&x=1", "attempt": 2},
    )
    assert event["rpc_url"] == "https://mainnet.helius-rpc.com/?api-key=***&x=1"
    assert event["attempt"] == 2

"""
Main entrypoint: FastAPI server with the scan scheduler in its lifespan.

The scheduler runs a scan at boot and at each configured time of day
(SCAN_SCHEDULE, SCAN_TIMEZONE); POST /refresh triggers one on demand.

Env: WALLET_ADDRESS (required), SOLANA_RPC_URL or HELIUS_API_KEY, STATE_PATH,
DAILY_API_CALL_LIMIT, API_HOST, API_PORT, etc.

One-shot scan without the API: python -m backend_inflow.agent_worker.runtime [--full]
"""

import os
import sys

# Configure structured JSON logging before other imports that may log
from backend_inflow.inflow_logging import get_logger

logger = get_logger("main")


def main() -> None:
    """Validate settings, then run the API server (and scheduler) in the main thread."""
    from backend_inflow.config import get_settings
    from backend_inflow.core.exceptions import ConfigError

    try:
        settings = get_settings()
    except ConfigError as e:
        logger.error("main_config_error", message=str(e))
        sys.exit(1)

    from backend_inflow.api_server.server import create_app
    import uvicorn

    app = create_app(settings=settings)
    logger.info(
        "main_server_starting",
        host=settings.api_host,
        port=settings.api_port,
        wallet_id=settings.wallet_address,
    )
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )


if __name__ == "__main__":
    main()

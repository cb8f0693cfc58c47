"""
FastAPI server — status and refresh endpoints for the tracked wallet.

GET /status returns the in-memory ScanStatus plus wallet and timestamp.
POST /refresh starts a background scan (202) or reports a conflict (409)
when one is already running. The lifespan builds the coordinator from the
environment unless one is injected, primes the status from the saved
checkpoint, and runs the scan scheduler.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from backend_inflow import __version__
from backend_inflow.agent_worker.coordinator import ScanCoordinator
from backend_inflow.agent_worker.runtime import build_coordinator
from backend_inflow.config import Settings, get_settings
from backend_inflow.inflow_logging import get_logger
from backend_inflow.scheduler import build_scheduler

logger = get_logger(__name__)


# -----------------------------------------------------------------------------
# Response models
# -----------------------------------------------------------------------------

class StatusResponse(BaseModel):
    """GET /status response."""

    wallet: str = Field(..., description="Tracked wallet address (base58)")
    timestamp: str = Field(..., description="Server time (ISO 8601, UTC)")
    running: bool = Field(..., description="True while a scan is in progress")
    total_sol: float | None = Field(None, description="Lifetime gross inbound SOL; null before the first scan")
    total_lamports_in: str | None = Field(None, description="Exact lifetime inbound lamports (decimal string)")
    last_updated: str | None = Field(None, description="When the total was last refreshed")
    last_run_ms: int = Field(0, description="Duration of the last scan in milliseconds")
    transaction_count: int = Field(0, description="Number of inbound transactions counted")
    api_calls_used: int = Field(0, description="RPC calls used today")
    last_scan_type: str | None = Field(None, description="full | incremental")
    last_error: str | None = Field(None, description="Error of the last failed scan, if any")
    errors: int = Field(0, description="Transactions that could not be read in the last scan")
    history_truncated: bool = Field(False, description="Last scan stopped at the pagination cap")
    started_at: str | None = Field(None, description="Start of the current or last scan")


class RefreshResponse(BaseModel):
    """POST /refresh response."""

    accepted: bool
    full: bool = Field(..., description="True if a full history walk was requested")
    detail: str = ""


# -----------------------------------------------------------------------------
# App factory
# -----------------------------------------------------------------------------


def get_coordinator(request: Request) -> ScanCoordinator:
    """Dependency: the app-scoped coordinator created in lifespan."""
    return request.app.state.coordinator


def create_app(
    coordinator: ScanCoordinator | None = None,
    *,
    settings: Settings | None = None,
    start_scheduler: bool = True,
) -> FastAPI:
    """
    Build the ASGI app. With no coordinator, settings are read from the
    environment at startup and the coordinator is built from them.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cfg = settings
        coord = coordinator
        if coord is None:
            cfg = cfg or get_settings()
            coord = build_coordinator(cfg)
        app.state.coordinator = coord
        coord.load_status_from_store()

        scheduler = None
        if start_scheduler and cfg is not None:
            scheduler = build_scheduler(
                coord,
                schedule=cfg.scan_schedule,
                tz_name=cfg.scan_timezone,
                run_on_boot=cfg.run_scan_on_boot,
            )
            scheduler.start()
            logger.info("api_scheduler_started", wallet_id=coord.wallet_address)

        yield

        if scheduler is not None:
            scheduler.shutdown(wait=False)
            logger.info("api_scheduler_stopped")
        await coord.aclose()

    app = FastAPI(
        title="Backend Inflow API",
        description="Lifetime gross inbound SOL for one tracked wallet.",
        version=__version__,
        lifespan=lifespan,
    )

    @app.get("/status", response_model=StatusResponse)
    def get_status(coord: ScanCoordinator = Depends(get_coordinator)) -> StatusResponse:
        """Current scan status; safe to call while a scan is running."""
        return StatusResponse(
            wallet=coord.wallet_address,
            timestamp=datetime.now(timezone.utc).isoformat(),
            **coord.status_snapshot(),
        )

    @app.post("/refresh", response_model=RefreshResponse, status_code=202)
    async def refresh(
        full: bool = Query(False, description="Force a full history walk"),
        coord: ScanCoordinator = Depends(get_coordinator),
    ) -> JSONResponse:
        """Start a scan in the background; 409 if one is already running."""
        accepted = coord.request_refresh(force_full=full)
        if not accepted:
            return JSONResponse(
                status_code=409,
                content=RefreshResponse(
                    accepted=False, full=full, detail="scan already running"
                ).model_dump(),
            )
        logger.info("api_refresh_accepted", wallet_id=coord.wallet_address, full=full)
        return JSONResponse(
            status_code=202,
            content=RefreshResponse(accepted=True, full=full, detail="scan started").model_dump(),
        )

    @app.get("/health")
    def health() -> dict[str, str]:
        """Liveness probe: API is up."""
        return {"status": "ok"}

    return app


app = create_app()

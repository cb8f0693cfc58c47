"""
Scan scheduler — APScheduler cron jobs that trigger coordinator refreshes.

One cron job per configured time of day (default 06:30 and 18:30
America/New_York) plus an optional one-off run at boot. Jobs only call
coordinator.request_refresh(); a tick that lands while a scan is still
running is rejected by the coordinator and logged.
"""

from __future__ import annotations

from datetime import datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from pytz import UnknownTimeZoneError, timezone

from backend_inflow.agent_worker.coordinator import ScanCoordinator
from backend_inflow.core.exceptions import ConfigError
from backend_inflow.inflow_logging import get_logger

logger = get_logger(__name__)

BOOT_JOB_ID = "inflow_scan_boot"


def parse_schedule_times(raw: str) -> list[tuple[int, int]]:
    """
    Parse "HH:MM,HH:MM" into [(hour, minute), ...], sorted and de-duplicated.

    Raises ConfigError on an empty or malformed schedule.
    """
    times: set[tuple[int, int]] = set()
    for part in (raw or "").split(","):
        part = part.strip()
        if not part:
            continue
        hh, sep, mm = part.partition(":")
        if not sep:
            raise ConfigError(f"schedule entry {part!r} must look like HH:MM")
        try:
            hour, minute = int(hh), int(mm)
        except ValueError as e:
            raise ConfigError(f"schedule entry {part!r} must look like HH:MM") from e
        if not (0 <= hour <= 23 and 0 <= minute <= 59):
            raise ConfigError(f"schedule entry {part!r} is out of range")
        times.add((hour, minute))
    if not times:
        raise ConfigError("SCAN_SCHEDULE must contain at least one HH:MM time")
    return sorted(times)


async def _trigger_refresh(coordinator: ScanCoordinator, source: str) -> None:
    # coroutine job: runs on the event loop, where request_refresh must be called
    accepted = coordinator.request_refresh()
    logger.info(
        "scheduler_tick",
        wallet_id=coordinator.wallet_address,
        source=source,
        accepted=accepted,
    )


def build_scheduler(
    coordinator: ScanCoordinator,
    *,
    schedule: str,
    tz_name: str,
    run_on_boot: bool = True,
) -> AsyncIOScheduler:
    """
    Return an AsyncIOScheduler (not started) with one cron job per schedule
    time and, when run_on_boot, a one-off job that fires immediately.
    """
    try:
        tz = timezone(tz_name)
    except UnknownTimeZoneError as e:
        raise ConfigError(f"unknown SCAN_TIMEZONE {tz_name!r}") from e

    scheduler = AsyncIOScheduler(timezone=tz)
    for hour, minute in parse_schedule_times(schedule):
        job_id = f"inflow_scan_{hour:02d}{minute:02d}"
        scheduler.add_job(
            _trigger_refresh,
            CronTrigger(hour=hour, minute=minute, timezone=tz),
            args=(coordinator, job_id),
            id=job_id,
            coalesce=True,
            max_instances=1,
            misfire_grace_time=300,
        )
    if run_on_boot:
        scheduler.add_job(
            _trigger_refresh,
            "date",
            run_date=datetime.now(tz),
            args=(coordinator, BOOT_JOB_ID),
            id=BOOT_JOB_ID,
            misfire_grace_time=None,
        )
    logger.info(
        "scheduler_configured",
        wallet_id=coordinator.wallet_address,
        times=[f"{h:02d}:{m:02d}" for h, m in parse_schedule_times(schedule)],
        timezone=tz_name,
        run_on_boot=run_on_boot,
    )
    return scheduler

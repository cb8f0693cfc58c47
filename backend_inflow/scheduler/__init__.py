# Scan scheduling: fixed times of day plus an optional run at boot.

from backend_inflow.scheduler.engine import (
    BOOT_JOB_ID,
    build_scheduler,
    parse_schedule_times,
)

__all__ = [
    "BOOT_JOB_ID",
    "build_scheduler",
    "parse_schedule_times",
]

"""
Tests for scan schedule parsing and APScheduler job wiring.
"""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import pytest

from backend_inflow.core.exceptions import ConfigError
from backend_inflow.scheduler import BOOT_JOB_ID, build_scheduler, parse_schedule_times
from backend_inflow.scheduler.engine import _trigger_refresh


def test_parse_schedule_times():
    assert parse_schedule_times("18:30, 06:30") == [(6, 30), (18, 30)]
    assert parse_schedule_times("06:30,06:30,") == [(6, 30)]
    assert parse_schedule_times("0:05") == [(0, 5)]


@pytest.mark.parametrize("raw", ["", " , ", "630", "25:00", "06:61", "ab:cd"])
def test_parse_schedule_times_rejects(raw):
    with pytest.raises(ConfigError):
        parse_schedule_times(raw)


def test_build_scheduler_jobs(build_coordinator):
    coordinator = build_coordinator()
    scheduler = build_scheduler(
        coordinator,
        schedule="06:30,18:30",
        tz_name="America/New_York",
        run_on_boot=True,
    )

    job_ids = sorted(job.id for job in scheduler.get_jobs())
    assert job_ids == sorted(["inflow_scan_0630", "inflow_scan_1830", BOOT_JOB_ID])
    cron = scheduler.get_job("inflow_scan_0630")
    assert str(cron.trigger.timezone) == "America/New_York"
    assert cron.max_instances == 1
    assert cron.coalesce


def test_build_scheduler_without_boot_run(build_coordinator):
    scheduler = build_scheduler(
        build_coordinator(), schedule="12:00", tz_name="UTC", run_on_boot=False
    )
    assert [job.id for job in scheduler.get_jobs()] == ["inflow_scan_1200"]


def test_unknown_timezone(build_coordinator):
    with pytest.raises(ConfigError):
        build_scheduler(build_coordinator(), schedule="06:30", tz_name="Mars/Olympus_Mons")


def test_tick_while_running_is_rejected(chain, build_coordinator):
    chain.add_inbound("s1", 10)
    coordinator = build_coordinator()

    async def run():
        await _trigger_refresh(coordinator, "test")
        assert coordinator.running
        # second tick lands mid-scan and is dropped, not queued
        await _trigger_refresh(coordinator, "test")
        await coordinator.wait_idle()

    asyncio.run(run())
    assert not coordinator.running
    assert chain.count("getTransaction") == 1


def test_tick_only_requests_refresh():
    coordinator = MagicMock()
    coordinator.wallet_address = "wallet"
    coordinator.request_refresh.return_value = False

    asyncio.run(_trigger_refresh(coordinator, "inflow_scan_0630"))

    coordinator.request_refresh.assert_called_once_with()

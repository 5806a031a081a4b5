#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Unit tests for the periodic retry sweep job.
"""

from unittest.mock import MagicMock

import pytest
from apscheduler.triggers.interval import IntervalTrigger

from crm_relay.models import SweepResult
from crm_relay.scheduler.jobs import SWEEP_JOB_ID, RetrySweepJob


@pytest.fixture
def retry_scheduler():
    mock = MagicMock()
    mock.retry_all_failed.return_value = SweepResult(processed_count=3, success_count=2, failed_count=1)
    return mock


@pytest.fixture
def apscheduler():
    mock = MagicMock()
    mock.running = False
    return mock


def test_start_registers_interval_job(retry_scheduler, apscheduler):
    job = RetrySweepJob(retry_scheduler, interval_minutes=10, scheduler=apscheduler)

    job.start()

    kwargs = apscheduler.add_job.call_args.kwargs
    assert kwargs["id"] == SWEEP_JOB_ID
    assert kwargs["replace_existing"] is True
    assert isinstance(kwargs["trigger"], IntervalTrigger)
    assert kwargs["trigger"].interval.total_seconds() == 600
    apscheduler.start.assert_called_once()
    assert job.stats["scheduler_status"] == "running"


def test_run_now_accumulates_stats(retry_scheduler, apscheduler):
    job = RetrySweepJob(retry_scheduler, interval_minutes=10, scheduler=apscheduler)

    job.run_now()
    stats = job.run_now()

    assert stats["total_sweeps"] == 2
    assert stats["total_processed"] == 6
    assert stats["total_succeeded"] == 4
    assert stats["total_failed"] == 2
    assert stats["last_sweep_time"] is not None


def test_aborted_sweep_is_logged_and_not_counted(retry_scheduler, apscheduler):
    retry_scheduler.retry_all_failed.side_effect = RuntimeError("database is locked")
    job = RetrySweepJob(retry_scheduler, interval_minutes=10, scheduler=apscheduler)

    stats = job.run_now()

    assert stats["total_sweeps"] == 0


def test_stop_only_shuts_down_running_scheduler(retry_scheduler, apscheduler):
    job = RetrySweepJob(retry_scheduler, interval_minutes=10, scheduler=apscheduler)

    job.stop()
    apscheduler.shutdown.assert_not_called()

    apscheduler.running = True
    job.stop()
    apscheduler.shutdown.assert_called_once()
    assert job.stats["scheduler_status"] == "stopped"


def test_status_reflects_scheduler_state(retry_scheduler, apscheduler):
    job = RetrySweepJob(retry_scheduler, interval_minutes=10, scheduler=apscheduler)

    apscheduler.running = True
    assert job.get_status()["scheduler_status"] == "running"

    apscheduler.running = False
    assert job.get_status()["scheduler_status"] == "stopped"


def test_interval_defaults_to_config(retry_scheduler, apscheduler, monkeypatch):
    monkeypatch.setattr("crm_relay.scheduler.jobs.config.sweep_interval_minutes", 7)

    job = RetrySweepJob(retry_scheduler, scheduler=apscheduler)

    assert job.interval_minutes == 7

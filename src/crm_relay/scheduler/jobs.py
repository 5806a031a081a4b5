#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Retry Sweep Scheduler

Runs the failed-sync sweep on a fixed interval. Uses APScheduler for job
scheduling.
"""

import datetime
from typing import Any, Dict, Optional

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from pytz import utc

from crm_relay.config import config
from crm_relay.sync.retry import RetryScheduler
from crm_relay.utils.logger import get_logger

# Configure logger
logger = get_logger(__name__)

SWEEP_JOB_ID = "retry_failed_syncs"


class RetrySweepJob:
    """
    Periodic job that retries failed CRM syncs.

    At most one sweep runs at a time; missed runs are coalesced into one.
    """

    def __init__(
        self,
        retry_scheduler: RetryScheduler,
        interval_minutes: Optional[int] = None,
        scheduler: Optional[BackgroundScheduler] = None,
    ):
        """
        Initialize the sweep job.

        Args:
            retry_scheduler: Scheduler that performs the sweep
            interval_minutes: Minutes between sweeps (or None to use config)
            scheduler: APScheduler instance (or None to create one)
        """
        self.retry_scheduler = retry_scheduler
        self.interval_minutes = interval_minutes or config.sweep_interval_minutes

        self.scheduler = scheduler or BackgroundScheduler(
            jobstores={"default": MemoryJobStore()},
            executors={"default": ThreadPoolExecutor(1)},
            job_defaults={"coalesce": True, "max_instances": 1},
            timezone=utc,
        )

        # Statistics
        self.stats: Dict[str, Any] = {
            "total_sweeps": 0,
            "total_processed": 0,
            "total_succeeded": 0,
            "total_failed": 0,
            "last_sweep_time": None,
            "scheduler_status": "initialized",
        }

    def _run_sweep(self) -> None:
        logger.info("Starting failed-sync retry sweep")
        started = datetime.datetime.now()

        try:
            result = self.retry_scheduler.retry_all_failed()
        except Exception:
            logger.exception("Retry sweep aborted")
            return

        self.stats["total_sweeps"] += 1
        self.stats["total_processed"] += result.processed_count
        self.stats["total_succeeded"] += result.success_count
        self.stats["total_failed"] += result.failed_count
        self.stats["last_sweep_time"] = datetime.datetime.now()

        elapsed = datetime.datetime.now() - started
        logger.info(f"Retry sweep completed in {elapsed.total_seconds():.2f} seconds")

    def start(self) -> None:
        """Add the sweep job and start the scheduler."""
        self.scheduler.add_job(
            func=self._run_sweep,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id=SWEEP_JOB_ID,
            name="Retry failed CRM syncs",
            replace_existing=True,
        )
        self.scheduler.start()
        self.stats["scheduler_status"] = "running"

        logger.info(f"Retry sweep scheduled every {self.interval_minutes} minutes")

    def stop(self) -> None:
        """Stop the scheduler."""
        if self.scheduler.running:
            self.scheduler.shutdown()
            self.stats["scheduler_status"] = "stopped"
            logger.info("Retry sweep scheduler stopped")

    def get_status(self) -> Dict[str, Any]:
        """
        Get the current status of the job.

        Returns:
            Dict: Cumulative sweep statistics and scheduler state
        """
        self.stats["scheduler_status"] = "running" if self.scheduler.running else "stopped"
        return self.stats

    def run_now(self) -> Dict[str, Any]:
        """
        Run a sweep immediately.

        Returns:
            Dict: Updated statistics
        """
        logger.info("Running retry sweep immediately")
        self._run_sweep()
        return self.stats

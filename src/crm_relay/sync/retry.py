#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Retry Scheduler

Retries failed syncs on a fixed backoff table. Single retries, the sweep over
all failed records and user-initiated manual retries all end up in
RetryScheduler.retry, which reports failures as results instead of raising so
one bad record never aborts a sweep.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional, Sequence, Tuple

from crm_relay.config import AppConfig, config
from crm_relay.exceptions import (
    AlreadyCompletedError,
    AuthorizationError,
    BackoffNotElapsedError,
    ConcurrentRetryError,
    CRMSyncError,
    NotFoundError,
    RetryExhaustedError,
)
from crm_relay.models import SweepResult, SyncResult, SyncState, SyncStatusRecord, utcnow
from crm_relay.storage import SyncStorage
from crm_relay.sync.dispatcher import SyncDispatcher
from crm_relay.utils.logger import get_logger, log_sync_event

# Configure logger
logger = get_logger(__name__)

DEFAULT_BACKOFF = (timedelta(minutes=5), timedelta(minutes=15), timedelta(minutes=45))
DEFAULT_MAX_RETRIES = 3

SYNC_NOT_FOUND = "Sync record not found"


@dataclass(frozen=True)
class RetryPolicy:
    """
    Backoff table plus retry ceiling.

    The wait before retry number ``n`` (counting from zero) is ``backoff[n]``;
    counts past the end of the table wait as long as its last entry.
    """

    backoff: Tuple[timedelta, ...] = DEFAULT_BACKOFF
    max_retries: int = DEFAULT_MAX_RETRIES

    def __post_init__(self) -> None:
        if not self.backoff:
            raise ValueError("backoff table must not be empty")
        if self.max_retries < 0:
            raise ValueError("max_retries must not be negative")

    @classmethod
    def from_minutes(cls, minutes: Sequence[int], max_retries: int = DEFAULT_MAX_RETRIES) -> "RetryPolicy":
        return cls(tuple(timedelta(minutes=m) for m in minutes), max_retries)

    @classmethod
    def from_config(cls, app_config: Optional[AppConfig] = None) -> "RetryPolicy":
        app_config = app_config or config
        return cls.from_minutes(app_config.retry_backoff_minutes, app_config.retry_max_attempts)

    def is_exhausted(self, retry_count: int) -> bool:
        return retry_count >= self.max_retries

    def required_wait(self, retry_count: int) -> timedelta:
        """
        Wait required since the last attempt before the next retry.

        Args:
            retry_count: Retries already made

        Returns:
            timedelta: Required wait
        """
        if retry_count < len(self.backoff):
            return self.backoff[retry_count]
        return self.backoff[-1]

    def check(self, record: SyncStatusRecord, now: datetime) -> None:
        """
        Check whether a record may be retried now.

        Only failed records can be retried. A record without a last attempt
        is always eligible. A retry exactly at the end of the backoff window
        is eligible.

        Args:
            record: Sync status record
            now: Current time

        Raises:
            AlreadyCompletedError: If the record is not failed
            RetryExhaustedError: If the retry ceiling is reached
            BackoffNotElapsedError: If the backoff window has not elapsed
        """
        if record.sync_status != SyncState.FAILED:
            raise AlreadyCompletedError("Sync already completed")

        if self.is_exhausted(record.retry_count):
            raise RetryExhaustedError("Max retries exceeded")

        if record.last_attempt is None:
            return

        required = self.required_wait(record.retry_count)
        elapsed = now - record.last_attempt
        if elapsed < required:
            raise BackoffNotElapsedError("Backoff period not elapsed", remaining=required - elapsed)


class RetryScheduler:
    """
    Scheduler for retrying failed syncs.

    Eligibility is checked against the stored record, then the retry is
    claimed with a single conditional update before the dispatcher runs.
    """

    def __init__(
        self,
        storage: SyncStorage,
        dispatcher: SyncDispatcher,
        policy: Optional[RetryPolicy] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize the retry scheduler.

        Args:
            storage: Storage for sync status records
            dispatcher: Dispatcher used to re-run syncs
            policy: Backoff table and ceiling (or None to build one from config)
            clock: Source of the current time
        """
        self.storage = storage
        self.dispatcher = dispatcher
        self.policy = policy or RetryPolicy.from_config()
        self.clock = clock

    def retry(self, sync_id: str) -> SyncResult:
        """
        Retry one failed sync if it is eligible.

        Args:
            sync_id: Sync status record ID

        Returns:
            SyncResult: Outcome of the retry, never raised
        """
        record = self.storage.get_sync_status(sync_id)
        if record is None:
            logger.warning(f"Retry requested for unknown sync record {sync_id}")
            return SyncResult.failure(SYNC_NOT_FOUND)

        entity = f"{record.entity_type.value}:{record.entity_id}"
        now = self.clock()

        try:
            self.policy.check(record, now)
            if not self.storage.claim_retry(sync_id, record.retry_count, attempted_at=now):
                raise ConcurrentRetryError("Retry already claimed by another worker")
        except CRMSyncError as e:
            logger.info(f"Skipping retry of {entity}: {str(e)}")
            return SyncResult.failure(str(e))

        retry_count = record.retry_count + 1
        log_sync_event(entity, "retry", f"Retry {retry_count} of {self.policy.max_retries}")

        try:
            return self.dispatcher.sync_entity(
                record.entity_type, record.entity_id, record.user_id, retry_count=retry_count
            )
        except Exception as e:
            logger.error(f"Retry {retry_count} of {entity} failed: {str(e)}")
            return SyncResult.failure(str(e) or type(e).__name__)

    def retry_all_failed(self) -> SweepResult:
        """
        Retry every failed sync below the retry ceiling, one at a time.

        Returns:
            SweepResult: Processed, succeeded and failed counts
        """
        failed_syncs = self.storage.list_failed_syncs()
        result = SweepResult()

        for record in failed_syncs:
            if self.policy.is_exhausted(record.retry_count):
                continue

            outcome = self.retry(record.id)

            result.processed_count += 1
            if outcome.success:
                result.success_count += 1

        result.failed_count = result.processed_count - result.success_count
        logger.info(
            f"Retry sweep over {len(failed_syncs)} failed syncs: "
            f"{result.processed_count} processed, {result.success_count} succeeded, "
            f"{result.failed_count} failed"
        )
        return result

    def retry_manually(self, sync_id: str, user_id: str) -> SyncResult:
        """
        Retry a sync on behalf of the user who owns it.

        Args:
            sync_id: Sync status record ID
            user_id: Requesting user

        Returns:
            SyncResult: Outcome of the retry

        Raises:
            AuthorizationError: If no user is given or the user does not own the record
            NotFoundError: If the record does not exist
        """
        if not user_id:
            raise AuthorizationError("Unauthorized: no acting user")

        record = self.storage.get_sync_status(sync_id)
        if record is None:
            raise NotFoundError(f"Sync record not found: {sync_id}")
        if record.user_id != user_id:
            raise AuthorizationError("Sync record belongs to another user")

        return self.retry(sync_id)

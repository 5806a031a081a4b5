#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Pytest configuration file for the CRM Relay test suite.
"""

from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from crm_relay.hubspot.mapper import HubSpotMapper
from crm_relay.models import Actionable, Call, EntityType, SyncState, SyncStatusRecord, UserSettings
from crm_relay.storage import SyncStorage
from crm_relay.sync.dispatcher import SyncDispatcher
from crm_relay.sync.retry import RetryPolicy, RetryScheduler

OWNER_ID = "user-owner"
OTHER_USER_ID = "user-other"
API_KEY = "pat-na1-test-token"
START_TIME = datetime(2024, 5, 1, 12, 0, 0)


def pytest_configure(config):
    """Configure pytest."""
    config.addinivalue_line(
        "markers", "hubspot: mark test as requiring HubSpot access"
    )


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = START_TIME):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeHubSpotClient:
    """In-memory stand-in for HubSpotClient that records every create call."""

    def __init__(self):
        self.tokens: List[str] = []
        self.calls: List[Dict[str, Any]] = []
        self.error: Optional[Exception] = None
        self._next_id = 1000

    def factory(self, access_token: str) -> "FakeHubSpotClient":
        self.tokens.append(access_token)
        return self

    def _create(self, object_type: str, properties: Dict[str, Any]) -> str:
        self.calls.append({"type": object_type, "properties": properties})
        if self.error is not None:
            raise self.error
        self._next_id += 1
        return str(self._next_id)

    def create_note(self, properties: Dict[str, Any]) -> str:
        return self._create("note", properties)

    def create_deal(self, properties: Dict[str, Any]) -> str:
        return self._create("deal", properties)

    def create_task(self, properties: Dict[str, Any]) -> str:
        return self._create("task", properties)


@pytest.fixture(scope="function")
def temp_db_path(tmp_path: Path) -> Path:
    """Temporary database path for testing."""
    return tmp_path / "test.db"


@pytest.fixture
def storage(temp_db_path: Path) -> SyncStorage:
    return SyncStorage(f"sqlite:///{temp_db_path}")


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def fake_hubspot() -> FakeHubSpotClient:
    return FakeHubSpotClient()


@pytest.fixture
def mapper(clock: FrozenClock) -> HubSpotMapper:
    return HubSpotMapper(
        deal_stage="appointmentscheduled",
        deal_pipeline="default",
        default_deal_amount="0",
        clock=clock,
    )


@pytest.fixture
def dispatcher(storage, mapper, fake_hubspot, clock) -> SyncDispatcher:
    return SyncDispatcher(storage, mapper=mapper, client_factory=fake_hubspot.factory, clock=clock)


@pytest.fixture
def policy() -> RetryPolicy:
    return RetryPolicy.from_minutes([5, 15, 45], max_retries=3)


@pytest.fixture
def retry_scheduler(storage, dispatcher, policy, clock) -> RetryScheduler:
    return RetryScheduler(storage, dispatcher, policy=policy, clock=clock)


@pytest.fixture
def owner_settings(storage) -> UserSettings:
    return storage.save_user_settings(
        UserSettings(user_id=OWNER_ID, hubspot_api_key=API_KEY, hubspot_enabled=True)
    )


@pytest.fixture
def call(storage) -> Call:
    return storage.save_call(
        Call(
            id="call-1",
            user_id=OWNER_ID,
            title="Discovery call with Acme",
            transcription="Customer wants a demo next week.",
            created_at=datetime(2024, 4, 30, 9, 15, 0),
        )
    )


@pytest.fixture
def task_actionable(storage) -> Actionable:
    return storage.save_actionable(
        Actionable(
            id="act-task",
            user_id=OWNER_ID,
            call_id="call-1",
            type="follow_up",
            title="Send pricing sheet",
            description="Include enterprise tier",
            due_date=datetime(2024, 5, 3, 17, 0, 0),
            priority="high",
            status="pending",
        )
    )


@pytest.fixture
def deal_actionable(storage) -> Actionable:
    return storage.save_actionable(
        Actionable(
            id="act-deal",
            user_id=OWNER_ID,
            call_id="call-1",
            type="deal",
            title="Acme expansion",
            due_date=datetime(2024, 6, 30, 0, 0, 0),
            priority="medium",
        )
    )


@pytest.fixture
def make_failed_sync(storage, clock):
    """Factory for failed sync records at a given retry count and age."""

    def _make(
        entity_id: str,
        retry_count: int = 0,
        minutes_ago: float = 0,
        entity_type: EntityType = EntityType.CALL,
        user_id: str = OWNER_ID,
    ) -> SyncStatusRecord:
        return storage.record_sync_status(
            user_id=user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            sync_status=SyncState.FAILED,
            retry_count=retry_count,
            error_message="HubSpot API error (502): Bad Gateway",
            attempted_at=clock.now - timedelta(minutes=minutes_ago),
        )

    return _make

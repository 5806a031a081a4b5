#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Sync Models - Defines calls, actionables, user settings and sync status records.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel


def utcnow() -> datetime:
    """Current time as a naive UTC datetime, the format stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class EntityType(str, Enum):
    """Internal entity kinds that can be synced."""
    CALL = "call"
    ACTIONABLE = "actionable"


class SyncState(str, Enum):
    """State of a sync lineage. There is no in-progress state."""
    COMPLETED = "completed"
    FAILED = "failed"


class CRMEntityType(str, Enum):
    """HubSpot object types created by the dispatcher."""
    NOTE = "note"
    DEAL = "deal"
    TASK = "task"


class Priority(str, Enum):
    """Actionable priority."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class UserSettings:
    """Per-user HubSpot integration settings."""
    user_id: str
    hubspot_api_key: Optional[str] = None
    hubspot_enabled: bool = False

    @property
    def is_configured(self) -> bool:
        return bool(self.hubspot_api_key) and self.hubspot_enabled


@dataclass
class Call:
    """A recorded sales call."""
    id: str
    user_id: str
    title: str
    transcription: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass
class Actionable:
    """
    A follow-up item extracted from a call.

    ``type`` is a free-form discriminator; only ``"deal"`` is treated
    specially, everything else becomes a HubSpot task.
    """
    id: str
    user_id: str
    title: str
    type: str = "task"
    call_id: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    priority: Optional[str] = None
    status: str = "pending"
    crm_entity_id: Optional[str] = None
    crm_entity_type: Optional[str] = None
    synced_at: Optional[datetime] = None


@dataclass
class SyncStatusRecord:
    """
    Sync status for one internal entity.

    One record exists per (entity_type, entity_id); every attempt updates it
    in place.
    """
    id: str
    user_id: str
    entity_type: EntityType
    entity_id: str
    sync_status: SyncState
    retry_count: int = 0
    crm_entity_type: Optional[str] = None
    crm_entity_id: Optional[str] = None
    last_attempt: Optional[datetime] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.retry_count < 0:
            raise ValueError(f"retry_count must be non-negative, got {self.retry_count}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert the record to a JSON-friendly dictionary."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "entity_type": self.entity_type.value,
            "entity_id": self.entity_id,
            "crm_entity_type": self.crm_entity_type,
            "crm_entity_id": self.crm_entity_id,
            "sync_status": self.sync_status.value,
            "retry_count": self.retry_count,
            "last_attempt": self.last_attempt.isoformat() if self.last_attempt else None,
            "error_message": self.error_message,
        }


class SyncResult(BaseModel):
    """Uniform result of a sync, retry or manual retry."""
    success: bool
    crm_entity_id: Optional[str] = None
    crm_entity_type: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def failure(cls, error: str) -> "SyncResult":
        return cls(success=False, error=error)


class SweepResult(BaseModel):
    """Tally of one pass over the failed sync records."""
    processed_count: int = 0
    success_count: int = 0
    failed_count: int = 0

#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Storage for calls, actionables, user settings and sync status records.

Implements SQLAlchemy ORM for database operations with proper session management.
"""

import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    func,
)
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from crm_relay.config import config
from crm_relay.models import (
    Actionable,
    Call,
    EntityType,
    SyncState,
    SyncStatusRecord,
    UserSettings,
    utcnow,
)
from crm_relay.utils.logger import get_logger

# Configure logger
logger = get_logger(__name__)

# Create base class for ORM models
Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


class UserSettingsModel(Base):
    """SQLAlchemy ORM model for per-user integration settings."""

    __tablename__ = "user_settings"

    user_id = Column(String(64), primary_key=True)
    hubspot_api_key = Column(String(255))
    hubspot_enabled = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_settings(self) -> UserSettings:
        return UserSettings(
            user_id=self.user_id,
            hubspot_api_key=self.hubspot_api_key,
            hubspot_enabled=bool(self.hubspot_enabled),
        )


class CallModel(Base):
    """SQLAlchemy ORM model for calls."""

    __tablename__ = "calls"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(64), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    transcription = Column(Text)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def to_call(self) -> Call:
        return Call(
            id=self.id,
            user_id=self.user_id,
            title=self.title,
            transcription=self.transcription,
            created_at=self.created_at,
        )


class ActionableModel(Base):
    """SQLAlchemy ORM model for actionables."""

    __tablename__ = "actionables"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(64), nullable=False, index=True)
    call_id = Column(String(36), index=True)
    type = Column(String(50), nullable=False, default="task")
    title = Column(String(255), nullable=False)
    description = Column(Text)
    due_date = Column(DateTime)
    priority = Column(String(20))
    status = Column(String(50), nullable=False, default="pending")

    crm_entity_id = Column(String(64))
    crm_entity_type = Column(String(20))
    synced_at = Column(DateTime)

    def to_actionable(self) -> Actionable:
        return Actionable(
            id=self.id,
            user_id=self.user_id,
            call_id=self.call_id,
            type=self.type,
            title=self.title,
            description=self.description,
            due_date=self.due_date,
            priority=self.priority,
            status=self.status,
            crm_entity_id=self.crm_entity_id,
            crm_entity_type=self.crm_entity_type,
            synced_at=self.synced_at,
        )


class SyncStatusModel(Base):
    """SQLAlchemy ORM model for sync status records."""

    __tablename__ = "crm_sync_status"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(64), nullable=False, index=True)
    entity_type = Column(String(20), nullable=False)
    entity_id = Column(String(36), nullable=False)
    crm_entity_type = Column(String(20))
    crm_entity_id = Column(String(64))
    sync_status = Column(String(20), nullable=False, index=True)
    retry_count = Column(Integer, nullable=False, default=0)
    last_attempt = Column(DateTime)
    error_message = Column(Text)

    # Insertion order, used to sweep records oldest first
    sequence = Column(Integer, nullable=False, default=0)

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("entity_type", "entity_id", name="uq_sync_status_entity"),
        Index("idx_sync_status_status_sequence", "sync_status", "sequence"),
    )

    def to_record(self) -> SyncStatusRecord:
        return SyncStatusRecord(
            id=self.id,
            user_id=self.user_id,
            entity_type=EntityType(self.entity_type),
            entity_id=self.entity_id,
            crm_entity_type=self.crm_entity_type,
            crm_entity_id=self.crm_entity_id,
            sync_status=SyncState(self.sync_status),
            retry_count=self.retry_count,
            last_attempt=self.last_attempt,
            error_message=self.error_message,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


def build_engine(db_url: str):
    """
    Create an engine for the given database URL.

    SQLite file databases get their parent directory created; in-memory SQLite
    databases share one connection so every session sees the same data.
    """
    url = make_url(db_url)
    if not url.drivername.startswith("sqlite"):
        return create_engine(db_url)

    connect_args = {"check_same_thread": False}
    if url.database in (None, "", ":memory:"):
        return create_engine(db_url, connect_args=connect_args, poolclass=StaticPool)

    Path(url.database).expanduser().absolute().parent.mkdir(parents=True, exist_ok=True)
    return create_engine(db_url, connect_args=connect_args)


class SyncStorage:
    """
    Storage manager for the sync layer.

    Provides methods for reading entities and settings, and for reading and
    writing sync status records.
    """

    def __init__(self, db_url: Optional[str] = None):
        """
        Initialize the storage and create tables if they don't exist.

        Args:
            db_url: SQLAlchemy database URL (or None to use the configured one)
        """
        self.db_url = db_url or config.db_url
        self.engine = build_engine(self.db_url)
        self.session_factory = sessionmaker(bind=self.engine)
        Base.metadata.create_all(self.engine)

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """
        Provide a transactional scope around a series of operations.

        Yields:
            Session: SQLAlchemy session
        """
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database error: {str(e)}")
            raise
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # User settings

    def save_user_settings(self, settings: UserSettings) -> UserSettings:
        with self.session_scope() as session:
            model = session.get(UserSettingsModel, settings.user_id)
            if model is None:
                model = UserSettingsModel(user_id=settings.user_id)
                session.add(model)
            model.hubspot_api_key = settings.hubspot_api_key
            model.hubspot_enabled = settings.hubspot_enabled
            session.flush()
            return model.to_settings()

    def get_user_settings(self, user_id: str) -> Optional[UserSettings]:
        with self.session_scope() as session:
            model = session.get(UserSettingsModel, user_id)
            return model.to_settings() if model else None

    # Calls and actionables

    def save_call(self, call: Call) -> Call:
        """
        Insert or update a call.

        Args:
            call: Call to save

        Returns:
            Call: Saved call
        """
        with self.session_scope() as session:
            model = session.get(CallModel, call.id)
            if model is None:
                model = CallModel(id=call.id)
                session.add(model)
            model.user_id = call.user_id
            model.title = call.title
            model.transcription = call.transcription
            model.created_at = call.created_at or model.created_at or utcnow()
            session.flush()
            return model.to_call()

    def get_call(self, call_id: str) -> Optional[Call]:
        with self.session_scope() as session:
            model = session.get(CallModel, call_id)
            return model.to_call() if model else None

    def save_actionable(self, actionable: Actionable) -> Actionable:
        """
        Insert or update an actionable.

        Args:
            actionable: Actionable to save

        Returns:
            Actionable: Saved actionable
        """
        with self.session_scope() as session:
            model = session.get(ActionableModel, actionable.id)
            if model is None:
                model = ActionableModel(id=actionable.id)
                session.add(model)
            for attr in (
                "user_id", "call_id", "type", "title", "description", "due_date",
                "priority", "status", "crm_entity_id", "crm_entity_type", "synced_at",
            ):
                setattr(model, attr, getattr(actionable, attr))
            session.flush()
            return model.to_actionable()

    def get_actionable(self, actionable_id: str) -> Optional[Actionable]:
        with self.session_scope() as session:
            model = session.get(ActionableModel, actionable_id)
            return model.to_actionable() if model else None

    def mark_actionable_synced(
        self,
        actionable_id: str,
        crm_entity_id: str,
        crm_entity_type: str,
        synced_at: Optional[datetime] = None,
    ) -> Optional[Actionable]:
        """
        Write the HubSpot object reference back onto an actionable.

        Args:
            actionable_id: Actionable ID
            crm_entity_id: HubSpot object ID
            crm_entity_type: HubSpot object type (deal or task)
            synced_at: Sync time (defaults to now)

        Returns:
            Actionable or None: Updated actionable if found, None otherwise
        """
        with self.session_scope() as session:
            model = session.get(ActionableModel, actionable_id)
            if model is None:
                return None
            model.crm_entity_id = crm_entity_id
            model.crm_entity_type = crm_entity_type
            model.synced_at = synced_at or utcnow()
            return model.to_actionable()

    # Sync status

    def record_sync_status(
        self,
        user_id: str,
        entity_type: EntityType,
        entity_id: str,
        sync_status: SyncState,
        retry_count: int,
        crm_entity_type: Optional[str] = None,
        crm_entity_id: Optional[str] = None,
        error_message: Optional[str] = None,
        attempted_at: Optional[datetime] = None,
    ) -> SyncStatusRecord:
        """
        Create or update the sync status record for an entity.

        The record keeps the user it was created for. A failed attempt keeps
        any CRM reference left by an earlier success; a completed attempt
        clears the error message.

        Args:
            user_id: Acting user
            entity_type: Internal entity type
            entity_id: Internal entity ID
            sync_status: Outcome of the attempt
            retry_count: Retry count to store
            crm_entity_type: HubSpot object type (completed attempts)
            crm_entity_id: HubSpot object ID (completed attempts)
            error_message: Failure description (failed attempts)
            attempted_at: Attempt time (defaults to now)

        Returns:
            SyncStatusRecord: The stored record
        """
        if retry_count < 0:
            raise ValueError(f"retry_count must be non-negative, got {retry_count}")

        with self.session_scope() as session:
            model = (
                session.query(SyncStatusModel)
                .filter(
                    SyncStatusModel.entity_type == entity_type.value,
                    SyncStatusModel.entity_id == entity_id,
                )
                .first()
            )
            if model is None:
                next_sequence = session.query(
                    func.coalesce(func.max(SyncStatusModel.sequence), 0)
                ).scalar()
                model = SyncStatusModel(
                    id=_new_id(),
                    user_id=user_id,
                    entity_type=entity_type.value,
                    entity_id=entity_id,
                    sequence=next_sequence + 1,
                )
                session.add(model)

            model.sync_status = sync_status.value
            model.retry_count = retry_count
            model.last_attempt = attempted_at or utcnow()
            model.error_message = error_message
            if crm_entity_type is not None:
                model.crm_entity_type = crm_entity_type
            if crm_entity_id is not None:
                model.crm_entity_id = crm_entity_id

            session.flush()
            return model.to_record()

    def get_sync_status(self, sync_id: str) -> Optional[SyncStatusRecord]:
        with self.session_scope() as session:
            model = session.get(SyncStatusModel, sync_id)
            return model.to_record() if model else None

    def get_sync_status_for_entity(
        self, entity_type: EntityType, entity_id: str
    ) -> Optional[SyncStatusRecord]:
        with self.session_scope() as session:
            model = (
                session.query(SyncStatusModel)
                .filter(
                    SyncStatusModel.entity_type == entity_type.value,
                    SyncStatusModel.entity_id == entity_id,
                )
                .first()
            )
            return model.to_record() if model else None

    def list_failed_syncs(self) -> List[SyncStatusRecord]:
        """
        List every failed sync record in insertion order.

        Returns:
            List[SyncStatusRecord]: Failed records
        """
        with self.session_scope() as session:
            models = (
                session.query(SyncStatusModel)
                .filter(SyncStatusModel.sync_status == SyncState.FAILED.value)
                .order_by(SyncStatusModel.sequence.asc(), SyncStatusModel.created_at.asc())
                .all()
            )
            return [model.to_record() for model in models]

    def list_sync_statuses(self, user_id: str) -> List[SyncStatusRecord]:
        with self.session_scope() as session:
            models = (
                session.query(SyncStatusModel)
                .filter(SyncStatusModel.user_id == user_id)
                .order_by(SyncStatusModel.updated_at.desc())
                .all()
            )
            return [model.to_record() for model in models]

    def claim_retry(
        self, sync_id: str, expected_retry_count: int, attempted_at: Optional[datetime] = None
    ) -> bool:
        """
        Atomically increment the retry count if nobody else did it first.

        The increment only applies while the record is still failed and still
        carries the retry count the caller checked eligibility against, so two
        concurrent retries of the same record cannot both win.

        Args:
            sync_id: Sync record ID
            expected_retry_count: Retry count observed by the caller
            attempted_at: Attempt time (defaults to now)

        Returns:
            bool: True if this caller claimed the retry
        """
        with self.session_scope() as session:
            updated = (
                session.query(SyncStatusModel)
                .filter(
                    SyncStatusModel.id == sync_id,
                    SyncStatusModel.sync_status == SyncState.FAILED.value,
                    SyncStatusModel.retry_count == expected_retry_count,
                )
                .update(
                    {
                        SyncStatusModel.retry_count: SyncStatusModel.retry_count + 1,
                        SyncStatusModel.last_attempt: attempted_at or utcnow(),
                        SyncStatusModel.updated_at: utcnow(),
                    },
                    synchronize_session=False,
                )
            )
            return updated == 1

#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Sync Dispatcher

Pushes a single call or actionable to HubSpot and records the outcome on the
entity's sync status record. Failures are recorded and then re-raised so
direct callers see them.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from crm_relay.exceptions import (
    AuthorizationError,
    ConfigurationError,
    CRMSyncError,
    ExternalServiceError,
    NotFoundError,
)
from crm_relay.hubspot.client import HubSpotClient
from crm_relay.hubspot.mapper import HubSpotMapper
from crm_relay.models import CRMEntityType, EntityType, SyncResult, SyncState, UserSettings, utcnow
from crm_relay.storage import SyncStorage
from crm_relay.utils.logger import get_logger, log_sync_event

# Configure logger
logger = get_logger(__name__)


class SyncDispatcher:
    """
    Dispatcher for syncing internal entities to HubSpot.

    Loads the acting user's settings and the entity, maps it, issues exactly
    one HubSpot create call and records completed or failed status.
    """

    def __init__(
        self,
        storage: SyncStorage,
        mapper: Optional[HubSpotMapper] = None,
        client_factory: Callable[[str], HubSpotClient] = HubSpotClient,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize the dispatcher.

        Args:
            storage: Storage for entities, settings and sync status
            mapper: Mapper for HubSpot properties (or None for a default one)
            client_factory: Builds a HubSpot client from a user's access token
            clock: Source of the current time
        """
        self.storage = storage
        self.mapper = mapper or HubSpotMapper(clock=clock)
        self.client_factory = client_factory
        self.clock = clock

    def sync_entity(
        self, entity_type: EntityType, entity_id: str, user_id: str, retry_count: int = 0
    ) -> SyncResult:
        """
        Sync an entity of the given type.

        Args:
            entity_type: Internal entity type
            entity_id: Internal entity ID
            user_id: Acting user
            retry_count: Retry count to record if the attempt fails

        Returns:
            SyncResult: Successful result with the HubSpot object reference
        """
        if entity_type == EntityType.CALL:
            return self.sync_call(entity_id, user_id, retry_count=retry_count)
        if entity_type == EntityType.ACTIONABLE:
            return self.sync_actionable(entity_id, user_id, retry_count=retry_count)
        raise ValueError(f"Unsupported entity type: {entity_type}")

    def sync_call(self, call_id: str, user_id: str, retry_count: int = 0) -> SyncResult:
        """
        Sync a call to HubSpot as a note.

        Args:
            call_id: Call ID
            user_id: Acting user
            retry_count: Retry count to record if the attempt fails

        Returns:
            SyncResult: Successful result with the note ID

        Raises:
            AuthorizationError: If no user is given or the user does not own the entity
            CRMSyncError: On any other failure, after recording it
        """
        self._require_user(user_id)
        entity = f"call:{call_id}"

        call = self.storage.get_call(call_id)
        if call is not None:
            self._require_owner(call.user_id, user_id, entity)

        try:
            settings = self._load_settings(user_id)

            if call is None:
                raise NotFoundError(f"Call not found: {call_id}")

            log_sync_event(entity, "dispatch", "Creating HubSpot note")
            client = self.client_factory(settings.hubspot_api_key)
            crm_entity_id = client.create_note(self.mapper.map_call_to_note(call))
        except Exception as e:
            self._record_failure(user_id, EntityType.CALL, call_id, retry_count, e)
            if isinstance(e, CRMSyncError):
                raise
            raise ExternalServiceError(str(e) or type(e).__name__) from e

        return self._record_success(
            user_id, EntityType.CALL, call_id, CRMEntityType.NOTE, crm_entity_id
        )

    def sync_actionable(self, actionable_id: str, user_id: str, retry_count: int = 0) -> SyncResult:
        """
        Sync an actionable to HubSpot as a deal or a task.

        Actionables of type "deal" become deals; everything else becomes a
        task. On success the HubSpot reference is written back onto the
        actionable.

        Args:
            actionable_id: Actionable ID
            user_id: Acting user
            retry_count: Retry count to record if the attempt fails

        Returns:
            SyncResult: Successful result with the deal or task ID

        Raises:
            AuthorizationError: If no user is given or the user does not own the entity
            CRMSyncError: On any other failure, after recording it
        """
        self._require_user(user_id)
        entity = f"actionable:{actionable_id}"

        actionable = self.storage.get_actionable(actionable_id)
        if actionable is not None:
            self._require_owner(actionable.user_id, user_id, entity)

        try:
            settings = self._load_settings(user_id)

            if actionable is None:
                raise NotFoundError(f"Actionable not found: {actionable_id}")

            client = self.client_factory(settings.hubspot_api_key)
            crm_entity_type = self.mapper.crm_type_for_actionable(actionable)

            log_sync_event(entity, "dispatch", f"Creating HubSpot {crm_entity_type.value}")
            if crm_entity_type == CRMEntityType.DEAL:
                crm_entity_id = client.create_deal(self.mapper.map_actionable_to_deal(actionable))
            else:
                crm_entity_id = client.create_task(self.mapper.map_actionable_to_task(actionable))

            self.storage.mark_actionable_synced(
                actionable_id, crm_entity_id, crm_entity_type.value, synced_at=self.clock()
            )
        except Exception as e:
            self._record_failure(user_id, EntityType.ACTIONABLE, actionable_id, retry_count, e)
            if isinstance(e, CRMSyncError):
                raise
            raise ExternalServiceError(str(e) or type(e).__name__) from e

        return self._record_success(
            user_id, EntityType.ACTIONABLE, actionable_id, crm_entity_type, crm_entity_id
        )

    @staticmethod
    def _require_user(user_id: str) -> None:
        if not user_id:
            raise AuthorizationError("Unauthorized: no acting user")

    @staticmethod
    def _require_owner(owner_id: str, user_id: str, entity: str) -> None:
        if owner_id != user_id:
            logger.warning(f"User {user_id} tried to sync {entity} owned by another user")
            raise AuthorizationError(f"Unauthorized: {entity} belongs to another user")

    def _load_settings(self, user_id: str) -> UserSettings:
        settings = self.storage.get_user_settings(user_id)
        if settings is None or not settings.is_configured:
            raise ConfigurationError("HubSpot integration not configured")
        return settings

    def _record_success(
        self,
        user_id: str,
        entity_type: EntityType,
        entity_id: str,
        crm_entity_type: CRMEntityType,
        crm_entity_id: str,
    ) -> SyncResult:
        self.storage.record_sync_status(
            user_id=user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            sync_status=SyncState.COMPLETED,
            retry_count=0,
            crm_entity_type=crm_entity_type.value,
            crm_entity_id=crm_entity_id,
            attempted_at=self.clock(),
        )
        log_sync_event(
            f"{entity_type.value}:{entity_id}",
            "completed",
            f"Synced as HubSpot {crm_entity_type.value} {crm_entity_id}",
        )
        return SyncResult(
            success=True,
            crm_entity_id=crm_entity_id,
            crm_entity_type=crm_entity_type.value,
        )

    def _record_failure(
        self,
        user_id: str,
        entity_type: EntityType,
        entity_id: str,
        retry_count: int,
        error: Exception,
    ) -> None:
        error_message = str(error) or type(error).__name__
        self.storage.record_sync_status(
            user_id=user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            sync_status=SyncState.FAILED,
            retry_count=retry_count,
            error_message=error_message,
            attempted_at=self.clock(),
        )
        log_sync_event(
            f"{entity_type.value}:{entity_id}",
            "failed",
            f"{error_message} (retry {retry_count})",
            level=logging.WARNING,
        )

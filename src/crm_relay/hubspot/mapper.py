#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
HubSpot Data Mapper

Maps calls and actionables to the property dictionaries HubSpot expects when
creating notes, deals and tasks.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from crm_relay.config import config
from crm_relay.models import Actionable, Call, CRMEntityType, Priority, utcnow

# Actionable priority to HubSpot task priority
TASK_PRIORITIES = {
    Priority.HIGH.value: "HIGH",
    Priority.MEDIUM.value: "MEDIUM",
    Priority.LOW.value: "LOW",
}

TASK_STATUS_COMPLETED = "COMPLETED"
TASK_STATUS_NOT_STARTED = "NOT_STARTED"

DEAL_ACTIONABLE_TYPE = "deal"


def to_hubspot_timestamp(value: datetime) -> str:
    """
    Format a datetime as HubSpot's ISO-8601 UTC timestamp.

    Naive datetimes are taken to be UTC already.

    Args:
        value: Datetime to format

    Returns:
        str: Timestamp such as "2024-05-01T14:30:00.000Z"
    """
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat(timespec="milliseconds") + "Z"


def to_hubspot_date(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%d")


class HubSpotMapper:
    """
    Maps internal entities to HubSpot object properties.

    Deal defaults (stage, pipeline and amount) come from configuration unless
    given explicitly.
    """

    def __init__(
        self,
        deal_stage: Optional[str] = None,
        deal_pipeline: Optional[str] = None,
        default_deal_amount: Optional[str] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize the mapper.

        Args:
            deal_stage: Deal stage for new deals
            deal_pipeline: Pipeline for new deals
            default_deal_amount: Amount set on new deals
            clock: Source of the current time, used for tasks without a due date
        """
        self.deal_stage = deal_stage or config.hubspot_deal_stage
        self.deal_pipeline = deal_pipeline or config.hubspot_deal_pipeline
        self.default_deal_amount = (
            default_deal_amount
            if default_deal_amount is not None
            else config.hubspot_default_deal_amount
        )
        self.clock = clock

    def map_call_to_note(self, call: Call) -> Dict[str, Any]:
        """
        Map a Call to HubSpot note properties.

        The note body is the call title followed by a blank line and the
        transcription.

        Args:
            call: Call to map

        Returns:
            Dict[str, Any]: HubSpot note properties
        """
        created_at = call.created_at or self.clock()
        return {
            "hs_timestamp": to_hubspot_timestamp(created_at),
            "hs_note_body": f"{call.title}\n\n{call.transcription or ''}",
        }

    def map_actionable_to_deal(self, actionable: Actionable) -> Dict[str, Any]:
        """
        Map an Actionable to HubSpot deal properties.

        Args:
            actionable: Actionable to map

        Returns:
            Dict[str, Any]: HubSpot deal properties
        """
        properties = {
            "dealname": actionable.title,
            "amount": str(self.default_deal_amount),
            "dealstage": self.deal_stage,
            "pipeline": self.deal_pipeline,
        }

        if actionable.due_date:
            properties["closedate"] = to_hubspot_date(actionable.due_date)

        return properties

    def map_actionable_to_task(self, actionable: Actionable) -> Dict[str, Any]:
        """
        Map an Actionable to HubSpot task properties.

        Unknown or missing priorities map to LOW; any status other than
        "completed" maps to NOT_STARTED.

        Args:
            actionable: Actionable to map

        Returns:
            Dict[str, Any]: HubSpot task properties
        """
        status = (
            TASK_STATUS_COMPLETED
            if actionable.status == "completed"
            else TASK_STATUS_NOT_STARTED
        )
        priority = TASK_PRIORITIES.get((actionable.priority or "").lower(), "LOW")
        timestamp = actionable.due_date or self.clock()

        return {
            "hs_task_subject": actionable.title,
            "hs_task_body": actionable.description or "",
            "hs_task_status": status,
            "hs_task_priority": priority,
            "hs_timestamp": to_hubspot_timestamp(timestamp),
        }

    def crm_type_for_actionable(self, actionable: Actionable) -> CRMEntityType:
        if actionable.type == DEAL_ACTIONABLE_TYPE:
            return CRMEntityType.DEAL
        return CRMEntityType.TASK

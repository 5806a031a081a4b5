#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
HubSpot API Integration

Provides a client for creating notes, deals and tasks in HubSpot on behalf of
a single user.
"""

import logging
from typing import Any, Callable, Dict, Optional

import hubspot
from hubspot.crm.deals import ApiException as DealsApiException
from hubspot.crm.deals import SimplePublicObjectInputForCreate as DealInput
from hubspot.crm.objects.notes import ApiException as NotesApiException
from hubspot.crm.objects.notes import SimplePublicObjectInputForCreate as NoteInput
from hubspot.crm.objects.tasks import ApiException as TasksApiException
from hubspot.crm.objects.tasks import SimplePublicObjectInputForCreate as TaskInput
from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from crm_relay.config import config
from crm_relay.exceptions import ConfigurationError, ExternalServiceError
from crm_relay.utils.logger import get_logger, log_sensitive

# Configure logger
logger = get_logger(__name__)

API_EXCEPTIONS = (NotesApiException, DealsApiException, TasksApiException)

RATE_LIMIT_STATUS = 429


def _is_rate_limited(exc: BaseException) -> bool:
    return getattr(exc, "status", None) == RATE_LIMIT_STATUS


class HubSpotClient:
    """
    Client for interacting with the HubSpot API.

    Each create call is issued once; only HTTP 429 responses, where HubSpot
    created nothing, are retried with exponential backoff.
    """

    def __init__(
        self,
        access_token: str,
        rate_limit_retries: Optional[int] = None,
        retry_wait: Optional[Any] = None,
        client: Optional[Any] = None,
    ):
        """
        Initialize the HubSpot client.

        Args:
            access_token: Private app or OAuth access token of the acting user
            rate_limit_retries: Attempts per request when rate limited
            retry_wait: tenacity wait strategy between rate-limited attempts
            client: Preconfigured hubspot.Client (or None to create one)
        """
        if not access_token:
            raise ConfigurationError("HubSpot access token is required")

        self.client = client or hubspot.Client.create(access_token=access_token)
        self.rate_limit_retries = rate_limit_retries or config.hubspot_rate_limit_retries
        self.retry_wait = retry_wait or wait_exponential(multiplier=1, min=1, max=30)

        log_sensitive(
            logger,
            logging.DEBUG,
            f"Initialized HubSpot client with token {access_token}",
            token=access_token,
        )

    def _make_api_request(self, request_func: Callable[..., Any], *args, **kwargs) -> Any:
        """
        Make an API request, retrying only when rate limited.

        Args:
            request_func: Function to call for the request
            *args: Arguments to pass to the function
            **kwargs: Keyword arguments to pass to the function

        Returns:
            Any: Response from the API

        Raises:
            ExternalServiceError: If HubSpot rejects the request or is unreachable
        """
        retryer = Retrying(
            stop=stop_after_attempt(self.rate_limit_retries),
            wait=self.retry_wait,
            retry=retry_if_exception(_is_rate_limited),
            reraise=True,
        )

        try:
            return retryer(request_func, *args, **kwargs)
        except API_EXCEPTIONS as e:
            logger.error(f"HubSpot API error: {e.status} {e.reason}")
            raise ExternalServiceError(
                f"HubSpot API error ({e.status}): {e.reason}", status=e.status
            ) from e
        except Exception as e:
            logger.error(f"HubSpot request failed: {str(e)}")
            raise ExternalServiceError(f"HubSpot request failed: {str(e)}") from e

    def create_note(self, properties: Dict[str, Any]) -> str:
        """
        Create a note engagement.

        Args:
            properties: Note properties

        Returns:
            str: HubSpot note ID
        """
        response = self._make_api_request(
            self.client.crm.objects.notes.basic_api.create,
            simple_public_object_input_for_create=NoteInput(properties=properties, associations=[]),
        )
        logger.info(f"Created HubSpot note {response.id}")
        return response.id

    def create_deal(self, properties: Dict[str, Any]) -> str:
        """
        Create a deal.

        Args:
            properties: Deal properties

        Returns:
            str: HubSpot deal ID
        """
        response = self._make_api_request(
            self.client.crm.deals.basic_api.create,
            simple_public_object_input_for_create=DealInput(properties=properties, associations=[]),
        )
        logger.info(f"Created HubSpot deal {response.id}")
        return response.id

    def create_task(self, properties: Dict[str, Any]) -> str:
        """
        Create a task.

        Args:
            properties: Task properties

        Returns:
            str: HubSpot task ID
        """
        response = self._make_api_request(
            self.client.crm.objects.tasks.basic_api.create,
            simple_public_object_input_for_create=TaskInput(properties=properties, associations=[]),
        )
        logger.info(f"Created HubSpot task {response.id}")
        return response.id

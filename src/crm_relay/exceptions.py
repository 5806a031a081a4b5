#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Exceptions raised by the sync dispatcher and the retry scheduler.
"""

from datetime import timedelta
from typing import Optional


class CRMSyncError(Exception):
    """Base class for all CRM sync errors."""


class AuthorizationError(CRMSyncError):
    """No acting user was given, or the user does not own the sync record."""


class ConfigurationError(CRMSyncError):
    """The HubSpot integration is disabled or has no API key."""


class NotFoundError(CRMSyncError):
    """An entity or sync record does not exist."""


class ExternalServiceError(CRMSyncError):
    """HubSpot rejected the request or could not be reached."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class BackoffNotElapsedError(CRMSyncError):
    """A retry was attempted before its backoff window elapsed."""

    def __init__(self, message: str, remaining: Optional[timedelta] = None):
        super().__init__(message)
        self.remaining = remaining


class RetryExhaustedError(CRMSyncError):
    """The sync record has reached the retry ceiling."""


class ConcurrentRetryError(CRMSyncError):
    """Another worker claimed the retry between the check and the update."""


class AlreadyCompletedError(CRMSyncError):
    """The sync record has already completed and has nothing to retry."""

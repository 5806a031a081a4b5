#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Sync package for CRM Relay.

Provides the dispatcher that pushes entities to HubSpot and the scheduler
that retries failed syncs.
"""

from crm_relay.sync.dispatcher import SyncDispatcher
from crm_relay.sync.retry import RetryPolicy, RetryScheduler

__all__ = ["SyncDispatcher", "RetryPolicy", "RetryScheduler"]

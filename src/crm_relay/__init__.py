#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
CRM Relay

Relays calls and actionables from the sales-assistant data store to HubSpot
and retries failed syncs on a fixed backoff schedule.
"""

__version__ = "0.1.0"

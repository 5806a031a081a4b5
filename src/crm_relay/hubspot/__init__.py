#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
HubSpot integration package for CRM Relay.

Provides the API client and the mapper that turns calls and actionables into
HubSpot notes, deals and tasks.
"""

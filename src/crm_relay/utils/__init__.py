#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Shared utilities for CRM Relay."""

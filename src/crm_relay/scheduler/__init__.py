#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Periodic jobs for CRM Relay."""

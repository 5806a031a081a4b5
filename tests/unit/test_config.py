#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Unit tests for the configuration module.
"""

import logging
from datetime import timedelta
from pathlib import Path

import pytest

from crm_relay.config import AppConfig, parse_minutes
from crm_relay.sync.retry import RetryPolicy


@pytest.fixture(scope="function")
def mock_env_vars(monkeypatch, tmp_path: Path):
    """
    Set up environment variables for testing.

    Args:
        monkeypatch: Pytest monkeypatch fixture
        tmp_path: Temporary directory
    """
    monkeypatch.setenv("CRM_RELAY_DB_URL", f"sqlite:///{tmp_path / 'relay.db'}")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("LOG_FILE_PATH", str(tmp_path / "relay.log"))
    monkeypatch.setenv("LOG_JSON", "true")
    monkeypatch.setenv("RETRY_BACKOFF_MINUTES", "1, 2 ,4")
    monkeypatch.setenv("RETRY_MAX_ATTEMPTS", "5")
    monkeypatch.setenv("SWEEP_INTERVAL_MINUTES", "10")
    monkeypatch.setenv("HUBSPOT_DEAL_STAGE", "qualifiedtobuy")
    monkeypatch.setenv("HUBSPOT_DEAL_PIPELINE", "sales")
    monkeypatch.setenv("HUBSPOT_DEFAULT_DEAL_AMOUNT", "2500")
    monkeypatch.setenv("HUBSPOT_RATE_LIMIT_RETRIES", "2")


class TestAppConfig:
    """Tests for the AppConfig class."""

    def test_load_from_env(self, mock_env_vars, tmp_path):
        """Test that config loads values from environment variables."""
        config = AppConfig()

        assert config.db_url == f"sqlite:///{tmp_path / 'relay.db'}"
        assert config.log_level == logging.DEBUG
        assert config.log_file_path == tmp_path / "relay.log"
        assert config.json_logs is True
        assert config.retry_backoff_minutes == (1, 2, 4)
        assert config.retry_max_attempts == 5
        assert config.sweep_interval_minutes == 10
        assert config.hubspot_deal_stage == "qualifiedtobuy"
        assert config.hubspot_deal_pipeline == "sales"
        assert config.hubspot_default_deal_amount == "2500"
        assert config.hubspot_rate_limit_retries == 2

    def test_defaults(self, monkeypatch):
        """Test default values when the environment is empty."""
        for name in ("RETRY_BACKOFF_MINUTES", "RETRY_MAX_ATTEMPTS", "LOG_FILE_PATH", "HUBSPOT_DEAL_STAGE"):
            monkeypatch.delenv(name, raising=False)

        config = AppConfig()

        assert config.retry_backoff_minutes == (5, 15, 45)
        assert config.retry_max_attempts == 3
        assert config.log_file_path is None
        assert config.hubspot_deal_stage == "appointmentscheduled"

    def test_validate_valid_config(self, mock_env_vars):
        """Test validation with valid configuration."""
        assert AppConfig().validate() == []

    def test_validate_invalid_config(self):
        """Test validation with invalid configuration."""
        config = AppConfig()

        config.retry_backoff_minutes = ()
        config.retry_max_attempts = -1
        config.sweep_interval_minutes = 0
        config.hubspot_rate_limit_retries = 0
        config.log_file_path = Path("/non/existent/path/log.txt")

        errors = config.validate()
        assert any("RETRY_BACKOFF_MINUTES must list" in error for error in errors)
        assert any("RETRY_MAX_ATTEMPTS must not be negative" in error for error in errors)
        assert any("SWEEP_INTERVAL_MINUTES must be positive" in error for error in errors)
        assert any("HUBSPOT_RATE_LIMIT_RETRIES must be positive" in error for error in errors)
        assert any("Log file path parent does not exist" in error for error in errors)

    def test_negative_backoff_is_invalid(self):
        config = AppConfig()
        config.retry_backoff_minutes = (5, -1)

        assert any("negative values" in error for error in config.validate())

    def test_retry_policy_from_config(self, mock_env_vars):
        """Test that the retry policy follows the configured table and ceiling."""
        policy = RetryPolicy.from_config(AppConfig())

        assert policy.backoff == (timedelta(minutes=1), timedelta(minutes=2), timedelta(minutes=4))
        assert policy.max_retries == 5


def test_parse_minutes_ignores_blanks():
    assert parse_minutes("5,,15, 45,") == (5, 15, 45)

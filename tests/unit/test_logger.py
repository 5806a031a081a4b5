#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Unit tests for the logging helpers.
"""

import json
import logging
from unittest.mock import MagicMock

import pytest

from crm_relay.utils.logger import (
    JsonFormatter,
    LoggerConfig,
    configure_logger,
    get_logger,
    log_sensitive,
    mask_secret,
)


@pytest.mark.parametrize("value, expected", [
    ("pat-na1-secret", "p************t"),
    ("abcdef", "******"),
    ("", ""),
    (None, ""),
])
def test_mask_secret(value, expected):
    assert mask_secret(value) == expected


def test_log_sensitive_masks_values():
    logger = MagicMock()

    log_sensitive(logger, logging.INFO, "Using token pat-na1-secret", token="pat-na1-secret")

    logger.log.assert_called_once_with(logging.INFO, "Using token p************t")


def test_json_formatter_renders_one_object():
    record = logging.LogRecord(
        name="crm_relay.sync",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg="Sync failed for %s",
        args=("call:1",),
        exc_info=None,
        func="sync_call",
    )

    payload = json.loads(JsonFormatter().format(record))

    assert payload["level"] == "WARNING"
    assert payload["name"] == "crm_relay.sync"
    assert payload["function"] == "sync_call"
    assert payload["message"] == "Sync failed for call:1"
    assert "timestamp" in payload


def test_logger_config_reads_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("LOG_LEVEL", "warning")
    monkeypatch.setenv("LOG_FILE_PATH", str(tmp_path / "relay.log"))
    monkeypatch.setenv("LOG_JSON", "true")

    logger_config = LoggerConfig(name="crm_relay_test_env")

    assert logger_config.level == logging.WARNING
    assert logger_config.log_file == str(tmp_path / "relay.log")
    assert logger_config.json_logs is True


def test_configure_logger_writes_to_file(tmp_path):
    log_file = tmp_path / "logs" / "relay.log"

    logger = configure_logger(
        LoggerConfig(name="crm_relay_test_file", level="INFO", log_file=str(log_file), json_logs=False)
    )
    logger.info("hello from the relay")
    for handler in logger.handlers:
        handler.flush()

    assert "hello from the relay" in log_file.read_text(encoding="utf-8")
    assert len(logger.handlers) == 2

    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)


def test_package_loggers_propagate_to_package_logger():
    logger = get_logger("crm_relay.some_module")

    assert logger.handlers == []
    assert logger.propagate is True

#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Logging Configuration Module

Configures console and optional file logging for CRM Relay, with an optional
JSON formatter for log aggregation and helpers that keep API tokens out of
log output.
"""

import os
import sys
import json
import logging
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional, Union

# Default log level
DEFAULT_LEVEL = logging.INFO

# Environment variable names
ENV_LOG_LEVEL = "LOG_LEVEL"
ENV_LOG_FILE_PATH = "LOG_FILE_PATH"
ENV_LOG_JSON = "LOG_JSON"

DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Log level mapping
LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Global logger registry to avoid duplicate handlers
_loggers: Dict[str, logging.Logger] = {}


def _resolve_level(level: Optional[Union[int, str]]) -> int:
    if level is None:
        level = os.environ.get(ENV_LOG_LEVEL)
    if level is None:
        return DEFAULT_LEVEL
    if isinstance(level, int):
        return level
    if level.isdigit():
        return int(level)
    return LOG_LEVELS.get(level.upper(), DEFAULT_LEVEL)


class LoggerConfig:
    """Configuration class for logger settings."""

    def __init__(
        self,
        name: str = "crm_relay",
        level: Optional[Union[int, str]] = None,
        log_file: Optional[str] = None,
        max_bytes: int = 10 * 1024 * 1024,  # 10MB
        backup_count: int = 5,
        format_string: Optional[str] = None,
        json_logs: Optional[bool] = None,
        propagate: bool = False,
    ):
        """
        Initialize logger configuration.

        Values left as None fall back to the LOG_LEVEL, LOG_FILE_PATH and
        LOG_JSON environment variables.

        Args:
            name: Logger name
            level: Logging level (int or string)
            log_file: Path to a rotating log file (None for console only)
            max_bytes: Maximum file size before rotation
            backup_count: Number of rotated files to keep
            format_string: Custom log format string
            json_logs: Whether to format logs as JSON
            propagate: Whether to propagate to parent loggers
        """
        self.name = name
        self.level = _resolve_level(level)
        self.log_file = log_file or os.environ.get(ENV_LOG_FILE_PATH) or None
        self.max_bytes = max_bytes
        self.backup_count = backup_count
        self.format_string = format_string or DEFAULT_FORMAT
        if json_logs is None:
            json_logs = os.environ.get(ENV_LOG_JSON, "false").lower() == "true"
        self.json_logs = json_logs
        self.propagate = propagate


class JsonFormatter(logging.Formatter):
    """Formatter that renders each log record as a single JSON object."""

    def __init__(
        self,
        fmt_dict: Optional[Dict[str, str]] = None,
        time_format: str = "%Y-%m-%d %H:%M:%S",
    ):
        super().__init__()
        self.fmt_dict = fmt_dict or {
            "timestamp": "asctime",
            "level": "levelname",
            "name": "name",
            "function": "funcName",
            "message": "message",
        }
        self.time_format = time_format

    def format(self, record: logging.LogRecord) -> str:
        record.asctime = self.formatTime(record, self.time_format)
        record.message = record.getMessage()

        log_record: Dict[str, Any] = {}
        for key, attr in self.fmt_dict.items():
            if hasattr(record, attr):
                log_record[key] = getattr(record, attr)

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_record, default=str)


def configure_logger(config: Optional[LoggerConfig] = None) -> logging.Logger:
    """
    Configure a logger with the specified settings.

    Args:
        config: Logger configuration (or None for default)

    Returns:
        Configured logger
    """
    if config is None:
        config = LoggerConfig()

    logger = logging.getLogger(config.name)
    logger.setLevel(config.level)
    logger.propagate = config.propagate

    # Clear existing handlers
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    if config.json_logs:
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(config.format_string)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(config.level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if config.log_file:
        os.makedirs(os.path.dirname(os.path.abspath(config.log_file)), exist_ok=True)
        file_handler = RotatingFileHandler(
            config.log_file,
            maxBytes=config.max_bytes,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(config.level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    _loggers[config.name] = logger
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger by name.

    Loggers under the ``crm_relay`` namespace propagate to the package logger
    configured by :func:`configure_logging`; any other name gets its own
    default configuration.

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    if name in _loggers:
        return _loggers[name]

    if name == "crm_relay" or name.startswith("crm_relay."):
        logger = logging.getLogger(name)
        _loggers[name] = logger
        return logger

    return configure_logger(LoggerConfig(name=name))


def configure_logging(
    level: Optional[Union[int, str]] = None,
    log_file: Optional[str] = None,
    json_logs: Optional[bool] = None,
) -> logging.Logger:
    """
    Configure the package logger used by every CRM Relay module.

    Args:
        level: Logging level (int or string)
        log_file: Path to log file
        json_logs: Whether to format logs as JSON

    Returns:
        Configured package logger
    """
    return configure_logger(
        LoggerConfig(name="crm_relay", level=level, log_file=log_file, json_logs=json_logs)
    )


def mask_secret(value: Optional[str]) -> str:
    """
    Mask a secret for display, keeping only its first and last character.

    Args:
        value: Secret to mask

    Returns:
        str: Masked value ("" for empty input)
    """
    if not value:
        return ""
    if len(value) > 6:
        return value[0] + "*" * (len(value) - 2) + value[-1]
    return "*" * len(value)


def log_sync_event(
    entity: str, event_type: str, message: str, level: int = logging.INFO
) -> None:
    """
    Log a sync lifecycle event.

    Args:
        entity: Entity reference, e.g. "call:1234"
        event_type: Type of event (dispatch, completed, failed, retry, ...)
        message: Event description
        level: Logging level
    """
    logger = get_logger("crm_relay.sync.events")
    logger.log(level, f"[{entity}] [{event_type}] {message}")


def log_sensitive(logger: logging.Logger, level: int, message: str, **sensitive_data: Any) -> None:
    """
    Log a message while masking sensitive values that appear in it.

    Args:
        logger: Logger to use
        level: Logging level
        message: Message to log
        sensitive_data: Keys and values to mask in the message
    """
    masked_message = message
    for value in sensitive_data.values():
        if value and isinstance(value, str):
            masked_message = masked_message.replace(value, mask_secret(value))
    logger.log(level, masked_message)

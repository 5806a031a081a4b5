#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Configuration management for CRM Relay.

This module loads configuration from environment variables (and a local .env
file) and provides sensible defaults. It also validates configuration values.
"""

import os
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Base directories
ROOT_DIR = Path(__file__).parent.parent.parent.absolute()
DATA_DIR = ROOT_DIR / "data"

DEFAULT_DB_URL = f"sqlite:///{DATA_DIR / 'crm_relay.db'}"
DEFAULT_BACKOFF_MINUTES = "5,15,45"

# Log levels
LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def parse_minutes(value: str) -> Tuple[int, ...]:
    """
    Parse a comma-separated list of minutes, e.g. "5,15,45".

    Args:
        value: Raw string from the environment

    Returns:
        Tuple[int, ...]: Parsed minutes, in order
    """
    return tuple(int(part.strip()) for part in value.split(",") if part.strip())


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class AppConfig:
    """Application configuration."""

    # Database
    db_url: str = field(
        default_factory=lambda: os.getenv("CRM_RELAY_DB_URL", DEFAULT_DB_URL)
    )

    # Logging
    log_level: int = field(
        default_factory=lambda: LOG_LEVELS.get(
            os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO
        )
    )
    log_file_path: Optional[Path] = field(
        default_factory=lambda: Path(os.environ["LOG_FILE_PATH"])
        if os.getenv("LOG_FILE_PATH")
        else None
    )
    json_logs: bool = field(default_factory=lambda: _env_flag("LOG_JSON", "false"))

    # Retry policy
    retry_backoff_minutes: Tuple[int, ...] = field(
        default_factory=lambda: parse_minutes(
            os.getenv("RETRY_BACKOFF_MINUTES", DEFAULT_BACKOFF_MINUTES)
        )
    )
    retry_max_attempts: int = field(
        default_factory=lambda: int(os.getenv("RETRY_MAX_ATTEMPTS", "3"))
    )

    # Periodic sweep
    sweep_interval_minutes: int = field(
        default_factory=lambda: int(os.getenv("SWEEP_INTERVAL_MINUTES", "15"))
    )

    # HubSpot
    hubspot_deal_stage: str = field(
        default_factory=lambda: os.getenv("HUBSPOT_DEAL_STAGE", "appointmentscheduled")
    )
    hubspot_deal_pipeline: str = field(
        default_factory=lambda: os.getenv("HUBSPOT_DEAL_PIPELINE", "default")
    )
    hubspot_default_deal_amount: str = field(
        default_factory=lambda: os.getenv("HUBSPOT_DEFAULT_DEAL_AMOUNT", "0")
    )
    hubspot_rate_limit_retries: int = field(
        default_factory=lambda: int(os.getenv("HUBSPOT_RATE_LIMIT_RETRIES", "3"))
    )

    def validate(self) -> List[str]:
        """
        Validate configuration values.

        Returns:
            List[str]: List of validation errors, empty if valid
        """
        errors = []

        if not self.db_url:
            errors.append("CRM_RELAY_DB_URL must not be empty")

        if self.log_file_path is not None and not self.log_file_path.parent.exists():
            errors.append(f"Log file path parent does not exist: {self.log_file_path.parent}")

        if not self.retry_backoff_minutes:
            errors.append("RETRY_BACKOFF_MINUTES must list at least one duration")
        elif any(minutes < 0 for minutes in self.retry_backoff_minutes):
            errors.append("RETRY_BACKOFF_MINUTES must not contain negative values")

        if self.retry_max_attempts < 0:
            errors.append("RETRY_MAX_ATTEMPTS must not be negative")

        if self.sweep_interval_minutes <= 0:
            errors.append("SWEEP_INTERVAL_MINUTES must be positive")

        if self.hubspot_rate_limit_retries <= 0:
            errors.append("HUBSPOT_RATE_LIMIT_RETRIES must be positive")

        return errors


# Create a global config instance
config = AppConfig()

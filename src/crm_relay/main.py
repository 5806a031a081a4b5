#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Main entry point for CRM Relay.

This module wires storage, the dispatcher and the retry scheduler together,
sets up logging, and provides the command-line interface.
"""

import sys
import json
import time
import argparse
import logging
from typing import Any, List, Optional, Tuple

from crm_relay.config import config
from crm_relay.exceptions import CRMSyncError
from crm_relay.models import UserSettings
from crm_relay.scheduler.jobs import RetrySweepJob
from crm_relay.storage import SyncStorage
from crm_relay.sync.dispatcher import SyncDispatcher
from crm_relay.sync.retry import RetryPolicy, RetryScheduler
from crm_relay.utils.logger import configure_logging, get_logger, mask_secret

logger = get_logger(__name__)

COMMANDS = [
    "init-db",
    "configure",
    "sync-call",
    "sync-actionable",
    "retry",
    "retry-all",
    "retry-manual",
    "status",
    "schedule",
]

# Commands and the options they require
REQUIRED_OPTIONS = {
    "configure": ["user"],
    "sync-call": ["id", "user"],
    "sync-actionable": ["id", "user"],
    "retry": ["id"],
    "retry-manual": ["id", "user"],
}


def setup_argparse() -> argparse.ArgumentParser:
    """
    Set up command-line argument parsing.

    Returns:
        argparse.ArgumentParser: Configured argument parser
    """
    parser = argparse.ArgumentParser(
        description="CRM Relay",
        epilog="Relays calls and actionables to HubSpot and retries failed syncs.",
    )

    parser.add_argument("command", choices=COMMANDS, help="Command to execute")

    parser.add_argument("--id", type=str, help="Entity ID (sync-*) or sync record ID (retry*)")
    parser.add_argument("--user", type=str, help="Acting user ID")
    parser.add_argument("--db-url", type=str, help="Database URL (overrides CRM_RELAY_DB_URL)")

    # Configure options
    parser.add_argument("--api-key", type=str, help="HubSpot access token for the user")
    parser.add_argument(
        "--disable",
        action="store_true",
        help="Store the HubSpot integration as disabled for the user",
    )

    # Status and schedule options
    parser.add_argument(
        "--failed",
        action="store_true",
        help="List only failed sync records (status)",
    )
    parser.add_argument(
        "--interval",
        type=int,
        help=f"Minutes between retry sweeps (default: {config.sweep_interval_minutes})",
    )

    # Logging options
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set logging level",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose output")
    parser.add_argument("--version", action="store_true", help="Show version information")

    return parser


def build_services(db_url: Optional[str] = None) -> Tuple[SyncStorage, SyncDispatcher, RetryScheduler]:
    """
    Create storage, dispatcher and retry scheduler from configuration.

    Args:
        db_url: Database URL (or None to use config)

    Returns:
        Tuple of storage, dispatcher and retry scheduler
    """
    storage = SyncStorage(db_url)
    dispatcher = SyncDispatcher(storage)
    retry_scheduler = RetryScheduler(storage, dispatcher, policy=RetryPolicy.from_config(config))
    return storage, dispatcher, retry_scheduler


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


def run_schedule(retry_scheduler: RetryScheduler, interval: Optional[int] = None) -> bool:
    """
    Run the retry sweep periodically until interrupted.

    Args:
        retry_scheduler: Scheduler that performs the sweep
        interval: Minutes between sweeps

    Returns:
        bool: True when stopped cleanly
    """
    job = RetrySweepJob(retry_scheduler, interval_minutes=interval)
    job.start()
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Stopping retry sweep scheduler")
    finally:
        job.stop()
    _print_json(job.get_status())
    return True


def execute(args: argparse.Namespace) -> bool:
    """
    Execute a parsed command.

    Args:
        args: Parsed arguments

    Returns:
        bool: True if the command succeeded
    """
    storage, dispatcher, retry_scheduler = build_services(args.db_url)

    if args.command == "init-db":
        logger.info(f"Database ready at {storage.db_url}")
        return True

    if args.command == "configure":
        settings = storage.save_user_settings(
            UserSettings(
                user_id=args.user,
                hubspot_api_key=args.api_key,
                hubspot_enabled=not args.disable,
            )
        )
        _print_json({
            "user_id": settings.user_id,
            "hubspot_api_key": mask_secret(settings.hubspot_api_key),
            "hubspot_enabled": settings.hubspot_enabled,
        })
        return True

    if args.command in ("sync-call", "sync-actionable", "retry", "retry-manual"):
        if args.command == "sync-call":
            result = dispatcher.sync_call(args.id, args.user)
        elif args.command == "sync-actionable":
            result = dispatcher.sync_actionable(args.id, args.user)
        elif args.command == "retry":
            result = retry_scheduler.retry(args.id)
        else:
            result = retry_scheduler.retry_manually(args.id, args.user)
        _print_json(result.model_dump())
        return result.success

    if args.command == "retry-all":
        _print_json(retry_scheduler.retry_all_failed().model_dump())
        return True

    if args.command == "status":
        if args.failed or not args.user:
            records = storage.list_failed_syncs()
            if args.user:
                records = [record for record in records if record.user_id == args.user]
        else:
            records = storage.list_sync_statuses(args.user)
        _print_json([record.to_dict() for record in records])
        return True

    if args.command == "schedule":
        return run_schedule(retry_scheduler, args.interval)

    logger.error(f"Unknown command: {args.command}")
    return False


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the application.

    Args:
        argv: Command-line arguments (or None to use sys.argv)

    Returns:
        int: Exit code (0 for success, non-zero for failure)
    """
    parser = setup_argparse()
    args = parser.parse_args(argv)

    if args.version:
        import crm_relay
        print(f"CRM Relay v{crm_relay.__version__}")
        return 0

    level = logging.DEBUG if args.verbose else (args.log_level or config.log_level)
    configure_logging(
        level=level,
        log_file=str(config.log_file_path) if config.log_file_path else None,
        json_logs=config.json_logs,
    )

    # Validate configuration
    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(f"Configuration error: {error}")
        return 1

    missing = [f"--{name}" for name in REQUIRED_OPTIONS.get(args.command, []) if not getattr(args, name)]
    if missing:
        parser.error(f"{args.command} requires {', '.join(missing)}")

    try:
        return 0 if execute(args) else 1
    except CRMSyncError as e:
        logger.error(f"{args.command} failed: {str(e)}")
        _print_json({"success": False, "error": str(e)})
        return 1
    except KeyboardInterrupt:
        logger.info("Operation cancelled by user")
        return 130  # Standard exit code for SIGINT


if __name__ == "__main__":
    sys.exit(main())

"""
Orchestrator - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line interface for the token event notifier.

- Provides argparse-based CLI
- Loads configuration from a .env file and the environment
- CLI flags override environment values
- Entry point for the application

============================================================
USAGE
============================================================
python app.py
python app.py --env-file /etc/notifier.env --log-format json
python app.py --check-config

============================================================
"""

import argparse
import asyncio
import dataclasses
import logging
import os
import sys
from datetime import datetime, timezone
from typing import List, Optional

from dotenv import load_dotenv

from core.constants import SYSTEM_NAME, SYSTEM_VERSION
from core.exceptions import ConfigurationError

from .core import NotifierApplication, setup_logging
from .models import AppConfig


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog=SYSTEM_NAME,
        description="Watch the token event table and notify Telegram chats of new rows",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Required environment:
  DB_HOST, DB_PORT, DB_USER, DB_PASSWORD, DB_NAME,
  TELEGRAM_BOT_TOKEN, TELEGRAM_CHAT_ID (comma-separated)

Examples:
  %(prog)s                                # Run with .env in the working directory
  %(prog)s --env-file prod.env            # Use another env file
  %(prog)s --check-config                 # Validate configuration and exit
        """
    )

    parser.add_argument(
        "--env-file",
        type=str,
        metavar="PATH",
        help="Path to a .env file (default: .env if present)",
    )

    parser.add_argument(
        "--poll-interval",
        type=int,
        metavar="MS",
        help="Poll interval in milliseconds (overrides POLL_INTERVAL)",
    )

    parser.add_argument(
        "--check-config",
        action="store_true",
        help="Validate configuration and exit",
    )

    # --------------------------------------------------------
    # Logging Options
    # --------------------------------------------------------
    logging_group = parser.add_argument_group("Logging Options")

    logging_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (overrides LOG_LEVEL, default: INFO)",
    )

    logging_group.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        help="Logging format (overrides LOG_FORMAT, default: text)",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"%(prog)s {SYSTEM_VERSION}",
    )

    return parser


# ============================================================
# CLI VALIDATION
# ============================================================

def validate_args(args: argparse.Namespace) -> List[str]:
    """Validate CLI arguments, return every error."""
    errors = []

    if args.poll_interval is not None and args.poll_interval < 1:
        errors.append("--poll-interval must be at least 1 millisecond")

    if args.env_file and not os.path.isfile(args.env_file):
        errors.append(f"--env-file not found: {args.env_file}")

    return errors


def load_environment(env_file: Optional[str] = None) -> None:
    """Load a .env file into the process environment. Real env vars win."""
    if env_file:
        load_dotenv(env_file, override=False)
    else:
        load_dotenv(override=False)


# ============================================================
# CLI CONFIGURATION BUILDER
# ============================================================

def build_config(args: argparse.Namespace) -> AppConfig:
    """
    Build configuration from environment plus CLI overrides.

    Raises:
        ConfigurationError: missing or invalid configuration
    """
    config = AppConfig.from_env()

    overrides = {}
    if args.poll_interval is not None:
        overrides["poll_interval_ms"] = args.poll_interval
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.log_format:
        overrides["log_format"] = args.log_format

    return dataclasses.replace(config, **overrides) if overrides else config


def check_config() -> int:
    """Report every configuration problem. Returns exit code."""
    errors = AppConfig.validate_env()
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    print("Configuration OK")
    return 0


# ============================================================
# MAIN ENTRY POINT
# ============================================================

def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    errors = validate_args(args)
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    load_environment(args.env_file)

    if args.check_config:
        return check_config()

    correlation_id = f"notifier_{datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')}"

    try:
        config = build_config(args)
    except ConfigurationError as e:
        setup_logging(
            level=args.log_level or "INFO",
            log_format=args.log_format or "text",
            correlation_id=correlation_id,
        )
        logging.getLogger(__name__).critical(f"Startup failed: {e.to_log_format()}")
        return 1

    setup_logging(
        level=config.log_level,
        log_format=config.log_format,
        correlation_id=correlation_id,
    )

    print_banner(config)

    application = NotifierApplication(config)
    return asyncio.run(application.run())


def print_banner(config: AppConfig) -> None:
    """Print startup banner."""
    print()
    print("=" * 60)
    print(f"  {SYSTEM_NAME.upper()} v{SYSTEM_VERSION}")
    print("=" * 60)
    print(f"  Database:   {config.database.host}:{config.database.port}/{config.database.database}")
    print(f"  Table:      {config.database.events_table}")
    print(f"  Chats:      {len(config.telegram.chat_ids)}")
    print(f"  Interval:   {config.poll_interval_ms}ms")
    print(f"  Delay:      {config.message_delay_ms}ms")
    print(f"  Log Level:  {config.log_level}")
    print("=" * 60)
    print()


# ============================================================
# MODULE EXECUTION
# ============================================================

if __name__ == "__main__":
    sys.exit(main())

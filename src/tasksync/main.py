#!/usr/bin/env python3
"""TaskSync application entry point.

This module provides a unified entry point for all interfaces:
- Web: RESTful HTTP API and batch sync endpoint
- CLI: Command-line interface

Usage:
    tasksync web [--port 8080]        # Start web server
    tasksync cli list-tasks           # Use CLI
    python -m tasksync.main cli new-task "Buy milk"
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import NoReturn, Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def configure_logging(config_dir: Optional[Path]) -> None:
    """Configure root logging at the level named in the config."""
    from tasksync.core.config import Config
    from tasksync.core.validation import ValidationError

    level_name = "INFO"
    try:
        level_name = Config(config_dir=config_dir).get_log_level()
    except ValidationError as e:
        print(f"Warning: {e}; logging at INFO", file=sys.stderr)

    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)


def create_parser() -> argparse.ArgumentParser:
    """Create the unified argument parser.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        description="TaskSync - task-tracking backend for offline-first clients",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  tasksync web --port 8080                 Start web server on port 8080
  tasksync cli list-tasks --user u1        List tasks of user u1
  tasksync cli new-task "Buy milk"         Create a task in the local store
  tasksync cli update-task --id ID --completed true
""",
    )

    parser.add_argument(
        "-d", "--config-dir",
        type=Path,
        default=None,
        help="Custom configuration directory (default: ~/.config/tasksync/)"
    )

    subparsers = parser.add_subparsers(dest="interface", help="Interface to use")

    from tasksync.cli import add_cli_subparser
    add_cli_subparser(subparsers)

    from tasksync.web import add_web_subparser
    add_web_subparser(subparsers)

    return parser


def main() -> NoReturn:
    """Main entry point for TaskSync.

    Parses arguments and dispatches to the appropriate interface.
    """
    parser = create_parser()
    args = parser.parse_args()

    if not args.interface:
        parser.print_help()
        sys.exit(1)

    configure_logging(args.config_dir)
    logger.debug(f"Starting {args.interface} interface")

    if args.interface == "web":
        from tasksync.web import run as run_web
        sys.exit(run_web(args.config_dir, args))
    else:
        from tasksync.cli import run as run_cli
        sys.exit(run_cli(args.config_dir, args))


if __name__ == "__main__":
    main()

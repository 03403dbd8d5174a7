#!/usr/bin/env python3
"""Main entry point for sshfan."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from textual.logging import TextualHandler

from .config import (
    DEFAULT_HOSTS_FILE,
    DEFAULT_PARALLEL_REQUESTS,
    DEFAULT_SSH_KEY,
    Settings,
    expand_path,
    load_hosts,
    parse_duration,
)
from .dashboard import Dashboard
from .dispatcher import Dispatcher
from .executor import RemoteExecutor
from .models import JobResult

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool = False, dashboard: bool = False) -> None:
    """Send log lines to stderr, timestamped.

    With the dashboard up, records go to the textual log instead so they
    don't draw over the screen.
    """
    handler = TextualHandler() if dashboard else logging.StreamHandler(sys.stderr)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(message)s",
        datefmt="%Y/%m/%d %H:%M:%S",
        handlers=[handler],
    )
    logging.getLogger("asyncssh").setLevel(logging.WARNING)


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def _duration(value: str) -> float:
    try:
        return parse_duration(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sshfan",
        description="Run a command on many SSH hosts with bounded parallelism",
    )
    parser.add_argument(
        "--server-addresses",
        default=DEFAULT_HOSTS_FILE,
        help="File containing server addresses in YAML format",
    )
    parser.add_argument(
        "--command",
        default="",
        help="Command to execute on the servers",
    )
    parser.add_argument(
        "--ssh-key",
        default=DEFAULT_SSH_KEY,
        help="Path to the private key for SSH authentication",
    )
    parser.add_argument(
        "--parallel-requests",
        type=_positive_int,
        default=DEFAULT_PARALLEL_REQUESTS,
        help="Number of parallel SSH requests to make",
    )
    parser.add_argument(
        "--ssh-timeout",
        type=_duration,
        default="10s",
        help="Timeout for establishing SSH connections (e.g. 10s, 1m30s)",
    )
    parser.add_argument(
        "--user",
        default="root",
        help="Remote user to log in as",
    )
    parser.add_argument(
        "--known-hosts",
        default=None,
        help="known_hosts file to verify host keys against (verification is off without it)",
    )
    parser.add_argument(
        "--dashboard",
        action="store_true",
        help="Run with the TUI dashboard",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose, dashboard=args.dashboard)

    # Validate flag values before touching the config or the network
    if not args.command:
        logger.critical("Missing command flag")
        return 1

    try:
        hosts_config = load_hosts(args.server_addresses)
    except (OSError, ValueError) as e:
        logger.critical("Failed to read server addresses: %s", e)
        return 1

    try:
        ssh_key = expand_path(args.ssh_key)
        known_hosts = expand_path(args.known_hosts) if args.known_hosts else None
    except RuntimeError as e:
        logger.critical("Failed to expand SSH key path: %s", e)
        return 1

    if not ssh_key.exists():
        logger.critical("SSH key not found: %s", ssh_key)
        return 1

    if known_hosts is not None and not known_hosts.exists():
        logger.critical("known_hosts file not found: %s", known_hosts)
        return 1

    settings = Settings(
        command=args.command,
        hosts_file=hosts_config.source_path or Path(args.server_addresses),
        ssh_key=ssh_key,
        parallel_requests=args.parallel_requests,
        ssh_timeout=args.ssh_timeout,
        user=args.user,
        known_hosts=known_hosts,
        dashboard=args.dashboard,
    )

    if not settings.dashboard:
        asyncio.run(_run_headless(settings, hosts_config.hosts))
        return 0

    app = Dashboard(settings, hosts_config.hosts)
    app.run()
    return 0


def report(result: JobResult) -> None:
    """Print one host's output, or log why it failed."""
    if result.success:
        print(f"Output from {result.target}:\n{result.output}", flush=True)
    else:
        logger.error("Failed to execute command on %s: %s", result.target, result.error)


async def _run_headless(settings: Settings, hosts: list[str]) -> None:
    """Stream results to the terminal as hosts finish."""
    executor = RemoteExecutor(
        settings.command,
        settings.ssh_key,
        settings.ssh_timeout,
        user=settings.user,
        known_hosts=settings.known_hosts,
    )
    dispatcher = Dispatcher(settings.parallel_requests)

    async for result in dispatcher.stream(hosts, executor.execute):
        report(result)


if __name__ == "__main__":
    sys.exit(main())

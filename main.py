"""Status Monitor -- entry point.

Assembles the reconciliation pipeline:

    Providers (one per monitored service, fetched concurrently)
        -> IncidentReconciler / MultiIncidentReconciler
        -> SuppressionGate (claim before send)
        -> Notifier (Slack)
        -> persisted incident state

A shared httpx.AsyncClient is injected into every provider and the Slack
notifier. ``run`` polls on a fixed interval; ``serve`` exposes the HTTP
surface for an external scheduler to hit ``POST /api/run``.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging

import httpx
import uvicorn

from core.factory import build_monitor
from core.scheduler import Scheduler
from core.settings import Settings
from notifiers.console import ConsoleNotifier
from server import create_app


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


async def run(args: argparse.Namespace, settings: Settings) -> int:
    async with httpx.AsyncClient(timeout=float(settings.http_timeout_seconds)) as client:
        notifier = ConsoleNotifier() if args.console else None
        monitor = build_monitor(settings, client, notifier=notifier)

        if args.command == "run":
            await Scheduler(monitor, settings.poll_interval_seconds).run()
        elif args.command == "once":
            report = await monitor.run_cycle(force=args.force)
            print(json.dumps(report.to_dict()))
        elif args.command == "debug":
            print(json.dumps(await monitor.inspect(), indent=2))
        elif args.command == "health":
            print(json.dumps(monitor.health()))
        elif args.command == "ping":
            delivered = await monitor.test_ping()
            print("test-ok" if delivered else "test-failed")
            return 0 if delivered else 1
    return 0


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Third-party service status monitor")
    parser.add_argument(
        "--console",
        action="store_true",
        help="Print notifications to stdout instead of posting to Slack",
    )
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("run", help="Poll all services on the configured interval")
    once = sub.add_parser("once", help="Run a single poll cycle")
    once.add_argument("--force", action="store_true", help="Bypass the coalescing window")
    sub.add_parser("serve", help="Serve the HTTP API")
    sub.add_parser("debug", help="Print current observations next to persisted state")
    sub.add_parser("health", help="Print the last recorded run time")
    sub.add_parser("ping", help="Send a test notification")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _parser().parse_args(argv)
    settings = Settings()
    _configure_logging(settings.log_level)

    if args.command == "serve":
        uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
        return 0

    try:
        return asyncio.run(run(args, settings))
    except KeyboardInterrupt:
        print("\nShutting down.")
        return 0


if __name__ == "__main__":
    raise SystemExit(main())

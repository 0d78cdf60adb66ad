"""Entry point for the pingwatch service — `pingwatch` console script."""

from __future__ import annotations

import argparse
import logging
import sys

import uvicorn
from rich.console import Console
from rich.panel import Panel

from pingwatch.api.server import create_app
from pingwatch.config import Settings

console = Console()


def run_server(settings: Settings) -> None:
    """Start the FastAPI server with the overdue scanner."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    alerts = "email" if settings.smtp_host else "none"
    if settings.slack_webhook_url:
        alerts = f"{alerts} + slack" if settings.smtp_host else "slack"

    console.print(
        Panel.fit(
            f"[bold]pingwatch[/bold]\n"
            f"Bind:     {settings.api_host}:{settings.api_port}\n"
            f"Database: {settings.db_path}\n"
            f"Scan:     every {settings.scan_interval:g}s\n"
            f"Alerts:   {alerts}",
            title="pingwatch serve",
            border_style="green",
        )
    )

    if not settings.api_key:
        console.print(
            "[yellow]WARNING: No API_KEY set. "
            "Pings and API requests will be refused until one is configured.[/yellow]\n"
        )

    uvicorn.run(
        create_app(settings),
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="pingwatch monitoring service")
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Start the API server")
    serve.add_argument("--host", help="Bind address (overrides API_HOST)")
    serve.add_argument("--port", type=int, help="Bind port (overrides API_PORT)")

    args = parser.parse_args()

    if args.command == "serve":
        settings = Settings()
        if args.host:
            settings.api_host = args.host
        if args.port:
            settings.api_port = args.port
        run_server(settings)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()

"""Job wrapper CLI — `pingwatch-wrap` console script.

    pingwatch-wrap [--verbose] <ping-url> <command> [args...]

Sends a start ping, runs the command, then posts the execution report to
the ping URL (or its ``/fail`` variant when the command exits nonzero).
The wrapper always exits with the command's own exit code.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import NoReturn

from rich.console import Console
from rich.markup import escape

from pingwatch.config import WrapperSettings
from pingwatch.errors import CommandNotFound, SpawnError
from pingwatch.wrapper.client import PingClient, derive_ping_url, start_ping_url
from pingwatch.wrapper.report import format_report
from pingwatch.wrapper.runner import ExecutionResult, run_command

logger = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)

USAGE_EXIT_CODE = 1
NOT_FOUND_EXIT_CODE = 127
NOT_EXECUTABLE_EXIT_CODE = 126


class _ArgumentParser(argparse.ArgumentParser):
    """argparse exits 2 on bad arguments; the wrapper uses 1."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(USAGE_EXIT_CODE, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="pingwatch-wrap",
        description="Run a command and report its outcome to a pingwatch check.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Echo execution and ping status")
    parser.add_argument(
        "--timeout", type=float, default=None,
        help="Kill the command after this many seconds (default: no limit)",
    )
    parser.add_argument("ping_url", help="Ping URL of the check, e.g. https://host/ping/<uuid>")
    parser.add_argument("command", help="Executable to run")
    parser.add_argument("args", nargs=argparse.REMAINDER, help="Arguments for the command")
    return parser


def _process_exit_code(code: int) -> int:
    # Killed by signal N shows up as -N; shells report 128 + N
    return 128 - code if code < 0 else code


def _summarize_failure(result: ExecutionResult, verbose: bool) -> None:
    if not (verbose or sys.stderr.isatty()):
        return
    err_console.print(
        f"[bold red]Command failed[/bold red] with exit code {result.exit_code} "
        f"after {result.duration:.2f}s: {escape(' '.join(result.command))}"
    )
    tail = result.stderr.strip().splitlines()[-5:]
    for line in tail:
        err_console.print(f"  {escape(line)}", highlight=False)


def main(argv: list[str] | None = None) -> int:
    """Run the wrapper and return the exit code to use."""
    args = build_parser().parse_args(argv)
    settings = WrapperSettings()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, settings.log_level.upper()),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    client = PingClient(api_key=settings.api_key, timeout=settings.ping_timeout)
    start_url = start_ping_url(args.ping_url)

    def send_start() -> None:
        started = client.send(start_url)
        if args.verbose:
            state = "[green]sent[/green]" if started else "[yellow]not delivered[/yellow]"
            console.print(f"Start ping {state}: {escape(start_url)}")

    if args.verbose:
        console.print(f"Running: {escape(' '.join([args.command, *args.args]))}")

    timeout = args.timeout if args.timeout is not None else settings.command_timeout
    try:
        result = run_command(args.command, args.args, timeout=timeout, on_spawn=send_start)
    except CommandNotFound as e:
        err_console.print(f"[red]{escape(str(e))}[/red]")
        return NOT_FOUND_EXIT_CODE
    except SpawnError as e:
        err_console.print(f"[red]{escape(str(e))}[/red]")
        return NOT_EXECUTABLE_EXIT_CODE
    if args.verbose:
        console.print(f"Exit code {result.exit_code} after {result.duration:.2f}s")

    report = format_report(result, max_size=settings.max_report_size)
    url = derive_ping_url(args.ping_url, result.exit_code)
    delivered = client.send(url, report)
    if args.verbose:
        state = "[green]sent[/green]" if delivered else "[yellow]not delivered[/yellow]"
        console.print(f"Report ping {state}: {escape(url)}")

    if not result.succeeded:
        _summarize_failure(result, args.verbose)

    return _process_exit_code(result.exit_code)


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()

"""Report formatter — turns an ExecutionResult into the ping body.

Oversized reports keep their first and last ``max_size / 2`` bytes with a
marker line in between, so both the command header and the final output
survive.
"""

from __future__ import annotations

import shlex
import socket

from pingwatch.wrapper.runner import ExecutionResult

MAX_REPORT_SIZE = 100_000
TRUNCATION_MARKER = "\n[... output truncated ...]\n"


def _section(title: str, text: str) -> str:
    if not text:
        return ""
    if not text.endswith("\n"):
        text += "\n"
    return f"\n{title}:\n{text}"


def format_report(
    result: ExecutionResult,
    max_size: int = MAX_REPORT_SIZE,
    hostname: str | None = None,
) -> str:
    """Build the report text, truncated to ``max_size`` bytes."""
    host = hostname or socket.gethostname()
    report = (
        f"Command:   {shlex.join(result.command)}\n"
        f"Started:   {result.start_time.isoformat()}\n"
        f"Finished:  {result.end_time.isoformat()}\n"
        f"Duration:  {result.duration:.2f}s\n"
        f"Exit code: {result.exit_code}\n"
        f"Host:      {host}\n"
    )
    report += _section("STDOUT", result.stdout)
    report += _section("STDERR", result.stderr)
    return truncate_report(report, max_size)


def truncate_report(text: str, max_size: int = MAX_REPORT_SIZE) -> str:
    """Keep the head and tail halves of ``text`` when it exceeds ``max_size`` bytes."""
    raw = text.encode("utf-8")
    if len(raw) <= max_size:
        return text
    half = max_size // 2
    head = raw[:half].decode("utf-8", errors="ignore")
    tail = raw[len(raw) - half:].decode("utf-8", errors="ignore")
    return head + TRUNCATION_MARKER + tail

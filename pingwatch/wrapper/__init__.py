"""Job wrapper — runs a command and reports its outcome as a ping."""

from .client import PingClient, PingUrl, derive_ping_url
from .report import format_report, truncate_report
from .runner import ExecutionResult, resolve_command, run_command

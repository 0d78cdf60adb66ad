"""Execution runner — spawn one command, capture everything it prints."""

from __future__ import annotations

import logging
import shutil
import subprocess
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pingwatch.errors import CommandNotFound, SpawnError

logger = logging.getLogger(__name__)

# Conventional exit code for a command killed by a timeout
TIMEOUT_EXIT_CODE = 124


@dataclass
class ExecutionResult:
    """Outcome of one wrapped command run."""

    command: list[str]
    exit_code: int
    stdout: str
    stderr: str
    start_time: datetime
    end_time: datetime

    @property
    def duration(self) -> float:
        """Wall-clock seconds, two decimals."""
        return round((self.end_time - self.start_time).total_seconds(), 2)

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


def resolve_command(command: str) -> str:
    """Return the executable path for ``command``. Raises CommandNotFound."""
    path = shutil.which(command)
    if path is None:
        raise CommandNotFound(command)
    return path


def run_command(
    command: str,
    args: list[str] | None = None,
    timeout: float | None = None,
    on_spawn: Callable[[], Any] | None = None,
) -> ExecutionResult:
    """Run ``command`` with ``args`` and block until it exits.

    stdout and stderr are captured separately and in full. ``on_spawn``
    is called once the child is running, never when it fails to start.
    With a ``timeout`` the child is killed when it runs over and the
    result carries exit code 124.

    Raises CommandNotFound or SpawnError before anything has run.
    """
    argv = [resolve_command(command), *(args or [])]
    logger.debug("Running %s", argv)

    start = datetime.now(timezone.utc)
    try:
        proc = subprocess.Popen(
            argv,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except OSError as e:
        raise SpawnError(command, e) from e

    if on_spawn is not None:
        on_spawn()

    with proc:
        try:
            stdout, stderr = proc.communicate(timeout=timeout)
            exit_code = proc.returncode
        except subprocess.TimeoutExpired:
            proc.kill()
            stdout, stderr = proc.communicate()
            exit_code = TIMEOUT_EXIT_CODE
            stderr = (stderr or "") + f"\nCommand timed out after {timeout}s\n"
    end = datetime.now(timezone.utc)

    return ExecutionResult(
        command=[command, *(args or [])],
        exit_code=exit_code,
        stdout=stdout or "",
        stderr=stderr or "",
        start_time=start,
        end_time=end,
    )

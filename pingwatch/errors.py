"""Domain exceptions shared by the service and the job wrapper."""

from __future__ import annotations


class PingwatchError(Exception):
    """Base class for pingwatch errors."""


class CheckNotFound(PingwatchError):
    """Raised when no check (or ping) matches the requested identity."""

    def __init__(self, uuid: str, detail: str = "") -> None:
        self.uuid = uuid
        super().__init__(detail or f"Check not found: {uuid}")


class Unauthorized(PingwatchError):
    """Raised when a request carries no credentials."""

    def __init__(self, detail: str = "Authentication required", challenge: str | None = None) -> None:
        self.challenge = challenge
        super().__init__(detail)


class Forbidden(PingwatchError):
    """Raised when credentials are present but wrong."""


class CommandNotFound(PingwatchError):
    """Raised when the wrapped command does not resolve to an executable."""

    def __init__(self, command: str) -> None:
        self.command = command
        super().__init__(f"Command not found: {command}")


class SpawnError(PingwatchError):
    """Raised when the command exists but the OS refuses to start it."""

    def __init__(self, command: str, reason: OSError) -> None:
        self.command = command
        self.reason = reason
        super().__init__(f"Cannot run {command}: {reason.strerror or reason}")

"""Checks subsystem — models, SQLite storage, state machine.

The overdue scanner lives in ``pingwatch.checks.scanner``; it depends on
the notifier, which itself imports the models from here.
"""

from .models import Check, CheckStatus, Ping, PingMeta, Signal
from .state import CheckStateMachine, is_overdue
from .store import CheckStore

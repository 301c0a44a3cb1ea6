"""The default remote-control command table."""

import re

from .dispatcher import Command
from .gateway import IGatewayClient

COMMAND_PREFIX = "🦀"


def _pattern(text: str) -> re.Pattern:
    return re.compile(re.escape(COMMAND_PREFIX + text), re.IGNORECASE)


def build_default_commands(gateway: IGatewayClient) -> list[Command]:
    """Ordered: the first matching row wins."""
    return [
        Command("status", _pattern("status"), gateway.status, timeout=10.0),
        Command("task", _pattern("current task"), gateway.current_task, timeout=10.0),
        Command("new_session", _pattern("new session"), gateway.new_session, timeout=15.0),
        Command("restart", _pattern("restart"), gateway.restart, timeout=65.0, shielded=True),
    ]


def command_help() -> str:
    return ", ".join(
        COMMAND_PREFIX + name for name in ("status", "current task", "new session", "restart")
    )

"""Command dispatcher: first-match command table with cooldowns."""

import asyncio
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol, Sequence

from ..conversation import ICooldownRegistry
from ..logging_config import get_logger

logger = get_logger(__name__)


CommandAction = Callable[[], Awaitable[str]]


@dataclass(frozen=True)
class Command:
    """One row of the command table."""

    name: str
    matcher: re.Pattern
    action: CommandAction
    timeout: float = 30.0
    shielded: bool = False  # keeps running if the daemon is cancelled

    def matches(self, plaintext: str) -> bool:
        return self.matcher.search(plaintext) is not None


class ICommandDispatcher(Protocol):
    """Turns command messages into reply text."""

    def match(self, plaintext: str) -> Command | None:
        """First command whose matcher fires, if any."""
        ...

    async def dispatch(self, plaintext: str, sender: str) -> str | None:
        """Reply text for a command message, None if no command matched."""
        ...


class CommandDispatcher:
    """Evaluates an ordered command table. Never raises from an action."""

    def __init__(self, commands: Sequence[Command], cooldowns: ICooldownRegistry):
        self._commands = tuple(commands)
        self._cooldowns = cooldowns
        self._shielded: set[asyncio.Task] = set()

    @property
    def commands(self) -> tuple[Command, ...]:
        return self._commands

    def match(self, plaintext: str) -> Command | None:
        return next((c for c in self._commands if c.matches(plaintext)), None)

    async def dispatch(self, plaintext: str, sender: str) -> str | None:
        command = self.match(plaintext)
        if command is None:
            return None

        logger.info("Command detected: %s from %s", command.name, sender[:16])

        status = self._cooldowns.check_cooldown(command.name, sender)
        if not status.allowed:
            logger.info(
                "%s is on %s cooldown (%ss remaining)",
                command.name,
                status.scope.value if status.scope else "unknown",
                status.remaining_seconds,
            )
            return (
                f"⏳ Command on cooldown. Please wait {status.remaining_seconds} "
                "seconds before trying again."
            )

        try:
            result = await self._run(command)
            logger.info("%s command completed", command.name)
        except asyncio.TimeoutError:
            logger.error("%s command timed out after %.0fs", command.name, command.timeout)
            result = f"❌ Error: {command.name} timed out after {command.timeout:.0f}s"
        except Exception as e:
            logger.error("%s command failed: %s", command.name, e)
            result = f"❌ Error: {e}"

        self._cooldowns.mark_executed(command.name, sender)
        return result

    async def _run(self, command: Command) -> str:
        if not command.shielded:
            return await asyncio.wait_for(command.action(), timeout=command.timeout)

        task = asyncio.ensure_future(command.action())
        self._shielded.add(task)
        task.add_done_callback(self._shielded.discard)
        return await asyncio.wait_for(asyncio.shield(task), timeout=command.timeout)

    async def drain(self) -> None:
        """Wait for shielded actions still running (e.g. a restart)."""
        if self._shielded:
            logger.info("Waiting for %d in-flight command(s) to finish", len(self._shielded))
            await asyncio.gather(*self._shielded, return_exceptions=True)

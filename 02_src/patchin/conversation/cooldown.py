"""Cooldown registry: global and per-sender command rate limiting."""

import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Protocol

from ..config import DEFAULT_COOLDOWN_MS
from .tracker import ConversationTracker


class CooldownScope(str, Enum):
    GLOBAL = "global"
    PER_SENDER = "per_sender"


@dataclass(frozen=True)
class CooldownStatus:
    allowed: bool
    remaining_seconds: int = 0
    scope: CooldownScope | None = None


class ICooldownRegistry(Protocol):
    """Answers "may this command run now?"."""

    def check_cooldown(self, command_name: str, sender: str) -> CooldownStatus:
        """Global gate first, then the per-sender gate."""
        ...

    def mark_executed(self, command_name: str, sender: str) -> None:
        """Stamp both the global and the sender's timestamp."""
        ...


class CooldownRegistry:
    """Global timestamps live here; per-sender ones in ConversationState."""

    def __init__(
        self,
        conversations: ConversationTracker,
        cooldowns_ms: dict[str, int] | None = None,
        default_cooldown_ms: int = DEFAULT_COOLDOWN_MS,
        clock: Callable[[], float] = time.time,
    ):
        self._conversations = conversations
        self._cooldowns_ms = dict(cooldowns_ms or {})
        self._default_ms = default_cooldown_ms
        self._clock = clock
        self._global: dict[str, float] = {}

    def cooldown_seconds(self, command_name: str) -> float:
        return self._cooldowns_ms.get(command_name, self._default_ms) / 1000

    def check_cooldown(self, command_name: str, sender: str) -> CooldownStatus:
        now = self._clock()
        window = self.cooldown_seconds(command_name)

        remaining = self._remaining(self._global.get(command_name), window, now)
        if remaining:
            return CooldownStatus(False, remaining, CooldownScope.GLOBAL)

        state = self._conversations.get(sender)
        if state is not None:
            remaining = self._remaining(state.last_command_time.get(command_name), window, now)
            if remaining:
                return CooldownStatus(False, remaining, CooldownScope.PER_SENDER)

        return CooldownStatus(True)

    def mark_executed(self, command_name: str, sender: str) -> None:
        now = self._clock()
        self._global[command_name] = now
        self._conversations.get_or_create(sender).last_command_time[command_name] = now

    def prune(self) -> int:
        """Forget timestamps whose cooldown has already elapsed."""
        now = self._clock()
        removed = 0
        for name in [n for n, ts in self._global.items() if now - ts >= self.cooldown_seconds(n)]:
            del self._global[name]
            removed += 1
        for _, state in self._conversations.items():
            stale = [
                n for n, ts in state.last_command_time.items()
                if now - ts >= self.cooldown_seconds(n)
            ]
            for name in stale:
                del state.last_command_time[name]
            removed += len(stale)
        return removed

    @staticmethod
    def _remaining(last: float | None, window: float, now: float) -> int:
        if last is None or now - last >= window:
            return 0
        return max(1, math.ceil(window - (now - last)))

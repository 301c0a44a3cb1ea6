"""Per-sender conversation tracking for auto-reply suppression."""

import time
from enum import Enum
from typing import Callable, Protocol

from ..logging_config import get_logger
from ..models import ConversationState

logger = get_logger(__name__)


class ConversationPhase(str, Enum):
    """Derived phase of a sender's conversation."""

    NEW = "new"  # no reply yet, or the window has lapsed
    ACTIVE = "active"  # replied within the window


class IConversationTracker(Protocol):
    """Conversation state keyed by effective sender."""

    def phase(self, sender: str) -> ConversationPhase:
        """Derive the current phase for a sender."""
        ...

    def record_auto_reply(self, sender: str) -> ConversationState:
        """Note that an auto-reply went out to sender."""
        ...

    def evict_idle(self) -> int:
        """Drop senders idle longer than the eviction threshold."""
        ...


class ConversationTracker:
    """Holds exactly one ConversationState per effective sender."""

    def __init__(
        self,
        timeout_seconds: float = 60 * 60,
        idle_eviction_seconds: float = 24 * 60 * 60,
        clock: Callable[[], float] = time.time,
    ):
        self._timeout = timeout_seconds
        self._idle_eviction = idle_eviction_seconds
        self._clock = clock
        self._states: dict[str, ConversationState] = {}

    def get(self, sender: str) -> ConversationState | None:
        return self._states.get(sender)

    def get_or_create(self, sender: str) -> ConversationState:
        state = self._states.get(sender)
        if state is None:
            state = ConversationState()
            self._states[sender] = state
        return state

    def touch(self, sender: str) -> ConversationState:
        """Record any inbound interaction from sender."""
        state = self.get_or_create(sender)
        state.last_seen = self._clock()
        return state

    def phase(self, sender: str) -> ConversationPhase:
        state = self._states.get(sender)
        if state is None or state.last_reply_time is None:
            return ConversationPhase.NEW
        if self._clock() - state.last_reply_time > self._timeout:
            return ConversationPhase.NEW
        return ConversationPhase.ACTIVE

    def should_auto_reply(self, sender: str) -> bool:
        return self.phase(sender) == ConversationPhase.NEW

    def record_auto_reply(self, sender: str) -> ConversationState:
        now = self._clock()
        starting_over = self.phase(sender) == ConversationPhase.NEW
        state = self.get_or_create(sender)
        if starting_over:
            if state.last_reply_time is not None:
                logger.info("Conversation timed out for %s, starting over", sender[:16])
            state.conversation_start = now
            state.message_count = 0
        state.last_reply_time = now
        state.message_count += 1
        return state

    def evict_idle(self) -> int:
        cutoff = self._clock() - self._idle_eviction
        idle = [
            sender
            for sender, state in self._states.items()
            if self._last_activity(state) < cutoff
        ]
        for sender in idle:
            del self._states[sender]
        if idle:
            logger.info("Evicted %d idle conversations", len(idle))
        return len(idle)

    @staticmethod
    def _last_activity(state: ConversationState) -> float:
        stamps = [state.last_seen, state.last_reply_time, *state.last_command_time.values()]
        return max((s for s in stamps if s is not None), default=0.0)

    def items(self) -> list[tuple[str, ConversationState]]:
        return list(self._states.items())

    def __len__(self) -> int:
        return len(self._states)

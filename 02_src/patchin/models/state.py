"""Mutable per-sender, per-relay and daemon-wide state records."""

import math
from dataclasses import dataclass, field


@dataclass
class ConversationState:
    """Conversation bookkeeping for one effective sender."""

    last_reply_time: float | None = None
    conversation_start: float | None = None
    message_count: int = 0
    last_command_time: dict[str, float] = field(default_factory=dict)
    last_seen: float | None = None


@dataclass
class RelayHealth:
    """Publish health of one relay. backoff_until == inf excludes it for good."""

    backoff_until: float = 0.0
    consecutive_failures: int = 0

    @property
    def permanently_excluded(self) -> bool:
        return math.isinf(self.backoff_until)

    def available(self, now: float) -> bool:
        return self.backoff_until <= now


@dataclass
class DaemonStats:
    """Counters reported by the stats task."""

    started_at: float
    total_received: int = 0
    total_replied: int = 0
    commands_executed: int = 0
    auto_replies_sent: int = 0
    decrypt_failures: int = 0
    publish_failures: int = 0
    blocked_senders: int = 0

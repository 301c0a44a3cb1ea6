"""Dedup ledger: processed-once and answered-once event id sets."""

import time
from typing import Callable, Protocol

from ..logging_config import get_logger

logger = get_logger(__name__)


class IDedupLedger(Protocol):
    """Bounded membership sets for seen and replied event ids."""

    def is_new_event(self, event_id: str) -> bool:
        """Test-and-set: True the first time an id is offered."""
        ...

    def is_duplicate_reply(self, event_id: str) -> bool:
        """True if an auto-reply was already sent for this id."""
        ...

    def mark_replied(self, event_id: str) -> None:
        """Record that this id has been answered."""
        ...

    def sweep(self) -> int:
        """Evict expired entries. Returns number removed."""
        ...


class DedupLedger:
    """
    Two disjoint id sets with per-entry TTL and a size cap.

    Entries are only evicted by sweep(), which the daemon runs between
    events, so an id marked during a pipeline pass is never dropped
    mid-pass.
    """

    def __init__(
        self,
        ttl_seconds: float = 24 * 60 * 60,
        max_size: int = 10000,
        clock: Callable[[], float] = time.time,
    ):
        self._ttl = ttl_seconds
        self._max_size = max_size
        self._clock = clock
        # dicts keep insertion order, so the oldest entries come first
        self._seen: dict[str, float] = {}
        self._replied: dict[str, float] = {}

    def is_new_event(self, event_id: str) -> bool:
        if event_id in self._seen:
            return False
        self._seen[event_id] = self._clock()
        return True

    def is_duplicate_reply(self, event_id: str) -> bool:
        return event_id in self._replied

    def mark_replied(self, event_id: str) -> None:
        self._replied.setdefault(event_id, self._clock())

    def sweep(self) -> int:
        now = self._clock()
        removed = self._prune(self._seen, now) + self._prune(self._replied, now)
        if removed:
            logger.debug("Swept %d ledger entries", removed)
        return removed

    def _prune(self, entries: dict[str, float], now: float) -> int:
        cutoff = now - self._ttl
        expired = [k for k, ts in entries.items() if ts < cutoff]
        for k in expired:
            del entries[k]

        overflow = max(0, len(entries) - self._max_size)
        for k in list(entries)[:overflow]:
            del entries[k]

        return len(expired) + overflow

    @property
    def seen_count(self) -> int:
        return len(self._seen)

    @property
    def replied_count(self) -> int:
        return len(self._replied)

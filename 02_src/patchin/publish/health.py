"""Per-relay health table used to skip rate-limited and blocked relays."""

import math
import time
from typing import Callable, Iterable

from ..models import RelayHealth


class RelayHealthTable:
    """Missing entry means healthy. Infinite backoff means excluded for good."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._entries: dict[str, RelayHealth] = {}

    def get(self, url: str) -> RelayHealth | None:
        return self._entries.get(url)

    def is_available(self, url: str) -> bool:
        entry = self._entries.get(url)
        return entry is None or entry.available(self._clock())

    def all_excluded(self, urls: Iterable[str]) -> bool:
        """True when no relay in urls could ever be used again."""
        for url in urls:
            entry = self._entries.get(url)
            if entry is None or not entry.permanently_excluded:
                return False
        return True

    def record_success(self, url: str) -> None:
        self._entries.pop(url, None)

    def record_rate_limited(self, url: str, backoff_ms: Callable[[int], float]) -> RelayHealth:
        entry = self._entries.setdefault(url, RelayHealth())
        if entry.permanently_excluded:
            return entry
        entry.consecutive_failures += 1
        entry.backoff_until = self._clock() + backoff_ms(entry.consecutive_failures) / 1000
        return entry

    def record_permanent(self, url: str) -> RelayHealth:
        entry = self._entries.setdefault(url, RelayHealth())
        entry.backoff_until = math.inf
        return entry

    def prune(self, stale_after_seconds: float = 60 * 60) -> int:
        """Drop finite backoffs that expired long ago. Exclusions stay."""
        cutoff = self._clock() - stale_after_seconds
        stale = [
            url for url, entry in self._entries.items()
            if not entry.permanently_excluded and entry.backoff_until < cutoff
        ]
        for url in stale:
            del self._entries[url]
        return len(stale)

    def items(self) -> list[tuple[str, RelayHealth]]:
        return list(self._entries.items())

    def __len__(self) -> int:
        return len(self._entries)

"""Publish engine: at-least-one-of-N delivery with retry and relay backoff."""

import asyncio
import random
from typing import Any, Awaitable, Callable, Protocol, Sequence

from ..errors import RelayPublishError
from ..logging_config import get_logger
from .backoff import RetryPolicy, compute_backoff
from .classifier import FailureClassifier, FailureKind, classify_failure
from .health import RelayHealthTable

logger = get_logger(__name__)


class IRelayPublisher(Protocol):
    """The publish half of the relay pool."""

    async def publish(self, relay_url: str, event: dict[str, Any]) -> None:
        """Deliver event to one relay. Raises on rejection or transport failure."""
        ...


class IPublishEngine(Protocol):
    async def publish(self, event: dict[str, Any], relays: Sequence[str]) -> bool:
        """True if at least one relay accepted the event."""
        ...


class PublishEngine:
    """Fans an event out to every healthy relay, round by round."""

    def __init__(
        self,
        publisher: IRelayPublisher,
        health: RelayHealthTable,
        policy: RetryPolicy | None = None,
        classifier: FailureClassifier = classify_failure,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ):
        self._publisher = publisher
        self._health = health
        self._policy = policy or RetryPolicy()
        self._classify = classifier
        self._sleep = sleep
        self._rng = rng or random.Random()
        self.other_failures = 0

    def backoff_ms(self, attempt: int) -> float:
        p = self._policy
        return compute_backoff(attempt, p.base_ms, p.cap_ms, p.jitter_ms, self._rng)

    async def publish(self, event: dict[str, Any], relays: Sequence[str]) -> bool:
        relays = list(dict.fromkeys(relays))
        event_id = str(event.get("id", ""))[:16]
        attempt = 0

        while attempt < self._policy.max_retries:
            available = [url for url in relays if self._health.is_available(url)]

            if not available:
                if self._health.all_excluded(relays):
                    logger.error("No usable relays for %s, all permanently excluded", event_id)
                    return False
                penalty = self._policy.penalty_window_ms / 1000
                logger.warning("All relays rate-limited, waiting %.0fs", penalty)
                await self._sleep(penalty)
                continue

            successes = await self._round(event, available)
            logger.info(
                "Published %s to %d/%d available relays (%d total)",
                event_id, successes, len(available), len(relays),
            )
            if successes:
                return True

            attempt += 1
            if attempt < self._policy.max_retries:
                delay = self.backoff_ms(attempt - 1) / 1000
                logger.info(
                    "Retry attempt %d/%d in %.1fs", attempt + 1, self._policy.max_retries, delay
                )
                await self._sleep(delay)

        logger.error("Failed to publish %s after %d attempts", event_id, self._policy.max_retries)
        return False

    async def _round(self, event: dict[str, Any], relays: list[str]) -> int:
        # join-all: every relay's outcome is needed to update its health
        results = await asyncio.gather(
            *(self._publisher.publish(url, event) for url in relays),
            return_exceptions=True,
        )

        successes = 0
        for url, result in zip(relays, results):
            if not isinstance(result, BaseException):
                successes += 1
                self._health.record_success(url)
                continue
            self._record_failure(url, result)
        return successes

    def _record_failure(self, url: str, error: BaseException) -> None:
        if isinstance(error, RelayPublishError):
            reason = error.reason
        else:
            reason = str(error) or type(error).__name__

        kind = self._classify(reason)
        if kind == FailureKind.RATE_LIMITED:
            entry = self._health.record_rate_limited(url, self.backoff_ms)
            logger.warning(
                "%s rate-limited (%d consecutive), backing off", url, entry.consecutive_failures
            )
        elif kind == FailureKind.PERMANENT:
            self._health.record_permanent(url)
            logger.warning("%s permanently blocked: %s", url, reason)
        else:
            self.other_failures += 1
            logger.warning("Failed to publish to %s: %s", url, reason)

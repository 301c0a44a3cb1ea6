"""Daemon bootstrap, event pipeline and lifecycle management."""

import asyncio
import random
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Protocol

from .commands import (
    CommandDispatcher,
    GatewayClient,
    IGatewayClient,
    build_default_commands,
    command_help,
)
from .config import Settings
from .conversation import ConversationTracker, CooldownRegistry
from .crypto import ICrypto, NostrCrypto
from .envelope import EnvelopeResolver
from .errors import CryptoError
from .ledger import DedupLedger
from .logging_config import get_logger
from .models import (
    SUBSCRIBED_KINDS,
    DaemonStats,
    DecryptedMessage,
    InboundEvent,
    OutboundReply,
    ResolutionFailure,
    Scheme,
)
from .publish import PublishEngine, RelayHealthTable, RetryPolicy
from .relay import IRelayPool, RelayPool

logger = get_logger(__name__)

SHUTDOWN_GRACE_SECONDS = 15.0


class IDaemon(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Subscribe to relays and start background tasks."""
        ...

    async def stop(self) -> None:
        """Finish the in-flight event, then shut down in reverse order."""
        ...


@dataclass
class DaemonState:
    """Everything the pipeline mutates. Shared by reference."""

    ledger: DedupLedger
    conversations: ConversationTracker
    cooldowns: CooldownRegistry
    relay_health: RelayHealthTable
    stats: DaemonStats


def build_state(settings: Settings, clock: Callable[[], float] = time.time) -> DaemonState:
    conversations = ConversationTracker(
        timeout_seconds=settings.conversation_timeout_ms / 1000,
        idle_eviction_seconds=settings.conversation_idle_eviction_ms / 1000,
        clock=clock,
    )
    return DaemonState(
        ledger=DedupLedger(
            ttl_seconds=settings.ledger_ttl_s, max_size=settings.ledger_max_size, clock=clock
        ),
        conversations=conversations,
        cooldowns=CooldownRegistry(
            conversations, cooldowns_ms=settings.command_cooldowns_ms, clock=clock
        ),
        relay_health=RelayHealthTable(clock=clock),
        stats=DaemonStats(started_at=clock()),
    )


def gateway_status_line(probe: dict[str, Any]) -> str:
    if probe.get("online"):
        if probe.get("has_active_task"):
            return f"🔍 OpenClaw Status: Ready with {probe.get('agent_count', 0)} active agent(s)"
        return "✅ OpenClaw Status: Ready and waiting"
    return f"⚠️ OpenClaw Status: Offline ({probe.get('error', 'unknown error')})"


def reply_scheme(inbound: Scheme) -> Scheme:
    """Answer in the scheme the sender used. Unknown falls back to legacy."""
    if inbound in (Scheme.WRAPPED, Scheme.NIP44):
        return inbound
    return Scheme.NIP04


class Daemon:
    """Relay subscription consumer plus housekeeping and stats tasks."""

    def __init__(
        self,
        settings: Settings,
        pool: IRelayPool | None = None,
        gateway: IGatewayClient | None = None,
        crypto: ICrypto | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ):
        self._settings = settings
        self._clock = clock
        self._crypto = crypto or NostrCrypto()
        self._private_key = settings.private_key
        self._public_key = self._crypto.public_key(settings.private_key)

        self._state = build_state(settings, clock)
        self._pool = pool or RelayPool(settings.relays, publish_timeout=settings.publish_timeout_s)
        self._gateway = gateway or GatewayClient(settings.gateway_url, settings.gateway_command)

        self._resolver = EnvelopeResolver(self._crypto)
        self._dispatcher = CommandDispatcher(
            build_default_commands(self._gateway), self._state.cooldowns
        )
        self._publisher = PublishEngine(
            self._pool,
            self._state.relay_health,
            RetryPolicy(
                max_retries=settings.max_retries,
                base_ms=settings.base_backoff_ms,
                cap_ms=settings.max_backoff_ms,
                jitter_ms=settings.jitter_ms,
                penalty_window_ms=settings.penalty_window_ms,
            ),
            sleep=sleep,
            rng=rng,
        )

        # Pipeline steps and housekeeping never interleave
        self._lock = asyncio.Lock()
        self._consumer: asyncio.Task | None = None
        self._background: list[asyncio.Task] = []
        self._running = False

    async def start(self) -> None:
        """Subscribe to relays and start background tasks."""
        if not self._settings.enabled:
            logger.warning("Nostr channel is disabled in config, not subscribing")
            return

        logger.info(
            "Starting daemon",
            extra={"context": {
                "public_key": self._public_key,
                "relays": list(self._settings.relays),
                "dm_policy": self._settings.dm_policy,
                "commands": command_help(),
            }},
        )
        self._state.stats.started_at = self._clock()
        self._running = True

        await self._connect_relays()
        self._consumer = asyncio.create_task(self._consume(), name="consumer")
        self._background = [
            asyncio.create_task(self._housekeeping_loop(), name="housekeeping"),
            asyncio.create_task(self._stats_loop(), name="stats"),
        ]
        logger.info("Daemon started, listening for DMs")

    async def stop(self) -> None:
        """Finish the in-flight event, then shut down in reverse order."""
        logger.info("Stopping daemon")
        self._running = False

        for task in self._background:
            task.cancel()
        await asyncio.gather(*self._background, return_exceptions=True)
        self._background = []

        if self._consumer:
            acquired = False
            try:
                await asyncio.wait_for(self._lock.acquire(), timeout=SHUTDOWN_GRACE_SECONDS)
                acquired = True
            except asyncio.TimeoutError:
                logger.warning("In-flight event did not finish within %.0fs", SHUTDOWN_GRACE_SECONDS)
            self._consumer.cancel()
            await asyncio.gather(self._consumer, return_exceptions=True)
            self._consumer = None
            if acquired:
                self._lock.release()

        await self._dispatcher.drain()
        await self._gateway.close()
        await self._pool.close()
        logger.info("Daemon stopped", extra={"context": self.snapshot()})

    def subscription_filter(self) -> dict[str, Any]:
        """REQ filter, rebuilt by the pool on every (re)subscribe."""
        since = int(self._clock() - self._settings.subscription_lookback_s)
        return {"kinds": list(SUBSCRIBED_KINDS), "#p": [self._public_key], "since": since}

    def replay_cutoff(self) -> float:
        """
        Oldest sent_at still processed.

        Messages from before startup are history. Messages older than the
        ledger TTL may already have been swept from the seen set, so a relay
        replaying them after a reconnect must not run them again. Both
        bounds allow stale_message_grace_s of sender clock skew.
        """
        grace = self._settings.stale_message_grace_s
        return max(
            self._state.stats.started_at - grace,
            self._clock() - self._settings.ledger_ttl_s + grace,
        )

    async def handle_event(self, event: InboundEvent) -> None:
        """Run one event through the pipeline."""
        async with self._lock:
            await self._process(event)

    async def housekeeping(self) -> dict[str, int]:
        """Sweep every time-bounded table once."""
        async with self._lock:
            swept = {
                "conversations_evicted": self._state.conversations.evict_idle(),
                "ledger_entries_swept": self._state.ledger.sweep(),
                "cooldowns_pruned": self._state.cooldowns.prune(),
                "relay_entries_pruned": self._state.relay_health.prune(),
            }
        logger.info("Housekeeping done", extra={"context": swept})
        return swept

    def snapshot(self) -> dict[str, Any]:
        stats = self._state.stats
        now = self._clock()
        return {
            "uptime": int(now - stats.started_at),
            "total_received": stats.total_received,
            "total_replied": stats.total_replied,
            "commands_executed": stats.commands_executed,
            "auto_replies_sent": stats.auto_replies_sent,
            "active_conversations": len(self._state.conversations),
            "tracked_event_ids": self._state.ledger.seen_count,
            "rate_limited_relays": sum(
                1 for _, entry in self._state.relay_health.items() if not entry.available(now)
            ),
            "decrypt_failures": stats.decrypt_failures,
            "publish_failures": stats.publish_failures,
            "blocked_senders": stats.blocked_senders,
        }

    async def _connect_relays(self) -> int:
        """Open every relay up front. Unreachable relays are retried by the subscription."""
        relays = list(self._settings.relays)
        results = await asyncio.gather(
            *(self._pool.ensure(url) for url in relays), return_exceptions=True
        )
        connected = 0
        for url, result in zip(relays, results):
            if isinstance(result, BaseException):
                logger.warning("Could not connect to %s: %s", url, result)
            else:
                connected += 1
        logger.info("Connected to %d/%d relays", connected, len(relays))
        return connected

    async def _consume(self) -> None:
        async for event in self._pool.subscribe(self.subscription_filter):
            try:
                await self.handle_event(event)
            except Exception as e:
                logger.exception("Error processing event %s: %s", event.id[:16], e)

    async def _process(self, event: InboundEvent) -> None:
        if event.sender_key == self._public_key:
            return
        if not self._state.ledger.is_new_event(event.id):
            logger.debug("Skipping already seen event %s", event.id[:16])
            return

        resolved = self._resolver.resolve(event, self._private_key)
        if isinstance(resolved, ResolutionFailure):
            self._state.stats.decrypt_failures += 1
            logger.warning(
                "Dropping undecryptable event %s: %s",
                event.id[:16], resolved.error.value,
            )
            return

        sender = resolved.effective_sender
        if sender == self._public_key:
            return
        if resolved.sent_at < self.replay_cutoff():
            logger.debug("Skipping message %s older than the replay cutoff", event.id[:16])
            return
        if not self._is_allowed(sender):
            self._state.stats.blocked_senders += 1
            logger.info("DM blocked from %s (not in allowlist)", sender[:16])
            return
        if resolved.scheme == Scheme.UNKNOWN:
            logger.info("Ignoring unsupported event %s: %s", event.id[:16], resolved.plaintext)
            return

        self._state.conversations.touch(sender)
        self._state.stats.total_received += 1
        logger.info(
            "DM received",
            extra={"context": {
                "event_id": event.id,
                "sender": sender,
                "scheme": resolved.scheme.value,
            }},
        )

        reply = await self._dispatcher.dispatch(resolved.plaintext, sender)
        is_command = reply is not None
        if reply is None:
            reply = await self._auto_reply(resolved)
        if reply is None:
            return

        await self._send(resolved, reply, is_command)

    async def _auto_reply(self, message: DecryptedMessage) -> str | None:
        text = message.plaintext.lower()
        if not any(trigger.lower() in text for trigger in self._settings.auto_reply_triggers):
            logger.debug("No trigger or command in %s", message.source_event.id[:16])
            return None

        if self._state.ledger.is_duplicate_reply(message.source_event.id):
            logger.info("Already replied to %s", message.source_event.id[:16])
            return None
        if not self._state.conversations.should_auto_reply(message.effective_sender):
            logger.info(
                "Skipping auto-reply, conversation with %s is active",
                message.effective_sender[:16],
            )
            return None

        probe = await self._gateway.probe()
        return f"{self._settings.auto_reply_message}\n\n{gateway_status_line(probe)}"

    async def _send(self, message: DecryptedMessage, text: str, is_command: bool) -> None:
        sender = message.effective_sender
        outbound = OutboundReply(
            recipient=sender,
            plaintext=text,
            scheme=reply_scheme(message.scheme),
            reply_to=message.source_event.id,
        )
        try:
            event = self._crypto.build_reply(outbound, self._private_key)
        except CryptoError as e:
            self._state.stats.publish_failures += 1
            logger.error("Could not build reply to %s: %s", sender[:16], e)
            return

        if not await self._publisher.publish(event, self._settings.relays):
            self._state.stats.publish_failures += 1
            logger.error("Reply to %s was not accepted by any relay", sender[:16])
            return

        stats = self._state.stats
        stats.total_replied += 1
        if is_command:
            stats.commands_executed += 1
        else:
            stats.auto_replies_sent += 1
            self._state.conversations.record_auto_reply(sender)
            self._state.ledger.mark_replied(message.source_event.id)
        logger.info("Reply sent to %s (%s)", sender[:16], outbound.scheme.value)

    def _is_allowed(self, sender: str) -> bool:
        if self._settings.dm_policy == "disabled":
            return False
        return self._settings.allows_anyone or sender in self._settings.allowed_senders

    async def _housekeeping_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self._settings.housekeeping_interval_s)
            try:
                await self.housekeeping()
            except Exception as e:
                logger.exception("Housekeeping failed: %s", e)

    async def _stats_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self._settings.stats_interval_s)
            logger.info("Stats", extra={"context": self.snapshot()})

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def state(self) -> DaemonState:
        return self._state

    @property
    def public_key(self) -> str:
        return self._public_key

    @property
    def running(self) -> bool:
        return self._running

    @property
    def dispatcher(self) -> CommandDispatcher:
        return self._dispatcher

"""Pytest configuration and fixtures."""

import asyncio
import json
import sys
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from patchin.config import Settings  # noqa: E402
from patchin.errors import CryptoError, RelayPublishError  # noqa: E402
from patchin.models import InboundEvent, Scheme  # noqa: E402

START = 1_700_000_000.0
ME = "a" * 64
ALICE = "b" * 64
BOB = "c" * 64
RELAYS = ("wss://relay.one", "wss://relay.two", "wss://relay.three")


class FakeClock:
    """Manually advanced wall clock in seconds."""

    def __init__(self, now: float = START):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeCrypto:
    """
    Readable stand-in for NostrCrypto.

    Ciphertexts are "<scheme>:<plaintext>"; gift wraps carry the inner
    event as JSON and anything else fails to unwrap.
    """

    def __init__(self):
        self.built: list = []

    def public_key(self, private_key: str) -> str:
        return private_key

    def encrypt(self, scheme: Scheme, private_key: str, recipient: str, plaintext: str) -> str:
        return f"{scheme.value}:{plaintext}"

    def decrypt(self, scheme: Scheme, private_key: str, sender: str, ciphertext: str) -> str:
        prefix = f"{scheme.value}:"
        if not ciphertext.startswith(prefix):
            raise CryptoError(f"not {scheme.value}")
        return ciphertext[len(prefix):]

    def unwrap(self, event: InboundEvent, private_key: str) -> InboundEvent:
        try:
            return InboundEvent.from_dict(json.loads(event.content))
        except (ValueError, KeyError, TypeError) as e:
            raise CryptoError("cannot unwrap") from e

    def build_reply(self, reply, private_key: str) -> dict:
        self.built.append(reply)
        return {
            "id": f"reply-{len(self.built)}",
            "pubkey": private_key,
            "kind": 1059 if reply.scheme == Scheme.WRAPPED else 4,
            "content": self.encrypt(reply.scheme, private_key, reply.recipient, reply.plaintext),
            "tags": [["p", reply.recipient]],
        }


class FakePool:
    """Relay pool that records publishes and fails on request."""

    def __init__(self):
        self.published: list[tuple[str, dict]] = []
        # url -> reasons consumed one per publish; None means accept
        self.failures: dict[str, list[str | None]] = {}
        self.always_fail: dict[str, str] = {}
        self.queue: asyncio.Queue = asyncio.Queue()
        self.filters: dict | None = None
        self.ensured: list[str] = []
        self.unreachable: set[str] = set()
        self.closed = False

    async def subscribe(self, build_filters):
        self.filters = build_filters()
        while True:
            event = await self.queue.get()
            if event is None:
                return
            yield event

    async def publish(self, relay_url: str, event: dict) -> None:
        self.published.append((relay_url, event))
        if relay_url in self.always_fail:
            raise RelayPublishError(relay_url, self.always_fail[relay_url])
        pending = self.failures.get(relay_url)
        if pending:
            reason = pending.pop(0)
            if reason is not None:
                raise RelayPublishError(relay_url, reason)

    async def ensure(self, relay_url: str) -> None:
        self.ensured.append(relay_url)
        if relay_url in self.unreachable:
            raise OSError(f"cannot reach {relay_url}")

    async def close(self) -> None:
        self.closed = True
        self.queue.put_nowait(None)

    def published_ids(self) -> list[str]:
        return list(dict.fromkeys(event["id"] for _, event in self.published))


def make_event(
    event_id: str = "evt1",
    sender: str = ALICE,
    kind: int = 4,
    content: str = "nip44:hello",
    created_at: int | None = None,
) -> InboundEvent:
    return InboundEvent(
        id=event_id,
        sender_key=sender,
        kind=kind,
        created_at=int(START) if created_at is None else created_at,
        content=content,
        tags=(("p", ME),),
    )


def make_wrap(
    event_id: str = "wrap1",
    inner_sender: str = BOB,
    inner_kind: int = 14,
    inner_content: str = "hello",
    created_at: int | None = None,
) -> InboundEvent:
    inner = {
        "id": f"{event_id}-rumor",
        "pubkey": inner_sender,
        "kind": inner_kind,
        "created_at": int(START) if created_at is None else created_at,
        "content": inner_content,
        "tags": [["p", ME]],
    }
    return make_event(
        event_id=event_id,
        sender="e" * 64,  # ephemeral wrapper key
        kind=1059,
        content=json.dumps(inner),
        created_at=int(START) - 3600,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeps(clock):
    """Records requested sleeps and advances the fake clock instead."""
    recorded: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        recorded.append(seconds)
        clock.advance(seconds)

    fake_sleep.calls = recorded
    return fake_sleep


@pytest.fixture
def fake_crypto():
    return FakeCrypto()


@pytest.fixture
def pool():
    return FakePool()


@pytest.fixture
def gateway():
    """Create mock gateway client."""
    gw = Mock()
    gw.status = AsyncMock(return_value="📊 Gateway Status:\nrunning")
    gw.current_task = AsyncMock(return_value="📋 Current Task Summary:\n\nnothing")
    gw.new_session = AsyncMock(return_value="✅ New session started!")
    gw.restart = AsyncMock(return_value="🔄 Gateway restart initiated!")
    gw.probe = AsyncMock(
        return_value={"online": True, "has_active_task": False, "agent_count": 0}
    )
    gw.close = AsyncMock()
    return gw


@pytest.fixture
def settings():
    return Settings(
        private_key=ME,
        relays=RELAYS,
        dm_policy="open",
        allowed_senders=("*",),
        jitter_ms=0,
    )

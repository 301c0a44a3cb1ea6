"""Relay pool: websocket connections shared by subscription and publishing."""

import asyncio
import json
import uuid
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Protocol

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..crypto import verify_event
from ..errors import RelayPublishError
from ..logging_config import get_logger
from ..models import InboundEvent

logger = get_logger(__name__)

# Called for every REQ, so a reconnect asks for a fresh "since"
FilterBuilder = Callable[[], dict[str, Any]]


class IRelayPool(Protocol):
    """Transport to a set of relays."""

    def subscribe(self, build_filters: FilterBuilder) -> AsyncIterator[InboundEvent]:
        """Merged stream of matching events from every relay."""
        ...

    async def publish(self, relay_url: str, event: dict[str, Any]) -> None:
        """Send event to one relay; raises RelayPublishError unless accepted."""
        ...

    async def ensure(self, relay_url: str) -> None:
        """Connect to a relay if not already connected."""
        ...

    async def close(self) -> None:
        """End the subscription and close every connection."""
        ...


@dataclass
class RelayConnection:
    url: str
    ws: Any
    pending: dict[str, asyncio.Future] = field(default_factory=dict)
    closed: asyncio.Event = field(default_factory=asyncio.Event)
    reader: asyncio.Task | None = None


class RelayPool:
    """One websocket per relay; reconnects while a subscription is open."""

    def __init__(
        self,
        relays: list[str] | tuple[str, ...],
        connect_timeout: float = 10.0,
        publish_timeout: float = 10.0,
        reconnect_delay: float = 1.0,
        max_reconnect_delay: float = 60.0,
    ):
        self._relays = list(relays)
        self._connect_timeout = connect_timeout
        self._publish_timeout = publish_timeout
        self._reconnect_delay = reconnect_delay
        self._max_reconnect_delay = max_reconnect_delay

        self._connections: dict[str, RelayConnection] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._queue: asyncio.Queue[InboundEvent | None] = asyncio.Queue()
        self._supervisors: list[asyncio.Task] = []
        self._sub_id = f"patchin-{uuid.uuid4().hex[:8]}"
        self._build_filters: FilterBuilder | None = None
        self._closing = False

    @property
    def relays(self) -> list[str]:
        return list(self._relays)

    async def ensure(self, relay_url: str) -> None:
        await self._connection(relay_url)

    async def subscribe(self, build_filters: FilterBuilder) -> AsyncIterator[InboundEvent]:
        self._build_filters = build_filters
        self._supervisors = [
            asyncio.create_task(self._supervise(url), name=f"relay:{url}")
            for url in self._relays
        ]
        try:
            while True:
                event = await self._queue.get()
                if event is None:
                    return
                yield event
        finally:
            for task in self._supervisors:
                task.cancel()

    async def publish(self, relay_url: str, event: dict[str, Any]) -> None:
        try:
            conn = await self._connection(relay_url)
        except (OSError, WebSocketException, asyncio.TimeoutError) as e:
            raise RelayPublishError(relay_url, f"connection failed: {e}") from e

        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        conn.pending[event["id"]] = future
        try:
            await conn.ws.send(json.dumps(["EVENT", event]))
            accepted, message = await asyncio.wait_for(future, timeout=self._publish_timeout)
        except asyncio.TimeoutError as e:
            raise RelayPublishError(relay_url, "timed out waiting for OK") from e
        except ConnectionClosed as e:
            raise RelayPublishError(relay_url, f"connection closed: {e}") from e
        finally:
            conn.pending.pop(event["id"], None)

        if not accepted:
            raise RelayPublishError(relay_url, message or "rejected")

    async def close(self) -> None:
        self._closing = True
        self._queue.put_nowait(None)
        for task in self._supervisors:
            task.cancel()
        for conn in list(self._connections.values()):
            await conn.ws.close()
            if conn.reader:
                conn.reader.cancel()
        self._connections.clear()

    async def _connection(self, url: str) -> RelayConnection:
        lock = self._locks.setdefault(url, asyncio.Lock())
        async with lock:
            conn = self._connections.get(url)
            if conn is not None and not conn.closed.is_set():
                return conn

            ws = await websockets.connect(url, open_timeout=self._connect_timeout)
            conn = RelayConnection(url=url, ws=ws)
            conn.reader = asyncio.create_task(self._read(conn), name=f"reader:{url}")
            self._connections[url] = conn
            return conn

    async def _supervise(self, url: str) -> None:
        delay = self._reconnect_delay
        while not self._closing:
            try:
                conn = await self._connection(url)
                await conn.ws.send(json.dumps(["REQ", self._sub_id, self._build_filters()]))
                delay = self._reconnect_delay
                await conn.closed.wait()
                logger.warning("Connection to %s closed", url)
            except (OSError, WebSocketException, asyncio.TimeoutError) as e:
                logger.warning("Relay %s unavailable: %s", url, e)

            if self._closing:
                break
            await asyncio.sleep(delay)
            delay = min(delay * 2, self._max_reconnect_delay)

    async def _read(self, conn: RelayConnection) -> None:
        try:
            async for raw in conn.ws:
                self._handle_message(conn, raw)
        except ConnectionClosed as e:
            logger.debug("Reader for %s stopped: %s", conn.url, e)
        finally:
            conn.closed.set()
            for future in conn.pending.values():
                if not future.done():
                    future.set_exception(RelayPublishError(conn.url, "connection closed"))
            if self._connections.get(conn.url) is conn:
                del self._connections[conn.url]

    def _handle_message(self, conn: RelayConnection, raw: str | bytes) -> None:
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            logger.debug("Unparseable frame from %s", conn.url)
            return
        if not isinstance(message, list) or not message:
            return

        kind = message[0]
        if kind == "EVENT" and len(message) >= 3 and isinstance(message[2], dict):
            if not verify_event(message[2]):
                logger.warning("Dropping event with bad signature from %s", conn.url)
                return
            try:
                self._queue.put_nowait(InboundEvent.from_dict(message[2]))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Malformed event from %s: %s", conn.url, e)
        elif kind == "OK" and len(message) >= 3:
            future = conn.pending.get(message[1])
            if future is not None and not future.done():
                future.set_result((bool(message[2]), message[3] if len(message) > 3 else ""))
        elif kind == "EOSE":
            logger.debug("%s: end of stored events", conn.url)
        elif kind == "CLOSED":
            logger.warning("%s closed subscription: %s", conn.url, message[2:] or "")
        elif kind == "NOTICE":
            logger.info("%s notice: %s", conn.url, message[1:] or "")
        else:
            logger.debug("%s sent unhandled %s", conn.url, kind)

"""Observability API routes."""

from fastapi import APIRouter
from pydantic import BaseModel

from ...app import Daemon


class HealthResponse(BaseModel):
    status: str
    running: bool
    public_key: str
    uptime: int


class StatsResponse(BaseModel):
    """Response model for the stats snapshot."""

    uptime: int
    total_received: int
    total_replied: int
    commands_executed: int
    auto_replies_sent: int
    active_conversations: int
    tracked_event_ids: int
    rate_limited_relays: int
    decrypt_failures: int
    publish_failures: int
    blocked_senders: int


class RelayHealthResponse(BaseModel):
    """Publish health of one configured relay."""

    url: str
    available: bool
    permanently_excluded: bool
    consecutive_failures: int
    backoff_until: float | None  # None when healthy or excluded for good


class ConversationResponse(BaseModel):
    sender: str
    phase: str
    message_count: int
    conversation_start: float | None
    last_reply_time: float | None
    last_seen: float | None


def create_observability_router(daemon: Daemon) -> APIRouter:
    """Create observability router."""
    router = APIRouter(prefix="/api", tags=["observability"])

    @router.get("/health", response_model=HealthResponse)
    async def get_health() -> dict:
        snapshot = daemon.snapshot()
        return {
            "status": "ok" if daemon.running else "stopped",
            "running": daemon.running,
            "public_key": daemon.public_key,
            "uptime": snapshot["uptime"],
        }

    @router.get("/stats", response_model=StatsResponse)
    async def get_stats() -> dict:
        return daemon.snapshot()

    @router.get("/relays", response_model=list[RelayHealthResponse])
    async def get_relays() -> list[dict]:
        """Every configured relay, healthy ones included."""
        health = daemon.state.relay_health
        relays = []
        for url in daemon.settings.relays:
            entry = health.get(url)
            if entry is None:
                relays.append({
                    "url": url,
                    "available": True,
                    "permanently_excluded": False,
                    "consecutive_failures": 0,
                    "backoff_until": None,
                })
                continue
            relays.append({
                "url": url,
                "available": health.is_available(url),
                "permanently_excluded": entry.permanently_excluded,
                "consecutive_failures": entry.consecutive_failures,
                "backoff_until": None if entry.permanently_excluded else entry.backoff_until,
            })
        return relays

    @router.get("/conversations", response_model=list[ConversationResponse])
    async def get_conversations() -> list[dict]:
        tracker = daemon.state.conversations
        return [
            {
                "sender": sender,
                "phase": tracker.phase(sender).value,
                "message_count": state.message_count,
                "conversation_start": state.conversation_start,
                "last_reply_time": state.last_reply_time,
                "last_seen": state.last_seen,
            }
            for sender, state in tracker.items()
        ]

    return router

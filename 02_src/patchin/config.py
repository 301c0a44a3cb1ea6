"""Project-level configuration: paths, defaults and Settings loading."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .errors import ConfigError

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
LOGS_DIR = PROJECT_ROOT / "logs"
DEFAULT_LOG_PATH = LOGS_DIR / "patchin.log"

OPENCLAW_CONFIG_PATHS = (
    Path.home() / ".openclaw" / "openclaw.json",
    Path("/usr/local/lib/node_modules/openclaw/openclaw.json"),
)

DEFAULT_RELAYS = (
    "wss://relay.damus.io",
    "wss://relay.primal.net",
    "wss://nos.lol",
    "wss://relay.0xchat.com",
    "wss://nostr.wine",
    "wss://inbox.nostr.wine",
    "wss://auth.nostr1.com",
)

DEFAULT_TRIGGERS = (
    "patch-in", "test", "hello", "hi", "howdy", "ping", "dm", "check", "verify",
)

DEFAULT_COMMAND_COOLDOWNS_MS = {
    "restart": 60_000,  # restart takes ~30s
    "status": 10_000,
    "task": 30_000,
    "new_session": 30_000,
}
DEFAULT_COOLDOWN_MS = 30_000

DM_POLICIES = ("allowlist", "open", "pairing", "disabled")
ALLOW_ANYONE = "*"


@dataclass(frozen=True)
class Settings:
    """Ready-to-use daemon configuration."""

    private_key: str  # 32-byte hex
    relays: tuple[str, ...] = DEFAULT_RELAYS
    dm_policy: str = "allowlist"
    allowed_senders: tuple[str, ...] = ()
    name: str = "OpenClaw"
    enabled: bool = True

    conversation_timeout_ms: int = 60 * 60 * 1000
    conversation_idle_eviction_ms: int = 24 * 60 * 60 * 1000
    command_cooldowns_ms: dict[str, int] = field(
        default_factory=lambda: dict(DEFAULT_COMMAND_COOLDOWNS_MS)
    )
    auto_reply_triggers: tuple[str, ...] = DEFAULT_TRIGGERS

    max_retries: int = 3
    base_backoff_ms: int = 2000
    max_backoff_ms: int = 30000
    jitter_ms: int = 1000
    penalty_window_ms: int = 30000
    publish_timeout_s: float = 10.0

    ledger_ttl_s: float = 24 * 60 * 60
    ledger_max_size: int = 10000
    housekeeping_interval_s: float = 30 * 60
    stats_interval_s: float = 60
    subscription_lookback_s: float = 2 * 24 * 60 * 60  # gift wraps backdate created_at
    stale_message_grace_s: float = 5 * 60

    gateway_url: str = "http://localhost:18789"
    gateway_command: str = "openclaw"

    api_host: str = "localhost"
    api_port: int = 8000

    @property
    def allows_anyone(self) -> bool:
        return ALLOW_ANYONE in self.allowed_senders

    @property
    def auto_reply_message(self) -> str:
        return (
            f"Auto-reply from {self.name}: I received your DM! This is an auto-reply "
            "confirming that Nostr patch-in feature is working."
        )


def normalize_relays(relays: list[str] | tuple[str, ...]) -> tuple[str, ...]:
    """Enforce a websocket scheme, strip trailing slashes, drop duplicates."""
    seen: dict[str, None] = {}
    for raw in relays:
        url = raw.strip()
        if not url:
            continue
        if "://" not in url:
            url = f"wss://{url}"
        scheme = url.split("://", 1)[0].lower()
        if scheme not in ("ws", "wss"):
            raise ConfigError(f"Relay URL must use ws:// or wss://: {raw}")
        url = f"{scheme}://{url.split('://', 1)[1].rstrip('/')}"
        seen.setdefault(url, None)
    if not seen:
        raise ConfigError("At least one relay URL is required")
    return tuple(seen)


def parse_cooldowns(value: str) -> dict[str, int]:
    """Parse `name=ms,name=ms` into a cooldown map layered over the defaults."""
    cooldowns = dict(DEFAULT_COMMAND_COOLDOWNS_MS)
    for item in value.split(","):
        if not item.strip():
            continue
        name, sep, ms = item.partition("=")
        if not sep:
            raise ConfigError(f"Invalid COMMAND_COOLDOWNS entry: {item!r}")
        try:
            cooldowns[name.strip()] = int(ms)
        except ValueError as e:
            raise ConfigError(f"Invalid cooldown for {name.strip()!r}: {ms!r}") from e
    return cooldowns


def _split_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e


def load_openclaw_channel(path: str | None = None) -> dict[str, Any]:
    """Return the `channels.entries.nost` section plus top-level `env`, if any."""
    candidates = [Path(path)] if path else list(OPENCLAW_CONFIG_PATHS)
    for candidate in candidates:
        if not candidate.exists():
            continue
        try:
            with candidate.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Could not read {candidate}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{candidate} must contain a JSON object")
        channel = data.get("channels", {}).get("entries", {}).get("nost", {}) or {}
        return {"channel": channel, "env": data.get("env", {}) or {}}
    if path:
        raise ConfigError(f"Config file not found: {path}")
    return {"channel": {}, "env": {}}


def load_settings() -> Settings:
    """
    Build Settings from openclaw.json and the environment.

    Fields set explicitly in the channel config win; environment variables
    fill in whatever the channel leaves out.
    """
    from .crypto.keys import decode_private_key, decode_public_key

    openclaw = load_openclaw_channel(os.getenv("OPENCLAW_CONFIG"))
    channel = openclaw["channel"]
    file_env = openclaw["env"]

    private_key = (
        channel.get("privateKey")
        or os.getenv("NOSTR_PRIVATE_KEY")
        or os.getenv("OPENCLAW_NOSTR_PRIVATE_KEY")
        or file_env.get("OPENCLAW_NOSTR_PRIVATE_KEY")
    )
    if not private_key:
        raise ConfigError(
            "No private key found. Set channels.nost.privateKey or NOSTR_PRIVATE_KEY"
        )
    private_key = decode_private_key(private_key)

    relays = channel.get("relays") or _split_list(os.getenv("NOSTR_RELAYS")) or DEFAULT_RELAYS

    dm_policy = channel.get("dmPolicy") or os.getenv("NOSTR_DM_POLICY") or "allowlist"
    if dm_policy not in DM_POLICIES:
        raise ConfigError(f"Unknown dmPolicy {dm_policy!r}, expected one of {DM_POLICIES}")

    allowed: list[str] = []
    if dm_policy in ("open", "pairing"):
        allowed = [ALLOW_ANYONE]
    elif dm_policy == "allowlist":
        raw_allowed = channel.get("allowFrom") or _split_list(os.getenv("NOSTR_ALLOWED_SENDERS"))
        allowed = [
            ALLOW_ANYONE if key == ALLOW_ANYONE else decode_public_key(key)
            for key in raw_allowed
        ]

    triggers = _split_list(os.getenv("AUTO_REPLY_TRIGGERS")) or list(DEFAULT_TRIGGERS)
    cooldowns = parse_cooldowns(os.getenv("COMMAND_COOLDOWNS", ""))

    return Settings(
        private_key=private_key,
        relays=normalize_relays(list(relays)),
        dm_policy=dm_policy,
        allowed_senders=tuple(allowed),
        name=channel.get("name") or os.getenv("NOSTR_BOT_NAME", "OpenClaw"),
        enabled=channel.get("enabled", True) is not False,
        conversation_timeout_ms=_env_int("CONVERSATION_TIMEOUT_MS", 60 * 60 * 1000),
        command_cooldowns_ms=cooldowns,
        auto_reply_triggers=tuple(triggers),
        max_retries=_env_int("PUBLISH_MAX_RETRIES", 3),
        base_backoff_ms=_env_int("PUBLISH_BASE_BACKOFF_MS", 2000),
        max_backoff_ms=_env_int("PUBLISH_MAX_BACKOFF_MS", 30000),
        jitter_ms=_env_int("PUBLISH_JITTER_MS", 1000),
        penalty_window_ms=_env_int("PUBLISH_PENALTY_WINDOW_MS", 30000),
        publish_timeout_s=_env_int("PUBLISH_TIMEOUT_S", 10),
        ledger_ttl_s=_env_int("LEDGER_TTL_S", 24 * 60 * 60),
        ledger_max_size=_env_int("LEDGER_MAX_SIZE", 10000),
        housekeeping_interval_s=_env_int("HOUSEKEEPING_INTERVAL_S", 30 * 60),
        stats_interval_s=_env_int("STATS_INTERVAL_S", 60),
        gateway_url=os.getenv("GATEWAY_URL", "http://localhost:18789").rstrip("/"),
        gateway_command=os.getenv("GATEWAY_COMMAND", "openclaw"),
        api_host=os.getenv("API_HOST", "localhost"),
        api_port=_env_int("API_PORT", 8000),
    )

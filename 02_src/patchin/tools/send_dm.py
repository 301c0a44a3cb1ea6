"""
One-shot encrypted DM sender.

Uses the daemon's identity and relays (see load_settings) and delivers
through the same PublishEngine, so a message counts as sent once any
relay accepts it.
"""

import argparse
import asyncio
from pathlib import Path
from typing import Awaitable, Callable

from dotenv import load_dotenv

from ..config import load_settings, normalize_relays
from ..crypto import ICrypto, NostrCrypto, decode_public_key, encode_public_key
from ..errors import ConfigError
from ..logging_config import get_logger, setup_logging
from ..models import OutboundReply, Scheme
from ..publish import PublishEngine, RelayHealthTable, RetryPolicy
from ..relay import IRelayPool, RelayPool

logger = get_logger(__name__)

DEFAULT_MESSAGE = "Hello from OpenClaw! This is a test DM sent with NIP-04 encryption."

SCHEMES = {
    "nip04": Scheme.NIP04,
    "nip44": Scheme.NIP44,
    "wrapped": Scheme.WRAPPED,
}


async def send_dm(
    private_key: str,
    recipient: str,
    message: str,
    relays: tuple[str, ...] | list[str],
    scheme: Scheme = Scheme.NIP04,
    pool: IRelayPool | None = None,
    crypto: ICrypto | None = None,
    policy: RetryPolicy | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> bool:
    """Encrypt, sign and publish one DM. True if at least one relay accepted it."""
    crypto = crypto or NostrCrypto()
    pool = pool or RelayPool(relays)
    recipient = decode_public_key(recipient)

    event = crypto.build_reply(
        OutboundReply(recipient=recipient, plaintext=message, scheme=scheme), private_key
    )
    logger.info(
        "Sending DM",
        extra={"context": {
            "event_id": event["id"],
            "to": encode_public_key(recipient),
            "scheme": scheme.value,
            "relays": list(relays),
        }},
    )

    health = RelayHealthTable()
    engine = PublishEngine(pool, health, policy, sleep=sleep)
    try:
        delivered = await engine.publish(event, relays)
    finally:
        await pool.close()

    for url, entry in health.items():
        state = "excluded" if entry.permanently_excluded else "backing off"
        logger.warning("%s: %s", url, state)
    if delivered:
        logger.info("DM %s delivered", event["id"][:16])
    else:
        logger.error("DM %s was not accepted by any relay", event["id"][:16])
    return delivered


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Send one encrypted Nostr DM as the daemon.")
    parser.add_argument("recipient", help="npub1... or hex public key")
    parser.add_argument("message", nargs="?", default=DEFAULT_MESSAGE)
    parser.add_argument(
        "--scheme", choices=sorted(SCHEMES), default="nip04",
        help="nip04 is read by the most clients (default)",
    )
    parser.add_argument("--relays", help="Comma-separated relay URLs (default: configured relays)")
    args = parser.parse_args(argv)

    load_dotenv(Path.cwd() / ".env")
    setup_logging(console_format="plain", to_file=False)

    try:
        settings = load_settings()
        relays = normalize_relays(args.relays.split(",")) if args.relays else settings.relays
        delivered = asyncio.run(
            send_dm(settings.private_key, args.recipient, args.message, relays, SCHEMES[args.scheme])
        )
    except ConfigError as e:
        logger.critical("Invalid configuration: %s", e)
        return 1
    return 0 if delivered else 1


if __name__ == "__main__":
    raise SystemExit(main())

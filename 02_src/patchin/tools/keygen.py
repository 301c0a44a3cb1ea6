"""Generate a Nostr identity for the daemon and print its openclaw.json entry."""

import argparse
import json
import os
from typing import Any

from ..crypto import encode_private_key, encode_public_key, generate_private_key, public_key_hex


def keypair(private_key: str) -> dict[str, str]:
    public_key = public_key_hex(private_key)
    return {
        "private_key": private_key,
        "nsec": encode_private_key(private_key),
        "public_key": public_key,
        "npub": encode_public_key(public_key),
    }


def channel_snippet(private_key: str, name: str) -> dict[str, Any]:
    """Fields to paste into channels.entries.nost in openclaw.json."""
    return {
        "privateKey": private_key,
        "profile": {"name": name, "displayName": name},
    }


def render(private_key: str, name: str) -> str:
    keys = keypair(private_key)
    return "\n".join([
        "=== New Nostr Key Pair ===",
        f"Private Key (hex): {keys['private_key']}",
        f"nsec: {keys['nsec']}",
        f"Public Key (hex): {keys['public_key']}",
        f"npub: {keys['npub']}",
        "",
        "Update openclaw.json with:",
        json.dumps(channel_snippet(private_key, name), indent=2, ensure_ascii=False),
    ])


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Generate a new Nostr key pair for the daemon.")
    parser.add_argument(
        "--name",
        default=os.getenv("NOSTR_BOT_NAME", "OpenClaw"),
        help="Profile name for the openclaw.json snippet (default: NOSTR_BOT_NAME or OpenClaw)",
    )
    args = parser.parse_args(argv)

    print(render(generate_private_key(), args.name))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

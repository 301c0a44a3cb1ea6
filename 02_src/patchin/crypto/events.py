"""NIP-01 event ids plus BIP-340 signing and verification."""

import hashlib
import json
import os
import time
from typing import Any

from coincurve import PrivateKey, PublicKeyXOnly

from ..errors import CryptoError
from .keys import public_key_hex


def serialize_for_id(
    pubkey: str, created_at: int, kind: int, tags: list[list[str]], content: str
) -> bytes:
    return json.dumps(
        [0, pubkey, created_at, kind, tags, content],
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")


def compute_event_id(event: dict[str, Any]) -> str:
    return hashlib.sha256(
        serialize_for_id(
            event["pubkey"],
            event["created_at"],
            event["kind"],
            [list(tag) for tag in event.get("tags", [])],
            event.get("content", ""),
        )
    ).hexdigest()


def build_unsigned(
    pubkey: str,
    kind: int,
    content: str,
    tags: list[list[str]] | None = None,
    created_at: int | None = None,
) -> dict[str, Any]:
    """An event with its id filled in but no signature (a NIP-59 rumor)."""
    event = {
        "pubkey": pubkey,
        "created_at": int(time.time()) if created_at is None else created_at,
        "kind": kind,
        "tags": tags or [],
        "content": content,
    }
    event["id"] = compute_event_id(event)
    return event


def sign_event(
    private_key_hex: str,
    kind: int,
    content: str,
    tags: list[list[str]] | None = None,
    created_at: int | None = None,
) -> dict[str, Any]:
    event = build_unsigned(public_key_hex(private_key_hex), kind, content, tags, created_at)
    signer = PrivateKey(bytes.fromhex(private_key_hex))
    event["sig"] = signer.sign_schnorr(bytes.fromhex(event["id"]), os.urandom(32)).hex()
    return event


def verify_event(event: dict[str, Any]) -> bool:
    """True when the id matches the content and the signature is valid."""
    try:
        if compute_event_id(event) != event["id"]:
            return False
        key = PublicKeyXOnly(bytes.fromhex(event["pubkey"]))
        return key.verify(bytes.fromhex(event["sig"]), bytes.fromhex(event["id"]))
    except (KeyError, TypeError, ValueError):
        return False


def require_valid(event: dict[str, Any]) -> None:
    if not verify_event(event):
        raise CryptoError(f"Invalid signature on event {str(event.get('id'))[:16]}")

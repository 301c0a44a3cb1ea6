"""Nostr cryptography module."""

from .events import compute_event_id, sign_event, verify_event
from .keys import (
    decode_private_key,
    decode_public_key,
    encode_private_key,
    encode_public_key,
    generate_private_key,
    public_key_hex,
)
from .provider import ICrypto, NostrCrypto

__all__ = [
    "ICrypto",
    "NostrCrypto",
    "compute_event_id",
    "sign_event",
    "verify_event",
    "decode_private_key",
    "decode_public_key",
    "encode_private_key",
    "encode_public_key",
    "generate_private_key",
    "public_key_hex",
]

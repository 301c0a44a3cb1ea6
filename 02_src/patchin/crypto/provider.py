"""Crypto capability backed by the Nostr NIP-04/44/59 primitives."""

import json
import random
import time
from typing import Any, Protocol

from ..errors import CryptoError
from ..models import (
    KIND_CHAT_MESSAGE,
    KIND_DIRECT_MESSAGE,
    KIND_GIFT_WRAP,
    KIND_SEAL,
    InboundEvent,
    OutboundReply,
    Scheme,
)
from . import nip04, nip44
from .events import build_unsigned, require_valid, sign_event
from .keys import generate_private_key, public_key_hex


TWO_DAYS = 2 * 24 * 60 * 60


class ICrypto(Protocol):
    """Encryption, decryption and envelope handling."""

    def encrypt(self, scheme: Scheme, private_key: str, recipient: str, plaintext: str) -> str:
        """Encrypt plaintext for recipient. Raises CryptoError."""
        ...

    def decrypt(self, scheme: Scheme, private_key: str, sender: str, ciphertext: str) -> str:
        """Decrypt ciphertext from sender. Raises CryptoError."""
        ...

    def unwrap(self, event: InboundEvent, private_key: str) -> InboundEvent:
        """Open a gift wrap and return the inner event. Raises CryptoError."""
        ...

    def build_reply(self, reply: OutboundReply, private_key: str) -> dict[str, Any]:
        """Encrypt and sign a reply into a publishable event."""
        ...

    def public_key(self, private_key: str) -> str:
        """x-only public key hex."""
        ...


class NostrCrypto:
    """ICrypto over NIP-04, NIP-44 v2 and NIP-59."""

    def encrypt(self, scheme: Scheme, private_key: str, recipient: str, plaintext: str) -> str:
        if scheme == Scheme.NIP44:
            return nip44.encrypt(private_key, recipient, plaintext)
        if scheme == Scheme.NIP04:
            return nip04.encrypt(private_key, recipient, plaintext)
        raise CryptoError(f"Scheme {scheme.value} is not a payload cipher")

    def decrypt(self, scheme: Scheme, private_key: str, sender: str, ciphertext: str) -> str:
        if scheme == Scheme.NIP44:
            return nip44.decrypt(private_key, sender, ciphertext)
        if scheme == Scheme.NIP04:
            return nip04.decrypt(private_key, sender, ciphertext)
        raise CryptoError(f"Scheme {scheme.value} is not a payload cipher")

    def unwrap(self, event: InboundEvent, private_key: str) -> InboundEvent:
        seal = self._open_json(private_key, event.sender_key, event.content, "gift wrap")
        if seal.get("kind") != KIND_SEAL:
            raise CryptoError(f"Gift wrap holds kind {seal.get('kind')}, expected seal")
        require_valid(seal)

        rumor = self._open_json(private_key, seal["pubkey"], seal.get("content", ""), "seal")
        if rumor.get("pubkey") != seal["pubkey"]:
            # Someone re-sealed another author's rumor
            raise CryptoError("Seal author does not match rumor author")

        try:
            return InboundEvent.from_dict({**rumor, "id": rumor.get("id") or event.id})
        except (KeyError, TypeError, ValueError) as e:
            raise CryptoError(f"Malformed rumor: {e}") from e

    def build_reply(self, reply: OutboundReply, private_key: str) -> dict[str, Any]:
        tags = [["p", reply.recipient]]
        if reply.reply_to:
            tags.append(["e", reply.reply_to])

        if reply.scheme == Scheme.WRAPPED:
            return self._gift_wrap(private_key, reply.recipient, reply.plaintext, tags)

        scheme = Scheme.NIP44 if reply.scheme == Scheme.NIP44 else Scheme.NIP04
        content = self.encrypt(scheme, private_key, reply.recipient, reply.plaintext)
        return sign_event(private_key, KIND_DIRECT_MESSAGE, content, tags)

    def public_key(self, private_key: str) -> str:
        return public_key_hex(private_key)

    def _open_json(self, private_key: str, sender: str, payload: str, label: str) -> dict[str, Any]:
        plaintext = nip44.decrypt(private_key, sender, payload)
        try:
            data = json.loads(plaintext)
        except json.JSONDecodeError as e:
            raise CryptoError(f"{label} payload is not JSON") from e
        if not isinstance(data, dict):
            raise CryptoError(f"{label} payload is not an event object")
        return data

    def _gift_wrap(
        self, private_key: str, recipient: str, plaintext: str, tags: list[list[str]]
    ) -> dict[str, Any]:
        now = int(time.time())
        rumor = build_unsigned(public_key_hex(private_key), KIND_CHAT_MESSAGE, plaintext, tags, now)
        seal = sign_event(
            private_key,
            KIND_SEAL,
            nip44.encrypt(private_key, recipient, json.dumps(rumor, ensure_ascii=False)),
            [],
            now - random.randint(0, TWO_DAYS),
        )
        ephemeral = generate_private_key()
        return sign_event(
            ephemeral,
            KIND_GIFT_WRAP,
            nip44.encrypt(ephemeral, recipient, json.dumps(seal, ensure_ascii=False)),
            [["p", recipient]],
            now - random.randint(0, TWO_DAYS),
        )

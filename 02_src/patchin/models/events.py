"""Event-related data models."""

from dataclasses import dataclass
from enum import Enum
from typing import Any

# Nostr event kinds
KIND_DIRECT_MESSAGE = 4
KIND_SEAL = 13
KIND_CHAT_MESSAGE = 14
KIND_GIFT_WRAP = 1059
KIND_GIFT_WRAP_EPHEMERAL = 1060

WRAPPER_KINDS = frozenset({KIND_GIFT_WRAP, KIND_GIFT_WRAP_EPHEMERAL})
SUBSCRIBED_KINDS = (KIND_DIRECT_MESSAGE, KIND_GIFT_WRAP, KIND_GIFT_WRAP_EPHEMERAL)


class Scheme(str, Enum):
    """Encryption scheme a message arrived under."""

    NIP44 = "nip44"  # preferred, authenticated
    NIP04 = "nip04"  # legacy
    WRAPPED = "wrapped"  # NIP-59 gift wrap
    UNKNOWN = "unknown"


class ResolutionError(str, Enum):
    """Why an inbound event could not be turned into plaintext."""

    ENVELOPE_UNWRAP_FAILED = "envelope_unwrap_failed"
    DECRYPTION_FAILED = "decryption_failed"


@dataclass(frozen=True)
class InboundEvent:
    """An event as delivered by a relay. Never mutated after receipt."""

    id: str
    sender_key: str
    kind: int
    created_at: int
    content: str
    tags: tuple = ()
    sig: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InboundEvent":
        """Build from a NIP-01 event object."""
        return cls(
            id=data["id"],
            sender_key=data["pubkey"],
            kind=int(data["kind"]),
            created_at=int(data["created_at"]),
            content=data.get("content", ""),
            tags=tuple(tuple(tag) for tag in data.get("tags", [])),
            sig=data.get("sig", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize back to a NIP-01 event object."""
        return {
            "id": self.id,
            "pubkey": self.sender_key,
            "kind": self.kind,
            "created_at": self.created_at,
            "content": self.content,
            "tags": [list(tag) for tag in self.tags],
            "sig": self.sig,
        }


@dataclass(frozen=True)
class DecryptedMessage:
    """Plaintext recovered from an inbound event."""

    source_event: InboundEvent
    plaintext: str
    scheme: Scheme
    effective_sender: str  # inner author for gift wraps
    sent_at: int = 0  # inner created_at; wrap timestamps are randomized


@dataclass(frozen=True)
class ResolutionFailure:
    """Resolver result when no scheme produced plaintext."""

    source_event: InboundEvent
    error: ResolutionError
    detail: str = ""


@dataclass
class OutboundReply:
    """A reply waiting to be encrypted, signed and published."""

    recipient: str
    plaintext: str
    scheme: Scheme
    reply_to: str | None = None

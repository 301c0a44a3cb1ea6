"""Core data models for the patch-in daemon."""

from .events import (
    KIND_CHAT_MESSAGE,
    KIND_DIRECT_MESSAGE,
    KIND_GIFT_WRAP,
    KIND_GIFT_WRAP_EPHEMERAL,
    KIND_SEAL,
    SUBSCRIBED_KINDS,
    WRAPPER_KINDS,
    DecryptedMessage,
    InboundEvent,
    OutboundReply,
    ResolutionError,
    ResolutionFailure,
    Scheme,
)
from .state import ConversationState, DaemonStats, RelayHealth

__all__ = [
    # Kinds
    "KIND_DIRECT_MESSAGE",
    "KIND_SEAL",
    "KIND_CHAT_MESSAGE",
    "KIND_GIFT_WRAP",
    "KIND_GIFT_WRAP_EPHEMERAL",
    "WRAPPER_KINDS",
    "SUBSCRIBED_KINDS",
    # Events
    "InboundEvent",
    "DecryptedMessage",
    "ResolutionFailure",
    "ResolutionError",
    "OutboundReply",
    "Scheme",
    # State
    "ConversationState",
    "RelayHealth",
    "DaemonStats",
]

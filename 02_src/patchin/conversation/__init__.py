"""Conversation and cooldown state module."""

from .cooldown import CooldownRegistry, CooldownScope, CooldownStatus, ICooldownRegistry
from .tracker import ConversationPhase, ConversationTracker, IConversationTracker

__all__ = [
    "ConversationPhase",
    "ConversationTracker",
    "IConversationTracker",
    "CooldownRegistry",
    "CooldownScope",
    "CooldownStatus",
    "ICooldownRegistry",
]

"""Heuristic classification of relay failure messages."""

from enum import Enum
from typing import Callable


class FailureKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    PERMANENT = "permanent"
    OTHER = "other"


FailureClassifier = Callable[[str], FailureKind]

# Relays report these in OK/NOTICE reasons; "noting" is a real relay typo
RATE_LIMIT_SIGNATURES = ("rate-limited", "rate limit", "noting too much")
PERMANENT_SIGNATURES = ("inbox", "blocked", "does not exist")


def classify_failure(reason: str) -> FailureKind:
    text = (reason or "").lower()
    if any(sig in text for sig in RATE_LIMIT_SIGNATURES):
        return FailureKind.RATE_LIMITED
    if any(sig in text for sig in PERMANENT_SIGNATURES):
        return FailureKind.PERMANENT
    return FailureKind.OTHER

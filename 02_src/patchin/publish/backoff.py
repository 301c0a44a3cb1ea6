"""Jittered exponential backoff."""

import random
from dataclasses import dataclass


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_ms: int = 2000
    cap_ms: int = 30000
    jitter_ms: int = 1000
    penalty_window_ms: int = 30000  # wait when every relay is backing off


def compute_backoff(
    attempt: int,
    base_ms: float,
    cap_ms: float,
    jitter_ms: float = 0,
    rng: random.Random | None = None,
) -> float:
    """min(base * 2^attempt, cap) +/- jitter, never negative. Milliseconds."""
    delay = min(base_ms * (2 ** attempt), cap_ms)
    if jitter_ms:
        delay += (rng or random).uniform(-jitter_ms, jitter_ms)
    return max(0.0, delay)

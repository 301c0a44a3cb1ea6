"""Tests for relay failure classification."""

import pytest

from patchin.publish import FailureKind, classify_failure


@pytest.mark.parametrize(
    "reason",
    [
        "rate-limited: slow down",
        "Rate limit exceeded",
        "you are noting too much",
    ],
)
def test_rate_limited(reason):
    assert classify_failure(reason) == FailureKind.RATE_LIMITED


@pytest.mark.parametrize(
    "reason",
    [
        "blocked: not on white-list",
        "restricted: this is an inbox relay",
        "pubkey does not exist",
    ],
)
def test_permanent(reason):
    assert classify_failure(reason) == FailureKind.PERMANENT


@pytest.mark.parametrize("reason", ["connection refused", "timed out waiting for OK", ""])
def test_other(reason):
    assert classify_failure(reason) == FailureKind.OTHER


def test_rate_limit_takes_precedence():
    assert classify_failure("blocked: rate-limited") == FailureKind.RATE_LIMITED

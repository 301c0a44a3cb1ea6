"""Publish module."""

from .backoff import RetryPolicy, compute_backoff
from .classifier import FailureClassifier, FailureKind, classify_failure
from .engine import IPublishEngine, IRelayPublisher, PublishEngine
from .health import RelayHealthTable

__all__ = [
    "RetryPolicy",
    "compute_backoff",
    "FailureClassifier",
    "FailureKind",
    "classify_failure",
    "IPublishEngine",
    "IRelayPublisher",
    "PublishEngine",
    "RelayHealthTable",
]

"""Relay transport module."""

from .pool import IRelayPool, RelayConnection, RelayPool

__all__ = ["IRelayPool", "RelayConnection", "RelayPool"]

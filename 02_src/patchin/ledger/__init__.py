"""Dedup ledger module."""

from .ledger import DedupLedger, IDedupLedger

__all__ = ["DedupLedger", "IDedupLedger"]

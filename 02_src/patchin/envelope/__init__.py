"""Envelope resolution module."""

from .resolver import EnvelopeResolver, IEnvelopeResolver

__all__ = ["EnvelopeResolver", "IEnvelopeResolver"]

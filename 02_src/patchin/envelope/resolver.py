"""CryptoEnvelope resolver: turn an inbound event into plaintext."""

from typing import Protocol

from ..crypto import ICrypto
from ..errors import CryptoError
from ..logging_config import get_logger
from ..models import (
    KIND_CHAT_MESSAGE,
    KIND_DIRECT_MESSAGE,
    WRAPPER_KINDS,
    DecryptedMessage,
    InboundEvent,
    ResolutionError,
    ResolutionFailure,
    Scheme,
)

logger = get_logger(__name__)

# Tried in order for direct-message payloads
PAYLOAD_SCHEMES = (Scheme.NIP44, Scheme.NIP04)


class IEnvelopeResolver(Protocol):
    """Multi-scheme decryption of inbound events."""

    def resolve(
        self, event: InboundEvent, identity_key: str
    ) -> DecryptedMessage | ResolutionFailure:
        """Return plaintext and scheme, or the reason no scheme matched."""
        ...


class EnvelopeResolver:
    """Unwraps gift wraps, then tries NIP-44 before falling back to NIP-04."""

    def __init__(self, crypto: ICrypto):
        self._crypto = crypto

    def resolve(
        self, event: InboundEvent, identity_key: str
    ) -> DecryptedMessage | ResolutionFailure:
        if event.kind in WRAPPER_KINDS:
            return self._resolve_wrapped(event, identity_key)

        if event.kind == KIND_DIRECT_MESSAGE:
            return self._decrypt_payload(event, event, identity_key)

        return DecryptedMessage(
            source_event=event,
            plaintext=f"[unknown format, kind {event.kind}]",
            scheme=Scheme.UNKNOWN,
            effective_sender=event.sender_key,
            sent_at=event.created_at,
        )

    def _resolve_wrapped(
        self, event: InboundEvent, identity_key: str
    ) -> DecryptedMessage | ResolutionFailure:
        try:
            inner = self._crypto.unwrap(event, identity_key)
        except CryptoError as e:
            logger.warning("Gift wrap %s could not be unwrapped: %s", event.id[:16], e)
            return ResolutionFailure(event, ResolutionError.ENVELOPE_UNWRAP_FAILED, str(e))

        if inner.kind == KIND_DIRECT_MESSAGE:
            resolved = self._decrypt_payload(event, inner, identity_key)
            if isinstance(resolved, ResolutionFailure):
                return resolved
            # The outer wrap decides how we answer
            return DecryptedMessage(
                source_event=event,
                plaintext=resolved.plaintext,
                scheme=Scheme.WRAPPED,
                effective_sender=inner.sender_key,
                sent_at=inner.created_at,
            )

        if inner.kind == KIND_CHAT_MESSAGE:
            plaintext = inner.content
        else:
            plaintext = inner.content or "[empty]"
            logger.info("Gift wrap %s carries kind %d", event.id[:16], inner.kind)

        return DecryptedMessage(
            source_event=event,
            plaintext=plaintext,
            scheme=Scheme.WRAPPED,
            effective_sender=inner.sender_key,
            sent_at=inner.created_at,
        )

    def _decrypt_payload(
        self, source: InboundEvent, payload_event: InboundEvent, identity_key: str
    ) -> DecryptedMessage | ResolutionFailure:
        errors = []
        for scheme in PAYLOAD_SCHEMES:
            try:
                plaintext = self._crypto.decrypt(
                    scheme, identity_key, payload_event.sender_key, payload_event.content
                )
            except CryptoError as e:
                errors.append(f"{scheme.value}: {e}")
                continue
            return DecryptedMessage(
                source_event=source,
                plaintext=plaintext,
                scheme=scheme,
                effective_sender=payload_event.sender_key,
                sent_at=payload_event.created_at,
            )

        detail = "; ".join(errors)
        logger.warning("All schemes failed for %s (%s)", source.id[:16], detail)
        return ResolutionFailure(source, ResolutionError.DECRYPTION_FAILED, detail)

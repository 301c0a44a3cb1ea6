"""Exception types shared across the daemon."""


class PatchinError(Exception):
    """Base class for daemon errors."""


class ConfigError(PatchinError):
    """Configuration or key material is unusable. Fatal at startup."""


class CryptoError(PatchinError):
    """Encryption, decryption, unwrapping or signature failure."""


class RelayPublishError(PatchinError):
    """A relay rejected or failed to acknowledge a published event."""

    def __init__(self, relay_url: str, reason: str):
        super().__init__(reason)
        self.relay_url = relay_url
        self.reason = reason


class GatewayError(PatchinError):
    """A gateway action failed. The message is shown to the user as-is."""

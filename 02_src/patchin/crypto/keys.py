"""secp256k1 key decoding, derivation and ECDH."""

import secrets

from bech32 import bech32_decode, bech32_encode, convertbits
from cryptography.hazmat.primitives.asymmetric import ec

from ..errors import ConfigError, CryptoError

# secp256k1 group order
CURVE_ORDER = int("FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141", 16)


def _decode_bech32(value: str, expected_hrp: str) -> str:
    hrp, data = bech32_decode(value)
    if hrp != expected_hrp or data is None:
        raise ConfigError(f"Invalid {expected_hrp} key")
    decoded = convertbits(data, 5, 8, False)
    if decoded is None or len(decoded) != 32:
        raise ConfigError(f"Invalid {expected_hrp} key length")
    return bytes(decoded).hex()


def _encode_bech32(key_hex: str, hrp: str) -> str:
    return bech32_encode(hrp, convertbits(bytes.fromhex(key_hex), 8, 5))


def _check_hex32(value: str, label: str) -> str:
    try:
        raw = bytes.fromhex(value)
    except ValueError as e:
        raise ConfigError(f"{label} is not valid hex") from e
    if len(raw) != 32:
        raise ConfigError(f"{label} must be 32 bytes, got {len(raw)}")
    return raw.hex()


def decode_private_key(value: str) -> str:
    """Accept nsec1... or 64-char hex, return lowercase hex."""
    value = value.strip()
    if value.startswith("nsec1"):
        key = _decode_bech32(value, "nsec")
    else:
        key = _check_hex32(value, "Private key")
    if not 0 < int(key, 16) < CURVE_ORDER:
        raise ConfigError("Private key is out of range for secp256k1")
    return key


def decode_public_key(value: str) -> str:
    """Accept npub1... or 64-char hex, return lowercase x-only hex."""
    value = value.strip()
    if value.startswith("npub1"):
        return _decode_bech32(value, "npub")
    return _check_hex32(value, "Public key")


def encode_public_key(public_key_hex: str) -> str:
    """x-only hex to npub1..."""
    return _encode_bech32(_check_hex32(public_key_hex, "Public key"), "npub")


def encode_private_key(private_key_hex: str) -> str:
    return _encode_bech32(_check_hex32(private_key_hex, "Private key"), "nsec")


def generate_private_key() -> str:
    while True:
        candidate = secrets.token_bytes(32)
        if 0 < int.from_bytes(candidate, "big") < CURVE_ORDER:
            return candidate.hex()


def _private_key(private_key_hex: str) -> ec.EllipticCurvePrivateKey:
    return ec.derive_private_key(int(private_key_hex, 16), ec.SECP256K1())


def _public_key(public_key_hex: str) -> ec.EllipticCurvePublicKey:
    # x-only keys always lift to the even-y point
    try:
        return ec.EllipticCurvePublicKey.from_encoded_point(
            ec.SECP256K1(), b"\x02" + bytes.fromhex(public_key_hex)
        )
    except ValueError as e:
        raise CryptoError(f"Invalid public key {public_key_hex[:16]}...") from e


def public_key_hex(private_key_hex: str) -> str:
    """x-only public key for a private key."""
    numbers = _private_key(private_key_hex).public_key().public_numbers()
    return numbers.x.to_bytes(32, "big").hex()


def shared_secret(private_key_hex: str, public_key_hex: str) -> bytes:
    """ECDH shared point x-coordinate, unhashed."""
    return _private_key(private_key_hex).exchange(ec.ECDH(), _public_key(public_key_hex))

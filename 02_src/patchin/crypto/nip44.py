"""NIP-44 v2 payload encryption (ChaCha20 + HMAC-SHA256)."""

import base64
import binascii
import os

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms
from cryptography.hazmat.primitives.kdf.hkdf import HKDFExpand

from ..errors import CryptoError
from .keys import shared_secret

VERSION = 2
SALT = b"nip44-v2"
MIN_PLAINTEXT = 1
MAX_PLAINTEXT = 65535


def conversation_key(private_key_hex: str, public_key_hex: str) -> bytes:
    # HKDF-extract(salt, ikm) is HMAC(salt, ikm)
    h = hmac.HMAC(SALT, hashes.SHA256())
    h.update(shared_secret(private_key_hex, public_key_hex))
    return h.finalize()


def _message_keys(conv_key: bytes, nonce: bytes) -> tuple[bytes, bytes, bytes]:
    keys = HKDFExpand(algorithm=hashes.SHA256(), length=76, info=nonce).derive(conv_key)
    return keys[0:32], keys[32:44], keys[44:76]


def calc_padded_len(unpadded_len: int) -> int:
    if unpadded_len <= 32:
        return 32
    next_power = 1 << (unpadded_len - 1).bit_length()
    chunk = 32 if next_power <= 256 else next_power // 8
    return chunk * ((unpadded_len - 1) // chunk + 1)


def _pad(plaintext: str) -> bytes:
    raw = plaintext.encode("utf-8")
    if not MIN_PLAINTEXT <= len(raw) <= MAX_PLAINTEXT:
        raise CryptoError(f"NIP-44 plaintext length {len(raw)} out of range")
    return len(raw).to_bytes(2, "big") + raw + bytes(calc_padded_len(len(raw)) - len(raw))


def _unpad(padded: bytes) -> str:
    length = int.from_bytes(padded[:2], "big")
    raw = padded[2:2 + length]
    if length == 0 or len(raw) != length or len(padded) != 2 + calc_padded_len(length):
        raise CryptoError("NIP-44 invalid padding")
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise CryptoError("NIP-44 plaintext is not utf-8") from e


def _chacha20(key: bytes, nonce: bytes, data: bytes) -> bytes:
    # cryptography takes a 16-byte nonce: 4-byte LE counter (0) + 12-byte nonce
    cipher = Cipher(algorithms.ChaCha20(key, b"\x00" * 4 + nonce), mode=None)
    encryptor = cipher.encryptor()
    return encryptor.update(data) + encryptor.finalize()


def _mac(hmac_key: bytes, nonce: bytes, ciphertext: bytes) -> hmac.HMAC:
    h = hmac.HMAC(hmac_key, hashes.SHA256())
    h.update(nonce + ciphertext)
    return h


def encrypt_with_key(conv_key: bytes, plaintext: str, nonce: bytes | None = None) -> str:
    nonce = nonce or os.urandom(32)
    chacha_key, chacha_nonce, hmac_key = _message_keys(conv_key, nonce)
    ciphertext = _chacha20(chacha_key, chacha_nonce, _pad(plaintext))
    mac = _mac(hmac_key, nonce, ciphertext).finalize()
    return base64.b64encode(bytes([VERSION]) + nonce + ciphertext + mac).decode("ascii")


def decrypt_with_key(conv_key: bytes, payload: str) -> str:
    if not payload or payload[0] == "#":
        raise CryptoError("NIP-44 unknown or unsupported version")
    if not 132 <= len(payload) <= 87472:
        raise CryptoError("NIP-44 invalid payload size")
    try:
        data = base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise CryptoError(f"NIP-44 payload is not base64: {e}") from e
    if not 99 <= len(data) <= 65603:
        raise CryptoError("NIP-44 invalid data size")
    if data[0] != VERSION:
        raise CryptoError(f"NIP-44 unknown version {data[0]}")

    nonce, ciphertext, mac = data[1:33], data[33:-32], data[-32:]
    chacha_key, chacha_nonce, hmac_key = _message_keys(conv_key, nonce)
    try:
        _mac(hmac_key, nonce, ciphertext).verify(mac)
    except InvalidSignature as e:
        raise CryptoError("NIP-44 invalid MAC") from e
    return _unpad(_chacha20(chacha_key, chacha_nonce, ciphertext))


def encrypt(private_key_hex: str, recipient_hex: str, plaintext: str) -> str:
    return encrypt_with_key(conversation_key(private_key_hex, recipient_hex), plaintext)


def decrypt(private_key_hex: str, sender_hex: str, payload: str) -> str:
    return decrypt_with_key(conversation_key(private_key_hex, sender_hex), payload)

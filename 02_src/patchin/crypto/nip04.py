"""NIP-04 legacy direct-message encryption (AES-256-CBC)."""

import base64
import binascii
import os

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from ..errors import CryptoError
from .keys import shared_secret


def encrypt(private_key_hex: str, recipient_hex: str, plaintext: str) -> str:
    key = shared_secret(private_key_hex, recipient_hex)
    iv = os.urandom(16)

    padder = padding.PKCS7(128).padder()
    padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()

    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()

    return (
        base64.b64encode(ciphertext).decode("ascii")
        + "?iv="
        + base64.b64encode(iv).decode("ascii")
    )


def decrypt(private_key_hex: str, sender_hex: str, payload: str) -> str:
    body, sep, iv_b64 = payload.partition("?iv=")
    if not sep:
        raise CryptoError("NIP-04 payload has no iv")
    try:
        ciphertext = base64.b64decode(body, validate=True)
        iv = base64.b64decode(iv_b64, validate=True)
    except binascii.Error as e:
        raise CryptoError(f"NIP-04 payload is not base64: {e}") from e
    if len(iv) != 16 or not ciphertext or len(ciphertext) % 16:
        raise CryptoError("NIP-04 payload has invalid lengths")

    key = shared_secret(private_key_hex, sender_hex)
    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()

    try:
        unpadder = padding.PKCS7(128).unpadder()
        raw = unpadder.update(padded) + unpadder.finalize()
        return raw.decode("utf-8")
    except (ValueError, UnicodeDecodeError) as e:
        raise CryptoError("NIP-04 decryption produced garbage") from e

"""
AES-256-GCM primitive used by every envelope in EnvVault.

- 256-bit key, 96-bit nonce, 128-bit tag appended to the ciphertext
- no associated data
- stateless: nonce uniqueness is the caller's job

Decryption fails closed. A wrong key, a flipped bit and a truncated blob all
raise the same :class:`AuthenticationFailure`, so callers cannot be used as
an oracle to tell them apart.
"""

import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..core.exceptions import AuthenticationFailure, MalformedInput
from .keys import KEY_SIZE, KeyLike, key_bytes

NONCE_SIZE = 12
TAG_SIZE = 16


def random_bytes(length: int) -> bytes:
    return secrets.token_bytes(length)


def generate_nonce() -> bytes:
    return random_bytes(NONCE_SIZE)


def generate_key() -> bytes:
    return random_bytes(KEY_SIZE)


def _aead(key: KeyLike, nonce: bytes) -> AESGCM:
    raw = key_bytes(key)
    if len(raw) != KEY_SIZE:
        raise MalformedInput(f"key must be {KEY_SIZE} bytes, got {len(raw)}")
    if not isinstance(nonce, (bytes, bytearray)) or len(nonce) != NONCE_SIZE:
        raise MalformedInput(f"nonce must be {NONCE_SIZE} bytes")
    return AESGCM(raw)


def encrypt(key: KeyLike, nonce: bytes, plaintext: bytes) -> bytes:
    """Return ``ciphertext || tag``; output is ``len(plaintext) + 16`` bytes."""
    aead = _aead(key, nonce)
    return aead.encrypt(bytes(nonce), bytes(plaintext), None)


def decrypt(key: KeyLike, nonce: bytes, data: bytes) -> bytes:
    """Verify and decrypt ``ciphertext || tag``; never returns partial plaintext."""
    aead = _aead(key, nonce)
    if len(data) < TAG_SIZE:
        raise AuthenticationFailure()
    try:
        return aead.decrypt(bytes(nonce), bytes(data), None)
    except InvalidTag:
        raise AuthenticationFailure() from None

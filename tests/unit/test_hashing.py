"""Unit tests for hashing functionality."""

import hashlib

from envvault.core import hashing


def test_calculate_sha256_bytes_basic() -> None:
    """Hashing bytes should match hashlib output."""
    data = b"hello world"
    assert hashing.calculate_sha256_bytes(data) == hashlib.sha256(data).hexdigest()


def test_calculate_sha256_bytes_empty() -> None:
    """Empty bytes should still produce a valid hash."""
    assert hashing.calculate_sha256_bytes(b"") == hashlib.sha256(b"").hexdigest()


def test_hash_key_name_is_sha256_of_utf8() -> None:
    assert hashing.hash_key_name("DATABASE_URL") == hashlib.sha256(b"DATABASE_URL").hexdigest()
    assert hashing.hash_key_name("clé") == hashlib.sha256("clé".encode("utf-8")).hexdigest()


def test_hash_key_name_is_deterministic_and_unsalted() -> None:
    """Identical names always collide; this is the documented index leak."""
    assert hashing.hash_key_name("API_KEY") == hashing.hash_key_name("API_KEY")
    assert hashing.hash_key_name("API_KEY") != hashing.hash_key_name("api_key")
    assert len(hashing.hash_key_name("x")) == 64

"""Unit tests for the AES-256-GCM primitive."""

import pytest

from envvault.core.exceptions import DECRYPT_FAILURE_MESSAGE, AuthenticationFailure, MalformedInput
from envvault.security import cipher
from envvault.security.keys import MasterKey


@pytest.fixture
def key():
    return cipher.generate_key()


@pytest.fixture
def nonce():
    return cipher.generate_nonce()


def test_generate_sizes():
    assert len(cipher.generate_nonce()) == 12
    assert len(cipher.generate_key()) == 32
    assert cipher.generate_nonce() != cipher.generate_nonce()


def test_encrypt_decrypt_roundtrip(key, nonce):
    msg = b"hello world"
    ct = cipher.encrypt(key, nonce, msg)
    # ciphertext is the same length as the plaintext plus a 16-byte tag
    assert len(ct) == len(msg) + 16
    assert cipher.decrypt(key, nonce, ct) == msg


def test_empty_plaintext(key, nonce):
    ct = cipher.encrypt(key, nonce, b"")
    assert len(ct) == 16
    assert cipher.decrypt(key, nonce, ct) == b""


def test_accepts_master_key_and_bytearray(key, nonce):
    ct = cipher.encrypt(MasterKey(key), nonce, b"data")
    assert cipher.decrypt(bytearray(key), nonce, ct) == b"data"


def test_every_single_bit_flip_fails(key, nonce):
    ct = cipher.encrypt(key, nonce, b"secret value")
    for i in range(len(ct) * 8):
        tampered = bytearray(ct)
        tampered[i // 8] ^= 1 << (i % 8)
        with pytest.raises(AuthenticationFailure):
            cipher.decrypt(key, nonce, bytes(tampered))


def test_wrong_key_fails(key, nonce):
    ct = cipher.encrypt(key, nonce, b"data")
    with pytest.raises(AuthenticationFailure):
        cipher.decrypt(cipher.generate_key(), nonce, ct)


def test_wrong_nonce_fails(key, nonce):
    ct = cipher.encrypt(key, nonce, b"data")
    with pytest.raises(AuthenticationFailure):
        cipher.decrypt(key, cipher.generate_nonce(), ct)


@pytest.mark.parametrize("cut", [1, 5, 16, 20])
def test_truncated_input_fails(key, nonce, cut):
    ct = cipher.encrypt(key, nonce, b"data")
    with pytest.raises(AuthenticationFailure):
        cipher.decrypt(key, nonce, ct[:-cut])


def test_failures_are_indistinguishable(key, nonce):
    ct = cipher.encrypt(key, nonce, b"data")
    messages = set()
    for attempt in (
        lambda: cipher.decrypt(cipher.generate_key(), nonce, ct),
        lambda: cipher.decrypt(key, nonce, ct[:3]),
        lambda: cipher.decrypt(key, nonce, ct[:-1] + bytes([ct[-1] ^ 1])),
    ):
        with pytest.raises(AuthenticationFailure) as exc:
            attempt()
        messages.add(str(exc.value))
        assert exc.value.__cause__ is None
    assert messages == {DECRYPT_FAILURE_MESSAGE}


@pytest.mark.parametrize("bad_key", [b"", b"\x00" * 16, b"\x00" * 33])
def test_bad_key_length(bad_key, nonce):
    with pytest.raises(MalformedInput):
        cipher.encrypt(bad_key, nonce, b"x")
    with pytest.raises(MalformedInput):
        cipher.decrypt(bad_key, nonce, b"\x00" * 32)


@pytest.mark.parametrize("bad_nonce", [b"", b"\x00" * 8, b"\x00" * 16])
def test_bad_nonce_length(key, bad_nonce):
    with pytest.raises(MalformedInput):
        cipher.encrypt(key, bad_nonce, b"x")
    with pytest.raises(MalformedInput):
        cipher.decrypt(key, bad_nonce, b"\x00" * 32)


def test_bad_key_type(nonce):
    with pytest.raises(MalformedInput):
        cipher.encrypt("not bytes", nonce, b"x")

"""Encrypt and decrypt individual secrets into storable records.

Each secret becomes a :class:`SecretRecord`: the key name and the value are
encrypted separately under the master key, each with its own random nonce,
and the key name is also hashed so a server can index records without
seeing names.

Records written by the historical scheme reused one nonce for both fields.
They still decrypt, and :func:`migrate_legacy` re-encrypts them under two
fresh nonces.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, TypeVar

from ..core.exceptions import AuthenticationFailure, MalformedInput
from ..core.hashing import hash_key_name
from ..core.models import DecryptedSecret, SecretRecord
from . import cipher
from .keys import KeyLike

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def _text(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        raise MalformedInput("decrypted field is not valid UTF-8") from None


def _map(fn: Callable[[T], R], items: Sequence[T], max_workers: Optional[int]) -> List[R]:
    # Executor.map yields results in submission order and re-raises the
    # first failure when it is reached
    if not max_workers or max_workers <= 1 or len(items) <= 1:
        return [fn(item) for item in items]
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        return list(pool.map(fn, items))


def encrypt_secret(
    master_key: KeyLike,
    key_name: str,
    value: str,
    version: int = 1,
    comment: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> SecretRecord:
    """
    Encrypt one secret.

    The key name and value get independent nonces; reusing a nonce under the
    same key for a second plaintext is never done here.
    """
    if not isinstance(key_name, str) or not isinstance(value, str):
        raise MalformedInput("key name and value must be strings")
    if not isinstance(version, int) or isinstance(version, bool) or version < 1:
        raise MalformedInput("version must be a positive integer")

    key_nonce = cipher.generate_nonce()
    value_nonce = cipher.generate_nonce()
    return SecretRecord(
        key_hash=hash_key_name(key_name),
        key_encrypted=cipher.encrypt(master_key, key_nonce, key_name.encode("utf-8")),
        value_encrypted=cipher.encrypt(master_key, value_nonce, value.encode("utf-8")),
        key_nonce=key_nonce,
        value_nonce=value_nonce,
        version=version,
        comment=comment,
        metadata=dict(metadata or {}),
    )


def decrypt_secret(master_key: KeyLike, record: SecretRecord) -> DecryptedSecret:
    """
    Decrypt both fields of ``record`` or raise; a half-decrypted secret is
    never returned.

    The recovered key name must also hash to ``record.key_hash``. A record
    whose index was swapped for another's is rejected as tampered.
    """
    key_name = _text(cipher.decrypt(master_key, record.key_nonce, record.key_encrypted))
    value = _text(cipher.decrypt(master_key, record.value_nonce, record.value_encrypted))
    if hash_key_name(key_name) != record.key_hash:
        raise AuthenticationFailure()
    return DecryptedSecret(key=key_name, value=value)


def update_secret(master_key: KeyLike, previous: SecretRecord, new_value: str) -> SecretRecord:
    """
    Supersede ``previous`` with a new version holding ``new_value``.

    ``previous`` is decrypted first, so a tampered or foreign record cannot
    be updated. Nonces and ciphertexts are always fresh, even when the value
    is unchanged; comment and metadata pass through.
    """
    current = decrypt_secret(master_key, previous)
    record = encrypt_secret(
        master_key,
        current.key,
        new_value,
        version=previous.version + 1,
        comment=previous.comment,
        metadata=previous.metadata,
    )
    logger.debug("updated secret %s to version %d", record.key_hash[:12], record.version)
    return record


def migrate_legacy(master_key: KeyLike, record: SecretRecord) -> SecretRecord:
    """Re-encrypt a one-nonce record under two fresh nonces as a new version."""
    if not record.is_legacy:
        return record
    current = decrypt_secret(master_key, record)
    migrated = encrypt_secret(
        master_key,
        current.key,
        current.value,
        version=record.version + 1,
        comment=record.comment,
        metadata=record.metadata,
    )
    logger.info("migrated legacy secret %s to version %d", migrated.key_hash[:12], migrated.version)
    return migrated


def encrypt_all(
    master_key: KeyLike,
    secrets: Mapping[str, str],
    max_workers: Optional[int] = None,
) -> List[SecretRecord]:
    """Encrypt every ``name -> value`` pair, preserving mapping order."""
    items = list(secrets.items())
    records = _map(lambda kv: encrypt_secret(master_key, kv[0], kv[1]), items, max_workers)
    logger.debug("encrypted %d secrets", len(records))
    return records


def decrypt_all(
    master_key: KeyLike,
    records: Iterable[SecretRecord],
    max_workers: Optional[int] = None,
) -> List[DecryptedSecret]:
    """Decrypt records in order; any failure fails the whole batch."""
    items = list(records)
    return _map(lambda r: decrypt_secret(master_key, r), items, max_workers)


def decrypt_to_mapping(
    master_key: KeyLike,
    records: Iterable[SecretRecord],
    max_workers: Optional[int] = None,
) -> Dict[str, str]:
    """Decrypt records into a ``name -> value`` dict; later names win."""
    result: Dict[str, str] = {}
    for secret in decrypt_all(master_key, records, max_workers=max_workers):
        result[secret.key] = secret.value
    return result


def latest_versions(records: Iterable[SecretRecord]) -> List[SecretRecord]:
    """Keep only the newest version per key hash, in order of first appearance."""
    newest: Dict[str, SecretRecord] = {}
    for record in records:
        seen = newest.get(record.key_hash)
        if seen is None or record.version > seen.version:
            newest[record.key_hash] = record
    return list(newest.values())


def find_by_key_name(records: Iterable[SecretRecord], key_name: str) -> Optional[SecretRecord]:
    """Return the newest record whose index matches ``key_name`` without decrypting."""
    wanted = hash_key_name(key_name)
    best: Optional[SecretRecord] = None
    for record in records:
        if record.key_hash == wanted and (best is None or record.version > best.version):
            best = record
    return best

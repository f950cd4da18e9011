"""One-secret share links whose key never reaches the server.

``create_share`` encrypts ``{"key": ..., "value": ...}`` under a fresh random
key and splits the result in two: a :class:`ShareEnvelope` that the server
may store, and a hex fragment meant to sit after ``#`` in the link. Browsers
do not send the fragment in HTTP requests, so the server only ever sees the
ciphertext.

Expiry is checked against the envelope's ``created_at`` before anything is
decrypted. Marking a one-time share as consumed is up to the store; callers
pass the flag back in through ``consumed``.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Optional, Tuple
from urllib.parse import urlsplit

from ..core.exceptions import Expired, MalformedInput
from ..core.models import DecryptedSecret, ExpiryPolicy, ShareEnvelope, as_utc
from . import cipher
from .keys import KEY_SIZE

logger = logging.getLogger(__name__)

SHARE_ID_BYTES = 16


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _fragment_key(fragment: str) -> bytes:
    if not isinstance(fragment, str):
        raise MalformedInput("share fragment must be a hex string")
    try:
        key = bytes.fromhex(fragment.strip().lstrip("#"))
    except ValueError:
        raise MalformedInput("share fragment is not valid hex") from None
    if len(key) != KEY_SIZE:
        raise MalformedInput(f"share fragment must encode {KEY_SIZE} bytes")
    return key


def create_share(
    key_name: str,
    value: str,
    expiry: "ExpiryPolicy | str" = ExpiryPolicy.ONCE,
    now: Optional[datetime] = None,
) -> Tuple[ShareEnvelope, str]:
    """
    Encrypt one secret for sharing.

    Returns ``(envelope, fragment)``. The fragment is the only copy of the
    share key; nothing here keeps it.
    """
    policy = ExpiryPolicy.parse(expiry)
    share_key = cipher.generate_key()
    nonce = cipher.generate_nonce()
    payload = json.dumps({"key": key_name, "value": value}, ensure_ascii=False).encode("utf-8")

    envelope = ShareEnvelope(
        share_id=cipher.random_bytes(SHARE_ID_BYTES).hex(),
        ciphertext=cipher.encrypt(share_key, nonce, payload),
        nonce=nonce,
        expiry_policy=policy,
        created_at=as_utc(now) if now else _utcnow(),
    )
    logger.debug("created share %s (%s)", envelope.share_id, policy.value)
    return envelope, share_key.hex()


def check_expiry(envelope: ShareEnvelope, now: Optional[datetime] = None, consumed: bool = False) -> None:
    """Raise :class:`Expired` if the envelope may no longer be resolved."""
    if envelope.expiry_policy is ExpiryPolicy.ONCE:
        if consumed:
            raise Expired(f"share {envelope.share_id} has already been viewed")
        return
    # naive datetimes are read as UTC
    now = as_utc(now) if now else _utcnow()
    if now >= envelope.expires_at:
        raise Expired(f"share {envelope.share_id} expired at {envelope.expires_at.isoformat()}")


def resolve_share(
    envelope: ShareEnvelope,
    fragment: str,
    now: Optional[datetime] = None,
    consumed: bool = False,
) -> DecryptedSecret:
    """Decrypt a share with the key carried in its link fragment."""
    check_expiry(envelope, now=now, consumed=consumed)
    key = _fragment_key(fragment)
    plaintext = cipher.decrypt(key, envelope.nonce, envelope.ciphertext)
    try:
        data = json.loads(plaintext.decode("utf-8"))
        return DecryptedSecret(key=data["key"], value=data["value"])
    except (UnicodeDecodeError, ValueError, KeyError, TypeError):
        raise MalformedInput("share payload is not a secret") from None


def build_share_link(base_url: str, envelope: ShareEnvelope, fragment: str) -> str:
    """``<base_url>/receive/<share_id>#<fragment>``"""
    return f"{base_url.rstrip('/')}/receive/{envelope.share_id}#{fragment}"


def parse_share_link(link: str) -> Tuple[str, str]:
    """Split a share link into ``(share_id, fragment)``."""
    parts = urlsplit(link)
    segments = [s for s in parts.path.split("/") if s]
    if len(segments) < 2 or segments[-2] != "receive" or not parts.fragment:
        raise MalformedInput("not a share link (expected .../receive/<id>#<key>)")
    return segments[-1], parts.fragment

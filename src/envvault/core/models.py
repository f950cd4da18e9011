"""
Data models for encrypted secrets and share envelopes
"""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional

from .exceptions import MalformedInput

NONCE_SIZE = 12

_HEX64 = re.compile(r"^[0-9a-f]{64}$")


def b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def b64decode(value: Any, name: str = "value") -> bytes:
    """Strict base64 decode; anything unparseable is MalformedInput."""
    if not isinstance(value, str):
        raise MalformedInput(f"{name} must be a base64 string")
    try:
        return base64.b64decode(value.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError):
        raise MalformedInput(f"{name} is not valid base64") from None


def as_utc(moment: datetime) -> datetime:
    """Treat a naive datetime as UTC; aware ones pass through unchanged."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def _timestamp(value: Any, name: str) -> datetime:
    if not isinstance(value, str):
        raise MalformedInput(f"{name} must be an ISO-8601 timestamp")
    # fromisoformat only accepts a trailing "Z" from Python 3.11 on
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    try:
        return as_utc(datetime.fromisoformat(value))
    except ValueError:
        raise MalformedInput(f"{name} must be an ISO-8601 timestamp") from None


def _nonce(value: Any, name: str) -> bytes:
    raw = b64decode(value, name)
    if len(raw) != NONCE_SIZE:
        raise MalformedInput(f"{name} must be {NONCE_SIZE} bytes, got {len(raw)}")
    return raw


class ExpiryPolicy(Enum):
    # How long a share link stays resolvable
    ONCE = "once"
    ONE_HOUR = "1h"
    ONE_DAY = "24h"
    ONE_WEEK = "7d"

    @property
    def duration(self) -> Optional[timedelta]:
        """Lifetime of a duration policy; None for one-time shares."""
        return _DURATIONS.get(self)

    @classmethod
    def parse(cls, value: "ExpiryPolicy | str") -> "ExpiryPolicy":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(p.value for p in cls)
            raise MalformedInput(f"unknown expiry policy {value!r} (expected one of {allowed})") from None


_DURATIONS = {
    ExpiryPolicy.ONE_HOUR: timedelta(hours=1),
    ExpiryPolicy.ONE_DAY: timedelta(hours=24),
    ExpiryPolicy.ONE_WEEK: timedelta(days=7),
}


@dataclass(frozen=True)
class SecretRecord:
    """
    One encrypted secret as stored and transported by the surrounding system.

    ``key_encrypted`` and ``value_encrypted`` are AES-GCM ciphertexts with the
    16-byte tag appended, each under its own nonce. A record loaded from the
    historical one-nonce shape has ``key_nonce == value_nonce`` and reports
    ``is_legacy``.
    """

    key_hash: str
    key_encrypted: bytes
    value_encrypted: bytes
    key_nonce: bytes
    value_nonce: bytes
    version: int = 1
    comment: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_legacy(self) -> bool:
        return self.key_nonce == self.value_nonce

    def to_dict(self) -> Dict[str, Any]:
        """
            Convert to the JSON-ready record shape
        """
        data: Dict[str, Any] = {
            "keyHash": self.key_hash,
            "keyEncrypted": b64encode(self.key_encrypted),
            "valueEncrypted": b64encode(self.value_encrypted),
            "keyNonce": b64encode(self.key_nonce),
            "valueNonce": b64encode(self.value_nonce),
            "version": self.version,
        }
        if self.comment is not None:
            data["comment"] = self.comment
        if self.metadata:
            data["metadata"] = dict(self.metadata)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SecretRecord":
        """
            Build a record from its JSON shape, accepting the legacy single ``nonce`` field
        """
        if not isinstance(data, dict):
            raise MalformedInput("secret record must be an object")
        try:
            key_hash = data["keyHash"]
            key_encrypted = b64decode(data["keyEncrypted"], "keyEncrypted")
            value_encrypted = b64decode(data["valueEncrypted"], "valueEncrypted")
            if "keyNonce" in data or "valueNonce" in data:
                key_nonce = _nonce(data["keyNonce"], "keyNonce")
                value_nonce = _nonce(data["valueNonce"], "valueNonce")
            else:
                key_nonce = value_nonce = _nonce(data["nonce"], "nonce")
        except KeyError as e:
            raise MalformedInput(f"secret record is missing field {e.args[0]!r}") from None

        if not isinstance(key_hash, str) or not _HEX64.match(key_hash):
            raise MalformedInput("keyHash must be 64 lowercase hex characters")

        version = data.get("version", 1)
        if not isinstance(version, int) or isinstance(version, bool) or version < 1:
            raise MalformedInput("version must be a positive integer")

        comment = data.get("comment")
        if comment is not None and not isinstance(comment, str):
            raise MalformedInput("comment must be a string")

        metadata = data.get("metadata") or {}
        if not isinstance(metadata, dict):
            raise MalformedInput("metadata must be an object")

        return cls(
            key_hash=key_hash,
            key_encrypted=key_encrypted,
            value_encrypted=value_encrypted,
            key_nonce=key_nonce,
            value_nonce=value_nonce,
            version=version,
            comment=comment,
            metadata=metadata,
        )

    def __repr__(self):
        return f"SecretRecord(key_hash={self.key_hash[:12]!r}..., version={self.version})"


@dataclass(frozen=True)
class DecryptedSecret:
    key: str
    value: str

    def __repr__(self):
        # keep values out of logs and tracebacks
        return f"DecryptedSecret(key={self.key!r}, value=[REDACTED])"


@dataclass(frozen=True)
class ShareEnvelope:
    """
    Server-side half of a share link: safe to store, useless without the fragment.
    """

    share_id: str
    ciphertext: bytes
    nonce: bytes
    expiry_policy: ExpiryPolicy
    created_at: datetime

    @property
    def expires_at(self) -> Optional[datetime]:
        duration = self.expiry_policy.duration
        if duration is None:
            return None
        return self.created_at + duration

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shareId": self.share_id,
            "ciphertext": b64encode(self.ciphertext),
            "nonce": b64encode(self.nonce),
            "expiryPolicy": self.expiry_policy.value,
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ShareEnvelope":
        if not isinstance(data, dict):
            raise MalformedInput("share envelope must be an object")
        try:
            share_id = data["shareId"]
            ciphertext = b64decode(data["ciphertext"], "ciphertext")
            nonce = _nonce(data["nonce"], "nonce")
            policy = ExpiryPolicy.parse(data["expiryPolicy"])
            created_raw = data["createdAt"]
        except KeyError as e:
            raise MalformedInput(f"share envelope is missing field {e.args[0]!r}") from None

        if not isinstance(share_id, str) or not share_id:
            raise MalformedInput("shareId must be a non-empty string")
        created_at = _timestamp(created_raw, "createdAt")

        return cls(
            share_id=share_id,
            ciphertext=ciphertext,
            nonce=nonce,
            expiry_policy=policy,
            created_at=created_at,
        )

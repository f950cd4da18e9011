"""Explicit session object holding an unlocked master key with auto-lock.

A VaultSession stores one in-memory :class:`MasterKey` and an expiry
timestamp. get_master_key() returns the key while the session is unlocked
and not expired; otherwise it raises SessionLocked. Use unlock_with_key() or
unlock_with_password() to populate the session and lock() (or leave a
``with`` block) to zero the key.

There is no module-level default session: whoever logs in owns the session
object and passes its key into the envelope functions.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Union

from ..core.exceptions import SessionLocked
from .kdf import DEFAULT_ITERATIONS, derive_master_key
from .keys import MasterKey

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300


class VaultSession:
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._master_key: Optional[MasterKey] = None
        self._expires_at: Optional[float] = None

    @property
    def is_unlocked(self) -> bool:
        return self._master_key is not None and not self._expired()

    def _expired(self) -> bool:
        return self._expires_at is not None and self._clock() > self._expires_at

    def unlock_with_key(self, master_key: Union[bytes, bytearray, MasterKey], ttl_seconds: Optional[float] = DEFAULT_TTL_SECONDS) -> None:
        """Unlock the session with an already-derived master key.

        Args:
            master_key: raw 32-byte key or a MasterKey (taken over by the session)
            ttl_seconds: time-to-live for the unlocked session; None never expires
        """
        if not isinstance(master_key, MasterKey):
            master_key = MasterKey(master_key)
        if master_key is not self._master_key:
            self.lock()
        self._master_key = master_key
        self._expires_at = None if ttl_seconds is None else self._clock() + float(ttl_seconds)

    def unlock_with_password(
        self,
        password: Union[bytes, str],
        salt: bytes,
        iterations: int = DEFAULT_ITERATIONS,
        ttl_seconds: Optional[float] = DEFAULT_TTL_SECONDS,
    ) -> None:
        """Derive the master key from a password and the user's stored salt."""
        key = derive_master_key(password, salt, iterations)
        self.unlock_with_key(MasterKey(key), ttl_seconds=ttl_seconds)
        logger.debug("session unlocked (iterations=%d)", iterations)

    def get_master_key(self) -> MasterKey:
        """Return the unlocked master key or raise if locked/expired."""
        if self._master_key is None:
            raise SessionLocked("session is locked")
        if self._expired():
            # auto-lock on expiry
            self.lock()
            raise SessionLocked("session expired and was locked")
        return self._master_key

    def extend(self, extra_seconds: float) -> None:
        """Extend session TTL by extra_seconds if unlocked.

        A session without a TTL stays that way; an expired one is locked.
        """
        self.get_master_key()
        if self._expires_at is None:
            return
        self._expires_at += float(extra_seconds)

    def lock(self) -> None:
        """Zero the master key and lock the session."""
        try:
            if self._master_key is not None:
                self._master_key.zero()
                logger.debug("session locked")
        finally:
            self._master_key = None
            self._expires_at = None

    def __enter__(self) -> "VaultSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.lock()

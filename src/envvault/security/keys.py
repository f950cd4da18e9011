"""In-memory holder for a derived master key.

The key lives in a bytearray so it can be overwritten when a session ends.
Python may still hold transient copies (for example the immutable ``bytes``
handed to the AES implementation), so zeroization is best-effort.
"""

from __future__ import annotations

from typing import Union

from ..core.exceptions import MalformedInput

KEY_SIZE = 32


class MasterKey:
    __slots__ = ("_buf",)

    def __init__(self, key_bytes: Union[bytes, bytearray]):
        if not isinstance(key_bytes, (bytes, bytearray)):
            raise MalformedInput("master key must be bytes")
        if len(key_bytes) != KEY_SIZE:
            raise MalformedInput(f"master key must be {KEY_SIZE} bytes, got {len(key_bytes)}")
        self._buf = bytearray(key_bytes)

    @property
    def zeroed(self) -> bool:
        return not any(self._buf)

    def __bytes__(self) -> bytes:
        return bytes(self._buf)

    def __len__(self) -> int:
        return len(self._buf)

    def __eq__(self, other):
        if not isinstance(other, MasterKey):
            return NotImplemented
        return self._buf == other._buf

    __hash__ = None

    def __repr__(self) -> str:
        return "MasterKey([REDACTED])"

    def zero(self) -> None:
        """Overwrite the key material in place."""
        for i in range(len(self._buf)):
            self._buf[i] = 0

    def __del__(self):
        if hasattr(self, "_buf"):
            self.zero()


KeyLike = Union[bytes, bytearray, MasterKey]


def key_bytes(key: KeyLike) -> bytes:
    """Return raw key bytes for any accepted key representation."""
    if isinstance(key, MasterKey):
        return bytes(key)
    if isinstance(key, (bytes, bytearray)):
        return bytes(key)
    raise MalformedInput("key must be bytes, bytearray or MasterKey")

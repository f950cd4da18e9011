""" Utility for hashing operations. """

import hashlib


def calculate_sha256_bytes(data: bytes) -> str:
    # Hex SHA-256 of a byte string.
    return hashlib.sha256(data).hexdigest()


def hash_key_name(key_name: str) -> str:
    """Return the index hash for a secret's key name.

    This is a pure function of the name: no salt or nonce is mixed in, so the
    server can look secrets up without learning their names. The flip side is
    that two secrets with the same name always share a hash, which reveals
    key-name equality to anyone holding the records.
    """
    return calculate_sha256_bytes(key_name.encode("utf-8"))

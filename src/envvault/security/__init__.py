"""Security helpers: key derivation, AEAD and secret envelopes for EnvVault.

This package provides:
- PBKDF2-HMAC-SHA256 master key derivation
- AES-256-GCM encryption with fail-closed decryption
- per-secret envelopes with a key-name index hash
- detached share links whose key travels in the URL fragment
- an explicit session object that owns the unlocked master key
"""

from .kdf import generate_salt, derive_master_key, kdf_params_to_dict, kdf_params_from_dict
from .cipher import encrypt, decrypt, generate_nonce, generate_key
from .envelope import (
    encrypt_secret,
    decrypt_secret,
    update_secret,
    migrate_legacy,
    encrypt_all,
    decrypt_all,
    decrypt_to_mapping,
    find_by_key_name,
    latest_versions,
)
from .share import create_share, resolve_share, build_share_link, parse_share_link
from .keys import MasterKey
from .session import VaultSession

__all__ = [
    "generate_salt",
    "derive_master_key",
    "kdf_params_to_dict",
    "kdf_params_from_dict",
    "encrypt",
    "decrypt",
    "generate_nonce",
    "generate_key",
    "encrypt_secret",
    "decrypt_secret",
    "update_secret",
    "migrate_legacy",
    "encrypt_all",
    "decrypt_all",
    "decrypt_to_mapping",
    "find_by_key_name",
    "latest_versions",
    "create_share",
    "resolve_share",
    "build_share_link",
    "parse_share_link",
    "MasterKey",
    "VaultSession",
]

import binascii
import secrets
from typing import Dict, Tuple

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..core.exceptions import MalformedInput, WeakParameter

ALGORITHM = "pbkdf2-sha256"
SALT_LENGTH = 16
KEY_LENGTH = 32
MIN_ITERATIONS = 100_000
DEFAULT_ITERATIONS = 100_000


def generate_salt() -> bytes:
    """Return a fresh per-user salt. Never reuse one across users."""
    return secrets.token_bytes(SALT_LENGTH)


def check_iterations(iterations) -> int:
    if not isinstance(iterations, int) or isinstance(iterations, bool):
        raise WeakParameter("iteration count must be an integer")
    if iterations < MIN_ITERATIONS:
        raise WeakParameter(
            f"iteration count {iterations} is below the minimum of {MIN_ITERATIONS}"
        )
    return iterations


def derive_master_key(
    password,
    salt: bytes,
    iterations: int = DEFAULT_ITERATIONS,
) -> bytes:
    """
    Derive a 256-bit master key from a password using PBKDF2-HMAC-SHA256.
    Deterministic for identical inputs. Empty passwords are accepted here;
    rejecting them is the caller's policy.
    Returns raw derived key bytes.
    """
    if isinstance(password, str):
        password = password.encode("utf-8")
    if not isinstance(password, (bytes, bytearray)):
        raise MalformedInput("password must be str or bytes")
    if not isinstance(salt, (bytes, bytearray)) or len(salt) != SALT_LENGTH:
        raise MalformedInput(f"salt must be {SALT_LENGTH} bytes")
    check_iterations(iterations)

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=bytes(salt),
        iterations=iterations,
    )
    return kdf.derive(bytes(password))


def kdf_params_to_dict(salt: bytes, iterations: int) -> Dict:
    return {
        "algo": ALGORITHM,
        "salt": salt.hex(),
        "iterations": iterations,
    }


def kdf_params_from_dict(data: Dict) -> Tuple[bytes, int]:
    """Read back (salt, iterations) stored by :func:`kdf_params_to_dict`."""
    if not isinstance(data, dict):
        raise MalformedInput("KDF parameters must be an object")
    algo = data.get("algo", ALGORITHM)
    if algo != ALGORITHM:
        raise MalformedInput(f"unsupported KDF algorithm {algo!r}")
    try:
        salt = bytes.fromhex(data["salt"])
        iterations = data["iterations"]
    except KeyError as e:
        raise MalformedInput(f"KDF parameters missing {e.args[0]!r}") from None
    except (TypeError, ValueError, binascii.Error):
        raise MalformedInput("KDF salt must be hex") from None
    if len(salt) != SALT_LENGTH:
        raise MalformedInput(f"salt must be {SALT_LENGTH} bytes")
    return salt, check_iterations(iterations)

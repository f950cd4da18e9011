"""
Exceptions for the EnvVault core
This is placed such that there is a general error catcher
"""

# Shown to users for any AuthenticationFailure; never a traceback.
DECRYPT_FAILURE_MESSAGE = "could not decrypt — wrong password or tampered data"


class EnvVaultError(Exception):
    # general container for errors
    pass


class AuthenticationFailure(EnvVaultError):
    # raised on a tag mismatch, wrong key or truncated ciphertext; the causes
    # are deliberately indistinguishable
    def __init__(self, message: str = DECRYPT_FAILURE_MESSAGE):
        super().__init__(message)


class MalformedInput(EnvVaultError):
    # raised for wrong-length keys/nonces/salts, invalid base64 or hex
    pass


class Expired(EnvVaultError):
    # raised when a share link's expiry policy has been violated
    pass


class WeakParameter(EnvVaultError):
    # raised when a KDF iteration count is below the enforced floor
    pass


class SessionLocked(EnvVaultError):
    # raised when the session holds no master key (locked or expired)
    pass

"""Small helper to build the EnvVault runtime context for the CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional
import getpass
import logging
import os

from envvault.core.exceptions import MalformedInput
from envvault.security.kdf import DEFAULT_ITERATIONS, check_iterations
from envvault.security.session import DEFAULT_TTL_SECONDS, VaultSession

DEFAULT_SHARE_URL = "https://envvault.dev"


@dataclass
class AppContext:
    """Container for runtime objects the commands need."""

    session: VaultSession
    iterations: int = DEFAULT_ITERATIONS
    share_url: str = DEFAULT_SHARE_URL
    session_ttl: float = DEFAULT_TTL_SECONDS
    log_level: int = logging.WARNING
    master_password: Optional[str] = field(default=None, repr=False)
    prompt: Callable[[str], str] = field(default=getpass.getpass, repr=False)

    def read_password(self, confirm: bool = False) -> str:
        """Return the master password from the environment or an interactive prompt."""
        if self.master_password is not None:
            return self.master_password
        password = self.prompt("Master password: ")
        if confirm and self.prompt("Repeat master password: ") != password:
            raise MalformedInput("passwords do not match")
        return password


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise MalformedInput(f"{name} must be an integer, got {raw!r}") from None


def _level_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if not raw:
        return default
    level = logging.getLevelName(raw.upper())
    if not isinstance(level, int):
        raise MalformedInput(f"{name} must be a logging level name, got {raw!r}")
    return level


def build_context(env: Optional[Mapping[str, str]] = None) -> AppContext:
    """
    Read configuration from the environment and create a fresh, locked session.

    Recognised variables:

    - ``ENVVAULT_MASTER_PASSWORD``: skip the interactive password prompt
      (meant for CI; the value is never logged).
    - ``ENVVAULT_ITERATIONS``: PBKDF2 iterations for newly sealed bundles.
      Values below the enforced floor are rejected.
    - ``ENVVAULT_SHARE_URL``: base URL used when building share links.
    - ``ENVVAULT_SESSION_TTL``: seconds before the unlocked key auto-locks.
    - ``ENVVAULT_LOG_LEVEL``: logging level name, ``WARNING`` by default.
    """
    env = os.environ if env is None else env

    iterations = check_iterations(_int_env(env, "ENVVAULT_ITERATIONS", DEFAULT_ITERATIONS))
    ttl = _int_env(env, "ENVVAULT_SESSION_TTL", DEFAULT_TTL_SECONDS)

    return AppContext(
        session=VaultSession(),
        iterations=iterations,
        share_url=env.get("ENVVAULT_SHARE_URL") or DEFAULT_SHARE_URL,
        session_ttl=ttl,
        log_level=_level_env(env, "ENVVAULT_LOG_LEVEL", logging.WARNING),
        master_password=env.get("ENVVAULT_MASTER_PASSWORD"),
    )

"""EnvVault: zero-knowledge encryption core for key/value secrets."""

__version__ = "0.1.0"

"""Frontends for EnvVault."""

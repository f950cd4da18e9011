"""Core package of EnvVault: errors, records and the .env codec."""

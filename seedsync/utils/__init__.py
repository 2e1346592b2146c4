"""Shared utilities: correlation ids, logging setup and Vault access."""

"""Vault exception hierarchy."""

from __future__ import annotations


class VaultError(Exception):
    """Base class for all vault errors."""


class InitializationError(VaultError):
    """The vault directory or master key could not be set up."""


class KeyCorruptionError(InitializationError):
    """A master key file exists but does not hold a valid 32-byte key.

    Never recovered automatically: regenerating the key would orphan every
    stored secret.
    """


class NotInitializedError(VaultError):
    """A vault operation was called before init()."""


class PersistenceError(VaultError):
    """The durable store could not be written."""


class AuthenticationFailure(VaultError):
    """AEAD tag verification failed (wrong key or tampered payload)."""

"""
Hostvault Vault — per-host envelope-encrypted credential store.

Public API:
    vault = SecretVault(home, host_id)
    vault.init()                              → load or generate the host key
    vault.create(name, value, scope, actor)   → SecretMetadata
    vault.read(name, actor)                   → plaintext or None
    vault.rotate(name, actor)                 → SecretMetadata or None
    vault.delete(name, actor)                 → bool
    vault.export(actor)                       → ExportBundle (still wrapped)
    vault.import_bundle(bundle, source_hmk)   → count imported
"""

from __future__ import annotations

from hostvault.vault.crypto import KeyBuffer
from hostvault.vault.errors import (
    AuthenticationFailure,
    InitializationError,
    KeyCorruptionError,
    NotInitializedError,
    PersistenceError,
    VaultError,
)
from hostvault.vault.keys import read_master_key_file
from hostvault.vault.models import (
    AuditAction,
    AuditEntry,
    EncryptedPayload,
    EncryptedSecret,
    ExportBundle,
    Scope,
    SecretMetadata,
)
from hostvault.vault.service import ReadOutcome, ReadStatus, SecretVault

__all__ = [
    "AuditAction",
    "AuditEntry",
    "AuthenticationFailure",
    "EncryptedPayload",
    "EncryptedSecret",
    "ExportBundle",
    "InitializationError",
    "KeyBuffer",
    "KeyCorruptionError",
    "NotInitializedError",
    "PersistenceError",
    "ReadOutcome",
    "ReadStatus",
    "Scope",
    "SecretMetadata",
    "SecretVault",
    "VaultError",
    "read_master_key_file",
]

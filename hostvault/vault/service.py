"""
SecretVault — envelope-encrypted credential store for one host.

Each secret is encrypted under its own random DEK; the DEK is wrapped under
the Host Master Key (HMK) and only the wrapped form is stored. Unwrapped DEKs
live in KeyBuffers for the duration of one operation.

Write path:  DEK encrypt -> HMK wrap -> store.put() -> audit
Read path:   store.get() -> HMK unwrap -> DEK decrypt -> audit

Crypto failures and missing names never raise out of read/rotate/import; they
come back as ReadOutcome / None plus a failed audit entry. Store write
failures (PersistenceError) always propagate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from pydantic import ValidationError

from hostvault.config import VaultConfig
from hostvault.vault.audit import AUDIT_FILENAME, AuditLog
from hostvault.vault.crypto import KEY_SIZE, KeyBuffer, decrypt, encrypt
from hostvault.vault.errors import (
    AuthenticationFailure,
    KeyCorruptionError,
    NotInitializedError,
    PersistenceError,
)
from hostvault.vault.keys import KEY_FILENAME, load_or_create_master_key
from hostvault.vault.models import (
    BUNDLE_VERSION,
    AuditAction,
    AuditEntry,
    BundleEnvelope,
    EncryptedPayload,
    EncryptedSecret,
    ExportBundle,
    Metadata,
    Scope,
    SecretMetadata,
    utcnow,
)
from hostvault.vault.store import STORE_FILENAME, SecretStore

logger = logging.getLogger(__name__)

SECRETS_SUBDIR = "secrets"
DEFAULT_ACTOR = "system"


class ReadStatus(StrEnum):
    OK = "ok"
    NOT_FOUND = "not_found"
    CRYPTO_FAILURE = "crypto_failure"


@dataclass(frozen=True)
class ReadOutcome:
    """Result of recovering a secret's plaintext."""

    status: ReadStatus
    value: str | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is ReadStatus.OK

    def __repr__(self) -> str:
        # never show the plaintext
        return f"ReadOutcome(status={self.status.value!r}, reason={self.reason!r})"


class SecretVault:
    """Per-host vault rooted at <home>/secrets.

    Construct explicitly and call init() once; pass the instance to whatever
    needs secrets. Also usable as a context manager, which wipes the master
    key on exit.
    """

    def __init__(self, home: Path | str, host_id: str = "unknown") -> None:
        self.secrets_dir = Path(home) / SECRETS_SUBDIR
        self.key_path = self.secrets_dir / KEY_FILENAME
        self.host_id = host_id
        self._hmk: KeyBuffer | None = None
        self._store = SecretStore(self.secrets_dir / STORE_FILENAME)
        self._audit = AuditLog(self.secrets_dir / AUDIT_FILENAME, host_id)

    @classmethod
    def from_config(cls, cfg: VaultConfig) -> SecretVault:
        """Build an uninitialized vault from a hostvault.config.VaultConfig."""
        return cls(cfg.home, host_id=cfg.host_id)

    def __enter__(self) -> SecretVault:
        if not self.is_initialized():
            self.init()
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ── Lifecycle ──────────────────────────────────────────────────

    def init(self) -> None:
        """Load or generate the HMK and load stored records.

        Raises:
            InitializationError / KeyCorruptionError: fatal, surface to the operator.
            PersistenceError: the store file cannot be read or moved aside.
        """
        if self._hmk is not None:
            return
        hmk = load_or_create_master_key(self.secrets_dir)
        try:
            self._store.load()
        except PersistenceError:
            hmk.wipe()
            raise
        self._hmk = hmk
        logger.info("Vault initialized for host %s (%d secrets)", self.host_id, len(self._store))

    def close(self) -> None:
        """Wipe the master key and return to the uninitialized state."""
        if self._hmk is not None:
            self._hmk.wipe()
            self._hmk = None

    def is_initialized(self) -> bool:
        return self._hmk is not None

    def _require_hmk(self) -> bytearray:
        if self._hmk is None:
            raise NotInitializedError("Vault not initialized; call init() first")
        return self._hmk.raw

    # ── Envelope helpers ───────────────────────────────────────────

    def _seal(
        self, plaintext: bytes, hmk: bytearray
    ) -> tuple[EncryptedPayload, EncryptedPayload]:
        """Encrypt plaintext under a fresh DEK; return (encrypted_value, wrapped_dek)."""
        with KeyBuffer.generate() as dek:
            encrypted_value = encrypt(dek, plaintext)
            # the raw 32 DEK bytes are wrapped, not a base64 rendering of them
            wrapped_dek = encrypt(hmk, dek)
        return encrypted_value, wrapped_dek

    @staticmethod
    def _unwrap(wrapping_key: bytes | bytearray, record: EncryptedSecret) -> KeyBuffer:
        dek = KeyBuffer(decrypt(wrapping_key, record.wrapped_dek))
        if len(dek) != KEY_SIZE:
            dek.wipe()
            raise AuthenticationFailure(f"unwrapped DEK has invalid length {len(dek)}")
        return dek

    def _recover(self, record: EncryptedSecret, hmk: bytearray) -> bytes:
        with self._unwrap(hmk, record) as dek:
            return decrypt(dek, record.encrypted_value)

    # ── Verbs ──────────────────────────────────────────────────────

    def create(
        self,
        name: str,
        plaintext: str,
        scope: Scope | str = Scope.HOST,
        actor: str = DEFAULT_ACTOR,
        metadata: Metadata | None = None,
    ) -> SecretMetadata:
        """Encrypt and store a secret. Updating an existing name keeps its created_at."""
        hmk = self._require_hmk()
        if not name:
            raise ValueError("Secret name cannot be empty")

        encrypted_value, wrapped_dek = self._seal(plaintext.encode("utf-8"), hmk)
        now = utcnow()
        existing = self._store.get(name)
        record = EncryptedSecret(
            name=name,
            scope=Scope(scope),
            encrypted_value=encrypted_value,
            wrapped_dek=wrapped_dek,
            created_at=existing.created_at if existing else now,
            rotated_at=now,
            metadata=metadata,
        )
        self._store.put(record)
        self._audit.record(
            name,
            AuditAction.CREATE,
            actor=actor,
            success=True,
            metadata={"updated": existing is not None},
        )
        logger.debug("Vault create: name=%s scope=%s", name, record.scope)
        return record.to_metadata()

    def read_outcome(self, name: str, actor: str = DEFAULT_ACTOR) -> ReadOutcome:
        """Decrypt a secret and report how it went."""
        hmk = self._require_hmk()
        record = self._store.get(name)
        if record is None:
            self._audit.record(
                name, AuditAction.READ, actor=actor, success=False,
                metadata={"reason": ReadStatus.NOT_FOUND.value},
            )
            return ReadOutcome(ReadStatus.NOT_FOUND)

        try:
            value = self._recover(record, hmk).decode("utf-8")
        except (AuthenticationFailure, UnicodeDecodeError) as e:
            reason = str(e)
            logger.warning("Vault read failed for %s: %s", name, reason)
            self._audit.record(
                name, AuditAction.READ, actor=actor, success=False,
                metadata={"reason": reason},
            )
            return ReadOutcome(ReadStatus.CRYPTO_FAILURE, reason=reason)

        self._audit.record(name, AuditAction.READ, actor=actor, success=True)
        return ReadOutcome(ReadStatus.OK, value=value)

    def read(self, name: str, actor: str = DEFAULT_ACTOR) -> str | None:
        """Return the plaintext, or None if missing or undecryptable."""
        return self.read_outcome(name, actor).value

    def list(self) -> list[SecretMetadata]:
        self._require_hmk()
        return [record.to_metadata() for record in self._store]

    def delete(self, name: str, actor: str = DEFAULT_ACTOR) -> bool:
        self._require_hmk()
        removed = self._store.remove(name)
        if removed:
            self._audit.record(name, AuditAction.DELETE, actor=actor, success=True)
        return removed

    def rotate(self, name: str, actor: str = DEFAULT_ACTOR) -> SecretMetadata | None:
        """Re-encrypt a secret under a brand-new DEK.

        On any failure recovering the current value the record is untouched
        and None is returned.
        """
        hmk = self._require_hmk()
        record = self._store.get(name)
        if record is None:
            self._audit.record(
                name, AuditAction.ROTATE, actor=actor, success=False,
                metadata={"reason": ReadStatus.NOT_FOUND.value},
            )
            return None

        try:
            plaintext = self._recover(record, hmk)
        except AuthenticationFailure as e:
            logger.warning("Vault rotate failed for %s: %s", name, e)
            self._audit.record(
                name, AuditAction.ROTATE, actor=actor, success=False,
                metadata={"reason": str(e)},
            )
            return None

        encrypted_value, wrapped_dek = self._seal(plaintext, hmk)
        rotated = record.model_copy(
            update={
                "encrypted_value": encrypted_value,
                "wrapped_dek": wrapped_dek,
                "rotated_at": utcnow(),
            }
        )
        self._store.put(rotated)
        self._audit.record(name, AuditAction.ROTATE, actor=actor, success=True)
        return rotated.to_metadata()

    def export(self, actor: str = DEFAULT_ACTOR) -> ExportBundle:
        """Every record verbatim, still wrapped under this host's HMK."""
        self._require_hmk()
        secrets = [record.model_copy(deep=True) for record in self._store]
        self._audit.record(
            "*", AuditAction.EXPORT, actor=actor, success=True,
            metadata={"count": len(secrets)},
        )
        return ExportBundle(host_id=self.host_id, secrets=secrets)

    def import_bundle(
        self,
        bundle: ExportBundle | dict,
        source_hmk: bytes | bytearray | KeyBuffer,
        actor: str = DEFAULT_ACTOR,
    ) -> int:
        """Re-wrap another host's secrets under this host's HMK.

        The source HMK must reach this host out of band. Secrets that are
        malformed, or whose DEK does not unwrap under it, are logged and
        skipped. Returns the number imported.
        """
        hmk = self._require_hmk()
        if not isinstance(bundle, ExportBundle):
            bundle = BundleEnvelope.model_validate(bundle)
        if bundle.version.split(".")[0] != BUNDLE_VERSION.split(".")[0]:
            raise ValueError(f"Unsupported export bundle version {bundle.version!r}")
        source_key = source_hmk.raw if isinstance(source_hmk, KeyBuffer) else source_hmk
        if len(source_key) != KEY_SIZE:
            raise KeyCorruptionError(
                f"Source master key must be {KEY_SIZE} bytes, got {len(source_key)}"
            )

        imported: list[EncryptedSecret] = []
        now = utcnow()
        for i, raw in enumerate(bundle.secrets):
            try:
                secret = (
                    raw if isinstance(raw, EncryptedSecret)
                    else EncryptedSecret.model_validate(raw)
                )
            except ValidationError as e:
                logger.error("Skipping malformed bundle entry #%d: %s", i, e.error_count())
                continue
            try:
                with self._unwrap(source_key, secret) as dek:
                    rewrapped = encrypt(hmk, dek)
            except AuthenticationFailure as e:
                logger.error("Failed to import secret %s: %s", secret.name, e)
                continue
            imported.append(
                secret.model_copy(update={"wrapped_dek": rewrapped, "rotated_at": now})
            )

        if imported:
            self._store.put_many(imported)
        self._audit.record(
            "*", AuditAction.IMPORT, actor=actor, success=True,
            metadata={"count": len(imported), "source_host": bundle.host_id},
        )
        logger.info(
            "Imported %d/%d secret(s) from host %s",
            len(imported), len(bundle.secrets), bundle.host_id,
        )
        return len(imported)

    # ── Introspection ──────────────────────────────────────────────

    def get_audit_log(
        self,
        limit: int = 100,
        *,
        secret_name: str | None = None,
        action: AuditAction | str | None = None,
    ) -> list[AuditEntry]:
        self._require_hmk()
        return self._audit.read_recent(limit, secret_name=secret_name, action=action)

    def get_stats(self) -> dict:
        return {
            "initialized": self.is_initialized(),
            "secret_count": len(self._store),
            "host_id": self.host_id,
        }

"""Vault data models.

Binary fields are held as ``bytes`` in memory and serialized as base64
strings when dumped with ``mode="json"``.
"""

from __future__ import annotations

import base64
import binascii
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    JsonValue,
    field_serializer,
    field_validator,
)

NONCE_SIZE = 12  # 96-bit GCM nonce
TAG_SIZE = 16  # 128-bit GCM tag

BUNDLE_VERSION = "1.0.0"

Metadata = dict[str, JsonValue]


def utcnow() -> datetime:
    return datetime.now(UTC)


class Scope(StrEnum):
    HOST = "host"
    PROJECT = "project"
    AGENT = "agent"


class AuditAction(StrEnum):
    CREATE = "create"
    READ = "read"
    ROTATE = "rotate"
    DELETE = "delete"
    EXPORT = "export"
    IMPORT = "import"


class EncryptedPayload(BaseModel):
    """Output of a single AES-256-GCM encryption."""

    ciphertext: bytes
    nonce: bytes
    tag: bytes

    @field_validator("ciphertext", "nonce", "tag", mode="before")
    @classmethod
    def _decode_base64(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                return base64.b64decode(value, validate=True)
            except binascii.Error as e:
                raise ValueError(f"invalid base64: {e}") from e
        return value

    @field_validator("nonce")
    @classmethod
    def _check_nonce(cls, value: bytes) -> bytes:
        if len(value) != NONCE_SIZE:
            raise ValueError(f"nonce must be {NONCE_SIZE} bytes, got {len(value)}")
        return value

    @field_validator("tag")
    @classmethod
    def _check_tag(cls, value: bytes) -> bytes:
        if len(value) != TAG_SIZE:
            raise ValueError(f"tag must be {TAG_SIZE} bytes, got {len(value)}")
        return value

    @field_serializer("ciphertext", "nonce", "tag", when_used="json")
    def _encode_base64(self, value: bytes) -> str:
        return base64.b64encode(value).decode("ascii")


class SecretMetadata(BaseModel):
    """Public view of a secret. Never carries ciphertext or key material."""

    name: str
    scope: Scope
    created_at: datetime
    rotated_at: datetime
    metadata: Metadata | None = None


class EncryptedSecret(BaseModel):
    """The persisted unit: one secret, its ciphertext and its wrapped DEK."""

    name: str
    scope: Scope = Scope.HOST
    encrypted_value: EncryptedPayload
    wrapped_dek: EncryptedPayload
    created_at: datetime
    rotated_at: datetime
    metadata: Metadata | None = None

    def to_metadata(self) -> SecretMetadata:
        return SecretMetadata(
            name=self.name,
            scope=self.scope,
            created_at=self.created_at,
            rotated_at=self.rotated_at,
            metadata=dict(self.metadata) if self.metadata is not None else None,
        )


class AuditEntry(BaseModel):
    """One line of the append-only audit log."""

    model_config = ConfigDict(populate_by_name=True)

    timestamp: datetime = Field(default_factory=utcnow)
    secret_name: str = Field(alias="secretName")
    action: AuditAction
    actor: str
    host_id: str = Field(alias="hostId")
    success: bool
    metadata: Metadata | None = None


class ExportBundle(BaseModel):
    """Every record of a vault, still wrapped under the exporting host's key."""

    version: str = BUNDLE_VERSION
    exported_at: datetime = Field(default_factory=utcnow)
    host_id: str
    secrets: list[EncryptedSecret] = Field(default_factory=list)


class BundleEnvelope(BaseModel):
    """Outer fields of an ExportBundle read off the wire.

    Secrets stay raw so each one can be validated, and rejected, on its own.
    """

    version: str = BUNDLE_VERSION
    host_id: str
    secrets: list[Any] = Field(default_factory=list)

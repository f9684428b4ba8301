"""
Vault Audit Log — append-only JSONL record of every vault operation.

One AuditEntry per line in <secrets_dir>/audit.jsonl.

Usage:
    from hostvault.vault.audit import AuditLog
    log = AuditLog(path, host_id="web-1")
    log.record("api_key", AuditAction.READ, actor="ops", success=True)
    log.read_recent(50, secret_name="api_key")

Write failures are logged and swallowed: losing an audit line must never
block a credential operation.
"""

from __future__ import annotations

import logging
from collections import deque
from pathlib import Path

from pydantic import ValidationError

from hostvault.vault.models import AuditAction, AuditEntry, Metadata

logger = logging.getLogger(__name__)

AUDIT_FILENAME = "audit.jsonl"


class AuditLog:
    def __init__(self, path: Path | str, host_id: str) -> None:
        self.path = Path(path)
        self.host_id = host_id

    def record(
        self,
        secret_name: str,
        action: AuditAction,
        *,
        actor: str,
        success: bool,
        metadata: Metadata | None = None,
    ) -> AuditEntry | None:
        """Append one entry. Returns it on success, None on failure."""
        try:
            entry = AuditEntry(
                secret_name=secret_name,
                action=action,
                actor=actor,
                host_id=self.host_id,
                success=success,
                metadata=metadata,
            )
            line = entry.model_dump_json(by_alias=True)
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")
            return entry
        except (OSError, ValueError) as e:
            logger.warning("Audit record failed for %s/%s: %s", secret_name, action, e)
            return None

    def read_recent(
        self,
        limit: int = 100,
        *,
        secret_name: str | None = None,
        action: AuditAction | str | None = None,
    ) -> list[AuditEntry]:
        """Return the last `limit` matching entries, oldest first.

        A missing or unreadable log yields an empty list; malformed lines are
        skipped.
        """
        if limit <= 0 or not self.path.exists():
            return []
        recent: deque[AuditEntry] = deque(maxlen=limit)
        try:
            with self.path.open(encoding="utf-8") as fh:
                for line in fh:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entry = AuditEntry.model_validate_json(line)
                    except ValidationError:
                        logger.debug("Skipping malformed audit line in %s", self.path)
                        continue
                    if secret_name is not None and entry.secret_name != secret_name:
                        continue
                    if action is not None and entry.action != action:
                        continue
                    recent.append(entry)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Audit read failed for %s: %s", self.path, e)
            return []
        return list(recent)

"""
Secret record store — in-memory map mirrored to vault.json.

Every mutation rewrites the whole file: the new content goes to a temp file
in the same directory, is fsynced, then os.replace()d over the target so a
crash never leaves a truncated store. A failed write rolls the in-memory map
back and raises PersistenceError.
"""

from __future__ import annotations

import json
import logging
import os
import stat
import tempfile
from collections.abc import Iterable, Iterator
from pathlib import Path

from pydantic import ValidationError

from hostvault.vault.errors import PersistenceError
from hostvault.vault.models import BUNDLE_VERSION, EncryptedSecret, utcnow

logger = logging.getLogger(__name__)

STORE_FILENAME = "vault.json"


class SecretStore:
    """Name-keyed collection of EncryptedSecret records backed by one JSON file."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._records: dict[str, EncryptedSecret] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, name: object) -> bool:
        return name in self._records

    def __iter__(self) -> Iterator[EncryptedSecret]:
        return iter(list(self._records.values()))

    def get(self, name: str) -> EncryptedSecret | None:
        return self._records.get(name)

    def load(self) -> int:
        """Replace the in-memory map with the file's records.

        A missing file is an empty vault. Individual malformed entries are
        logged and skipped. A file that is not a store document at all is
        renamed to ``<name>.corrupt-<timestamp>`` so the next persist cannot
        overwrite it.

        Raises:
            PersistenceError: the file cannot be read or moved aside.
        """
        self._records = {}
        if not self.path.exists():
            return 0
        try:
            raw_bytes = self.path.read_bytes()
        except OSError as e:
            raise PersistenceError(f"Failed to read vault store {self.path}: {e}") from e
        try:
            data = json.loads(raw_bytes)
        except ValueError as e:
            logger.error("Failed to parse vault store %s: %s", self.path, e)
            self._set_aside()
            return 0

        entries = data.get("secrets") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            logger.error("Vault store %s has no secrets list", self.path)
            self._set_aside()
            return 0

        for i, raw in enumerate(entries):
            try:
                record = EncryptedSecret.model_validate(raw)
            except ValidationError as e:
                logger.warning("Skipping malformed vault entry #%d: %s", i, e.error_count())
                continue
            self._records[record.name] = record
        logger.info("Loaded %d encrypted secret(s) from %s", len(self._records), self.path)
        return len(self._records)

    def _set_aside(self) -> Path:
        """Move an unreadable store file out of the way, keeping its bytes."""
        stamp = utcnow().strftime("%Y%m%dT%H%M%S%fZ")
        target = self.path.with_name(f"{self.path.name}.corrupt-{stamp}")
        try:
            os.replace(self.path, target)
        except OSError as e:
            raise PersistenceError(
                f"Cannot move unreadable vault store {self.path} aside: {e}"
            ) from e
        logger.warning("Moved unreadable vault store to %s", target)
        return target

    def persist(self) -> None:
        """Atomically rewrite the store file with the current map."""
        document = {
            "version": BUNDLE_VERSION,
            "updated_at": utcnow().isoformat(),
            "secrets": [r.model_dump(mode="json") for r in self._records.values()],
        }
        payload = json.dumps(document, indent=2)
        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.chmod(tmp_name, stat.S_IRUSR | stat.S_IWUSR)  # 600
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except FileNotFoundError:
                    pass
            raise PersistenceError(f"Failed to write vault store {self.path}: {e}") from e

    def put(self, record: EncryptedSecret) -> None:
        """Insert or replace one record and persist."""
        previous = self._records.get(record.name)
        self._records[record.name] = record
        try:
            self.persist()
        except PersistenceError:
            if previous is None:
                del self._records[record.name]
            else:
                self._records[record.name] = previous
            raise

    def put_many(self, records: Iterable[EncryptedSecret]) -> None:
        """Insert or replace several records with a single persist."""
        snapshot = dict(self._records)
        for record in records:
            self._records[record.name] = record
        try:
            self.persist()
        except PersistenceError:
            self._records = snapshot
            raise

    def remove(self, name: str) -> bool:
        """Drop a record and persist. Returns False if it was absent."""
        previous = self._records.pop(name, None)
        if previous is None:
            return False
        try:
            self.persist()
        except PersistenceError:
            self._records[name] = previous
            raise
        return True

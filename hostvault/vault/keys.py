"""
Host Master Key lifecycle.

One 32-byte random key per host, stored base64-encoded at
<secrets_dir>/host.key (chmod 600) inside a chmod 700 directory.
A key file of any other length is a fatal corruption signal and is never
regenerated over.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
import secrets
import stat
import tempfile
from pathlib import Path

from hostvault.vault.crypto import KEY_SIZE, KeyBuffer
from hostvault.vault.errors import InitializationError, KeyCorruptionError

logger = logging.getLogger(__name__)

KEY_FILENAME = "host.key"


def ensure_vault_dir(vault_dir: Path | str) -> Path:
    """Create the vault directory if needed and restrict it to the owner."""
    path = Path(vault_dir)
    try:
        path.mkdir(parents=True, exist_ok=True)
        path.chmod(stat.S_IRWXU)  # 700
    except OSError as e:
        raise InitializationError(f"Cannot prepare vault directory {path}: {e}") from e
    return path


def read_master_key_file(key_path: Path | str) -> KeyBuffer:
    """Load and validate a base64 master key file.

    Also used to load another host's key for import_bundle().

    Raises:
        KeyCorruptionError: content is not base64 or not exactly 32 bytes.
        InitializationError: the file cannot be read.
    """
    path = Path(key_path)
    try:
        encoded = path.read_text(encoding="ascii").strip()
    except (OSError, UnicodeDecodeError) as e:
        raise InitializationError(f"Cannot read master key {path}: {e}") from e
    try:
        raw = base64.b64decode(encoded, validate=True)
    except binascii.Error as e:
        raise KeyCorruptionError(f"Master key at {path} is not valid base64") from e
    if len(raw) != KEY_SIZE:
        raise KeyCorruptionError(
            f"Invalid master key length at {path}: expected {KEY_SIZE}, got {len(raw)}"
        )
    return KeyBuffer(raw)


def _write_new_key(key_path: Path) -> KeyBuffer:
    key = KeyBuffer(secrets.token_bytes(KEY_SIZE))
    # mkstemp files are 0600; the key only appears under its name once complete
    fd, tmp_name = tempfile.mkstemp(
        dir=key_path.parent, prefix=f".{key_path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(base64.b64encode(key.raw))
            fh.flush()
            os.fsync(fh.fileno())
        # link() fails with FileExistsError if another process won the race
        os.link(tmp_name, key_path)
    except OSError:
        key.wipe()
        raise
    finally:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
    return key


def load_or_create_master_key(vault_dir: Path | str) -> KeyBuffer:
    """Return this host's master key, generating it on first use."""
    directory = ensure_vault_dir(vault_dir)
    key_path = directory / KEY_FILENAME

    if key_path.exists():
        key = read_master_key_file(key_path)
        logger.info("Loaded host master key from %s", key_path)
        return key

    try:
        key = _write_new_key(key_path)
    except FileExistsError:
        return read_master_key_file(key_path)
    except OSError as e:
        raise InitializationError(f"Cannot write master key {key_path}: {e}") from e
    logger.info("Generated new host master key at %s", key_path)
    return key

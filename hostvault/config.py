"""
Centralized configuration for Hostvault.

All configuration is loaded from environment variables with sensible defaults.

Usage:
    from hostvault.config import get_config
    cfg = get_config()
    print(cfg.secrets_dir)   # "/home/user/.hostvault/secrets"
    print(cfg.host_id)       # "web-1" or $HOSTVAULT_HOST_ID
"""

from __future__ import annotations

import os
import socket
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class VaultConfig:
    """Top-level Hostvault configuration."""

    home: Path = field(default_factory=lambda: Path.home() / ".hostvault")
    host_id: str = field(default_factory=socket.gethostname)
    actor: str = "system"
    audit_limit: int = 100
    log_level: str = "WARNING"

    @property
    def secrets_dir(self) -> Path:
        return self.home / "secrets"

    @property
    def key_path(self) -> Path:
        return self.secrets_dir / "host.key"


# Singleton
_config: VaultConfig | None = None


def get_config() -> VaultConfig:
    """Get or create the singleton config from environment variables."""
    global _config
    if _config is not None:
        return _config
    _config = _load_from_env()
    return _config


def _load_from_env() -> VaultConfig:
    """Load configuration from environment variables."""
    home = Path(os.environ.get("HOSTVAULT_HOME", Path.home() / ".hostvault")).expanduser()
    return VaultConfig(
        home=home,
        host_id=os.environ.get("HOSTVAULT_HOST_ID") or socket.gethostname(),
        actor=os.environ.get("HOSTVAULT_ACTOR", "system"),
        audit_limit=int(os.environ.get("HOSTVAULT_AUDIT_LIMIT", "100")),
        log_level=os.environ.get("HOSTVAULT_LOG_LEVEL", "WARNING").upper(),
    )


def reset_config() -> None:
    """Reset the singleton config (for testing)."""
    global _config
    _config = None

"""
Test fixtures for the vault.

Every vault lives under its own tmp_path so tests never share key material.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from hostvault.vault import SecretVault


@pytest.fixture
def vault(tmp_path: Path):
    """An initialized vault for host 'test-host'."""
    v = SecretVault(tmp_path / "home", host_id="test-host")
    v.init()
    yield v
    v.close()


@pytest.fixture
def make_vault(tmp_path: Path):
    """Factory for additional independent vaults (cross-host tests)."""
    created: list[SecretVault] = []

    def _make(host_id: str) -> SecretVault:
        v = SecretVault(tmp_path / host_id, host_id=host_id)
        v.init()
        created.append(v)
        return v

    yield _make
    for v in created:
        v.close()

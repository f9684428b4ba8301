"""
Root-level shared test fixtures.

Inherited by the vault package tests and the top-level tests/ suite.
"""

from __future__ import annotations

import pytest


@pytest.fixture
def clean_env(monkeypatch):
    """Remove vault env vars that leak between tests."""
    for key in [
        "HOSTVAULT_HOME",
        "HOSTVAULT_HOST_ID",
        "HOSTVAULT_ACTOR",
        "HOSTVAULT_AUDIT_LIMIT",
        "HOSTVAULT_LOG_LEVEL",
    ]:
        monkeypatch.delenv(key, raising=False)

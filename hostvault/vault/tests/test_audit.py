"""Tests for the vault audit log — JSONL audit trail."""

import json
from pathlib import Path

import pytest

from hostvault.vault.audit import AuditLog
from hostvault.vault.models import AuditAction


@pytest.fixture
def audit(tmp_path: Path) -> AuditLog:
    return AuditLog(tmp_path / "audit.jsonl", host_id="test-host")


class TestRecord:
    def test_successful_record(self, audit):
        entry = audit.record("api_key", AuditAction.CREATE, actor="ops", success=True)
        assert entry is not None
        assert entry.host_id == "test-host"

        line = json.loads(audit.path.read_text().splitlines()[0])
        assert line["secretName"] == "api_key"
        assert line["action"] == "create"
        assert line["actor"] == "ops"
        assert line["hostId"] == "test-host"
        assert line["success"] is True
        assert "timestamp" in line

    def test_metadata(self, audit):
        audit.record("*", AuditAction.EXPORT, actor="a", success=True, metadata={"count": 3})
        line = json.loads(audit.path.read_text())
        assert line["metadata"] == {"count": 3}

    def test_append_only(self, audit):
        audit.record("a", AuditAction.CREATE, actor="x", success=True)
        audit.record("b", AuditAction.READ, actor="x", success=False)
        assert len(audit.path.read_text().splitlines()) == 2

    def test_write_failure_returns_none(self, tmp_path: Path):
        audit = AuditLog(tmp_path / "missing" / "audit.jsonl", host_id="h")
        result = audit.record("a", AuditAction.CREATE, actor="x", success=True)
        assert result is None

    def test_unserializable_metadata_swallowed(self, audit):
        result = audit.record(
            "a", AuditAction.CREATE, actor="x", success=True, metadata={"bad": object()}
        )
        assert result is None


class TestReadRecent:
    def test_missing_file(self, audit):
        assert audit.read_recent() == []

    def test_limit_returns_latest(self, audit):
        for i in range(10):
            audit.record(f"k{i}", AuditAction.READ, actor="x", success=True)
        entries = audit.read_recent(3)
        assert [e.secret_name for e in entries] == ["k7", "k8", "k9"]

    def test_filters(self, audit):
        audit.record("a", AuditAction.CREATE, actor="x", success=True)
        audit.record("b", AuditAction.CREATE, actor="x", success=True)
        audit.record("a", AuditAction.READ, actor="x", success=True)
        assert [e.action for e in audit.read_recent(secret_name="a")] == ["create", "read"]
        assert [e.secret_name for e in audit.read_recent(action="create")] == ["a", "b"]

    def test_malformed_lines_skipped(self, audit):
        audit.record("a", AuditAction.CREATE, actor="x", success=True)
        with audit.path.open("a") as fh:
            fh.write("{garbage\n\n")
        audit.record("b", AuditAction.CREATE, actor="x", success=True)
        assert [e.secret_name for e in audit.read_recent()] == ["a", "b"]

    def test_unreadable_file(self, tmp_path: Path):
        path = tmp_path / "audit.jsonl"
        path.mkdir()
        assert AuditLog(path, host_id="h").read_recent() == []

    def test_zero_limit(self, audit):
        audit.record("a", AuditAction.CREATE, actor="x", success=True)
        assert audit.read_recent(0) == []

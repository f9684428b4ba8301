"""Tests for hostvault.cli — command line interface."""

import io
import json
from pathlib import Path

import pytest

from hostvault.cli import main
from hostvault.config import reset_config


@pytest.fixture(autouse=True)
def vault_home(tmp_path: Path, monkeypatch, clean_env):
    """Point the CLI at an isolated vault home."""
    home = tmp_path / "home"
    monkeypatch.setenv("HOSTVAULT_HOME", str(home))
    monkeypatch.setenv("HOSTVAULT_HOST_ID", "cli-host")
    reset_config()
    yield home
    reset_config()


class TestCli:
    def test_version(self, capsys):
        rc = main(["version"])
        assert rc == 0
        out = capsys.readouterr().out
        assert "hostvault" in out
        assert "0.1.0" in out

    def test_version_flag(self, capsys):
        rc = main(["--version"])
        assert rc == 0
        assert "hostvault" in capsys.readouterr().out

    def test_no_args(self, capsys):
        assert main([]) == 0

    def test_init(self, capsys, vault_home):
        assert main(["init"]) == 0
        out = capsys.readouterr().out
        assert "cli-host" in out
        assert (vault_home / "secrets" / "host.key").exists()

    def test_status_before_init(self, capsys):
        assert main(["status"]) == 0
        assert "hostvault init" in capsys.readouterr().out

    def test_status_after_set(self, capsys):
        main(["set", "k", "--value", "v"])
        assert main(["status"]) == 0
        assert "Secrets:   1" in capsys.readouterr().out


class TestSecretCommands:
    def test_set_get(self, capsys):
        assert main(["set", "API_KEY", "--value", "sk-123", "--scope", "project"]) == 0
        capsys.readouterr()
        assert main(["get", "API_KEY"]) == 0
        assert capsys.readouterr().out.strip() == "sk-123"

    def test_set_from_stdin(self, capsys, monkeypatch):
        monkeypatch.setattr("sys.stdin", io.StringIO("from-stdin\n"))
        assert main(["set", "k"]) == 0
        capsys.readouterr()
        main(["get", "k"])
        assert capsys.readouterr().out.strip() == "from-stdin"

    def test_get_missing(self, capsys):
        assert main(["get", "nope"]) == 1
        assert "not_found" in capsys.readouterr().err

    def test_bad_meta(self, capsys):
        assert main(["set", "k", "--value", "v", "--meta", "novalue"]) == 2

    def test_list_json(self, capsys):
        main(["set", "a", "--value", "secret-a", "--meta", "owner=ops"])
        capsys.readouterr()
        assert main(["list", "--json"]) == 0
        out = capsys.readouterr().out
        items = json.loads(out)
        assert items[0]["name"] == "a"
        assert items[0]["metadata"] == {"owner": "ops"}
        assert "secret-a" not in out

    def test_list_empty(self, capsys):
        assert main(["list"]) == 0
        assert "No secrets" in capsys.readouterr().out

    def test_delete(self, capsys):
        main(["set", "k", "--value", "v"])
        assert main(["delete", "k"]) == 0
        assert main(["delete", "k"]) == 1

    def test_rotate(self, capsys):
        main(["set", "k", "--value", "v"])
        assert main(["rotate", "k"]) == 0
        assert main(["rotate", "missing"]) == 1
        capsys.readouterr()
        main(["get", "k"])
        assert capsys.readouterr().out.strip() == "v"

    def test_audit(self, capsys):
        main(["--actor", "ops", "set", "k", "--value", "v"])
        main(["--actor", "ops", "get", "k"])
        capsys.readouterr()
        assert main(["audit", "--name", "k"]) == 0
        lines = capsys.readouterr().out.strip().splitlines()
        assert len(lines) == 2
        assert "create" in lines[0] and "ops" in lines[0]
        assert "read" in lines[1]


class TestExportImport:
    def test_export_to_file(self, capsys, tmp_path: Path):
        main(["set", "k", "--value", "v"])
        out = tmp_path / "bundle.json"
        assert main(["export", "--output", str(out)]) == 0
        bundle = json.loads(out.read_text())
        assert bundle["host_id"] == "cli-host"
        assert bundle["secrets"][0]["name"] == "k"

    def test_cross_host_import(self, capsys, tmp_path: Path, vault_home):
        main(["set", "k", "--value", "moved"])
        bundle_path = tmp_path / "bundle.json"
        main(["export", "-o", str(bundle_path)])
        source_key = vault_home / "secrets" / "host.key"

        other = tmp_path / "other"
        rc = main(
            ["--home", str(other), "--host-id", "other", "import", str(bundle_path),
             "--source-key", str(source_key)]
        )
        assert rc == 0
        assert "Imported 1/1" in capsys.readouterr().out
        main(["--home", str(other), "get", "k"])
        assert capsys.readouterr().out.strip() == "moved"

    def test_import_wrong_key(self, capsys, tmp_path: Path):
        main(["set", "k", "--value", "v"])
        bundle_path = tmp_path / "bundle.json"
        main(["export", "-o", str(bundle_path)])
        other = tmp_path / "other"
        main(["--home", str(other), "init"])
        rc = main(
            ["--home", str(tmp_path / "third"), "import", str(bundle_path),
             "--source-key", str(other / "secrets" / "host.key")]
        )
        assert rc == 1
        assert "Imported 0/1" in capsys.readouterr().out

    def test_import_corrupt_key(self, capsys, tmp_path: Path):
        bundle_path = tmp_path / "bundle.json"
        bundle_path.write_text(json.dumps({"version": "1.0.0", "host_id": "x", "secrets": []}))
        bad_key = tmp_path / "bad.key"
        bad_key.write_text("AAAA")
        rc = main(["import", str(bundle_path), "--source-key", str(bad_key)])
        assert rc == 1
        assert "Error" in capsys.readouterr().err

    def test_import_missing_bundle(self, capsys, tmp_path: Path):
        rc = main(["import", str(tmp_path / "none.json"), "--source-key", "x"])
        assert rc == 1


class TestFatalKey:
    def test_corrupt_host_key(self, capsys, vault_home):
        secrets_dir = vault_home / "secrets"
        secrets_dir.mkdir(parents=True)
        (secrets_dir / "host.key").write_text("AAAA")
        assert main(["list"]) == 1
        assert "Invalid master key length" in capsys.readouterr().err

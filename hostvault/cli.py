"""
Hostvault CLI — entry point for vault operations on this host.

Usage:
    hostvault init                        # Create or load the host master key
    hostvault set NAME --value V          # Store a secret (or pipe it on stdin)
    hostvault get NAME                    # Print a secret
    hostvault list [--json]               # Secret names and metadata, never values
    hostvault delete NAME
    hostvault rotate NAME                 # Re-encrypt under a fresh data key
    hostvault export [--output FILE]      # Wrapped bundle for backup / transfer
    hostvault import FILE --source-key K  # Re-wrap another host's bundle
    hostvault audit [--limit N]           # Recent audit entries
    hostvault status
    hostvault version
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path

from hostvault.config import VaultConfig, get_config
from hostvault.vault.errors import VaultError


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="hostvault",
        description="Hostvault — zero-knowledge secret vault for this host.",
    )
    parser.add_argument("--version", action="store_true", help="Show version and exit")
    parser.add_argument("--home", type=str, help="Vault home (default: $HOSTVAULT_HOME)")
    parser.add_argument("--host-id", type=str, help="Host id recorded in audit entries")
    parser.add_argument("--actor", type=str, help="Actor label recorded in audit entries")

    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("init", help="Create or load the host master key")

    set_parser = subparsers.add_parser("set", help="Create or update a secret")
    set_parser.add_argument("name")
    set_parser.add_argument("--value", help="Secret value (default: read stdin)")
    set_parser.add_argument(
        "--scope", choices=["host", "project", "agent"], default="host", help="Secret scope"
    )
    set_parser.add_argument(
        "--meta", action="append", default=[], metavar="KEY=VALUE", help="Attach metadata"
    )

    get_parser = subparsers.add_parser("get", help="Decrypt and print a secret")
    get_parser.add_argument("name")

    list_parser = subparsers.add_parser("list", help="List secrets (no values)")
    list_parser.add_argument("--json", action="store_true", help="Emit JSON")

    delete_parser = subparsers.add_parser("delete", help="Delete a secret")
    delete_parser.add_argument("name")

    rotate_parser = subparsers.add_parser("rotate", help="Re-encrypt a secret under a new key")
    rotate_parser.add_argument("name")

    export_parser = subparsers.add_parser("export", help="Export the wrapped vault bundle")
    export_parser.add_argument("--output", "-o", type=str, help="Write to file instead of stdout")

    import_parser = subparsers.add_parser("import", help="Import a bundle from another host")
    import_parser.add_argument("bundle", help="Path to an exported bundle JSON file")
    import_parser.add_argument(
        "--source-key", required=True, help="Source host's host.key (delivered out of band)"
    )

    audit_parser = subparsers.add_parser("audit", help="Show recent audit entries")
    audit_parser.add_argument("--limit", type=int, help="Max entries")
    audit_parser.add_argument("--name", type=str, help="Only entries for this secret")
    audit_parser.add_argument(
        "--action",
        choices=["create", "read", "rotate", "delete", "export", "import"],
        help="Only entries for this action",
    )

    subparsers.add_parser("status", help="Show vault status")
    subparsers.add_parser("version", help="Show version")

    args = parser.parse_args(argv)

    if args.version or args.command == "version":
        from hostvault import __version__

        print(f"hostvault {__version__}")
        return 0

    handlers = {
        "init": _cmd_init,
        "set": _cmd_set,
        "get": _cmd_get,
        "list": _cmd_list,
        "delete": _cmd_delete,
        "rotate": _cmd_rotate,
        "export": _cmd_export,
        "import": _cmd_import,
        "audit": _cmd_audit,
        "status": _cmd_status,
    }
    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        return 0

    cfg = _resolve_config(args)
    logging.basicConfig(level=cfg.log_level, format="%(levelname)s %(name)s: %(message)s")
    try:
        return handler(args, cfg)
    except VaultError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def _resolve_config(args: argparse.Namespace) -> VaultConfig:
    cfg = get_config()
    overrides: dict = {}
    if args.home:
        overrides["home"] = Path(args.home).expanduser()
    if args.host_id:
        overrides["host_id"] = args.host_id
    if args.actor:
        overrides["actor"] = args.actor
    return dataclasses.replace(cfg, **overrides) if overrides else cfg


def _open_vault(cfg: VaultConfig):
    from hostvault.vault import SecretVault

    vault = SecretVault.from_config(cfg)
    vault.init()
    return vault


def _parse_meta(pairs: list[str]) -> dict | None:
    meta: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Metadata must be KEY=VALUE, got {pair!r}")
        meta[key] = value
    return meta or None


def _cmd_init(args: argparse.Namespace, cfg: VaultConfig) -> int:
    with _open_vault(cfg) as vault:
        stats = vault.get_stats()
        print(f"Vault ready at {vault.secrets_dir}")
        print(f"  Host:     {stats['host_id']}")
        print(f"  Secrets:  {stats['secret_count']}")
    return 0


def _cmd_set(args: argparse.Namespace, cfg: VaultConfig) -> int:
    value = args.value
    if value is None:
        value = sys.stdin.read().rstrip("\n")
    try:
        metadata = _parse_meta(args.meta)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    with _open_vault(cfg) as vault:
        meta = vault.create(args.name, value, args.scope, cfg.actor, metadata)
    print(f"Stored {meta.name} ({meta.scope})")
    return 0


def _cmd_get(args: argparse.Namespace, cfg: VaultConfig) -> int:
    with _open_vault(cfg) as vault:
        outcome = vault.read_outcome(args.name, cfg.actor)
    if not outcome.ok:
        detail = f": {outcome.reason}" if outcome.reason else ""
        print(f"Error: {args.name} {outcome.status.value}{detail}", file=sys.stderr)
        return 1
    print(outcome.value)
    return 0


def _cmd_list(args: argparse.Namespace, cfg: VaultConfig) -> int:
    with _open_vault(cfg) as vault:
        items = vault.list()
    if args.json:
        print(json.dumps([m.model_dump(mode="json") for m in items], indent=2))
        return 0
    if not items:
        print("No secrets stored.")
        return 0
    for m in sorted(items, key=lambda m: m.name):
        print(f"  {m.name:<32} {m.scope:<8} rotated {m.rotated_at.isoformat()}")
    return 0


def _cmd_delete(args: argparse.Namespace, cfg: VaultConfig) -> int:
    with _open_vault(cfg) as vault:
        removed = vault.delete(args.name, cfg.actor)
    if not removed:
        print(f"Error: {args.name} not found", file=sys.stderr)
        return 1
    print(f"Deleted {args.name}")
    return 0


def _cmd_rotate(args: argparse.Namespace, cfg: VaultConfig) -> int:
    with _open_vault(cfg) as vault:
        meta = vault.rotate(args.name, cfg.actor)
    if meta is None:
        print(f"Error: could not rotate {args.name}", file=sys.stderr)
        return 1
    print(f"Rotated {meta.name} at {meta.rotated_at.isoformat()}")
    return 0


def _cmd_export(args: argparse.Namespace, cfg: VaultConfig) -> int:
    with _open_vault(cfg) as vault:
        bundle = vault.export(cfg.actor)
    text = bundle.model_dump_json(indent=2)
    if args.output:
        out = Path(args.output)
        out.write_text(text + "\n", encoding="utf-8")
        out.chmod(0o600)
        print(f"Exported {len(bundle.secrets)} secret(s) to {out}")
    else:
        print(text)
    return 0


def _cmd_import(args: argparse.Namespace, cfg: VaultConfig) -> int:
    from hostvault.vault import read_master_key_file

    try:
        bundle = json.loads(Path(args.bundle).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        print(f"Error: cannot read bundle {args.bundle}: {e}", file=sys.stderr)
        return 1
    source_key = read_master_key_file(args.source_key)
    try:
        with _open_vault(cfg) as vault:
            count = vault.import_bundle(bundle, source_key, cfg.actor)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        source_key.wipe()
    total = len(bundle.get("secrets") or [])
    print(f"Imported {count}/{total} secret(s)")
    return 0 if count == total else 1


def _cmd_audit(args: argparse.Namespace, cfg: VaultConfig) -> int:
    with _open_vault(cfg) as vault:
        entries = vault.get_audit_log(
            args.limit or cfg.audit_limit, secret_name=args.name, action=args.action
        )
    for e in entries:
        status = "ok" if e.success else "FAILED"
        print(
            f"{e.timestamp.isoformat()}  {e.action:<7} {e.secret_name:<24} "
            f"{e.actor:<16} {status}"
        )
    return 0


def _cmd_status(args: argparse.Namespace, cfg: VaultConfig) -> int:
    from hostvault import __version__
    from hostvault.vault import SecretVault

    vault = SecretVault.from_config(cfg)
    print(f"Hostvault v{__version__}")
    print()
    print(f"  Home:      {cfg.home}")
    print(f"  Host:      {cfg.host_id}")
    if not cfg.key_path.exists():
        print("  Key:       not created, run 'hostvault init'")
        return 0
    with vault:
        stats = vault.get_stats()
    print(f"  Key:       {cfg.key_path}")
    print(f"  Secrets:   {stats['secret_count']}")
    return 0

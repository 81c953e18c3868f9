#!/usr/bin/env python3
"""
Revocation Registry CLI

Command-line interface for issuers and verifiers working against a
registry state file.

Usage:
    revreg [--state PATH] [--config PATH] [--format FMT] <command> [subcommand] [options]

Commands:
    init            Create a registry with an owner
    publish         Publish a revocation for one holder
    publish-batch   Publish revocations from a JSON/YAML file (all-or-nothing)
    unrevoke        Return a revoked holder to ACTIVE
    status          Show the record for a holder or key
    check           Batch revocation check, in input order
    verify          Check a holder's validity at a given epoch
    key             Derive the record key for a holder
    publisher       add / remove / list delegated publishers
    owner           show / transfer ownership
    config          show / get / validate / schema

Exit codes: 0 success, 1 usage/IO/config error, 2 registry rejected the call.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import argparse
import json
import pathlib
import sys
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import yaml

from revreg import __version__
from revreg.config import ConfigError, ConfigManager, RegistryConfig
from revreg.epoch import MAX_EPOCH_DAYS, days_to_epoch, epoch_to_days
from revreg.errors import AlreadyInitialized, RegistryError
from revreg.events import Receipt
from revreg.keys import derive_key, key_hex
from revreg.observability import configure_logging, generate_correlation_id, set_correlation_id
from revreg.persistence import JsonStateBackend, PersistenceError
from revreg.registry import RevocationRegistry, policy_from_config
from revreg.schema import BATCH_SCHEMA, validate_with_schema
from revreg.store import RevocationInfo
from revreg.verifier import LocalFileEvidenceFetcher, verify_revocation


class OutputFormat(Enum):
    """Output format options."""
    JSON = "json"
    YAML = "yaml"
    TABLE = "table"
    TEXT = "text"


class CLIError(Exception):
    """CLI error with exit code."""
    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.exit_code = exit_code


def format_output(data: Any, fmt: OutputFormat = OutputFormat.JSON) -> str:
    """Format data for output."""
    if fmt == OutputFormat.JSON:
        return json.dumps(data, indent=2, default=str)
    elif fmt == OutputFormat.YAML:
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
    elif fmt == OutputFormat.TABLE:
        return _format_table(data)
    else:
        return str(data)


def _format_table(data: Any) -> str:
    """Format data as ASCII table."""
    if isinstance(data, list) and data and isinstance(data[0], dict):
        headers = list(data[0].keys())
        rows = [[str(row.get(h, "")) for h in headers] for row in data]
        widths = [max(len(h), max(len(r[i]) for r in rows)) for i, h in enumerate(headers)]

        lines = []
        lines.append(" | ".join(h.ljust(widths[i]) for i, h in enumerate(headers)))
        lines.append("-+-".join("-" * w for w in widths))
        for row in rows:
            lines.append(" | ".join(c.ljust(widths[i]) for i, c in enumerate(row)))
        return "\n".join(lines)
    elif isinstance(data, dict):
        for value in data.values():
            if isinstance(value, list) and value and isinstance(value[0], dict):
                return _format_table(value)
        return "\n".join(f"{k}: {v}" for k, v in data.items())
    return str(data)


def info_to_dict(holder_id: Optional[str], key: str, info: RevocationInfo) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if holder_id is not None:
        out["holder_id"] = holder_id
    out.update({
        "key": key,
        "revocation_epoch_days": info.revocation_epoch_days,
        "revocation_epoch": (
            days_to_epoch(info.revocation_epoch_days)
            if info.version and info.revocation_epoch_days <= MAX_EPOCH_DAYS
            else None
        ),
        "evidence_pointer": info.evidence_pointer,
        "version": info.version,
        "status": info.status.name,
    })
    return out


def load_batch_file(path: pathlib.Path) -> Tuple[List[str], List[int], List[str]]:
    """
    Read a batch file: a list (or ``{"revocations": [...]}``) of entries with
    ``holderId``, ``epoch`` and ``pointer`` (``storagePointer`` also accepted).
    """
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise CLIError(f"cannot read batch file {path}: {e}") from e

    errors = validate_with_schema(data, BATCH_SCHEMA)
    if errors:
        raise CLIError(f"invalid batch file {path}: " + "; ".join(errors[:5]))
    if isinstance(data, dict):
        data = data["revocations"]

    holder_ids: List[str] = []
    epochs: List[int] = []
    pointers: List[str] = []
    for entry in data:
        holder_ids.append(entry.get("holderId", entry.get("holder_id")))
        epochs.append(epoch_to_days(entry["epoch"]))
        pointers.append(entry.get("pointer", entry.get("storagePointer")))
    return holder_ids, epochs, pointers


class RegistryCLI:
    """Main CLI application."""

    def __init__(self):
        self.parser = argparse.ArgumentParser(
            prog="revreg",
            description="Credential revocation registry CLI",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        self.parser.add_argument(
            "--version", "-V",
            action="version",
            version=f"revreg {__version__}",
        )
        self.parser.add_argument(
            "--format", "-f",
            choices=["json", "yaml", "table", "text"],
            default="json",
            help="Output format (default: json)",
        )
        self.parser.add_argument("--state", "-s", help="Registry state file (default: storage.state_path)")
        self.parser.add_argument("--config", "-c", help="YAML configuration file")
        self.parser.add_argument("--log-level", help="Override observability.log_level")
        self.parser.add_argument(
            "--quiet", "-q",
            action="store_true",
            help="Suppress error messages on stderr",
        )

        self.subparsers = self.parser.add_subparsers(dest="command", help="Commands")
        self._register_commands()
        self.config_manager: Optional[ConfigManager] = None

    def _register_commands(self) -> None:
        """Register all command groups."""
        self._register_registry_commands()
        self._register_query_commands()
        self._register_publisher_commands()
        self._register_owner_commands()
        self._register_config_commands()

    def _register_registry_commands(self) -> None:
        init = self.subparsers.add_parser("init", help="Create a registry with an owner")
        init.add_argument("--owner", "-o", required=True, help="Owner address")

        publish = self.subparsers.add_parser("publish", help="Publish a revocation")
        publish.add_argument("--caller", required=True, help="Caller address")
        publish.add_argument("--holder", required=True, help="Holder identifier")
        publish.add_argument("--epoch", "-e", required=True, help="Revocation epoch (YYYY-MM-DD or day count)")
        publish.add_argument("--pointer", "-p", required=True, help="Evidence pointer")

        batch = self.subparsers.add_parser("publish-batch", help="Publish revocations from a file")
        batch.add_argument("--caller", required=True, help="Caller address")
        batch.add_argument("--file", required=True, help="JSON or YAML batch file")

        unrevoke = self.subparsers.add_parser("unrevoke", help="Un-revoke a holder")
        unrevoke.add_argument("--caller", required=True, help="Caller address")
        unrevoke.add_argument("--holder", required=True, help="Holder identifier")

    def _register_query_commands(self) -> None:
        status = self.subparsers.add_parser("status", help="Show a holder's record")
        target = status.add_mutually_exclusive_group(required=True)
        target.add_argument("--holder", help="Holder identifier")
        target.add_argument("--key", help="Record key (0x + 64 hex)")

        check = self.subparsers.add_parser("check", help="Batch revocation check")
        check.add_argument("--holder", action="append", required=True, help="Holder identifier (repeatable)")

        verify = self.subparsers.add_parser("verify", help="Check validity at an epoch")
        verify.add_argument("--holder", required=True, help="Holder identifier")
        verify.add_argument("--at", required=True, help="Check epoch (YYYY-MM-DD or day count)")
        verify.add_argument("--evidence-dir", help="Directory of locally stored evidence files")

        key = self.subparsers.add_parser("key", help="Derive the record key for a holder")
        key.add_argument("--holder", required=True, help="Holder identifier")

    def _register_publisher_commands(self) -> None:
        publisher = self.subparsers.add_parser("publisher", help="Delegated publisher management")
        publisher_sub = publisher.add_subparsers(dest="subcommand")

        add = publisher_sub.add_parser("add", help="Grant publish rights")
        add.add_argument("--caller", required=True, help="Caller address (owner)")
        add.add_argument("--address", required=True, help="Publisher address")

        remove = publisher_sub.add_parser("remove", help="Revoke publish rights")
        remove.add_argument("--caller", required=True, help="Caller address (owner)")
        remove.add_argument("--address", required=True, help="Publisher address")

        publisher_sub.add_parser("list", help="List publishers")

    def _register_owner_commands(self) -> None:
        owner = self.subparsers.add_parser("owner", help="Ownership")
        owner_sub = owner.add_subparsers(dest="subcommand")

        owner_sub.add_parser("show", help="Show the current owner")

        transfer = owner_sub.add_parser("transfer", help="Transfer ownership")
        transfer.add_argument("--caller", required=True, help="Caller address (owner)")
        transfer.add_argument("--new-owner", required=True, help="New owner address")

    def _register_config_commands(self) -> None:
        config = self.subparsers.add_parser("config", help="Configuration management")
        config_sub = config.add_subparsers(dest="subcommand")

        get = config_sub.add_parser("get", help="Get configuration value")
        get.add_argument("path", help="Config path (e.g., keys.algorithm)")

        config_sub.add_parser("show", help="Show all configuration")
        config_sub.add_parser("validate", help="Validate configuration")
        config_sub.add_parser("schema", help="Export configuration schema")

    def run(self, args: Optional[List[str]] = None) -> int:
        """Run the CLI."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 0

        try:
            self._setup(parsed)
            fmt = OutputFormat(parsed.format)
            result = self._dispatch(parsed)

            if result is not None:
                print(format_output(result, fmt))

            return 0

        except RegistryError as e:
            if not parsed.quiet:
                print(f"Error: {e.code}: {e.message}", file=sys.stderr)
            return 2

        except (CLIError, ConfigError, PersistenceError) as e:
            if not parsed.quiet:
                print(f"Error: {e}", file=sys.stderr)
            return getattr(e, "exit_code", 1)

    def _setup(self, args: argparse.Namespace) -> None:
        manager = ConfigManager()
        if args.config:
            manager.load_from_file(args.config)
        else:
            manager.load_defaults()
        if args.log_level:
            manager.set("observability.log_level", args.log_level)
        self.config_manager = manager

        errors = manager.validate()
        validating = args.command == "config" and getattr(args, "subcommand", None) == "validate"
        if errors and not validating:
            raise ConfigError("invalid configuration: " + "; ".join(errors))

        # `config validate` still runs with a broken config, so log with defaults.
        logging_config = manager.config.observability
        if errors:
            configure_logging(logging_config.log_level.default, logging_config.log_format.default)
        else:
            configure_logging(logging_config.log_level.get(), logging_config.log_format.get())
        set_correlation_id(generate_correlation_id())

    @property
    def config(self) -> RegistryConfig:
        assert self.config_manager is not None
        return self.config_manager.config

    def _dispatch(self, args: argparse.Namespace) -> Any:
        """Dispatch command to handler."""
        cmd = args.command.replace("-", "_")
        subcmd = getattr(args, "subcommand", None)

        handler_name = f"_handle_{cmd}_{subcmd}" if subcmd else f"_handle_{cmd}"
        handler = getattr(self, handler_name, None)

        if handler is None:
            raise CLIError(f"Unknown command: {args.command} {subcmd or ''}".strip())

        return handler(args)

    def _backend(self, args: argparse.Namespace) -> JsonStateBackend:
        return JsonStateBackend(args.state or self.config.storage.state_path.get())

    def _open(self, args: argparse.Namespace) -> RevocationRegistry:
        return RevocationRegistry.open(
            self._backend(args),
            policy=policy_from_config(self.config),
            max_undrained_events=self.config.events.max_undrained.get(),
        )

    @staticmethod
    def _receipt(receipt: Receipt, **extra: Any) -> Dict[str, Any]:
        out = receipt.to_dict()
        out.update(extra)
        return out

    # Registry handlers
    def _handle_init(self, args: argparse.Namespace) -> Any:
        backend = self._backend(args)
        if backend.exists():
            raise AlreadyInitialized(f"registry state already exists at {backend.path}")
        registry = RevocationRegistry.from_config(args.owner, self.config, backend)
        registry.save()
        return {
            "state": str(backend.path),
            "owner": registry.owner,
            "key_algorithm": registry.key_algorithm,
        }

    def _handle_publish(self, args: argparse.Namespace) -> Any:
        registry = self._open(args)
        receipt = registry.publish(args.caller, args.holder, epoch_to_days(args.epoch), args.pointer)
        key = key_hex(registry.derive_key(args.holder))
        return self._receipt(
            receipt,
            record=info_to_dict(args.holder, key, registry.get_revocation_info(args.holder)),
        )

    def _handle_publish_batch(self, args: argparse.Namespace) -> Any:
        holder_ids, epochs, pointers = load_batch_file(pathlib.Path(args.file))
        registry = self._open(args)
        receipt = registry.publish_batch(args.caller, holder_ids, epochs, pointers)
        return self._receipt(receipt, count=len(holder_ids))

    def _handle_unrevoke(self, args: argparse.Namespace) -> Any:
        registry = self._open(args)
        receipt = registry.unrevoke(args.caller, args.holder)
        key = key_hex(registry.derive_key(args.holder))
        return self._receipt(
            receipt,
            record=info_to_dict(args.holder, key, registry.get_revocation_info(args.holder)),
        )

    # Query handlers
    def _handle_status(self, args: argparse.Namespace) -> Any:
        registry = self._open(args)
        if args.key:
            return info_to_dict(None, args.key.lower(), registry.get_revocation_info_by_key(args.key))
        key = key_hex(registry.derive_key(args.holder))
        return info_to_dict(args.holder, key, registry.get_revocation_info(args.holder))

    def _handle_check(self, args: argparse.Namespace) -> Any:
        registry = self._open(args)
        results = registry.batch_check_revocation(args.holder)
        return {
            "results": [
                {"holder_id": holder, "revoked": revoked}
                for holder, revoked in zip(args.holder, results)
            ]
        }

    def _handle_verify(self, args: argparse.Namespace) -> Any:
        registry = self._open(args)
        result = verify_revocation(registry, args.holder, args.at)
        out = result.to_dict()
        if args.evidence_dir and not result.is_valid and result.pointer:
            evidence = LocalFileEvidenceFetcher(args.evidence_dir).fetch(result.pointer)
            out["evidence_found"] = evidence is not None
            out["evidence_bytes"] = len(evidence) if evidence is not None else 0
        return out

    def _handle_key(self, args: argparse.Namespace) -> Any:
        backend = self._backend(args)
        if backend.exists():
            algorithm = self._open(args).key_algorithm
        else:
            algorithm = self.config.keys.algorithm.get()
        return {
            "holder_id": args.holder,
            "algorithm": algorithm,
            "key": key_hex(derive_key(args.holder, algorithm)),
        }

    # Publisher handlers
    def _handle_publisher_add(self, args: argparse.Namespace) -> Any:
        return self._open(args).add_publisher(args.caller, args.address).to_dict()

    def _handle_publisher_remove(self, args: argparse.Namespace) -> Any:
        return self._open(args).remove_publisher(args.caller, args.address).to_dict()

    def _handle_publisher_list(self, args: argparse.Namespace) -> Any:
        publishers = sorted(self._open(args).publishers)
        return {"publishers": publishers, "count": len(publishers)}

    # Owner handlers
    def _handle_owner_show(self, args: argparse.Namespace) -> Any:
        return {"owner": self._open(args).owner}

    def _handle_owner_transfer(self, args: argparse.Namespace) -> Any:
        return self._open(args).transfer_ownership(args.caller, args.new_owner).to_dict()

    # Config handlers
    def _handle_config_get(self, args: argparse.Namespace) -> Any:
        assert self.config_manager is not None
        return {"path": args.path, "value": self.config_manager.get(args.path)}

    def _handle_config_show(self, args: argparse.Namespace) -> Any:
        return self.config.to_dict()

    def _handle_config_validate(self, args: argparse.Namespace) -> Any:
        assert self.config_manager is not None
        errors = self.config_manager.validate()
        if errors:
            raise CLIError("invalid configuration: " + "; ".join(errors))
        return {"valid": True, "errors": []}

    def _handle_config_schema(self, args: argparse.Namespace) -> Any:
        assert self.config_manager is not None
        return self.config_manager.export_schema()


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    cli = RegistryCLI()
    return cli.run(argv)


if __name__ == "__main__":
    sys.exit(main())

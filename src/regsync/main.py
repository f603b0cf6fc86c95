#!/usr/bin/env python3

# ruff: noqa: T201

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from regsync.app import (
    change_package_version,
    compare_archive_files,
    publish_package,
    reconcile_registries,
    restore_registry_groups,
    unpublish_package,
)
from regsync.common.logging import configure_logging
from regsync.domain.errors import ReconciliationError
from regsync.domain.versions import SemanticVersion

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from regsync.domain.model import RegistryPackageGroup


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Reconcile embedded packages against scoped registries"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    reconcile = subparsers.add_parser("reconcile", help="Run a reconciliation pass")
    reconcile.add_argument(
        "--offline",
        action="store_true",
        help="List remote packages from the last stored catalog snapshot",
    )
    reconcile.add_argument(
        "--restore",
        action="store_true",
        help="Print the last stored result if it is less than an hour old",
    )
    reconcile.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    compare = subparsers.add_parser("compare", help="Compare two package archives")
    compare.add_argument("first", type=Path, help="First archive or package directory")
    compare.add_argument("second", type=Path, help="Second archive or package directory")

    publish = subparsers.add_parser("publish", help="Pack and publish a local package")
    publish.add_argument("directory", type=Path, help="Package directory holding package.json")
    publish.add_argument("--registry", help="Scoped registry name")
    publish.add_argument(
        "--version",
        type=SemanticVersion.parse,
        help="Set this version in package.json before publishing",
    )

    unpublish = subparsers.add_parser("unpublish", help="Remove a published version")
    unpublish.add_argument("package", help="Package id")
    unpublish.add_argument("version", type=SemanticVersion.parse, help="Version to remove")
    unpublish.add_argument("--registry", help="Scoped registry name")

    set_version = subparsers.add_parser("set-version", help="Change a local package version")
    set_version.add_argument("directory", type=Path, help="Package directory holding package.json")
    set_version.add_argument("version", type=SemanticVersion.parse, help="New version")

    return parser.parse_args(list(argv))


def _print_groups(groups: Sequence[RegistryPackageGroup]) -> None:
    for group in groups:
        print(f"{group.registry}")
        for bucket, packages in (
            ("available", group.available),
            ("common", group.common),
            ("changed", group.changed),
        ):
            for package in packages:
                collision = (
                    f" (in {package.collision_count} registries)"
                    if package.collision_count > 1
                    else ""
                )
                print(f"  [{bucket}] {package.name} {package.version}{collision}")
        for local in group.installable:
            print(f"  [installable] {local.name} {local.version}")


def _reconcile(args: argparse.Namespace) -> int:
    if args.restore:
        restored = restore_registry_groups()
        if restored is not None:
            _print_groups(restored)
            return 0
        print("No recent result stored; running a new pass")

    groups = reconcile_registries(offline=args.offline)
    _print_groups(groups)
    return 0


def _compare(args: argparse.Namespace) -> int:
    report = compare_archive_files(args.first, args.second)
    print(report.format())
    if report.failed:
        return 1
    return 0 if report.identical else 3


def _publish(args: argparse.Namespace) -> int:
    if args.version is not None:
        change_package_version(args.directory, args.version)
    published = publish_package(args.directory, registry_name=args.registry)
    print(f"Published {published}")
    return 0


def _unpublish(args: argparse.Namespace) -> int:
    unpublish_package(args.package, args.version, registry_name=args.registry)
    print(f"Unpublished {args.package}@{args.version}")
    return 0


def _set_version(args: argparse.Namespace) -> int:
    record = change_package_version(args.directory, args.version)
    print(f"{record.name} is now at {record.version}")
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    verbose = getattr(parsed_args, "verbose", False)
    configure_logging(level=logging.DEBUG if verbose else logging.INFO)

    try:
        if parsed_args.command == "reconcile":
            status = _reconcile(parsed_args)
        elif parsed_args.command == "compare":
            status = _compare(parsed_args)
        elif parsed_args.command == "publish":
            status = _publish(parsed_args)
        elif parsed_args.command == "unpublish":
            status = _unpublish(parsed_args)
        elif parsed_args.command == "set-version":
            status = _set_version(parsed_args)
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301
    except ReconciliationError as e:
        print(f"Reconciliation failed: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:  # noqa: BLE001
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if status:
        sys.exit(status)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    print("\nClosed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()

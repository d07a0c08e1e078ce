"""
Command-line interface for omegaopts.

Notes
-----
The CLI is intentionally thin. It parses arguments, runs one engine coroutine,
and maps domain errors to exit code 2.

Safety posture
--------------
- `show`, `list`, `dependents` and `export` never write under the data root.
  Only commands that change state get a log file.
- `delete` refuses profiles that others depend on.
- `import` checks the whole document, references included, before anything
  is cleared.
- `config` changes how the document is stored; the next write uses it.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from omega_engine.compression import CompressionFormat
from omega_engine.errors import OmegaError
from omega_engine.init_store import init_store, open_options_store, store_paths_as_text
from omega_engine.logging_setup import setup_logging
from omega_engine.options_editor import OptionsEditor
from omega_engine.paths_and_safety import resolve_store_paths
from omega_engine.profile_deps import compute_dependents
from omega_engine.profiles import PROFILE_KEY_PREFIX, iter_profiles
from omega_engine.settings import (
    AREA_KINDS,
    StoreSettings,
    load_store_settings,
    save_store_settings,
)

MUTATING_COMMANDS = frozenset({"init", "delete", "rename", "import", "config"})


def build_parser() -> argparse.ArgumentParser:
    """
    Build and return the top-level argument parser.

    Returns
    -------
    argparse.ArgumentParser
        Configured parser.
    """
    parser = argparse.ArgumentParser(
        prog="omegaopts",
        description="Proxy profile options manager",
    )
    parser.add_argument(
        "--data-root",
        type=Path,
        default=None,
        help="Override the data root (primarily for testing). If omitted, defaults are used.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    init_p = sub.add_parser("init", help="Write the default options document if none exists")
    init_p.add_argument(
        "--print-paths",
        action="store_true",
        help="Print resolved paths after initialization",
    )

    sub.add_parser("show", help="Print the options document as JSON")
    sub.add_parser("list", help="List profiles with their types")

    deps_p = sub.add_parser("dependents", help="List profiles that depend on a profile")
    deps_p.add_argument("name", help="Profile name")

    delete_p = sub.add_parser("delete", help="Delete a profile nothing depends on")
    delete_p.add_argument("name", help="Profile name")

    rename_p = sub.add_parser("rename", help="Rename a profile and every reference to it")
    rename_p.add_argument("old", help="Current profile name")
    rename_p.add_argument("new", help="New profile name")

    import_p = sub.add_parser("import", help="Replace the options document with a JSON file")
    import_p.add_argument("file", type=Path, help="JSON file holding a full options document")

    export_p = sub.add_parser("export", help="Write the options document to a JSON file")
    export_p.add_argument("file", type=Path, help="Destination JSON file")

    config_p = sub.add_parser("config", help="Show or change how the options document is stored")
    config_p.add_argument(
        "--area",
        choices=sorted(AREA_KINDS),
        default=None,
        help="Storage limits to enforce (local: large quota; sync: small quota, rate limited)",
    )
    config_p.add_argument(
        "--compression",
        choices=[f.value for f in CompressionFormat],
        default=None,
        help="Encoding used for the options file",
    )

    return parser


def _dump(document: dict[str, Any]) -> str:
    return json.dumps(document, indent=2, sort_keys=True, ensure_ascii=False)


def _load_json_file(path: Path) -> dict[str, Any]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise OmegaError(f"Cannot read {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise OmegaError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise OmegaError(f"{path} does not hold a JSON object.")
    return payload


def _configure(args: argparse.Namespace) -> None:
    settings_path = resolve_store_paths(args.data_root).settings_path
    current = load_store_settings(settings_path)
    if args.area is not None or args.compression is not None:
        current = StoreSettings(
            area_kind=args.area or current.area_kind,
            compression=args.compression or current.compression,
        )
        save_store_settings(settings_path, current)
    print(f"area_kind: {current.area_kind}")
    print(f"compression: {current.compression}")


async def _run_command(args: argparse.Namespace) -> int:
    if args.command == "init":
        paths, _document = await init_store(args.data_root)
        if args.print_paths:
            print(store_paths_as_text(paths))
        return 0

    if args.command == "config":
        _configure(args)
        return 0

    store = open_options_store(args.data_root)
    editor = OptionsEditor(store)

    if args.command == "show":
        print(_dump(await store.read()))
    elif args.command == "list":
        for key, profile in sorted(iter_profiles(await store.read())):
            print(f"{key[len(PROFILE_KEY_PREFIX):]}\t{profile.get('profileType', '?')}")
    elif args.command == "dependents":
        for name in sorted(compute_dependents(args.name, await store.read())):
            print(name)
    elif args.command == "delete":
        await editor.delete_profile(args.name)
    elif args.command == "rename":
        await editor.rename_profile(args.old, args.new)
    elif args.command == "import":
        await editor.import_document(_load_json_file(args.file))
    elif args.command == "export":
        args.file.parent.mkdir(parents=True, exist_ok=True)
        args.file.write_text(_dump(await store.read()) + "\n", encoding="utf-8")
    return 0


def main(argv: list[str] | None = None) -> int:
    """
    CLI entry point.

    Parameters
    ----------
    argv:
        Optional argument vector. If None, argparse uses sys.argv.

    Returns
    -------
    int
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        log_dir = (
            resolve_store_paths(args.data_root).logs_root
            if args.command in MUTATING_COMMANDS
            else None
        )
        setup_logging(log_dir=log_dir)
        return asyncio.run(_run_command(args))
    except (OmegaError, OSError) as exc:
        print(f"ERROR: {exc}")
        return 2


if __name__ == "__main__":
    sys.exit(main())

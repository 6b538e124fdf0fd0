#!/usr/bin/env python3
# ghcpkgdb/modules/cli.py
"""
ghcpkgdb CLI - inspect and update GHC package databases

Subcommands:
- global-db: print the global package database directory
- list: merged name -> version map of the global database plus --db databases
- ids: ghc-pkg ids of the given package names
- unregister: remove a package (name-version) from the global context
"""

from __future__ import annotations

import sys
import json
import logging
import argparse
from pathlib import Path
from typing import Dict, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ghcpkgdb.modules import config as config_mod
from ghcpkgdb.modules import logging as log_mod
from ghcpkgdb.modules.envoverride import EnvOverride, ExecutableNotFound
from ghcpkgdb.modules.ghcpkg import (
    GhcPkgException,
    get_ghc_pkg_ids,
    get_global_db,
    get_package_version_map,
    unregister_package,
)
from ghcpkgdb.modules.types import TypeParseError, parse_package_identifier, parse_package_name

logger = log_mod.get_logger("cli")
console = Console()
err_console = Console(stderr=True)

# -----------------------
# Small pretty helpers
# -----------------------
def print_ok(msg: str):
    console.print(f"[bold green]✔[/] {escape(msg)}", soft_wrap=True, highlight=False)

def print_err(msg: str):
    err_console.print(f"[bold red]✖[/] {escape(msg)}", soft_wrap=True, highlight=False)

def _print_mapping(title: str, columns: List[str], rows: Dict[str, str], as_json: bool):
    if as_json:
        print(json.dumps(rows, indent=2, sort_keys=True))
        return
    table = Table(title=title)
    for c in columns:
        table.add_column(c)
    for k in sorted(rows):
        table.add_row(k, rows[k])
    console.print(table)

def _db_paths(raw: Optional[List[str]]) -> List[Path]:
    return [Path(p).expanduser().resolve() for p in (raw or [])]

# -----------------------
# CLI Implementation
# -----------------------
class PkgDbCLI:
    def __init__(self, menv: Optional[EnvOverride] = None):
        self.menv = menv or EnvOverride.from_environ()

    def global_db(self, as_json: bool = False) -> Path:
        path = get_global_db(self.menv)
        if as_json:
            print(json.dumps({"global_db": str(path)}))
        else:
            # one unwrapped line so scripts can read it back
            console.print(escape(str(path)), soft_wrap=True, highlight=False)
        return path

    def list_packages(self, dbs: List[Path], as_json: bool = False) -> Dict[str, str]:
        versions = get_package_version_map(self.menv, dbs)
        rows = {str(name): str(version) for name, version in versions.items()}
        _print_mapping(f"{len(rows)} packages", ["package", "version"], rows, as_json)
        return rows

    def ids(self, names: List[str], dbs: List[Path], jobs: Optional[int] = None, as_json: bool = False) -> Dict[str, str]:
        parsed = [parse_package_name(n) for n in names]
        found = get_ghc_pkg_ids(self.menv, dbs, parsed, jobs=jobs)
        rows = {str(name): str(pid) for name, pid in found.items()}
        _print_mapping("ghc-pkg ids", ["package", "id"], rows, as_json)
        missing = [n for n in names if n not in rows]
        if missing:
            logger.warning("not installed: %s", ", ".join(missing))
        return rows

    def unregister(self, ident_text: str):
        ident = parse_package_identifier(ident_text)
        unregister_package(self.menv, ident)
        print_ok(f"unregistered {ident}")

# -----------------------
# Argparse wiring
# -----------------------
def make_parser():
    ap = argparse.ArgumentParser(prog="ghcpkgdb", description="Query and update GHC package databases via ghc-pkg")
    ap.add_argument("--config", help="explicit config file to load")
    ap.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = ap.add_subparsers(dest="cmd")

    p_global = sub.add_parser("global-db", help="print the global package database directory")
    p_global.add_argument("--json", action="store_true")

    p_list = sub.add_parser("list", help="list installed packages and versions")
    p_list.add_argument("--db", action="append", metavar="PATH", help="package database (repeatable)")
    p_list.add_argument("--json", action="store_true")

    p_ids = sub.add_parser("ids", help="resolve ghc-pkg ids of packages")
    p_ids.add_argument("names", nargs="+", metavar="NAME")
    p_ids.add_argument("--db", action="append", metavar="PATH", help="package database (repeatable)")
    p_ids.add_argument("--jobs", type=int, default=None, help="parallel lookups")
    p_ids.add_argument("--json", action="store_true")

    p_unreg = sub.add_parser("unregister", help="unregister NAME-VERSION")
    p_unreg.add_argument("package")

    return ap

def main(argv: Optional[List[str]] = None, menv: Optional[EnvOverride] = None) -> int:
    argv = argv if argv is not None else sys.argv[1:]
    parser = make_parser()
    args = parser.parse_args(argv)

    if args.config:
        config_mod.load(args.config)
        log_mod.reload_config()
    if args.verbose:
        log_mod.set_level(logging.DEBUG)

    cli = PkgDbCLI(menv)
    try:
        if args.cmd == "global-db":
            cli.global_db(as_json=args.json)
        elif args.cmd == "list":
            cli.list_packages(_db_paths(args.db), as_json=args.json)
        elif args.cmd == "ids":
            cli.ids(args.names, _db_paths(args.db), jobs=args.jobs, as_json=args.json)
        elif args.cmd == "unregister":
            cli.unregister(args.package)
        else:
            parser.print_help()
            return 1
    except (GhcPkgException, ExecutableNotFound, TypeParseError) as e:
        logger.debug("command failed", exc_info=True)
        print_err(f"Command failed: {e}")
        return 2
    return 0

if __name__ == "__main__":
    sys.exit(main())

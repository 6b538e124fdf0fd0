# ghcpkgdb/modules/ghcpkg.py
"""
ghcpkg.py - queries and updates of GHC package databases through ghc-pkg

Features:
- ghc_pkg: run ghc-pkg against an ordered list of package databases; on failure,
  initialize the databases that do not exist yet and retry once
- get_package_version_map: parse `ghc-pkg list` output into {PackageName: Version},
  keeping the highest version when databases disagree
- find_ghc_pkg_id / get_ghc_pkg_ids: resolve the unique id of installed packages
  from `ghc-pkg describe`
- get_global_db: locate the global package database directory
- unregister_package: `ghc-pkg unregister --force`, never retried
"""

from __future__ import annotations

import os
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

from ghcpkgdb.modules.config import get_config
from ghcpkgdb.modules.envoverride import EnvOverride
from ghcpkgdb.modules.logging import get_logger
from ghcpkgdb.modules.process import ProcessExitedUnsuccessfully, ProcessResult, try_process_stdout
from ghcpkgdb.modules.types import (
    GhcPkgId,
    PackageIdentifier,
    PackageName,
    TypeParseError,
    Version,
    package_identifier_string,
    package_name_string,
    parse_ghc_pkg_id,
    parse_package_identifier,
)

logger = get_logger("ghcpkg")

NO_USER_DB_FLAG = "--no-user-package-db"
PACKAGE_DB_FLAG = "--package-db"
ENTRY_INDENT = "    "
NO_PACKAGES_MARKER = "(no packages)"
ID_PREFIX = "id: "

PathLike = Union[str, Path]

# serializes the init step so parallel lookups never race on the same database
_INIT_LOCK = threading.Lock()

# -----------------------------
# Errors
# -----------------------------
class GhcPkgException(Exception):
    """Base class for ghc-pkg layer errors."""


class InvocationFailure(GhcPkgException):
    def __init__(self, failure: ProcessExitedUnsuccessfully):
        super().__init__(f"ghc-pkg failed: {failure}")
        self.failure = failure


class ListingParseFailure(GhcPkgException):
    def __init__(self, detail: Optional[str] = None):
        msg = "could not get package list"
        super().__init__(f"{msg}: {detail}" if detail else msg)
        self.detail = detail


class GlobalDbResolutionFailure(GhcPkgException):
    def __init__(self, reason: str, failure: Optional[ProcessExitedUnsuccessfully] = None):
        super().__init__(f"could not determine global package database: {reason}")
        self.reason = reason
        self.failure = failure


class FindIdentifierFailure(GhcPkgException):
    def __init__(self, name: PackageName, failure: ProcessExitedUnsuccessfully):
        super().__init__(f"could not find ghc-pkg id of {name}: {failure}")
        self.name = name
        self.failure = failure

# -----------------------------
# Invocation
# -----------------------------
def _ghc_pkg_executable() -> str:
    return get_config().get("ghc_pkg.executable") or "ghc-pkg"


def ghc_pkg_args(pkg_dbs: Sequence[PathLike], args: Sequence[str]) -> List[str]:
    """Full ghc-pkg argument vector: no user db, one --package-db per database, then args."""
    return [NO_USER_DB_FLAG] + [f"{PACKAGE_DB_FLAG}={os.fspath(db)}" for db in pkg_dbs] + list(args)


def init_database(menv: EnvOverride, db: PathLike) -> Optional[ProcessResult]:
    """
    Create db with `ghc-pkg init` unless the directory already exists.
    Returns the init result, or None when nothing had to be done.
    """
    db = Path(db)
    if db.is_dir():
        return None
    db.parent.mkdir(parents=True, exist_ok=True)
    logger.info("initializing package database %s", db)
    result = try_process_stdout(menv, _ghc_pkg_executable(), ["init", os.fspath(db)])
    if not result.ok:
        logger.warning("ghc-pkg init %s failed: %s", db, result.failure)
    return result


def ghc_pkg(menv: EnvOverride, pkg_dbs: Sequence[PathLike], args: Sequence[str], retry: bool = True) -> ProcessResult:
    """
    Run ghc-pkg with the given databases and arguments.

    A failed first attempt initializes every database in pkg_dbs that does not
    exist and runs the same command once more; that second result is returned
    as is. retry=False skips the recovery for commands that must run exactly once.
    """
    exe = _ghc_pkg_executable()
    argv = ghc_pkg_args(pkg_dbs, args)
    logger.debug("Calling ghc-pkg with: %s", argv)
    result = try_process_stdout(menv, exe, argv)
    if result.ok or not retry:
        return result
    with _INIT_LOCK:
        for db in pkg_dbs:
            init_database(menv, db)
    logger.debug("retrying ghc-pkg with: %s", argv)
    return try_process_stdout(menv, exe, argv)

# -----------------------------
# Listing parser
# -----------------------------
@dataclass
class ListingParse:
    """Outcome of parsing `ghc-pkg list`: packages on success, error and line otherwise."""
    packages: Optional[Dict[PackageName, Version]] = None
    error: Optional[str] = None
    line: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.packages is not None


def _failed(error: str, line: int) -> ListingParse:
    return ListingParse(error=f"line {line}: {error}", line=line)


def _merge_max(sections: List[Dict[PackageName, Version]]) -> Dict[PackageName, Version]:
    merged: Dict[PackageName, Version] = {}
    for section in sections:
        for name, version in section.items():
            current = merged.get(name)
            if current is None or version > current:
                merged[name] = version
    return merged


def parse_package_list(raw: bytes) -> ListingParse:
    """
    Parse the output of `ghc-pkg list`.

    The output is a series of sections, one per database: an unindented heading
    line, package lines indented by exactly four spaces (hidden packages wrapped
    in parentheses), and an optional blank separator line. A heading is any
    non-empty line that does not start with whitespace, so an under-indented
    entry is reported rather than read as a new database. Anything else fails
    the whole parse.
    """
    text = raw.decode("utf-8", errors="replace")
    if not text:
        return ListingParse(packages={})
    lines = text.split("\n")
    if lines[-1] != "":
        return _failed("missing final line break", len(lines))
    lines = [ln[:-1] if ln.endswith("\r") else ln for ln in lines[:-1]]

    sections: List[Dict[PackageName, Version]] = []
    current: Optional[Dict[PackageName, Version]] = None
    for lineno, line in enumerate(lines, 1):
        if current is None:
            if not line or line[0].isspace():
                return _failed(f"expected database heading, got {line!r}", lineno)
            current = {}
            sections.append(current)
        elif not line:
            current = None
        elif line.startswith(ENTRY_INDENT):
            token = line[len(ENTRY_INDENT):]
            if token == NO_PACKAGES_MARKER:
                continue
            if token.startswith("(") and token.endswith(")"):
                token = token[1:-1]
            try:
                ident = parse_package_identifier(token)
            except TypeParseError:
                return _failed(f"invalid package entry {line!r}", lineno)
            current[ident.name] = ident.version
        elif line[0].isspace():
            return _failed(f"package entry not indented by four spaces: {line!r}", lineno)
        else:
            current = {}
            sections.append(current)
    return ListingParse(packages=_merge_max(sections))


def get_package_version_map(menv: EnvOverride, pkg_dbs: Sequence[PathLike]) -> Dict[PackageName, Version]:
    """All packages visible in the global database and pkg_dbs, highest version per name."""
    result = ghc_pkg(menv, pkg_dbs, ["list", "--global"])
    if not result.ok:
        raise InvocationFailure(result.failure)
    parsed = parse_package_list(result.stdout)
    if not parsed.ok:
        logger.error("unexpected ghc-pkg list output (%s)", parsed.error)
        raise ListingParseFailure(parsed.error)
    return parsed.packages

# -----------------------------
# Package ids
# -----------------------------
def parse_describe_id(raw: bytes) -> Optional[GhcPkgId]:
    """The id from the first `id: ` line of `ghc-pkg describe` output, if any and valid."""
    for line in raw.decode("utf-8", errors="replace").split("\n"):
        if not line.startswith(ID_PREFIX):
            continue
        value = line[len(ID_PREFIX):]
        if value.endswith("\r"):
            value = value[:-1]
        try:
            return parse_ghc_pkg_id(value)
        except TypeParseError:
            logger.debug("ignoring malformed ghc-pkg id %r", value)
            return None
    return None


def describe_ghc_pkg_id(menv: EnvOverride, pkg_dbs: Sequence[PathLike], name: PackageName) -> Optional[GhcPkgId]:
    """Like find_ghc_pkg_id, but raises FindIdentifierFailure when ghc-pkg itself fails."""
    result = ghc_pkg(menv, pkg_dbs, ["describe", package_name_string(name)])
    if not result.ok:
        raise FindIdentifierFailure(name, result.failure)
    return parse_describe_id(result.stdout)


def find_ghc_pkg_id(menv: EnvOverride, pkg_dbs: Sequence[PathLike], name: PackageName) -> Optional[GhcPkgId]:
    """
    Get the id of the package e.g. foo-0.0.0-9c293923c0685761dcff6f8c3ad8f8ec.
    None when the package is not installed or ghc-pkg could not describe it.
    """
    try:
        return describe_ghc_pkg_id(menv, pkg_dbs, name)
    except FindIdentifierFailure as e:
        logger.debug("treating %s as not installed: %s", name, e.failure)
        return None


def get_ghc_pkg_ids(menv: EnvOverride,
                    pkg_dbs: Sequence[PathLike],
                    names: Sequence[PackageName],
                    jobs: Optional[int] = None) -> Dict[PackageName, GhcPkgId]:
    """Ids of every name that resolves; names that do not are left out."""
    if jobs is None:
        jobs = int(get_config().get("ghc_pkg.jobs", 1) or 1)

    def lookup(name: PackageName) -> Tuple[PackageName, Optional[GhcPkgId]]:
        return name, find_ghc_pkg_id(menv, pkg_dbs, name)

    if jobs <= 1 or len(names) <= 1:
        pairs = [lookup(n) for n in names]
    else:
        with ThreadPoolExecutor(max_workers=jobs) as ex:
            pairs = list(ex.map(lookup, names))
    return {name: pid for name, pid in pairs if pid is not None}

# -----------------------------
# Global database / unregister
# -----------------------------
def _first_line(raw: bytes) -> str:
    text = raw.decode("utf-8", errors="replace")
    for i, c in enumerate(text):
        if c in "\r\n":
            return text[:i]
    return text


def get_global_db(menv: EnvOverride) -> Path:
    """Directory of the global package database, as reported by `ghc-pkg list --global`."""
    result = ghc_pkg(menv, [], ["list", "--global"])
    if not result.ok:
        raise GlobalDbResolutionFailure("ghc-pkg list --global failed", result.failure)
    fp = _first_line(result.stdout)
    if fp.endswith(":"):
        fp = fp[:-1]
    if not fp:
        raise GlobalDbResolutionFailure("empty ghc-pkg list --global output")
    try:
        canonical = Path(os.path.realpath(fp))
    except (OSError, ValueError) as e:
        raise GlobalDbResolutionFailure(f"cannot canonicalize {fp!r}: {e}") from e
    return canonical


def unregister_package(menv: EnvOverride, ident: PackageIdentifier) -> None:
    """Unregister the given package from the global context. Runs ghc-pkg exactly once."""
    result = ghc_pkg(menv, [], ["unregister", "--force", package_identifier_string(ident)], retry=False)
    if not result.ok:
        raise InvocationFailure(result.failure)
    logger.info("unregistered %s", ident)

# ghcpkgdb/modules/types.py
"""
Package naming types shared by the ghc-pkg layer.

- PackageName: hyphen-separated alphanumeric words, each word holding at least one letter
  ("text", "unordered-containers", "base64-bytestring")
- Version: dot-separated non-negative integers ("1", "0.10.4.2"), ordered component-wise
- PackageIdentifier: name plus version, rendered "name-version"
- GhcPkgId: the unique id ghc-pkg assigns to one built instance of a package
  ("foo-1.0.0-9c293923c0685761dcff6f8c3ad8f8ec")

Every type has a parse_* function raising TypeParseError on bad input and
renders back to its canonical text with str().
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import total_ordering
from typing import Tuple

_NAME_WORD_RE = re.compile(r"[0-9]*[A-Za-z][A-Za-z0-9]*")
_VERSION_RE = re.compile(r"[0-9]+(\.[0-9]+)*")
_GHC_PKG_ID_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9_.\-]*")


class TypeParseError(ValueError):
    """Raised when text is not a valid package name, version, identifier or id."""

    def __init__(self, kind: str, text: str):
        super().__init__(f"invalid {kind}: {text!r}")
        self.kind = kind
        self.text = text


@dataclass(frozen=True, order=True)
class PackageName:
    name: str

    def __str__(self) -> str:
        return self.name


@total_ordering
@dataclass(frozen=True)
class Version:
    components: Tuple[int, ...]

    def __str__(self) -> str:
        return ".".join(str(c) for c in self.components)

    def __lt__(self, other: "Version") -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.components < other.components


@dataclass(frozen=True, order=True)
class PackageIdentifier:
    name: PackageName
    version: Version

    def __str__(self) -> str:
        return f"{self.name}-{self.version}"

    def to_tuple(self) -> Tuple[PackageName, Version]:
        return (self.name, self.version)


@dataclass(frozen=True, order=True)
class GhcPkgId:
    ident: str

    def __str__(self) -> str:
        return self.ident


def parse_package_name(text: str) -> PackageName:
    if not text or not all(_NAME_WORD_RE.fullmatch(w) for w in text.split("-")):
        raise TypeParseError("package name", text)
    return PackageName(text)


def parse_version(text: str) -> Version:
    if not _VERSION_RE.fullmatch(text):
        raise TypeParseError("version", text)
    return Version(tuple(int(c) for c in text.split(".")))


def parse_package_identifier(text: str) -> PackageIdentifier:
    # the version is always the last hyphen-separated word since name words need a letter
    name, sep, version = text.rpartition("-")
    if not sep:
        raise TypeParseError("package identifier", text)
    try:
        return PackageIdentifier(parse_package_name(name), parse_version(version))
    except TypeParseError as e:
        raise TypeParseError("package identifier", text) from e


def parse_ghc_pkg_id(text: str) -> GhcPkgId:
    if not _GHC_PKG_ID_RE.fullmatch(text):
        raise TypeParseError("ghc-pkg id", text)
    return GhcPkgId(text)


def package_identifier_string(ident: PackageIdentifier) -> str:
    return str(ident)


def package_name_string(name: PackageName) -> str:
    return str(name)

"""Parsing of `ghc-pkg list` output and the version map built from it."""

import pytest

from conftest import fail, ok
from ghcpkgdb.modules.ghcpkg import (
    InvocationFailure,
    ListingParseFailure,
    get_package_version_map,
    parse_package_list,
)
from ghcpkgdb.modules.types import PackageName, parse_version

GLOBAL_AND_SNAPSHOT = (
    b"/usr/lib/ghc/package.conf.d\n"
    b"    bar-0.1\n"
    b"    foo-1.0.0\n"
    b"\n"
    b"/home/user/.stack/snapshots/pkgdb:\n"
    b"    foo-1.2.0\n"
    b"\n"
)


def versions(raw: bytes):
    parsed = parse_package_list(raw)
    assert parsed.ok, parsed.error
    return {str(k): str(v) for k, v in parsed.packages.items()}


def test_max_version_wins_across_sections():
    assert versions(GLOBAL_AND_SNAPSHOT) == {"foo": "1.2.0", "bar": "0.1"}


def test_older_version_in_later_section_does_not_shadow():
    raw = b"/a\n    foo-2.0\n\n/b\n    foo-1.9.9\n"
    assert versions(raw) == {"foo": "2.0"}


def test_hidden_packages_parse_like_visible_ones():
    assert versions(b"/db\n    (foo-1.0.0)\n") == versions(b"/db\n    foo-1.0.0\n") == {"foo": "1.0.0"}


def test_last_duplicate_within_a_section_wins():
    assert versions(b"/db\n    foo-2.0\n    foo-1.0\n") == {"foo": "1.0"}


def test_empty_output_is_an_empty_map():
    assert versions(b"") == {}


def test_heading_only_sections_and_no_packages_marker():
    raw = b"/empty/db:\n    (no packages)\n\n/other/db:\n\n/db3\n    text-1.2.3.4\n"
    assert versions(raw) == {"text": "1.2.3.4"}


def test_sections_without_blank_separator():
    assert versions(b"/a\n    foo-1.0\n/b\n    bar-2\n") == {"foo": "1.0", "bar": "2"}


def test_crlf_line_endings():
    assert versions(b"C:\\ghc\\package.conf.d\r\n    base-4.8.0.0\r\n\r\n") == {"base": "4.8.0.0"}


def test_real_world_names():
    raw = b"/db\n    unordered-containers-0.2.5.1\n    (bin-package-db-0.0.0.0)\n    base64-bytestring-1.0.0.1\n"
    assert versions(raw) == {
        "unordered-containers": "0.2.5.1",
        "bin-package-db": "0.0.0.0",
        "base64-bytestring": "1.0.0.1",
    }


@pytest.mark.parametrize("raw", [
    b"/db\n  foo-1.0\n",            # two-space indent
    b"/db\n   foo-1.0\n",           # three-space indent
    b"/db\n     foo-1.0\n",         # five-space indent
    b"/db\n\tfoo-1.0\n",
    b"/db\n    foo\n",              # no version
    b"/db\n    foo-1.0a\n",
    b"/db\n    (foo-1.0\n",         # unbalanced parenthesis
    b"/db\n    foo-1.0 bar-2.0\n",
    b"/db\n    foo-1.0",            # unterminated last line
    b"/db\n    foo-1.0\n\n\n/b\n",  # two blank lines
    b"\n/db\n    foo-1.0\n",        # blank where a heading is expected
    b"    foo-1.0\n",               # entry without heading
])
def test_malformed_listing_fails_whole_parse(raw):
    parsed = parse_package_list(raw)
    assert not parsed.ok
    assert parsed.packages is None
    assert parsed.line is not None


def test_failure_reports_offending_line():
    parsed = parse_package_list(b"/db\n    foo-1.0\n  bar-2.0\n")
    assert parsed.line == 3
    assert "bar-2.0" in parsed.error


def test_parse_is_pure():
    assert parse_package_list(GLOBAL_AND_SNAPSHOT) == parse_package_list(GLOBAL_AND_SNAPSHOT)


def test_version_map_queries_list_global_with_db_flags(menv, fake_ghc_pkg, tmp_path):
    db = tmp_path / "pkgdb"
    db.mkdir()
    fake_ghc_pkg.respond(ok(GLOBAL_AND_SNAPSHOT))
    result = get_package_version_map(menv, [db])
    assert result == {PackageName("foo"): parse_version("1.2.0"), PackageName("bar"): parse_version("0.1")}
    assert fake_ghc_pkg.calls == [["--no-user-package-db", f"--package-db={db}", "list", "--global"]]
    assert fake_ghc_pkg.names == ["ghc-pkg"]


def test_version_map_parse_failure(menv, fake_ghc_pkg):
    fake_ghc_pkg.respond(ok(b"/db\n  foo-1.0\n"))
    with pytest.raises(ListingParseFailure) as info:
        get_package_version_map(menv, [])
    assert "could not get package list" in str(info.value)


def test_version_map_invocation_failure(menv, fake_ghc_pkg):
    fake_ghc_pkg.respond(fail(1, "ghc-pkg: cannot read db"), fail(1, "ghc-pkg: still broken"))
    with pytest.raises(InvocationFailure) as info:
        get_package_version_map(menv, [])
    assert info.value.failure.stderr == b"ghc-pkg: still broken"
    assert len(fake_ghc_pkg.calls) == 2

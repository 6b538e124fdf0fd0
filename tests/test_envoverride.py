"""EnvOverride search path handling and the process runner built on it."""

import os
import stat
import sys

import pytest

from ghcpkgdb.modules.envoverride import EnvOverride, ExecutableNotFound, env_helper
from ghcpkgdb.modules.process import ProcessExitedUnsuccessfully, read_process_stdout, try_process_stdout


def _make_tool(directory, name):
    tool = directory / name
    tool.write_text("#!/bin/sh\nexit 0\n", encoding="utf-8")
    tool.chmod(tool.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return tool


@pytest.mark.skipif(sys.platform == "win32", reason="posix executable bits")
def test_find_executable_uses_override_path(tmp_path):
    first, second = tmp_path / "first", tmp_path / "second"
    first.mkdir()
    second.mkdir()
    _make_tool(second, "ghc-pkg")
    menv = EnvOverride({"PATH": os.pathsep.join([str(first), str(second)])})
    assert menv.find_executable("ghc-pkg") == str(second / "ghc-pkg")
    assert menv.search_path == [str(first), str(second)]


def test_missing_executable(tmp_path):
    menv = EnvOverride({"PATH": str(tmp_path)})
    with pytest.raises(ExecutableNotFound) as info:
        menv.find_executable("ghc-pkg")
    assert info.value.name == "ghc-pkg"
    with pytest.raises(ExecutableNotFound):
        EnvOverride({}).find_executable("ghc-pkg")


def test_with_overrides_returns_new_environment():
    base = EnvOverride({"PATH": "/usr/bin", "GHC_PACKAGE_PATH": "/x"})
    derived = base.with_overrides(GHC_PACKAGE_PATH=None, HOME="/home/u")
    assert derived.variables == {"PATH": "/usr/bin", "HOME": "/home/u"}
    assert base.variables == {"PATH": "/usr/bin", "GHC_PACKAGE_PATH": "/x"}


def test_env_helper_is_a_copy():
    menv = EnvOverride({"PATH": "/usr/bin"})
    env = env_helper(menv)
    env["PATH"] = "/tmp"
    assert menv.variables["PATH"] == "/usr/bin"


def test_from_environ_reads_process_environment(monkeypatch):
    monkeypatch.setenv("GHCPKGDB_TEST_VAR", "1")
    assert EnvOverride.from_environ().variables["GHCPKGDB_TEST_VAR"] == "1"


def test_run_captures_stdout():
    menv = EnvOverride.from_environ()
    result = try_process_stdout(menv, sys.executable, ["-c", "import sys; sys.stdout.write('hello')"])
    assert result.ok
    assert result.stdout == b"hello"
    assert result.failure is None


def test_run_reports_non_zero_exit():
    menv = EnvOverride.from_environ()
    args = ["-c", "import sys; sys.stderr.write('bad db'); sys.exit(3)"]
    result = try_process_stdout(menv, sys.executable, args)
    assert not result.ok
    assert result.failure.exit_code == 3
    assert result.failure.stderr == b"bad db"
    with pytest.raises(ProcessExitedUnsuccessfully) as info:
        read_process_stdout(menv, sys.executable, args)
    assert "exited with code 3" in str(info.value)
    assert "bad db" in str(info.value)


def test_child_sees_only_override_variables():
    menv = EnvOverride.from_environ().with_overrides(GHCPKGDB_MARKER="on")
    out = read_process_stdout(menv, sys.executable, ["-c", "import os; print(os.environ.get('GHCPKGDB_MARKER'))"])
    assert out.strip() == b"on"

"""
Pytest Configuration

Shared fixtures: an EnvOverride with an empty search path, isolation from any
config file on the machine, and a scripted stand-in for the ghc-pkg process.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

import pytest

from ghcpkgdb.modules import config as config_mod
from ghcpkgdb.modules import ghcpkg
from ghcpkgdb.modules.envoverride import EnvOverride
from ghcpkgdb.modules.process import ProcessResult

REAL_FIND_CANDIDATES = config_mod._find_candidates


def ok(stdout: Union[str, bytes] = b"") -> ProcessResult:
    if isinstance(stdout, str):
        stdout = stdout.encode("utf-8")
    return ProcessResult(cmd="ghc-pkg", args=[], exit_code=0, stdout=stdout, stderr=b"")


def fail(exit_code: int = 1, stderr: Union[str, bytes] = b"ghc-pkg: boom") -> ProcessResult:
    if isinstance(stderr, str):
        stderr = stderr.encode("utf-8")
    return ProcessResult(cmd="ghc-pkg", args=[], exit_code=exit_code, stdout=b"", stderr=stderr)


class FakeGhcPkg:
    """Records every ghc-pkg call; answers from a queue or a handler function."""

    def __init__(self):
        self.calls: List[List[str]] = []
        self.names: List[str] = []
        self.queue: List[ProcessResult] = []
        self.handler: Optional[Callable[[List[str]], ProcessResult]] = None

    def respond(self, *results: ProcessResult) -> "FakeGhcPkg":
        self.queue.extend(results)
        return self

    def __call__(self, menv: EnvOverride, name: str, args: Sequence[str], timeout: Optional[float] = None) -> ProcessResult:
        args = list(args)
        self.calls.append(args)
        self.names.append(name)
        if self.handler is not None:
            result = self.handler(args)
        elif self.queue:
            result = self.queue.pop(0)
        else:
            raise AssertionError(f"unexpected ghc-pkg call: {args}")
        return ProcessResult(cmd=name, args=args, exit_code=result.exit_code, stdout=result.stdout, stderr=result.stderr)


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    monkeypatch.delenv(config_mod.CONFIG_ENV_VAR, raising=False)
    monkeypatch.setattr(config_mod, "_find_candidates", lambda explicit=None: [Path(p) for p in [explicit] if p])
    monkeypatch.setattr(config_mod, "_CONFIG", None)


@pytest.fixture
def menv() -> EnvOverride:
    return EnvOverride({"PATH": "", "LANG": "C"})


@pytest.fixture
def fake_ghc_pkg(monkeypatch) -> FakeGhcPkg:
    fake = FakeGhcPkg()
    monkeypatch.setattr(ghcpkg, "try_process_stdout", fake)
    return fake

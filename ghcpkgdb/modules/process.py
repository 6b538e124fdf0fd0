# ghcpkgdb/modules/process.py
"""
process.py - run an external tool and capture its standard output

- try_process_stdout: returns a ProcessResult, never raises for a non-zero exit
- read_process_stdout: returns stdout bytes or raises ProcessExitedUnsuccessfully
- executables are resolved through the caller's EnvOverride
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ghcpkgdb.modules.config import get_config
from ghcpkgdb.modules.envoverride import EnvOverride, env_helper
from ghcpkgdb.modules.logging import get_logger

logger = get_logger("process")

# exit code reported when the configured timeout kills the child
TIMEOUT_EXIT_CODE = 124


class ProcessExitedUnsuccessfully(Exception):
    def __init__(self, cmd: str, args: Sequence[str], exit_code: int, stdout: bytes = b"", stderr: bytes = b""):
        self.cmd = cmd
        self.args_list = list(args)
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(str(self))

    def __str__(self) -> str:
        err = self.stderr.decode("utf-8", errors="replace").strip()
        msg = f"{self.cmd} {' '.join(self.args_list)} exited with code {self.exit_code}"
        return f"{msg}: {err}" if err else msg


@dataclass
class ProcessResult:
    cmd: str
    args: List[str]
    exit_code: int
    stdout: bytes
    stderr: bytes

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def failure(self) -> Optional[ProcessExitedUnsuccessfully]:
        if self.ok:
            return None
        return ProcessExitedUnsuccessfully(self.cmd, self.args, self.exit_code, self.stdout, self.stderr)

    def unwrap(self) -> bytes:
        failure = self.failure
        if failure is not None:
            raise failure
        return self.stdout


def try_process_stdout(menv: EnvOverride, name: str, args: Sequence[str], timeout: Optional[float] = None) -> ProcessResult:
    """Run name with args; raises ExecutableNotFound if name is not on menv's search path."""
    exe = menv.find_executable(name)
    if timeout is None:
        timeout = get_config().get("ghc_pkg.timeout")
    cmd = [exe] + list(args)
    logger.debug("running %s", cmd)
    proc = subprocess.Popen(cmd, stdin=subprocess.DEVNULL, stdout=subprocess.PIPE, stderr=subprocess.PIPE, env=env_helper(menv))
    try:
        out, err = proc.communicate(timeout=timeout)
        rc = proc.returncode
    except subprocess.TimeoutExpired:
        proc.kill()
        out, err = proc.communicate()
        rc = TIMEOUT_EXIT_CODE
        logger.warning("%s timed out after %ss", name, timeout)
    if rc != 0:
        logger.debug("%s exited with %d: %s", name, rc, (err or b"").decode("utf-8", errors="replace").strip())
    return ProcessResult(cmd=name, args=list(args), exit_code=rc, stdout=out or b"", stderr=err or b"")


def read_process_stdout(menv: EnvOverride, name: str, args: Sequence[str], timeout: Optional[float] = None) -> bytes:
    return try_process_stdout(menv, name, args, timeout=timeout).unwrap()

# ghcpkgdb/modules/envoverride.py
"""
envoverride.py - explicit process environment for tool invocations

Every ghc-pkg call receives an EnvOverride instead of reading os.environ:
- holds the variables handed to the child process
- derives the executable search path from that mapping's PATH
- resolves tool names on that search path (memoized per instance)
"""

from __future__ import annotations

import os
import shutil
import threading
from typing import Dict, List, Mapping, Optional


class ExecutableNotFound(Exception):
    def __init__(self, name: str, search_path: List[str]):
        super().__init__(f"executable {name!r} not found on search path {os.pathsep.join(search_path)!r}")
        self.name = name
        self.search_path = search_path


class EnvOverride:
    """
    Immutable view of a process environment.

    menv = EnvOverride.from_environ().with_overrides(GHC_PACKAGE_PATH=None)
    menv.find_executable("ghc-pkg") -> "/usr/bin/ghc-pkg"
    """

    def __init__(self, variables: Mapping[str, str]):
        self._vars: Dict[str, str] = dict(variables)
        self._paths: List[str] = [p for p in self._vars.get("PATH", "").split(os.pathsep) if p]
        self._exe_cache: Dict[str, str] = {}
        self._exe_lock = threading.Lock()

    @classmethod
    def from_environ(cls, environ: Optional[Mapping[str, str]] = None) -> "EnvOverride":
        return cls(os.environ if environ is None else environ)

    @property
    def variables(self) -> Dict[str, str]:
        return dict(self._vars)

    @property
    def search_path(self) -> List[str]:
        return list(self._paths)

    def with_overrides(self, **overrides: Optional[str]) -> "EnvOverride":
        """New EnvOverride with variables replaced; a None value removes the variable."""
        merged = dict(self._vars)
        for k, v in overrides.items():
            if v is None:
                merged.pop(k, None)
            else:
                merged[k] = v
        return EnvOverride(merged)

    def find_executable(self, name: str) -> str:
        with self._exe_lock:
            cached = self._exe_cache.get(name)
            if cached:
                return cached
            if os.path.dirname(name):
                # explicit path, only check it is runnable
                found = name if os.path.isfile(name) and os.access(name, os.X_OK) else None
            else:
                found = shutil.which(name, path=os.pathsep.join(self._paths)) if self._paths else None
            if not found:
                raise ExecutableNotFound(name, self._paths)
            self._exe_cache[name] = found
            return found

    def __repr__(self) -> str:
        return f"EnvOverride(PATH={os.pathsep.join(self._paths)!r}, vars={len(self._vars)})"


def env_helper(menv: EnvOverride) -> Dict[str, str]:
    """The variable mapping to pass as subprocess env=."""
    return menv.variables

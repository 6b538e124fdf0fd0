# ghcpkgdb/modules/config.py
# -*- coding: utf-8 -*-
"""
ghcpkgdb central configuration loader

Features:
- Read YAML/JSON config from multiple locations (env override, cwd, user, system)
- Merge with authoritative DEFAULTS, normalize/coerce types (human sizes to bytes)
- Validate structure and types, warn or error (fatal optional)
- Provide typed access via Config dataclass (get_config(), get(), helpers)
- Thread-safe load/reload
"""

from __future__ import annotations
import os
import json
import logging
import threading
from pathlib import Path
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, List, Tuple, Union

import yaml

# logger
logger = logging.getLogger("ghcpkgdb.config")

# ----------------------------
# DEFAULT configuration (authoritative base)
# ----------------------------
DEFAULTS: Dict[str, Any] = {
    "logging": {
        "level": "INFO",
        "file": None,
        "file_level": "DEBUG",
        "color": True,
        "format": None,
        "datefmt": "%H:%M:%S",
        "max_size": "10M",  # human readable
        "backups": 5,
        "module_levels": {},
    },
    "ghc_pkg": {
        "executable": "ghc-pkg",
        "timeout": None,  # seconds, None waits forever
        "jobs": 1,
    },
}

CONFIG_ENV_VAR = "GHCPKGDB_CONFIG"

# ----------------------------
# Dataclass to hold config
# ----------------------------
@dataclass
class Config:
    raw: Dict[str, Any] = field(default_factory=dict)     # values loaded from file (if any)
    merged: Dict[str, Any] = field(default_factory=dict)  # merged with DEFAULTS
    path: Optional[Path] = None

    def get(self, path: str, default: Any = None) -> Any:
        """Dot-separated getter for merged config."""
        parts = path.split(".") if path else []
        cur: Any = self.merged
        for p in parts:
            if isinstance(cur, dict) and p in cur:
                cur = cur[p]
            else:
                return default
        return cur

# ----------------------------
# Module state
# ----------------------------
_CONFIG: Optional[Config] = None
_CONFIG_LOCK = threading.RLock()

# ----------------------------
# Utilities
# ----------------------------
def _human_size_to_bytes(val: Union[str, int, None]) -> Optional[int]:
    if val is None:
        return None
    if isinstance(val, int):
        return val
    s = str(val).strip().upper()
    # longest suffixes first so "MB" is not read as "B"
    units = [("KB", 1024), ("MB", 1024**2), ("GB", 1024**3), ("K", 1024), ("M", 1024**2), ("G", 1024**3)]
    try:
        for suffix, mul in units:
            if s.endswith(suffix):
                num = float(s[: -len(suffix)].strip())
                return int(num * mul)
        return int(float(s))
    except ValueError:
        logger.warning("config: cannot parse human size '%s'", val)
        return None

def _expand_path(val: Optional[str]) -> Optional[str]:
    if val is None:
        return None
    return os.path.abspath(os.path.expanduser(os.path.expandvars(val)))

def _deep_merge(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    res = deepcopy(a)
    for k, v in b.items():
        if k in res and isinstance(res[k], dict) and isinstance(v, dict):
            res[k] = _deep_merge(res[k], v)
        else:
            res[k] = deepcopy(v)
    return res

def _find_candidates(explicit: Optional[str] = None) -> List[Path]:
    candidates: List[Path] = []
    env = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        candidates.append(Path(explicit))
    if env:
        candidates.append(Path(env))
    candidates.extend([
        Path.cwd() / "ghcpkgdb.yaml",
        Path.cwd() / "ghcpkgdb.yml",
        Path.cwd() / "ghcpkgdb.json",
        Path.home() / ".config" / "ghcpkgdb" / "config.yaml",
        Path("/etc") / "ghcpkgdb" / "config.yaml",
    ])
    return candidates

def _load_file(path: Path) -> Optional[Dict[str, Any]]:
    if not path.exists():
        return None
    try:
        txt = path.read_text(encoding="utf-8")
    except OSError as e:
        logger.error("config: failed reading %s: %s", path, e, exc_info=True)
        return None

    if path.suffix.lower() in (".yaml", ".yml"):
        try:
            data = yaml.safe_load(txt)
        except yaml.YAMLError as e:
            logger.warning("config: yaml parse fail %s: %s", path, e)
            return None
        return data if isinstance(data, dict) else {}

    try:
        data = json.loads(txt)
    except ValueError as e:
        logger.warning("config: json parse fail %s: %s", path, e)
        return None
    return data if isinstance(data, dict) else {}

def _normalize_and_coerce(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Normalize path fields, convert human sizes and coerce basic types."""
    out = deepcopy(cfg)

    log_cfg = out.get("logging")
    if isinstance(log_cfg, dict):
        if isinstance(log_cfg.get("file"), str) and log_cfg["file"]:
            log_cfg["file"] = _expand_path(log_cfg["file"])
        if "max_size" in log_cfg:
            ms = _human_size_to_bytes(log_cfg["max_size"])
            if ms is not None:
                log_cfg["max_size_bytes"] = ms

    gp = out.get("ghc_pkg")
    if isinstance(gp, dict):
        try:
            gp["jobs"] = int(gp.get("jobs", 1))
        except (TypeError, ValueError):
            logger.debug("config: failed to coerce ghc_pkg.jobs", exc_info=True)
        if gp.get("timeout") is not None:
            try:
                gp["timeout"] = float(gp["timeout"])
            except (TypeError, ValueError):
                logger.debug("config: failed to coerce ghc_pkg.timeout", exc_info=True)

    return out

def _validate_structure(cfg: Dict[str, Any]) -> Tuple[bool, List[str]]:
    """Return (ok, issues_list). Non-fatal warnings unless called with fatal=True in load."""
    warnings: List[str] = []
    for k in cfg.keys():
        if k not in DEFAULTS:
            warnings.append(f"Unknown top-level config key: {k}")
    gp = cfg.get("ghc_pkg", {})
    if isinstance(gp, dict):
        exe = gp.get("executable")
        if not isinstance(exe, str) or not exe:
            warnings.append("ghc_pkg.executable must be a non-empty string")
        jobs = gp.get("jobs")
        if not isinstance(jobs, int) or jobs < 1:
            warnings.append("ghc_pkg.jobs must be integer >= 1")
        timeout = gp.get("timeout")
        if timeout is not None and (not isinstance(timeout, (int, float)) or timeout <= 0):
            warnings.append("ghc_pkg.timeout must be a positive number or null")
    else:
        warnings.append("ghc_pkg must be a mapping")
    log_cfg = cfg.get("logging", {})
    if isinstance(log_cfg, dict):
        ml = log_cfg.get("module_levels")
        if ml is not None and not isinstance(ml, dict):
            warnings.append("logging.module_levels should be a mapping")
    else:
        warnings.append("logging must be a mapping")
    return (len(warnings) == 0, warnings)

# ----------------------------
# Loading / reloading
# ----------------------------
def _find_path(explicit: Optional[str] = None) -> Optional[Path]:
    for p in _find_candidates(explicit):
        if p and p.exists():
            return p
    return None

def load(explicit_path: Optional[str] = None, fatal: bool = False) -> Config:
    """
    Load and merge config. If fatal=True then structural validation failures raise.
    Returns Config object.
    """
    global _CONFIG
    with _CONFIG_LOCK:
        cfg_path = _find_path(explicit_path)
        raw: Dict[str, Any] = {}
        if cfg_path:
            data = _load_file(cfg_path)
            if data is None:
                logger.warning("config: file found but could not be parsed: %s", str(cfg_path))
            else:
                raw = data
        merged = _deep_merge(DEFAULTS, raw)
        normalized = _normalize_and_coerce(merged)
        ok, issues = _validate_structure(normalized)
        if not ok:
            msg = f"config: validation issues: {issues}"
            if fatal:
                logger.error(msg)
                raise ValueError(msg)
            logger.warning(msg)
        cfg_obj = Config(raw=raw, merged=normalized, path=cfg_path)
        _CONFIG = cfg_obj
        logger.debug("config: loaded merged config (from=%s)", str(cfg_path) if cfg_path else "<defaults>")
        return cfg_obj

def get_config() -> Config:
    global _CONFIG
    with _CONFIG_LOCK:
        if _CONFIG is None:
            _CONFIG = load()
        return _CONFIG

def reload(explicit_path: Optional[str] = None) -> Config:
    return load(explicit_path)

def validate_config() -> Tuple[bool, List[str]]:
    return _validate_structure(get_config().merged)

# ----------------------------
# CLI for inspection
# ----------------------------
if __name__ == "__main__":
    import argparse
    ap = argparse.ArgumentParser(prog="ghcpkgdb-config", description="Inspect/validate ghcpkgdb config")
    ap.add_argument("--print", action="store_true", help="print merged config")
    ap.add_argument("--raw", action="store_true", help="print raw file config only (if file exists)")
    ap.add_argument("--validate", action="store_true", help="validate config and list issues")
    ap.add_argument("--path", help="explicit config path to load")
    args = ap.parse_args()
    cfg = load(args.path) if args.path else get_config()
    if args.raw:
        print(json.dumps(cfg.raw, indent=2, ensure_ascii=False))
    if args.print:
        print(json.dumps(cfg.merged, indent=2, ensure_ascii=False))
    if args.validate:
        ok, issues = validate_config()
        print("OK:", ok)
        for it in issues:
            print(" -", it)

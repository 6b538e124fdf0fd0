# ghcpkgdb/modules/logging.py
# -*- coding: utf-8 -*-
"""
ghcpkgdb logging

Features:
 - Integration with modules.config (reload on demand)
 - Console color formatter
 - Rotating file handler
 - Module-level configurable log levels (module_levels)
 - Thread-safe reconfiguration
"""

from __future__ import annotations
import sys
import logging
import logging.handlers
import threading
from pathlib import Path
from typing import Dict, Any, Optional, List

from ghcpkgdb.modules.config import get_config

# Logger for this module
_logger = logging.getLogger("ghcpkgdb.logging")

DEFAULT_FORMAT = "[%(asctime)s] [%(levelname)s] [%(pkgdb_module)s] %(message)s"
DEFAULT_FILE_FORMAT = "%(asctime)s %(levelname)s [%(pkgdb_module)s] %(message)s"

# ----------------------
# Color formatter
# ----------------------
class ColorFormatter(logging.Formatter):
    COLORS = {
        logging.DEBUG: "\033[37m",    # light gray
        logging.INFO: "\033[36m",     # cyan
        logging.WARNING: "\033[33m",  # yellow
        logging.ERROR: "\033[31m",    # red
        logging.CRITICAL: "\033[41;37m", # white on red
    }
    RESET = "\033[0m"

    def __init__(self, fmt: Optional[str] = None, datefmt: Optional[str] = None, color: bool = True):
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.color = color

    def format(self, record):
        msg = super().format(record)
        if self.color:
            color = self.COLORS.get(record.levelno, "")
            return f"{color}{msg}{self.RESET}"
        return msg

# ----------------------
# Module-level filter for per-module levels
# ----------------------
class ModuleLevelFilter(logging.Filter):
    def __init__(self, module_levels: Dict[str, str]):
        super().__init__()
        # convert level names to numeric
        self.module_levels = {m: getattr(logging, str(lvl).upper(), logging.INFO) for m, lvl in (module_levels or {}).items()}

    def filter(self, record):
        mod = getattr(record, "pkgdb_module", None)
        if mod and mod in self.module_levels:
            return record.levelno >= self.module_levels[mod]
        return True

class _ModuleDefaultFilter(logging.Filter):
    """Records emitted without an adapter still need pkgdb_module for the formats."""

    def filter(self, record):
        if not hasattr(record, "pkgdb_module"):
            record.pkgdb_module = record.name
        return True

# ----------------------
# PkgDbLogger (singleton)
# ----------------------
class PkgDbLogger:
    _instance = None
    _singleton_lock = threading.Lock()

    def __new__(cls):
        with cls._singleton_lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._inited = False
        return cls._instance

    def __init__(self):
        if self._inited:
            return
        self._lock = threading.RLock()

        # core python logger
        self._root = logging.getLogger("ghcpkgdb")
        self._root.propagate = False

        self._handlers: List[logging.Handler] = []
        self._module_filter: Optional[ModuleLevelFilter] = None

        try:
            cfg = get_config().merged.get("logging", {})
        except ValueError:
            _logger.exception("logging: config unavailable, using defaults")
            cfg = {}
        self._apply_config(cfg)
        self._inited = True

    # ----------------------
    # Configuration (apply/reload)
    # ----------------------
    def _apply_config(self, cfg: Dict[str, Any]):
        with self._lock:
            for h in list(self._handlers):
                self._root.removeHandler(h)
                h.close()
            self._handlers.clear()

            # module-level override map
            if self._module_filter is not None:
                self._root.removeFilter(self._module_filter)
            self._module_filter = ModuleLevelFilter(cfg.get("module_levels", {}) or {})
            self._root.addFilter(self._module_filter)

            level = getattr(logging, str(cfg.get("level", "INFO")).upper(), logging.INFO)
            datefmt = cfg.get("datefmt", "%H:%M:%S")

            # console handler
            ch = logging.StreamHandler(sys.stderr)
            ch.setLevel(level)
            ch.addFilter(_ModuleDefaultFilter())
            ch.setFormatter(ColorFormatter(cfg.get("format") or DEFAULT_FORMAT, datefmt=datefmt, color=bool(cfg.get("color", True))))
            self._root.addHandler(ch)
            self._handlers.append(ch)

            # rotating file handler
            file_level = logging.NOTSET
            if cfg.get("file"):
                try:
                    file_path = Path(cfg["file"]).expanduser()
                    file_path.parent.mkdir(parents=True, exist_ok=True)
                    max_bytes = _parse_size(cfg.get("max_size_bytes") or cfg.get("max_size", "10M"))
                    backups = int(cfg.get("backups", 5))
                    fh = logging.handlers.RotatingFileHandler(str(file_path), maxBytes=max_bytes or 10 * 1024 * 1024, backupCount=backups, encoding="utf-8")
                    file_level = getattr(logging, str(cfg.get("file_level", "DEBUG")).upper(), logging.DEBUG)
                    fh.setLevel(file_level)
                    fh.addFilter(_ModuleDefaultFilter())
                    fh.setFormatter(logging.Formatter(cfg.get("format") or DEFAULT_FILE_FORMAT, datefmt=datefmt))
                    self._root.addHandler(fh)
                    self._handlers.append(fh)
                except OSError:
                    _logger.exception("logging: failed to configure file handler")
                    file_level = logging.NOTSET

            # root passes the most verbose level any handler wants
            self._root.setLevel(min(level, file_level) if file_level else level)
            _logger.debug("logging: configuration applied")

    def reload_config(self):
        """Reload config from modules.config and re-apply logging config."""
        self._apply_config(get_config().merged.get("logging", {}))

    def set_level(self, level: int):
        with self._lock:
            self._root.setLevel(level)
            for h in self._handlers:
                if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler):
                    h.setLevel(level)

    # ----------------------
    # Public API
    # ----------------------
    def get_logger(self, module_name: str) -> logging.LoggerAdapter:
        """Return a LoggerAdapter that injects 'pkgdb_module' into records."""
        return logging.LoggerAdapter(self._root, {"pkgdb_module": module_name})

# ----------------------
# Helper parse size (public)
# ----------------------
def _parse_size(s: Any) -> Optional[int]:
    if s is None:
        return None
    if isinstance(s, int):
        return s
    ss = str(s).strip().upper()
    try:
        if ss.endswith("KB"):
            return int(float(ss[:-2]) * 1024)
        if ss.endswith("K"):
            return int(float(ss[:-1]) * 1024)
        if ss.endswith("MB"):
            return int(float(ss[:-2]) * 1024**2)
        if ss.endswith("M"):
            return int(float(ss[:-1]) * 1024**2)
        if ss.endswith("GB"):
            return int(float(ss[:-2]) * 1024**3)
        if ss.endswith("G"):
            return int(float(ss[:-1]) * 1024**3)
        return int(float(ss))
    except ValueError:
        _logger.debug("logging: parse size failed for %s", s, exc_info=True)
        return None

# ----------------------
# Public factory
# ----------------------
_GLOBAL_LOGGER = PkgDbLogger()

def get_logger(module: str) -> logging.LoggerAdapter:
    return _GLOBAL_LOGGER.get_logger(module)

def reload_config():
    return _GLOBAL_LOGGER.reload_config()

def set_level(level: int):
    return _GLOBAL_LOGGER.set_level(level)

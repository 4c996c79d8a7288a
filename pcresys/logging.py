# pcresys/logging.py
# -*- coding: utf-8 -*-
"""
pcresys logging

Features:
 - Console color formatter (stderr; stdout carries the build directives)
 - Rotating file handler
 - Module-level LoggerAdapter injecting 'pcresys_module' into records
"""

from __future__ import annotations

import sys
import logging
import logging.handlers
from pathlib import Path
from typing import Any, Dict, List, Optional

from pcresys.errors import ConfigurationError

_logger = logging.getLogger("pcresys.logging")

DEFAULT_FORMAT = "[%(asctime)s] [%(levelname)s] [%(pcresys_module)s] %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)s [%(pcresys_module)s] %(message)s"


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
        if not hasattr(record, "pcresys_module"):
            record.pcresys_module = record.name
        msg = super().format(record)
        if self.color:
            color = self.COLORS.get(record.levelno, "")
            return f"{color}{msg}{self.RESET}"
        return msg


class _PlainFormatter(logging.Formatter):
    def format(self, record):
        if not hasattr(record, "pcresys_module"):
            record.pcresys_module = record.name
        return super().format(record)


# ----------------------
# Helper parse size
# ----------------------
def parse_size(s: Any) -> Optional[int]:
    """'10M' -> 10485760. Returns None when unparseable."""
    if s is None:
        return None
    if isinstance(s, int):
        return s
    ss = str(s).strip().upper()
    units = (("KB", 1024), ("K", 1024), ("MB", 1024**2), ("M", 1024**2), ("GB", 1024**3), ("G", 1024**3))
    try:
        for suffix, mul in units:
            if ss.endswith(suffix):
                return int(float(ss[: -len(suffix)]) * mul)
        return int(float(ss))
    except ValueError:
        _logger.debug("logging: parse size failed for %s", s)
        return None


# ----------------------
# Configuration
# ----------------------
_HANDLERS: List[logging.Handler] = []


def reset_handlers() -> None:
    """Detach and close every handler configure() installed."""
    root = logging.getLogger("pcresys")
    for h in list(_HANDLERS):
        root.removeHandler(h)
        h.close()
    _HANDLERS.clear()


def configure(cfg: Optional[Dict[str, Any]] = None, verbose: bool = False, stream=None) -> logging.Logger:
    """Apply the 'logging' config section to the 'pcresys' logger tree. Safe to call again."""
    cfg = cfg or {}
    reset_handlers()
    root = logging.getLogger("pcresys")

    level_name = "DEBUG" if verbose else str(cfg.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)
    root.setLevel(level)

    ch = logging.StreamHandler(stream or sys.stderr)
    ch.setLevel(level)
    fmt = cfg.get("format") or DEFAULT_FORMAT
    datefmt = cfg.get("datefmt", "%H:%M:%S")
    color = bool(cfg.get("color", True)) and hasattr(ch.stream, "isatty") and ch.stream.isatty()
    ch.setFormatter(ColorFormatter(fmt, datefmt=datefmt, color=color))
    root.addHandler(ch)
    _HANDLERS.append(ch)

    if cfg.get("file"):
        file_path = Path(cfg["file"]).expanduser()
        max_bytes = parse_size(cfg.get("max_size", "10M")) or 10 * 1024 * 1024
        backups = int(cfg.get("backups", 3))
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            fh = logging.handlers.RotatingFileHandler(str(file_path), maxBytes=max_bytes, backupCount=backups, encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"cannot open log file {file_path}: {e}") from e
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(_PlainFormatter(FILE_FORMAT, datefmt=datefmt))
        root.addHandler(fh)
        _HANDLERS.append(fh)
        # the file gets everything, the console keeps its own level
        root.setLevel(logging.DEBUG)

    return root


def get_logger(module_name: str) -> logging.LoggerAdapter:
    """Return a LoggerAdapter that injects 'pcresys_module' into records."""
    base = logging.getLogger(f"pcresys.{module_name}")
    return logging.LoggerAdapter(base, {"pcresys_module": module_name})

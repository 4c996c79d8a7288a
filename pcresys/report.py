# pcresys/report.py
# -*- coding: utf-8 -*-
"""Writes the native library search directories for the host build to pick up."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import IO, Optional, Sequence, Union

from pcresys.config import get_config
from pcresys.logging import get_logger

logger = get_logger("report")


def format_directive(path: Union[str, os.PathLike], directive: Optional[str] = None) -> str:
    directive = directive or get_config().get("report.directive", "cargo:rustc-link-search=native=")
    return f"{directive}{Path(path).absolute()}"


def report(paths: Sequence[Union[str, os.PathLike]], *, stream: Optional[IO[str]] = None,
           directive: Optional[str] = None) -> None:
    """One directive line per path on `stream` (stdout by default)."""
    if not paths:
        raise ValueError("report() needs at least one library path")
    out = stream or sys.stdout
    for p in paths:
        line = format_directive(p, directive)
        logger.debug("emit %s", line)
        out.write(line + "\n")
    out.flush()

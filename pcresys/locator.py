# pcresys/locator.py
# -*- coding: utf-8 -*-
"""
locator.py - looks for a system libpcre through pkg-config

API:
  res = locate("libpcre", "8.20")
  if res.found: res.link_paths -> ["/usr/lib", ...]

A miss is a normal outcome (it sends the caller down the bundled build), so
nothing in here raises for a missing library, an old version, or a missing
pkg-config binary.
"""

from __future__ import annotations

import os
import shlex
import subprocess
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from pcresys.config import get_config
from pcresys.logging import get_logger

logger = get_logger("locator")


@dataclass(frozen=True)
class ProbeResult:
    found: bool
    link_paths: List[str] = field(default_factory=list)
    reason: Optional[str] = None

    @classmethod
    def not_found(cls, reason: str) -> "ProbeResult":
        return cls(found=False, link_paths=[], reason=reason)


def split_flags(out: str, posix: Optional[bool] = None) -> List[str]:
    """Split pkg-config output; non-POSIX mode keeps backslashes in Windows paths."""
    if posix is None:
        posix = os.name == "posix"
    return shlex.split(out, posix=posix)


def _pkg_config_exe(default: Optional[str] = None) -> str:
    return os.environ.get("PKG_CONFIG") or default or get_config().get("locator.pkg_config", "pkg-config")


class Locator:
    def __init__(self, pkg_config: Optional[str] = None, runner: Optional[Callable[..., subprocess.CompletedProcess]] = None):
        self.pkg_config = _pkg_config_exe(pkg_config)
        self._runner = runner or subprocess.run

    def _query(self, *args: str) -> Optional[str]:
        """Run pkg-config; stdout on success, None on a non-zero exit."""
        cmd = [self.pkg_config, *args]
        logger.debug("RUN: %s", " ".join(cmd))
        result = self._runner(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True, check=False)
        if result.returncode != 0:
            logger.debug("pkg-config rc=%s stderr=%s", result.returncode, (result.stderr or "").strip())
            return None
        return (result.stdout or "").strip()

    def link_paths(self, library_name: str) -> List[str]:
        paths: List[str] = []
        out = self._query("--libs-only-L", library_name) or ""
        for token in split_flags(out):
            if token.startswith("-L") and len(token) > 2:
                p = token[2:]
                if p not in paths:
                    paths.append(p)
        if not paths:
            # no -L flags: library lives in a default linker dir
            libdir = self._query("--variable=libdir", library_name)
            if libdir:
                paths.append(libdir)
        return paths

    def locate(self, library_name: str, minimum_version: str) -> ProbeResult:
        try:
            if self._query(f"--atleast-version={minimum_version}", library_name) is None:
                logger.info("%s >= %s not provided by the system", library_name, minimum_version)
                return ProbeResult.not_found(f"{library_name} >= {minimum_version} not found")
            paths = self.link_paths(library_name)
        except FileNotFoundError as e:
            logger.info("%s unavailable (%s); using bundled sources", self.pkg_config, e)
            return ProbeResult.not_found(f"{self.pkg_config} not available")
        except OSError as e:
            logger.warning("%s could not be run: %s", self.pkg_config, e)
            return ProbeResult.not_found(str(e))
        if not paths:
            logger.info("%s found but pkg-config reported no library directory", library_name)
            return ProbeResult.not_found("no library directory reported")
        logger.info("using system %s (link paths: %s)", library_name, ", ".join(paths))
        return ProbeResult(found=True, link_paths=paths)


def locate(library_name: str, minimum_version: str, *, force_bundled: Optional[bool] = None) -> ProbeResult:
    """Probe the system for library_name >= minimum_version."""
    if force_bundled is None:
        force_bundled = bool(get_config().get("locator.force_bundled", False))
    if force_bundled:
        logger.info("bundled build forced; skipping pkg-config probe")
        return ProbeResult.not_found("bundled build forced")
    return Locator().locate(library_name, minimum_version)

# pcresys/resolver.py
# -*- coding: utf-8 -*-
"""
resolver.py - decides between the system libpcre and the bundled build

Flow:
  locate (pkg-config) -- found --> report(link paths)
                      -- miss  --> extract bundled tarball -> toolchain -> report(library dir)

Every failure propagates as a PcreSysError; nothing here catches them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, List, Optional

from pcresys import buildsystem as _buildsystem
from pcresys import extractor as _extractor
from pcresys import locator as _locator
from pcresys import report as _report
from pcresys.config import BuildEnv, Config, get_config
from pcresys.logging import get_logger

logger = get_logger("resolver")


@dataclass
class ResolveResult:
    source: str                 # "system" | "bundled"
    link_paths: List[str] = field(default_factory=list)


class Resolver:
    def __init__(self, build_env: BuildEnv, cfg: Optional[Config] = None, *, dry_run: bool = False,
                 locate: Optional[Callable[..., Any]] = None, extract: Optional[Callable[..., Any]] = None,
                 builder: Optional[_buildsystem.BuildSystem] = None, emit: Optional[Callable[..., Any]] = None):
        self.env = build_env
        self.cfg = cfg or get_config()
        self.dry_run = dry_run
        self._locate = locate or _locator.locate
        self._extract = extract or _extractor.extract_bundled
        self._builder = builder
        self._emit = emit or _report.report

    @property
    def library_name(self) -> str:
        return self.cfg.get("library.name", "libpcre")

    @property
    def min_version(self) -> str:
        return self.cfg.get("library.min_version", "8.20")

    @property
    def bundled_version(self) -> str:
        return self.cfg.get("library.bundled_version", "8.37")

    def bundled_archive(self) -> Path:
        archive_dir = self.cfg.get("library.archive_dir", "ext")
        return self.env.manifest_dir / archive_dir / f"pcre-{self.bundled_version}.tar.bz2"

    def source_root(self) -> Path:
        return self.env.out_dir / f"pcre-{self.bundled_version}"

    def builder(self) -> _buildsystem.BuildSystem:
        if self._builder is None:
            # family is fixed here for the whole run
            self._builder = _buildsystem.BuildSystem(self.env.family, dry_run=self.dry_run)
        return self._builder

    def build_bundled(self) -> List[str]:
        builder = self.builder()
        logger.info("building bundled pcre %s with the %s pipeline", self.bundled_version, builder.pipeline)
        if self.dry_run:
            logger.info("[dry-run] would extract %s -> %s", self.bundled_archive(), self.env.out_dir)
        else:
            self._extract(self.bundled_archive(), self.env.out_dir, posix=self.env.is_posix)
        result = builder.build(self.source_root(), self.env.out_dir)
        return [str(result.library_path)]

    def resolve(self) -> ResolveResult:
        probe = self._locate(self.library_name, self.min_version)
        if probe.found:
            res = ResolveResult(source="system", link_paths=list(probe.link_paths))
        else:
            logger.info("falling back to bundled sources (%s)", probe.reason or "not found")
            res = ResolveResult(source="bundled", link_paths=self.build_bundled())
        self._emit(res.link_paths)
        return res


def resolve(build_env: BuildEnv, *, dry_run: bool = False) -> ResolveResult:
    return Resolver(build_env, dry_run=dry_run).resolve()

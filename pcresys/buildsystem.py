# pcresys/buildsystem.py
# -*- coding: utf-8 -*-
"""
buildsystem.py - drives the native toolchain over the extracted pcre sources

API:
  bs = BuildSystem(family="posix")
  result = bs.build(source_root, output_root)   # -> BuildPipelineResult

Pipelines (picked once, from the platform family; there is no fallback):
  posix : autoreconf -> ./configure --with-pic ... --prefix=<out> -> make install
          library dir = <out>/lib
  other : cmake . -D... -> cmake --build .
          library dir = <source_root>

Tool output is not captured; only exit status and whether the executable
exists matter. The first failing step raises (ToolMissing / ToolFailed).
"""

from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from pcresys.config import get_config
from pcresys.errors import ToolFailed, ToolMissing
from pcresys.logging import get_logger

logger = get_logger("buildsystem")

AUTOTOOLS_HINT = "Are the Autotools installed?"
MAKE_HINT = "Is GNU Make installed?"
CMAKE_HINT = "Is CMake installed?"

CONFIGURE_FLAGS = [
    "--with-pic",
    "--disable-shared",
    "--disable-cpp",
    "--enable-jit",
    "--enable-utf",
    "--enable-unicode-properties",
]

CMAKE_OPTIONS = [
    "-DBUILD_SHARED_LIBS=OFF",
    "-DPCRE_BUILD_PCRECPP=OFF",
    "-DPCRE_BUILD_PCREGREP=OFF",
    "-DPCRE_BUILD_TESTS=OFF",
    "-DPCRE_BUILD_PCRE8=ON",
    "-DPCRE_SUPPORT_JIT=ON",
    "-DPCRE_SUPPORT_UTF=ON",
    "-DPCRE_SUPPORT_UNICODE_PROPERTIES=ON",
]


@dataclass
class Step:
    name: str
    argv: List[str]
    hint: Optional[str] = None


@dataclass
class BuildPipelineResult:
    success: bool
    library_path: Path
    pipeline: str
    steps: List[Dict[str, Any]] = field(default_factory=list)


# --- environment assembly ---
def assemble_env(extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """os.environ plus build.env from config plus `extra`."""
    env = dict(os.environ)
    cfg_env = get_config().get("build.env", {}) or {}
    env.update({str(k): str(v) for k, v in cfg_env.items()})
    if extra:
        env.update(extra)
    return env


# --- pipelines ---
def autotools_steps(output_root: Path) -> List[Step]:
    return [
        Step("autoreconf", ["autoreconf"], AUTOTOOLS_HINT),
        Step("configure", ["./configure", *CONFIGURE_FLAGS, f"--prefix={output_root}"]),
        Step("install", ["make", "install"], MAKE_HINT),
    ]


def cmake_steps() -> List[Step]:
    return [
        Step("cmake-configure", ["cmake", ".", *CMAKE_OPTIONS], CMAKE_HINT),
        Step("cmake-build", ["cmake", "--build", "."], CMAKE_HINT),
    ]


def select_pipeline(family: str) -> str:
    return "autotools" if family == "posix" else "cmake"


class BuildSystem:
    def __init__(self, family: str, *, dry_run: bool = False, env: Optional[Dict[str, str]] = None,
                 runner: Optional[Callable[..., subprocess.CompletedProcess]] = None):
        self.family = family
        self.pipeline = select_pipeline(family)
        self.dry_run = dry_run
        self.env = env
        self._runner = runner or subprocess.run

    def run_step(self, step: Step, cwd: Path) -> Dict[str, Any]:
        """Run one step in cwd, raising on a missing tool or non-zero exit."""
        record: Dict[str, Any] = {"step": step.name, "argv": list(step.argv), "cwd": str(cwd), "rc": None}
        if self.dry_run:
            logger.info("[dry-run] would run %s (cwd=%s)", " ".join(step.argv), cwd)
            return record
        logger.info("RUN: %s (cwd=%s)", " ".join(step.argv), cwd)
        env = self.env if self.env is not None else assemble_env()
        try:
            proc = self._runner(step.argv, cwd=str(cwd), env=env, check=False)
        except FileNotFoundError as e:
            raise ToolMissing(step.argv[0], step.hint, e) from e
        except OSError as e:
            raise ToolFailed(step.argv, detail=str(e)) from e
        record["rc"] = proc.returncode
        if proc.returncode != 0:
            logger.error("%s exited with status %s", step.argv[0], proc.returncode)
            raise ToolFailed(step.argv, proc.returncode)
        return record

    def steps_for(self, source_root: Path, output_root: Path) -> List[Step]:
        if self.pipeline == "autotools":
            return autotools_steps(output_root)
        return cmake_steps()

    def library_path(self, source_root: Path, output_root: Path) -> Path:
        if self.pipeline == "autotools":
            return output_root / "lib"
        # cmake drops the archives next to the sources
        return source_root

    def build(self, source_root: os.PathLike, output_root: os.PathLike) -> BuildPipelineResult:
        source_root = Path(source_root)
        output_root = Path(output_root)
        logger.info("BuildSystem: %s pipeline in %s (dry_run=%s)", self.pipeline, source_root, self.dry_run)
        records = []
        for step in self.steps_for(source_root, output_root):
            records.append(self.run_step(step, source_root))
        lib = self.library_path(source_root, output_root)
        logger.info("BuildSystem: %s finished, library dir %s", self.pipeline, lib)
        return BuildPipelineResult(success=True, library_path=lib, pipeline=self.pipeline, steps=records)


def build(source_root: os.PathLike, output_root: os.PathLike, family: str, *, dry_run: bool = False) -> BuildPipelineResult:
    return BuildSystem(family, dry_run=dry_run).build(source_root, output_root)

# pcresys/config.py
# -*- coding: utf-8 -*-
"""
pcresys central configuration loader

Features:
- Read YAML/JSON config from a few locations (explicit, env override, manifest dir, cwd)
- Merge with authoritative DEFAULTS, normalize/coerce types
- Validate structure, warn or raise (fatal optional)
- Typed access via Config dataclass (get_config(), Config.get("a.b"))
- BuildEnv: the inputs handed over by the host build (manifest dir, out dir, target family)
"""

from __future__ import annotations

import os
import json
import logging
from copy import deepcopy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from pcresys.errors import ConfigurationError

logger = logging.getLogger("pcresys.config")

# ----------------------------
# DEFAULT configuration (authoritative base)
# ----------------------------
DEFAULTS: Dict[str, Any] = {
    "library": {
        "name": "libpcre",
        "min_version": "8.20",
        "bundled_version": "8.37",
        "archive_dir": "ext",
    },
    "locator": {
        "pkg_config": "pkg-config",
        "force_bundled": False,
    },
    "build": {
        "env": {},
    },
    "report": {
        "directive": "cargo:rustc-link-search=native=",
    },
    "logging": {
        "level": "INFO",
        "color": True,
        "file": None,
        "max_size": "10M",
        "backups": 3,
    },
}

_TRUTHY = {"1", "true", "yes", "on"}

# ----------------------------
# Dataclasses
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

    def as_dict(self) -> Dict[str, Any]:
        return deepcopy(self.merged)


@dataclass(frozen=True)
class BuildEnv:
    """Inputs supplied by the host build invocation."""
    manifest_dir: Path
    out_dir: Path
    family: str

    @property
    def is_posix(self) -> bool:
        return self.family == "posix"

    @classmethod
    def from_environ(cls, manifest_dir: Optional[str] = None, out_dir: Optional[str] = None,
                     family: Optional[str] = None, environ: Optional[Dict[str, str]] = None) -> "BuildEnv":
        env = os.environ if environ is None else environ
        manifest = manifest_dir or env.get("CARGO_MANIFEST_DIR") or os.getcwd()
        out = out_dir or env.get("OUT_DIR")
        if not out:
            raise ConfigurationError("OUT_DIR is not set and no --out-dir was given")
        fam = family or env.get("CARGO_CFG_TARGET_FAMILY") or default_family()
        return cls(manifest_dir=Path(manifest).resolve(), out_dir=Path(out).resolve(), family=normalize_family(fam))


def normalize_family(family: str) -> str:
    # cargo reports "unix", or a list such as "unix,wasm"
    parts = [p.strip().lower() for p in family.split(",") if p.strip()]
    if any(p in ("unix", "posix") for p in parts):
        return "posix"
    return ",".join(parts)


def default_family() -> str:
    return "posix" if os.name == "posix" else "windows"


# ----------------------------
# Utilities
# ----------------------------
def is_truthy(val: Any) -> bool:
    if isinstance(val, bool):
        return val
    if val is None:
        return False
    return str(val).strip().lower() in _TRUTHY


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


def _find_candidates(explicit: Optional[str] = None, manifest_dir: Optional[Path] = None) -> List[Path]:
    candidates: List[Path] = []
    env = os.environ.get("PCRESYS_CONFIG")
    if explicit:
        candidates.append(Path(explicit))
    if env:
        candidates.append(Path(env))
    if manifest_dir:
        candidates.append(Path(manifest_dir) / "pcresys.yaml")
    candidates.extend([
        Path.cwd() / "pcresys.yaml",
        Path.cwd() / "pcresys.yml",
        Path.cwd() / "pcresys.json",
    ])
    return candidates


def _load_file(path: Path) -> Dict[str, Any]:
    try:
        txt = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"cannot read config {path}: {e}") from e
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(txt)
        else:
            data = yaml.safe_load(txt)
    except (ValueError, yaml.YAMLError) as e:
        raise ConfigurationError(f"cannot parse config {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"config {path} must contain a mapping at top level")
    return data


def _normalize_and_coerce(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Normalize path fields, env overrides and basic types."""
    out = deepcopy(cfg)
    lg = out.get("logging")
    if isinstance(lg, dict) and lg.get("file"):
        lg["file"] = _expand_path(str(lg["file"]))
    loc = out.get("locator")
    if isinstance(loc, dict):
        if os.environ.get("PCRESYS_BUILD_FROM_SOURCE") is not None:
            loc["force_bundled"] = os.environ["PCRESYS_BUILD_FROM_SOURCE"]
        loc["force_bundled"] = is_truthy(loc.get("force_bundled"))
    lib = out.get("library")
    if isinstance(lib, dict):
        # yaml reads 8.20 as the float 8.2
        for key in ("name", "min_version", "bundled_version", "archive_dir"):
            if isinstance(lib.get(key), float):
                raise ConfigurationError(f"library.{key} must be quoted in the config file, got {lib[key]!r}")
            if lib.get(key) is not None:
                lib[key] = str(lib[key])
    build = out.get("build")
    if isinstance(build, dict) and isinstance(build.get("env"), dict):
        build["env"] = {str(k): str(v) for k, v in build["env"].items()}
    return out


def _validate_structure(cfg: Dict[str, Any]) -> Tuple[bool, List[str]]:
    """Return (ok, issues_list)."""
    issues: List[str] = []
    for k in cfg.keys():
        if k not in DEFAULTS:
            issues.append(f"Unknown top-level config key: {k}")
    for section in DEFAULTS:
        if not isinstance(cfg.get(section), dict):
            issues.append(f"{section} must be a mapping")
    if isinstance(cfg.get("build"), dict) and not isinstance(cfg["build"].get("env"), dict):
        issues.append("build.env must be a mapping")
    if isinstance(cfg.get("library"), dict):
        for key in ("name", "min_version", "bundled_version"):
            if not cfg["library"].get(key):
                issues.append(f"library.{key} must be a non-empty string")
    if isinstance(cfg.get("report"), dict) and not cfg["report"].get("directive"):
        issues.append("report.directive must be a non-empty string")
    return (len(issues) == 0, issues)


# ----------------------------
# Loading
# ----------------------------
_CONFIG: Optional[Config] = None


def load(explicit_path: Optional[str] = None, manifest_dir: Optional[Path] = None, fatal: bool = False) -> Config:
    """
    Load and merge config. If fatal=True then validation failures raise
    ConfigurationError, otherwise they are logged as warnings.
    """
    global _CONFIG
    raw: Dict[str, Any] = {}
    cfg_path: Optional[Path] = None
    for cand in _find_candidates(explicit_path, manifest_dir):
        if cand.exists():
            cfg_path = cand
            raw = _load_file(cand)
            break
    if explicit_path and cfg_path is None:
        raise ConfigurationError(f"config file not found: {explicit_path}")
    merged = _deep_merge(DEFAULTS, raw)
    normalized = _normalize_and_coerce(merged)
    ok, issues = _validate_structure(normalized)
    if not ok:
        msg = f"config: validation issues: {issues}"
        if fatal:
            raise ConfigurationError(msg)
        logger.warning(msg)
    _CONFIG = Config(raw=raw, merged=normalized, path=cfg_path)
    logger.debug("config: loaded merged config (from=%s)", str(cfg_path) if cfg_path else "<defaults>")
    return _CONFIG


def get_config() -> Config:
    global _CONFIG
    if _CONFIG is None:
        _CONFIG = load()
    return _CONFIG


def reset() -> None:
    """Forget the cached config (next get_config() reloads)."""
    global _CONFIG
    _CONFIG = None

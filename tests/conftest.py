"""
Pytest configuration for pcresys tests.

Every test starts from the built-in DEFAULTS: environment overrides are
cleared and the cached config is reloaded.
"""
import io
import logging
import subprocess
import tarfile
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from pcresys import config
from pcresys import logging as log_mod


_ENV_VARS = ("PCRESYS_CONFIG", "PKG_CONFIG", "PCRESYS_BUILD_FROM_SOURCE",
             "CARGO_MANIFEST_DIR", "OUT_DIR", "CARGO_CFG_TARGET_FAMILY")


@pytest.fixture(autouse=True)
def clean_config(monkeypatch, tmp_path):
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    # keep stray pcresys.yaml files in the invoking directory out of the picture
    monkeypatch.chdir(tmp_path)
    config.reset()
    config.load()
    yield
    config.reset()
    log_mod.reset_handlers()
    logging.getLogger("pcresys").setLevel(logging.NOTSET)


def make_tar(entries: Sequence[Tuple[str, int, Optional[bytes]]], compression: str = "bz2") -> bytes:
    """Build a tarball in memory. data=None marks a directory (name may end with '/')."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode=f"w:{compression}" if compression else "w") as tf:
        for name, mode, data in entries:
            info = tarfile.TarInfo(name.rstrip("/"))
            info.mode = mode
            if data is None:
                info.type = tarfile.DIRTYPE
                tf.addfile(info)
            else:
                info.size = len(data)
                tf.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def snapshot_tree(root: Path) -> Dict[str, Tuple[str, Optional[bytes]]]:
    out = {}
    for p in sorted(root.rglob("*")):
        rel = p.relative_to(root).as_posix()
        out[rel] = ("dir", None) if p.is_dir() else ("file", p.read_bytes())
    return out


class FakeRunner:
    """Stands in for subprocess.run; records argv/cwd of every call."""

    def __init__(self, returncodes: Optional[Dict[str, int]] = None, missing: Sequence[str] = (),
                 stdout: Optional[Dict[str, str]] = None):
        self.returncodes = returncodes or {}
        self.missing = set(missing)
        self.stdout = stdout or {}
        self.calls: List[dict] = []

    def __call__(self, argv, cwd=None, env=None, check=False, **kwargs):
        self.calls.append({"argv": list(argv), "cwd": cwd, "env": env})
        exe = argv[0]
        if exe in self.missing:
            raise FileNotFoundError(2, "No such file or directory", exe)
        key = " ".join(argv)
        rc = self.returncodes.get(key, self.returncodes.get(exe, 0))
        out = self.stdout.get(key, "")
        return subprocess.CompletedProcess(argv, rc, stdout=out, stderr="")

    @property
    def argvs(self) -> List[List[str]]:
        return [c["argv"] for c in self.calls]


@pytest.fixture
def fake_runner():
    return FakeRunner


@pytest.fixture
def bundled_manifest(tmp_path):
    """A manifest dir with ext/pcre-8.37.tar.bz2 holding a tiny source tree."""
    manifest = tmp_path / "manifest"
    (manifest / "ext").mkdir(parents=True)
    data = make_tar([
        ("pcre-8.37/", 0o755, None),
        ("pcre-8.37/configure", 0o755, b"#!/bin/sh\nexit 0\n"),
        ("pcre-8.37/sub/", 0o755, None),
        ("pcre-8.37/sub/pcre_compile.c", 0o644, b"int main(void) { return 0; }\n"),
    ])
    (manifest / "ext" / "pcre-8.37.tar.bz2").write_bytes(data)
    return manifest

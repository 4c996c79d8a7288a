# pcresys/extractor.py
# -*- coding: utf-8 -*-
"""
extractor.py - unpacks the bundled source tarball

API:
  ex = Extractor(output_root, posix=True)
  ex.extract(fileobj)                 # any tar stream tarfile can sniff (bz2/gz/xz/plain)
  extract_bundled(archive_path, output_root)

The archive is read in stream mode: entries come one at a time, and each
entry's content is only readable until the next one is pulled. Parent
directories are created from each entry's own path, so archives that list
files before their directories still extract.
"""

from __future__ import annotations

import os
import shutil
import tarfile
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Dict, Iterable, Iterator, List, Optional, Set, Tuple

from pcresys.config import default_family
from pcresys.errors import ExtractionError
from pcresys.logging import get_logger

logger = get_logger("extractor")

COPY_BUFSIZE = 64 * 1024


@dataclass
class ArchiveEntry:
    name: str                       # '/'-separated, directories end with '/'
    mode: int = 0o644
    content: Optional[IO[bytes]] = None
    special: bool = False           # links, devices, fifos

    @property
    def is_dir(self) -> bool:
        return self.name.endswith("/")


def iter_entries(fileobj: IO[bytes]) -> Iterator[ArchiveEntry]:
    """Forward-only iteration over a tar stream."""
    with tarfile.open(fileobj=fileobj, mode="r|*") as tf:
        for member in tf:
            if member.isdir():
                yield ArchiveEntry(name=member.name.rstrip("/") + "/", mode=member.mode)
            elif member.isfile():
                yield ArchiveEntry(name=member.name, mode=member.mode, content=tf.extractfile(member))
            else:
                yield ArchiveEntry(name=member.name, mode=member.mode, special=True)


def split_entry_path(name: str) -> Tuple[List[str], str]:
    """'a/b/c' -> (['a', 'b'], 'c'); 'a/b/' -> (['a', 'b'], '')."""
    parts = name.split("/")
    final = parts.pop()
    parents = [p for p in parts if p not in ("", ".")]
    if final == ".":
        final = ""
    return parents, final


def _check_safe(name: str, parents: List[str], final: str) -> None:
    if name.startswith("/") or ".." in parents or final == "..":
        raise ExtractionError(name, None, ValueError("entry path escapes the output root"))


class Extractor:
    """Materializes archive entries under one output root. One instance per run."""

    def __init__(self, output_root: os.PathLike, posix: Optional[bool] = None):
        self.output_root = Path(output_root)
        self.posix = (default_family() == "posix") if posix is None else posix
        self.created: Set[str] = set()
        self.stats: Dict[str, int] = {"files": 0, "dirs": 0, "skipped": 0}
        self._dir_modes: Dict[str, Tuple[str, int]] = {}   # path -> (entry name, mode)

    # -------------------------
    # directory bookkeeping
    # -------------------------
    def _record(self, path: Path) -> bool:
        """True the first time a path is seen during this run."""
        key = os.path.normpath(str(path))
        if key in self.created:
            return False
        self.created.add(key)
        return True

    def _make_parents(self, entry_name: str, parent: Path) -> None:
        if not self._record(parent):
            return
        try:
            os.makedirs(parent)
            self.stats["dirs"] += 1
        except FileExistsError:
            pass
        except OSError as e:
            raise ExtractionError(entry_name, str(parent), e) from e

    def _ensure_root(self, entry_name: str) -> None:
        """Top-level entries have the output root as parent; create it on first use."""
        if os.path.isdir(self.output_root):
            self._record(self.output_root)
            return
        self._make_parents(entry_name, self.output_root)

    def _make_dir(self, entry_name: str, path: Path) -> None:
        if not self._record(path):
            return
        try:
            os.mkdir(path)
            self.stats["dirs"] += 1
        except FileExistsError:
            pass
        except OSError as e:
            raise ExtractionError(entry_name, str(path), e) from e

    # -------------------------
    # entries
    # -------------------------
    def _write_file(self, entry: ArchiveEntry, out_path: Path) -> None:
        try:
            if os.path.isfile(out_path) and not os.access(out_path, os.W_OK):
                # read-only leftover from an earlier run
                os.chmod(out_path, 0o600)
            with open(out_path, "wb") as fh:
                if entry.content is not None:
                    shutil.copyfileobj(entry.content, fh, COPY_BUFSIZE)
        except (OSError, EOFError, tarfile.TarError) as e:
            raise ExtractionError(entry.name, str(out_path), e) from e
        self.stats["files"] += 1

    def _chmod(self, entry_name: str, path: Path, mode: int) -> None:
        try:
            os.chmod(path, mode & 0o7777)
        except OSError as e:
            raise ExtractionError(entry_name, str(path), e) from e

    def extract_entry(self, entry: ArchiveEntry) -> Optional[Path]:
        """Materialize one entry; returns the output path (None when skipped)."""
        parents, final = split_entry_path(entry.name)
        _check_safe(entry.name, parents, final)
        if not parents and not final:
            logger.debug("skipping root entry %r", entry.name)
            return None
        if entry.special:
            logger.warning("skipping link/special member %s", entry.name)
            self.stats["skipped"] += 1
            return None

        parent = self.output_root.joinpath(*parents)
        if parents:
            self._make_parents(entry.name, parent)
        else:
            self._ensure_root(entry.name)

        if not final:
            out_path = parent
            self._make_dir(entry.name, out_path)
            if self.posix:
                # applied once the whole tree is written, a read-only dir would block its children
                self._dir_modes[os.path.normpath(str(out_path))] = (entry.name, entry.mode)
            return out_path

        out_path = parent / final
        self._write_file(entry, out_path)
        if self.posix:
            self._chmod(entry.name, out_path, entry.mode)
        return out_path

    def _apply_dir_modes(self) -> None:
        for key in sorted(self._dir_modes, reverse=True):
            entry_name, mode = self._dir_modes[key]
            self._chmod(entry_name, Path(key), mode)
        self._dir_modes.clear()

    def extract_entries(self, entries: Iterable[ArchiveEntry]) -> None:
        it = iter(entries)
        last = "<archive>"
        while True:
            try:
                entry = next(it)
            except StopIteration:
                break
            except (OSError, EOFError, tarfile.TarError) as e:
                raise ExtractionError(f"entry after {last}", str(self.output_root), e) from e
            self.extract_entry(entry)
            last = entry.name
        if self.posix:
            self._apply_dir_modes()
        logger.info("extracted %d files, %d directories into %s (skipped %d)",
                    self.stats["files"], self.stats["dirs"], self.output_root, self.stats["skipped"])

    def extract(self, fileobj: IO[bytes]) -> None:
        self.extract_entries(iter_entries(fileobj))


def extract(archive_stream: IO[bytes], output_root: os.PathLike, *, posix: Optional[bool] = None) -> Extractor:
    ex = Extractor(output_root, posix=posix)
    ex.extract(archive_stream)
    return ex


def extract_bundled(archive_path: os.PathLike, output_root: os.PathLike, *, posix: Optional[bool] = None) -> Extractor:
    """Open the vendored tarball at archive_path and extract it under output_root."""
    archive_path = Path(archive_path)
    logger.info("extracting %s -> %s", archive_path, output_root)
    try:
        fh = open(archive_path, "rb")
    except OSError as e:
        raise ExtractionError(archive_path.name, str(archive_path), e) from e
    with fh:
        return extract(fh, output_root, posix=posix)

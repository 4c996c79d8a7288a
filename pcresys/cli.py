#!/usr/bin/env python3
# pcresys/cli.py
"""
pcresys CLI - entry point invoked by the host build

Subcommands:
  resolve (default)   probe -> (extract -> build) -> print link-search directives
  probe               pkg-config probe only; prints found paths, exit 1 on miss
  extract ARCHIVE DEST

Every PcreSysError ends up in main(), which prints one diagnostic on stderr
and exits non-zero. stdout is reserved for the directives.
"""

from __future__ import annotations

import os
import sys
import argparse
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.markup import escape

from pcresys import config as config_mod
from pcresys import logging as log_mod
from pcresys.errors import ConfigurationError, PcreSysError
from pcresys.extractor import extract_bundled
from pcresys.locator import locate
from pcresys.resolver import Resolver

logger = log_mod.get_logger("cli")
console = Console(stderr=True)

EXIT_FAILED = 1
EXIT_CONFIG = 2


# -----------------------
# Small pretty helpers
# -----------------------
def print_ok(msg: str):
    console.print(f"[bold green]✔[/] {escape(msg)}", highlight=False, soft_wrap=True)


def print_err(msg: str):
    console.print(f"[bold red]✖[/] {escape(msg)}", highlight=False, soft_wrap=True)


# -----------------------
# Commands
# -----------------------
def cmd_resolve(args, cfg: config_mod.Config) -> int:
    env = config_mod.BuildEnv.from_environ(args.manifest_dir, args.out_dir, args.family)
    res = Resolver(env, cfg, dry_run=args.dry_run).resolve()
    logger.info("libpcre resolved from %s", res.source)
    return 0


def cmd_probe(args, cfg: config_mod.Config) -> int:
    probe = locate(cfg.get("library.name"), cfg.get("library.min_version"))
    if not probe.found:
        print_err(f"{cfg.get('library.name')} >= {cfg.get('library.min_version')}: {probe.reason}")
        return EXIT_FAILED
    for p in probe.link_paths:
        print(p)
    return 0


def cmd_extract(args, cfg: config_mod.Config) -> int:
    posix = None if args.family is None else config_mod.normalize_family(args.family) == "posix"
    ex = extract_bundled(args.archive, args.dest, posix=posix)
    print_ok(f"{ex.stats['files']} files, {ex.stats['dirs']} directories -> {args.dest}")
    return 0


COMMANDS = {
    "resolve": cmd_resolve,
    "probe": cmd_probe,
    "extract": cmd_extract,
}


# -----------------------
# Argparse wiring
# -----------------------
def make_parser():
    ap = argparse.ArgumentParser(prog="pcresys", description="Locate or build a static libpcre for the host build")
    ap.add_argument("--config", help="explicit config file (yaml/json)")
    ap.add_argument("--manifest-dir", help="root holding ext/ (default: $CARGO_MANIFEST_DIR)")
    ap.add_argument("--out-dir", help="scratch/output root (default: $OUT_DIR)")
    ap.add_argument("--family", help="platform family: posix or anything else (default: $CARGO_CFG_TARGET_FAMILY)")
    ap.add_argument("--dry-run", action="store_true", help="log toolchain commands instead of running them")
    ap.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = ap.add_subparsers(dest="cmd")

    sub.add_parser("resolve", help="probe, build if needed, print directives")
    sub.add_parser("probe", help="pkg-config probe only")
    p_extract = sub.add_parser("extract", help="extract a source tarball")
    p_extract.add_argument("archive", type=Path)
    p_extract.add_argument("dest", type=Path)
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    argv = argv if argv is not None else sys.argv[1:]
    parser = make_parser()
    args = parser.parse_args(argv)
    cmd = args.cmd or "resolve"

    try:
        manifest_dir = args.manifest_dir or os.environ.get("CARGO_MANIFEST_DIR")
        manifest = Path(manifest_dir) if manifest_dir else None
        cfg = config_mod.load(args.config, manifest_dir=manifest)
        log_mod.configure(cfg.get("logging", {}), verbose=args.verbose)
        return COMMANDS[cmd](args, cfg)
    except ConfigurationError as e:
        logger.debug("configuration error", exc_info=True)
        print_err(f"configuration: {e}")
        return EXIT_CONFIG
    except PcreSysError as e:
        logger.debug("%s failed", e.step, exc_info=True)
        print_err(f"{e.step} failed: {e}")
        return EXIT_FAILED


def run():
    sys.exit(main())


if __name__ == "__main__":
    run()

"""
CLI tests: the single top-level handler, exit codes, and the directives
printed on stdout. subprocess.run is swapped for a recording runner.
"""
import subprocess

import pytest

from conftest import FakeRunner, make_tar
from pcresys.cli import EXIT_CONFIG, EXIT_FAILED, main


@pytest.fixture
def cargo_env(monkeypatch, tmp_path, bundled_manifest):
    out = tmp_path / "out"
    out.mkdir()
    monkeypatch.setenv("CARGO_MANIFEST_DIR", str(bundled_manifest))
    monkeypatch.setenv("OUT_DIR", str(out))
    monkeypatch.setenv("CARGO_CFG_TARGET_FAMILY", "unix")
    return out


def _patch_run(monkeypatch, runner):
    monkeypatch.setattr(subprocess, "run", runner)
    return runner


def test_system_library_prints_its_paths(monkeypatch, capsys, cargo_env):
    runner = _patch_run(monkeypatch, FakeRunner(stdout={"pkg-config --libs-only-L libpcre": "-L/usr/lib"}))
    assert main([]) == 0
    out = capsys.readouterr().out
    assert out.splitlines() == ["cargo:rustc-link-search=native=/usr/lib"]
    assert all(argv[0] == "pkg-config" for argv in runner.argvs)
    assert not (cargo_env / "pcre-8.37").exists()


def test_bundled_build_prints_lib_dir(monkeypatch, capsys, cargo_env):
    runner = _patch_run(monkeypatch, FakeRunner(missing=["pkg-config"]))
    assert main(["resolve"]) == 0
    assert capsys.readouterr().out.splitlines() == [f"cargo:rustc-link-search=native={cargo_env / 'lib'}"]
    assert [a[0] for a in runner.argvs] == ["pkg-config", "autoreconf", "./configure", "make"]
    assert (cargo_env / "pcre-8.37" / "configure").is_file()


def test_missing_autoreconf_is_one_diagnostic_and_exit_1(monkeypatch, capsys, cargo_env):
    runner = _patch_run(monkeypatch, FakeRunner(missing=["pkg-config", "autoreconf"]))
    assert main([]) == EXIT_FAILED
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "autoreconf failed" in captured.err
    assert "Are the Autotools installed?" in captured.err
    assert ["./configure"] not in [a[:1] for a in runner.argvs]


def test_failing_configure_names_the_command(monkeypatch, capsys, cargo_env):
    _patch_run(monkeypatch, FakeRunner(missing=["pkg-config"], returncodes={"./configure": 1}))
    assert main([]) == EXIT_FAILED
    assert "./configure --with-pic" in capsys.readouterr().err


def test_family_flag_selects_cmake(monkeypatch, capsys, cargo_env):
    runner = _patch_run(monkeypatch, FakeRunner(missing=["pkg-config"]))
    assert main(["--family", "windows"]) == 0
    assert [a[0] for a in runner.argvs] == ["pkg-config", "cmake", "cmake"]
    assert capsys.readouterr().out.strip().endswith(str(cargo_env / "pcre-8.37"))


def test_dry_run_only_probes(monkeypatch, capsys, cargo_env):
    runner = _patch_run(monkeypatch, FakeRunner(missing=["pkg-config"]))
    assert main(["--dry-run"]) == 0
    assert [a[0] for a in runner.argvs] == ["pkg-config"]
    assert not (cargo_env / "pcre-8.37").exists()


def test_missing_out_dir_is_a_configuration_error(monkeypatch, capsys, bundled_manifest):
    monkeypatch.setenv("CARGO_MANIFEST_DIR", str(bundled_manifest))
    _patch_run(monkeypatch, FakeRunner())
    assert main([]) == EXIT_CONFIG
    assert "OUT_DIR" in capsys.readouterr().err


def test_corrupt_bundled_archive_fails_extraction(monkeypatch, capsys, cargo_env, bundled_manifest):
    (bundled_manifest / "ext" / "pcre-8.37.tar.bz2").write_bytes(b"BZh9 garbage")
    runner = _patch_run(monkeypatch, FakeRunner(missing=["pkg-config"]))
    assert main([]) == EXIT_FAILED
    assert "extract failed" in capsys.readouterr().err
    assert [a[0] for a in runner.argvs] == ["pkg-config"]


def test_probe_command(monkeypatch, capsys):
    _patch_run(monkeypatch, FakeRunner(stdout={"pkg-config --libs-only-L libpcre": "-L/opt/lib"}))
    assert main(["probe"]) == 0
    assert capsys.readouterr().out == "/opt/lib\n"


def test_probe_command_miss(monkeypatch, capsys):
    _patch_run(monkeypatch, FakeRunner(missing=["pkg-config"]))
    assert main(["probe"]) == EXIT_FAILED
    assert "libpcre >= 8.20" in capsys.readouterr().err


def test_extract_command(tmp_path, capsys):
    archive = tmp_path / "src.tar.bz2"
    archive.write_bytes(make_tar([("s/", 0o755, None), ("s/a.c", 0o644, b"a")]))
    assert main(["extract", str(archive), str(tmp_path / "dest")]) == 0
    assert (tmp_path / "dest" / "s" / "a.c").read_bytes() == b"a"
    assert "1 files" in capsys.readouterr().err


def test_unusable_log_file_is_a_configuration_error(monkeypatch, capsys, tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    cfg = tmp_path / "pcresys.yaml"
    cfg.write_text(f"logging:\n  file: '{blocker / 'sub' / 'log.txt'}'\n", encoding="utf-8")
    runner = _patch_run(monkeypatch, FakeRunner())
    assert main(["--config", str(cfg), "probe"]) == EXIT_CONFIG
    err = capsys.readouterr().err
    assert "cannot open log file" in err
    assert runner.calls == []


def test_extract_root_level_files_into_new_directory(tmp_path, capsys):
    archive = tmp_path / "flat.tar.gz"
    archive.write_bytes(make_tar([("README", 0o644, b"r"), ("configure", 0o755, b"c")], compression="gz"))
    assert main(["extract", str(archive), str(tmp_path / "newdir")]) == 0
    assert (tmp_path / "newdir" / "README").read_bytes() == b"r"
    assert "2 files" in capsys.readouterr().err

from __future__ import annotations

import zipfile
from pathlib import Path

import pytest

from warpack.archive import JarArchiver, ZipArchiver, archiver_for
from warpack.errors import ArchiveFailure, ConfigError
from warpack.exec import ExecResult


def _staging(tmp_path: Path) -> Path:
    stage = tmp_path / "stage"
    (stage / "WEB-INF" / "lib").mkdir(parents=True)
    (stage / "index.html").write_text("<html/>", encoding="utf-8")
    (stage / "WEB-INF" / "web.xml").write_text("<web-app/>", encoding="utf-8")
    (stage / "WEB-INF" / "lib" / "jruby.jar").write_bytes(b"PK\x03\x04")
    return stage


def test_zip_archiver_writes_sorted_entries(tmp_path: Path) -> None:
    war = tmp_path / "shop.war"

    ZipArchiver().create(_staging(tmp_path), war)

    with zipfile.ZipFile(war) as zf:
        assert zf.namelist() == ["index.html", "WEB-INF/web.xml", "WEB-INF/lib/jruby.jar"]
        assert zf.read("WEB-INF/web.xml") == b"<web-app/>"


def test_zip_archiver_is_reproducible(tmp_path: Path) -> None:
    stage = _staging(tmp_path)
    first, second = tmp_path / "a.war", tmp_path / "b.war"

    ZipArchiver().create(stage, first)
    ZipArchiver().create(stage, second)

    assert first.read_bytes() == second.read_bytes()


def test_zip_archiver_requires_staging_dir(tmp_path: Path) -> None:
    with pytest.raises(ArchiveFailure):
        ZipArchiver().create(tmp_path / "missing", tmp_path / "x.war")


def test_jar_archiver_invokes_jar_cf(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    calls: list[tuple[list[str], Path]] = []

    def _run(argv: list[str], *, cwd: Path, check: bool = True) -> ExecResult:
        calls.append((argv, cwd))
        return ExecResult(argv=tuple(argv), cwd=cwd, returncode=0, stdout="", stderr="")

    monkeypatch.setattr("warpack.archive.run_command", _run)
    stage, war = tmp_path / "stage", tmp_path / "shop.war"

    assert JarArchiver().create(stage, war) == war
    assert calls == [(["jar", "cf", str(war), "-C", str(stage), "."], tmp_path)]


def test_jar_archiver_failure(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    def _run(argv: list[str], *, cwd: Path, check: bool = True) -> ExecResult:
        return ExecResult(argv=tuple(argv), cwd=cwd, returncode=2, stdout="", stderr="jar: bad option")

    monkeypatch.setattr("warpack.archive.run_command", _run)

    with pytest.raises(ArchiveFailure, match="bad option"):
        JarArchiver().create(tmp_path / "stage", tmp_path / "shop.war")


def test_archiver_for_names() -> None:
    assert isinstance(archiver_for("jar"), JarArchiver)
    assert isinstance(archiver_for("zip"), ZipArchiver)
    with pytest.raises(ConfigError):
        archiver_for("tar")

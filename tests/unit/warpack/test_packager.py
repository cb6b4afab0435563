from __future__ import annotations

import zipfile
from pathlib import Path

import pytest

from warpack.archive import ZipArchiver
from warpack.config import config_from_dict
from warpack.errors import ExtractionFailure, PackageNotFound
from warpack.gems.index import InMemoryPackageIndex, SpecificationIndex
from warpack.packager import ARCHIVE, STAGE, WAR, WEBXML, WarPackager, index_for
from warpack.staging.types import PackageIdentity, PackageRequirement, PackageResolution, TaskKind


class _UnpackStub:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[str] = []

    def unpack(self, identity: PackageIdentity, destination_dir: Path) -> None:
        self.calls.append(identity.label)
        if self.fail:
            raise ExtractionFailure(f"gem unpack failed for {identity.label}", diagnostic="boom")
        lib = destination_dir / identity.label / "lib"
        lib.mkdir(parents=True)
        (lib / f"{identity.name}.rb").write_text(f"module {identity.name.title()}; end\n", encoding="utf-8")


class _ArchiverSpy:
    def __init__(self) -> None:
        self.calls: list[tuple[Path, Path]] = []

    def create(self, staging_dir: Path, war_path: Path) -> Path:
        self.calls.append((staging_dir, war_path))
        return ZipArchiver().create(staging_dir, war_path)


def _write(root: Path, rel: str, text: str = "") -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text or rel, encoding="utf-8")
    return path


@pytest.fixture
def app_dir(tmp_path: Path) -> Path:
    base = tmp_path / "shop"
    _write(base, "app/models/order.rb")
    _write(base, "public/index.html", "<html/>")
    return base


@pytest.fixture
def index(tmp_path: Path) -> InMemoryPackageIndex:
    specs = tmp_path / "gemhome" / "specifications"
    alpha = _write(specs, "alpha-1.0.gemspec", 's.name = "alpha"\ns.version = "1.0"\n')
    beta = _write(specs, "beta-2.0.gemspec", 's.name = "beta"\ns.version = "2.0"\n')
    return InMemoryPackageIndex(
        [
            PackageResolution(PackageIdentity("alpha", "1.0"), alpha, (PackageRequirement("beta"),)),
            PackageResolution(PackageIdentity("beta", "2.0"), beta),
        ]
    )


def _packager(app_dir: Path, index: InMemoryPackageIndex, **raw) -> tuple[WarPackager, _UnpackStub, _ArchiverSpy]:
    config = config_from_dict({"dirs": ["app"], "gems": ["alpha"], "archiver": "zip", **raw}, base_dir=app_dir)
    unpacker, archiver = _UnpackStub(), _ArchiverSpy()
    return WarPackager(config, index=index, unpacker=unpacker, archiver=archiver), unpacker, archiver


def test_package_builds_the_war(app_dir: Path, index: InMemoryPackageIndex) -> None:
    packager, unpacker, archiver = _packager(app_dir, index)

    report = packager.package()

    assert report.actions == [WEBXML, ARCHIVE]
    assert unpacker.calls == ["alpha-1.0", "beta-2.0"]
    assert archiver.calls == [(packager.config.staging_dir, app_dir / "shop.war")]
    with zipfile.ZipFile(app_dir / "shop.war") as zf:
        names = set(zf.namelist())
    assert {
        "index.html",
        "WEB-INF/web.xml",
        "WEB-INF/app/models/order.rb",
        "WEB-INF/gems/specifications/alpha-1.0.gemspec",
        "WEB-INF/gems/specifications/beta-2.0.gemspec",
        "WEB-INF/gems/gems/alpha-1.0/lib/alpha.rb",
        "WEB-INF/gems/gems/beta-2.0/lib/beta.rb",
    } <= names


def test_second_run_copies_nothing(app_dir: Path, index: InMemoryPackageIndex) -> None:
    packager, unpacker, _ = _packager(app_dir, index)
    packager.package()

    report = packager.package()

    assert report.copied == []
    assert report.unpacked == []
    assert unpacker.calls == ["alpha-1.0", "beta-2.0"]


def test_stage_does_not_archive(app_dir: Path, index: InMemoryPackageIndex) -> None:
    packager, _, archiver = _packager(app_dir, index)

    report = packager.stage()

    assert report.target == STAGE
    assert report.actions == []
    assert archiver.calls == []
    assert (packager.config.staging_dir / "index.html").exists()


def test_archive_is_the_last_task_of_war(app_dir: Path, index: InMemoryPackageIndex) -> None:
    packager, _, _ = _packager(app_dir, index)

    plan = packager.build_graph().graph.plan(WAR)

    assert [node.name for node in plan][-2:] == [ARCHIVE, WAR]
    assert [node.name for node in plan if node.kind is TaskKind.ACTION] == [WEBXML, ARCHIVE]


def test_resolution_failure_never_reaches_the_archiver(app_dir: Path, index: InMemoryPackageIndex) -> None:
    packager, unpacker, archiver = _packager(app_dir, index, gems=["alpha", "missing"])

    with pytest.raises(PackageNotFound):
        packager.package()
    assert unpacker.calls == []
    assert archiver.calls == []
    assert not packager.config.staging_dir.exists()


def test_extraction_failure_aborts_before_archive(app_dir: Path, index: InMemoryPackageIndex) -> None:
    config = config_from_dict({"dirs": ["app"], "gems": ["alpha"]}, base_dir=app_dir)
    archiver = _ArchiverSpy()
    packager = WarPackager(config, index=index, unpacker=_UnpackStub(fail=True), archiver=archiver)

    with pytest.raises(ExtractionFailure, match="alpha-1.0"):
        packager.package()
    assert archiver.calls == []
    assert not (app_dir / "shop.war").exists()


def test_clean_removes_staging_and_war(app_dir: Path, index: InMemoryPackageIndex) -> None:
    packager, _, _ = _packager(app_dir, index)
    packager.package()

    removed = packager.clean()

    assert removed == [str(packager.config.staging_dir), str(app_dir / "shop.war")]
    assert packager.clean() == []


def test_describe_lists_top_level_targets(app_dir: Path, index: InMemoryPackageIndex) -> None:
    packager, _, _ = _packager(app_dir, index)

    names = [node.name for node in packager.describe()]

    for target in ("static", "java_libs", "packages", "application", STAGE, WEBXML, ARCHIVE, WAR):
        assert target in names


def test_packager_rejects_raw_mappings() -> None:
    with pytest.raises(TypeError, match="WarConfig"):
        WarPackager({"dirs": ["app"]})  # type: ignore[arg-type]


def test_index_for_prefers_manifest_then_gem_homes(tmp_path: Path) -> None:
    manifest = tmp_path / "gems.yaml"
    manifest.write_text("packages:\n  - name: rack\n    version: '2.2.8'\n", encoding="utf-8")

    from_manifest = index_for(
        config_from_dict({"package_index": "gems.yaml", "gem_homes": ["vendor"]}, base_dir=tmp_path)
    )
    from_homes = index_for(config_from_dict({"gem_homes": ["vendor"]}, base_dir=tmp_path))

    assert from_manifest.names() == ["rack"]
    assert isinstance(from_homes, SpecificationIndex)
    assert from_homes.gem_homes == (tmp_path / "vendor",)

from __future__ import annotations

from pathlib import Path

import pytest

from warpack.config import config_from_dict
from warpack.errors import ConfigurationConflict, PackageNotFound
from warpack.gems.index import InMemoryPackageIndex
from warpack.staging.assembly import (
    APPLICATION,
    JAVA_LIBS,
    PACKAGES,
    STATIC,
    assemble_staging_graph,
    staging_excludes,
)
from warpack.staging.graph import TaskGraph
from warpack.staging.types import PackageIdentity, PackageRequirement, PackageResolution


def _touch(root: Path, rel: str) -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(rel, encoding="utf-8")
    return path


def _index(tmp_path: Path) -> InMemoryPackageIndex:
    specs = tmp_path / "gemhome" / "specifications"
    return InMemoryPackageIndex(
        [
            PackageResolution(
                identity=PackageIdentity("alpha", "1.0"),
                spec_file=specs / "alpha-1.0.gemspec",
                dependencies=(PackageRequirement("beta"),),
            ),
            PackageResolution(identity=PackageIdentity("beta", "2.0"), spec_file=specs / "beta-2.0.gemspec"),
        ]
    )


@pytest.fixture
def app_dir(tmp_path: Path) -> Path:
    base = tmp_path / "blog"
    _touch(base, "app/models/foo.rb")
    _touch(base, "public/index.html")
    _touch(base, "vendor/jars/jruby-rack.jar")
    _touch(base, "tmp/cache/page.html")
    _touch(base, "tmp/war/stale.txt")
    return base


def test_aggregates_cover_every_category(app_dir: Path, tmp_path: Path) -> None:
    config = config_from_dict(
        {"dirs": ["app", "tmp"], "java_libs": ["vendor/jars/*.jar"], "gems": ["alpha"]},
        base_dir=app_dir,
    )

    plan = assemble_staging_graph(config, _index(tmp_path))
    graph, stage = plan.graph, config.staging_dir

    assert str(stage / "WEB-INF/app/models/foo.rb") in graph.get(APPLICATION).prerequisites
    assert graph.get(APPLICATION).prerequisites[:2] == (PACKAGES, JAVA_LIBS)
    assert graph.get(STATIC).prerequisites == (str(stage / "index.html"),)
    assert graph.get(JAVA_LIBS).prerequisites == (str(stage / "WEB-INF/lib/jruby-rack.jar"),)
    assert graph.get(PACKAGES).prerequisites == (
        str(stage / "WEB-INF/gems/specifications/alpha-1.0.gemspec"),
        "unpack:alpha-1.0",
        str(stage / "WEB-INF/gems/specifications/beta-2.0.gemspec"),
        "unpack:beta-2.0",
    )
    graph.validate()


def test_staging_dir_is_never_a_source(app_dir: Path, tmp_path: Path) -> None:
    config = config_from_dict({"dirs": ["tmp"]}, base_dir=app_dir)

    plan = assemble_staging_graph(config, _index(tmp_path))

    assert "tmp/war" in staging_excludes(config)
    assert f"{app_dir.name}.war" in staging_excludes(config)
    assert any(name.endswith("tmp/cache/page.html") for name in plan.targets[APPLICATION])
    assert not any("stale.txt" in name for name in plan.targets[APPLICATION])


def test_configured_excludes_apply_to_every_category(app_dir: Path, tmp_path: Path) -> None:
    config = config_from_dict(
        {"dirs": ["app"], "excludes": ["public/index.html", "app/models"]},
        base_dir=app_dir,
    )

    plan = assemble_staging_graph(config, _index(tmp_path))

    assert plan.targets[STATIC] == []
    assert plan.targets[APPLICATION] == []


def test_missing_gem_leaves_no_package_tasks(app_dir: Path, tmp_path: Path) -> None:
    config = config_from_dict({"dirs": ["app"], "gems": ["alpha", "missing"]}, base_dir=app_dir)
    graph = TaskGraph()

    with pytest.raises(PackageNotFound, match="missing"):
        assemble_staging_graph(config, _index(tmp_path), graph)
    assert len(graph) == 0


def test_two_jars_with_one_name_conflict(app_dir: Path, tmp_path: Path) -> None:
    _touch(app_dir, "vendor/other/jruby-rack.jar")
    config = config_from_dict({"dirs": [], "java_libs": ["vendor/**/*.jar"]}, base_dir=app_dir)

    with pytest.raises(ConfigurationConflict, match="jruby-rack.jar"):
        assemble_staging_graph(config, _index(tmp_path))

import json
from pathlib import Path

import pytest

from forksmith import workspaces
from forksmith.config import ForkConfig
from forksmith.errors import ToolNotFoundError


def _manifest(directory: Path, **fields) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "package.json").write_text(json.dumps({"name": directory.name, **fields}), encoding="utf-8")


def _have_bun(tool):
    return f"/usr/local/bin/{tool}"


class Recorder:
    def __init__(self):
        self.units = []

    async def __call__(self, unit):
        self.units.append(unit)
        return 0


@pytest.fixture
def monorepo(tmp_path: Path) -> Path:
    _manifest(tmp_path, workspaces=["api", "packages/*", "client"])
    _manifest(tmp_path / "api", scripts={"b:build": "bun build.ts", "build": "tsc"})
    _manifest(tmp_path / "client", scripts={"build": "vite build"})
    _manifest(tmp_path / "packages" / "data-provider")
    (tmp_path / "packages" / "data-provider" / "src").mkdir()
    (tmp_path / "packages" / "data-provider" / "src" / "index.ts").write_text("export {};\n", encoding="utf-8")
    _manifest(tmp_path / "packages" / "empty")
    _manifest(tmp_path / "node_modules" / "left-pad")
    return tmp_path


def test_install_runs_in_every_package(monorepo):
    recorder = Recorder()
    summary = workspaces.install_all(ForkConfig(root=monorepo), concurrency=2, executor=recorder, which=_have_bun)
    names = sorted(unit.name for unit in recorder.units)
    assert names == [".", "api", "client", "packages/data-provider", "packages/empty"]
    assert all(unit.argv == ["bun", "install"] for unit in recorder.units)
    assert summary.exit_code == 0


def test_build_picks_script_or_entry(monorepo):
    (monorepo / "dist").mkdir()
    (monorepo / "dist" / "stale.js").write_text("", encoding="utf-8")
    recorder = Recorder()
    config = ForkConfig(root=monorepo, env={"PATH": "/usr/bin"})
    workspaces.build_all(config, executor=recorder, which=_have_bun)

    argv = {unit.name: unit.argv for unit in recorder.units}
    assert argv["api"] == ["bun", "run", "b:build"]
    assert argv["client"] == ["bun", "run", "build"]
    assert argv["packages/data-provider"] == [
        "bun",
        "build",
        "--outdir",
        str(monorepo / "dist" / "packages" / "data-provider"),
        "src/index.ts",
    ]
    assert "packages/empty" not in argv
    assert all(unit.env["NODE_ENV"] == "production" for unit in recorder.units)
    assert not (monorepo / "dist").exists()


def test_workspaces_object_form(tmp_path):
    _manifest(tmp_path, workspaces={"packages": ["api"]})
    _manifest(tmp_path / "api", scripts={"build": "x"})
    assert [u.name for u in workspaces.build_units(ForkConfig(root=tmp_path))] == ["api"]


def test_test_units_add_watch_flag(monorepo):
    units = workspaces.test_units(ForkConfig(root=monorepo), watch=True)
    assert units[0].argv == ["bun", "test", "--coverage", "--watch"]


def test_missing_bun_is_fatal_before_anything_runs(monorepo):
    recorder = Recorder()
    with pytest.raises(ToolNotFoundError):
        workspaces.install_all(ForkConfig(root=monorepo), executor=recorder, which=lambda tool: None)
    assert recorder.units == []

"""
Install, test and build every package of the monorepo with bun.
"""

from __future__ import annotations

import glob
import logging
import shutil
from pathlib import Path
from typing import Callable, List, Optional

from .config import ForkConfig
from .manifests import MANIFEST, discover_manifests, read_manifest
from .runner import Executor, RunSummary, WorkUnit, run_units
from .tools import child_env, require_tool

log = logging.getLogger(__name__)

Which = Callable[[str], Optional[str]]

ENTRY_CANDIDATES = (
    "index.ts",
    "index.js",
    "src/index.ts",
    "src/index.js",
    "server/index.ts",
    "server/index.js",
    "src/main.tsx",
    "src/main.jsx",
)


def _unit_name(directory: Path, root: Path) -> str:
    rel = directory.relative_to(root).as_posix()
    return "." if rel in ("", ".") else rel


def package_dirs(root: Path) -> List[Path]:
    return [path.parent for path in discover_manifests(root)]


def install_units(config: ForkConfig) -> List[WorkUnit]:
    env = child_env(config.env)
    return [
        WorkUnit(name=_unit_name(d, config.root), argv=["bun", "install"], cwd=d, env=env)
        for d in package_dirs(config.root)
    ]


def test_units(config: ForkConfig, watch: bool = False) -> List[WorkUnit]:
    argv = ["bun", "test", "--coverage"]
    if watch:
        argv.append("--watch")
    env = child_env(config.env)
    return [WorkUnit(name=_unit_name(d, config.root), argv=list(argv), cwd=d, env=env) for d in package_dirs(config.root)]


def workspace_patterns(root_manifest: dict) -> List[str]:
    workspaces = root_manifest.get("workspaces")
    if isinstance(workspaces, dict):
        workspaces = workspaces.get("packages")
    if not isinstance(workspaces, list):
        return []
    return [w for w in workspaces if isinstance(w, str)]


def expand_workspaces(root: Path, patterns: List[str]) -> List[Path]:
    found = {}
    for pattern in patterns:
        for match in sorted(glob.glob(str(root / pattern))):
            path = Path(match)
            if path.is_dir() and (path / MANIFEST).is_file():
                found[path] = None
    return list(found)


def detect_entry(directory: Path) -> Optional[str]:
    for candidate in ENTRY_CANDIDATES:
        if (directory / candidate).is_file():
            return candidate
    return None


def build_command(directory: Path, root: Path) -> Optional[List[str]]:
    """``b:build`` script, else ``build`` script, else bundle the first entry point found."""
    scripts = read_manifest(directory / MANIFEST).get("scripts") or {}
    if "b:build" in scripts:
        return ["bun", "run", "b:build"]
    if "build" in scripts:
        return ["bun", "run", "build"]
    entry = detect_entry(directory)
    if entry is None:
        return None
    outdir = root / "dist" / directory.relative_to(root)
    return ["bun", "build", "--outdir", str(outdir), entry]


def build_units(config: ForkConfig) -> List[WorkUnit]:
    root = config.root
    patterns = workspace_patterns(read_manifest(root / MANIFEST))
    if not patterns:
        log.warning("root %s declares no workspaces", MANIFEST)
    env = child_env(config.env, NODE_ENV="production")
    units: List[WorkUnit] = []
    for directory in expand_workspaces(root, patterns):
        argv = build_command(directory, root)
        name = _unit_name(directory, root)
        if argv is None:
            log.warning("%s: no build script or entry point; skipping", name)
            continue
        units.append(WorkUnit(name=name, argv=argv, cwd=directory, env=env))
    return units


def install_all(
    config: ForkConfig,
    concurrency: int = 1,
    dry_run: bool = False,
    executor: Optional[Executor] = None,
    which: Which = shutil.which,
) -> RunSummary:
    if not dry_run:
        require_tool("bun", which=which)
    units = install_units(config)
    log.info("installing dependencies in %d package(s), %d at a time", len(units), concurrency)
    return run_units(units, concurrency=concurrency, dry_run=dry_run, executor=executor)


def test_all(
    config: ForkConfig,
    jobs: int = 1,
    watch: bool = False,
    executor: Optional[Executor] = None,
    which: Which = shutil.which,
) -> RunSummary:
    require_tool("bun", which=which)
    units = test_units(config, watch=watch)
    log.info("testing %d package(s), %d at a time", len(units), jobs)
    return run_units(units, concurrency=jobs, executor=executor)


def build_all(
    config: ForkConfig,
    concurrency: int = 1,
    dry_run: bool = False,
    executor: Optional[Executor] = None,
    which: Which = shutil.which,
) -> RunSummary:
    if not dry_run:
        require_tool("bun", which=which)
    dist = config.root / "dist"
    if dist.exists() and not dry_run:
        shutil.rmtree(dist)
        log.info("cleaned %s", dist)
    units = build_units(config)
    log.info("building %d workspace(s), %d at a time", len(units), concurrency)
    return run_units(units, concurrency=concurrency, dry_run=dry_run, executor=executor)

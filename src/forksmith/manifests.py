"""
package.json discovery, required-dependency sync and version bumps.
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .errors import ManifestError
from .rewrite.engine import write_atomic

log = logging.getLogger(__name__)

MANIFEST = "package.json"
EXCLUDED_DIRS = {"node_modules", "dist", "build", ".git", "coverage"}
DEPENDENCY_SECTIONS = ("dependencies", "devDependencies")

# manifest path -> section -> package -> version
Requirements = Dict[str, Dict[str, Dict[str, str]]]

DEFAULT_REQUIREMENTS: Requirements = {
    "package.json": {"devDependencies": {"jscodeshift": "^17.3.0"}},
    "api/app/package.json": {"dependencies": {"elysia": "^1.2.25"}},
    "frontend/package.json": {
        "dependencies": {
            "@opentelemetry/api": "^1.9.0",
            "@opentelemetry/sdk-trace-web": "^2.0.0",
            "@opentelemetry/sdk-trace-base": "^2.0.0",
        }
    },
}

_SEMVER = re.compile(r"^v?(\d+)\.(\d+)\.(\d+)(?:-([0-9A-Za-z.-]+))?(?:\+([0-9A-Za-z.-]+))?$")


@dataclass
class ManifestUpdate:
    path: Path
    added: Dict[str, str] = field(default_factory=dict)
    changed: bool = False


def read_manifest(path: Path) -> Dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ManifestError(f"{path} does not exist") from exc
    except json.JSONDecodeError as exc:
        raise ManifestError(f"{path} is not valid JSON: {exc.msg} (line {exc.lineno})") from exc
    if not isinstance(data, dict):
        raise ManifestError(f"{path} does not contain a JSON object")
    return data


def render_manifest(data: Mapping[str, Any]) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def write_manifest(path: Path, data: Mapping[str, Any]) -> bool:
    """Write ``data`` if it differs from what is on disk. Returns True when the file changed."""
    text = render_manifest(data)
    if path.exists() and path.read_text(encoding="utf-8") == text:
        return False
    if path.exists():
        write_atomic(path, text)
    else:
        path.write_text(text, encoding="utf-8")
    return True


def discover_manifests(root: Path, excluded: Iterable[str] = EXCLUDED_DIRS) -> List[Path]:
    """Every package.json under ``root``: the root manifest first, then by directory name."""
    skip = set(excluded)
    found: List[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [d for d in dirnames if d not in skip]
        if MANIFEST in filenames:
            found.append(Path(dirpath) / MANIFEST)
    root_manifest = root / MANIFEST
    return sorted(found, key=lambda p: (p != root_manifest, p.parent.relative_to(root).as_posix()))


def load_requirements(path: Path) -> Requirements:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ManifestError(f"cannot read requirements from {path}: {exc}") from exc
    if not isinstance(data, dict) or not all(isinstance(v, dict) for v in data.values()):
        raise ManifestError(f"{path} must map manifest paths to dependency sections")
    return data


def ensure_dependencies(root: Path, requirements: Optional[Requirements] = None) -> List[ManifestUpdate]:
    """
    Pin the required dependencies in each listed manifest.

    Existing entries are overwritten with the required version; files are
    rewritten only when their content changes, so a second run is a no-op.
    """

    updates: List[ManifestUpdate] = []
    for rel, sections in (requirements or DEFAULT_REQUIREMENTS).items():
        path = root / rel
        if not path.exists():
            log.warning("%s not found; skipping", rel)
            continue
        data = read_manifest(path)
        update = ManifestUpdate(path=path)
        for section, deps in sections.items():
            target = data.setdefault(section, {})
            for name, version in deps.items():
                if target.get(name) != version:
                    update.added[name] = version
                target[name] = version
        update.changed = write_manifest(path, data)
        if update.changed:
            log.info("updated %s: %s", rel, ", ".join(f"{k}@{v}" for k, v in update.added.items()))
        updates.append(update)
    return updates


def bump_patch(version: str) -> str:
    """Semver patch bump; a prerelease bumps to its release (1.2.3-rc.1 -> 1.2.3)."""
    match = _SEMVER.match(version.strip())
    if not match:
        raise ManifestError(f"'{version}' is not a semantic version")
    major, minor, patch, pre = match.group(1), match.group(2), int(match.group(3)), match.group(4)
    if pre:
        return f"{major}.{minor}.{patch}"
    return f"{major}.{minor}.{patch + 1}"


def bump_version(root: Path) -> str:
    manifests = discover_manifests(root)
    if not manifests:
        raise ManifestError(f"no {MANIFEST} found under {root}")
    current: Optional[str] = None
    for path in manifests:
        version = read_manifest(path).get("version")
        if isinstance(version, str) and version:
            current = version
            break
    if current is None:
        raise ManifestError(f"no {MANIFEST} under {root} declares a version")
    new_version = bump_patch(current)
    for path in manifests:
        data = read_manifest(path)
        data["version"] = new_version
        write_manifest(path, data)
    log.info("bumped %s -> %s in %d manifest(s)", current, new_version, len(manifests))
    return new_version


def dependency_names(manifests: Iterable[Path]) -> List[str]:
    names: Dict[str, None] = {}
    for path in manifests:
        data = read_manifest(path)
        for section in DEPENDENCY_SECTIONS:
            deps = data.get(section)
            if isinstance(deps, dict):
                names.update(dict.fromkeys(deps))
    return sorted(names)

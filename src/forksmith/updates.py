"""
Report dependency versions published in the last few days.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from .errors import CommandError, ManifestError
from .manifests import dependency_names
from .tools import CommandRunner, run_command

log = logging.getLogger(__name__)

NON_VERSION_KEYS = {"created", "modified"}


@dataclass
class Release:
    package: str
    version: str
    published: datetime

    def describe(self) -> str:
        return f"- {self.package}@{self.version} published on {self.published.date().isoformat()}"


def _parse_time(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def publish_times(package: str, cwd: Path, run: CommandRunner = run_command) -> Dict[str, str]:
    result = run(["bun", "pm", "info", package, "time", "--json"], cwd=cwd, capture=True, check=True)
    try:
        data = json.loads(result.stdout or "{}")
    except json.JSONDecodeError as exc:
        raise CommandError(f"unexpected output from bun pm info {package}", argv=result.argv) from exc
    if not isinstance(data, dict):
        raise CommandError(f"unexpected output from bun pm info {package}", argv=result.argv)
    return {k: v for k, v in data.items() if isinstance(v, str)}


def recent_releases(package: str, times: Mapping[str, str], since: datetime, now: datetime) -> List[Release]:
    """Versions published in ``(since, now]``, oldest first."""
    found: List[Release] = []
    for version, stamp in times.items():
        if version in NON_VERSION_KEYS:
            continue
        published = _parse_time(stamp)
        if published is not None and since < published <= now:
            found.append(Release(package=package, version=version, published=published))
    return sorted(found, key=lambda r: r.published)


def check_updates(
    manifests: Sequence[Path],
    cwd: Path,
    days: int = 3,
    strict: bool = False,
    run: CommandRunner = run_command,
    now: Optional[datetime] = None,
) -> List[Release]:
    names = dependency_names(manifests)
    if not names:
        if strict:
            raise ManifestError("no dependencies found in the given manifests")
        log.warning("no dependencies found; nothing to check")
        return []
    now = now or datetime.now(timezone.utc)
    since = now - timedelta(days=days)
    releases: List[Release] = []
    for name in names:
        try:
            times = publish_times(name, cwd, run=run)
        except CommandError as exc:
            log.warning("could not fetch publish times for %s: %s", name, exc.message)
            continue
        releases.extend(recent_releases(name, times, since, now))
    return releases

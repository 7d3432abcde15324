import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from forksmith.errors import CommandError, ManifestError
from forksmith.tools import CommandResult
from forksmith.updates import check_updates, recent_releases

NOW = datetime(2024, 6, 10, 12, 0, tzinfo=timezone.utc)
TIMES = {
    "created": "2020-01-01T00:00:00.000Z",
    "modified": "2024-06-09T00:00:00.000Z",
    "1.0.0": "2024-05-01T00:00:00.000Z",
    "1.1.0": "2024-06-08T09:30:00.000Z",
    "1.2.0": "2024-06-10T08:00:00.000Z",
}


def _manifest(tmp_path: Path, deps) -> Path:
    path = tmp_path / "package.json"
    path.write_text(json.dumps({"dependencies": deps}), encoding="utf-8")
    return path


def test_recent_releases_within_window():
    since = datetime(2024, 6, 7, 12, 0, tzinfo=timezone.utc)
    releases = recent_releases("elysia", TIMES, since, NOW)
    assert [r.version for r in releases] == ["1.1.0", "1.2.0"]
    assert releases[0].describe() == "- elysia@1.1.0 published on 2024-06-08"


def test_check_updates_queries_each_dependency(tmp_path):
    calls = []

    def run(argv, cwd=None, env=None, capture=False, check=True):
        calls.append(argv)
        if argv[3] == "broken":
            raise CommandError("bun pm info failed", argv=argv)
        return CommandResult(argv=argv, returncode=0, stdout=json.dumps(TIMES))

    manifest = _manifest(tmp_path, {"elysia": "^1", "broken": "^1"})
    releases = check_updates([manifest], cwd=tmp_path, days=3, run=run, now=NOW)
    assert calls[0] == ["bun", "pm", "info", "broken", "time", "--json"]
    assert [(r.package, r.version) for r in releases] == [("elysia", "1.1.0"), ("elysia", "1.2.0")]


def test_no_dependencies_is_an_error_only_when_strict(tmp_path):
    manifest = _manifest(tmp_path, {})
    assert check_updates([manifest], cwd=tmp_path, run=lambda *a, **k: None) == []
    with pytest.raises(ManifestError):
        check_updates([manifest], cwd=tmp_path, strict=True, run=lambda *a, **k: None)

import json
from pathlib import Path

import pytest

import forksmith
from forksmith.cli import main


def _project(tmp_path: Path, monkeypatch) -> Path:
    monkeypatch.chdir(tmp_path)
    (tmp_path / "package.json").write_text('{"name": "librechat", "version": "1.0.0"}\n', encoding="utf-8")
    return tmp_path


def test_codemods_list_hides_optional_rules(capsys):
    main(["codemods", "list"])
    out = capsys.readouterr().out
    assert out.splitlines()[0].startswith("require-to-import")
    assert "otel-bootstrap" not in out
    main(["codemods", "list", "--all"])
    assert "otel-bootstrap" in capsys.readouterr().out


def test_version_flag_reports_package_version(capsys):
    with pytest.raises(SystemExit) as exc:
        main(["--version"])
    assert exc.value.code == 0
    assert capsys.readouterr().out.startswith(f"forksmith {forksmith.__version__} ")
    assert all(hasattr(forksmith, name) for name in forksmith.__all__)


def test_codemods_run_dry_run_then_write(tmp_path, monkeypatch, capsys):
    root = _project(tmp_path, monkeypatch)
    main(["codemods", "run", "--rule", "package-json", "--dry-run"])
    out = capsys.readouterr().out
    assert "Would update" in out
    assert "Dry run. Re-run without --dry-run to apply changes." in out
    assert "type" not in json.loads((root / "package.json").read_text(encoding="utf-8"))

    main(["codemods", "run", "--rule", "package-json", "--json"])
    report = json.loads(capsys.readouterr().out)
    assert report["changed"] == 1
    assert report["files"][0]["path"] == "package.json"
    assert json.loads((root / "package.json").read_text(encoding="utf-8"))["type"] == "module"


def test_codemods_run_strict_failure_exits_one(tmp_path, monkeypatch, capsys):
    root = _project(tmp_path, monkeypatch)
    (root / "package.json").write_text("{broken", encoding="utf-8")
    with pytest.raises(SystemExit) as excinfo:
        main(["codemods", "run", "--rule", "package-json", "--strict"])
    assert excinfo.value.code == 1
    assert capsys.readouterr().err.startswith("Error: ")


def test_unknown_rule_reports_error(tmp_path, monkeypatch, capsys):
    _project(tmp_path, monkeypatch)
    with pytest.raises(SystemExit) as excinfo:
        main(["codemods", "run", "--rule", "nope"])
    assert excinfo.value.code == 1
    assert "Unknown codemod(s): nope" in capsys.readouterr().err


def test_env_update_json_report(tmp_path, monkeypatch, capsys):
    root = _project(tmp_path, monkeypatch)
    monkeypatch.setenv("CREDS_KEY", "secret")
    (root / ".env.example").write_text("CREDS_KEY=GET_FROM_LOCAL_ENV\nOTHER=GET_FROM_LOCAL_ENV\n", encoding="utf-8")
    main(["env", "update", ".env", "--fallback", "unset", "--json"])
    report = json.loads(capsys.readouterr().out)
    assert report["updates"][0] == {"key": "CREDS_KEY", "from": "CREDS_KEY=GET_FROM_LOCAL_ENV", "to": "CREDS_KEY=secret"}
    assert (root / ".env").read_text(encoding="utf-8") == "CREDS_KEY=secret\nOTHER=unset\n"


def test_env_update_strict_missing_exits_one(tmp_path, monkeypatch, capsys):
    root = _project(tmp_path, monkeypatch)
    (root / ".env.example").write_text("MISSING_KEY=GET_FROM_LOCAL_ENV\n", encoding="utf-8")
    monkeypatch.delenv("MISSING_KEY", raising=False)
    with pytest.raises(SystemExit) as excinfo:
        main(["env", "update", ".env", "--strict"])
    assert excinfo.value.code == 1
    assert "MISSING_KEY" in capsys.readouterr().err
    assert not (root / ".env").exists()


def test_deps_bump_version(tmp_path, monkeypatch, capsys):
    root = _project(tmp_path, monkeypatch)
    main(["deps", "bump-version"])
    assert capsys.readouterr().out.strip() == "1.0.1"
    assert json.loads((root / "package.json").read_text(encoding="utf-8"))["version"] == "1.0.1"


def test_install_all_dry_run(tmp_path, monkeypatch, capsys):
    _project(tmp_path, monkeypatch)
    main(["install-all", "--dry-run", "--concurrency", "2"])
    out = capsys.readouterr().out
    assert "[dry-run] .: bun install" in out
    assert "Dry run." in out


def test_missing_required_argument_is_a_usage_error():
    with pytest.raises(SystemExit) as excinfo:
        main(["env", "update"])
    assert excinfo.value.code == 2


def test_invalid_concurrency_is_a_usage_error():
    with pytest.raises(SystemExit) as excinfo:
        main(["build-all", "--concurrency", "0"])
    assert excinfo.value.code == 2


def test_docker_push_without_registry(tmp_path, monkeypatch, capsys):
    _project(tmp_path, monkeypatch)
    with pytest.raises(SystemExit) as excinfo:
        main(["docker", "push", "--tag", "v1"])
    assert excinfo.value.code == 1
    assert "DOCKER_REMOTE_REGISTRY" in capsys.readouterr().err


def test_sync_dry_run(tmp_path, monkeypatch, capsys):
    _project(tmp_path, monkeypatch)
    main(["sync", "--dry-run", "-v"])
    out = capsys.readouterr().out
    assert "[dry-run] git fetch upstream" in out
    assert out.rstrip().endswith("Dry run. Re-run without --dry-run to apply changes.")

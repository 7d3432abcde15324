import shutil
import sys

import pytest

from forksmith import sync
from forksmith.config import ForkConfig
from forksmith.errors import CommandError, ConfigError
from forksmith.tools import CommandResult


class FakeGit:
    """Stands in for git/bun/forksmith processes; ``on`` maps an argv prefix to a callback."""

    def __init__(self, on=None, outputs=None):
        self.calls = []
        self.on = on or {}
        self.outputs = outputs or {}

    def __call__(self, argv, cwd=None, env=None, capture=False, check=True):
        argv = [str(a) for a in argv]
        self.calls.append(argv)
        for prefix, callback in self.on.items():
            if tuple(argv[: len(prefix)]) == prefix:
                callback()
        for prefix, (code, stdout) in self.outputs.items():
            if tuple(argv[: len(prefix)]) == prefix:
                if code and check:
                    raise CommandError("failed", argv=argv, returncode=code)
                return CommandResult(argv=argv, returncode=code, stdout=stdout)
        return CommandResult(argv=argv, returncode=0)


def _fork_tree(root):
    (root / "plugins" / "example").mkdir(parents=True)
    (root / "plugins" / "example" / "ui.js").write_text("export default {};\n", encoding="utf-8")
    (root / "README.md").write_text("# fork\n", encoding="utf-8")


def _upstream_reset(root):
    def reset():
        shutil.rmtree(root / "plugins")
        (root / "README.md").write_text("# upstream\n", encoding="utf-8")
        (root / "package-lock.json").write_text("{}", encoding="utf-8")
        (root / "api").mkdir(exist_ok=True)
        (root / "api" / "yarn.lock").write_text("", encoding="utf-8")
        (root / "api" / "app").mkdir(exist_ok=True)
        (root / "api" / "app" / "pnpm-lock.yaml").write_text("", encoding="utf-8")

    return reset


def test_sync_restores_fork_paths_and_reapplies_customizations(tmp_path):
    _fork_tree(tmp_path)
    run = FakeGit(on={("git", "reset"): _upstream_reset(tmp_path)})
    result = sync.sync_upstream(ForkConfig(root=tmp_path), run=run)

    assert (tmp_path / "plugins" / "example" / "ui.js").read_text(encoding="utf-8") == "export default {};\n"
    assert (tmp_path / "README.md").read_text(encoding="utf-8") == "# fork\n"
    assert not (tmp_path / "package-lock.json").exists()
    assert not (tmp_path / "api" / "yarn.lock").exists()
    assert (tmp_path / "api" / "app" / "pnpm-lock.yaml").exists()
    assert "plugins" in result.restored and "README.md" in result.restored

    assert run.calls[0] == ["git", "remote", "get-url", "upstream"]
    assert run.calls[1:] == [
        ["git", "fetch", "upstream"],
        ["git", "checkout", "-B", "upstream-sync", "upstream/main"],
        ["git", "reset", "--hard", "upstream/main"],
        [sys.executable, "-m", "forksmith", "deps", "ensure"],
        [sys.executable, "-m", "forksmith", "codemods", "run"],
        ["bun", "install"],
        ["git", "add", "-A"],
        ["git", "commit", "-m", "chore: reapply fork customizations"],
        ["git", "checkout", "main"],
        ["git", "merge", "--no-ff", "upstream-sync", "-m", "chore: merge upstream"],
        ["git", "push", "origin", "main"],
    ]
    assert result.committed and result.pushed


def test_nothing_to_commit_is_tolerated(tmp_path):
    run = FakeGit(outputs={("git", "commit"): (1, "nothing to commit, working tree clean\n")})
    result = sync.sync_upstream(ForkConfig(root=tmp_path), run=run, force_push=True)
    assert not result.committed
    assert run.calls[-1] == ["git", "push", "origin", "main", "--force"]


def test_other_commit_failures_stop_the_sync(tmp_path):
    run = FakeGit(outputs={("git", "commit"): (1, "")})
    with pytest.raises(CommandError):
        sync.sync_upstream(ForkConfig(root=tmp_path), run=run)
    assert ["git", "push", "origin", "main"] not in run.calls


def test_missing_remote_is_added_from_upstream_url(tmp_path):
    run = FakeGit(outputs={("git", "remote", "get-url"): (2, "")})
    config = ForkConfig(root=tmp_path, upstream_url="https://github.com/danny-avila/LibreChat.git")
    sync.sync_upstream(config, run=run)
    assert ["git", "remote", "add", "upstream", "https://github.com/danny-avila/LibreChat.git"] in run.calls


def test_missing_remote_without_url_is_a_config_error(tmp_path):
    run = FakeGit(outputs={("git", "remote", "get-url"): (2, "")})
    with pytest.raises(ConfigError):
        sync.sync_upstream(ForkConfig(root=tmp_path), run=run)


def test_dry_run_only_prints_the_plan(tmp_path, capsys):
    run = FakeGit()
    result = sync.sync_upstream(ForkConfig(root=tmp_path), run=run, dry_run=True)
    assert run.calls == []
    assert result.dry_run
    out = capsys.readouterr().out
    assert "[dry-run] git fetch upstream" in out
    assert "[dry-run] git merge --no-ff upstream-sync -m 'chore: merge upstream'" in out

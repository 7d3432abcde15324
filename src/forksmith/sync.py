"""
Rebase the fork onto upstream and reapply its customizations.

The protected fork paths survive the hard reset by being copied aside and
restored; everything else is regenerated by running the dependency and
codemod commands again on top of the fresh upstream tree.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import sys
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from .config import ForkConfig
from .errors import CommandError, ConfigError
from .tools import CommandRunner, child_env, run_command

log = logging.getLogger(__name__)

LOCKFILES = ("package-lock.json", "yarn.lock", "pnpm-lock.yaml", "bun.lockb")
LOCKFILE_DEPTH = 2
COMMIT_MESSAGE = "chore: reapply fork customizations"
MERGE_MESSAGE = "chore: merge upstream"
NOTHING_TO_COMMIT = "nothing to commit"


@dataclass
class SyncResult:
    commands: List[List[str]] = field(default_factory=list)
    restored: List[str] = field(default_factory=list)
    removed_lockfiles: List[Path] = field(default_factory=list)
    committed: bool = False
    pushed: bool = False
    dry_run: bool = False


def forksmith_argv(*args: str) -> List[str]:
    return [sys.executable, "-m", "forksmith", *args]


def plan(config: ForkConfig, force_push: bool = False) -> List[List[str]]:
    """Every command a sync would run, in order (remote setup excluded)."""
    upstream_ref = f"{config.upstream_remote}/{config.upstream_branch}"
    push = ["git", "push", "origin", config.main_branch]
    if force_push:
        push.append("--force")
    return [
        ["git", "fetch", config.upstream_remote],
        ["git", "checkout", "-B", config.sync_branch, upstream_ref],
        ["git", "reset", "--hard", upstream_ref],
        forksmith_argv("deps", "ensure"),
        forksmith_argv("codemods", "run"),
        ["bun", "install"],
        ["git", "add", "-A"],
        ["git", "commit", "-m", COMMIT_MESSAGE],
        ["git", "checkout", config.main_branch],
        ["git", "merge", "--no-ff", config.sync_branch, "-m", MERGE_MESSAGE],
        push,
    ]


def ensure_remote(config: ForkConfig, run: CommandRunner = run_command) -> bool:
    """Add the upstream remote when missing. Returns True when it was added."""
    existing = run(["git", "remote", "get-url", config.upstream_remote], cwd=config.root, capture=True, check=False)
    if existing.ok:
        return False
    if not config.upstream_url:
        raise ConfigError(f"git remote '{config.upstream_remote}' is not configured; set UPSTREAM_URL to add it")
    run(["git", "remote", "add", config.upstream_remote, config.upstream_url], cwd=config.root, check=True)
    log.info("added remote %s -> %s", config.upstream_remote, config.upstream_url)
    return True


def stash_protected(root: Path, paths: Sequence[str], dest: Path) -> List[str]:
    saved: List[str] = []
    for rel in paths:
        src = root / rel
        target = dest / rel
        if src.is_dir():
            shutil.copytree(src, target, symlinks=True)
        elif src.exists():
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(src, target)
        else:
            log.debug("protected path %s not present; nothing to keep", rel)
            continue
        saved.append(rel)
    return saved


def restore_protected(root: Path, saved: Sequence[str], stash: Path) -> None:
    for rel in saved:
        src = stash / rel
        target = root / rel
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        elif target.exists() or target.is_symlink():
            target.unlink()
        target.parent.mkdir(parents=True, exist_ok=True)
        if src.is_dir():
            shutil.copytree(src, target, symlinks=True)
        else:
            shutil.copy2(src, target)
        log.info("restored %s", rel)


def remove_lockfiles(root: Path, max_depth: int = LOCKFILE_DEPTH) -> List[Path]:
    """Delete foreign lockfiles at most ``max_depth`` path components below ``root``."""
    removed: List[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        here = Path(dirpath)
        depth = len(here.relative_to(root).parts)
        dirnames[:] = sorted(d for d in dirnames if d not in {".git", "node_modules"})
        if depth + 1 >= max_depth:
            dirnames[:] = []
        for name in sorted(filenames):
            if name in LOCKFILES:
                path = here / name
                path.unlink()
                removed.append(path)
                log.info("removed %s", path.relative_to(root).as_posix())
    return removed


def commit_changes(config: ForkConfig, run: CommandRunner = run_command) -> bool:
    argv = ["git", "commit", "-m", COMMIT_MESSAGE]
    result = run(argv, cwd=config.root, capture=True, check=False)
    if result.ok:
        return True
    if NOTHING_TO_COMMIT in (result.stdout + result.stderr):
        log.info("no fork customizations to commit")
        return False
    raise CommandError(f"{shlex.join(argv)} exited with status {result.returncode}", argv=argv, returncode=result.returncode)


def sync_upstream(
    config: ForkConfig,
    run: CommandRunner = run_command,
    dry_run: bool = False,
    force_push: bool = False,
) -> SyncResult:
    result = SyncResult(dry_run=dry_run)
    commands = plan(config, force_push=force_push)
    if dry_run:
        for argv in commands:
            print(f"[dry-run] {shlex.join(argv)}")
        result.commands = commands
        return result

    root = config.root
    env = child_env(config.env)
    fetch, checkout, reset, ensure, codemods, install, add, _commit, main, merge, push = commands

    def step(argv: List[str]) -> None:
        result.commands.append(argv)
        run(argv, cwd=root, env=env, check=True)

    ensure_remote(config, run=run)
    with tempfile.TemporaryDirectory(prefix="forksmith-sync-") as tmp:
        stash = Path(tmp)
        saved = stash_protected(root, config.protected_paths, stash)
        log.info("kept %d protected path(s) aside", len(saved))
        step(fetch)
        step(checkout)
        step(reset)
        restore_protected(root, saved, stash)
        result.restored = saved
    result.removed_lockfiles = remove_lockfiles(root)

    step(ensure)
    step(codemods)
    step(install)
    step(add)
    result.commands.append(_commit)
    result.committed = commit_changes(config, run=run)
    step(main)
    step(merge)
    step(push)
    result.pushed = True
    log.info("fork is in sync with %s/%s", config.upstream_remote, config.upstream_branch)
    return result

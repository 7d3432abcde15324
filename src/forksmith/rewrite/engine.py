"""
Apply ordered rewrite rules to files and write back only what changed.
"""

from __future__ import annotations

import copy
import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from ..config import ForkConfig
from ..errors import BackendError, RewriteError
from .backends import get_backend
from .paths import SKIP_DIRS, discover_files, match_any, relative_posix
from .rules import FileRewrite, RewriteRule, RuleContext

log = logging.getLogger(__name__)


@dataclass
class RewriteRun:
    results: List[FileRewrite] = field(default_factory=list)
    dry_run: bool = False

    @property
    def changed(self) -> List[FileRewrite]:
        return [r for r in self.results if r.changed]

    @property
    def failed(self) -> List[FileRewrite]:
        return [r for r in self.results if r.error]

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0


def rewrite_source(
    source: str,
    rules: Sequence[RewriteRule],
    ctx: RuleContext,
    strict: bool = False,
) -> Tuple[FileRewrite, str]:
    """
    Run ``rules`` over ``source`` in order.

    Each rule parses the current text with its backend; the text is only
    replaced when the rendered result differs from the rendering of the tree
    the rule was given. A rule that changes nothing leaves the original
    formatting untouched; a rule that only reorders keys still counts.
    """

    result = FileRewrite(path=ctx.path)
    current = source
    for rule in rules:
        backend = get_backend(rule.backend)
        try:
            tree = backend.parse(current)
        except BackendError as exc:
            message = f"{rule.name}: skipped, {exc.message}"
            if strict:
                raise RewriteError(f"{ctx.rel_path}: {message}") from exc
            ctx.warn(message)
            continue
        before = copy.deepcopy(tree)
        after = rule.apply(tree, ctx)
        rendered = backend.render(after)
        if rendered == backend.render(before):
            continue
        current = rendered
        result.applied.append(rule.name)
    result.changed = current != source
    result.notes = list(ctx.notes)
    result.warnings = list(ctx.warnings)
    return result, current


def write_atomic(path: Path, text: str, backup_suffix: Optional[str] = None) -> Optional[Path]:
    """Write through ``<file>.tmp`` and ``replace``; keep the file mode; optionally copy the original aside first."""
    backup: Optional[Path] = None
    if backup_suffix:
        backup = path.with_name(path.name + backup_suffix)
        shutil.copy2(path, backup)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(text, encoding="utf-8")
    shutil.copymode(path, tmp_path)
    tmp_path.replace(path)
    return backup


def rewrite_file(
    path: Path,
    rules: Sequence[RewriteRule],
    config: ForkConfig,
    write: bool = True,
    backup: bool = False,
    strict: bool = False,
) -> FileRewrite:
    rel = relative_posix(path, config.root)
    ctx = RuleContext(path=path, rel_path=rel, config=config)
    try:
        source = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        return FileRewrite(path=path, error=f"cannot read: {exc}")
    result, text = rewrite_source(source, rules, ctx, strict=strict)
    if result.changed and write:
        try:
            result.backup = write_atomic(path, text, config.backup_suffix if backup else None)
        except OSError as exc:
            result.error = f"cannot write: {exc}"
            return result
        result.written = True
        log.info("updated %s (%s)", rel, ", ".join(result.applied))
    elif result.changed:
        log.info("would update %s (%s)", rel, ", ".join(result.applied))
    else:
        log.debug("unchanged %s", rel)
    return result


def _candidate_files(
    config: ForkConfig,
    rules: Sequence[RewriteRule],
    paths: Optional[Iterable[Path]],
    globs: Optional[Sequence[str]],
) -> List[Path]:
    patterns: List[str] = []
    for rule in rules:
        patterns.extend(rule.file_patterns(config))
    root = config.root
    if paths:
        found: List[Path] = []
        for raw in paths:
            path = raw if raw.is_absolute() else root / raw
            if path.is_dir():
                found.extend(
                    p for p in discover_files(path, ["**"], SKIP_DIRS) if match_any(relative_posix(p, root), patterns)
                )
            elif path.is_file():
                found.append(path)
            else:
                log.warning("%s does not exist; skipping", raw)
        files = found
    else:
        files = list(discover_files(root, patterns, SKIP_DIRS))
    if globs:
        files = [p for p in files if match_any(relative_posix(p, root), globs)]
    files = [p for p in files if not p.name.endswith((config.backup_suffix, ".tmp"))]
    return list(dict.fromkeys(files))


def run_codemods(
    config: ForkConfig,
    rules: Sequence[RewriteRule],
    paths: Optional[Iterable[Path]] = None,
    globs: Optional[Sequence[str]] = None,
    write: bool = True,
    backup: bool = False,
    strict: bool = False,
) -> RewriteRun:
    """
    Rewrite every candidate file with the rules whose patterns match it.

    Files come from ``paths`` when given, otherwise from the rules' own
    patterns; ``globs`` narrows that set further.
    """

    run = RewriteRun(dry_run=not write)
    for path in _candidate_files(config, rules, paths, globs):
        rel = relative_posix(path, config.root)
        matching = [rule for rule in rules if rule.matches(rel, config)]
        if not matching:
            log.debug("no codemod matches %s", rel)
            continue
        run.results.append(rewrite_file(path, matching, config, write=write, backup=backup, strict=strict))
    return run

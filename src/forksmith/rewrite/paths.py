"""
Glob matching and file discovery for rewrite rules.
"""

from __future__ import annotations

import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Iterator, List

SKIP_DIRS = {"node_modules", "dist", "build", ".git", "coverage", "__pycache__", ".venv", "venv"}


def expand_braces(pattern: str) -> List[str]:
    """Expand the first ``{a,b}`` group recursively: ``*.{js,ts}`` -> ``*.js``, ``*.ts``."""
    match = re.search(r"\{([^{}]*)\}", pattern)
    if not match:
        return [pattern]
    head, tail = pattern[: match.start()], pattern[match.end() :]
    expanded: List[str] = []
    for option in match.group(1).split(","):
        expanded.extend(expand_braces(head + option + tail))
    return expanded


def _translate(pattern: str) -> str:
    out: List[str] = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            out.append(".*")
            i += 2
        elif pattern[i] == "*":
            out.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            out.append("[^/]")
            i += 1
        else:
            out.append(re.escape(pattern[i]))
            i += 1
    return "".join(out)


@lru_cache(maxsize=512)
def _compile(pattern: str) -> "re.Pattern[str]":
    alternatives = "|".join(_translate(p) for p in expand_braces(pattern))
    return re.compile(rf"(?:{alternatives})\Z")


def match_path(rel_path: str, pattern: str) -> bool:
    """
    Match a posix relative path against a glob.

    ``*`` and ``?`` stay within one path segment; ``**/`` spans zero or more
    directories; ``{a,b}`` lists alternatives.
    """

    return _compile(pattern).match(rel_path) is not None


def match_any(rel_path: str, patterns: Iterable[str]) -> bool:
    return any(match_path(rel_path, pattern) for pattern in patterns)


def relative_posix(path: Path, root: Path) -> str:
    try:
        return path.resolve().relative_to(root.resolve()).as_posix()
    except ValueError:
        return path.as_posix()


def should_skip(name: str, skip_dirs: Iterable[str] = SKIP_DIRS) -> bool:
    return name in skip_dirs


def discover_files(root: Path, patterns: Iterable[str], skip_dirs: Iterable[str] = SKIP_DIRS) -> Iterator[Path]:
    """Yield files under ``root`` matching any pattern, in sorted order, pruning skipped directories."""
    patterns = list(patterns)
    skip = set(skip_dirs)
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if not should_skip(d, skip))
        base = Path(dirpath)
        for filename in sorted(filenames):
            path = base / filename
            rel = path.relative_to(root).as_posix()
            if match_any(rel, patterns):
                yield path

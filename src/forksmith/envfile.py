"""
Fill ``KEY=GET_FROM_LOCAL_ENV`` placeholders in env files from the runtime
environment.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional, Sequence

from .errors import MissingEnvError

log = logging.getLogger(__name__)


@dataclass
class EnvUpdate:
    key: str
    old: str
    new: str


@dataclass
class EnvFileResult:
    output: Path
    inputs: List[Path] = field(default_factory=list)
    lines: List[str] = field(default_factory=list)
    updates: List[EnvUpdate] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    written: bool = False


def placeholder_pattern(placeholder: str) -> "re.Pattern[str]":
    return re.compile(rf"^\s*([A-Z0-9_]+)={re.escape(placeholder)}\s*$")


def detect_env_files(directory: Path, output: Path, backup_suffix: str = ".bak") -> List[Path]:
    """``.env*`` files in ``directory``, sorted, excluding the output and backups."""
    found = []
    for path in sorted(directory.glob(".env*")):
        if not path.is_file() or path.resolve() == output.resolve():
            continue
        if path.name.endswith((backup_suffix, ".tmp")):
            continue
        found.append(path)
    return found


def substitute_lines(
    lines: Sequence[str],
    env: Mapping[str, str],
    placeholder: str,
    fallback: Optional[str] = None,
) -> tuple[List[str], List[EnvUpdate], List[str]]:
    """
    Replace placeholder lines.

    A key present in ``env`` (even as an empty string) wins; otherwise the
    fallback is used when given; otherwise the line is kept and the key is
    reported missing.
    """

    pattern = placeholder_pattern(placeholder)
    out: List[str] = []
    updates: List[EnvUpdate] = []
    missing: List[str] = []
    for line in lines:
        match = pattern.match(line)
        if not match:
            out.append(line)
            continue
        key = match.group(1)
        if key in env:
            value = env[key]
        elif fallback is not None:
            value = fallback
        else:
            missing.append(key)
            out.append(line)
            continue
        new_line = f"{key}={value}"
        updates.append(EnvUpdate(key=key, old=line, new=new_line))
        out.append(new_line)
    return out, updates, missing


def update_env(
    output: Path,
    inputs: Sequence[Path],
    env: Mapping[str, str],
    placeholder: str = "GET_FROM_LOCAL_ENV",
    fallback: Optional[str] = None,
    strict: bool = False,
    dry_run: bool = False,
) -> EnvFileResult:
    result = EnvFileResult(output=output)
    lines: List[str] = []
    for path in inputs:
        if not path.is_file():
            log.warning("input %s not found; skipping", path)
            continue
        result.inputs.append(path)
        lines.extend(path.read_text(encoding="utf-8").splitlines())

    result.lines, result.updates, result.missing = substitute_lines(lines, env, placeholder, fallback)

    if result.missing:
        keys = ", ".join(result.missing)
        if strict:
            raise MissingEnvError(f"missing values for: {keys}", keys=list(result.missing))
        log.warning("no value or fallback for %s; left unchanged", keys)

    if dry_run:
        return result
    output.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = output.with_name(output.name + ".tmp")
    tmp_path.write_text("\n".join(result.lines) + ("\n" if result.lines else ""), encoding="utf-8")
    tmp_path.replace(output)
    result.written = True
    log.info("wrote %s (%d placeholder(s) filled)", output, len(result.updates))
    return result

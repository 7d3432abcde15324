"""
Thin wrappers around external command-line tools (bun, docker, git, cosign).
"""

from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional, Sequence

from .errors import CommandError, ToolNotFoundError

log = logging.getLogger(__name__)


@dataclass
class CommandResult:
    argv: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


# run(argv, cwd=..., env=..., capture=..., check=...) -> CommandResult
CommandRunner = Callable[..., CommandResult]


def require_tool(tool: str, which: Callable[[str], Optional[str]] = shutil.which) -> str:
    path = which(tool)
    if not path:
        raise ToolNotFoundError(f"'{tool}' is not installed or not on PATH", tool=tool)
    return path


def child_env(base: Mapping[str, str], **extra: str) -> Dict[str, str]:
    env = dict(base)
    env.update(extra)
    return env


def run_command(
    argv: Sequence[str],
    cwd: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
    capture: bool = False,
    check: bool = True,
) -> CommandResult:
    """
    Run one external command to completion.

    Output streams to the terminal unless ``capture`` is set. With ``check``
    a non-zero exit raises ``CommandError``; a missing executable always
    raises ``ToolNotFoundError``.
    """

    argv = [str(a) for a in argv]
    log.debug("$ %s%s", shlex.join(argv), f"  (in {cwd})" if cwd else "")
    try:
        proc = subprocess.run(
            argv,
            cwd=str(cwd) if cwd else None,
            env=dict(env) if env is not None else None,
            capture_output=capture,
            text=True,
        )
    except FileNotFoundError as exc:
        raise ToolNotFoundError(f"'{argv[0]}' is not installed or not on PATH", tool=argv[0]) from exc
    result = CommandResult(argv=argv, returncode=proc.returncode, stdout=proc.stdout or "", stderr=proc.stderr or "")
    if check and not result.ok:
        raise CommandError(
            f"{shlex.join(argv)} exited with status {proc.returncode}",
            argv=argv,
            returncode=proc.returncode,
        )
    return result

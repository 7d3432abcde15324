"""
Custom error types for forksmith.
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class ForksmithError(Exception):
    """Base error; the CLI reports it and exits with status 1."""

    message: str
    code: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


class ConfigError(ForksmithError):
    """Invalid configuration value."""


@dataclass
class ToolNotFoundError(ForksmithError):
    """A required external command-line tool is not on PATH."""

    tool: str = ""


class BackendError(ForksmithError):
    """A file could not be parsed or rendered by a rewrite backend."""


class RewriteError(ForksmithError):
    """A rewrite run cannot continue."""


class ManifestError(ForksmithError):
    """A package manifest is missing, unreadable or incomplete."""


@dataclass
class CommandError(ForksmithError):
    """An external command exited with a non-zero status."""

    argv: List[str] = field(default_factory=list)
    returncode: int = 1


@dataclass
class MissingEnvError(ForksmithError):
    """Placeholders in an env file had no runtime value and no fallback."""

    keys: List[str] = field(default_factory=list)

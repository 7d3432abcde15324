from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Tuple

from ..config import ForkConfig
from .paths import match_any

log = logging.getLogger(__name__)


@dataclass
class RuleContext:
    """What a rule may know about the file it is rewriting."""

    path: Path
    rel_path: str
    config: ForkConfig
    notes: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def note(self, message: str) -> None:
        self.notes.append(message)
        log.debug("%s: %s", self.rel_path, message)

    def warn(self, message: str) -> None:
        self.warnings.append(message)
        log.warning("%s: %s", self.rel_path, message)


@dataclass
class FileRewrite:
    path: Path
    applied: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    error: Optional[str] = None
    changed: bool = False
    written: bool = False
    backup: Optional[Path] = None


class RewriteRule:
    """
    An idempotent rewrite over one kind of file.

    Subclasses set ``name``, ``backend`` and ``patterns`` and implement
    ``apply``. ``apply`` receives the parsed tree (a string for the text
    backend) and returns the new tree; the engine decides whether anything
    changed.
    """

    name: str = ""
    description: str = ""
    backend: str = "text"
    patterns: Tuple[str, ...] = ()
    default: bool = True

    def file_patterns(self, config: ForkConfig) -> Tuple[str, ...]:
        return self.patterns

    def matches(self, rel_path: str, config: ForkConfig) -> bool:
        return match_any(rel_path, self.file_patterns(config))

    def apply(self, tree: Any, ctx: RuleContext) -> Any:
        raise NotImplementedError

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<RewriteRule {self.name}>"

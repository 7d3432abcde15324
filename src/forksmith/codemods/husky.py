"""
Git hooks managed by husky run bun.
"""

from __future__ import annotations

import re

from ..config import ForkConfig
from ..rewrite.registry import register
from ..rewrite.rules import RewriteRule, RuleContext
from .commands import to_bun

_BUN_RUN_TEST = re.compile(r"(?<![\w-])bun\s+run\s+test(?![\w:-])")


def rewrite_hook(source: str) -> str:
    return _BUN_RUN_TEST.sub("bun test", to_bun(source))


@register
class HuskyRule(RewriteRule):
    name = "husky"
    description = "husky hooks -> bun / bunx"

    def file_patterns(self, config: ForkConfig):
        hooks_dir = config.husky_hooks_dir.strip("/") or ".husky"
        return (f"{hooks_dir}/*",)

    def matches(self, rel_path: str, config: ForkConfig) -> bool:
        return super().matches(rel_path, config) and not rel_path.endswith((".md", ".gitignore"))

    def apply(self, tree: str, ctx: RuleContext) -> str:
        return rewrite_hook(tree)

"""
Replace ``process.env`` access with the bun runtime equivalents.

Server code reads ``Bun.env``; browser code (anything under ``client/`` and
vite configs) reads ``import.meta.env``. dotenv bootstrapping is dropped,
since bun loads ``.env`` files itself.
"""

from __future__ import annotations

import re

from ..rewrite.registry import register
from ..rewrite.rules import RewriteRule, RuleContext
from .js_common import strip_dotenv

_IDENT = r"[A-Za-z_$][\w$]*"
_FALLBACK = re.compile(rf"\bprocess\.env\.({_IDENT})\s*\|\|")
_DOTTED = re.compile(rf"\bprocess\.env\.({_IDENT})")
_BRACKET = re.compile(r"\bprocess\.env\[\s*(['\"])([^'\"]+)\1\s*\]")
_VALID_IDENT = re.compile(rf"^{_IDENT}$")


def env_target(rel_path: str) -> str:
    name = rel_path.rsplit("/", 1)[-1]
    if rel_path.startswith("client/") or "/client/" in rel_path or name.startswith("vite.config."):
        return "import.meta.env"
    return "Bun.env"


def rewrite_env_access(source: str, target: str) -> str:
    text = strip_dotenv(source)
    text = _FALLBACK.sub(lambda m: f"{target}.{m.group(1)} ??", text)
    text = _DOTTED.sub(lambda m: f"{target}.{m.group(1)}", text)

    def _bracket(match: "re.Match[str]") -> str:
        key = match.group(2)
        if _VALID_IDENT.match(key):
            return f"{target}.{key}"
        return f"{target}[{match.group(1)}{key}{match.group(1)}]"

    return _BRACKET.sub(_bracket, text)


@register
class EnvAccessRule(RewriteRule):
    name = "env-access"
    description = "process.env -> Bun.env / import.meta.env, drop dotenv"
    patterns = (
        "api/**/*.{js,ts}",
        "client/src/**/*.{js,jsx,ts,tsx}",
        "client/vite.config.{js,ts,mjs}",
        "config/**/*.{js,ts}",
        "packages/**/src/**/*.{js,ts}",
    )

    def apply(self, tree: str, ctx: RuleContext) -> str:
        target = env_target(ctx.rel_path)
        updated = rewrite_env_access(tree, target)
        if updated != tree:
            ctx.note(f"env access -> {target}")
        return updated

"""
End-to-end test sources: run under bun, read Bun.env, load TypeScript helpers.
"""

from __future__ import annotations

import re

from ..rewrite.registry import register
from ..rewrite.rules import RewriteRule, RuleContext
from .js_common import LINE_END, call_arguments, has_import, insert_import, js_quote, unquote

_PATH_IMPORT = re.compile(
    r"^[ \t]*(?:import\s+(?:\*\s+as\s+)?path\s+from\s+['\"](?:node:)?path['\"]"
    r"|(?:const|let|var)\s+path\s*=\s*require\(\s*['\"](?:node:)?path['\"]\s*\))" + LINE_END,
    re.M,
)
_RESOLVE_CWD = re.compile(r"\bpath\.resolve\(\s*process\.cwd\(\)\s*,")
_DOTENV_CONFIG = re.compile(r"^([ \t]*)require\(\s*['\"]dotenv['\"]\s*\)\.config\(", re.M)
_PROCESS_ENV = re.compile(r"\bprocess\.env\b")
_REQUIRE_RESOLVE = re.compile(r"\brequire\.resolve\(\s*((['\"])[^'\"\n]+\2)\s*\)")
_NODE_COMMAND = re.compile(r"(['\"`])node ")


def _resolve_from_cwd(text: str) -> str:
    out = []
    pos = 0
    for match in _RESOLVE_CWD.finditer(text):
        if match.start() < pos:
            continue
        parsed = call_arguments(text, text.index("(", match.start()))
        if parsed is None:
            continue
        args, end = parsed
        if len(args) != 2 or unquote(args[1]) is None:
            continue
        target = unquote(args[1])
        target = re.sub(r"\.js$", ".ts", target)
        if target.startswith("./"):
            target = target[2:]
        out.append(text[pos : match.start()])
        out.append(f"Bun.cwd() + {js_quote('/' + target)}")
        pos = end
    out.append(text[pos:])
    return "".join(out)


def rewrite_e2e_source(source: str) -> str:
    text = _resolve_from_cwd(source)
    if _DOTENV_CONFIG.search(text):
        text = _DOTENV_CONFIG.sub(lambda m: f"{m.group(1)}config(", text)
        if not re.search(r"^\s*import\s*\{[^}]*\bconfig\b[^}]*\}\s*from\s*['\"]dotenv['\"]", text, re.M):
            text = insert_import(text, "import { config } from 'dotenv';")
    text = _PROCESS_ENV.sub("Bun.env", text)
    text = _REQUIRE_RESOLVE.sub(lambda m: m.group(1), text)
    text = _NODE_COMMAND.sub(lambda m: f"{m.group(1)}bun run ", text)
    if has_import(text, "path") and not re.search(r"(?<![\w$.])path\.", _PATH_IMPORT.sub("", text)):
        text = _PATH_IMPORT.sub("", text)
    return text


@register
class E2eTestsRule(RewriteRule):
    name = "e2e-tests"
    description = "e2e specs and configs run under bun"
    patterns = ("e2e/**/*.{js,ts}",)

    def apply(self, tree: str, ctx: RuleContext) -> str:
        return rewrite_e2e_source(tree)

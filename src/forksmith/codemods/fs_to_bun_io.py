"""
Synchronous fs reads/writes -> Bun.file / Bun.write.

Modules run as ESM under bun, so the inserted ``await`` is valid at top level.
"""

from __future__ import annotations

import re

from ..rewrite.registry import register
from ..rewrite.rules import RewriteRule, RuleContext
from .js_common import LINE_END, call_arguments

_READ = re.compile(r"(?<![\w$.])(?:fs\.)?readFileSync\(")
_WRITE = re.compile(r"(?<![\w$.])(?:fs\.)?writeFileSync\(")
_NAMED_FS = re.compile(
    r"^([ \t]*)(?:import\s*\{([^}]*)\}\s*from\s*(['\"])((?:node:)?fs)\3"
    r"|(?:const|let|var)\s*\{([^}]*)\}\s*=\s*require\(\s*(['\"])((?:node:)?fs)\6\s*\))" + LINE_END,
    re.M,
)
_FS_BINDING = re.compile(
    r"^[ \t]*(?:import\s+(?:\*\s+as\s+)?fs\s+from\s+['\"](?:node:)?fs['\"]"
    r"|(?:const|let|var)\s+fs\s*=\s*require\(\s*['\"](?:node:)?fs['\"]\s*\))" + LINE_END,
    re.M,
)
_REPLACED = {"readFileSync", "writeFileSync"}


def _replace_calls(text: str, pattern: "re.Pattern[str]", render) -> str:
    out = []
    pos = 0
    for match in pattern.finditer(text):
        if match.start() < pos:
            continue
        parsed = call_arguments(text, match.end() - 1)
        if parsed is None:
            continue
        args, end = parsed
        replacement = render(args)
        if replacement is None:
            continue
        out.append(text[pos : match.start()])
        out.append(replacement)
        pos = end
    out.append(text[pos:])
    return "".join(out)


def _read(args):
    if not args:
        return None
    return f"await Bun.file({args[0]}).text()"


def _write(args):
    if len(args) < 2:
        return None
    return f"await Bun.write({args[0]}, {args[1]})"


def _prune_specifiers(match: "re.Match[str]") -> str:
    indent = match.group(1)
    is_import = match.group(2) is not None
    body = match.group(2) if is_import else match.group(5)
    names = [s.strip() for s in body.split(",") if s.strip()]
    kept = [s for s in names if re.split(r"\s+as\s+|\s*:\s*", s)[0] not in _REPLACED]
    if len(kept) == len(names):
        return match.group(0)
    if not kept:
        return ""
    newline = "\n" if match.group(0).endswith("\n") else ""
    if is_import:
        quote, module = match.group(3), match.group(4)
        return f"{indent}import {{ {', '.join(kept)} }} from {quote}{module}{quote};{newline}"
    quote, module = match.group(6), match.group(7)
    return f"{indent}const {{ {', '.join(kept)} }} = require({quote}{module}{quote});{newline}"


def rewrite_fs_calls(source: str) -> str:
    text = _replace_calls(source, _READ, _read)
    text = _replace_calls(text, _WRITE, _write)
    if text == source:
        return source
    text = _NAMED_FS.sub(_prune_specifiers, text)
    if not re.search(r"(?<![\w$.])fs\.", _FS_BINDING.sub("", text)):
        text = _FS_BINDING.sub("", text)
    return text


@register
class FsToBunIoRule(RewriteRule):
    name = "fs-to-bun-io"
    description = "readFileSync/writeFileSync -> Bun.file().text() / Bun.write()"
    patterns = ("api/**/*.{js,ts}", "config/**/*.{js,ts}")

    def apply(self, tree: str, ctx: RuleContext) -> str:
        updated = rewrite_fs_calls(tree)
        if updated != tree:
            ctx.note("replaced synchronous fs calls")
        return updated

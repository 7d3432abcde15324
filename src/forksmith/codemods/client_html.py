"""
Client HTML: classic script tags become module imports, and the app entry
loads right after the inline theme setup.
"""

from __future__ import annotations

import re

from ..rewrite.registry import register
from ..rewrite.rules import RewriteRule, RuleContext
from .js_common import js_quote

MAIN_ENTRY = "/src/main.jsx"
MAIN_LOADER = '<script defer type="module">\n  await import(\'/src/main.jsx\');\n</script>'

_SRC_SCRIPT = re.compile(r"<script\b([^>]*?)\ssrc=(['\"])([^'\"]+)\2([^>]*)>\s*</script>", re.I)
_INLINE_SCRIPT = re.compile(r"<script\b(?![^>]*\ssrc=)[^>]*>(.*?)</script>", re.I | re.S)
_EXTERNAL = re.compile(r"^(?:[a-z][a-z0-9+.-]*:)?//", re.I)


def convert_script_sources(source: str) -> str:
    def _convert(match: "re.Match[str]") -> str:
        src = match.group(3)
        if _EXTERNAL.match(src):
            return match.group(0)
        return f'<script type="module">await import({js_quote(src)});</script>'

    return _SRC_SCRIPT.sub(_convert, source)


def insert_main_loader(source: str) -> str:
    if f"import('{MAIN_ENTRY}')" in source:
        return source
    for match in _INLINE_SCRIPT.finditer(source):
        if "const theme =" in match.group(1):
            line_start = source.rfind("\n", 0, match.start()) + 1
            indent = re.match(r"[ \t]*", source[line_start:]).group(0)
            loader = MAIN_LOADER.replace("\n", "\n" + indent)
            return source[: match.end()] + "\n" + indent + loader + source[match.end() :]
    return source


def rewrite_client_html(source: str, is_index: bool) -> str:
    text = convert_script_sources(source)
    if is_index:
        text = insert_main_loader(text)
    return text


@register
class ClientHtmlRule(RewriteRule):
    name = "client-html"
    description = "module script loading in client HTML"
    patterns = ("client/**/*.html",)

    def apply(self, tree: str, ctx: RuleContext) -> str:
        return rewrite_client_html(tree, ctx.rel_path == "client/index.html")

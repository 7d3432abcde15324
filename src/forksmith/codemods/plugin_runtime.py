"""
Hooks for the fork's plugin runtime: the front-end loader component, its
HTML bootstrap, the vite file-serving allowance and the API plugin server.
"""

from __future__ import annotations

import re

from ..rewrite.registry import register
from ..rewrite.rules import RewriteRule, RuleContext
from .js_common import find_closing, has_import, insert_import, split_top_level, statement_end

PLUGIN_LOADER_IMPORT = "import PluginLoader from './plugin-runtime/PluginLoader';"
PLUGIN_SERVER_IMPORT = "import pluginServer from './pluginServer';"
HTML_MARKER = "<!-- plugin runtime -->"
HTML_BOOTSTRAP = (
    f"    {HTML_MARKER}\n"
    '    <script type="module">\n'
    "      import './plugin-runtime/PluginLoader';\n"
    "    </script>\n"
)

_APP_ELEMENT = re.compile(r"<App\b[^<>]*?/>")
_ROOT_DIV = re.compile(r"<div\b[^>]*\bid=(['\"])root\1[^>]*>(?:\s*</div>)?[^\n]*\n?", re.I)
_ALLOW = re.compile(r"\ballow\s*:\s*\[")
_APP_USE = re.compile(r"^[ \t]*app\.use\(", re.M)
_APP_DECLARATION = re.compile(r"^[ \t]*(?:const|let|var)\s+app\s*=", re.M)
_PLUGIN_SERVER_LINE = re.compile(r"^[ \t]*\S.*['\"]\./pluginServer['\"]", re.M)


def wrap_app_element(source: str) -> str:
    out = []
    pos = 0
    for match in _APP_ELEMENT.finditer(source):
        before = source[: match.start()].rstrip()
        if before.endswith("<PluginLoader>"):
            continue
        out.append(source[pos : match.start()])
        out.append(f"<PluginLoader>{match.group(0)}</PluginLoader>")
        pos = match.end()
    out.append(source[pos:])
    text = "".join(out)
    if "<PluginLoader>" in text and not has_import(text, "./plugin-runtime/PluginLoader"):
        text = insert_import(text, PLUGIN_LOADER_IMPORT)
    return text


def insert_html_bootstrap(source: str) -> str:
    if HTML_MARKER in source or "plugin-runtime/PluginLoader" in source:
        return source
    match = _ROOT_DIV.search(source)
    if match is None:
        return source
    end = match.end()
    prefix = source[:end] if source[:end].endswith("\n") else source[:end] + "\n"
    return prefix + HTML_BOOTSTRAP + source[end:]


def ensure_fs_allow(source: str, entries=(".", "..")) -> str:
    match = _ALLOW.search(source)
    if match is None:
        return source
    open_idx = match.end() - 1
    close = find_closing(source, open_idx)
    if close == -1:
        return source
    inner = source[open_idx + 1 : close]
    items = [item.strip() for item in split_top_level(inner) if item.strip()]
    present = {item.strip("'\"") for item in items}
    missing = [f"'{entry}'" for entry in entries if entry not in present]
    if not missing:
        return source
    return source[: open_idx + 1] + ", ".join(items + missing) + source[close:]


def insert_plugin_server(source: str) -> str:
    text = source
    if not has_import(text, "./pluginServer"):
        text = insert_import(text, PLUGIN_SERVER_IMPORT)
    if re.search(r"\bapp\.use\(\s*pluginServer\s*\)", text):
        return text
    uses = list(_APP_USE.finditer(text))
    if uses:
        anchor = uses[-1].start()
    else:
        declaration = _APP_DECLARATION.search(text)
        if declaration is None:
            declaration = _PLUGIN_SERVER_LINE.search(text)
        anchor = declaration.start()
    end = statement_end(text, anchor)
    indent = re.match(r"[ \t]*", text[anchor:]).group(0)
    return text[:end] + f"\n{indent}app.use(pluginServer);" + text[end:]


@register
class PluginLoaderRule(RewriteRule):
    name = "plugin-loader"
    description = "wrap <App /> in <PluginLoader>"
    patterns = ("frontend/src/index.tsx", "client/src/main.{jsx,tsx}")

    def apply(self, tree: str, ctx: RuleContext) -> str:
        return wrap_app_element(tree)


@register
class PluginLoaderHtmlRule(RewriteRule):
    name = "plugin-loader-html"
    description = "load the plugin runtime from client/index.html"
    patterns = ("client/index.html",)

    def apply(self, tree: str, ctx: RuleContext) -> str:
        updated = insert_html_bootstrap(tree)
        if updated == tree and HTML_MARKER not in tree and "plugin-runtime" not in tree:
            ctx.warn("no root element found; plugin runtime not injected")
        return updated


@register
class ViteFsAllowRule(RewriteRule):
    name = "vite-fs-allow"
    description = "let the vite dev server read the workspace and its parent"
    patterns = ("client/vite.config.{js,ts,mjs}",)

    def apply(self, tree: str, ctx: RuleContext) -> str:
        return ensure_fs_allow(tree)


@register
class PluginServerRule(RewriteRule):
    name = "plugin-server"
    description = "mount the plugin server on the API app"
    patterns = ("api/app/index.{js,ts}", "api/server/index.{js,ts}")

    def apply(self, tree: str, ctx: RuleContext) -> str:
        return insert_plugin_server(tree)

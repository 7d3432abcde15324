"""
Move the API entry point from Express to Elysia.
"""

from __future__ import annotations

import re

from ..rewrite.registry import register
from ..rewrite.rules import RewriteRule, RuleContext
from .express_routes import group_prefixed_mounts
from .js_common import (
    LINE_END,
    call_arguments,
    has_import,
    insert_import,
    js_quote,
    strip_dotenv,
    strip_module_alias,
    unquote,
)

_EXPRESS_BINDING = re.compile(
    r"^[ \t]*(?:(?:const|let|var)\s+express\s*=\s*require\(\s*['\"]express['\"]\s*\)"
    r"|import\s+express\s+from\s+['\"]express['\"])" + LINE_END,
    re.M,
)
_PATH_BINDING = re.compile(
    r"^[ \t]*(?:(?:const|let|var)\s+path\s*=\s*require\(\s*['\"]path['\"]\s*\)"
    r"|import\s+(?:\*\s+as\s+)?path\s+from\s+['\"]path['\"])" + LINE_END,
    re.M,
)
_APP_FACTORY = re.compile(r"\b((?:const|let|var)\s+app\s*=\s*)express\(\s*\)")
_BODY_PARSERS = re.compile(r"^[ \t]*app\.use\(\s*express\.(?:json|urlencoded)\((?:[^()]|\([^()]*\))*\)\s*\)" + LINE_END, re.M)
_SIMPLE_HOOKS = [
    (re.compile(r"\bapp\.use\(\s*cookieParser\(\s*\)\s*\)"), "app.use(cookie())"),
    (re.compile(r"\bapp\.use\(\s*mongoSanitize\(\s*\)\s*\)"), "app.hook('preHandler', mongoSanitize())"),
    (re.compile(r"\bapp\.use\(\s*noIndex\s*\)"), "app.hook('onRequest', noIndex)"),
    (re.compile(r"\bapp\.use\(\s*errorController\s*\)"), "app.onError(errorController)"),
]
_STATIC_CACHE = re.compile(r"\bapp\.use\(\s*staticCache\(")
_LISTEN = re.compile(r"(?<!await )\bapp\.listen\(")
_START_SERVER = re.compile(r"^([ \t]*)startServer\(\s*\)\s*;", re.M)
_PATH_JOIN = re.compile(r"\bpath\.(?:join|resolve)\(\s*__dirname\s*,")


def _replace_static_cache(text: str) -> str:
    out = []
    pos = 0
    for match in _STATIC_CACHE.finditer(text):
        if match.start() < pos:
            continue
        outer = call_arguments(text, match.start() + len("app.use"))
        inner = call_arguments(text, match.end() - 1)
        if outer is None or inner is None or not inner[0]:
            continue
        out.append(text[pos : match.start()])
        out.append(f"app.static({inner[0][0]}, {{ maxAge: Number(Bun.env.STATIC_CACHE_S_MAX_AGE) }})")
        pos = outer[1]
    out.append(text[pos:])
    return "".join(out)


def _replace_listen(text: str) -> str:
    out = []
    pos = 0
    for match in _LISTEN.finditer(text):
        if match.start() < pos:
            continue
        parsed = call_arguments(text, match.end() - 1)
        if parsed is None:
            continue
        args, end = parsed
        if args and args[0].startswith("{"):
            continue
        out.append(text[pos : match.start()])
        out.append("await app.listen({ port, hostname: host })")
        pos = end
    out.append(text[pos:])
    return "".join(out)


def _replace_path_join(text: str) -> str:
    out = []
    pos = 0
    for match in _PATH_JOIN.finditer(text):
        if match.start() < pos:
            continue
        open_idx = text.index("(", match.start())
        parsed = call_arguments(text, open_idx)
        if parsed is None:
            continue
        args, end = parsed
        segments = [unquote(a) for a in args[1:]]
        if not segments or any(s is None for s in segments):
            continue
        relative = "/".join(s.strip("/") for s in segments if s)
        out.append(text[pos : match.start()])
        out.append(f"new URL({js_quote(relative)}, import.meta.url).pathname")
        pos = end
    out.append(text[pos:])
    return "".join(out)


def rewrite_server_index(source: str) -> str:
    text = strip_module_alias(strip_dotenv(source))
    text = _BODY_PARSERS.sub("", text)
    text = _APP_FACTORY.sub(lambda m: f"{m.group(1)}new Elysia({{ bodyLimit: '3mb' }})", text)
    for pattern, replacement in _SIMPLE_HOOKS:
        text = pattern.sub(replacement, text)
    text = _replace_static_cache(text)
    text = group_prefixed_mounts(text)
    text = _replace_listen(text)
    text = _START_SERVER.sub(lambda m: f"{m.group(1)}await startServer();", text)
    text = _replace_path_join(text)
    if not re.search(r"\bexpress\b(?!['\"/-])", _EXPRESS_BINDING.sub("", text)):
        text = _EXPRESS_BINDING.sub("", text)
    if not re.search(r"\bpath\.", _PATH_BINDING.sub("", text)):
        text = _PATH_BINDING.sub("", text)
    if "new Elysia(" in text and not has_import(text, "elysia"):
        text = insert_import(text, "import { Elysia } from 'elysia';")
    if "cookie()" in text and not has_import(text, "@elysiajs/cookie"):
        text = insert_import(text, "import { cookie } from '@elysiajs/cookie';")
    return text


@register
class ServerIndexRule(RewriteRule):
    name = "server-index"
    description = "Express app bootstrap -> Elysia"
    patterns = ("api/server/index.js", "api/server/index.ts")

    def apply(self, tree: str, ctx: RuleContext) -> str:
        updated = rewrite_server_index(tree)
        if updated != tree:
            ctx.note("converted server bootstrap to Elysia")
        return updated


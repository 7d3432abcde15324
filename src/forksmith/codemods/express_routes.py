"""
Express route modules -> Elysia.

Each ``Router()`` becomes its own ``new Elysia()`` instance so route modules
stay importable and mountable. Verb calls keep their handler; middleware
moves to ``beforeHandle``. Prefixed ``use`` mounts become ``group`` calls,
and statement-level ``res.json``/``res.send`` replies become return values
with ``set.status`` on the handler's context.
"""

from __future__ import annotations

import re
from typing import List, Optional, Tuple

from ..rewrite.registry import register
from ..rewrite.rules import RewriteRule, RuleContext
from .js_common import LINE_END, call_arguments, has_import, insert_import, js_quote, unquote

VERBS = {"get", "post", "put", "patch", "delete", "head", "options", "all"}
# valid HTTP methods Elysia only reaches through .route()
EXTRA_VERBS = {
    "copy",
    "lock",
    "merge",
    "mkcol",
    "move",
    "notify",
    "propfind",
    "proppatch",
    "purge",
    "report",
    "search",
    "subscribe",
    "trace",
    "unlock",
    "unsubscribe",
}

_IDENT = r"[A-Za-z_$][\w$]*"
_ROUTER_DECL = re.compile(rf"^([ \t]*(?:const|let|var)\s+({_IDENT})\s*=\s*)(?:express\s*\.\s*)?Router\(", re.M)
_EXPRESS_BINDING = re.compile(
    r"^[ \t]*(?:import\s+express\s+from\s+['\"]express['\"]"
    r"|import\s*\{\s*Router\s*\}\s*from\s*['\"]express['\"]"
    r"|(?:const|let|var)\s+express\s*=\s*require\(\s*['\"]express['\"]\s*\)"
    r"|(?:const|let|var)\s*\{\s*Router\s*\}\s*=\s*require\(\s*['\"]express['\"]\s*\))" + LINE_END,
    re.M,
)
_MOUNTABLE = re.compile(rf"^{_IDENT}(?:\.{_IDENT})*$")
_HANDLER_HEAD = re.compile(rf"^(async\s+)?(function\b[^(]*)?\(\s*({_IDENT})\s*,\s*({_IDENT})\s*\)")


def before_handle(middleware: List[str]) -> str:
    return f"{{ beforeHandle: [{', '.join(middleware)}] }}"


def _rewrite_replies(body: str, ctx_name: str, res_name: str) -> str:
    pattern = re.compile(
        rf"^([ \t]*)(?:return\s+)?{re.escape(res_name)}\s*\.\s*(status|sendStatus|json|send)\(",
        re.M,
    )
    out: List[str] = []
    pos = 0
    for match in pattern.finditer(body):
        if match.start() < pos:
            continue
        indent, method = match.group(1), match.group(2)
        parsed = call_arguments(body, match.end() - 1)
        if parsed is None:
            continue
        args, end = parsed
        if method == "status":
            reply = re.match(r"\s*\.\s*(?:json|send)\(", body[end:])
            if reply is None or not args:
                continue
            inner = call_arguments(body, end + reply.end() - 1)
            if inner is None:
                continue
            value, end = inner
            replacement = f"{indent}{ctx_name}.set.status = {args[0]};\n{indent}return"
        elif method == "sendStatus":
            if not args:
                continue
            value = []
            replacement = f"{indent}{ctx_name}.set.status = {args[0]};\n{indent}return"
        else:
            value = args
            replacement = f"{indent}return"
        if value:
            replacement += f" {value[0]}"
        out.append(body[pos : match.start()])
        out.append(replacement)
        pos = end
    out.append(body[pos:])
    return "".join(out)


def convert_handler(handler: str) -> str:
    """
    Turn an inline ``(req, res) => {...}`` handler into an Elysia one.

    Replies become return values and ``res`` is dropped from the parameters
    once nothing else uses it. Named handlers are returned unchanged.
    """

    head = _HANDLER_HEAD.match(handler)
    if head is None:
        return handler
    req, res = head.group(3), head.group(4)
    body = _rewrite_replies(handler[head.end() :], req, res)
    if re.search(rf"(?<![\w$.]){re.escape(res)}(?![\w$])", body):
        return handler[: head.end()] + body
    return f"{head.group(1) or ''}{head.group(2) or ''}({req})" + body


def _route_call(receiver: str, method: str, args: List[str]) -> Optional[str]:
    # an object literal last means the call is already in Elysia form
    if len(args) < 2 or args[-1].startswith("{"):
        return None
    route, middleware, handler = args[0], args[1:-1], args[-1]
    converted = convert_handler(handler)
    if method in VERBS and not middleware and converted == handler:
        return None
    parts = [route, converted]
    if middleware:
        parts.append(before_handle(middleware))
    if method in VERBS:
        return f"{receiver}.{method}({', '.join(parts)})"
    return f"{receiver}.route({js_quote(method.upper())}, {', '.join(parts)})"


def _group_call(receiver: str, args: List[str]) -> Optional[str]:
    if len(args) < 2 or unquote(args[0]) is None or not _MOUNTABLE.match(args[-1]):
        return None
    middleware = args[1:-1]
    hook = f"{before_handle(middleware)}, " if middleware else ""
    return f"{receiver}.group({args[0]}, {hook}(group) => group.use({args[-1]}))"


def _rewrite_calls(text: str, receiver: str, verbs: bool) -> str:
    pattern = re.compile(rf"(?<![\w$.]){re.escape(receiver)}\s*\.\s*({_IDENT})\(")
    out: List[str] = []
    pos = 0
    for match in pattern.finditer(text):
        if match.start() < pos:
            continue
        method = match.group(1)
        is_route = verbs and (method in VERBS or method in EXTRA_VERBS)
        if method != "use" and not is_route:
            continue
        parsed = call_arguments(text, match.end() - 1)
        if parsed is None:
            continue
        args, end = parsed
        if method == "use":
            replacement = _group_call(receiver, args)
        else:
            replacement = _route_call(receiver, method, args)
        if replacement is None:
            continue
        out.append(text[pos : match.start()])
        out.append(replacement)
        pos = end
    out.append(text[pos:])
    return "".join(out)


def group_prefixed_mounts(text: str, receiver: str = "app") -> str:
    """Rewrite ``<receiver>.use('/prefix', ...middleware, child)`` as a ``group`` mount."""
    return _rewrite_calls(text, receiver, verbs=False)


def _replace_router_declarations(text: str) -> Tuple[str, List[str]]:
    names: List[str] = []
    out: List[str] = []
    pos = 0
    for match in _ROUTER_DECL.finditer(text):
        parsed = call_arguments(text, match.end() - 1)
        if parsed is None:
            continue
        names.append(match.group(2))
        out.append(text[pos : match.start()])
        out.append(f"{match.group(1)}new Elysia()")
        pos = parsed[1]
    out.append(text[pos:])
    return "".join(out), names


def rewrite_routes(source: str) -> str:
    text, routers = _replace_router_declarations(source)
    for name in routers:
        text = _rewrite_calls(text, name, verbs=True)
    remaining = _EXPRESS_BINDING.sub("", text)
    if not re.search(r"\bexpress\b(?!['\"/-])", remaining) and not re.search(r"\bRouter\(", remaining):
        text = remaining
    if "new Elysia(" in text and not has_import(text, "elysia"):
        text = insert_import(text, "import { Elysia } from 'elysia';")
    return text


@register
class ExpressRoutesRule(RewriteRule):
    name = "express-routes"
    description = "Express routers -> Elysia instances"
    patterns = ("api/server/routes/**/*.{js,ts}",)

    def apply(self, tree: str, ctx: RuleContext) -> str:
        updated = rewrite_routes(tree)
        if updated != tree:
            ctx.note("converted Express routes to Elysia")
        return updated

"""
CommonJS to ES module conversion.
"""

from __future__ import annotations

import re
from typing import Dict

from ..rewrite.registry import register
from ..rewrite.rules import RewriteRule, RuleContext
from .js_common import call_arguments, insert_import, js_quote, strip_dotenv, strip_module_alias, unquote

_DEFAULT_REQUIRE = re.compile(
    r"^([ \t]*)(?:const|let|var)\s+([A-Za-z_$][\w$]*)\s*=\s*require\(\s*(['\"])([^'\"\n]+)\3\s*\)\s*;?[ \t]*$",
    re.M,
)
_DESTRUCTURED_REQUIRE = re.compile(
    r"^([ \t]*)(?:const|let|var)\s*\{([^}]*)\}\s*=\s*require\(\s*(['\"])([^'\"\n]+)\3\s*\)\s*;?[ \t]*$",
    re.M,
)
_BARE_REQUIRE = re.compile(r"^([ \t]*)require\(\s*(['\"])([^'\"\n]+)\2\s*\)\s*;?[ \t]*$", re.M)
_MEMBER_REQUIRE = re.compile(r"(?<![\w$.])require\(\s*(['\"])([^'\"\n]+)\1\s*\)\s*\.\s*([A-Za-z_$][\w$]*)")
_DYNAMIC_REQUIRE = re.compile(r"(?<![\w$.])require\(")
_MODULE_EXPORTS = re.compile(r"^([ \t]*)module\.exports\s*=\s*", re.M)
_NAMED_EXPORT = re.compile(r"^([ \t]*)(?:module\.)?exports\.([A-Za-z_$][\w$]*)\s*=\s*", re.M)
# called at startup for its side effect; left as a require
_DYNAMIC_SKIP = {"module-alias", "module-alias/register"}


def _namespace_alias(source: str) -> str:
    return "_" + re.sub(r"[^\w$]", "_", source.strip("@./"))


def _named_specifiers(body: str) -> str:
    specifiers = []
    for raw in body.split(","):
        part = raw.strip()
        if not part:
            continue
        if ":" in part:
            key, local = (p.strip() for p in part.split(":", 1))
            specifiers.append(key if key == local else f"{key} as {local}")
        else:
            specifiers.append(part)
    return ", ".join(specifiers)


def _rewrite_dynamic(text: str) -> str:
    out = []
    pos = 0
    for match in _DYNAMIC_REQUIRE.finditer(text):
        if match.start() < pos:
            continue
        parsed = call_arguments(text, match.end() - 1)
        if parsed is None:
            continue
        args, end = parsed
        if len(args) != 1 or unquote(args[0]) in _DYNAMIC_SKIP:
            continue
        out.append(text[pos : match.start()])
        out.append(f"await import({args[0]})")
        pos = end
    out.append(text[pos:])
    return "".join(out)


def rewrite_requires(source: str) -> str:
    # bun loads .env itself and resolves aliases from tsconfig
    text = strip_module_alias(strip_dotenv(source))
    text = _DESTRUCTURED_REQUIRE.sub(
        lambda m: f"{m.group(1)}import {{ {_named_specifiers(m.group(2))} }} from '{m.group(4)}';",
        text,
    )
    text = _DEFAULT_REQUIRE.sub(lambda m: f"{m.group(1)}import {m.group(2)} from '{m.group(4)}';", text)
    text = _BARE_REQUIRE.sub(lambda m: f"{m.group(1)}import '{m.group(3)}';", text)

    namespaces: Dict[str, str] = {}

    def _member(match: "re.Match[str]") -> str:
        module = match.group(2)
        alias = namespaces.setdefault(module, _namespace_alias(module))
        return f"{alias}.{match.group(3)}"

    text = _MEMBER_REQUIRE.sub(_member, text)
    for module, alias in namespaces.items():
        statement = f"import * as {alias} from {js_quote(module)};"
        if statement not in text:
            text = insert_import(text, statement)

    text = _rewrite_dynamic(text)
    text = _MODULE_EXPORTS.sub(lambda m: f"{m.group(1)}export default ", text)
    text = _NAMED_EXPORT.sub(lambda m: f"{m.group(1)}export const {m.group(2)} = ", text)
    return text


@register
class RequireToImportRule(RewriteRule):
    name = "require-to-import"
    description = "CommonJS require/module.exports -> ES modules"
    patterns = ("api/**/*.js", "config/**/*.js", "packages/**/src/**/*.js")

    def apply(self, tree: str, ctx: RuleContext) -> str:
        updated = rewrite_requires(tree)
        if updated != tree:
            ctx.note("converted CommonJS module syntax")
        return updated

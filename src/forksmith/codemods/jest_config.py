"""
Jest configs: drop node-specific settings and point testMatch at the layout
``bun test`` runs.
"""

from __future__ import annotations

import re
from typing import List, Optional

from ..rewrite.registry import register
from ..rewrite.rules import RewriteRule, RuleContext
from .js_common import find_closing, js_quote, split_top_level, unquote

TEST_MATCH = [
    "<rootDir>/api/test/**/*.{spec,test}.js",
    "<rootDir>/client/test/**/*.{spec,test}.tsx",
    "<rootDir>/packages/**/test/**/*.{spec,test}.{js,ts,tsx}",
    "<rootDir>/e2e/specs/**/*.{spec,test}.{js,ts}",
]
DROPPED_KEYS = {"testEnvironment", "transform", "testMatch"}

_CONFIG_OBJECT = re.compile(r"(?:module\.exports\s*=|export\s+default)\s*\{")
_PROP_KEY = re.compile(r"^\s*(['\"]?)([\w$-]+)\1\s*:")


def _prop_key(prop: str) -> Optional[str]:
    match = _PROP_KEY.match(prop)
    return match.group(2) if match else None


def _anchor(key_literal: str) -> str:
    key = unquote(key_literal)
    if key is None:
        return key_literal
    if not key.startswith("^"):
        key = "^" + key
    if not key.endswith("$"):
        key = key + "$"
    quote = key_literal.strip()[0]
    return f"{quote}{key}{quote}"


def _anchor_mapper(prop: str) -> str:
    head, _, value = prop.partition(":")
    value = value.strip()
    if not value.startswith("{"):
        return prop
    close = find_closing(value, 0)
    if close == -1:
        return prop
    entries = [e.strip() for e in split_top_level(value[1:close]) if e.strip()]
    rendered: List[str] = []
    for entry in entries:
        parts = split_top_level(entry, ":")
        if len(parts) < 2:
            rendered.append(entry)
            continue
        key, rest = parts[0].strip(), ":".join(parts[1:]).strip()
        rendered.append(f"{_anchor(key)}: {rest}")
    body = "".join(f"    {entry},\n" for entry in rendered)
    return f"{head.strip()}: {{\n{body}  }}{value[close + 1:]}"


def rewrite_jest_config(source: str) -> str:
    match = _CONFIG_OBJECT.search(source)
    if match is None:
        return source
    open_idx = match.end() - 1
    close = find_closing(source, open_idx)
    if close == -1:
        return source
    props = [p.strip() for p in split_top_level(source[open_idx + 1 : close]) if p.strip()]
    kept: List[str] = []
    for prop in props:
        key = _prop_key(prop)
        if key in DROPPED_KEYS:
            continue
        if key == "moduleNameMapper":
            prop = _anchor_mapper(prop)
        kept.append(prop)
    patterns = "".join(f"    {js_quote(p)},\n" for p in TEST_MATCH)
    kept.append(f"testMatch: [\n{patterns}  ]")
    body = "".join(f"  {prop},\n" for prop in kept)
    return source[: open_idx + 1] + "\n" + body + source[close:]


@register
class JestConfigRule(RewriteRule):
    name = "jest-config"
    description = "jest testMatch/moduleNameMapper for the bun layout"
    patterns = ("**/jest.config.{js,cjs,mjs}",)

    def apply(self, tree: str, ctx: RuleContext) -> str:
        updated = rewrite_jest_config(tree)
        if updated == tree and not _CONFIG_OBJECT.search(tree):
            ctx.warn("no exported config object found")
        return updated

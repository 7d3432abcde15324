"""
tsconfig: bundler resolution, bun/elysia types, subpath imports instead of paths.
"""

from __future__ import annotations

from typing import Any, Dict

from ..rewrite.registry import register
from ..rewrite.rules import RewriteRule, RuleContext

TS_FLAGS: Dict[str, Any] = {
    "module": "ESNext",
    "target": "ESNext",
    "moduleDetection": "force",
    "jsx": "react-jsx",
    "moduleResolution": "bundler",
    "allowImportingTsExtensions": True,
    "verbatimModuleSyntax": True,
    "noEmit": True,
    "importsNotUsedAsValues": "preserve",
}
DEFAULT_IMPORTS: Dict[str, str] = {
    "elysia": "elysia",
    "@elysia/*": "@elysia/*",
    "bun:*": "bun:*",
}
REQUIRED_TYPES = ("elysia", "bun")


def _first_target(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if len(value) == 1 else value
    return value


def migrate_tsconfig(config: Dict[str, Any]) -> Dict[str, Any]:
    options = config.setdefault("compilerOptions", {})
    options.update(TS_FLAGS)
    paths = options.pop("paths", None)
    imports = config.setdefault("imports", {})
    if isinstance(paths, dict):
        for alias, targets in paths.items():
            imports.setdefault(alias, _first_target(targets))
    for alias, target in DEFAULT_IMPORTS.items():
        imports.setdefault(alias, target)
    types = options.get("types")
    if not isinstance(types, list):
        types = []
    for name in REQUIRED_TYPES:
        if name not in types:
            types.append(name)
    options["types"] = types
    return config


@register
class TsconfigRule(RewriteRule):
    name = "tsconfig"
    description = "tsconfig compiler options for bun"
    backend = "jsonc"
    patterns = ("**/tsconfig.json", "**/tsconfig.*.json")

    def apply(self, tree: Any, ctx: RuleContext) -> Any:
        if not isinstance(tree, dict):
            ctx.warn("tsconfig is not an object; skipped")
            return tree
        return migrate_tsconfig(tree)

"""
package.json: ESM, bun/elysia engines, no Express-era dependencies.
"""

from __future__ import annotations

from typing import Any, Dict

from ..rewrite.registry import register
from ..rewrite.rules import RewriteRule, RuleContext

LEGACY_DEPENDENCIES = (
    "express",
    "express-async-handler",
    "body-parser",
    "cookie-parser",
    "cors",
    "dotenv",
    "morgan",
    "helmet",
    "express-session",
    "passport",
    "passport-local",
    "mongoose",
    "connect-mongo",
    "redis",
    "socket.io",
)
DEPENDENCY_SECTIONS = ("dependencies", "devDependencies", "peerDependencies", "optionalDependencies")
ENGINES = {"bun": ">=1.2.10", "elysia": ">=1.2.25"}
DEFAULT_SCRIPTS = {"dev": "bun run dev", "test": "bun test", "build": "bun build"}
ELYSIA_VERSION = ">=1.2.25"
PRIORITIZED = ("elysia",)
PRIORITIZED_SCOPES = ("@elysiajs/",)


def _priority(name: str) -> tuple:
    if name in PRIORITIZED:
        return (0, PRIORITIZED.index(name), name)
    if name.startswith(PRIORITIZED_SCOPES):
        return (1, 0, name)
    return (2, 0, name)


def order_dependencies(deps: Dict[str, Any]) -> Dict[str, Any]:
    return {name: deps[name] for name in sorted(deps, key=_priority)}


def migrate_manifest(manifest: Dict[str, Any]) -> Dict[str, Any]:
    for section in DEPENDENCY_SECTIONS:
        deps = manifest.get(section)
        if not isinstance(deps, dict):
            continue
        for name in LEGACY_DEPENDENCIES:
            deps.pop(name, None)
        if not deps:
            del manifest[section]
    manifest["type"] = "module"
    engines = manifest.setdefault("engines", {})
    engines.update(ENGINES)
    scripts = manifest.setdefault("scripts", {})
    for name, command in DEFAULT_SCRIPTS.items():
        scripts.setdefault(name, command)
    deps = manifest.setdefault("dependencies", {})
    deps.setdefault("elysia", ELYSIA_VERSION)
    for section in DEPENDENCY_SECTIONS:
        if isinstance(manifest.get(section), dict):
            manifest[section] = order_dependencies(manifest[section])
    return manifest


@register
class PackageJsonRule(RewriteRule):
    name = "package-json"
    description = "package.json for bun + elysia"
    backend = "json"
    patterns = ("**/package.json",)

    def apply(self, tree: Any, ctx: RuleContext) -> Any:
        if not isinstance(tree, dict):
            ctx.warn("package.json is not an object; skipped")
            return tree
        return migrate_manifest(tree)

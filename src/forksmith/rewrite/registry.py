"""
Rule registry. Rules run in ``RULE_ORDER``; anything registered but not
listed runs afterwards in alphabetical order.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Type

from ..errors import RewriteError
from .rules import RewriteRule

RULE_ORDER = [
    "require-to-import",
    "env-access",
    "server-index",
    "express-routes",
    "fs-to-bun-io",
    "plugin-server",
    "otel-bootstrap",
    "telemetry",
    "plugin-loader",
    "plugin-loader-html",
    "vite-fs-allow",
    "package-json",
    "tsconfig",
    "client-html",
    "jest-config",
    "ci-config",
    "dockerfile",
    "docker-compose",
    "helm-values",
    "eslint-config",
    "prettier-config",
    "devcontainer",
    "husky",
    "docker-scripts",
    "package-scripts",
    "e2e-tests",
]

_RULES: Dict[str, RewriteRule] = {}


def register(rule_cls: Type[RewriteRule]) -> Type[RewriteRule]:
    """Class decorator adding one instance of the rule to the registry."""
    rule = rule_cls()
    if not rule.name:
        raise RewriteError(f"{rule_cls.__name__} has no name")
    if rule.name in _RULES and type(_RULES[rule.name]) is not rule_cls:
        raise RewriteError(f"Duplicate rewrite rule '{rule.name}'")
    _RULES[rule.name] = rule
    return rule_cls


def _sort_key(name: str) -> tuple:
    if name in RULE_ORDER:
        return (0, RULE_ORDER.index(name), name)
    return (1, 0, name)


def all_rules() -> List[RewriteRule]:
    _load_builtin_rules()
    return [_RULES[name] for name in sorted(_RULES, key=_sort_key)]


def ordered_rules(names: Optional[Iterable[str]] = None, include_optional: bool = False) -> List[RewriteRule]:
    """
    Resolve rule names to rule instances in execution order.

    Without names, every default rule is returned (plus optional ones when
    ``include_optional``). Unknown names raise ``RewriteError``.
    """

    rules = all_rules()
    if names is None:
        return [rule for rule in rules if rule.default or include_optional]
    wanted = list(dict.fromkeys(names))
    unknown = [name for name in wanted if name not in _RULES]
    if unknown:
        raise RewriteError(f"Unknown codemod(s): {', '.join(unknown)}")
    return [rule for rule in rules if rule.name in wanted]


def _load_builtin_rules() -> None:
    from .. import codemods  # noqa: F401  (registers rules on import)

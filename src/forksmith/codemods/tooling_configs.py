"""
Editor and linter configuration: devcontainer, ESLint, Prettier.
"""

from __future__ import annotations

from typing import Any, Dict, List

from ..rewrite.registry import register
from ..rewrite.rules import RewriteRule, RuleContext

DEVCONTAINER_PORTS = (3080, 3090)
DEVCONTAINER_EXTENSION = "ms-vscode.vscode-typescript-tslint-plugin"
PRETTIER_TS_FILES = ["*.ts", "*.tsx", "*.mts", "*.cts"]


def migrate_devcontainer(config: Dict[str, Any]) -> Dict[str, Any]:
    ports = [p for p in config.get("forwardPorts", []) if isinstance(p, (int, str))]
    for port in DEVCONTAINER_PORTS:
        if port not in ports and str(port) not in ports:
            ports.append(port)
    config["forwardPorts"] = sorted(ports, key=lambda p: (int(p) if str(p).isdigit() else 1 << 30, str(p)))
    config["postCreateCommand"] = "bun install"
    vscode = config.setdefault("customizations", {}).setdefault("vscode", {})
    extensions = vscode.setdefault("extensions", [])
    if DEVCONTAINER_EXTENSION not in extensions:
        extensions.append(DEVCONTAINER_EXTENSION)
    return config


def _mentions_node(value: Any) -> bool:
    return isinstance(value, str) and "node" in value


def migrate_eslint(config: Dict[str, Any]) -> Dict[str, Any]:
    parser_options = config.setdefault("parserOptions", {})
    parser_options["ecmaVersion"] = 2022
    parser_options["sourceType"] = "module"

    env = config.get("env")
    if isinstance(env, dict):
        env.pop("node", None)
        env.pop("commonjs", None)
    globals_ = config.setdefault("globals", {})
    globals_.pop("node", None)
    globals_.pop("commonjs", None)
    globals_["Bun"] = "readonly"
    globals_["import.meta"] = "readonly"

    rules = config.get("rules")
    if isinstance(rules, dict):
        config["rules"] = {name: value for name, value in rules.items() if not name.startswith("node/")}
    extends = config.get("extends")
    if isinstance(extends, list):
        config["extends"] = [item for item in extends if not _mentions_node(item)]
    elif _mentions_node(extends):
        del config["extends"]
    plugins = config.get("plugins")
    if isinstance(plugins, list):
        config["plugins"] = [p for p in plugins if p != "node"]
    return config


def _has_ts_override(overrides: List[Any]) -> bool:
    for override in overrides:
        if not isinstance(override, dict):
            continue
        files = override.get("files")
        files = files if isinstance(files, list) else [files]
        if "*.ts" in files and (override.get("options") or {}).get("parser") == "typescript":
            return True
    return False


def migrate_prettier(config: Dict[str, Any]) -> Dict[str, Any]:
    config["singleQuote"] = True
    config["semi"] = True
    config["bracketSpacing"] = True
    overrides = config.setdefault("overrides", [])
    if not _has_ts_override(overrides):
        overrides.append({"files": list(PRETTIER_TS_FILES), "options": {"parser": "typescript"}})
    return config


class _ObjectConfigRule(RewriteRule):
    backend = "jsonc"

    def migrate(self, config: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def apply(self, tree: Any, ctx: RuleContext) -> Any:
        if not isinstance(tree, dict):
            ctx.warn(f"{self.name}: expected a JSON object; skipped")
            return tree
        return self.migrate(tree)


@register
class DevcontainerRule(_ObjectConfigRule):
    name = "devcontainer"
    description = "devcontainer ports, bun install, TypeScript tooling"
    patterns = (".devcontainer/devcontainer.json", ".devcontainer.json")

    def migrate(self, config: Dict[str, Any]) -> Dict[str, Any]:
        return migrate_devcontainer(config)


@register
class EslintConfigRule(_ObjectConfigRule):
    name = "eslint-config"
    description = "ESLint for ES modules under bun"
    patterns = ("**/.eslintrc", "**/.eslintrc.json")

    def migrate(self, config: Dict[str, Any]) -> Dict[str, Any]:
        return migrate_eslint(config)


@register
class PrettierConfigRule(_ObjectConfigRule):
    name = "prettier-config"
    description = "Prettier defaults and a TypeScript override"
    patterns = ("**/.prettierrc", "**/.prettierrc.json")

    def migrate(self, config: Dict[str, Any]) -> Dict[str, Any]:
        return migrate_prettier(config)

"""
Parse/render backends used by rewrite rules.

A backend turns file text into a tree the rule can match on, and the tree
back into text. Rules never parse files themselves; they name a backend.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict

import yaml

from ..errors import BackendError, RewriteError


class Backend:
    name = ""

    def parse(self, text: str) -> Any:
        raise NotImplementedError

    def render(self, tree: Any) -> str:
        raise NotImplementedError


class TextBackend(Backend):
    name = "text"

    def parse(self, text: str) -> str:
        return text

    def render(self, tree: str) -> str:
        return tree


class JsonBackend(Backend):
    name = "json"

    def parse(self, text: str) -> Any:
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise BackendError(f"invalid JSON: {exc.msg} (line {exc.lineno})") from exc

    def render(self, tree: Any) -> str:
        return json.dumps(tree, indent=2, ensure_ascii=False) + "\n"


_JSONC_TOKEN = re.compile(
    r'"(?:\\.|[^"\\])*"'  # string literal
    r"|//[^\n]*"  # line comment
    r"|/\*.*?\*/",  # block comment
    re.S,
)
_TRAILING_COMMA = re.compile(r',(\s*[}\]])')


def strip_json_comments(text: str) -> str:
    def _keep_strings(match: "re.Match[str]") -> str:
        token = match.group(0)
        return token if token.startswith('"') else ""

    stripped = _JSONC_TOKEN.sub(_keep_strings, text)
    # trailing commas, again skipping string contents
    parts = re.split(r'("(?:\\.|[^"\\])*")', stripped)
    for idx in range(0, len(parts), 2):
        parts[idx] = _TRAILING_COMMA.sub(r"\1", parts[idx])
    return "".join(parts)


class JsoncBackend(JsonBackend):
    """JSON with comments and trailing commas (tsconfig, devcontainer, eslintrc). Comments are dropped on render."""

    name = "jsonc"

    def parse(self, text: str) -> Any:
        return super().parse(strip_json_comments(text))


class _YamlLoader(yaml.SafeLoader):
    """Safe loader that keeps ``on``/``off``/``yes``/``no`` as strings (GitHub workflows use ``on:``)."""


_YamlLoader.yaml_implicit_resolvers = {
    key: [(tag, regexp) for tag, regexp in resolvers if tag != "tag:yaml.org,2002:bool"]
    for key, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
_YamlLoader.add_implicit_resolver(
    "tag:yaml.org,2002:bool",
    re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"),
    list("tTfF"),
)


class _YamlDumper(yaml.SafeDumper):
    def increase_indent(self, flow: bool = False, indentless: bool = False):  # type: ignore[override]
        return super().increase_indent(flow, False)


# Render ``on:`` unquoted, mirroring the loader.
_YamlDumper.yaml_implicit_resolvers = _YamlLoader.yaml_implicit_resolvers


def _represent_str(dumper: yaml.SafeDumper, data: str) -> yaml.Node:
    if "\n" in data:
        return dumper.represent_scalar("tag:yaml.org,2002:str", data, style="|")
    return dumper.represent_scalar("tag:yaml.org,2002:str", data)


_YamlDumper.add_representer(str, _represent_str)


class YamlBackend(Backend):
    name = "yaml"

    def parse(self, text: str) -> Any:
        try:
            tree = yaml.load(text, Loader=_YamlLoader)
        except yaml.YAMLError as exc:
            raise BackendError(f"invalid YAML: {exc}") from exc
        return {} if tree is None else tree

    def render(self, tree: Any) -> str:
        return yaml.dump(
            tree,
            Dumper=_YamlDumper,
            sort_keys=False,
            default_flow_style=False,
            allow_unicode=True,
            width=4096,
        )


_BACKENDS: Dict[str, Backend] = {}


def register_backend(backend: Backend) -> Backend:
    _BACKENDS[backend.name] = backend
    return backend


def get_backend(name: str) -> Backend:
    try:
        return _BACKENDS[name]
    except KeyError as exc:
        raise RewriteError(f"Unknown rewrite backend '{name}'") from exc


for _backend in (TextBackend(), JsonBackend(), JsoncBackend(), YamlBackend()):
    register_backend(_backend)

"""
Compose files: fork images, bun commands, .env mount and HTTP healthchecks.

The rewrite is a chain of small plugins over the parsed document, applied in
order: image, command, env, health.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Dict, List

from ..config import ForkConfig
from ..rewrite.registry import register
from ..rewrite.rules import RewriteRule, RuleContext
from .commands import to_bun

HEALTHCHECK_SERVICES = ("api", "rag_api", "rag-api")
RAG_SERVICES = ("rag_api", "rag-api")
DEFAULT_VERSION = "3.8"
MIN_DEPENDS_ON_VERSION = 3.9
ENV_MOUNT_TARGET = "/app/.env"

_NODE = re.compile(r"(?<![\w./-])node(?![\w-])")

ComposePlugin = Callable[[Dict[str, Any], RuleContext], Dict[str, Any]]


def _services(doc: Dict[str, Any]) -> Dict[str, Any]:
    services = doc.get("services")
    if not isinstance(services, dict):
        return {}
    return {name: svc for name, svc in services.items() if isinstance(svc, dict)}


def image_plugin(doc: Dict[str, Any], ctx: RuleContext) -> Dict[str, Any]:
    config: ForkConfig = ctx.config
    for name, svc in _services(doc).items():
        image = svc.get("image")
        if not isinstance(image, str) or not image.startswith(config.upstream_image_prefix):
            continue
        if name == "api":
            repo = config.image_repo
        elif name in RAG_SERVICES:
            repo = config.rag_image_repo
        else:
            continue
        svc["image"] = f"{repo}:{config.image_tag}"
        ctx.note(f"{name}: image {image} -> {svc['image']}")
        if "build" not in svc:
            multi = (config.root / "Dockerfile.multi").exists() and name != "api"
            svc["build"] = {"context": ".", "dockerfile": "Dockerfile.multi" if multi else "Dockerfile"}
    return doc


def _bun_command(command: str) -> str:
    return _NODE.sub("bun", to_bun(command))


def command_plugin(doc: Dict[str, Any], ctx: RuleContext) -> Dict[str, Any]:
    for svc in _services(doc).values():
        command = svc.get("command")
        if isinstance(command, str):
            svc["command"] = _bun_command(command)
        elif isinstance(command, list):
            svc["command"] = [_bun_command(part) if isinstance(part, str) else part for part in command]
    return doc


def env_plugin(doc: Dict[str, Any], ctx: RuleContext) -> Dict[str, Any]:
    svc = _services(doc).get("api")
    if svc is None:
        return doc
    volumes: List[Any] = svc.get("volumes") or []
    has_env = any(
        (isinstance(v, str) and ".env" in v) or (isinstance(v, dict) and v.get("target") == ENV_MOUNT_TARGET)
        for v in volumes
    )
    if not has_env:
        long_syntax = any(isinstance(v, dict) for v in volumes)
        entry: Any = (
            {"type": "bind", "source": "./.env", "target": ENV_MOUNT_TARGET}
            if long_syntax
            else f"./.env:{ENV_MOUNT_TARGET}"
        )
        volumes.insert(0, entry)
        ctx.note("api: mounted .env")
    svc["volumes"] = volumes
    return doc


def _version(doc: Dict[str, Any]) -> float:
    try:
        return float(doc.get("version") or 0)
    except (TypeError, ValueError):
        return 0.0


def _container_port(ports: Any) -> str:
    if isinstance(ports, list) and ports:
        first = ports[0]
        if isinstance(first, dict):
            return str(first.get("target", "3080"))
        return str(first).split(":")[-1].split("/")[0]
    return "3080"


def health_plugin(doc: Dict[str, Any], ctx: RuleContext) -> Dict[str, Any]:
    version = _version(doc)
    for name, svc in _services(doc).items():
        if name not in HEALTHCHECK_SERVICES or "healthcheck" in svc:
            continue
        port = _container_port(svc.get("ports"))
        svc["healthcheck"] = {
            "test": ["CMD-SHELL", f"curl -f http://localhost:{port}/health || exit 1"],
            "interval": "30s",
            "timeout": "10s",
            "retries": 5,
        }
        ctx.note(f"{name}: healthcheck on port {port}")
        depends_on = svc.get("depends_on")
        if version >= MIN_DEPENDS_ON_VERSION and isinstance(depends_on, list):
            svc["depends_on"] = {dep: {"condition": "service_healthy"} for dep in depends_on}
    if not doc.get("version"):
        doc = {"version": DEFAULT_VERSION, **doc}
    return doc


PLUGINS: List[ComposePlugin] = [image_plugin, command_plugin, env_plugin, health_plugin]


def migrate_compose(doc: Dict[str, Any], ctx: RuleContext) -> Dict[str, Any]:
    for plugin in PLUGINS:
        doc = plugin(doc, ctx)
    return doc


@register
class DockerComposeRule(RewriteRule):
    name = "docker-compose"
    description = "compose services on fork images and bun"
    backend = "yaml"

    def file_patterns(self, config: ForkConfig):
        return tuple(config.compose_globs)

    def apply(self, tree: Any, ctx: RuleContext) -> Any:
        if not isinstance(tree, dict):
            ctx.warn("compose file is not a mapping; skipped")
            return tree
        return migrate_compose(tree, ctx)

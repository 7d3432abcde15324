"""
Centralized configuration for forksmith commands.

The environment is read once, at the command-line boundary, by ``load_config``.
Everything downstream receives the resulting ``ForkConfig``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

from .errors import ConfigError

DEFAULT_PROTECTED_PATHS: Tuple[str, ...] = (
    "client/src/plugin-runtime",
    "plugins",
    "scripts",
    "codemods",
    ".bun-version",
    "README.md",
    ".github/workflows/sync-upstream.yml",
    "config/config.json",
)

DEFAULT_COMPOSE_GLOBS: Tuple[str, ...] = (
    "docker-compose.yml",
    "deploy-compose.yml",
    "docker-compose.override.yml*",
    "rag.yml",
)


@dataclass
class ForkConfig:
    root: Path = field(default_factory=Path.cwd)
    env: Dict[str, str] = field(default_factory=dict)
    debug: bool = False
    # container images
    image_name: str = "librechat"
    docker_tag: str = "latest"
    docker_registry: Optional[str] = None
    image_source: str = "https://github.com/danny-avila/LibreChat"
    image_repo: str = "myregistry/librechat-bun"
    rag_image_repo: str = "myregistry/librechat-rag-api-bun"
    image_tag: str = "latest"
    upstream_image_prefix: str = "ghcr.io/danny-avila/librechat"
    bun_base_image: str = "oven/bun:latest"
    dockerfile_base_image: str = "oven/bun:edge-alpine"
    docker_build_command: str = "bun run build"
    # rewrites
    compose_globs: Tuple[str, ...] = DEFAULT_COMPOSE_GLOBS
    backup_suffix: str = ".bak"
    husky_hooks_dir: str = ".husky"
    service_name: str = "librechat-service"
    env_placeholder: str = "GET_FROM_LOCAL_ENV"
    # workspaces
    test_jobs: int = 1
    test_watch: bool = False
    # upstream sync
    upstream_remote: str = "upstream"
    upstream_url: Optional[str] = None
    upstream_branch: str = "main"
    sync_branch: str = "upstream-sync"
    main_branch: str = "main"
    protected_paths: Tuple[str, ...] = DEFAULT_PROTECTED_PATHS


def _env_bool(environ: Mapping[str, str], name: str, default: bool = False) -> bool:
    val = environ.get(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "on"}


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or str(raw).strip() == "":
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc
    if value < 1:
        raise ConfigError(f"{name} must be at least 1, got {value}")
    return value


def _env_list(environ: Mapping[str, str], name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = environ.get(name)
    if not raw:
        return default
    items = tuple(part.strip() for part in raw.split(",") if part.strip())
    return items or default


def load_config(env: Optional[Mapping[str, str]] = None, root: Optional[Path] = None) -> ForkConfig:
    environ = os.environ if env is None else env
    return ForkConfig(
        root=Path(root) if root is not None else Path.cwd(),
        env=dict(environ),
        debug=_env_bool(environ, "DEBUG_LOGGING") or _env_bool(environ, "DEBUG_CONSOLE"),
        image_name=environ.get("LIBRE_CHAT_IMAGE") or "librechat",
        docker_tag=environ.get("LIBRE_CHAT_DOCKER_TAG") or "latest",
        docker_registry=environ.get("DOCKER_REMOTE_REGISTRY") or None,
        image_source=environ.get("IMAGE_SOURCE_URL") or ForkConfig.image_source,
        image_repo=environ.get("IMAGE_REPO") or ForkConfig.image_repo,
        rag_image_repo=environ.get("RAG_IMAGE_REPO") or ForkConfig.rag_image_repo,
        image_tag=environ.get("IMAGE_TAG") or "latest",
        bun_base_image=environ.get("BUN_BASE_IMAGE") or ForkConfig.bun_base_image,
        dockerfile_base_image=environ.get("DOCKERFILE_BASE_IMAGE") or ForkConfig.dockerfile_base_image,
        compose_globs=_env_list(environ, "COMPOSE_GLOBS", DEFAULT_COMPOSE_GLOBS),
        backup_suffix=environ.get("BACKUP_SUFFIX") or ".bak",
        husky_hooks_dir=environ.get("HUSKY_HOOKS_DIR") or ".husky",
        service_name=environ.get("SERVICE_NAME") or ForkConfig.service_name,
        test_jobs=_env_int(environ, "BUN_TEST_JOBS", 1),
        test_watch=_env_bool(environ, "BUN_TEST_WATCH"),
        upstream_url=environ.get("UPSTREAM_URL") or None,
        upstream_branch=environ.get("UPSTREAM_BRANCH") or "main",
    )

"""
Build and publish the fork's container image.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from .config import ForkConfig
from .errors import CommandError, ConfigError, ForksmithError
from .tools import CommandRunner, require_tool, run_command

log = logging.getLogger(__name__)

Which = Callable[[str], Optional[str]]


@dataclass
class ImageBuild:
    image: str
    argv: List[str]
    labels: List[str] = field(default_factory=list)


@dataclass
class ImagePush:
    local_image: str
    remote_image: str
    signed: bool = False


def local_image(config: ForkConfig, tag: Optional[str] = None) -> str:
    return f"{config.image_name}:{tag or config.docker_tag}"


def oci_labels(config: ForkConfig, tag: str, now: Optional[datetime] = None) -> List[str]:
    created = (now or datetime.now(timezone.utc)).isoformat()
    return [
        f"org.opencontainers.image.created={created}",
        f"org.opencontainers.image.version={tag}",
        f"org.opencontainers.image.source={config.image_source}",
    ]


def build_argv(
    image: str,
    dockerfile: Path,
    context: Path,
    labels: Sequence[str],
    build_args: Sequence[str] = (),
) -> List[str]:
    argv = ["docker", "build", "-f", str(dockerfile), "-t", image]
    for label in labels:
        argv += ["--label", label]
    for arg in build_args:
        argv += ["--build-arg", arg]
    argv.append(str(context))
    return argv


def build_image(
    config: ForkConfig,
    tag: Optional[str] = None,
    dockerfile: Optional[Path] = None,
    context: Optional[Path] = None,
    build_args: Sequence[str] = (),
    run: CommandRunner = run_command,
    which: Which = shutil.which,
    now: Optional[datetime] = None,
) -> ImageBuild:
    require_tool("docker", which=which)
    tag = tag or config.docker_tag
    dockerfile = dockerfile if dockerfile is not None else Path("Dockerfile")
    context = context if context is not None else Path(".")
    if not dockerfile.is_absolute():
        dockerfile = config.root / dockerfile
    if not context.is_absolute():
        context = config.root / context
    if not dockerfile.is_file():
        raise ForksmithError(f"Dockerfile not found at path: {dockerfile}")
    if not context.is_dir():
        raise ForksmithError(f"Context directory not found: {context}")

    image = local_image(config, tag)
    labels = oci_labels(config, tag, now=now)
    argv = build_argv(image, dockerfile, context, labels, build_args)
    log.info("building %s from %s", image, dockerfile)
    if build_args:
        log.info("build args: %s", ", ".join(build_args))
    run(argv, cwd=config.root, check=True)
    return ImageBuild(image=image, argv=argv, labels=labels)


def push_image(
    config: ForkConfig,
    tag: Optional[str] = None,
    registry: Optional[str] = None,
    run: CommandRunner = run_command,
    which: Which = shutil.which,
) -> ImagePush:
    """
    Tag, push and verify the local image in a remote registry.

    The image is signed with cosign when it is installed; a signing failure
    is reported but does not fail the push.
    """

    registry = registry or config.docker_registry
    if not registry:
        raise ConfigError("Remote registry not specified. Use --registry or set DOCKER_REMOTE_REGISTRY.")
    require_tool("docker", which=which)
    tag = tag or config.docker_tag
    local = local_image(config, tag)
    remote = f"{registry.rstrip('/')}/{local}"
    push = ImagePush(local_image=local, remote_image=remote)

    log.info("tagging %s as %s", local, remote)
    run(["docker", "tag", local, remote], cwd=config.root, check=True)
    log.info("pushing %s", remote)
    run(["docker", "push", remote], cwd=config.root, check=True)
    run(["docker", "manifest", "inspect", remote], cwd=config.root, capture=True, check=True)
    log.info("remote manifest verified")

    if not which("cosign"):
        log.warning("cosign not found; skipping signing")
        return push
    try:
        run(["cosign", "sign", "--yes", remote], cwd=config.root, check=True)
    except CommandError as exc:
        log.warning("cosign sign failed; continuing without signature: %s", exc.message)
        return push
    push.signed = True
    log.info("signed %s", remote)
    return push

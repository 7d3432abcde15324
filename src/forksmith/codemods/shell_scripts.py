"""
Shell scripts shipped with the app: package-manager calls and the docker
helper scripts' base image.
"""

from __future__ import annotations

import re

from ..rewrite.registry import register
from ..rewrite.rules import RewriteRule, RuleContext
from .commands import substitution, to_bun

DEFAULT_SHEBANG = "#!/usr/bin/env bash"
BUN_IMAGE_MARKER = "BUN_BASE_IMAGE"
BUILD_ARG = "--build-arg BUN_BASE_IMAGE=$BUN_BASE_IMAGE"

# utility scripts keep lockfiles authoritative
SCRIPT_OVERRIDES = [substitution("npm ci", "bun install --frozen-lockfile")]

_DOCKER_BUILD = re.compile(r"(?<![\w-])(docker(?:\s+image)?\s+build|docker\s+buildx\s+build)(?![\w-])")


def bun_base_image_block(default_image: str) -> str:
    return (
        "# base image for bun builds; override with BUN_BASE_IMAGE\n"
        f'BUN_BASE_IMAGE="${{BUN_BASE_IMAGE:-{default_image}}}"\n'
    )


def rewrite_package_script(source: str) -> str:
    return to_bun(source, SCRIPT_OVERRIDES)


def rewrite_docker_script(source: str, default_image: str) -> str:
    text = to_bun(source)
    if not text.startswith("#!"):
        text = DEFAULT_SHEBANG + "\n" + text
    if not re.search(rf"^\s*{BUN_IMAGE_MARKER}=", text, re.M):
        first_newline = text.find("\n")
        head, rest = (text, "") if first_newline == -1 else (text[: first_newline + 1], text[first_newline + 1 :])
        if not head.endswith("\n"):
            head += "\n"
        text = head + bun_base_image_block(default_image) + rest

    def _build(match: "re.Match[str]") -> str:
        line_end = text.find("\n", match.end())
        line = text[match.end() : len(text) if line_end == -1 else line_end]
        if BUILD_ARG in line:
            return match.group(0)
        return f"{match.group(0)} {BUILD_ARG}"

    return _DOCKER_BUILD.sub(_build, text)


@register
class PackageScriptsRule(RewriteRule):
    name = "package-scripts"
    description = "npm/yarn/npx calls in utility shell scripts -> bun"
    patterns = ("utils/**/*.sh", "packages/**/*.sh", "client/**/*.sh")

    def apply(self, tree: str, ctx: RuleContext) -> str:
        return rewrite_package_script(tree)


@register
class DockerScriptsRule(RewriteRule):
    name = "docker-scripts"
    description = "docker helper scripts build on the bun base image"
    patterns = ("utils/docker/*.sh",)

    def apply(self, tree: str, ctx: RuleContext) -> str:
        return rewrite_docker_script(tree, ctx.config.bun_base_image)

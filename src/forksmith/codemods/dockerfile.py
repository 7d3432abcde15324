"""
Dockerfiles: bun base images, bun install/build steps, bun entry points.

RUN bodies are rewritten segment by segment so ``&&``, ``;`` and line
continuations stay exactly where they were.
"""

from __future__ import annotations

import json
import re
from typing import List, Optional

from ..rewrite.registry import register
from ..rewrite.rules import RewriteRule, RuleContext
from .commands import to_bun

_INSTRUCTION = re.compile(
    r"^([ \t]*)(FROM|RUN|CMD|ENTRYPOINT)([ \t]+)((?:[^\n]*\\[ \t]*\n)*[^\n]*)",
    re.M | re.I,
)
_SEPARATORS = re.compile(r"(&&|\|\||;|\\[ \t]*\n)")
_INSTALL_ONLY = re.compile(r"^(?:npm\s+(?:ci|install|i)|yarn(?:\s+install)?)(?:\s+--?[\w=.-]+)*$")
_PRUNE = re.compile(r"^(?:npm|yarn)\s+prune\b")
_CACHE = re.compile(r"^(?:npm|yarn)\s+cache\b")
_BUILD = re.compile(r"^(?:npm\s+run\s+build|yarn(?:\s+run)?\s+build)(?:\s+.*)?$")


def _image_is_node(image: str) -> bool:
    name = image.rsplit("/", 1)[-1]
    name = re.split(r"[:@]", name, 1)[0]
    return name == "node"


def rewrite_from(body: str, base_image: str) -> str:
    tokens = body.split()
    for idx, token in enumerate(tokens):
        if token.startswith("--"):
            continue
        if _image_is_node(token):
            tokens[idx] = base_image
            return " ".join(tokens)
        return body
    return body


def _run_segment(segment: str, build_command: str) -> str:
    core = segment.strip()
    if not core:
        return segment
    lead = segment[: len(segment) - len(segment.lstrip())]
    trail = segment[len(segment.rstrip()) :]
    if _CACHE.match(core):
        return segment
    if _INSTALL_ONLY.match(core):
        core = "bun install --production"
    elif _PRUNE.match(core):
        core = "bun prune --production"
    elif _BUILD.match(core):
        core = build_command
    else:
        core = to_bun(core)
    return lead + core + trail


def rewrite_run(body: str, build_command: str) -> str:
    if body.lstrip().startswith("["):
        return body
    parts = _SEPARATORS.split(body)
    for idx in range(0, len(parts), 2):
        parts[idx] = _run_segment(parts[idx], build_command)
    return "".join(parts)


def _entry_args(args: List[str]) -> Optional[List[str]]:
    if not args:
        return None
    if args[0] == "node":
        return ["bun", "run", *args[1:]]
    if args[0] in ("npm", "yarn"):
        rest = args[1:]
        if rest[:1] == ["start"]:
            return ["bun", "run", "start", *rest[1:]]
        if rest[:1] == ["run"]:
            return ["bun", "run", *rest[1:]]
    return None


def rewrite_entry(body: str) -> str:
    stripped = body.strip()
    if stripped.startswith("["):
        try:
            args = json.loads(stripped)
        except json.JSONDecodeError:
            return body
        if not isinstance(args, list) or not all(isinstance(a, str) for a in args):
            return body
        updated = _entry_args(args)
        return json.dumps(updated) if updated else body
    words = stripped.split()
    updated = _entry_args(words)
    if updated:
        return " ".join(updated)
    return to_bun(body)


def rewrite_dockerfile(source: str, base_image: str, build_command: str) -> str:
    def _instruction(match: "re.Match[str]") -> str:
        indent, keyword, space, body = match.groups()
        kind = keyword.upper()
        if kind == "FROM":
            new_body = rewrite_from(body, base_image)
        elif kind == "RUN":
            new_body = rewrite_run(body, build_command)
        else:
            new_body = rewrite_entry(body)
        return f"{indent}{keyword}{space}{new_body}"

    return _INSTRUCTION.sub(_instruction, source)


@register
class DockerfileRule(RewriteRule):
    name = "dockerfile"
    description = "Dockerfile stages on the bun image"
    patterns = ("**/Dockerfile", "**/Dockerfile.*")

    def apply(self, tree: str, ctx: RuleContext) -> str:
        config = ctx.config
        return rewrite_dockerfile(tree, config.dockerfile_base_image, config.docker_build_command)

"""
GitHub workflows: set up bun instead of node and run bun commands.
"""

from __future__ import annotations

from typing import Any, Dict

from ..rewrite.registry import register
from ..rewrite.rules import RewriteRule, RuleContext
from .commands import to_bun

SETUP_BUN = "oven-sh/setup-bun@v1"


def _migrate_step(step: Dict[str, Any]) -> None:
    uses = step.get("uses")
    if isinstance(uses, str) and uses.startswith("actions/setup-node"):
        step["uses"] = SETUP_BUN
        if step.get("name") and "node" in str(step["name"]).lower():
            step["name"] = "Setup bun"
        with_ = step.get("with")
        if isinstance(with_, dict):
            for key in ("node-version", "node-version-file", "cache", "cache-dependency-path"):
                with_.pop(key, None)
            if not with_:
                del step["with"]
    run = step.get("run")
    if isinstance(run, str):
        step["run"] = to_bun(run)


def migrate_workflow(workflow: Dict[str, Any]) -> Dict[str, Any]:
    jobs = workflow.get("jobs")
    if not isinstance(jobs, dict):
        return workflow
    for job in jobs.values():
        if not isinstance(job, dict):
            continue
        for step in job.get("steps") or []:
            if isinstance(step, dict):
                _migrate_step(step)
    return workflow


@register
class CiConfigRule(RewriteRule):
    name = "ci-config"
    description = "GitHub Actions: setup-bun and bun commands"
    backend = "yaml"
    patterns = (".github/workflows/*.{yml,yaml}",)

    def apply(self, tree: Any, ctx: RuleContext) -> Any:
        if not isinstance(tree, dict):
            ctx.warn("workflow is not a mapping; skipped")
            return tree
        return migrate_workflow(tree)

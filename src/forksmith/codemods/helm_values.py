"""
Helm chart values: fork image, API port, bun entry command.
"""

from __future__ import annotations

from typing import Any, Dict

from ..rewrite.registry import register
from ..rewrite.rules import RewriteRule, RuleContext

SERVICE_PORT = 3080
ENTRY_COMMAND = ["bun", "run", "src/server/index.ts"]


def migrate_values(values: Dict[str, Any], image_repo: str, image_tag: str) -> Dict[str, Any]:
    image = values.get("image")
    if not isinstance(image, dict):
        image = {}
        values["image"] = image
    image["repository"] = image_repo
    image["tag"] = str(image_tag)
    service = values.get("service")
    if not isinstance(service, dict):
        service = {}
        values["service"] = service
    service["port"] = SERVICE_PORT
    values["command"] = list(ENTRY_COMMAND)
    return values


@register
class HelmValuesRule(RewriteRule):
    name = "helm-values"
    description = "Helm values for the bun image"
    backend = "yaml"
    patterns = ("charts/**/values.yaml", "helm/**/values.yaml")

    def apply(self, tree: Any, ctx: RuleContext) -> Any:
        if not isinstance(tree, dict):
            ctx.warn("values file is not a mapping; skipped")
            return tree
        return migrate_values(tree, ctx.config.image_repo, ctx.config.image_tag)

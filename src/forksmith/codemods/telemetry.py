"""
Tracing for the API: the Elysia OpenTelemetry plugin on every app instance,
and an opt-in SDK bootstrap for entry points that need raw exporters.
"""

from __future__ import annotations

import re

from ..rewrite.registry import register
from ..rewrite.rules import RewriteRule, RuleContext
from .js_common import DIRECTIVE, has_import, insert_import, js_quote, statement_end

ELYSIA_OTEL_PACKAGE = "@elysiajs/opentelemetry"
_ELYSIA_APP = re.compile(r"^[ \t]*(?:export\s+)?(?:const|let|var)\s+([A-Za-z_$][\w$]*)\s*=\s*new\s+Elysia\(", re.M)

OTEL_BOOTSTRAP = """\
import { NodeSDK } from '@opentelemetry/sdk-node';
import { OTLPTraceExporter } from '@opentelemetry/exporter-trace-otlp-http';
import { getNodeAutoInstrumentations } from '@opentelemetry/auto-instrumentations-node';

(async () => {
  const sdk = new NodeSDK({
    serviceName: Bun.env.OTEL_SERVICE_NAME || 'OpenLibreChat-API',
    traceExporter: new OTLPTraceExporter({
      url: Bun.env.OTLP_ENDPOINT || 'http://localhost:4318/v1/traces',
    }),
    instrumentations: [getNodeAutoInstrumentations()],
  });
  await sdk.start();
})();
"""


def add_elysia_telemetry(source: str, service_name: str) -> str:
    apps = _ELYSIA_APP.findall(source)
    if not apps:
        return source
    text = source
    for var in apps:
        if re.search(rf"\b{re.escape(var)}\.use\(\s*opentelemetry\(", text):
            continue
        decl = re.search(
            rf"^[ \t]*(?:export\s+)?(?:const|let|var)\s+{re.escape(var)}\s*=\s*new\s+Elysia\(",
            text,
            re.M,
        )
        if decl is None:
            continue
        end = statement_end(text, decl.start())
        call = (
            f"{var}.use(opentelemetry({{ serviceName: Bun.env.SERVICE_NAME ?? {js_quote(service_name)} }}));"
        )
        text = text[:end] + "\n" + call + text[end:]
    if text != source and not has_import(text, ELYSIA_OTEL_PACKAGE):
        text = insert_import(text, f"import {{ opentelemetry }} from '{ELYSIA_OTEL_PACKAGE}';")
    return text


def add_otel_bootstrap(source: str) -> str:
    if has_import(source, "@opentelemetry/sdk-node"):
        return source
    head = DIRECTIVE.match(source)
    pos = head.end() if head else 0
    return source[:pos] + OTEL_BOOTSTRAP + "\n" + source[pos:]


@register
class TelemetryRule(RewriteRule):
    name = "telemetry"
    description = "register the Elysia OpenTelemetry plugin on each app"
    patterns = ("api/**/*.{js,ts}", "packages/**/src/**/*.ts")

    def apply(self, tree: str, ctx: RuleContext) -> str:
        updated = add_elysia_telemetry(tree, ctx.config.service_name)
        if updated != tree:
            ctx.note("added opentelemetry plugin")
        return updated


@register
class OtelBootstrapRule(RewriteRule):
    name = "otel-bootstrap"
    description = "prepend the OpenTelemetry SDK bootstrap to the API entry point"
    patterns = ("api/server/index.js", "api/server/index.ts")
    default = False

    def apply(self, tree: str, ctx: RuleContext) -> str:
        return add_otel_bootstrap(tree)

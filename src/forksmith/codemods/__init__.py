"""
Built-in rewrite rules. Importing this package registers every rule.
"""

from . import (  # noqa: F401
    ci_config,
    client_html,
    docker_compose,
    dockerfile,
    e2e_tests,
    env_access,
    express_routes,
    fs_to_bun_io,
    helm_values,
    husky,
    jest_config,
    package_json,
    plugin_runtime,
    require_to_import,
    server_index,
    shell_scripts,
    telemetry,
    tooling_configs,
    tsconfig,
)

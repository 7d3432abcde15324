"""
Rule-based source rewriting over swappable parse/render backends.
"""

from .backends import get_backend, register_backend  # noqa: F401
from .engine import RewriteRun, rewrite_file, rewrite_source, run_codemods  # noqa: F401
from .paths import discover_files, match_path  # noqa: F401
from .registry import RULE_ORDER, all_rules, ordered_rules, register  # noqa: F401
from .rules import FileRewrite, RewriteRule, RuleContext  # noqa: F401

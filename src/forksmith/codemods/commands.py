"""
npm / yarn / npx command lines to their bun equivalents.

Rules that rewrite shell text (workflows, compose commands, hooks, scripts,
Dockerfiles) share one ordered substitution table; a rule can put its own
entries in front of it.
"""

from __future__ import annotations

import re
from typing import List, Sequence, Tuple

Substitution = Tuple["re.Pattern[str]", str]


def _word(words: str) -> str:
    # a command word, not part of a path, package name or flag
    return r"(?<![\w./@-])" + words.replace(" ", r"\s+") + r"(?![\w-])"


def substitution(words: str, replacement: str) -> Substitution:
    return re.compile(_word(words)), replacement


BUN_SUBSTITUTIONS: List[Substitution] = [
    substitution("npm view", "bun pm info"),
    substitution("npm ci", "bun install"),
    substitution("npm install", "bun install"),
    substitution("npm i", "bun install"),
    substitution("npm test", "bun test"),
    substitution("npm start", "bun run start"),
    substitution("npm run", "bun run"),
    substitution("npm exec", "bunx"),
    substitution("npx", "bunx"),
    substitution("yarn install", "bun install"),
    substitution("yarn add", "bun add"),
    substitution("yarn remove", "bun remove"),
    substitution("yarn init", "bun init"),
    substitution("yarn run", "bun run"),
    substitution("yarn test", "bun test"),
    (re.compile(r"(?<![\w./@-])yarn(?=\s+--)"), "bun install"),
    (re.compile(r"(?<![\w./@-])yarn\s+(?=[A-Za-z])"), "bun run "),
    substitution("yarn", "bun install"),
    substitution("npm", "bun"),
]


def apply_substitutions(text: str, table: Sequence[Substitution]) -> str:
    for pattern, replacement in table:
        text = pattern.sub(replacement, text)
    return text


def to_bun(command: str, overrides: Sequence[Substitution] = ()) -> str:
    """Rewrite every npm/yarn/npx invocation in ``command``; ``overrides`` run first."""
    return apply_substitutions(command, list(overrides) + BUN_SUBSTITUTIONS)

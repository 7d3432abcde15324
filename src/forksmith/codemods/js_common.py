"""
Token-level helpers shared by the JavaScript/TypeScript rewrite rules.

These work on raw source text: they understand string literals, template
literals, comments and bracket nesting, which is all the rules need to find
call arguments and statement boundaries.
"""

from __future__ import annotations

import re
from typing import List, Optional

_OPEN = {"(": ")", "[": "]", "{": "}"}
_CLOSE = {")", "]", "}"}

IMPORT_STATEMENT = re.compile(
    r"^import\s+(?:[^;'\"]*?\s+from\s+)?(['\"])[^'\"\n]+\1;?[ \t]*$",
    re.M,
)
DIRECTIVE = re.compile(r"\A(?:#![^\n]*\n)?(?:\s*(['\"])use strict\1;?[ \t]*\n)?")
LINE_END = r"[ \t]*;?[ \t]*(?:\r?\n|\Z)"
_LINE_END = re.compile(LINE_END)
DOTENV_BOOTSTRAP = re.compile(
    r"^[ \t]*(?:"
    r"import\s+['\"]dotenv(?:/config)?['\"]"
    r"|(?:const|let|var)\s+dotenv\s*=\s*require\(\s*['\"]dotenv['\"]\s*\)"
    r"|import\s+(?:\*\s+as\s+)?dotenv\s+from\s+['\"]dotenv['\"]"
    r")" + LINE_END,
    re.M,
)
DOTENV_CALL = re.compile(r"^[ \t]*(?:require\(\s*['\"]dotenv['\"]\s*\)\.config|dotenv\.config)(?=\s*\()", re.M)
MODULE_ALIAS_IMPORT = re.compile(r"^[ \t]*import\s+['\"]module-alias(?:/register)?['\"]" + LINE_END, re.M)
MODULE_ALIAS_CALL = re.compile(r"^[ \t]*require\(\s*['\"]module-alias(?:/register)?['\"]\s*\)", re.M)


def skip_literal(text: str, i: int) -> int:
    """Return the index just past the string/comment starting at ``i`` (or ``i`` if none starts there)."""
    ch = text[i]
    if ch in "'\"`":
        j = i + 1
        while j < len(text):
            if text[j] == "\\":
                j += 2
                continue
            if text[j] == ch:
                return j + 1
            if ch != "`" and text[j] == "\n":
                return j
            j += 1
        return len(text)
    if text.startswith("//", i):
        end = text.find("\n", i)
        return len(text) if end == -1 else end
    if text.startswith("/*", i):
        end = text.find("*/", i + 2)
        return len(text) if end == -1 else end + 2
    return i


def find_closing(text: str, open_idx: int) -> int:
    """Index of the bracket matching the one at ``open_idx``; -1 when unbalanced."""
    depth = 0
    i = open_idx
    while i < len(text):
        nxt = skip_literal(text, i)
        if nxt != i:
            i = nxt
            continue
        ch = text[i]
        if ch in _OPEN:
            depth += 1
        elif ch in _CLOSE:
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


def split_top_level(text: str, sep: str = ",") -> List[str]:
    """Split on ``sep`` where it is not nested in brackets or literals."""
    parts: List[str] = []
    depth = 0
    start = 0
    i = 0
    while i < len(text):
        nxt = skip_literal(text, i)
        if nxt != i:
            i = nxt
            continue
        ch = text[i]
        if ch in _OPEN:
            depth += 1
        elif ch in _CLOSE:
            depth -= 1
        elif ch == sep and depth == 0:
            parts.append(text[start:i])
            start = i + 1
        i += 1
    parts.append(text[start:])
    return parts


def call_arguments(text: str, open_idx: int) -> Optional[tuple]:
    """
    Parse the argument list whose ``(`` is at ``open_idx``.

    Returns ``(args, end)`` where ``args`` are stripped argument strings and
    ``end`` is the index past the closing paren, or None when unbalanced.
    """

    close = find_closing(text, open_idx)
    if close == -1:
        return None
    inner = text[open_idx + 1 : close]
    args = [a.strip() for a in split_top_level(inner)] if inner.strip() else []
    if args and args[-1] == "":
        args.pop()
    return args, close + 1


def remove_call_statements(text: str, head: "re.Pattern[str]") -> str:
    """
    Drop whole-line statements that start with ``head``.

    When ``head`` is followed by an argument list, the list is matched with
    bracket nesting, so ``require('x')({ a: f(b) });`` goes in one piece.
    """

    out: List[str] = []
    pos = 0
    for match in head.finditer(text):
        if match.start() < pos:
            continue
        end = match.end()
        cursor = end
        while cursor < len(text) and text[cursor] in " \t":
            cursor += 1
        if cursor < len(text) and text[cursor] == "(":
            parsed = call_arguments(text, cursor)
            if parsed is None:
                continue
            end = parsed[1]
        tail = _LINE_END.match(text, end)
        if tail is None:
            continue
        out.append(text[pos : match.start()])
        pos = tail.end()
    out.append(text[pos:])
    return "".join(out)


def strip_dotenv(text: str) -> str:
    return remove_call_statements(DOTENV_BOOTSTRAP.sub("", text), DOTENV_CALL)


def strip_module_alias(text: str) -> str:
    return remove_call_statements(MODULE_ALIAS_IMPORT.sub("", text), MODULE_ALIAS_CALL)


def statement_end(text: str, start: int) -> int:
    """Index just past the statement containing ``start`` (its ``;`` or the newline ending it at depth 0)."""
    depth = 0
    i = start
    while i < len(text):
        nxt = skip_literal(text, i)
        if nxt != i:
            i = nxt
            continue
        ch = text[i]
        if ch in _OPEN:
            depth += 1
        elif ch in _CLOSE:
            depth -= 1
        elif depth <= 0 and ch == ";":
            return i + 1
        elif depth <= 0 and ch == "\n":
            rest = text[i + 1 :].lstrip(" \t")
            if not rest.startswith("."):
                return i
        i += 1
    return len(text)


def has_import(text: str, source: str) -> bool:
    quoted = re.escape(source)
    return bool(
        re.search(rf"^\s*import\b[^;]*?['\"]{quoted}['\"]", text, re.M)
        or re.search(rf"require\(\s*['\"]{quoted}['\"]\s*\)", text)
    )


def insert_import(text: str, statement: str) -> str:
    """Insert ``statement`` after the last top-level import, or after any shebang/``use strict``."""
    last = None
    for match in IMPORT_STATEMENT.finditer(text):
        last = match
    if last is not None:
        return text[: last.end()] + "\n" + statement + text[last.end() :]
    head = DIRECTIVE.match(text)
    pos = head.end() if head else 0
    return text[:pos] + statement + "\n" + text[pos:]


def js_quote(value: str) -> str:
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


def unquote(literal: str) -> Optional[str]:
    """Value of a plain string literal, or None for anything else."""
    literal = literal.strip()
    if len(literal) >= 2 and literal[0] == literal[-1] and literal[0] in "'\"":
        body = literal[1:-1]
        if literal[0] not in body:
            return body
    if len(literal) >= 2 and literal[0] == literal[-1] == "`" and "${" not in literal:
        return literal[1:-1]
    return None

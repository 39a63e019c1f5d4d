"""Depth-aware scanning primitives for route source text.

Everything above this module (router locator, endpoint extractor, middleware
classifier) works on spans cut out with these functions instead of matching
whole declarations with regular expressions.
"""

import re

from routedoc.errors import StructuralParseError

PAIRS = {"(": ")", "[": "]", "{": "}"}
CLOSERS = {v: k for k, v in PAIRS.items()}
QUOTES = ("'", '"', "`")

_IDENTIFIER_PATH = re.compile(r"[A-Za-z_$][\w$]*(?:\s*\.\s*[A-Za-z_$][\w$]*)*")


def _skip_string(text: str, index: int) -> int:
    """Return the offset just past the string literal opening at ``index``."""
    quote = text[index]
    i = index + 1
    while i < len(text):
        char = text[i]
        if char == "\\":
            i += 2
            continue
        if char == quote:
            return i + 1
        i += 1
    raise StructuralParseError(f"unterminated string literal at offset {index}")


def _skip_comment(text: str, index: int) -> int | None:
    """Return the offset past a comment starting at ``index``, or None."""
    if text.startswith("//", index):
        newline = text.find("\n", index)
        return len(text) if newline == -1 else newline
    if text.startswith("/*", index):
        end = text.find("*/", index + 2)
        return len(text) if end == -1 else end + 2
    return None


def skip_opaque(text: str, index: int) -> int | None:
    """Offset past a string literal or comment starting at ``index``, or None."""
    if text[index] in QUOTES:
        return _skip_string(text, index)
    if text[index] == "/":
        return _skip_comment(text, index)
    return None


def match_delimited(text: str, start: int, open_char: str = "(") -> tuple[str, int]:
    """Return the content up to the delimiter closing the one before ``start``.

    ``start`` is the offset immediately after the opening delimiter. Nested
    pairs of the same kind are skipped and quoted strings are opaque.
    Returns ``(content, end)`` where ``end`` is the offset after the closer.
    """
    close_char = PAIRS[open_char]
    depth = 1
    i = start
    while i < len(text):
        skipped = skip_opaque(text, i)
        if skipped is not None:
            i = skipped
            continue
        char = text[i]
        if char == open_char:
            depth += 1
        elif char == close_char:
            depth -= 1
            if depth == 0:
                return text[start:i], i + 1
        i += 1
    raise StructuralParseError(
        f"no closing '{close_char}' for '{open_char}' opened before offset {start}"
    )


def split_top_level(content: str) -> list[str]:
    """Split on commas at nesting depth zero.

    Commas inside (), [], {} or string literals never split. Empty content
    gives an empty list.
    """
    parts: list[str] = []
    stack: list[str] = []
    begin = 0
    i = 0
    while i < len(content):
        skipped = skip_opaque(content, i)
        if skipped is not None:
            i = skipped
            continue
        char = content[i]
        if char in PAIRS:
            stack.append(char)
        elif char in CLOSERS:
            if not stack or stack[-1] != CLOSERS[char]:
                raise StructuralParseError(f"unbalanced '{char}' at offset {i}")
            stack.pop()
        elif char == "," and not stack:
            parts.append(content[begin:i].strip())
            begin = i + 1
        i += 1
    if stack:
        raise StructuralParseError(f"unclosed '{stack[-1]}' in argument list")
    tail = content[begin:].strip()
    if tail:
        parts.append(tail)
    return parts


def strip_quotes(token: str) -> str | None:
    """Return the body of a single string literal, or None if not one."""
    token = token.strip()
    if len(token) >= 2 and token[0] in QUOTES and token[-1] == token[0]:
        return token[1:-1]
    return None


def parse_object_literal(text: str) -> dict[str, str]:
    """Parse ``{key: value, ...}`` into raw key/value text.

    Shorthand entries (``{usecase}``) map the name to itself. Values are
    returned unparsed.
    """
    text = text.strip()
    if not (text.startswith("{") and text.endswith("}")):
        raise StructuralParseError(f"not an object literal: {text[:40]!r}")
    entries: dict[str, str] = {}
    for part in split_top_level(text[1:-1]):
        key, sep, value = part.partition(":")
        key = strip_quotes(key) or key.strip()
        entries[key] = value.strip() if sep else key
    return entries


def call_arguments(expression: str, callee: str) -> list[str] | None:
    """Top-level arguments of the first ``callee(...)`` call in ``expression``."""
    match = re.search(rf"(?<![\w$]){re.escape(callee)}\s*\(", expression)
    if not match:
        return None
    content, _ = match_delimited(expression, match.end(), "(")
    return split_top_level(content)


def identifier_path(text: str) -> list[str]:
    """Dotted identifier segments at the start of ``text`` (``a.b.c`` -> [a, b, c])."""
    match = _IDENTIFIER_PATH.match(text.strip())
    if not match:
        return []
    return [segment.strip() for segment in match.group(0).split(".")]

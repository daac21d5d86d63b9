"""Token-saving rewrites of backend tool descriptors.

Every function here is pure and deterministic. ``compress_description`` is
applied until it reaches a fixed point, so compressing an already compressed
description returns it unchanged, and no rewrite ever lengthens the text.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any

from .constants import CHARS_PER_TOKEN
from .models import ToolDescriptor

MAX_DESCRIPTION_LENGTH = 80

_LEADING_FILLER = re.compile(
    r"^(?:this tool (?:allows|enables|lets|helps) you to|use this tool (?:when|to)"
    r"|this tool|use this tool|use this (?:when|to)|this (?:allows|enables|lets|helps) you to)\b",
    re.IGNORECASE,
)
_INNER_FILLER = re.compile(
    r"\s+(?:allows you to|enables you to|lets you|helps you)\s+", re.IGNORECASE
)
_PREPOSITION_THE = re.compile(r"\s+(?:in|from|for|to|with|by|at|on)\s+the\s+", re.IGNORECASE)
_ARTICLES = re.compile(r"\s+(?:the|a|an)\s+", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")
_SENTENCE_END = re.compile(r"[.!?]")

# Longer phrases come before the words they contain.
_ABBREVIATIONS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(pattern, re.IGNORECASE), replacement)
    for pattern, replacement in [
        (r"\bGitHub repository\b", "repo"),
        (r"\brepositories\b", "repos"),
        (r"\brepository\b", "repo"),
        (r"\bpull requests\b", "PRs"),
        (r"\bpull request\b", "PR"),
        (r"\bcommit SHA\b", "commit"),
        (r"\bissue number\b", "issue"),
        (r"\bbranch name\b", "branch"),
        (r"\bfile path\b", "path"),
        (r"\bdirectory\b", "dir"),
        (r"\borganization\b", "org"),
        (r"\busername\b", "user"),
        (r"\bsearch query\b", "query"),
        (r"\bworkflow\b", "wf"),
    ]
]


def _compress_once(text: str) -> str:
    text = _LEADING_FILLER.sub("", text.strip())
    text = _INNER_FILLER.sub(" ", text)
    for pattern, replacement in _ABBREVIATIONS:
        text = pattern.sub(replacement, text)
    text = _PREPOSITION_THE.sub(" ", text)
    text = _ARTICLES.sub(" ", text)
    text = _WHITESPACE.sub(" ", text).strip()

    first_sentence = _SENTENCE_END.split(text, maxsplit=1)[0]
    return first_sentence[:MAX_DESCRIPTION_LENGTH].rstrip()


def compress_description(description: str | None) -> str:
    """Shorten a tool description to its first sentence, without filler.

    Args:
        description: Original description (may be None)

    Returns:
        Compressed description, at most MAX_DESCRIPTION_LENGTH characters
    """
    if not description:
        return ""
    current = description
    while True:
        compressed = _compress_once(current)
        if compressed == current:
            return compressed
        current = compressed


def simplify_schema(schema: Any) -> Any:
    """Strip a JSON schema down to type, enum, required, properties and items."""
    if not isinstance(schema, dict):
        return schema

    simplified: dict[str, Any] = {}
    for key in ("type", "enum", "required"):
        if key in schema:
            simplified[key] = schema[key]

    properties = schema.get("properties")
    if isinstance(properties, dict):
        simplified["properties"] = {
            name: simplify_schema(value) for name, value in properties.items()
        }
    if "items" in schema:
        simplified["items"] = simplify_schema(schema["items"])
    return simplified


def compress_tool(tool: ToolDescriptor) -> ToolDescriptor:
    """Return a compressed copy of a backend tool descriptor."""
    return ToolDescriptor(
        name=tool.name,
        description=compress_description(tool.description),
        input_schema=simplify_schema(tool.input_schema),
    )


def wire_size(value: Any) -> int:
    """Length of the compact JSON encoding of ``value``."""
    return len(json.dumps(value, separators=(",", ":")))


def estimate_tokens(text: str) -> int:
    """Rough token count for a piece of text."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)

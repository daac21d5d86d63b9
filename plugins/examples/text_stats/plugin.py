"""Text stats plugin - counts words, lines and characters.

This is an example plugin showing the module contract: ``get_tools`` lists
the tools, ``execute_tool`` runs one. ``text_result`` is provided by the
loader.
"""

import logging
import re

logger = logging.getLogger("plugin.text_stats")

_WORD = re.compile(r"\S+")


def get_tools():
    return [
        {
            "name": "count",
            "description": "Count words, lines and characters in text",
            "inputSchema": {
                "type": "object",
                "properties": {"text": {"type": "string", "description": "Text to measure"}},
                "required": ["text"],
            },
        },
        {
            "name": "top_words",
            "description": "Most frequent words in text",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "text": {"type": "string"},
                    "limit": {"type": "integer", "default": 5},
                },
                "required": ["text"],
            },
        },
    ]


def _count(text):
    return {
        "words": len(_WORD.findall(text)),
        "lines": len(text.splitlines()),
        "characters": len(text),
    }


def _top_words(text, limit):
    counts = {}
    for word in _WORD.findall(text.lower()):
        counts[word] = counts.get(word, 0) + 1
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [{"word": word, "count": count} for word, count in ranked[:limit]]


async def execute_tool(name, arguments):
    text = arguments.get("text")
    if not isinstance(text, str):
        return text_result("Missing required argument: text", is_error=True)

    logger.debug("[text_stats] %s on %d characters", name, len(text))
    if name == "count":
        return _count(text)
    if name == "top_words":
        return _top_words(text, int(arguments.get("limit", 5)))
    return text_result(f"Unknown tool: {name}", is_error=True)

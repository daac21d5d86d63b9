"""
Domain models for the proxy.

These are the wire-level data structures shared by every tool source.
"""

from .tool_descriptor import ToolDescriptor
from .tool_result import ContentItem, ToolResult, coerce_tool_result

__all__ = [
    "ToolDescriptor",
    "ContentItem",
    "ToolResult",
    "coerce_tool_result",
]

"""
Core proxy package.

This package contains the transport-level building blocks: JSON framing,
reply correlation, the backend process client, and the domain exceptions.
The server package binds them to the client-facing stdio protocol.
"""

from .analytics import AnalyticsLogger, summarize_log
from .backend import BackendProcessClient, BackendState
from .compression import compress_description, compress_tool, estimate_tokens, simplify_schema
from .correlation import CorrelationRegistry, PendingCall
from .exceptions import (
    BackendCallError,
    BackendFatalError,
    ConflictError,
    CoreError,
    InvalidOperationError,
    NotFoundError,
    PartialLoadError,
    PluginInstallError,
    PluginLoadError,
    PluginStoreError,
    RequestTimeoutError,
    ValidationError,
)
from .framing import FramedChannel, encode_message
from .models import ContentItem, ToolDescriptor, ToolResult, coerce_tool_result

__all__ = [
    # Exceptions
    "CoreError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "InvalidOperationError",
    "RequestTimeoutError",
    "BackendFatalError",
    "BackendCallError",
    "PartialLoadError",
    "PluginLoadError",
    "PluginInstallError",
    "PluginStoreError",
    # Models
    "ToolDescriptor",
    "ToolResult",
    "ContentItem",
    "coerce_tool_result",
    # Transport
    "FramedChannel",
    "encode_message",
    "CorrelationRegistry",
    "PendingCall",
    "BackendProcessClient",
    "BackendState",
    # Collaborators
    "AnalyticsLogger",
    "summarize_log",
    "compress_description",
    "compress_tool",
    "simplify_schema",
    "estimate_tokens",
]

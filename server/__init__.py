"""
MCP stdio proxy server.

Presents backend, management and plugin tools to the client as one catalog
over newline-delimited JSON-RPC on stdin/stdout.
"""

from .aggregator import ToolAggregator
from .app import ProxyServer
from .dispatcher import RequestDispatcher
from .logging_config import log_timing, setup_logging
from .management import MANAGEMENT_TOOLS, ManagementTools

__all__ = [
    "ProxyServer",
    "ToolAggregator",
    "RequestDispatcher",
    "ManagementTools",
    "MANAGEMENT_TOOLS",
    "setup_logging",
    "log_timing",
]

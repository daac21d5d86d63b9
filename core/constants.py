"""
Core constants for the proxy.

This module defines system-wide constants used across the codebase.
Following the style guide: no magic constants in code.
"""

# Protocol
MCP_PROTOCOL_VERSION = "2024-11-05"
JSONRPC_VERSION = "2.0"
RECORD_SEPARATOR = b"\n"

# Identity advertised to the client and to the backend
SERVER_NAME = "copilot-plugin-proxy"
SERVER_VERSION = "1.0.0"

# Backend request deadlines, in seconds
INIT_TIMEOUT = 10.0
DISCOVERY_TIMEOUT = 5.0
CALL_TIMEOUT = 30.0
STOP_GRACE_PERIOD = 5.0  # wait this long after terminate() before kill()

# JSON-RPC error codes
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INTERNAL_ERROR = -32603

# Plugins
PLUGIN_MANIFEST_FILE = "plugin.json"
PLUGIN_REQUIREMENTS_FILE = "requirements.txt"
PLUGIN_PACKAGES_DIR = ".packages"
PLUGIN_DEFAULT_ENTRY = "plugin.py"
PLUGIN_DEFAULT_VERSION = "1.0.0"
PLUGIN_TOOL_SEPARATOR = "_"
PLUGIN_REGISTRY_FILE = "plugins.json"

# Rough token estimate: 1 token ~ 4 characters
CHARS_PER_TOKEN = 4

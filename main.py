"""
MCP plugin proxy entry point.

Speaks JSON-RPC on stdin/stdout; logs go to stderr.
"""
import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

from config import ConfigError, load_config
from core.analytics import summarize_log
from core.constants import CHARS_PER_TOKEN
from core.exceptions import CoreError
from server import ProxyServer, setup_logging

logger = logging.getLogger(__name__)

RULE_WIDTH = 60


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="MCP proxy exposing a backend server, plugin tools and plugin management"
    )
    parser.add_argument("--config", type=Path, help="Config file (JSON or JSONC)")
    parser.add_argument("--log-level", type=str, help="Override the configured log level")
    parser.add_argument(
        "--stats", action="store_true", help="Print the usage analytics summary and exit"
    )
    return parser.parse_args(argv)


def format_stats(summary: dict[str, Any]) -> str:
    """Render summarize_log() output for the terminal."""
    lines = ["", "Token Optimization Analytics", "=" * RULE_WIDTH]

    optimization = summary["optimization"]
    lines += [
        "",
        "Overall optimization:",
        f"   Tools optimized: {optimization['tools_optimized']}",
        f"   Average reduction: {optimization['reduction_percent']:.1f}%",
        f"   Total bytes saved: {optimization['bytes_saved']:,}",
        f"   Estimated tokens saved: {optimization['bytes_saved'] // CHARS_PER_TOKEN:,}",
    ]

    if summary["top_tools"]:
        lines += ["", "Most used tools:", "-" * RULE_WIDTH]
        for i, tool in enumerate(summary["top_tools"], 1):
            lines.append(f"{i}. {tool['name']}")
            lines.append(
                f"   Calls: {tool['calls']} | Avg time: {tool['avg_time_ms']}ms"
                f" | Failures: {tool['failures']}"
            )

    if summary["recent_sessions"]:
        lines += ["", "Recent sessions:", "-" * RULE_WIDTH]
        for i, session in enumerate(summary["recent_sessions"], 1):
            started = datetime.fromtimestamp(session.get("timestamp", 0)).strftime("%Y-%m-%d %H:%M:%S")
            duration = session.get("session_duration_ms", 0) // 1000
            lines.append(f"{i}. {started}")
            lines.append(
                f"   Duration: {duration}s | Tool calls: {session.get('total_calls', 0)}"
                f" | Tokens saved: {session.get('tokens_estimate', 0)}"
            )

    lines += ["", "=" * RULE_WIDTH, ""]
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    """Run the proxy until the client disconnects or a signal arrives."""
    args = parse_args(argv)

    try:
        config = load_config(config_path=args.config)
    except (ConfigError, ValueError) as e:
        setup_logging(args.log_level)
        logger.error("Invalid configuration: %s", e)
        return 1

    setup_logging(args.log_level or config.log_level)

    if args.stats:
        print(format_stats(summarize_log(config.analytics.path)))
        return 0

    logger.info("Starting MCP plugin proxy")
    logger.info("Backend: %s", " ".join(config.backend.argv))
    logger.info("Plugins directory: %s", config.plugins.directory)

    try:
        server = ProxyServer(config)
        asyncio.run(server.run())
    except (CoreError, OSError) as e:
        logger.error("Proxy failed: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

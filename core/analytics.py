"""Usage analytics as an append-only JSON-lines log.

Each tool call, optimization result and finished session appends one line.
Writing is best effort: an unwritable log is reported once and never fails a
tool call.
"""

from __future__ import annotations

import json
import logging
import time
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_ANALYTICS_PATH = Path.home() / ".copilot" / "token-analytics.jsonl"
RECENT_SESSIONS = 5
TOP_TOOLS = 10


@dataclass
class ToolUsage:
    """In-memory usage counters for one tool."""

    count: int = 0
    total_time_ms: float = 0.0
    failures: int = 0


class AnalyticsLogger:
    """Records tool usage and session metrics.

    Attributes:
        path: Log file location (None disables persistence)
        session_start: Wall-clock start of this process's session
    """

    def __init__(self, path: Path | None = DEFAULT_ANALYTICS_PATH, enabled: bool = True):
        self.path = path if enabled else None
        self.session_start = time.time()
        self._usage: dict[str, ToolUsage] = {}
        self._write_failed = False

    @property
    def total_calls(self) -> int:
        return sum(usage.count for usage in self._usage.values())

    def record_tool_call(self, tool: str, latency_ms: float, success: bool) -> None:
        usage = self._usage.setdefault(tool, ToolUsage())
        usage.count += 1
        usage.total_time_ms += latency_ms
        if not success:
            usage.failures += 1

        self._append(
            {
                "event": "tool_usage",
                "tool": tool,
                "latency_ms": round(latency_ms, 1),
                "success": success,
            }
        )

    def record_optimization(self, tool: str, original_size: int, optimized_size: int) -> None:
        self._append(
            {
                "event": "optimization",
                "tool": tool,
                "original_size": original_size,
                "optimized_size": optimized_size,
            }
        )

    def record_session(self, tokens_estimate: int) -> None:
        """Append the end-of-session summary."""
        self._append(
            {
                "event": "session",
                "session_duration_ms": int((time.time() - self.session_start) * 1000),
                "total_calls": self.total_calls,
                "tokens_estimate": tokens_estimate,
            }
        )

    def report(self) -> dict[str, Any]:
        """Summarize the current session from in-memory counters."""
        tools = sorted(
            (
                {
                    "name": name,
                    "calls": usage.count,
                    "avg_time_ms": int(usage.total_time_ms / usage.count),
                    "failures": usage.failures,
                }
                for name, usage in self._usage.items()
                if usage.count
            ),
            key=lambda entry: entry["calls"],
            reverse=True,
        )
        return {
            "uptime_seconds": int(time.time() - self.session_start),
            "total_tool_calls": self.total_calls,
            "tool_usage": tools,
        }

    def _append(self, entry: dict[str, Any]) -> None:
        if self.path is None:
            return
        entry = {"timestamp": time.time(), **entry}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(entry) + "\n")
        except OSError as e:
            if not self._write_failed:
                logger.warning("Analytics log unavailable (%s): %s", self.path, e)
                self._write_failed = True


def summarize_log(path: Path) -> dict[str, Any]:
    """Aggregate an analytics log file.

    Lines that are not valid JSON are skipped.

    Args:
        path: Path to the JSON-lines log

    Returns:
        Dict with optimization totals, top tools and recent sessions
    """
    usage: dict[str, ToolUsage] = {}
    optimized = 0
    bytes_before = 0
    bytes_after = 0
    sessions: deque[dict[str, Any]] = deque(maxlen=RECENT_SESSIONS)

    if path.exists():
        with path.open(encoding="utf-8") as f:
            for line in f:
                try:
                    entry = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if not isinstance(entry, dict):
                    continue
                event = entry.get("event")
                if event == "tool_usage":
                    tool = usage.setdefault(entry.get("tool", "?"), ToolUsage())
                    tool.count += 1
                    tool.total_time_ms += float(entry.get("latency_ms", 0))
                    if not entry.get("success", False):
                        tool.failures += 1
                elif event == "optimization":
                    optimized += 1
                    bytes_before += int(entry.get("original_size", 0))
                    bytes_after += int(entry.get("optimized_size", 0))
                elif event == "session":
                    sessions.append(entry)

    saved = bytes_before - bytes_after
    top_tools = sorted(usage.items(), key=lambda item: item[1].count, reverse=True)
    return {
        "optimization": {
            "tools_optimized": optimized,
            "bytes_saved": saved,
            "reduction_percent": round(saved / bytes_before * 100, 1) if bytes_before else 0.0,
        },
        "top_tools": [
            {
                "name": name,
                "calls": tool.count,
                "avg_time_ms": int(tool.total_time_ms / tool.count),
                "failures": tool.failures,
            }
            for name, tool in top_tools[:TOP_TOOLS]
        ],
        "recent_sessions": list(reversed(sessions)),
    }

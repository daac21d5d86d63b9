"""Newline-delimited JSON framing over byte streams.

Both sides of the proxy speak one JSON-RPC message per line. A
FramedChannel turns arbitrarily chunked bytes into decoded messages.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable

from .constants import RECORD_SEPARATOR

logger = logging.getLogger(__name__)


class FramedChannel:
    """Splits a byte stream into JSON records.

    Chunks are pushed in arrival order. Every complete record is decoded and
    handed to ``consumer`` synchronously; the trailing incomplete fragment is
    kept until the next push. Records that are not valid JSON are dropped.

    Attributes:
        label: Name used in log lines (e.g. "backend", "client")
    """

    def __init__(
        self,
        consumer: Callable[[Any], None],
        separator: bytes = RECORD_SEPARATOR,
        label: str = "stream",
    ):
        self._consumer = consumer
        self._separator = separator
        self._buffer = b""
        self.label = label

    @property
    def pending(self) -> bytes:
        """Bytes received but not yet terminated by a separator."""
        return self._buffer

    def push(self, chunk: bytes) -> int:
        """Feed a chunk of bytes.

        Args:
            chunk: Raw bytes read from the stream

        Returns:
            Number of records emitted to the consumer
        """
        if not chunk:
            return 0

        self._buffer += chunk
        *records, self._buffer = self._buffer.split(self._separator)

        emitted = 0
        for record in records:
            record = record.strip()
            if not record:
                continue
            try:
                message = json.loads(record.decode("utf-8"))
            except (UnicodeDecodeError, json.JSONDecodeError):
                logger.debug(
                    "Dropping undecodable %s record: %r", self.label, record[:100]
                )
                continue
            self._consumer(message)
            emitted += 1
        return emitted


def encode_message(message: dict[str, Any]) -> bytes:
    """Serialize a message as one compact JSON record."""
    data = json.dumps(message, separators=(",", ":"), ensure_ascii=False)
    return data.encode("utf-8") + RECORD_SEPARATOR

"""Tests for newline-delimited JSON framing."""

import json

from core.framing import FramedChannel, encode_message


def collect() -> tuple[FramedChannel, list]:
    received: list = []
    return FramedChannel(received.append, label="test"), received


class TestFramedChannelPush:
    """Tests for FramedChannel.push."""

    def test_single_record(self):
        """A complete record is decoded and emitted."""
        channel, received = collect()

        emitted = channel.push(b'{"id": 1}\n')

        assert emitted == 1
        assert received == [{"id": 1}]
        assert channel.pending == b""

    def test_multiple_records_in_one_chunk(self):
        """Records in one chunk are emitted in order."""
        channel, received = collect()

        channel.push(b'{"a": 1}\n{"b": 2}\n{"c": 3}\n')

        assert received == [{"a": 1}, {"b": 2}, {"c": 3}]

    def test_partial_record_is_buffered(self):
        """A record without its separator waits for the rest."""
        channel, received = collect()

        assert channel.push(b'{"id": ') == 0
        assert received == []
        assert channel.pending == b'{"id": '

        assert channel.push(b"7}\n") == 1
        assert received == [{"id": 7}]

    def test_chunking_invariance(self):
        """Any split of the byte stream yields the same messages."""
        messages = [
            {"jsonrpc": "2.0", "id": i, "method": "tools/call", "params": {"text": "é ✓ " * i}}
            for i in range(5)
        ]
        stream = b"".join(encode_message(m) for m in messages)

        whole, whole_received = collect()
        whole.push(stream)

        for size in (1, 2, 3, 7, 64):
            channel, received = collect()
            for start in range(0, len(stream), size):
                channel.push(stream[start : start + size])
            assert received == whole_received == messages

    def test_blank_lines_are_skipped(self):
        """Empty and whitespace-only records are ignored."""
        channel, received = collect()

        emitted = channel.push(b'\n  \n{"ok": true}\n\r\n')

        assert emitted == 1
        assert received == [{"ok": True}]

    def test_crlf_records(self):
        """A trailing carriage return does not break decoding."""
        channel, received = collect()

        channel.push(b'{"id": 1}\r\n')

        assert received == [{"id": 1}]

    def test_malformed_record_is_dropped(self):
        """Undecodable records are dropped and later records still arrive."""
        channel, received = collect()

        emitted = channel.push(b'not json\n\xff\xfe\n{"id": 2}\n')

        assert emitted == 1
        assert received == [{"id": 2}]

    def test_empty_chunk(self):
        """Pushing nothing emits nothing."""
        channel, received = collect()

        assert channel.push(b"") == 0
        assert received == []

    def test_non_object_values_are_emitted(self):
        """Framing does not judge message shape; that is the consumer's job."""
        channel, received = collect()

        channel.push(b"[1, 2]\n42\n")

        assert received == [[1, 2], 42]


class TestEncodeMessage:
    """Tests for encode_message."""

    def test_compact_single_line(self):
        """Encoded messages are one compact line terminated by a newline."""
        data = encode_message({"jsonrpc": "2.0", "id": 1, "result": {"text": "a\nb"}})

        assert data.endswith(b"\n")
        assert data.count(b"\n") == 1
        assert b" " not in data
        assert json.loads(data) == {"jsonrpc": "2.0", "id": 1, "result": {"text": "a\nb"}}

    def test_unicode_is_utf8(self):
        """Non-ASCII text is written as UTF-8."""
        data = encode_message({"text": "✓"})

        assert "✓".encode("utf-8") in data

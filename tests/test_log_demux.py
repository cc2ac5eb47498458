"""Tests for the framed log stream decoder."""

from codebox.log_demux import HEADER, STDERR, STDOUT, DecodedLogs, decode_logs, encode_frame

# ============================================================================
# Framed input
# ============================================================================


class TestDecodeFramed:
    def test_empty_buffer(self) -> None:
        assert decode_logs(b"") == DecodedLogs("", "")

    def test_single_stdout_frame(self) -> None:
        assert decode_logs(encode_frame(STDOUT, b"hello\n")) == DecodedLogs("hello\n", "")

    def test_header_layout(self) -> None:
        """1 byte stream id, 3 padding bytes, big-endian length."""
        frame = encode_frame(STDERR, b"abc")
        assert frame[:HEADER.size] == b"\x02\x00\x00\x00\x00\x00\x00\x03"
        assert frame[HEADER.size:] == b"abc"

    def test_interleaved_streams_keep_per_stream_order(self) -> None:
        raw = (
            encode_frame(STDOUT, b"a")
            + encode_frame(STDERR, b"x")
            + encode_frame(STDOUT, b"b")
            + encode_frame(STDERR, b"y")
        )
        assert decode_logs(raw) == DecodedLogs("ab", "xy")

    def test_unknown_stream_id_skipped(self) -> None:
        raw = encode_frame(0, b"stdin?") + encode_frame(3, b"sys") + encode_frame(STDOUT, b"out")
        assert decode_logs(raw) == DecodedLogs("out", "")

    def test_zero_length_frame(self) -> None:
        raw = encode_frame(STDOUT, b"") + encode_frame(STDOUT, b"x")
        assert decode_logs(raw).stdout == "x"

    def test_multibyte_utf8_split_across_frames(self) -> None:
        data = "héllo ✓".encode()
        raw = encode_frame(STDOUT, data[:2]) + encode_frame(STDOUT, data[2:])
        assert decode_logs(raw).stdout == "héllo ✓"


# ============================================================================
# Truncation and fallback
# ============================================================================


class TestDecodeEdgeCases:
    def test_truncated_trailing_payload_ignored(self) -> None:
        raw = encode_frame(STDOUT, b"complete") + HEADER.pack(STDOUT, 100) + b"partial"
        assert decode_logs(raw) == DecodedLogs("complete", "")

    def test_truncated_trailing_header_ignored(self) -> None:
        raw = encode_frame(STDERR, b"err") + b"\x01\x00\x00"
        assert decode_logs(raw) == DecodedLogs("", "err")

    def test_unframed_text_treated_as_stdout(self) -> None:
        """Output of a TTY container has no frame headers."""
        assert decode_logs(b"plain output\n") == DecodedLogs("plain output\n", "")

    def test_only_unknown_streams_falls_back_to_plain(self) -> None:
        raw = encode_frame(7, b"zz")
        assert decode_logs(raw).stdout == raw.decode("utf-8", errors="replace")
        assert decode_logs(raw).stderr == ""

    def test_invalid_utf8_replaced(self) -> None:
        assert decode_logs(encode_frame(STDOUT, b"\xff\xfeok")).stdout == "\ufffd\ufffdok"

"""
Tests for fixed-capacity output buffers.
"""

import pytest

from posix_bridge.buffers import OutputBuffer, decode, encode
from posix_bridge.outcome import OutcomeKind


class TestOutputBuffer:
    """Tests for OutputBuffer."""

    def test_write_fits(self):
        buf = OutputBuffer(8)
        assert buf.write("abc").ok
        assert buf.value == "abc"
        assert len(buf) == 3

    def test_exact_fit_leaves_room_for_terminator(self):
        buf = OutputBuffer(4)
        assert buf.write("abc").ok
        assert buf.raw == b"abc\x00"

    def test_one_byte_too_long(self):
        buf = OutputBuffer(4)
        outcome = buf.write("abcd")
        assert outcome.kind is OutcomeKind.BUFFER_TOO_SMALL
        assert outcome.context == {"capacity": 4, "needed": 5}
        assert buf.value == "abc"
        assert buf.is_terminated()

    def test_write_replaces(self):
        buf = OutputBuffer(16)
        buf.write("a long value")
        buf.write("x")
        assert buf.value == "x"

    def test_append(self):
        buf = OutputBuffer(16)
        buf.write("root")
        assert buf.append("|").ok
        assert buf.append("alice").ok
        assert buf.value == "root|alice"

    def test_append_overflow_keeps_prefix(self):
        buf = OutputBuffer(6)
        buf.write("abc")
        outcome = buf.append("defg")
        assert outcome.kind is OutcomeKind.BUFFER_TOO_SMALL
        assert outcome.context["needed"] == 8
        assert buf.value == "abcde"
        assert buf.is_terminated()

    def test_append_to_full_buffer(self):
        buf = OutputBuffer(3)
        buf.write("ab")
        assert not buf.append("c").ok
        assert buf.value == "ab"

    def test_empty_write(self):
        buf = OutputBuffer(1)
        assert buf.write("").ok
        assert buf.value == ""

    def test_capacity_one_rejects_any_text(self):
        assert not OutputBuffer(1).write("a").ok

    def test_clear(self):
        buf = OutputBuffer(8)
        buf.write("abc")
        buf.clear()
        assert buf.value == ""

    def test_bytes_input(self):
        buf = OutputBuffer(8)
        buf.write(b"raw")
        assert buf.value == "raw"

    def test_capacity_counts_encoded_bytes(self):
        buf = OutputBuffer(3)
        assert buf.write("é").ok
        assert not buf.write("éé").ok

    @pytest.mark.parametrize("capacity", [0, -5])
    def test_rejects_bad_capacity(self, capacity):
        with pytest.raises(ValueError):
            OutputBuffer(capacity)


class TestCodec:
    """Tests for encode/decode."""

    def test_undecodable_bytes_survive(self):
        data = b"caf\xe9"
        assert encode(decode(data)) == data

    def test_bytes_pass_through(self):
        assert encode(b"abc") == b"abc"

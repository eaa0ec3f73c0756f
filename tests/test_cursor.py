"""Tests for the bounds-checked byte cursor."""

import struct

import pytest

from xmap_stream.cursor import ByteCursor, utf8_sequence_length
from xmap_stream.exceptions import InvalidEncodingError, OutOfRangeError


class TestFixedWidthReads:
    """Test little-endian integer and float reads."""

    def test_read_sequence(self) -> None:
        """Mixed reads advance the position by their width."""
        data = b"\x07" + struct.pack("<I", 2001) + struct.pack("<Q", 2**40) + struct.pack("<d", 9.8)
        cursor = ByteCursor(data)

        assert cursor.read_u8() == 7
        assert cursor.read_u32_le() == 2001
        assert cursor.read_u64_le() == 2**40
        assert cursor.read_f64_le() == pytest.approx(9.8, abs=1e-9)
        assert cursor.position == 21
        assert cursor.remaining() == 0

    def test_u64_above_float_precision(self) -> None:
        """u64 values keep full precision as Python ints."""
        cursor = ByteCursor(struct.pack("<Q", 2**63 + 1))
        assert cursor.read_u64_le() == 2**63 + 1

    def test_short_read_raises(self) -> None:
        """Reading past the end raises instead of returning a short value."""
        cursor = ByteCursor(b"\x01\x02\x03")

        with pytest.raises(OutOfRangeError) as exc_info:
            cursor.read_u32_le()

        assert exc_info.value.wanted == 4
        assert exc_info.value.position == 0
        assert exc_info.value.length == 3

    def test_failed_read_does_not_advance(self) -> None:
        """Position is unchanged after an out-of-range read."""
        cursor = ByteCursor(b"\x01\x02")
        cursor.read_u8()

        with pytest.raises(OutOfRangeError):
            cursor.read_f64_le()

        assert cursor.position == 1

    def test_empty_buffer(self) -> None:
        cursor = ByteCursor(b"")
        with pytest.raises(OutOfRangeError):
            cursor.read_u8()


class TestUtf8Char:
    """Test single code point decoding."""

    def test_ascii(self) -> None:
        cursor = ByteCursor(b"+-")
        assert cursor.read_utf8_char() == "+"
        assert cursor.read_utf8_char() == "-"

    def test_multibyte(self) -> None:
        """Multi-byte sequences consume their full length."""
        cursor = ByteCursor("é€𝄞".encode("utf-8"))

        assert cursor.read_utf8_char() == "é"
        assert cursor.position == 2
        assert cursor.read_utf8_char() == "€"
        assert cursor.position == 5
        assert cursor.read_utf8_char() == "𝄞"
        assert cursor.remaining() == 0

    def test_continuation_byte_as_lead(self) -> None:
        """A continuation byte cannot start a sequence."""
        cursor = ByteCursor(b"\x80")
        with pytest.raises(InvalidEncodingError, match="0x80"):
            cursor.read_utf8_char()

    def test_invalid_lead_byte(self) -> None:
        cursor = ByteCursor(b"\xff")
        with pytest.raises(InvalidEncodingError):
            cursor.read_utf8_char()

    def test_bad_continuation(self) -> None:
        """Lead byte announces two bytes but the second is not a continuation."""
        cursor = ByteCursor(b"\xc3\x41")
        with pytest.raises(InvalidEncodingError):
            cursor.read_utf8_char()

    def test_truncated_sequence(self) -> None:
        """Sequence cut off by the end of the payload."""
        cursor = ByteCursor(b"\xe2\x82")
        with pytest.raises(OutOfRangeError):
            cursor.read_utf8_char()


class TestSequenceLength:
    """Test UTF-8 lead byte classification."""

    @pytest.mark.parametrize(
        "lead,expected",
        [(0x2B, 1), (0x7F, 1), (0xC3, 2), (0xE2, 3), (0xF0, 4)],
    )
    def test_valid_leads(self, lead: int, expected: int) -> None:
        assert utf8_sequence_length(lead) == expected

    @pytest.mark.parametrize("lead", [0x80, 0xBF, 0xF8, 0xFF])
    def test_invalid_leads(self, lead: int) -> None:
        with pytest.raises(InvalidEncodingError):
            utf8_sequence_length(lead)

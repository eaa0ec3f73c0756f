"""Bounds-checked forward reader over a binary payload.

All multi-byte values on the wire are little-endian.
"""

import struct

from xmap_stream.exceptions import InvalidEncodingError, OutOfRangeError

_U32 = struct.Struct("<I")
_U64 = struct.Struct("<Q")
_F64 = struct.Struct("<d")


def utf8_sequence_length(lead: int) -> int:
    """Return the total UTF-8 sequence length announced by a leading byte.

    Raises:
        InvalidEncodingError: If the byte cannot start a sequence
    """
    if lead & 0x80 == 0:
        return 1
    if lead & 0xE0 == 0xC0:
        return 2
    if lead & 0xF0 == 0xE0:
        return 3
    if lead & 0xF8 == 0xF0:
        return 4
    raise InvalidEncodingError(f"Invalid UTF-8 start byte: 0x{lead:02X}")


class ByteCursor:
    """Sequential reader over an immutable byte buffer.

    Every read checks bounds first and raises OutOfRangeError instead of
    returning a short value. The cursor only moves forward.

    Example:
        >>> cursor = ByteCursor(b"\\x01\\x00\\x00\\x00")
        >>> cursor.read_u32_le()
        1
    """

    __slots__ = ("_data", "_pos")

    def __init__(self, data: bytes | bytearray | memoryview) -> None:
        self._data = bytes(data)
        self._pos = 0

    @property
    def position(self) -> int:
        return self._pos

    def remaining(self) -> int:
        """Number of bytes left to read."""
        return len(self._data) - self._pos

    def _take(self, size: int) -> int:
        start = self._pos
        if start + size > len(self._data):
            raise OutOfRangeError(size, start, len(self._data))
        self._pos = start + size
        return start

    def read_u8(self) -> int:
        start = self._take(1)
        return self._data[start]

    def read_u32_le(self) -> int:
        start = self._take(4)
        return _U32.unpack_from(self._data, start)[0]

    def read_u64_le(self) -> int:
        start = self._take(8)
        return _U64.unpack_from(self._data, start)[0]

    def read_f64_le(self) -> float:
        start = self._take(8)
        return _F64.unpack_from(self._data, start)[0]

    def read_utf8_char(self) -> str:
        """Read exactly one UTF-8 encoded code point.

        Raises:
            InvalidEncodingError: If the leading byte is invalid or the
                sequence does not decode
            OutOfRangeError: If the sequence is cut off by the payload end
        """
        lead = self.read_u8()
        length = utf8_sequence_length(lead)
        if length == 1:
            return chr(lead)

        start = self._take(length - 1)
        raw = bytes([lead]) + self._data[start:start + length - 1]
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidEncodingError(
                f"Invalid UTF-8 sequence {raw.hex()} at position {start - 1}"
            ) from e

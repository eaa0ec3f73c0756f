"""Reassembly of length-prefixed frames from arbitrarily sized chunks.

Frame := u32 little-endian payload length ++ payload

Network reads split the body anywhere: inside a length prefix, inside a
payload, or exactly on a boundary. The assembler keeps the received chunks in
a deque with a read offset into the first one, so a frame is copied once when
it is extracted and bytes are never shifted around the buffer.
"""

import struct
from collections import deque
from collections.abc import Iterator

from xmap_stream.exceptions import InvalidFrameLengthError

# Largest payload a sane producer emits; anything bigger means the stream
# is misaligned or corrupt
MAX_FRAME_LENGTH = 1_000_000

LENGTH_PREFIX_SIZE = 4

_U32 = struct.Struct("<I")


class FrameAssembler:
    """Accumulates chunks and extracts complete frames.

    Call pull_frame() repeatedly after every push() until it returns None:
    one chunk can complete several frames or none.

    Example:
        >>> assembler = FrameAssembler()
        >>> assembler.push(b"\\x02\\x00\\x00")
        >>> assembler.pull_frame() is None
        True
        >>> assembler.push(b"\\x00hi")
        >>> assembler.pull_frame()
        b'hi'
    """

    def __init__(self, max_frame_length: int = MAX_FRAME_LENGTH) -> None:
        self.max_frame_length = max_frame_length
        self._chunks: deque[bytes] = deque()
        self._offset = 0
        self._pending = 0

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet returned in a frame."""
        return self._pending

    def push(self, chunk: bytes | bytearray | memoryview) -> None:
        if not chunk:
            return
        data = bytes(chunk)
        self._chunks.append(data)
        self._pending += len(data)

    def _peek(self, size: int) -> bytes:
        head = self._chunks[0]
        if len(head) - self._offset >= size:
            return head[self._offset:self._offset + size]

        # Prefix spans chunks
        parts = []
        needed = size
        offset = self._offset
        for chunk in self._chunks:
            piece = chunk[offset:offset + needed]
            parts.append(piece)
            needed -= len(piece)
            offset = 0
            if needed == 0:
                break
        return b"".join(parts)

    def _consume(self, size: int) -> bytes:
        if size == 0:
            return b""

        parts = []
        needed = size
        while needed:
            head = self._chunks[0]
            piece = head[self._offset:self._offset + needed]
            parts.append(piece)
            needed -= len(piece)
            self._offset += len(piece)
            if self._offset == len(head):
                self._chunks.popleft()
                self._offset = 0

        self._pending -= size
        return parts[0] if len(parts) == 1 else b"".join(parts)

    def pull_frame(self) -> bytes | None:
        """Extract the next complete frame payload.

        Returns:
            Payload bytes, or None if the next frame has not fully arrived.
            Nothing is consumed when None is returned.

        Raises:
            InvalidFrameLengthError: If the length prefix exceeds the cap
        """
        if self._pending < LENGTH_PREFIX_SIZE:
            return None

        length = _U32.unpack(self._peek(LENGTH_PREFIX_SIZE))[0]
        if length > self.max_frame_length:
            raise InvalidFrameLengthError(length, self.max_frame_length)

        if self._pending < LENGTH_PREFIX_SIZE + length:
            return None

        self._consume(LENGTH_PREFIX_SIZE)
        return self._consume(length)

    def frames(self) -> Iterator[bytes]:
        """Yield every frame that is complete in the buffer."""
        while True:
            payload = self.pull_frame()
            if payload is None:
                return
            yield payload

"""
Custom exceptions for the XMAP match stream decoder.

Decode errors are recoverable: the stream skips the offending frame and keeps
going. Everything else terminates the stream.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from xmap_stream.models import BackendResponse


class XmapStreamError(Exception):
    """Base exception for match stream errors.

    Attributes:
        partial: Results decoded before the failure, if the request driver
            had started accumulating them.
    """

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.partial: BackendResponse | None = None


class DecodeError(XmapStreamError):
    """Raised when a single frame payload cannot be decoded."""
    pass


class OutOfRangeError(DecodeError):
    """Raised when a read runs past the end of the payload."""

    def __init__(self, wanted: int, position: int, length: int) -> None:
        super().__init__(
            f"Read of {wanted} byte(s) out of range at position {position} "
            f"(payload length {length})"
        )
        self.wanted = wanted
        self.position = position
        self.length = length


class InvalidEncodingError(DecodeError):
    """Raised when an orientation character is not valid UTF-8."""
    pass


class ProtocolViolationError(DecodeError):
    """Raised when a decoded value breaks a wire-format sanity bound."""
    pass


class InvalidFrameLengthError(XmapStreamError):
    """Raised when a frame length prefix exceeds the sanity cap.

    Fatal: once a length prefix is wrong the next frame boundary is unknown.
    """

    def __init__(self, length: int, max_length: int) -> None:
        super().__init__(
            f"Invalid frame length: {length} (maximum {max_length})"
        )
        self.length = length
        self.max_length = max_length


class ServerError(XmapStreamError):
    """Raised when the matching service rejects the request or is unreachable."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        reason: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason


class StreamCancelled(XmapStreamError):
    """Raised when the stream is cancelled by the caller."""
    pass

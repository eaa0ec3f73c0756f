"""Incremental decoding of an XMAP match stream.

MatchStream pulls chunks from a ChunkReader, reassembles frames and yields
decoded objects as soon as each frame completes:

    AWAITING_HEADER --first frame--> STREAMING --reader exhausted--> DONE
           \\                              /
            `----cancel / fatal error----'--> ABORTED

The first frame is the chromosome header; every later frame is one
BackendMatch. A frame that fails to decode is logged and skipped; an
undecodable header leaves the chromosome info empty and streaming continues.
Only a bad frame length or cancellation ends the stream. Emission is pull
based, so a slow consumer throttles the reads from the transport.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import (
    AsyncGenerator,
    AsyncIterable,
    AsyncIterator,
    Awaitable,
    Callable,
    Iterable,
)
from typing import Protocol, TypeVar, Union

from xmap_stream.codec import MAX_COLLECTION_LEN, decode_backend_match, decode_chromosome_header
from xmap_stream.exceptions import (
    DecodeError,
    InvalidFrameLengthError,
    StreamCancelled,
    XmapStreamError,
)
from xmap_stream.framing import MAX_FRAME_LENGTH, FrameAssembler
from xmap_stream.models import (
    BackendMatch,
    BackendResponse,
    ChromosomeHeader,
    ChromosomeInfo,
    StreamState,
    StreamStats,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

StreamItem = Union[ChromosomeHeader, BackendMatch]


class ChunkReader(Protocol):
    """Source of raw body chunks.

    read() returns the next chunk, or None once the body is exhausted.
    release() frees the underlying transport and must be safe to call once
    in every outcome.
    """

    async def read(self) -> bytes | None:
        ...

    def release(self) -> None:
        ...


async def read_or_cancel(
    start_read: Callable[[], Awaitable[T]],
    cancel_event: asyncio.Event | None,
) -> T:
    """Await a read, abandoning it if the cancel event fires first.

    Args:
        start_read: Factory for the read awaitable; not called when the
            event is already set
        cancel_event: Cancellation signal shared with the caller

    Raises:
        StreamCancelled: If the event is set before the read completes
    """
    if cancel_event is None:
        return await start_read()
    if cancel_event.is_set():
        raise StreamCancelled("Stream cancelled")

    read_task = asyncio.ensure_future(start_read())
    cancel_task = asyncio.ensure_future(cancel_event.wait())
    try:
        done, _ = await asyncio.wait(
            {read_task, cancel_task},
            return_when=asyncio.FIRST_COMPLETED,
        )
    finally:
        cancel_task.cancel()

    if read_task in done:
        return read_task.result()

    read_task.cancel()
    raise StreamCancelled("Stream cancelled while waiting for data")


class IterableChunkReader:
    """ChunkReader over an in-memory or file-backed chunk iterable.

    Accepts both plain and async iterables of bytes. Used for captured
    stream dumps and for tests. Plain iterables are advanced in a worker
    thread so a blocking file read can be abandoned on cancellation; the
    source is closed only once that read has finished.
    """

    def __init__(
        self,
        chunks: Iterable[bytes] | AsyncIterable[bytes],
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        self._source = chunks
        if isinstance(chunks, AsyncIterable):
            self._async_iter: AsyncIterator[bytes] | None = aiter(chunks)
            self._iter = None
        else:
            self._async_iter = None
            self._iter = iter(chunks)
        self._cancel_event = cancel_event
        self._pending_read: asyncio.Future[bytes | None] | None = None
        self.release_count = 0

    async def _next_async(self) -> bytes | None:
        assert self._async_iter is not None
        try:
            return await anext(self._async_iter)
        except StopAsyncIteration:
            return None

    async def _next_sync(self) -> bytes | None:
        assert self._iter is not None
        loop = asyncio.get_running_loop()
        self._pending_read = loop.run_in_executor(None, next, self._iter, None)
        # Shielded so an abandoned read still completes before the source closes
        return await asyncio.shield(self._pending_read)

    async def read(self) -> bytes | None:
        if self._async_iter is not None:
            return await read_or_cancel(self._next_async, self._cancel_event)
        return await read_or_cancel(self._next_sync, self._cancel_event)

    def _close_source(self, pending: asyncio.Future | None = None) -> None:
        if pending is not None and not pending.cancelled() and pending.exception() is not None:
            logger.debug(f"Abandoned chunk read failed: {pending.exception()}")
        close = getattr(self._source, "close", None)
        if callable(close):
            close()

    def release(self) -> None:
        self.release_count += 1
        if self.release_count > 1:
            return
        pending = self._pending_read
        if pending is not None and not pending.done():
            pending.add_done_callback(self._close_source)
        else:
            self._close_source()


class MatchStream:
    """Async iterator of decoded stream items.

    Yields the ChromosomeHeader first (unless it fails to decode), then one
    BackendMatch per decodable match frame. The reader is released exactly
    once when iteration ends, whatever the outcome.

    Attributes:
        state: Current StreamState
        stats: Frame and byte counters, updated as the stream progresses
        chromosome_info: Decoded header, None until the first frame arrives

    Example:
        >>> stream = MatchStream(IterableChunkReader([body]))
        >>> async for item in stream:
        ...     handle(item)
    """

    def __init__(
        self,
        reader: ChunkReader,
        max_frame_length: int = MAX_FRAME_LENGTH,
        max_collection_len: int = MAX_COLLECTION_LEN,
        log: logging.Logger | None = None,
    ) -> None:
        self._reader = reader
        self._released = False
        self._assembler = FrameAssembler(max_frame_length)
        self._items: AsyncGenerator[StreamItem, None] | None = None
        self.max_collection_len = max_collection_len
        self.log = log or logger
        self.state = StreamState.AWAITING_HEADER
        self.stats = StreamStats()
        self.chromosome_info: list[list[ChromosomeInfo]] | None = None

    def __aiter__(self) -> AsyncIterator[StreamItem]:
        if self._items is not None or self._released:
            raise RuntimeError("MatchStream can only be iterated once")
        self._items = self._run()
        return self._items

    async def aclose(self) -> None:
        """Stop the stream early and release the reader."""
        if self._items is not None:
            await self._items.aclose()
        # Covers streams closed before their first read
        self._release()

    def _release(self) -> None:
        if self._released:
            return
        self._released = True
        if self.state is not StreamState.DONE:
            self.state = StreamState.ABORTED
        self._reader.release()

    async def _run(self) -> AsyncIterator[StreamItem]:
        try:
            while True:
                chunk = await self._reader.read()
                if chunk is None:
                    break

                self.stats.chunks_received += 1
                self.stats.bytes_received += len(chunk)
                self._assembler.push(chunk)

                for payload in self._assembler.frames():
                    item = self._decode(payload)
                    if item is not None:
                        yield item

            self._finish()

        except StreamCancelled:
            self.log.info(
                f"Stream cancelled after {self.stats.matches} matches "
                f"({self.stats.bytes_received:,} bytes)"
            )
            raise
        except InvalidFrameLengthError as e:
            # Rejected by the assembler before _decode counted it
            failed_frame = self.stats.frames + 1
            self.log.error(f"Aborting stream at frame {failed_frame}: {e}")
            raise
        finally:
            self._release()

    def _decode(self, payload: bytes) -> StreamItem | None:
        self.stats.frames += 1

        if self.state is StreamState.AWAITING_HEADER:
            # Every later frame is a match, whether or not the header decodes
            self.state = StreamState.STREAMING
            self.chromosome_info = []
            try:
                genomes = decode_chromosome_header(payload)
            except DecodeError as e:
                self.stats.skipped += 1
                self.log.error(
                    f"Skipping chromosome header frame {self.stats.frames} "
                    f"({len(payload)} bytes): {e}"
                )
                return None

            header = ChromosomeHeader(tuple(tuple(g) for g in genomes))
            self.chromosome_info = header.as_lists()
            self.log.debug(
                f"Chromosome header: {len(genomes)} genome(s), "
                f"{sum(len(g) for g in genomes)} chromosome(s)"
            )
            return header

        try:
            match = decode_backend_match(payload, self.max_collection_len)
        except DecodeError as e:
            self.stats.skipped += 1
            self.log.warning(
                f"Skipping match frame {self.stats.frames} ({len(payload)} bytes): {e}"
            )
            return None

        self.stats.matches += 1
        return match

    def _finish(self) -> None:
        self.stats.leftover_bytes = self._assembler.pending
        if self.stats.leftover_bytes:
            self.log.warning(
                f"Stream ended with {self.stats.leftover_bytes} leftover bytes "
                "(truncated final frame)"
            )
        if self.state is StreamState.AWAITING_HEADER:
            self.log.warning("Stream ended before the chromosome header arrived")

        self.state = StreamState.DONE
        self.log.debug(
            f"Stream complete: {self.stats.frames} frames, {self.stats.matches} matches, "
            f"{self.stats.skipped} skipped"
        )


async def collect_response(
    items: AsyncIterable[StreamItem],
    on_progress: Callable[[int], None] | None = None,
    result: BackendResponse | None = None,
) -> BackendResponse:
    """Drain a stream into a BackendResponse.

    Args:
        items: MatchStream or any iterable of stream items
        on_progress: Called with the running match count after each match
        result: Response to accumulate into (a new one by default)

    Raises:
        XmapStreamError: Fatal stream errors, with the partial response
            attached as ``partial``
    """
    if result is None:
        result = BackendResponse()

    try:
        async for item in items:
            if isinstance(item, ChromosomeHeader):
                result.chromosome_info = item.as_lists()
                continue
            result.matches.append(item)
            if on_progress is not None:
                on_progress(len(result.matches))
    except XmapStreamError as e:
        e.partial = result
        raise
    finally:
        # Reader is released on every exit, including a raising on_progress
        aclose = getattr(items, "aclose", None)
        if aclose is not None:
            await aclose()

    return result

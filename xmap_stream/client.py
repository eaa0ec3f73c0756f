"""HTTP client for the XMAP matching service.

Uploads 2-3 XMAP files as a multipart form (fields file0..fileN), then
decodes the streamed binary response with MatchStream. The blocking requests
body iterator is advanced one chunk at a time in a worker thread, so the
transport is never read ahead of the consumer.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Sequence
from contextlib import ExitStack
from pathlib import Path
from typing import Union

import requests

from xmap_stream.config import Settings
from xmap_stream.exceptions import ServerError, StreamCancelled
from xmap_stream.models import BackendResponse
from xmap_stream.stream import MatchStream, StreamItem, collect_response, read_or_cancel

logger = logging.getLogger(__name__)

MIN_FILES = 2
MAX_FILES = 3

# A path on disk, or an in-memory (filename, content) pair
XmapUpload = Union[Path, str, tuple[str, bytes]]


class ResponseChunkReader:
    """ChunkReader over a streamed requests.Response.

    Cancellation closes the response, which aborts the socket read the
    worker thread is blocked in. The response is closed exactly once.
    """

    def __init__(
        self,
        response: requests.Response,
        chunk_size: int,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        self._response = response
        self._chunks = response.iter_content(chunk_size=chunk_size)
        self._cancel_event = cancel_event
        self._closed = False
        self.release_count = 0

    def _next_chunk(self) -> bytes | None:
        for chunk in self._chunks:
            if chunk:
                return chunk
        return None

    async def read(self) -> bytes | None:
        try:
            return await read_or_cancel(
                lambda: asyncio.to_thread(self._next_chunk),
                self._cancel_event,
            )
        except StreamCancelled:
            self._close()
            raise
        except requests.RequestException as e:
            raise ServerError(f"Response stream interrupted: {e}") from e

    def _close(self) -> None:
        if not self._closed:
            self._closed = True
            self._response.close()

    def release(self) -> None:
        self.release_count += 1
        self._close()


def _discard_late_response(task: "asyncio.Future[requests.Response]") -> None:
    """Close a response that arrived after the request was cancelled."""
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.debug(f"Cancelled upload finished with error: {error}")
        return
    task.result().close()


class MatchClient:
    """Request driver for the matching service.

    Example:
        >>> client = MatchClient(Settings(api_url="http://localhost:8080/api/match"))
        >>> result = asyncio.run(client.fetch_matches(["chm13.xmap", "hg38.xmap"]))
        >>> len(result.matches)
        1532
    """

    def __init__(
        self,
        settings: Settings | None = None,
        session: requests.Session | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        self.settings = settings or Settings.from_env()
        self.session = session or requests.Session()
        self.log = log or logger

    @staticmethod
    def validate_files(files: Sequence[XmapUpload]) -> None:
        """Check the upload count.

        Raises:
            ValueError: If fewer than 2 or more than 3 files are given
        """
        if len(files) < MIN_FILES or len(files) > MAX_FILES:
            raise ValueError(
                f"Please provide {MIN_FILES}-{MAX_FILES} XMAP files (got {len(files)})"
            )

    def _post(self, files: Sequence[XmapUpload]) -> requests.Response:
        url = self.settings.api_url

        with ExitStack() as stack:
            form = {}
            for i, upload in enumerate(files):
                if isinstance(upload, tuple):
                    name, content = upload
                    form[f"file{i}"] = (name, content, "text/plain")
                else:
                    path = Path(upload)
                    handle = stack.enter_context(open(path, "rb"))
                    form[f"file{i}"] = (path.name, handle, "text/plain")

            self.log.info(f"Uploading {len(files)} XMAP files to {url}")

            try:
                response = self.session.post(
                    url,
                    files=form,
                    stream=True,
                    timeout=self.settings.timeout,
                )
            except requests.exceptions.ConnectionError as e:
                raise ServerError(
                    f"Could not connect to matching service at {url}. "
                    "Make sure the backend is running."
                ) from e
            except requests.exceptions.Timeout as e:
                raise ServerError(f"Request to {url} timed out") from e
            except requests.RequestException as e:
                raise ServerError(f"Request to {url} failed: {e}") from e

        if not response.ok:
            status, reason = response.status_code, response.reason
            response.close()
            raise ServerError(
                f"Server error: {status} {reason}",
                status_code=status,
                reason=reason,
            )

        return response

    async def open_stream(
        self,
        files: Sequence[XmapUpload],
        cancel_event: asyncio.Event | None = None,
    ) -> MatchStream:
        """Upload files and return a MatchStream over the response body.

        The returned stream must be iterated (or closed with aclose()) so
        the HTTP response is released.

        Raises:
            ValueError: If the file count is wrong
            ServerError: On transport failure or a non-2xx status
            StreamCancelled: If cancelled before the response arrived
        """
        self.validate_files(files)

        post_task = asyncio.ensure_future(asyncio.to_thread(self._post, files))
        try:
            response = await read_or_cancel(
                lambda: asyncio.shield(post_task), cancel_event
            )
        except (StreamCancelled, asyncio.CancelledError):
            post_task.add_done_callback(_discard_late_response)
            raise

        reader = ResponseChunkReader(
            response,
            chunk_size=self.settings.chunk_size,
            cancel_event=cancel_event,
        )
        return MatchStream(
            reader,
            max_frame_length=self.settings.max_frame_length,
            max_collection_len=self.settings.max_collection_len,
            log=self.log,
        )

    async def stream(
        self,
        files: Sequence[XmapUpload],
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncIterator[StreamItem]:
        """Upload files and yield the header and matches as they arrive.

        Example:
            >>> async for item in client.stream(["chm13.xmap", "hg38.xmap"]):
            ...     if isinstance(item, BackendMatch):
            ...         draw(item)
        """
        match_stream = await self.open_stream(files, cancel_event)
        try:
            async for item in match_stream:
                yield item
        finally:
            await match_stream.aclose()

    async def fetch_matches(
        self,
        files: Sequence[XmapUpload],
        on_progress: Callable[[int], None] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> BackendResponse:
        """Upload files and decode the whole match stream.

        Args:
            files: 2-3 XMAP files (paths or (name, content) pairs)
            on_progress: Called with the running match count after each match
            cancel_event: Set to abort the request and the stream

        Returns:
            Chromosome info for every genome plus all decoded matches

        Raises:
            ValueError: If the file count is wrong
            ServerError: On transport failure or a non-2xx status
            InvalidFrameLengthError: If the stream framing is corrupt
            StreamCancelled: If cancel_event was set

            Errors raised after streaming began carry the matches decoded
            so far on their ``partial`` attribute.
        """
        stream = await self.open_stream(files, cancel_event)
        result = await collect_response(stream, on_progress)

        self.log.info(
            f"Received {len(result.matches)} matches across "
            f"{result.genome_count} genomes ({stream.stats.skipped} frames skipped)"
        )
        return result


async def fetch_matches(
    files: Sequence[XmapUpload],
    on_progress: Callable[[int], None] | None = None,
    cancel_event: asyncio.Event | None = None,
    settings: Settings | None = None,
) -> BackendResponse:
    """Shortcut for MatchClient(settings).fetch_matches(...)."""
    client = MatchClient(settings)
    return await client.fetch_matches(files, on_progress, cancel_event)

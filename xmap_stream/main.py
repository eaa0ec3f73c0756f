"""Run orchestration for the xmap-stream command line.

Coordinates the live fetch and the dump replay: build the stream, drain it
with a live match counter, then write the JSON report and record table. On a
fatal stream error the partial results are still written before the error is
re-raised.
"""

import asyncio
from collections.abc import Callable
from pathlib import Path

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from xmap_stream.client import MatchClient
from xmap_stream.config import Settings
from xmap_stream.exceptions import XmapStreamError
from xmap_stream.io_utils import iter_chunks
from xmap_stream.logging_config import get_progress_logger
from xmap_stream.models import BackendResponse, StreamStats
from xmap_stream.stream import IterableChunkReader, MatchStream, collect_response
from xmap_stream.writers.report import ReportWriter
from xmap_stream.writers.table import write_records_table

console = Console()


async def _drain(
    stream: MatchStream,
    on_progress: Callable[[int], None],
) -> tuple[BackendResponse, XmapStreamError | None]:
    try:
        return await collect_response(stream, on_progress), None
    except XmapStreamError as e:
        return e.partial or BackendResponse(), e


async def _fetch(
    client: MatchClient,
    files: list[Path],
    on_progress: Callable[[int], None],
) -> tuple[BackendResponse, StreamStats, XmapStreamError | None]:
    stream = await client.open_stream(files)
    result, error = await _drain(stream, on_progress)
    return result, stream.stats, error


async def _replay(
    stream: MatchStream,
    on_progress: Callable[[int], None],
) -> tuple[BackendResponse, StreamStats, XmapStreamError | None]:
    result, error = await _drain(stream, on_progress)
    return result, stream.stats, error


def _progress_bar() -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TextColumn("{task.completed:,} matches"),
        TimeElapsedColumn(),
        console=console,
    )


def print_summary(response: BackendResponse, stats: StreamStats) -> None:
    """Print decoded stream statistics to the console."""
    console.print(f"\nGenomes {response.genome_count}")
    for i, chromosomes in enumerate(response.chromosome_info):
        console.print(
            f" Genome {i}: {len(chromosomes)} chromosomes, "
            f"{response.genome_size(i):,.0f} bp"
        )

    console.print(f"Matches {len(response.matches):,}")
    console.print(f"Matched records {response.record_count:,}")
    console.print(f"Frames received {stats.frames:,} ({stats.bytes_received:,} bytes)")
    if stats.skipped:
        console.print(f"[yellow]Frames skipped (undecodable) {stats.skipped}[/yellow]")
    if stats.truncated:
        console.print(
            f"[yellow]Stream truncated: {stats.leftover_bytes} leftover bytes[/yellow]"
        )


def _finish(
    writer: ReportWriter,
    result: BackendResponse,
    stats: StreamStats,
    error: XmapStreamError | None,
    report_file: Path | None,
    table_file: Path | None,
) -> BackendResponse:
    print_summary(result, stats)

    if report_file is not None:
        writer.write(report_file, result, stats, error=str(error) if error else None)
        console.print(f"Report written to {report_file}")

    if table_file is not None:
        rows = write_records_table(table_file, result)
        console.print(f"Record table written to {table_file} ({rows:,} rows)")

    if error is not None:
        raise error
    return result


def run_fetch(
    files: list[Path],
    settings: Settings,
    report_file: Path | None = None,
    table_file: Path | None = None,
) -> BackendResponse:
    """Upload XMAP files to the matching service and decode the response.

    Args:
        files: 2-3 XMAP files
        settings: Client settings (endpoint, timeouts, limits)
        report_file: Optional JSON report path
        table_file: Optional TSV/CSV record table path

    Returns:
        Decoded response

    Raises:
        ValueError: If the file count is wrong
        XmapStreamError: On request or fatal stream errors (after partial
            results have been written)
    """
    progress_log = get_progress_logger()
    client = MatchClient(settings)
    writer = ReportWriter(", ".join(f.name for f in files))

    progress_log.info(f"Requesting matches for {len(files)} files from {settings.api_url}")

    with _progress_bar() as progress:
        task = progress.add_task("Streaming matches", total=None)
        result, stats, error = asyncio.run(
            _fetch(client, files, lambda n: progress.update(task, completed=n))
        )

    return _finish(writer, result, stats, error, report_file, table_file)


def run_decode(
    dump_file: Path,
    settings: Settings,
    report_file: Path | None = None,
    table_file: Path | None = None,
) -> BackendResponse:
    """Decode a captured response body from disk.

    Args:
        dump_file: Raw stream dump (may be gzipped)
        settings: Settings for chunk size and decoder limits
        report_file: Optional JSON report path
        table_file: Optional TSV/CSV record table path

    Returns:
        Decoded response
    """
    progress_log = get_progress_logger()
    writer = ReportWriter(str(dump_file))

    progress_log.info(f"Decoding {dump_file.name} in {settings.chunk_size:,}-byte chunks")

    stream = MatchStream(
        IterableChunkReader(iter_chunks(dump_file, settings.chunk_size)),
        max_frame_length=settings.max_frame_length,
        max_collection_len=settings.max_collection_len,
    )

    with _progress_bar() as progress:
        task = progress.add_task("Decoding matches", total=None)
        result, stats, error = asyncio.run(
            _replay(stream, lambda n: progress.update(task, completed=n))
        )

    return _finish(writer, result, stats, error, report_file, table_file)

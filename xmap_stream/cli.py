"""Typer CLI for the XMAP match stream decoder.

Usage:
    # Upload two or three XMAP files and decode the streamed matches
    xmap-stream fetch chm13.xmap hg38.xmap --report matches.json

    # Replay a captured response body
    xmap-stream decode matches.bin.gz --table records.tsv
"""

import logging
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console

from xmap_stream import __version__
from xmap_stream.config import Settings
from xmap_stream.exceptions import XmapStreamError
from xmap_stream.logging_config import setup_logging

app = typer.Typer(
    name="xmap-stream",
    help="Fetch and decode streamed XMAP genome-mapping matches",
    add_completion=False,
)

console = Console()


def _banner() -> None:
    console.print("\n")
    console.print("[bold]XMAP Match Stream Decoder[/bold]", style="blue")
    console.print(f"Python implementation v{__version__}\n")


def _load_settings(**overrides) -> Settings:
    try:
        return Settings.from_env(**overrides)
    except ValidationError as e:
        for error in e.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            console.print(f"[red]ERROR:[/red] {field}: {error['msg']}")
        raise typer.Exit(code=1)


def _init_logging(settings: Settings, verbose: bool) -> None:
    log_file = setup_logging(
        log_dir=settings.log_dir,
        console_level=logging.INFO if verbose else logging.WARNING,
    )
    if verbose:
        console.print(f"Log file: {log_file}")


def _fail(error: Exception, verbose: bool) -> None:
    console.print(f"[red]ERROR:[/red] {error}")
    if isinstance(error, XmapStreamError) and error.partial is not None:
        console.print(
            f"[yellow]Partial results:[/yellow] {len(error.partial.matches):,} matches "
            "decoded before the failure"
        )
    if verbose:
        import traceback
        console.print(traceback.format_exc())
    raise typer.Exit(code=1)


ReportOption = Annotated[
    Path | None,
    typer.Option(
        "--report", "-r",
        help="Write a JSON report of the decoded stream",
        file_okay=True,
        dir_okay=False,
    ),
]

TableOption = Annotated[
    Path | None,
    typer.Option(
        "--table", "-t",
        help="Write one row per matched record (TSV, or CSV for .csv)",
        file_okay=True,
        dir_okay=False,
    ),
]

VerboseOption = Annotated[
    bool,
    typer.Option(
        "--verbose", "-v",
        help="Enable verbose logging",
    ),
]


@app.command()
def fetch(
    files: Annotated[
        list[Path],
        typer.Argument(
            help="2-3 XMAP files to match",
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
        ),
    ],
    api_url: Annotated[
        str | None,
        typer.Option(
            "--api-url",
            help="Matching service endpoint (default: http://localhost:8080/api/match)",
        ),
    ] = None,
    timeout: Annotated[
        float | None,
        typer.Option(
            "--timeout",
            help="Connection timeout in seconds",
            min=0.1,
        ),
    ] = None,
    report: ReportOption = None,
    table: TableOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Upload XMAP files and decode the streamed matches.

    The matching service streams one chromosome header followed by one
    frame per query contig found in more than one file. Matches are decoded
    as they arrive; undecodable frames are skipped and reported.

    Example usage:

        xmap-stream fetch chm13.xmap hg38.xmap

        xmap-stream fetch a.xmap b.xmap c.xmap --api-url http://server:8080/api/match -r out.json
    """
    from xmap_stream.main import run_fetch

    _banner()
    settings = _load_settings(api_url=api_url, connect_timeout=timeout)
    _init_logging(settings, verbose)

    console.print("Options Set:")
    console.print(f"Matching service:            {settings.api_url}")
    for i, path in enumerate(files):
        console.print(f"file{i}:                       {path}")
    if report:
        console.print(f"Report file:                 {report}")
    if table:
        console.print(f"Record table:                {table}")
    console.print("")

    try:
        run_fetch(files, settings, report_file=report, table_file=table)
    except (XmapStreamError, ValueError) as e:
        _fail(e, verbose)


@app.command()
def decode(
    dump: Annotated[
        Path,
        typer.Argument(
            help="Captured response body (raw or gzipped)",
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
        ),
    ],
    chunk_size: Annotated[
        int | None,
        typer.Option(
            "--chunk-size",
            help="Bytes per read when replaying the dump",
            min=1,
        ),
    ] = None,
    report: ReportOption = None,
    table: TableOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Decode a captured match stream dump.

    Example usage:

        xmap-stream decode matches.bin

        xmap-stream decode matches.bin.gz --chunk-size 4096 --table records.tsv
    """
    from xmap_stream.main import run_decode

    _banner()
    settings = _load_settings(chunk_size=chunk_size)
    _init_logging(settings, verbose)

    try:
        run_decode(dump, settings, report_file=report, table_file=table)
    except XmapStreamError as e:
        _fail(e, verbose)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()

"""JSON report writer for decoded match streams.

Writes the chromosome header, every decoded match and the stream counters,
so a run can be inspected or reloaded without re-requesting the service.
"""

import json
import tempfile
from dataclasses import asdict
from datetime import datetime
from pathlib import Path

from xmap_stream import __version__
from xmap_stream.models import BackendResponse, StreamStats


class ReportWriter:
    """Builds and writes the JSON report for one stream.

    Usage:
        writer = ReportWriter(source="chm13.xmap, hg38.xmap")
        writer.write(output_path, response, stats)
    """

    def __init__(self, source: str) -> None:
        """Initialize report writer.

        Args:
            source: Human-readable description of where the stream came from
                (uploaded file names or dump path)
        """
        self.source = source
        self.start_time = datetime.now()

    def build(
        self,
        response: BackendResponse,
        stats: StreamStats | None = None,
        error: str | None = None,
    ) -> dict:
        """Build the JSON-serializable report.

        Args:
            response: Decoded (possibly partial) response
            stats: Stream counters, if available
            error: Message of the fatal error that ended the stream, if any
        """
        end_time = datetime.now()

        metadata = {
            "version": __version__,
            "tool": "xmap-stream",
            "timestamp": end_time.isoformat(),
            "duration_seconds": (end_time - self.start_time).total_seconds(),
            "source": self.source,
            "complete": error is None,
            "error": error,
        }

        genomes = [
            {
                "file_index": i,
                "genome_size": response.genome_size(i),
                "chromosomes": [asdict(c) for c in chromosomes],
            }
            for i, chromosomes in enumerate(response.chromosome_info)
        ]

        statistics = {
            "genomes": response.genome_count,
            "matches": len(response.matches),
            "records": response.record_count,
        }
        if stats is not None:
            statistics["stream"] = asdict(stats)

        return {
            "metadata": metadata,
            "statistics": statistics,
            "genomes": genomes,
            "matches": [asdict(m) for m in response.matches],
        }

    def write(
        self,
        output_path: Path,
        response: BackendResponse,
        stats: StreamStats | None = None,
        error: str | None = None,
    ) -> None:
        """Write the report atomically.

        Writes to a temporary file first, then renames to prevent
        partial files on interruption.
        """
        report = self.build(response, stats, error)

        output_path.parent.mkdir(parents=True, exist_ok=True)

        with tempfile.NamedTemporaryFile(
            mode="w",
            dir=output_path.parent,
            suffix=".json.tmp",
            delete=False,
        ) as tmp:
            json.dump(report, tmp, indent=2)
            tmp_path = Path(tmp.name)

        tmp_path.replace(output_path)

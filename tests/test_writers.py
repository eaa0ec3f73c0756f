"""Tests for the JSON report and record table writers."""

import json
from pathlib import Path

import pandas as pd
import pytest

from xmap_stream.models import BackendResponse, StreamStats
from xmap_stream.writers import ReportWriter, records_frame, write_records_table
from xmap_stream.writers.table import RECORD_COLUMNS


@pytest.fixture
def response(genomes, sample_match, two_file_match) -> BackendResponse:
    return BackendResponse(chromosome_info=genomes, matches=[sample_match, two_file_match])


class TestReportWriter:
    """Test JSON report building and writing."""

    def test_build(self, response: BackendResponse) -> None:
        stats = StreamStats(bytes_received=500, chunks_received=4, frames=3, matches=2)
        report = ReportWriter("chm13.xmap, hg38.xmap").build(response, stats)

        assert report["metadata"]["tool"] == "xmap-stream"
        assert report["metadata"]["source"] == "chm13.xmap, hg38.xmap"
        assert report["metadata"]["complete"] is True
        assert report["statistics"]["genomes"] == 2
        assert report["statistics"]["matches"] == 2
        assert report["statistics"]["records"] == 3
        assert report["statistics"]["stream"]["frames"] == 3
        assert report["genomes"][0]["genome_size"] == pytest.approx(550000.0)
        assert report["genomes"][1]["chromosomes"][2] == {"ref_contig_id": 23, "ref_len": 156000.0}
        assert report["matches"][0]["qry_contig_id"] == 2001

    def test_partial_report(self, response: BackendResponse) -> None:
        report = ReportWriter("dump.bin").build(response, error="Invalid frame length: 2000000")

        assert report["metadata"]["complete"] is False
        assert report["metadata"]["error"].startswith("Invalid frame length")
        assert "stream" not in report["statistics"]

    def test_write(self, tmp_path: Path, response: BackendResponse) -> None:
        """Report is valid JSON and no temporary file is left behind."""
        output = tmp_path / "reports" / "matches.json"
        ReportWriter("dump.bin").write(output, response, StreamStats())

        data = json.loads(output.read_text())
        assert data["matches"][1]["records"][1]["orientation"] == "-"
        assert data["matches"][1]["file_indices"] == [0, 1]
        assert list(output.parent.glob("*.tmp")) == []


class TestRecordTable:
    """Test the flat per-record table."""

    def test_records_frame(self, response: BackendResponse) -> None:
        df = records_frame(response)

        assert list(df.columns) == RECORD_COLUMNS
        assert len(df) == 3
        assert df["qry_contig_id"].tolist() == [2001, 1, 1]
        assert df["orientation"].tolist() == ["+", "+", "-"]

    def test_empty_response(self) -> None:
        df = records_frame(BackendResponse())

        assert list(df.columns) == RECORD_COLUMNS
        assert df.empty

    def test_write_tsv(self, tmp_path: Path, response: BackendResponse) -> None:
        output = tmp_path / "records.tsv"

        rows = write_records_table(output, response)

        assert rows == 3
        df = pd.read_csv(output, sep="\t")
        assert df["confidence"].tolist() == pytest.approx([12.5, 9.8, 8.2])

    def test_write_csv(self, tmp_path: Path, response: BackendResponse) -> None:
        output = tmp_path / "records.csv"
        write_records_table(output, response)

        assert output.read_text().splitlines()[0] == ",".join(RECORD_COLUMNS)

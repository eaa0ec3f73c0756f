"""Pytest fixtures for xmap_stream tests."""

from pathlib import Path

import pytest

from xmap_stream.encoder import encode_stream
from xmap_stream.logging_config import reset_logging
from xmap_stream.models import BackendMatch, ChromosomeInfo, MatchedRecord


@pytest.fixture(autouse=True)
def clean_logging():
    """Drop handlers installed by setup_logging between tests."""
    yield
    reset_logging()


@pytest.fixture
def sample_record() -> MatchedRecord:
    """Single forward-strand record on chromosome 1."""
    return MatchedRecord(
        file_index=0,
        ref_contig_id=1,
        qry_start_pos=100.0,
        qry_end_pos=2000.0,
        ref_start_pos=1_000_000.0,
        ref_end_pos=1_001_900.0,
        orientation="+",
        confidence=12.5,
        ref_len=248_956_422.0,
    )


@pytest.fixture
def sample_match(sample_record: MatchedRecord) -> BackendMatch:
    """Query contig 2001 found in files 0 and 1 with one record."""
    return BackendMatch(
        qry_contig_id=2001,
        file_indices=(0, 1),
        records=(sample_record,),
    )


@pytest.fixture
def two_file_match() -> BackendMatch:
    """Query contig aligned to chromosome 1 in file 0 and chromosome 2 in file 1."""
    return BackendMatch(
        qry_contig_id=1,
        file_indices=(0, 1),
        records=(
            MatchedRecord(
                file_index=0,
                ref_contig_id=1,
                qry_start_pos=0.0,
                qry_end_pos=5000.0,
                ref_start_pos=10000.0,
                ref_end_pos=15000.0,
                orientation="+",
                confidence=9.8,
                ref_len=250000.0,
            ),
            MatchedRecord(
                file_index=1,
                ref_contig_id=2,
                qry_start_pos=2000.0,
                qry_end_pos=8000.0,
                ref_start_pos=50000.0,
                ref_end_pos=44000.0,
                orientation="-",
                confidence=8.2,
                ref_len=300000.0,
            ),
        ),
    )


@pytest.fixture
def genomes() -> list[list[ChromosomeInfo]]:
    """Chromosome lengths for two genome files."""
    return [
        [ChromosomeInfo(1, 250000.0), ChromosomeInfo(2, 300000.0)],
        [ChromosomeInfo(1, 248000.0), ChromosomeInfo(2, 242000.0), ChromosomeInfo(23, 156000.0)],
    ]


@pytest.fixture
def stream_body(genomes, sample_match, two_file_match) -> bytes:
    """Complete response body: header frame plus two match frames."""
    return encode_stream(genomes, [sample_match, two_file_match])


@pytest.fixture
def dump_file(tmp_path: Path, stream_body: bytes) -> Path:
    """Captured response body written to disk."""
    path = tmp_path / "matches.bin"
    path.write_bytes(stream_body)
    return path

"""Tests for match stream data models."""

import dataclasses

import pytest

from xmap_stream.models import BackendMatch, BackendResponse, ChromosomeInfo, StreamStats


class TestBackendMatch:
    """Test match helpers."""

    def test_records_for_file(self, two_file_match: BackendMatch) -> None:
        records = two_file_match.records_for_file(1)

        assert len(records) == 1
        assert records[0].ref_contig_id == 2
        assert records[0].is_reverse is True
        assert records[0].ref_span == pytest.approx(6000.0)

    def test_frozen(self, sample_match: BackendMatch) -> None:
        with pytest.raises(dataclasses.FrozenInstanceError):
            sample_match.qry_contig_id = 1


class TestBackendResponse:
    """Test aggregate response helpers."""

    def test_genome_helpers(self, genomes, sample_match, two_file_match) -> None:
        response = BackendResponse(chromosome_info=genomes, matches=[sample_match, two_file_match])

        assert response.genome_count == 2
        assert response.genome_size(1) == pytest.approx(646000.0)
        assert response.chromosome_lengths(0) == {1: 250000.0, 2: 300000.0}
        assert response.record_count == 3

    def test_empty(self) -> None:
        response = BackendResponse()
        assert response.genome_count == 0
        assert response.record_count == 0

    def test_defaults_not_shared(self) -> None:
        first = BackendResponse()
        first.chromosome_info.append([ChromosomeInfo(1, 1.0)])
        assert BackendResponse().chromosome_info == []


class TestStreamStats:
    def test_truncated(self) -> None:
        assert StreamStats().truncated is False
        assert StreamStats(leftover_bytes=3).truncated is True

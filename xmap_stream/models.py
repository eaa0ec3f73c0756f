"""Data models for the XMAP match stream.

Structures decoded from the matching service's binary stream: per-genome
chromosome lengths, matched alignment records grouped by query contig, and
the aggregate response handed to the UI.
"""

from dataclasses import dataclass, field
from enum import Enum, auto


class StreamState(Enum):
    """Lifecycle of a match stream."""

    AWAITING_HEADER = auto()
    STREAMING = auto()
    DONE = auto()
    ABORTED = auto()


@dataclass(frozen=True, slots=True)
class ChromosomeInfo:
    """One reference chromosome of an uploaded genome file.

    Attributes:
        ref_contig_id: Chromosome ordinal (1-23, X=23 style numbering)
        ref_len: Chromosome length in base pairs
    """

    ref_contig_id: int
    ref_len: float


@dataclass(frozen=True, slots=True)
class MatchedRecord:
    """One alignment of a query contig onto a reference chromosome.

    Field order is the wire order.

    Attributes:
        file_index: Index of the uploaded XMAP file the record came from
        ref_contig_id: Reference chromosome
        qry_start_pos: Start position on the query contig
        qry_end_pos: End position on the query contig
        ref_start_pos: Start position on the reference chromosome
        ref_end_pos: End position on the reference chromosome
        orientation: Strand, "+" or "-"
        confidence: Alignment confidence score
        ref_len: Length of the reference chromosome
    """

    file_index: int
    ref_contig_id: int
    qry_start_pos: float
    qry_end_pos: float
    ref_start_pos: float
    ref_end_pos: float
    orientation: str
    confidence: float
    ref_len: float

    @property
    def is_reverse(self) -> bool:
        """True when the query aligns to the reverse strand."""
        return self.orientation == "-"

    @property
    def ref_span(self) -> float:
        """Number of reference base pairs covered by the alignment."""
        return abs(self.ref_end_pos - self.ref_start_pos)


@dataclass(frozen=True, slots=True)
class BackendMatch:
    """All matched records sharing one query contig.

    Attributes:
        qry_contig_id: Query contig identifier
        file_indices: Files the contig was found in
        records: One record per file alignment
    """

    qry_contig_id: int
    file_indices: tuple[int, ...]
    records: tuple[MatchedRecord, ...]

    def records_for_file(self, file_index: int) -> tuple[MatchedRecord, ...]:
        """Records aligned within a single genome file."""
        return tuple(r for r in self.records if r.file_index == file_index)


@dataclass(frozen=True, slots=True)
class ChromosomeHeader:
    """Decoded first frame of a stream: chromosome lengths per genome file."""

    genomes: tuple[tuple[ChromosomeInfo, ...], ...]

    def as_lists(self) -> list[list[ChromosomeInfo]]:
        return [list(chromosomes) for chromosomes in self.genomes]


@dataclass
class BackendResponse:
    """Aggregated result of one match request.

    Attributes:
        chromosome_info: Chromosome lengths, outer index is the genome file
        matches: Matches in arrival order
    """

    chromosome_info: list[list[ChromosomeInfo]] = field(default_factory=list)
    matches: list[BackendMatch] = field(default_factory=list)

    @property
    def genome_count(self) -> int:
        return len(self.chromosome_info)

    def genome_size(self, file_index: int) -> float:
        """Total length of all chromosomes of one genome file."""
        return sum(c.ref_len for c in self.chromosome_info[file_index])

    def chromosome_lengths(self, file_index: int) -> dict[int, float]:
        """Map chromosome id to length for one genome file."""
        return {c.ref_contig_id: c.ref_len for c in self.chromosome_info[file_index]}

    @property
    def record_count(self) -> int:
        return sum(len(m.records) for m in self.matches)


@dataclass
class StreamStats:
    """Running counters for a match stream.

    Tracks what happened to every frame so skipped or truncated data is
    visible to the caller even though it never raises.
    """

    bytes_received: int = 0
    chunks_received: int = 0
    frames: int = 0
    matches: int = 0
    skipped: int = 0
    leftover_bytes: int = 0

    @property
    def truncated(self) -> bool:
        """Whether the stream ended partway through a frame."""
        return self.leftover_bytes > 0

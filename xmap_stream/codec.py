"""Schema decoders for the XMAP match stream payloads.

Two payload shapes exist. The first frame of a stream carries chromosome
lengths for every uploaded genome file:

    num_files: u64
    per file: chromosome_count: u64, then (ref_contig_id: u8, ref_len: f64)*

Every later frame carries one BackendMatch:

    qry_contig_id: u32
    file_indices_len: u64, file_indices: u64*
    records_len: u64, records: MatchedRecord*

Field order is fixed by the producer and has no version marker.
"""

from xmap_stream.cursor import ByteCursor
from xmap_stream.exceptions import ProtocolViolationError
from xmap_stream.models import BackendMatch, ChromosomeInfo, MatchedRecord

# Sanity bound on per-match collections; guards against a corrupt length
# being read as a huge loop count
MAX_COLLECTION_LEN = 100


def _as_cursor(source: ByteCursor | bytes | bytearray | memoryview) -> ByteCursor:
    if isinstance(source, ByteCursor):
        return source
    return ByteCursor(source)


def _checked_len(value: int, name: str, limit: int) -> int:
    if value > limit:
        raise ProtocolViolationError(f"Unrealistic {name}: {value} (limit {limit})")
    return value


def decode_chromosome_info_list(cursor: ByteCursor) -> list[ChromosomeInfo]:
    """Decode one genome's chromosome list.

    No cap is applied; the list is bounded by the frame size limit.
    """
    count = cursor.read_u64_le()
    chromosomes = []
    for _ in range(count):
        ref_contig_id = cursor.read_u8()
        ref_len = cursor.read_f64_le()
        chromosomes.append(ChromosomeInfo(ref_contig_id=ref_contig_id, ref_len=ref_len))
    return chromosomes


def decode_chromosome_header(
    source: ByteCursor | bytes | bytearray | memoryview,
) -> list[list[ChromosomeInfo]]:
    """Decode the first frame of a stream.

    Args:
        source: Header payload or a cursor positioned at its start

    Returns:
        One chromosome list per uploaded genome file
    """
    cursor = _as_cursor(source)
    num_files = cursor.read_u64_le()
    return [decode_chromosome_info_list(cursor) for _ in range(num_files)]


def decode_matched_record(cursor: ByteCursor) -> MatchedRecord:
    """Decode one MatchedRecord in wire order."""
    return MatchedRecord(
        file_index=cursor.read_u64_le(),
        ref_contig_id=cursor.read_u8(),
        qry_start_pos=cursor.read_f64_le(),
        qry_end_pos=cursor.read_f64_le(),
        ref_start_pos=cursor.read_f64_le(),
        ref_end_pos=cursor.read_f64_le(),
        orientation=cursor.read_utf8_char(),
        confidence=cursor.read_f64_le(),
        ref_len=cursor.read_f64_le(),
    )


def decode_backend_match(
    source: ByteCursor | bytes | bytearray | memoryview,
    max_collection_len: int = MAX_COLLECTION_LEN,
) -> BackendMatch:
    """Decode one BackendMatch payload.

    Args:
        source: Match payload or a cursor positioned at its start
        max_collection_len: Upper bound for file_indices and records counts

    Returns:
        Decoded BackendMatch

    Raises:
        ProtocolViolationError: If a collection length exceeds the bound
        OutOfRangeError: If the payload is shorter than its contents claim
        InvalidEncodingError: If an orientation byte is not valid UTF-8

    Example:
        >>> match = decode_backend_match(payload)
        >>> match.qry_contig_id, len(match.records)
        (2001, 1)
    """
    cursor = _as_cursor(source)

    qry_contig_id = cursor.read_u32_le()

    file_indices_len = _checked_len(
        cursor.read_u64_le(), "file_indices_len", max_collection_len
    )
    file_indices = tuple(cursor.read_u64_le() for _ in range(file_indices_len))

    records_len = _checked_len(cursor.read_u64_le(), "records_len", max_collection_len)
    records = tuple(decode_matched_record(cursor) for _ in range(records_len))

    return BackendMatch(
        qry_contig_id=qry_contig_id,
        file_indices=file_indices,
        records=records,
    )

"""Encoders for the XMAP match stream wire format.

Producer side of xmap_stream.codec: builds the payloads the matching service
emits and wraps them in length-prefixed frames. Used to replay or fabricate
streams (test fixtures, captured-dump tooling).
"""

import struct
from collections.abc import Iterable, Sequence

from xmap_stream.models import BackendMatch, ChromosomeInfo, MatchedRecord

_U32 = struct.Struct("<I")
_U64 = struct.Struct("<Q")
_CHROMOSOME = struct.Struct("<Bd")
_RECORD_HEAD = struct.Struct("<QBdddd")
_RECORD_TAIL = struct.Struct("<dd")


def encode_matched_record(record: MatchedRecord) -> bytes:
    """Encode one MatchedRecord in wire order."""
    if len(record.orientation) != 1:
        raise ValueError(f"Orientation must be a single character: {record.orientation!r}")
    orientation = record.orientation.encode("utf-8")

    return b"".join([
        _RECORD_HEAD.pack(
            record.file_index,
            record.ref_contig_id,
            record.qry_start_pos,
            record.qry_end_pos,
            record.ref_start_pos,
            record.ref_end_pos,
        ),
        orientation,
        _RECORD_TAIL.pack(record.confidence, record.ref_len),
    ])


def encode_backend_match(match: BackendMatch) -> bytes:
    """Encode a BackendMatch payload (without frame prefix)."""
    parts = [_U32.pack(match.qry_contig_id), _U64.pack(len(match.file_indices))]
    parts.extend(_U64.pack(index) for index in match.file_indices)
    parts.append(_U64.pack(len(match.records)))
    parts.extend(encode_matched_record(record) for record in match.records)
    return b"".join(parts)


def encode_chromosome_header(genomes: Sequence[Sequence[ChromosomeInfo]]) -> bytes:
    """Encode the chromosome header payload (without frame prefix)."""
    parts = [_U64.pack(len(genomes))]
    for chromosomes in genomes:
        parts.append(_U64.pack(len(chromosomes)))
        parts.extend(
            _CHROMOSOME.pack(c.ref_contig_id, c.ref_len) for c in chromosomes
        )
    return b"".join(parts)


def frame(payload: bytes) -> bytes:
    """Prefix a payload with its u32 little-endian length."""
    return _U32.pack(len(payload)) + payload


def encode_stream(
    genomes: Sequence[Sequence[ChromosomeInfo]],
    matches: Iterable[BackendMatch],
) -> bytes:
    """Encode a complete response body: header frame then one frame per match.

    Example:
        >>> body = encode_stream([[ChromosomeInfo(1, 248e6)]], [match])
    """
    frames = [frame(encode_chromosome_header(genomes))]
    frames.extend(frame(encode_backend_match(m)) for m in matches)
    return b"".join(frames)

"""Flat per-record table of decoded matches.

One row per MatchedRecord, tagged with its query contig, for loading into
pandas-based analysis or spreadsheet tools.
"""

from pathlib import Path

import pandas as pd

from xmap_stream.models import BackendResponse

RECORD_COLUMNS = [
    "qry_contig_id",
    "file_index",
    "ref_contig_id",
    "qry_start_pos",
    "qry_end_pos",
    "ref_start_pos",
    "ref_end_pos",
    "orientation",
    "confidence",
    "ref_len",
]


def records_frame(response: BackendResponse) -> pd.DataFrame:
    """Flatten all matches into a DataFrame with RECORD_COLUMNS."""
    rows = [
        {
            "qry_contig_id": match.qry_contig_id,
            "file_index": record.file_index,
            "ref_contig_id": record.ref_contig_id,
            "qry_start_pos": record.qry_start_pos,
            "qry_end_pos": record.qry_end_pos,
            "ref_start_pos": record.ref_start_pos,
            "ref_end_pos": record.ref_end_pos,
            "orientation": record.orientation,
            "confidence": record.confidence,
            "ref_len": record.ref_len,
        }
        for match in response.matches
        for record in match.records
    ]
    return pd.DataFrame(rows, columns=RECORD_COLUMNS)


def write_records_table(output_path: Path, response: BackendResponse) -> int:
    """Write the record table as TSV (or CSV for a .csv suffix).

    Returns:
        Number of rows written
    """
    df = records_frame(response)
    sep = "," if output_path.suffix.lower() == ".csv" else "\t"
    output_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_path, sep=sep, index=False)
    return len(df)

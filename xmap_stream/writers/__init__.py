"""Output writers for JSON reports and record tables."""

from xmap_stream.writers.report import ReportWriter
from xmap_stream.writers.table import records_frame, write_records_table

__all__ = ["ReportWriter", "records_frame", "write_records_table"]

"""
Report output for playlist-exporter.

    - ReportWriter: Writes user/other partitions to BOM-prefixed CSV files
"""

from playlist_exporter.output.csv_report import (
    OTHER_REPORT_FILENAME,
    REPORT_HEADERS,
    USER_REPORT_FILENAME,
    ReportWriter,
)

__all__ = [
    "ReportWriter",
    "REPORT_HEADERS",
    "USER_REPORT_FILENAME",
    "OTHER_REPORT_FILENAME",
]

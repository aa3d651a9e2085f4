"""Pipeline module - record export."""

from .exporters import (
    CSVExporter,
    JSONExporter,
    SQLiteExporter,
    create_exporter,
    records_to_csv,
)

__all__ = [
    "CSVExporter",
    "JSONExporter",
    "SQLiteExporter",
    "create_exporter",
    "records_to_csv",
]

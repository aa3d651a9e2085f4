"""
Data Exporters Module

Export a run's records to JSON, JSON Lines, CSV or SQLite.
Multi-valued cells are stored as JSON arrays in the flat formats.
"""

import csv
import io
import json
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, List, Sequence

import aiofiles
import aiosqlite

from harvester.config import config
from harvester.models import Record, RecordValue, record_columns


def _flat_value(value: RecordValue) -> str:
    """Render a record cell for a flat (text) format."""
    if value is None:
        return ""
    if isinstance(value, list):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def records_to_csv(records: Sequence[Record], delimiter: str = ",") -> str:
    """
    Render records as CSV text.

    Every field is quoted and embedded quotes are doubled. The header is the
    union of all record keys in first-seen order; missing keys and None
    become empty fields.
    """
    columns = record_columns(list(records))
    buffer = io.StringIO()
    writer = csv.writer(
        buffer,
        delimiter=delimiter,
        quoting=csv.QUOTE_ALL,
        lineterminator="\n",
    )
    writer.writerow(columns)
    for record in records:
        writer.writerow([_flat_value(record.get(column)) for column in columns])
    return buffer.getvalue()


class BaseExporter(ABC):
    """Abstract base class for record exporters."""

    def __init__(self, export_dir: Path | str | None = None):
        """
        Args:
            export_dir: Target directory (default from config)
        """
        self._export_dir = Path(export_dir) if export_dir else None

    @abstractmethod
    async def export(
        self,
        records: Sequence[Record],
        filename: str | None = None,
    ) -> str:
        """
        Export records to the target format.

        Args:
            records: Records of a run
            filename: Optional filename (auto-generated if None)

        Returns:
            Path to the exported file
        """
        pass

    def _ensure_export_dir(self) -> Path:
        """Ensure export directory exists."""
        export_path = self._export_dir or config.storage.export_path
        export_path.mkdir(parents=True, exist_ok=True)
        return export_path

    def _generate_filename(self, extension: str) -> str:
        """Generate a timestamped filename."""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return f"harvest_{timestamp}.{extension}"


class JSONExporter(BaseExporter):
    """
    Export records to JSON format.

    Example:
        exporter = JSONExporter()
        filepath = await exporter.export(snapshot.records)
    """

    def __init__(
        self,
        pretty: bool = True,
        jsonl: bool = False,
        export_dir: Path | str | None = None,
    ):
        """
        Initialize JSON exporter.

        Args:
            pretty: Pretty-print JSON (ignored if jsonl=True)
            jsonl: Export as JSON Lines (one record per line)
            export_dir: Target directory (default from config)
        """
        super().__init__(export_dir)
        self._pretty = pretty
        self._jsonl = jsonl

    async def export(
        self,
        records: Sequence[Record],
        filename: str | None = None,
    ) -> str:
        """Export records to a JSON file."""
        export_dir = self._ensure_export_dir()

        ext = "jsonl" if self._jsonl else "json"
        filename = filename or self._generate_filename(ext)
        filepath = export_dir / filename

        async with aiofiles.open(filepath, "w", encoding="utf-8") as f:
            if self._jsonl:
                for record in records:
                    await f.write(json.dumps(record, ensure_ascii=False) + "\n")
            else:
                indent = 2 if self._pretty else None
                await f.write(json.dumps(
                    list(records),
                    indent=indent,
                    ensure_ascii=False,
                ))

        return str(filepath)


class CSVExporter(BaseExporter):
    """
    Export records to CSV format.

    Example:
        exporter = CSVExporter(delimiter=";")
        filepath = await exporter.export(snapshot.records)
    """

    def __init__(
        self,
        delimiter: str = ",",
        export_dir: Path | str | None = None,
    ):
        super().__init__(export_dir)
        self._delimiter = delimiter

    async def export(
        self,
        records: Sequence[Record],
        filename: str | None = None,
    ) -> str:
        """Export records to a CSV file."""
        if not records:
            raise ValueError("No data to export")

        export_dir = self._ensure_export_dir()
        filename = filename or self._generate_filename("csv")
        filepath = export_dir / filename

        async with aiofiles.open(filepath, "w", encoding="utf-8", newline="") as f:
            await f.write(records_to_csv(records, delimiter=self._delimiter))

        return str(filepath)


class SQLiteExporter(BaseExporter):
    """
    Export records to a SQLite table.

    One TEXT column per record key; list cells are stored as JSON.

    Example:
        exporter = SQLiteExporter(table_name="products")
        filepath = await exporter.export(snapshot.records)
    """

    def __init__(
        self,
        table_name: str = "records",
        db_name: str | None = None,
        replace: bool = False,
        export_dir: Path | str | None = None,
    ):
        """
        Initialize SQLite exporter.

        Args:
            table_name: Name of the table to create/use
            db_name: Database filename (default from config)
            replace: Replace existing table (vs append)
            export_dir: Target directory (default from config)
        """
        super().__init__(export_dir)
        self._table_name = table_name
        self._db_name = db_name or config.storage.sqlite_db_name
        self._replace = replace

    @staticmethod
    def _quote(identifier: str) -> str:
        return '"' + identifier.replace('"', '""') + '"'

    @staticmethod
    def _prepare_value(value: RecordValue) -> Any:
        if isinstance(value, list):
            return json.dumps(value, ensure_ascii=False)
        return value

    async def export(
        self,
        records: Sequence[Record],
        filename: str | None = None,
    ) -> str:
        """Export records to a SQLite database."""
        if not records:
            raise ValueError("No data to export")

        export_dir = self._ensure_export_dir()
        db_path = export_dir / (filename or self._db_name)

        columns: List[str] = record_columns(list(records))
        if not columns:
            raise ValueError("Records have no fields to export")
        table = self._quote(self._table_name)

        async with aiosqlite.connect(db_path) as db:
            if self._replace:
                await db.execute(f"DROP TABLE IF EXISTS {table}")

            columns_sql = ", ".join(f"{self._quote(col)} TEXT" for col in columns)
            await db.execute(f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    {columns_sql},
                    _harvested_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            placeholders = ", ".join("?" for _ in columns)
            columns_str = ", ".join(self._quote(col) for col in columns)
            insert_sql = f"INSERT INTO {table} ({columns_str}) VALUES ({placeholders})"

            await db.executemany(
                insert_sql,
                [
                    [self._prepare_value(record.get(col)) for col in columns]
                    for record in records
                ],
            )
            await db.commit()

        return str(db_path)


def create_exporter(
    format: str = "json",
    **kwargs,
) -> BaseExporter:
    """
    Create an exporter for the specified format.

    Args:
        format: "json", "jsonl", "csv", or "sqlite"
        **kwargs: Additional arguments for the specific exporter

    Returns:
        Configured exporter instance
    """
    exporters = {
        "json": lambda: JSONExporter(jsonl=False, **kwargs),
        "jsonl": lambda: JSONExporter(jsonl=True, **kwargs),
        "csv": lambda: CSVExporter(**kwargs),
        "sqlite": lambda: SQLiteExporter(**kwargs),
    }

    if format not in exporters:
        raise ValueError(f"Unknown format: {format}. Use: {list(exporters.keys())}")

    return exporters[format]()

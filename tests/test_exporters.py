"""
Tests for the record exporters.
"""

import csv
import io
import json
import sqlite3

import pytest

from harvester.pipeline.exporters import (
    CSVExporter,
    JSONExporter,
    SQLiteExporter,
    create_exporter,
    records_to_csv,
)


RECORDS = [
    {"title": "A Light in the Attic", "price": "£51.77", "tags": ["poetry", "classic"]},
    {"title": 'Tipping "the" Velvet', "price": "£53.74, net", "tags": None},
    {"title": "Soumission\nsecond line", "rating": "One"},
]


class TestRecordsToCsv:
    """Tests for CSV rendering."""

    def test_header_is_union_of_keys(self):
        """Test column order follows first appearance."""
        text = records_to_csv(RECORDS)

        assert text.splitlines()[0] == '"title","price","tags","rating"'

    def test_every_field_quoted(self):
        text = records_to_csv([{"a": "1", "b": "2"}])

        assert text == '"a","b"\n"1","2"\n'

    def test_special_characters_survive(self):
        """Test commas, quotes and newlines read back unchanged."""
        rows = list(csv.DictReader(io.StringIO(records_to_csv(RECORDS))))

        assert len(rows) == 3
        assert rows[1]["title"] == 'Tipping "the" Velvet'
        assert rows[1]["price"] == "£53.74, net"
        assert rows[2]["title"] == "Soumission\nsecond line"

    def test_lists_none_and_missing(self):
        """Test list cells as JSON; None and missing keys as empty."""
        rows = list(csv.DictReader(io.StringIO(records_to_csv(RECORDS))))

        assert json.loads(rows[0]["tags"]) == ["poetry", "classic"]
        assert rows[1]["tags"] == ""
        assert rows[2]["price"] == ""
        assert rows[0]["rating"] == ""

    def test_custom_delimiter(self):
        text = records_to_csv([{"a": "x", "b": "y"}], delimiter=";")

        assert text == '"a";"b"\n"x";"y"\n'


class TestFileExporters:
    """Tests for exporting to files."""

    @pytest.mark.asyncio
    async def test_json(self, tmp_path):
        exporter = JSONExporter(export_dir=tmp_path)

        path = await exporter.export(RECORDS, filename="out.json")

        with open(path, encoding="utf-8") as f:
            assert json.load(f) == RECORDS

    @pytest.mark.asyncio
    async def test_jsonl(self, tmp_path):
        exporter = JSONExporter(jsonl=True, export_dir=tmp_path)

        path = await exporter.export(RECORDS)

        assert path.endswith(".jsonl")
        with open(path, encoding="utf-8") as f:
            lines = f.read().splitlines()
        assert [json.loads(line) for line in lines] == RECORDS

    @pytest.mark.asyncio
    async def test_csv(self, tmp_path):
        exporter = CSVExporter(export_dir=tmp_path)

        path = await exporter.export(RECORDS, filename="out.csv")

        with open(path, encoding="utf-8", newline="") as f:
            assert f.read() == records_to_csv(RECORDS)

    @pytest.mark.asyncio
    async def test_csv_without_records(self, tmp_path):
        """Test that an empty record set is refused."""
        with pytest.raises(ValueError):
            await CSVExporter(export_dir=tmp_path).export([])

    @pytest.mark.asyncio
    async def test_sqlite(self, tmp_path):
        """Test one row per record with list cells stored as JSON."""
        exporter = SQLiteExporter(table_name="books", export_dir=tmp_path)

        path = await exporter.export(RECORDS, filename="books.db")

        with sqlite3.connect(path) as conn:
            rows = conn.execute(
                'SELECT "title", "price", "tags", "rating" FROM "books" ORDER BY id'
            ).fetchall()
        assert len(rows) == 3
        assert json.loads(rows[0][2]) == ["poetry", "classic"]
        assert rows[1][2] is None
        assert rows[2][3] == "One"

    @pytest.mark.asyncio
    async def test_sqlite_replace(self, tmp_path):
        """Test that replace=True drops earlier rows."""
        await SQLiteExporter(export_dir=tmp_path).export(RECORDS, filename="r.db")
        path = await SQLiteExporter(replace=True, export_dir=tmp_path).export(
            RECORDS[:1], filename="r.db"
        )

        with sqlite3.connect(path) as conn:
            count = conn.execute('SELECT COUNT(*) FROM "records"').fetchone()[0]
        assert count == 1

    @pytest.mark.asyncio
    async def test_sqlite_without_records(self, tmp_path):
        with pytest.raises(ValueError):
            await SQLiteExporter(export_dir=tmp_path).export([])


class TestCreateExporter:
    """Tests for the exporter factory."""

    def test_known_formats(self):
        assert isinstance(create_exporter("json"), JSONExporter)
        assert isinstance(create_exporter("jsonl"), JSONExporter)
        assert isinstance(create_exporter("csv", delimiter=";"), CSVExporter)
        assert isinstance(create_exporter("sqlite"), SQLiteExporter)

    def test_unknown_format(self):
        with pytest.raises(ValueError, match="Unknown format"):
            create_exporter("xml")

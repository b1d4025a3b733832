"""Tests for spreadsheet file import."""

import pytest

from newsletter_studio.infrastructure.error_handling import (
    SpreadsheetImportError,
    SpreadsheetNotFoundError,
)
from newsletter_studio.models.spreadsheet import ColumnType
from newsletter_studio.services.spreadsheet_import import (
    SpreadsheetImporter,
    decode_csv,
    decode_file,
)

EVENTS_CSV = (
    "event,date,attendees,confirmed\n"
    "Launch,2024-01-01,120,sim\n"
    "Meetup,2024-02-01,45,não\n"
    "Workshop,2024-03-15,,sim\n"
).encode("utf-8")


@pytest.fixture
async def spreadsheet(database, project):
    return await database.create_spreadsheet(project.id, "Events")


@pytest.fixture
def importer(database):
    return SpreadsheetImporter(database)


def test_decode_csv_sniffs_semicolons():
    assert decode_csv("a;b\n1;2\n".encode("utf-8")) == [["a", "b"], ["1", "2"]]


def test_decode_csv_strips_byte_order_mark():
    assert decode_csv("\ufeffname,value\nx,1\n".encode("utf-8"))[0] == ["name", "value"]


def test_unsupported_extension_rejected():
    with pytest.raises(SpreadsheetImportError):
        decode_file("report.pdf", b"%PDF")


def test_undecodable_csv_rejected():
    with pytest.raises(SpreadsheetImportError):
        decode_file("data.csv", b"\xff\xfe\x00bad")


class TestSpreadsheetImporter:
    """Imports replace the spreadsheet's columns and rows."""

    @pytest.mark.asyncio
    async def test_import_infers_column_types(self, database, importer, spreadsheet):
        summary = await importer.import_file(spreadsheet.id, "events.csv", EVENTS_CSV)

        assert summary.row_count == 3
        assert [(c.name, c.column_type) for c in summary.columns] == [
            ("event", ColumnType.TEXT),
            ("date", ColumnType.DATE),
            ("attendees", ColumnType.NUMBER),
            ("confirmed", ColumnType.BOOLEAN),
        ]

        columns = await database.get_columns(spreadsheet.id)
        assert [c.column_type for c in columns] == ["text", "date", "number", "boolean"]

        rows = await database.get_rows(spreadsheet.id)
        assert [r.row_order for r in rows] == [0, 1, 2]
        assert rows[1].data == {"event": "Meetup", "date": "2024-02-01", "attendees": "45", "confirmed": "não"}
        assert rows[2].data["attendees"] == ""

    @pytest.mark.asyncio
    async def test_reimport_replaces_existing_data(self, database, importer, spreadsheet):
        await importer.import_file(spreadsheet.id, "events.csv", EVENTS_CSV)
        await importer.import_file(spreadsheet.id, "people.csv", b"name,age\nAna,31\n")

        columns = await database.get_columns(spreadsheet.id)
        rows = await database.get_rows(spreadsheet.id)
        assert [c.name for c in columns] == ["name", "age"]
        assert len(rows) == 1
        assert rows[0].data == {"name": "Ana", "age": "31"}

    @pytest.mark.asyncio
    async def test_blank_and_duplicate_headers_are_named(self, importer, spreadsheet):
        summary = await importer.import_file(spreadsheet.id, "odd.csv", b"name,,name\nA,B,C\n")

        assert [c.name for c in summary.columns] == ["name", "Column 2", "name (2)"]

    @pytest.mark.asyncio
    async def test_generated_names_never_collide_with_existing_headers(self, database, importer, spreadsheet):
        summary = await importer.import_file(spreadsheet.id, "clash.csv", b"a (2),a,a,Column 5,\n1,2,3,4,5\n")

        names = [c.name for c in summary.columns]
        assert names == ["a (2)", "a", "a (3)", "Column 5", "Column 5 (2)"]
        assert [c.name for c in await database.get_columns(spreadsheet.id)] == names

    @pytest.mark.asyncio
    async def test_blank_rows_are_skipped(self, importer, spreadsheet):
        summary = await importer.import_file(spreadsheet.id, "gaps.csv", b"a,b\n1,2\n,\n3,4\n")

        assert summary.row_count == 2

    @pytest.mark.asyncio
    async def test_header_only_file_rejected(self, importer, spreadsheet):
        with pytest.raises(SpreadsheetImportError):
            await importer.import_file(spreadsheet.id, "empty.csv", b"a,b\n")

    @pytest.mark.asyncio
    async def test_empty_file_rejected(self, importer, spreadsheet):
        with pytest.raises(SpreadsheetImportError):
            await importer.import_file(spreadsheet.id, "empty.csv", b"")

    @pytest.mark.asyncio
    async def test_unknown_spreadsheet(self, importer):
        with pytest.raises(SpreadsheetNotFoundError):
            await importer.import_file("missing", "events.csv", EVENTS_CSV)

    @pytest.mark.asyncio
    async def test_column_type_override(self, database, importer, spreadsheet):
        await importer.import_file(spreadsheet.id, "events.csv", EVENTS_CSV)
        attendees = (await database.get_columns(spreadsheet.id))[2]

        assert await database.set_column_type(spreadsheet.id, attendees.id, "text")
        assert not await database.set_column_type(spreadsheet.id, "missing", "text")

        assert (await database.get_columns(spreadsheet.id))[2].column_type == "text"

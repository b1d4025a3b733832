"""Spreadsheet import: decode CSV/Excel files into typed columns and rows."""

import csv
import io
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from newsletter_studio.infrastructure.database import Database
from newsletter_studio.infrastructure.error_handling import (
    SpreadsheetImportError,
    SpreadsheetNotFoundError,
)
from newsletter_studio.infrastructure.logging import LoggerMixin
from newsletter_studio.models.spreadsheet import ImportedColumn, ImportSummary
from newsletter_studio.services.column_types import (
    DEFAULT_SAMPLE_SIZE,
    infer_column_type,
    is_empty_cell,
)

CSV_EXTENSIONS = {".csv"}
EXCEL_EXTENSIONS = {".xlsx", ".xls"}


def decode_csv(content: bytes) -> List[List[Any]]:
    """Decode CSV bytes into rows of cells, sniffing the delimiter."""
    text = content.decode("utf-8-sig")
    try:
        dialect = csv.Sniffer().sniff(text[:4096], delimiters=",;\t|")
    except csv.Error:
        dialect = csv.excel
    return [row for row in csv.reader(io.StringIO(text), dialect)]


def decode_excel(content: bytes) -> List[List[Any]]:
    """Decode the first sheet of an Excel workbook into rows of cells."""
    frame = pd.read_excel(io.BytesIO(content), sheet_name=0, header=None, dtype=object)
    frame = frame.astype(object).where(pd.notna(frame), None)
    return frame.values.tolist()


def decode_file(filename: str, content: bytes) -> List[List[Any]]:
    """Decode an uploaded file by extension.

    Raises:
        SpreadsheetImportError: unsupported extension or unreadable file
    """
    extension = Path(filename).suffix.lower()
    try:
        if extension in CSV_EXTENSIONS:
            return decode_csv(content)
        if extension in EXCEL_EXTENSIONS:
            return decode_excel(content)
    except (UnicodeDecodeError, ValueError, ImportError) as e:
        raise SpreadsheetImportError(f"Could not read {filename}: {e}") from e
    raise SpreadsheetImportError(
        f"Unsupported file format '{extension or filename}'. Use CSV or Excel (.xlsx, .xls)"
    )


def _json_value(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if hasattr(value, "item") and not isinstance(value, (str, bytes)):
        return value.item()  # numpy scalar
    return value


def _header_names(raw_headers: List[Any]) -> List[str]:
    names: List[str] = []
    taken = set()
    suffixes: Dict[str, int] = {}
    for index, header in enumerate(raw_headers):
        base = str(header).strip() if not is_empty_cell(header) else ""
        base = base or f"Column {index + 1}"
        name = base
        while name in taken:
            suffixes[base] = suffixes.get(base, 1) + 1
            name = f"{base} ({suffixes[base]})"
        taken.add(name)
        names.append(name)
    return names


class SpreadsheetImporter(LoggerMixin):
    """Imports tabular files into a project spreadsheet."""

    def __init__(self, database: Database, sample_size: int = DEFAULT_SAMPLE_SIZE):
        self.database = database
        self.sample_size = sample_size

    async def import_file(self, spreadsheet_id: str, filename: str, content: bytes) -> ImportSummary:
        """Decode ``content`` and replace the spreadsheet's columns and rows with it."""
        spreadsheet = await self.database.get_spreadsheet(spreadsheet_id)
        if spreadsheet is None:
            raise SpreadsheetNotFoundError(f"Spreadsheet not found: {spreadsheet_id}")

        data = decode_file(filename, content)
        return await self.import_rows(spreadsheet_id, data, source=filename)

    async def import_rows(
        self,
        spreadsheet_id: str,
        data: List[List[Any]],
        source: Optional[str] = None,
    ) -> ImportSummary:
        """Import decoded rows of cells; the first row holds the headers."""
        if not data:
            raise SpreadsheetImportError("Empty or invalid file")

        headers = _header_names(list(data[0]))
        rows = [
            list(row) for row in data[1:]
            if any(not is_empty_cell(cell) for cell in row)
        ]
        if not headers or not rows:
            raise SpreadsheetImportError("No valid data found in file")

        columns: List[ImportedColumn] = []
        for index, name in enumerate(headers):
            values = [row[index] if index < len(row) else None for row in rows]
            columns.append(ImportedColumn(
                name=name,
                column_type=infer_column_type(values, self.sample_size),
                column_order=index,
            ))

        row_records = []
        for row_index, row in enumerate(rows):
            row_data = {
                name: _json_value(row[col_index] if col_index < len(row) else None)
                for col_index, name in enumerate(headers)
            }
            row_records.append({"data": row_data, "row_order": row_index})

        await self.database.replace_spreadsheet_data(
            spreadsheet_id,
            columns=[
                {
                    "name": column.name,
                    "column_type": column.column_type.value,
                    "column_order": column.column_order,
                }
                for column in columns
            ],
            rows=row_records,
        )

        self.logger.info(
            "Spreadsheet imported",
            spreadsheet_id=spreadsheet_id,
            source=source,
            columns=len(columns),
            rows=len(row_records),
            column_types={column.name: column.column_type.value for column in columns},
        )

        return ImportSummary(spreadsheet_id=spreadsheet_id, columns=columns, row_count=len(row_records))

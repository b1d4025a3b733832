"""Tabular data models for Newsletter Studio."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ColumnType(str, Enum):
    """Semantic type of a spreadsheet column."""

    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"


class SpreadsheetDataset(BaseModel):
    """One spreadsheet projected for generation context."""

    spreadsheet_name: str
    description: Optional[str] = None
    columns: List[str] = Field(default_factory=list)
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    total_rows: int = 0

    def prompt_rows(self, limit: int) -> List[Dict[str, Any]]:
        """First ``limit`` rows, the slice shown to the model."""
        return self.rows[:limit]


@dataclass
class ImportedColumn:
    """A column created by a spreadsheet import."""

    name: str
    column_type: ColumnType
    column_order: int


@dataclass
class ImportSummary:
    """Result of importing a tabular file into a spreadsheet."""

    spreadsheet_id: str
    columns: List[ImportedColumn] = field(default_factory=list)
    row_count: int = 0


class ColumnTypeUpdate(BaseModel):
    """User override of an inferred column type."""

    column_type: ColumnType

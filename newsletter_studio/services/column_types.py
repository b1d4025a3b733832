"""Column type inference for imported tabular data."""

import math
from datetime import date, datetime
from typing import Any, Iterable, List

from dateutil import parser as date_parser

from newsletter_studio.models.spreadsheet import ColumnType

# Exact-match tokens; no case folding.
BOOLEAN_TOKENS = frozenset({"true", "false", "sim", "não", "yes", "no"})

DEFAULT_SAMPLE_SIZE = 10


def is_empty_cell(value: Any) -> bool:
    """Null, empty string, or a NaN placeholder left by spreadsheet decoders."""
    if value is None or value == "":
        return True
    return isinstance(value, float) and math.isnan(value)


def _is_boolean(value: Any) -> bool:
    return isinstance(value, bool) or (isinstance(value, str) and value in BOOLEAN_TOKENS)


def _is_number(value: Any) -> bool:
    if isinstance(value, (datetime, date)):
        return False
    if isinstance(value, (bool, int)):
        return True
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError):
        return False


def _is_date(value: Any) -> bool:
    if isinstance(value, (datetime, date)):
        return True
    try:
        date_parser.parse(str(value))
    except (ValueError, OverflowError):
        return False
    return True


# Precedence order: first predicate holding over the whole sample wins.
_PREDICATES = (
    (ColumnType.BOOLEAN, _is_boolean),
    (ColumnType.NUMBER, _is_number),
    (ColumnType.DATE, _is_date),
)


def sample_values(values: Iterable[Any], sample_size: int = DEFAULT_SAMPLE_SIZE) -> List[Any]:
    """Take the first ``sample_size`` values and drop the empty ones."""
    sample = []
    for index, value in enumerate(values):
        if index >= sample_size:
            break
        if not is_empty_cell(value):
            sample.append(value)
    return sample


def infer_column_type(values: Iterable[Any], sample_size: int = DEFAULT_SAMPLE_SIZE) -> ColumnType:
    """Infer the semantic type of a column from its leading values.

    Checks boolean, number and date in that order over the non-empty
    values among the first ``sample_size``; falls back to text. Plain
    ``"0"``/``"1"`` are numbers, not booleans.
    """
    sample = sample_values(values, sample_size)
    if not sample:
        return ColumnType.TEXT

    for column_type, predicate in _PREDICATES:
        if all(predicate(value) for value in sample):
            return column_type

    return ColumnType.TEXT

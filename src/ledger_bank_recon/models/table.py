"""Tabular ledger model shared by the company ledger and the bank statement."""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterable, Iterator, Optional, Sequence
import math

# A cell holds a string, a number, a date, or nothing
CellValue = Any
Row = tuple[CellValue, ...]


def is_empty(value: CellValue) -> bool:
    """Return True for absent cells: None, NaN, or blank text. Zero is a value."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def cell_text(value: CellValue) -> str:
    """Render a cell as trimmed text, dropping a trailing '.0' on whole floats."""
    if is_empty(value):
        return ""
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        return value.strftime("%d/%m/%Y") if value.time() == datetime.min.time() else value.isoformat()
    if isinstance(value, date):
        return value.strftime("%d/%m/%Y")
    return str(value).strip()


@dataclass(frozen=True)
class Table:
    """
    Headers plus positionally aligned rows.

    Tables are produced once per uploaded file and treated as immutable.
    Duplicate header names resolve to their first occurrence, and rows
    shorter than the headers read as empty beyond their end.
    """

    headers: tuple[str, ...]
    rows: tuple[Row, ...] = field(default_factory=tuple)
    name: str = ""

    @classmethod
    def from_rows(
        cls,
        headers: Sequence[Any],
        rows: Iterable[Sequence[CellValue]],
        name: str = "",
    ) -> "Table":
        """Build a table from any sequences, normalizing header names to strings."""
        return cls(
            headers=tuple("" if h is None else str(h).strip() for h in headers),
            rows=tuple(tuple(r) for r in rows),
            name=name,
        )

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[Row]:
        return iter(self.rows)

    def column_index(self, column_name: Optional[str]) -> int:
        """Index of the first header equal to column_name, or -1."""
        if not column_name:
            return -1
        try:
            return self.headers.index(column_name)
        except ValueError:
            return -1

    def has_column(self, column_name: Optional[str]) -> bool:
        return self.column_index(column_name) != -1

    def value(self, row: Row, column_name: Optional[str]) -> CellValue:
        """Cell of row under column_name; None when the column or cell is absent."""
        return cell_at(row, self.column_index(column_name))

    def with_rows(self, rows: Iterable[Sequence[CellValue]]) -> "Table":
        """A table sharing these headers with a different row set."""
        return Table.from_rows(self.headers, rows, name=self.name)


def cell_at(row: Row, index: int) -> CellValue:
    """Positional access that treats out-of-range indexes as empty."""
    if index < 0 or index >= len(row):
        return None
    return row[index]

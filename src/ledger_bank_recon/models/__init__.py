"""Data models for reconciliation."""

from .table import Table, Row, CellValue, cell_text, is_empty
from .result import (
    MatchPartition,
    PatternGroup,
    ReconciliationResult,
    ReconciliationStats,
    ResultBucket,
)

__all__ = [
    "Table",
    "Row",
    "CellValue",
    "cell_text",
    "is_empty",
    "MatchPartition",
    "PatternGroup",
    "ReconciliationResult",
    "ReconciliationStats",
    "ResultBucket",
]

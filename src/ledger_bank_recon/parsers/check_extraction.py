"""Extraction of check numbers and dates from company narrative text."""

from typing import Optional
import logging
import re

from ..config import EXTRACTED_CHECK_COLUMN, EXTRACTED_DATE_COLUMN
from ..models.table import CellValue, Table, cell_at, cell_text

logger = logging.getLogger(__name__)

# Check numbers are at most 8 digits; tried in order
CHECK_NUMBER_PATTERNS = [
    re.compile(r"شيك\s*رقم\s*[:\s]*(\d{1,8})"),
    re.compile(r"ش\s*[.،]\s*ر\s*[:\s]*(\d{1,8})"),
    re.compile(r"رقم\s*الشيك\s*[:\s]*(\d{1,8})"),
    re.compile(r"شيك.*?(\d{1,8})"),
    re.compile(r"\b(\d{4,8})\b"),
]

_DAY_FIRST = re.compile(r"(\d{1,2})[\\/.+-](\d{1,2})[\\/.+-](\d{4})")
_YEAR_FIRST = re.compile(r"(\d{4})[\\/-](\d{1,2})[\\/-](\d{1,2})")

NARRATIVE_MARKERS = ("البيان", "بيان")


def extract_check_number(text: CellValue) -> str:
    """First check number found in a narrative, or an empty string."""
    value = cell_text(text)
    if not value:
        return ""
    for pattern in CHECK_NUMBER_PATTERNS:
        match = pattern.search(value)
        if match:
            return match.group(1)
    return ""


def extract_date(text: CellValue) -> str:
    """First date found in a narrative as D/M/YYYY, or an empty string."""
    value = cell_text(text)
    if not value:
        return ""

    match = _DAY_FIRST.search(value)
    if match:
        return f"{match.group(1)}/{match.group(2)}/{match.group(3)}"

    match = _YEAR_FIRST.search(value)
    if match:
        return f"{match.group(3)}/{match.group(2)}/{match.group(1)}"

    return ""


def _find_narrative_column(table: Table, preferred: Optional[str]) -> int:
    index = table.column_index(preferred)
    if index != -1:
        return index
    for position, header in enumerate(table.headers):
        if any(marker in header for marker in NARRATIVE_MARKERS):
            return position
    return -1


def enrich_company_table(table: Table, narrative_column: Optional[str] = None) -> Table:
    """
    Append extracted check-number and date columns to a company ledger.

    Columns that already exist are left untouched, and a table without a
    narrative column is returned unchanged.

    Args:
        table: Company ledger
        narrative_column: Header of the narrative column; falls back to
            the first header mentioning a narrative marker

    Returns:
        A new Table with the extracted columns appended
    """
    narrative_index = _find_narrative_column(table, narrative_column)
    if narrative_index == -1:
        logger.debug("No narrative column found, skipping check extraction")
        return table

    add_check = not table.has_column(EXTRACTED_CHECK_COLUMN)
    add_date = not table.has_column(EXTRACTED_DATE_COLUMN)
    if not add_check and not add_date:
        return table

    headers = list(table.headers)
    if add_check:
        headers.append(EXTRACTED_CHECK_COLUMN)
    if add_date:
        headers.append(EXTRACTED_DATE_COLUMN)

    rows = []
    extracted = 0
    for row in table.rows:
        # Fit each row to the headers so appended cells line up with the new ones
        width = len(table.headers)
        new_row = list(row[:width]) + [None] * (width - len(row))
        narrative = cell_at(row, narrative_index)
        if add_check:
            check_number = extract_check_number(narrative)
            extracted += 1 if check_number else 0
            new_row.append(check_number)
        if add_date:
            new_row.append(extract_date(narrative))
        rows.append(new_row)

    logger.info(f"Extracted check numbers from {extracted} of {len(rows)} company rows")
    return Table.from_rows(headers, rows, name=table.name)

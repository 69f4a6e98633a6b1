"""
Per-column equivalence checks between a company row and a bank row.
Each matching column resolves one value per side and compares them with
its own comparator, tolerance and normalization.
"""

from datetime import date, datetime, timedelta
from typing import Optional, Sequence
import logging
import math
import re
import warnings

import pandas as pd

from ..config import MatchingColumnConfig
from ..models.table import CellValue, Row, Table, cell_text, is_empty

logger = logging.getLogger(__name__)

# Spreadsheet serial day number of 1970-01-01
UNIX_EPOCH_SERIAL = 25569
UNIX_EPOCH = date(1970, 1, 1)
MIN_YEAR = 1900
MAX_YEAR = 2100
DEFAULT_NUMERIC_EPSILON = 0.01
CHECK_NUMBER_LENGTH = 8
CHECK_COLUMN_MARKERS = ("check", "cheque", "doc", "شيك")

_NUMERIC_CHARS = re.compile(r"[^0-9.\-]")
_NUMERIC_PREFIX = re.compile(r"^[-+]?(\d+\.?\d*|\.\d+)")
_NON_DIGIT = re.compile(r"[^0-9]")
_DATE_SEPARATORS = re.compile(r"[/.\-\s]+")
_ISO_DATE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})")
_DIGITS_ONLY = re.compile(r"^\d+(\.\d+)?$")
_TRAILING_TIME = re.compile(r"[\sT]+\d{1,2}:\d{2}(:\d{2}(\.\d+)?)?(\s*[AaPp][Mm])?$")


def parse_number(value: CellValue) -> Optional[float]:
    """
    Parse a cell as a number, ignoring thousands separators and symbols.

    Everything except digits, '.' and '-' is stripped, then the longest
    leading numeric literal is read.

    Returns:
        The float value, or None when nothing numeric remains
    """
    if is_empty(value) or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)

    cleaned = _NUMERIC_CHARS.sub("", str(value))
    match = _NUMERIC_PREFIX.match(cleaned)
    if not match:
        return None
    return float(match.group(0))


def normalize_check_number(value: CellValue) -> str:
    """
    Normalize a check or document number to 8 digits.

    Non-digits are dropped. A 9-digit result loses its leftmost digit;
    any other length is left-padded with zeros to 8.
    """
    digits = _NON_DIGIT.sub("", cell_text(value))
    if not digits:
        return ""
    if len(digits) == CHECK_NUMBER_LENGTH + 1:
        return digits[1:]
    return digits.zfill(CHECK_NUMBER_LENGTH)


def normalize_text(value: CellValue) -> str:
    """Keep alphanumerics, case-fold, and strip leading zeros."""
    kept = "".join(ch for ch in cell_text(value) if ch.isalnum())
    return kept.casefold().lstrip("0")


def _valid_date(year: int, month: int, day: int) -> Optional[date]:
    if not (MIN_YEAR <= year <= MAX_YEAR):
        return None
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _from_serial(serial: float) -> Optional[date]:
    if math.isnan(serial) or math.isinf(serial):
        return None
    try:
        parsed = UNIX_EPOCH + timedelta(days=math.floor(serial) - UNIX_EPOCH_SERIAL)
    except OverflowError:
        return None
    return parsed if MIN_YEAR <= parsed.year <= MAX_YEAR else None


def parse_date(value: CellValue) -> Optional[date]:
    """
    Parse a cell as a calendar date.

    Tried in order: native dates, spreadsheet serial numbers, day-first
    D/M/Y, month-first M/D/Y, digit-only serial strings, ISO Y-M-D, and
    finally a generic pandas parse. A trailing HH:MM[:SS] time is ignored by
    the D/M/Y and M/D/Y steps. Years outside 1900-2100 are rejected.

    Returns:
        The parsed date, or None when no format applies
    """
    if is_empty(value) or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        return _from_serial(float(value))

    text = str(value).strip()

    parts = _DATE_SEPARATORS.split(_TRAILING_TIME.sub("", text))
    if len(parts) == 3 and all(p.isdigit() for p in parts):
        first, second, year = (int(p) for p in parts)
        if 1 <= first <= 31 and 1 <= second <= 12:
            parsed = _valid_date(year, second, first)
            if parsed:
                return parsed
        if 1 <= first <= 12 and 1 <= second <= 31:
            parsed = _valid_date(year, first, second)
            if parsed:
                return parsed

    if _DIGITS_ONLY.match(text):
        return _from_serial(float(text))

    iso = _ISO_DATE.match(text)
    if iso:
        parsed = _valid_date(int(iso.group(1)), int(iso.group(2)), int(iso.group(3)))
        if parsed:
            return parsed

    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        parsed_ts = pd.to_datetime(text, errors="coerce")
    if parsed_ts is None or pd.isna(parsed_ts):
        return None
    if not (MIN_YEAR <= parsed_ts.year <= MAX_YEAR):
        return None
    return parsed_ts.date()


def dates_within_tolerance(
    company_date: date, bank_date: date, tolerance_days: int
) -> bool:
    """Bank date on or up to tolerance_days after the company date."""
    delta = (bank_date - company_date).days
    return 0 <= delta <= tolerance_days


def is_check_number_column(column: MatchingColumnConfig) -> bool:
    """Guess whether a column carries check or document numbers."""
    if column.is_check_number is not None:
        return column.is_check_number
    names = (column.label, column.company_column, column.bank_column)
    for name in names:
        lowered = (name or "").casefold()
        if any(marker in lowered for marker in CHECK_COLUMN_MARKERS):
            return True
    return False


class ValueComparator:
    """
    Compares company and bank rows column by column.

    Rule-level date tolerance settings apply to date columns that do not
    set their own.
    """

    def __init__(
        self,
        company_table: Table,
        bank_table: Table,
        date_tolerance: int = 0,
        use_date_tolerance: bool = False,
    ):
        """
        Initialize the comparator.

        Args:
            company_table: Company table, used for header lookup
            bank_table: Bank table, used for header lookup
            date_tolerance: Rule-level tolerance in days
            use_date_tolerance: Whether the rule-level tolerance is active
        """
        self.company_table = company_table
        self.bank_table = bank_table
        self.date_tolerance = date_tolerance
        self.use_date_tolerance = use_date_tolerance
        self._comparators = {
            "exact": self._compare_exact,
            "numeric": self._compare_numeric,
            "date": self._compare_date,
            "text": self._compare_text,
        }

    def column_matches(
        self, company_row: Row, bank_row: Row, column: MatchingColumnConfig
    ) -> bool:
        """
        Check one matching column between two rows.

        Unmapped columns pass; an empty value on either side fails.
        """
        if not column.is_mapped:
            return True

        company_value = self.company_table.value(company_row, column.company_column)
        bank_value = self.bank_table.value(bank_row, column.bank_column)
        if is_empty(company_value) or is_empty(bank_value):
            return False

        compare = self._comparators.get(column.match_type, self._compare_exact)
        return compare(company_value, bank_value, column)

    def rows_match(
        self,
        company_row: Row,
        bank_row: Row,
        columns: Sequence[MatchingColumnConfig],
    ) -> bool:
        """All configured columns must pass; an empty column list never matches."""
        if not columns:
            return False
        return all(self.column_matches(company_row, bank_row, c) for c in columns)

    def _compare_exact(
        self, company_value: CellValue, bank_value: CellValue, column: MatchingColumnConfig
    ) -> bool:
        company_number = parse_number(company_value)
        bank_number = parse_number(bank_value)
        if company_number is not None and bank_number is not None:
            return company_number == bank_number
        return cell_text(company_value) == cell_text(bank_value)

    def _compare_numeric(
        self, company_value: CellValue, bank_value: CellValue, column: MatchingColumnConfig
    ) -> bool:
        company_number = parse_number(company_value)
        bank_number = parse_number(bank_value)
        if company_number is None or bank_number is None:
            return False

        difference = abs(company_number - bank_number)
        if column.tolerance is None:
            return difference < DEFAULT_NUMERIC_EPSILON
        return difference <= column.tolerance

    def _compare_date(
        self, company_value: CellValue, bank_value: CellValue, column: MatchingColumnConfig
    ) -> bool:
        company_date = parse_date(company_value)
        bank_date = parse_date(bank_value)
        if company_date is None or bank_date is None:
            return False

        tolerance = self._date_tolerance_for(column)
        if tolerance is None:
            return company_date == bank_date
        return dates_within_tolerance(company_date, bank_date, tolerance)

    def _date_tolerance_for(self, column: MatchingColumnConfig) -> Optional[int]:
        """Tolerance in days for a date column, or None for same-day matching."""
        if column.use_date_tolerance is None:
            return self.date_tolerance if self.use_date_tolerance else None
        if not column.use_date_tolerance:
            return None
        if column.date_tolerance is not None:
            return column.date_tolerance
        return self.date_tolerance

    def _compare_text(
        self, company_value: CellValue, bank_value: CellValue, column: MatchingColumnConfig
    ) -> bool:
        if is_check_number_column(column):
            return normalize_check_number(company_value) == normalize_check_number(bank_value)
        if column.normalize:
            return normalize_text(company_value) == normalize_text(bank_value)
        return cell_text(company_value) == cell_text(bank_value)

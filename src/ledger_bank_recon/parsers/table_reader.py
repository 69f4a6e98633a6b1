"""
Spreadsheet reader for company ledgers and bank statements.
Loads Excel or CSV exports into the Table model used by the engine.
"""

from pathlib import Path
from typing import Any, Optional, Union
import logging

import pandas as pd

from ..config import ReconConfig
from ..models.table import Table, is_empty
from ..utils.exceptions import TableReadError

logger = logging.getLogger(__name__)

EXCEL_SUFFIXES = {".xlsx", ".xlsm", ".xls"}
CSV_SUFFIXES = {".csv", ".txt"}


class TableReader:
    """
    Reader for ledger and statement exports.

    The first row supplies the headers; fully blank rows are dropped and
    blank cells become None.
    """

    def __init__(self, config: Optional[ReconConfig] = None):
        """
        Initialize the reader with configuration.

        Args:
            config: Application configuration object
        """
        self.config = config or ReconConfig()

    def read(self, file_path: Path, sheet: Optional[Union[int, str]] = None) -> Table:
        """
        Read a spreadsheet into a Table.

        Args:
            file_path: Path to an .xlsx/.xls or .csv file
            sheet: Sheet index or name for workbooks; defaults to configuration

        Returns:
            Table named after the file

        Raises:
            TableReadError: If the file cannot be read
        """
        logger.info(f"Reading table: {file_path}")
        suffix = file_path.suffix.lower()
        sheet = self.config.ingestion.sheet if sheet is None else sheet

        try:
            if suffix in EXCEL_SUFFIXES:
                df = pd.read_excel(file_path, sheet_name=sheet, header=None, dtype=object)
            elif suffix in CSV_SUFFIXES:
                df = pd.read_csv(
                    file_path,
                    header=None,
                    dtype=str,
                    keep_default_na=False,
                    encoding="utf-8-sig",
                )
            else:
                raise TableReadError(f"Unsupported file type: {file_path.suffix}")
        except TableReadError:
            raise
        except Exception as e:
            logger.error(f"Failed to read {file_path}: {e}")
            raise TableReadError(f"Failed to read {file_path}: {e}") from e

        table = self.from_dataframe(df, name=file_path.stem)
        logger.info(f"Read {len(table)} rows with {len(table.headers)} columns from {file_path.name}")
        return table

    def from_dataframe(self, df: pd.DataFrame, name: str = "") -> Table:
        """
        Convert a header-less DataFrame, headers in its first row, to a Table.

        Args:
            df: DataFrame read with header=None
            name: Table name

        Returns:
            Table with blank rows removed
        """
        if df.empty:
            return Table(headers=(), name=name)

        records = [[_clean_cell(v) for v in row] for row in df.itertuples(index=False, name=None)]
        headers = [h if h is not None else "" for h in records[0]]
        rows = [row for row in records[1:] if not all(is_empty(v) for v in row)]
        return Table.from_rows(headers, rows, name=name)


def _clean_cell(value: Any) -> Any:
    """Map pandas missing markers to None and timestamps to datetimes."""
    if value is None:
        return None
    if isinstance(value, pd.Timestamp):
        return None if pd.isna(value) else value.to_pydatetime()
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    if isinstance(value, str) and value.strip() == "":
        return None
    return value

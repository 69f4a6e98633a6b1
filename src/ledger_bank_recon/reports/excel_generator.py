"""
Excel report generator for reconciliation results.
Writes single-bucket exports and multi-sheet summary workbooks.
"""

from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional
import logging
import re

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Font, PatternFill, Border, Side
from openpyxl.worksheet.worksheet import Worksheet

from ..config import ReconConfig
from ..models.result import ReconciliationResult, ResultBucket
from ..utils.exceptions import ReportGenerationError

logger = logging.getLogger(__name__)

# Style definitions
HEADER_FILL = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True)
MATCH_FILL = PatternFill(start_color="C6EFCE", end_color="C6EFCE", fill_type="solid")
REVIEW_FILL = PatternFill(start_color="FFEB9C", end_color="FFEB9C", fill_type="solid")
UNMATCHED_FILL = PatternFill(start_color="FFC7CE", end_color="FFC7CE", fill_type="solid")
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)

MAX_SHEET_TITLE = 31
TIMESTAMP_FORMAT = "%Y-%m-%dT%H-%M-%S"
_INVALID_TITLE_CHARS = re.compile(r"[\[\]:*?/\\]")
_INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*]')


class ExcelReportGenerator:
    """Generates Excel exports of reconciliation buckets."""

    def __init__(self, config: Optional[ReconConfig] = None):
        """
        Initialize the report generator.

        Args:
            config: Application configuration
        """
        self.config = config or ReconConfig()
        self.excel_config = self.config.output.excel

    def build_filename(self, name: str, now: Optional[datetime] = None) -> str:
        """
        File name for an export, e.g. Matched_Bank_Transactions_2025-01-12T09-30-00.xlsx.

        Args:
            name: Suggested export name
            now: Timestamp to embed; defaults to the current time

        Returns:
            File name with the .xlsx extension
        """
        safe_name = _INVALID_FILENAME_CHARS.sub("_", name).strip() or "export"
        if not self.excel_config.include_timestamp:
            return f"{safe_name}.xlsx"
        timestamp = (now or datetime.now()).strftime(TIMESTAMP_FORMAT)
        return self.excel_config.filename_template.format(name=safe_name, timestamp=timestamp)

    def write_bucket(
        self,
        bucket: ResultBucket,
        output_dir: Path,
        now: Optional[datetime] = None,
    ) -> Optional[Path]:
        """
        Export one bucket to its own workbook.

        Args:
            bucket: Rows, headers and suggested name
            output_dir: Directory for the workbook
            now: Timestamp for the file name

        Returns:
            Path to the workbook, or None when the bucket has no rows or headers

        Raises:
            ReportGenerationError: If the workbook cannot be written
        """
        if not bucket.rows:
            logger.warning(f"No data to export for {bucket.name}")
            return None
        if not bucket.headers:
            logger.warning(f"No headers provided for {bucket.name}")
            return None

        output_path = output_dir / self.build_filename(bucket.name, now)
        logger.info(f"Exporting {len(bucket.rows)} rows to {output_path}")

        wb = Workbook()
        ws = wb.active
        ws.title = "Sheet1"
        self._write_rows(ws, bucket.headers, bucket.rows)
        return self._save(wb, output_path)

    def generate_summary_workbook(
        self,
        result: ReconciliationResult,
        output_path: Path,
        title: str = "Reconciliation Summary",
    ) -> Path:
        """
        Generate a summary workbook with one sheet per non-empty bucket.

        Args:
            result: Reconciliation result to export
            output_path: Path for the workbook
            title: Heading of the summary sheet

        Returns:
            Path to the generated workbook

        Raises:
            ReportGenerationError: If the workbook cannot be written
        """
        logger.info(f"Generating Excel summary: {output_path}")

        wb = Workbook()

        # Remove default sheet
        if wb.active:
            wb.remove(wb.active)

        self._create_summary_sheet(wb, result, title)

        used_titles = {self.excel_config.summary_sheet_name}
        for bucket in result.buckets():
            if not bucket.rows:
                continue
            sheet_title = _unique_title(_sheet_title(bucket.name), used_titles)
            used_titles.add(sheet_title)
            ws = wb.create_sheet(sheet_title)
            self._write_rows(ws, bucket.headers, bucket.rows, fill=_bucket_fill(bucket.name))

        return self._save(wb, output_path)

    def _create_summary_sheet(self, wb: Workbook, result: ReconciliationResult, title: str) -> None:
        """Create the summary sheet with key metrics."""
        ws = wb.create_sheet(self.excel_config.summary_sheet_name)
        stats = result.stats

        ws["A1"] = title
        ws["A1"].font = Font(size=16, bold=True)

        summary_data: list[tuple[str, Any]] = [
            ("Strategy", result.strategy),
            ("", ""),
            ("Total Company Rows", stats.total_company_rows),
            ("Total Bank Rows", stats.total_bank_rows),
            ("Total Rows", stats.total_company_rows + stats.total_bank_rows),
            ("", ""),
            ("Classified Company Rows", stats.classified_company_rows),
            ("Classified Bank Rows", stats.classified_bank_rows),
            ("Total Classified", stats.classified_company_rows + stats.classified_bank_rows),
            ("", ""),
            ("Matched Pairs", stats.matched_pairs),
            ("Review Pairs", stats.review_pairs),
            ("Unmatched Company", stats.unmatched_company_rows),
            ("Unmatched Bank", stats.unmatched_bank_rows),
            ("Total Unmatched", stats.unmatched_company_rows + stats.unmatched_bank_rows),
            ("", ""),
            ("Match Rate", f"{stats.match_rate}%"),
        ]

        if stats.company_total is not None:
            summary_data += [
                ("", ""),
                ("Company Total", stats.company_total),
                ("Bank Total", stats.bank_total),
                ("Difference", stats.totals_difference),
                ("Totals Match", "Yes" if stats.totals_match else "No"),
            ]

        for group in result.grouped_by_pattern or []:
            if not summary_data[-1][0].startswith("Pattern:"):
                summary_data.append(("", ""))
            total = f" / {group.total_amount:,.2f}" if group.total_amount is not None else ""
            summary_data.append((f"Pattern: {group.pattern}", f"{group.count} rows{total}"))

        summary_data += [
            ("", ""),
            ("Generated on", datetime.now().strftime("%Y-%m-%d %H:%M:%S")),
        ]

        for i, (label, value) in enumerate(summary_data, start=3):
            ws[f"A{i}"] = _excel_value(label)
            ws[f"B{i}"] = _excel_value(value)

        ws.column_dimensions["A"].width = 30
        ws.column_dimensions["B"].width = 40

    def _write_rows(
        self,
        ws: Worksheet,
        headers: tuple[str, ...],
        rows: list[tuple],
        fill: Optional[PatternFill] = None,
    ) -> None:
        """Write a header row followed by data rows."""
        for col, header in enumerate(headers, start=1):
            cell = ws.cell(row=1, column=col, value=_excel_value(header))
            cell.fill = HEADER_FILL
            cell.font = HEADER_FONT
            cell.border = THIN_BORDER

        for row_num, row in enumerate(rows, start=2):
            for col, value in enumerate(row, start=1):
                cell = ws.cell(row=row_num, column=col, value=_excel_value(value))
                cell.border = THIN_BORDER
                if fill is not None:
                    cell.fill = fill

        self._auto_fit_columns(ws)

    def _save(self, wb: Workbook, output_path: Path) -> Path:
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            wb.save(output_path)
        except OSError as e:
            logger.error(f"Failed to write report {output_path}: {e}")
            raise ReportGenerationError(f"Failed to write report {output_path}: {e}") from e
        logger.info(f"Report saved: {output_path}")
        return output_path

    def _auto_fit_columns(self, ws: Worksheet) -> None:
        """Auto-fit column widths based on content."""
        for column_cells in ws.columns:
            max_length = 0
            column = column_cells[0].column_letter

            for cell in column_cells:
                if cell.value is not None:
                    max_length = max(max_length, len(str(cell.value)))

            ws.column_dimensions[column].width = min(max_length + 2, 50)


def _excel_value(value: Any) -> Any:
    """Cell values openpyxl can store; anything else is written as text."""
    if value is None or isinstance(value, (int, float, Decimal, date, datetime, bool)):
        return value
    # Control characters are rejected by the xlsx format
    return ILLEGAL_CHARACTERS_RE.sub("", str(value))


def _sheet_title(bucket_name: str) -> str:
    """Matched_Company_Transactions becomes 'Matched Company'."""
    title = bucket_name.replace("_Transactions", "").replace("_", " ")
    title = _INVALID_TITLE_CHARS.sub(" ", title).strip() or "Sheet"
    return title[:MAX_SHEET_TITLE]


def _unique_title(title: str, used: set[str]) -> str:
    if title not in used:
        return title
    counter = 2
    while True:
        suffix = f" ({counter})"
        candidate = title[: MAX_SHEET_TITLE - len(suffix)] + suffix
        if candidate not in used:
            return candidate
        counter += 1


def _bucket_fill(bucket_name: str) -> Optional[PatternFill]:
    if bucket_name.startswith("Matched_"):
        return MATCH_FILL
    if bucket_name.startswith("Review_"):
        return REVIEW_FILL
    if bucket_name.startswith("Unmatched_"):
        return UNMATCHED_FILL
    return None

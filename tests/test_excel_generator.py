"""Tests for Excel report generation."""

from datetime import datetime

import pytest
from openpyxl import load_workbook

from ledger_bank_recon.config import ReconConfig
from ledger_bank_recon.matching.engine import ReconciliationEngine
from ledger_bank_recon.models.result import ResultBucket
from ledger_bank_recon.reports import ExcelReportGenerator
from ledger_bank_recon.utils.exceptions import ReportGenerationError


@pytest.fixture
def generator():
    return ExcelReportGenerator(ReconConfig())


@pytest.fixture
def pairwise_result(company_table, bank_table, returned_check_rules):
    return ReconciliationEngine().reconcile(company_table, bank_table, returned_check_rules)


def test_build_filename(generator):
    name = generator.build_filename("Matched_Bank_Transactions", now=datetime(2025, 1, 12, 9, 30))
    assert name == "Matched_Bank_Transactions_2025-01-12T09-30-00.xlsx"


def test_build_filename_without_timestamp():
    generator = ExcelReportGenerator(ReconConfig(output={"excel": {"include_timestamp": False}}))
    assert generator.build_filename("Pattern_A/C FEES") == "Pattern_A_C FEES.xlsx"


def test_write_bucket(tmp_path, generator):
    bucket = ResultBucket(
        "Unmatched_Bank_Transactions",
        ("NARRITIVE", "CREDIT", "POST DATE"),
        [("MISC ENTRY", "99.00", datetime(2025, 1, 18)), ("CASH DEPOSIT", 12.5, None)],
    )
    path = generator.write_bucket(bucket, tmp_path, now=datetime(2025, 1, 12, 9, 30))

    assert path == tmp_path / "Unmatched_Bank_Transactions_2025-01-12T09-30-00.xlsx"
    ws = load_workbook(path).active
    assert [c.value for c in ws[1]] == ["NARRITIVE", "CREDIT", "POST DATE"]
    assert ws["A2"].value == "MISC ENTRY"
    assert ws["C2"].value == datetime(2025, 1, 18)
    assert ws["B3"].value == 12.5
    assert ws.max_row == 3


def test_write_empty_bucket_is_skipped(tmp_path, generator):
    bucket = ResultBucket("Matched_Company_Transactions", ("البيان",), [])
    assert generator.write_bucket(bucket, tmp_path) is None
    assert list(tmp_path.iterdir()) == []


def test_summary_workbook(tmp_path, generator, pairwise_result):
    path = generator.generate_summary_workbook(pairwise_result, tmp_path / "out" / "summary.xlsx")

    wb = load_workbook(path)
    assert wb.sheetnames == [
        "Summary",
        "Matched Company",
        "Matched Bank",
        "Unmatched Company",
        "Unmatched Bank",
    ]

    summary = {row[0]: row[1] for row in wb["Summary"].iter_rows(min_row=3, values_only=True) if row[0]}
    assert summary["Strategy"] == "pairwise"
    assert summary["Matched Pairs"] == 1
    assert summary["Match Rate"] == "50.00%"
    assert "Company Total" not in summary

    matched = wb["Matched Company"]
    assert matched["A1"].value == "البيان"
    assert matched["A2"].value == "شيك راجع 12345678"


def test_summary_workbook_with_pattern_groups(tmp_path, generator, bank_table, charges_rules):
    result = ReconciliationEngine().reconcile(None, bank_table, charges_rules)
    wb = load_workbook(generator.generate_summary_workbook(result, tmp_path / "charges.xlsx"))

    assert "Pattern CHEQUES DEPOSIT CHARGES" in wb.sheetnames
    assert all(len(name) <= 31 for name in wb.sheetnames)
    labels = [row[0] for row in wb["Summary"].iter_rows(values_only=True)]
    assert "Pattern: A/C MANAGEMENT COMMISSION" in labels


def test_unwritable_destination(tmp_path, generator, pairwise_result):
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    with pytest.raises(ReportGenerationError):
        generator.generate_summary_workbook(pairwise_result, blocker / "summary.xlsx")


def test_control_characters_are_stripped(tmp_path, generator):
    bucket = ResultBucket(
        "Unmatched_Bank_Transactions",
        ("NARRITIVE\x07", "CREDIT"),
        [("CASH\x00 DEPOSIT\x1b", "20")],
    )
    path = generator.write_bucket(bucket, tmp_path)

    ws = load_workbook(path).active
    assert ws["A1"].value == "NARRITIVE"
    assert ws["A2"].value == "CASH DEPOSIT"

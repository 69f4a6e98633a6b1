"""Tests for check number and date extraction from narratives."""

import pytest

from ledger_bank_recon.config import EXTRACTED_CHECK_COLUMN, EXTRACTED_DATE_COLUMN
from ledger_bank_recon.parsers import enrich_company_table, extract_check_number, extract_date
from ledger_bank_recon.models.table import Table


@pytest.mark.parametrize(
    "text, expected",
    [
        ("شيك رقم 12345678 بنك الراجحي", "12345678"),
        ("سداد ش.ر 4567", "4567"),
        ("رقم الشيك: 998877", "998877"),
        ("شيك راجع 12345678", "12345678"),
        ("تحويل مرجع 55443322", "55443322"),
        ("تحصيل 123", ""),
        ("مبلغ 12345678901", ""),
        (None, ""),
    ],
)
def test_extract_check_number(text, expected):
    assert extract_check_number(text) == expected


@pytest.mark.parametrize(
    "text, expected",
    [
        ("سداد بتاريخ 15/01/2025", "15/01/2025"),
        ("دفعة 5-1-2025", "5/1/2025"),
        ("قيد 2025-01-15", "15/01/2025"),
        ("بدون تاريخ", ""),
        ("", ""),
    ],
)
def test_extract_date(text, expected):
    assert extract_date(text) == expected


class TestEnrichCompanyTable:
    def test_appends_extracted_columns(self):
        table = Table.from_rows(
            ["البيان", "مدين"],
            [("شيك رقم 12345678 بتاريخ 10/01/2025", "500"), ("ايداع نقدي", "20")],
            name="company",
        )
        enriched = enrich_company_table(table, "البيان")

        assert enriched.headers == ("البيان", "مدين", EXTRACTED_CHECK_COLUMN, EXTRACTED_DATE_COLUMN)
        assert enriched.rows[0][2:] == ("12345678", "10/01/2025")
        assert enriched.rows[1][2:] == ("", "")
        assert enriched.name == "company"

    def test_short_rows_are_padded(self):
        table = Table.from_rows(["البيان", "مدين", "ملاحظات"], [("شيك رقم 4444",)])
        enriched = enrich_company_table(table, "البيان")
        assert enriched.rows[0] == ("شيك رقم 4444", None, None, "4444", "")

    def test_long_rows_are_truncated_to_headers(self):
        table = Table.from_rows(["البيان", "مدين"], [("شيك رقم 4444", "500", "stray")])
        enriched = enrich_company_table(table, "البيان")

        assert enriched.rows[0] == ("شيك رقم 4444", "500", "4444", "")
        assert enriched.value(enriched.rows[0], EXTRACTED_CHECK_COLUMN) == "4444"

    def test_existing_columns_are_kept(self):
        table = Table.from_rows(
            ["البيان", EXTRACTED_CHECK_COLUMN, EXTRACTED_DATE_COLUMN],
            [("شيك رقم 12345678", "99", "")],
        )
        assert enrich_company_table(table, "البيان") is table

    def test_falls_back_to_narrative_like_header(self):
        table = Table.from_rows(["البيان التفصيلي"], [("شيك رقم 777777",)])
        enriched = enrich_company_table(table, "البيان")
        assert enriched.value(enriched.rows[0], EXTRACTED_CHECK_COLUMN) == "777777"

    def test_without_narrative_column(self):
        table = Table.from_rows(["NARRITIVE"], [("CASH",)])
        assert enrich_company_table(table, "البيان") is table

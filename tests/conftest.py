"""Shared fixtures for the reconciliation tests."""

import pytest

from ledger_bank_recon.models.table import Table

COMPANY_HEADERS = ("البيان", "مدين", "رقم الشيك", "التاريخ")
BANK_HEADERS = ("NARRITIVE", "CREDIT", "DOC-NUM", "POST DATE")


@pytest.fixture
def company_table():
    return Table.from_rows(
        COMPANY_HEADERS,
        [
            ("شيك راجع 12345678", "500.00", "12345678", "10/01/2025"),
            ("شيك راجع 22222222", "750.00", "22222222", "11/01/2025"),
            ("ايداع نقدي فرع الرياض", "1,200.00", None, "12/01/2025"),
            ("حوالة واردة", "300.00", None, "13/01/2025"),
            ("رسوم متفرقة", "15.00", None, "14/01/2025"),
        ],
        name="company",
    )


@pytest.fixture
def bank_table():
    return Table.from_rows(
        BANK_HEADERS,
        [
            ("RETURN CHEQUE , TRANSIT", "500.00", "12345678", "12/01/2025"),
            ("RETURN CHEQUE , TRANSIT", "750.00", "22222222", "20/01/2025"),
            ("CASH DEPOSIT", "1200", None, "12/01/2025"),
            ("CHEQUES DEPOSIT CHARGES", "5.75", None, "15/01/2025"),
            ("A/C MANAGEMENT COMMISSION", "10.00", None, "16/01/2025"),
            ("CHEQUES DEPOSIT CHARGES", "2.25", None, "17/01/2025"),
            ("MISC ENTRY", "99.00", None, "18/01/2025"),
        ],
        name="bank",
    )


@pytest.fixture
def returned_check_rules():
    return {
        "name": "Returned Checks",
        "strategy": "pairwise",
        "company": {
            "search_column": "البيان",
            "patterns": [{"text": "شيك راجع", "match_type": "starts_with"}],
        },
        "bank": {
            "search_column": "NARRITIVE",
            "patterns": [{"text": "RETURN CHEQUE , TRANSIT", "match_type": "starts_with"}],
        },
        "matching_columns": [
            {
                "label": "Amount",
                "company_column": "مدين",
                "bank_column": "CREDIT",
                "match_type": "exact",
            },
            {
                "label": "Check Number",
                "company_column": "رقم الشيك",
                "bank_column": "DOC-NUM",
                "match_type": "text",
                "normalize": True,
            },
            {
                "label": "Date",
                "company_column": "التاريخ",
                "bank_column": "POST DATE",
                "match_type": "date",
            },
        ],
        "date_tolerance": 4,
        "use_date_tolerance": True,
    }


@pytest.fixture
def review_rules():
    return {
        "name": "Checks Collection",
        "strategy": "pairwise_with_review",
        "company": {
            "search_column": "البيان",
            "patterns": [{"text": "شيك راجع", "match_type": "starts_with"}],
        },
        "bank": {
            "search_column": "NARRITIVE",
            "patterns": [{"text": "RETURN CHEQUE", "match_type": "includes"}],
        },
        "amount": {"label": "Amount", "company_column": "مدين", "bank_column": "CREDIT"},
        "check_number": {
            "label": "Check Number",
            "company_column": "رقم الشيك",
            "bank_column": "DOC-NUM",
        },
        "date": {"label": "Date", "company_column": "التاريخ", "bank_column": "POST DATE"},
        "date_tolerance": 4,
        "use_date_tolerance": True,
    }


@pytest.fixture
def charges_rules():
    return {
        "name": "Bank Charges",
        "strategy": "bank_only_grouping",
        "bank": {
            "search_column": "NARRITIVE",
            "patterns": [
                {"text": "A/C MANAGEMENT COMMISSION", "match_type": "includes"},
                {"text": "CHEQUES DEPOSIT CHARGES", "match_type": "includes"},
            ],
        },
        "bank_amount_column": "CREDIT",
    }

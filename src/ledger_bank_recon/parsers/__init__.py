"""Readers for company ledgers and bank statements."""

from .table_reader import TableReader
from .check_extraction import enrich_company_table, extract_check_number, extract_date

__all__ = ["TableReader", "enrich_company_table", "extract_check_number", "extract_date"]

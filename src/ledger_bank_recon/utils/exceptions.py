"""Custom exceptions for the reconciliation application."""

from typing import Optional


class ReconciliationError(Exception):
    """Base exception for reconciliation errors."""

    pass


class TableReadError(ReconciliationError):
    """Error reading a ledger or statement spreadsheet."""

    pass


class ConfigurationError(ReconciliationError):
    """Error in rule configuration."""

    def __init__(self, message: str, errors: Optional[list[str]] = None):
        super().__init__(message)
        self.errors = list(errors or [])


class ReportGenerationError(ReconciliationError):
    """Error generating Excel report."""

    pass

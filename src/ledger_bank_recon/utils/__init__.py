"""Utility modules."""

from .exceptions import (
    ReconciliationError,
    TableReadError,
    ConfigurationError,
    ReportGenerationError,
)
from .logging_config import setup_logging, get_logger

__all__ = [
    "ReconciliationError",
    "TableReadError",
    "ConfigurationError",
    "ReportGenerationError",
    "setup_logging",
    "get_logger",
]

"""Matching engine, strategies and comparators."""

from .comparators import (
    ValueComparator,
    normalize_check_number,
    normalize_text,
    parse_date,
    parse_number,
)
from .engine import ReconciliationEngine
from .stats import match_rate
from .strategies import (
    PairwiseRun,
    find_unclassified,
    group_by_pattern,
    match_pairwise,
    match_pairwise_with_review,
    review_run,
    sum_column,
)

__all__ = [
    "ReconciliationEngine",
    "ValueComparator",
    "PairwiseRun",
    "match_pairwise",
    "match_pairwise_with_review",
    "review_run",
    "sum_column",
    "group_by_pattern",
    "find_unclassified",
    "match_rate",
    "normalize_check_number",
    "normalize_text",
    "parse_date",
    "parse_number",
]

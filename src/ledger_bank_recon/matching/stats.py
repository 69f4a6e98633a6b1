"""Statistics derived from classification and matching outputs."""

from typing import Optional, Union

from ..models.result import ReconciliationStats


def match_rate(matched_pairs: int, classified_company_rows: int) -> Union[str, int]:
    """Percentage of classified company rows matched, as a two-decimal string, or 0."""
    if classified_company_rows <= 0:
        return 0
    return f"{matched_pairs / classified_company_rows * 100:.2f}"


def build_stats(
    total_company_rows: int,
    total_bank_rows: int,
    classified_company_raw: int,
    classified_bank_raw: int,
    classified_company: int,
    classified_bank: int,
    matched_pairs: int,
    unmatched_company: int,
    unmatched_bank: int,
    review_pairs: int = 0,
) -> ReconciliationStats:
    return ReconciliationStats(
        total_company_rows=total_company_rows,
        total_bank_rows=total_bank_rows,
        classified_company_rows_raw=classified_company_raw,
        classified_bank_rows_raw=classified_bank_raw,
        classified_company_rows=classified_company,
        classified_bank_rows=classified_bank,
        matched_pairs=matched_pairs,
        review_pairs=review_pairs,
        unmatched_company_rows=unmatched_company,
        unmatched_bank_rows=unmatched_bank,
        match_rate=match_rate(matched_pairs, classified_company),
    )


def add_totals(
    stats: ReconciliationStats,
    company_total: float,
    bank_total: float,
    tolerance: Optional[float] = None,
) -> ReconciliationStats:
    """
    Attach sum-comparison totals to stats.

    Without a tolerance the totals must be exactly equal floats.
    """
    difference = abs(company_total - bank_total)
    stats.company_total = company_total
    stats.bank_total = bank_total
    stats.totals_difference = difference
    if tolerance is None:
        stats.totals_match = company_total == bank_total
    else:
        stats.totals_match = difference <= tolerance
    return stats

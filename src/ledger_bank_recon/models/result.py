"""Data models for reconciliation outputs."""

from dataclasses import dataclass, field, asdict
from typing import Any, Optional, Union

from .table import Row, Table


@dataclass
class MatchPartition:
    """Rows of both sides split into matched, review and unmatched sets."""

    matched_company: list[Row] = field(default_factory=list)
    matched_bank: list[Row] = field(default_factory=list)
    unmatched_company: list[Row] = field(default_factory=list)
    unmatched_bank: list[Row] = field(default_factory=list)
    review_company: list[Row] = field(default_factory=list)
    review_bank: list[Row] = field(default_factory=list)
    comparisons: int = 0

    @property
    def matched_pairs(self) -> int:
        return len(self.matched_company)

    @property
    def review_pairs(self) -> int:
        return len(self.review_company)


@dataclass
class PatternGroup:
    """Bank rows that were classified by one specific pattern."""

    pattern: str
    match_type: str
    rows: list[Row] = field(default_factory=list)
    total_amount: Optional[float] = None

    @property
    def count(self) -> int:
        return len(self.rows)


@dataclass
class ReconciliationStats:
    """Counts and rates for one reconciliation run."""

    total_company_rows: int = 0
    total_bank_rows: int = 0
    classified_company_rows_raw: int = 0
    classified_bank_rows_raw: int = 0
    classified_company_rows: int = 0
    classified_bank_rows: int = 0
    matched_pairs: int = 0
    review_pairs: int = 0
    unmatched_company_rows: int = 0
    unmatched_bank_rows: int = 0
    # Two-decimal string such as "30.00", or 0 when nothing was classified
    match_rate: Union[str, int] = 0

    # Sum comparison only
    company_total: Optional[float] = None
    bank_total: Optional[float] = None
    totals_difference: Optional[float] = None
    totals_match: Optional[bool] = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if self.company_total is None:
            for key in ("company_total", "bank_total", "totals_difference", "totals_match"):
                data.pop(key)
        return data


@dataclass
class ResultBucket:
    """A named row set ready for export."""

    name: str
    headers: tuple[str, ...]
    rows: list[Row]

    def as_table(self) -> Table:
        return Table.from_rows(self.headers, self.rows, name=self.name)


@dataclass
class ReconciliationResult:
    """
    Output envelope of one reconciliation run.

    Review buckets are only populated by check-backed matching, and
    grouped_by_pattern only by bank-only grouping.
    """

    strategy: str
    company_headers: tuple[str, ...]
    bank_headers: tuple[str, ...]
    classified_company_raw: list[Row] = field(default_factory=list)
    classified_bank_raw: list[Row] = field(default_factory=list)
    classified_company: list[Row] = field(default_factory=list)
    classified_bank: list[Row] = field(default_factory=list)
    matched_company: list[Row] = field(default_factory=list)
    matched_bank: list[Row] = field(default_factory=list)
    unmatched_company: list[Row] = field(default_factory=list)
    unmatched_bank: list[Row] = field(default_factory=list)
    review_company: Optional[list[Row]] = None
    review_bank: Optional[list[Row]] = None
    grouped_by_pattern: Optional[list[PatternGroup]] = None
    stats: ReconciliationStats = field(default_factory=ReconciliationStats)

    def buckets(self) -> list[ResultBucket]:
        """Every row set of this result paired with its headers and a file name."""
        company = self.company_headers
        bank = self.bank_headers
        buckets = [
            ResultBucket("Matched_Company_Transactions", company, self.matched_company),
            ResultBucket("Matched_Bank_Transactions", bank, self.matched_bank),
            ResultBucket("Unmatched_Company_Transactions", company, self.unmatched_company),
            ResultBucket("Unmatched_Bank_Transactions", bank, self.unmatched_bank),
        ]
        if self.review_company is not None:
            buckets.append(ResultBucket("Review_Company_Transactions", company, self.review_company))
        if self.review_bank is not None:
            buckets.append(ResultBucket("Review_Bank_Transactions", bank, self.review_bank))
        for group in self.grouped_by_pattern or []:
            buckets.append(ResultBucket(f"Pattern_{group.pattern}", bank, group.rows))
        return buckets

    def to_dict(self) -> dict[str, Any]:
        """Plain-data form of the result envelope."""
        return {
            "strategy": self.strategy,
            "classified_company_raw": [list(r) for r in self.classified_company_raw],
            "classified_bank_raw": [list(r) for r in self.classified_bank_raw],
            "classified_company": [list(r) for r in self.classified_company],
            "classified_bank": [list(r) for r in self.classified_bank],
            "matched_company": [list(r) for r in self.matched_company],
            "matched_bank": [list(r) for r in self.matched_bank],
            "unmatched_company": [list(r) for r in self.unmatched_company],
            "unmatched_bank": [list(r) for r in self.unmatched_bank],
            "review_company": (
                [list(r) for r in self.review_company] if self.review_company is not None else None
            ),
            "review_bank": (
                [list(r) for r in self.review_bank] if self.review_bank is not None else None
            ),
            "grouped_by_pattern": (
                [
                    {
                        "pattern": g.pattern,
                        "match_type": g.match_type,
                        "rows": [list(r) for r in g.rows],
                        "count": g.count,
                        "total_amount": g.total_amount,
                    }
                    for g in self.grouped_by_pattern
                ]
                if self.grouped_by_pattern is not None
                else None
            ),
            "stats": self.stats.to_dict(),
        }

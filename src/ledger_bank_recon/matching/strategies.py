"""
Matching strategies for ledger reconciliation.

Pairwise matching is greedy first-fit: each company row, in classified
order, takes the first still-available bank row that satisfies every
criterion. An earlier company row can therefore consume a bank row that a
later one would have matched more specifically.
"""

from typing import Optional, Sequence
import logging

from ..classification.classifier import PatternClassifier, collect_patterns, first_matching_pattern
from ..config import ClassificationRule, MatchingColumnConfig
from ..models.result import MatchPartition, PatternGroup
from ..models.table import Row, Table, cell_at, is_empty
from .comparators import ValueComparator, parse_number

logger = logging.getLogger(__name__)


class PairwiseRun:
    """
    Incremental state of one greedy pairwise pass.

    Company rows are consumed in batches through advance(), so a caller can
    yield control between batches. Batching never changes the outcome.

    With review_columns set, a company row that finds no full match takes
    the first available bank row satisfying only review_columns; that pair
    lands in the review bucket.
    """

    def __init__(
        self,
        comparator: ValueComparator,
        company_rows: Sequence[Row],
        bank_rows: Sequence[Row],
        columns: Sequence[MatchingColumnConfig],
        review_columns: Optional[Sequence[MatchingColumnConfig]] = None,
    ):
        self.comparator = comparator
        self.company_rows = list(company_rows)
        self.bank_rows = list(bank_rows)
        self.columns = list(columns)
        self.review_columns = list(review_columns) if review_columns else None
        self.processed = 0
        self._consumed: set[int] = set()
        self._partition = MatchPartition()

    @property
    def total(self) -> int:
        return len(self.company_rows)

    @property
    def done(self) -> bool:
        return self.processed >= self.total

    def advance(self, batch_size: Optional[int] = None) -> int:
        """
        Match the next batch of company rows.

        Args:
            batch_size: Company rows to process; None processes the rest

        Returns:
            Number of company rows processed by this call
        """
        remaining = self.total - self.processed
        count = remaining if batch_size is None else max(0, min(batch_size, remaining))

        for company_row in self.company_rows[self.processed:self.processed + count]:
            self._match_company_row(company_row)
        self.processed += count
        return count

    def finish(self) -> MatchPartition:
        """Complete the pass and collect unconsumed bank rows."""
        self.advance()
        partition = self._partition
        partition.unmatched_bank = [
            row for index, row in enumerate(self.bank_rows) if index not in self._consumed
        ]
        return partition

    def _match_company_row(self, company_row: Row) -> None:
        partition = self._partition
        review_index: Optional[int] = None

        for index, bank_row in enumerate(self.bank_rows):
            if index in self._consumed:
                continue
            partition.comparisons += 1

            if self.comparator.rows_match(company_row, bank_row, self.columns):
                self._consumed.add(index)
                partition.matched_company.append(company_row)
                partition.matched_bank.append(bank_row)
                return

            if (
                review_index is None
                and self.review_columns is not None
                and self.comparator.rows_match(company_row, bank_row, self.review_columns)
            ):
                review_index = index

        if review_index is not None:
            self._consumed.add(review_index)
            partition.review_company.append(company_row)
            partition.review_bank.append(self.bank_rows[review_index])
            return

        partition.unmatched_company.append(company_row)


def match_pairwise(
    comparator: ValueComparator,
    company_rows: Sequence[Row],
    bank_rows: Sequence[Row],
    columns: Sequence[MatchingColumnConfig],
) -> MatchPartition:
    """Greedy one-to-one matching where every column must pass."""
    return PairwiseRun(comparator, company_rows, bank_rows, columns).finish()


def review_run(
    comparator: ValueComparator,
    company_rows: Sequence[Row],
    bank_rows: Sequence[Row],
    amount: MatchingColumnConfig,
    check_number: MatchingColumnConfig,
    date: MatchingColumnConfig,
) -> PairwiseRun:
    """
    Set up three-way matching on amount, check number and date.

    Pairs agreeing on amount and check number but not on date go to the
    review bucket.
    """
    return PairwiseRun(
        comparator,
        company_rows,
        bank_rows,
        columns=[amount, check_number, date],
        review_columns=[amount, check_number],
    )


def match_pairwise_with_review(
    comparator: ValueComparator,
    company_rows: Sequence[Row],
    bank_rows: Sequence[Row],
    amount: MatchingColumnConfig,
    check_number: MatchingColumnConfig,
    date: MatchingColumnConfig,
) -> MatchPartition:
    """Three-way matching with review routing, run to completion."""
    return review_run(comparator, company_rows, bank_rows, amount, check_number, date).finish()


def sum_column(table: Table, rows: Sequence[Row], amount_column: str) -> float:
    """
    Sum a column over rows; non-numeric and empty cells count as zero.

    A column missing from the headers sums to zero.
    """
    index = table.column_index(amount_column)
    if index == -1:
        logger.error(
            f"Amount column '{amount_column}' not found in {table.name or 'table'} headers"
        )
        return 0.0

    total = 0.0
    for position, row in enumerate(rows, start=1):
        value = parse_number(cell_at(row, index))
        if value is None:
            if not is_empty(cell_at(row, index)):
                logger.warning(f"Row {position}: non-numeric amount {cell_at(row, index)!r}")
            continue
        total += value
    return total


def group_by_pattern(
    table: Table,
    rows: Sequence[Row],
    classifier: PatternClassifier,
    amount_column: Optional[str] = None,
) -> list[PatternGroup]:
    """
    Bucket classified rows by the pattern literal that first matched them.

    Buckets appear in the order their pattern was first seen. Totals are
    only computed when amount_column resolves to a header.
    """
    search_index = table.column_index(classifier.rule.search_column)
    if search_index == -1:
        return []

    amount_index = table.column_index(amount_column) if amount_column else -1
    groups: dict[str, PatternGroup] = {}

    for row in rows:
        pattern = classifier.first_match(cell_at(row, search_index))
        if pattern is None:
            continue

        group = groups.get(pattern.text)
        if group is None:
            group = PatternGroup(
                pattern=pattern.text,
                match_type=pattern.match_type,
                total_amount=0.0 if amount_index != -1 else None,
            )
            groups[pattern.text] = group
        group.rows.append(row)

        if amount_index != -1:
            value = parse_number(cell_at(row, amount_index))
            if value is not None:
                group.total_amount += value

    return list(groups.values())


def find_unclassified(
    table: Table,
    search_column: str,
    rules: Sequence[ClassificationRule],
) -> list[Row]:
    """
    Rows whose search cell matches no pattern of any of the given rules.

    Empty search cells count as unclassified, and a search column missing
    from the headers leaves every row unclassified.
    """
    search_index = table.column_index(search_column)
    if search_index == -1:
        logger.warning(
            f"Search column '{search_column}' not found in {table.name or 'table'} "
            f"headers, reporting all {len(table)} rows as unclassified"
        )
        return list(table.rows)

    patterns = collect_patterns(rules)
    unclassified: list[Row] = []
    for row in table.rows:
        value = cell_at(row, search_index)
        if is_empty(value) or first_matching_pattern(value, patterns) is None:
            unclassified.append(row)
    return unclassified

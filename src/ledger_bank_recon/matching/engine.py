"""
Reconciliation engine for company ledgers and bank statements.
Selects a strategy from the rule set, classifies both sides, matches or
aggregates them, and assembles a single result envelope.
"""

from datetime import datetime
from typing import Any, Callable, Mapping, Optional, Sequence
import logging

from ..classification.classifier import PatternClassifier
from ..config import (
    BankOnlyGroupingRules,
    MatchingColumnConfig,
    PairwiseRules,
    PairwiseWithReviewRules,
    ReconConfig,
    ResidualRules,
    SumComparisonRules,
    parse_rule_set,
    validate_rule_set,
)
from ..models.result import MatchPartition, ReconciliationResult
from ..models.table import Row, Table, is_empty
from ..utils.exceptions import ConfigurationError, ReconciliationError
from .comparators import ValueComparator
from .stats import add_totals, build_stats
from .strategies import (
    PairwiseRun,
    find_unclassified,
    group_by_pattern,
    review_run,
    sum_column,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class ReconciliationEngine:
    """
    Orchestrates classification, matching and statistics for one run.

    Strategies form a closed set keyed by the rule set's 'strategy' tag.
    The engine holds no state between runs; every call is independent.
    """

    def __init__(self, config: Optional[ReconConfig] = None, batch_size: Optional[int] = None):
        """
        Initialize the reconciliation engine.

        Args:
            config: Application configuration; supplies the classification
                type registry used by residual runs
            batch_size: Company rows matched between progress callbacks

        Raises:
            ConfigurationError: If the batch size is below 1
        """
        self.config = config or ReconConfig()
        self.batch_size = batch_size if batch_size is not None else self.config.batch_size
        if self.batch_size < 1:
            raise ConfigurationError(f"Batch size must be at least 1, got {self.batch_size}")
        self._handlers = {
            "pairwise": self._run_pairwise,
            "pairwise_with_review": self._run_pairwise_with_review,
            "sum_comparison": self._run_sum_comparison,
            "bank_only_grouping": self._run_bank_only_grouping,
            "residual": self._run_residual,
        }

    def reconcile(
        self,
        company: Optional[Table],
        bank: Table,
        rules: Any,
        registry: Optional[Mapping[str, Any]] = None,
        progress: Optional[ProgressCallback] = None,
        validate: bool = True,
    ) -> ReconciliationResult:
        """
        Run one reconciliation.

        Args:
            company: Company ledger; may be None for bank-only grouping
            bank: Bank statement
            rules: RuleSet model or mapping describing one
            registry: All classification types, consulted by residual runs;
                defaults to the configured registry
            progress: Called with (processed, total) company rows after each batch
            validate: Run the pre-flight rule check first

        Returns:
            ReconciliationResult for the selected strategy

        Raises:
            ConfigurationError: If the rules are malformed or incomplete
            ReconciliationError: If the run fails unexpectedly
        """
        rule_set = parse_rule_set(rules)

        if validate:
            report = validate_rule_set(rule_set)
            if not report.valid:
                raise ConfigurationError(
                    "Configuration errors:\n" + "\n".join(report.errors), report.errors
                )

        company_table = company if company is not None else Table(headers=(), name="company")
        start_time = datetime.now()
        logger.info(
            f"Starting {rule_set.strategy} reconciliation '{rule_set.name}': "
            f"{len(company_table)} company rows, {len(bank)} bank rows"
        )

        handler = self._handlers.get(rule_set.strategy)
        if handler is None:
            raise ConfigurationError(f"Unsupported strategy '{rule_set.strategy}'")

        try:
            result = handler(company_table, bank, rule_set, registry, progress)
        except ReconciliationError:
            raise
        except Exception as e:
            logger.exception(f"Reconciliation '{rule_set.name}' failed")
            raise ReconciliationError(f"Reconciliation failed: {e}") from e

        elapsed = (datetime.now() - start_time).total_seconds()
        stats = result.stats
        logger.info(
            f"Reconciliation complete in {elapsed:.2f}s: {stats.matched_pairs} matches, "
            f"{stats.review_pairs} for review, {stats.unmatched_company_rows} company-only, "
            f"{stats.unmatched_bank_rows} bank-only"
        )
        return result

    def _classify(self, table: Table, rule) -> list[Row]:
        return PatternClassifier(rule).classify(table)

    def _drive(self, run: PairwiseRun, progress: Optional[ProgressCallback]) -> MatchPartition:
        """Advance a pairwise run batch by batch, reporting progress at each boundary."""
        while not run.done:
            run.advance(self.batch_size)
            if progress:
                progress(run.processed, run.total)
        partition = run.finish()
        logger.debug(f"Pairwise pass made {partition.comparisons} comparisons")
        return partition

    def _run_pairwise(
        self,
        company: Table,
        bank: Table,
        rules: PairwiseRules,
        registry: Optional[Mapping[str, Any]],
        progress: Optional[ProgressCallback],
    ) -> ReconciliationResult:
        company_raw = self._classify(company, rules.company)
        bank_raw = self._classify(bank, rules.bank)

        company_rows, bank_rows = company_raw, bank_raw
        if rules.drop_incomplete_rows:
            company_rows = _complete_rows(company, company_raw, rules.matching_columns, "company")
            bank_rows = _complete_rows(bank, bank_raw, rules.matching_columns, "bank")

        comparator = ValueComparator(
            company, bank, rules.date_tolerance, rules.use_date_tolerance
        )
        run = PairwiseRun(comparator, company_rows, bank_rows, rules.matching_columns)
        partition = self._drive(run, progress)

        return self._pairwise_result(
            rules.strategy, company, bank, company_raw, bank_raw,
            company_rows, bank_rows, partition, with_review=False,
        )

    def _run_pairwise_with_review(
        self,
        company: Table,
        bank: Table,
        rules: PairwiseWithReviewRules,
        registry: Optional[Mapping[str, Any]],
        progress: Optional[ProgressCallback],
    ) -> ReconciliationResult:
        company_raw = self._classify(company, rules.company)
        bank_raw = self._classify(bank, rules.bank)

        amount, check_number, date = rules.key_columns()
        comparator = ValueComparator(
            company, bank, rules.date_tolerance, rules.use_date_tolerance
        )
        run = review_run(comparator, company_raw, bank_raw, amount, check_number, date)
        partition = self._drive(run, progress)

        return self._pairwise_result(
            rules.strategy, company, bank, company_raw, bank_raw,
            company_raw, bank_raw, partition, with_review=True,
        )

    def _pairwise_result(
        self,
        strategy: str,
        company: Table,
        bank: Table,
        company_raw: list[Row],
        bank_raw: list[Row],
        company_rows: list[Row],
        bank_rows: list[Row],
        partition: MatchPartition,
        with_review: bool,
    ) -> ReconciliationResult:
        stats = build_stats(
            total_company_rows=len(company),
            total_bank_rows=len(bank),
            classified_company_raw=len(company_raw),
            classified_bank_raw=len(bank_raw),
            classified_company=len(company_rows),
            classified_bank=len(bank_rows),
            matched_pairs=partition.matched_pairs,
            unmatched_company=len(partition.unmatched_company),
            unmatched_bank=len(partition.unmatched_bank),
            review_pairs=partition.review_pairs,
        )
        return ReconciliationResult(
            strategy=strategy,
            company_headers=company.headers,
            bank_headers=bank.headers,
            classified_company_raw=company_raw,
            classified_bank_raw=bank_raw,
            classified_company=company_rows,
            classified_bank=bank_rows,
            matched_company=partition.matched_company,
            matched_bank=partition.matched_bank,
            unmatched_company=partition.unmatched_company,
            unmatched_bank=partition.unmatched_bank,
            review_company=partition.review_company if with_review else None,
            review_bank=partition.review_bank if with_review else None,
            stats=stats,
        )

    def _run_sum_comparison(
        self,
        company: Table,
        bank: Table,
        rules: SumComparisonRules,
        registry: Optional[Mapping[str, Any]],
        progress: Optional[ProgressCallback],
    ) -> ReconciliationResult:
        company_rows = self._classify(company, rules.company)
        bank_rows = self._classify(bank, rules.bank)

        company_total = sum_column(company, company_rows, rules.company_amount_column)
        bank_total = sum_column(bank, bank_rows, rules.bank_amount_column)
        logger.debug(f"Sum comparison totals: company={company_total}, bank={bank_total}")

        stats = build_stats(
            total_company_rows=len(company),
            total_bank_rows=len(bank),
            classified_company_raw=len(company_rows),
            classified_bank_raw=len(bank_rows),
            classified_company=len(company_rows),
            classified_bank=len(bank_rows),
            matched_pairs=0,
            unmatched_company=len(company_rows),
            unmatched_bank=len(bank_rows),
        )
        # No pairing happens, so the rate stays 0 whatever was classified
        stats.match_rate = 0
        add_totals(stats, company_total, bank_total, rules.totals_tolerance)

        return ReconciliationResult(
            strategy=rules.strategy,
            company_headers=company.headers,
            bank_headers=bank.headers,
            classified_company_raw=company_rows,
            classified_bank_raw=bank_rows,
            classified_company=list(company_rows),
            classified_bank=list(bank_rows),
            unmatched_company=list(company_rows),
            unmatched_bank=list(bank_rows),
            stats=stats,
        )

    def _run_bank_only_grouping(
        self,
        company: Table,
        bank: Table,
        rules: BankOnlyGroupingRules,
        registry: Optional[Mapping[str, Any]],
        progress: Optional[ProgressCallback],
    ) -> ReconciliationResult:
        classifier = PatternClassifier(rules.bank)
        bank_rows = classifier.classify(bank)
        groups = group_by_pattern(bank, bank_rows, classifier, rules.bank_amount_column)
        logger.debug(f"Grouped {len(bank_rows)} bank rows into {len(groups)} pattern buckets")

        # The company ledger takes no part in bank-only grouping
        stats = build_stats(
            total_company_rows=0,
            total_bank_rows=len(bank),
            classified_company_raw=0,
            classified_bank_raw=len(bank_rows),
            classified_company=0,
            classified_bank=len(bank_rows),
            matched_pairs=0,
            unmatched_company=0,
            unmatched_bank=len(bank_rows),
        )
        return ReconciliationResult(
            strategy=rules.strategy,
            company_headers=company.headers,
            bank_headers=bank.headers,
            classified_bank_raw=bank_rows,
            classified_bank=list(bank_rows),
            unmatched_bank=list(bank_rows),
            grouped_by_pattern=groups,
            stats=stats,
        )

    def _run_residual(
        self,
        company: Table,
        bank: Table,
        rules: ResidualRules,
        registry: Optional[Mapping[str, Any]],
        progress: Optional[ProgressCallback],
    ) -> ReconciliationResult:
        known = self._known_rule_sets(registry)
        company_rows = find_unclassified(
            company, rules.company.search_column, [r.company for r in known]
        )
        bank_rows = find_unclassified(bank, rules.bank.search_column, [r.bank for r in known])

        stats = build_stats(
            total_company_rows=len(company),
            total_bank_rows=len(bank),
            classified_company_raw=len(company_rows),
            classified_bank_raw=len(bank_rows),
            classified_company=len(company_rows),
            classified_bank=len(bank_rows),
            matched_pairs=0,
            unmatched_company=len(company_rows),
            unmatched_bank=len(bank_rows),
        )
        stats.match_rate = 0
        return ReconciliationResult(
            strategy=rules.strategy,
            company_headers=company.headers,
            bank_headers=bank.headers,
            classified_company_raw=company_rows,
            classified_bank_raw=bank_rows,
            classified_company=list(company_rows),
            classified_bank=list(bank_rows),
            unmatched_company=list(company_rows),
            unmatched_bank=list(bank_rows),
            stats=stats,
        )

    def _known_rule_sets(self, registry: Optional[Mapping[str, Any]]) -> list:
        """Every non-residual rule set of the registry, parsed."""
        source = registry if registry is not None else self.config.classification_types
        rule_sets = [parse_rule_set(entry) for entry in source.values()]
        return [r for r in rule_sets if not isinstance(r, ResidualRules)]


def _complete_rows(
    table: Table,
    rows: Sequence[Row],
    columns: Sequence[MatchingColumnConfig],
    side: str,
) -> list[Row]:
    """Rows holding a value in every matching column mapped on this side."""
    names = [c.company_column if side == "company" else c.bank_column for c in columns]
    names = [name for name in names if name and table.has_column(name)]

    kept = [row for row in rows if all(not is_empty(table.value(row, n)) for n in names)]
    if len(kept) != len(rows):
        logger.debug(f"Dropped {len(rows) - len(kept)} {side} rows with empty matching columns")
    return kept

"""Tests for the matching and aggregation strategies."""

from collections import Counter

from ledger_bank_recon.classification import PatternClassifier
from ledger_bank_recon.config import ClassificationRule, MatchingColumnConfig, PatternRule
from ledger_bank_recon.matching import (
    PairwiseRun,
    ValueComparator,
    find_unclassified,
    group_by_pattern,
    match_pairwise,
    match_pairwise_with_review,
    review_run,
    sum_column,
)
from ledger_bank_recon.models.table import Table

COMPANY = ("DESC", "AMOUNT", "CHECK", "DATE")
BANK = ("NARRATIVE", "AMOUNT", "CHECK", "DATE")

AMOUNT = MatchingColumnConfig(
    label="Amount", company_column="AMOUNT", bank_column="AMOUNT", match_type="numeric"
)
CHECK = MatchingColumnConfig(
    label="Check Number", company_column="CHECK", bank_column="CHECK",
    match_type="text", is_check_number=True,
)
DATE = MatchingColumnConfig(
    label="Date", company_column="DATE", bank_column="DATE", match_type="date"
)


def _tables(company_rows, bank_rows):
    return Table.from_rows(COMPANY, company_rows), Table.from_rows(BANK, bank_rows)


def _assert_partitioned(classified, *parts):
    combined = Counter()
    for part in parts:
        combined.update(part)
    assert combined == Counter(classified)


class TestPairwise:
    def test_greedy_first_come_consumes_bank_row(self):
        company, bank = _tables(
            [("first", "100", None, None), ("second", "100", None, None)],
            [("deposit", "100", None, None)],
        )
        partition = match_pairwise(
            ValueComparator(company, bank), company.rows, bank.rows, [AMOUNT]
        )
        assert [r[0] for r in partition.matched_company] == ["first"]
        assert [r[0] for r in partition.unmatched_company] == ["second"]
        assert partition.unmatched_bank == []

    def test_every_column_must_match(self):
        company, bank = _tables(
            [("a", "100", "1234", "15/01/2025")],
            [("x", "100", "9999", "15/01/2025"), ("y", "100", "00001234", "15/01/2025")],
        )
        partition = match_pairwise(
            ValueComparator(company, bank), company.rows, bank.rows, [AMOUNT, CHECK, DATE]
        )
        assert [r[0] for r in partition.matched_bank] == ["y"]
        assert [r[0] for r in partition.unmatched_bank] == ["x"]

    def test_partition_law_and_bijection(self):
        company, bank = _tables(
            [("a", "10", None, None), ("b", "20", None, None), ("c", "30", None, None)],
            [("x", "20", None, None), ("y", "40", None, None), ("z", "10", None, None)],
        )
        partition = match_pairwise(
            ValueComparator(company, bank), company.rows, bank.rows, [AMOUNT]
        )
        assert len(partition.matched_company) == len(partition.matched_bank) == 2
        _assert_partitioned(company.rows, partition.matched_company, partition.unmatched_company)
        _assert_partitioned(bank.rows, partition.matched_bank, partition.unmatched_bank)
        assert [r[0] for r in partition.unmatched_bank] == ["y"]

    def test_no_columns_matches_nothing(self):
        company, bank = _tables([("a", "1", None, None)], [("x", "1", None, None)])
        partition = match_pairwise(ValueComparator(company, bank), company.rows, bank.rows, [])
        assert partition.matched_pairs == 0
        assert len(partition.unmatched_company) == len(partition.unmatched_bank) == 1

    def test_batches_do_not_change_outcome(self):
        company, bank = _tables(
            [(f"c{i}", str(i % 3), None, None) for i in range(7)],
            [(f"b{i}", str(i % 2), None, None) for i in range(5)],
        )
        comparator = ValueComparator(company, bank)
        expected = match_pairwise(comparator, company.rows, bank.rows, [AMOUNT])

        run = PairwiseRun(comparator, company.rows, bank.rows, [AMOUNT])
        sizes = []
        while not run.done:
            sizes.append(run.advance(3))
        partition = run.finish()

        assert sizes == [3, 3, 1]
        assert partition.matched_company == expected.matched_company
        assert partition.matched_bank == expected.matched_bank
        assert partition.unmatched_bank == expected.unmatched_bank


class TestPairwiseWithReview:
    def test_date_mismatch_goes_to_review(self):
        company, bank = _tables(
            [("a", "500", "12345678", "10/01/2025")],
            [("x", "500", "12345678", "25/01/2025")],
        )
        partition = match_pairwise_with_review(
            ValueComparator(company, bank, 4, True),
            company.rows, bank.rows, AMOUNT, CHECK, DATE,
        )
        assert partition.matched_pairs == 0
        assert partition.review_pairs == 1
        assert partition.unmatched_company == partition.unmatched_bank == []

    def test_batched_run_routes_like_single_pass(self):
        company, bank = _tables(
            [("a", "500", "12345678", "10/01/2025"), ("b", "75", "555", "12/01/2025")],
            [("x", "75", "00000555", "12/01/2025"), ("y", "500", "12345678", "25/01/2025")],
        )
        comparator = ValueComparator(company, bank, 4, True)
        run = review_run(comparator, company.rows, bank.rows, AMOUNT, CHECK, DATE)
        while not run.done:
            run.advance(1)
        batched = run.finish()

        single = match_pairwise_with_review(
            comparator, company.rows, bank.rows, AMOUNT, CHECK, DATE
        )
        assert [r[0] for r in batched.review_bank] == ["y"]
        assert [r[0] for r in batched.matched_bank] == ["x"]
        assert batched.review_company == single.review_company
        assert batched.matched_company == single.matched_company

    def test_full_match_preferred_over_earlier_partial(self):
        company, bank = _tables(
            [("a", "500", "12345678", "10/01/2025")],
            [
                ("partial", "500", "12345678", "25/01/2025"),
                ("full", "500", "12345678", "11/01/2025"),
            ],
        )
        partition = match_pairwise_with_review(
            ValueComparator(company, bank, 4, True),
            company.rows, bank.rows, AMOUNT, CHECK, DATE,
        )
        assert [r[0] for r in partition.matched_bank] == ["full"]
        assert partition.review_bank == []
        assert [r[0] for r in partition.unmatched_bank] == ["partial"]

    def test_amount_or_check_mismatch_is_unmatched(self):
        company, bank = _tables(
            [("a", "500", "12345678", "10/01/2025"), ("b", "600", "87654321", "10/01/2025")],
            [("x", "501", "12345678", "10/01/2025"), ("y", "600", "11111111", "10/01/2025")],
        )
        partition = match_pairwise_with_review(
            ValueComparator(company, bank), company.rows, bank.rows, AMOUNT, CHECK, DATE
        )
        assert partition.matched_pairs == partition.review_pairs == 0
        _assert_partitioned(
            company.rows,
            partition.matched_company, partition.review_company, partition.unmatched_company,
        )
        _assert_partitioned(
            bank.rows, partition.matched_bank, partition.review_bank, partition.unmatched_bank
        )

    def test_review_consumes_bank_row(self):
        company, bank = _tables(
            [("a", "500", "1234", "10/01/2025"), ("b", "500", "1234", "25/01/2025")],
            [("x", "500", "00001234", "25/01/2025")],
        )
        partition = match_pairwise_with_review(
            ValueComparator(company, bank), company.rows, bank.rows, AMOUNT, CHECK, DATE
        )
        assert [r[0] for r in partition.review_company] == ["a"]
        assert [r[0] for r in partition.unmatched_company] == ["b"]


class TestAggregation:
    def test_sum_column(self, bank_table):
        rows = bank_table.rows[3:6]
        assert sum_column(bank_table, rows, "CREDIT") == 18.0

    def test_sum_column_skips_text_and_missing_column(self):
        table = Table.from_rows(["AMT"], [("10",), ("n/a",), (None,), ("2.5",)])
        assert sum_column(table, table.rows, "AMT") == 12.5
        assert sum_column(table, table.rows, "MISSING") == 0.0

    def test_group_by_pattern_in_first_seen_order(self, bank_table):
        rule = ClassificationRule(
            search_column="NARRITIVE",
            patterns=[
                PatternRule(text="A/C MANAGEMENT COMMISSION", match_type="includes"),
                PatternRule(text="CHEQUES DEPOSIT CHARGES", match_type="includes"),
            ],
        )
        classifier = PatternClassifier(rule)
        rows = classifier.classify(bank_table)
        groups = group_by_pattern(bank_table, rows, classifier, "CREDIT")

        assert [g.pattern for g in groups] == [
            "CHEQUES DEPOSIT CHARGES",
            "A/C MANAGEMENT COMMISSION",
        ]
        assert [g.count for g in groups] == [2, 1]
        assert groups[0].total_amount == 8.0
        assert groups[1].total_amount == 10.0

    def test_group_by_pattern_without_amount(self, bank_table):
        rule = ClassificationRule(
            search_column="NARRITIVE",
            patterns=[PatternRule(text="CHEQUES DEPOSIT CHARGES", match_type="includes")],
        )
        classifier = PatternClassifier(rule)
        groups = group_by_pattern(bank_table, classifier.classify(bank_table), classifier)
        assert groups[0].total_amount is None

    def test_find_unclassified(self, bank_table):
        rules = [
            ClassificationRule(patterns=[PatternRule(text="RETURN CHEQUE", match_type="starts_with")]),
            ClassificationRule(
                patterns=[
                    PatternRule(text="CASH", match_type="starts_with"),
                    PatternRule(text="CHARGES", match_type="includes"),
                ]
            ),
        ]
        rows = find_unclassified(bank_table, "NARRITIVE", rules)
        assert [r[0] for r in rows] == ["A/C MANAGEMENT COMMISSION", "MISC ENTRY"]

    def test_find_unclassified_empty_cells_and_missing_column(self):
        table = Table.from_rows(["NARRITIVE"], [(None,), ("CASH DEPOSIT",)])
        rules = [ClassificationRule(patterns=[PatternRule(text="CASH")])]
        assert find_unclassified(table, "NARRITIVE", rules) == [(None,)]
        assert len(find_unclassified(table, "OTHER", rules)) == 2

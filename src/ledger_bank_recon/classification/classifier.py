"""
Pattern classifier for ledger and statement rows.
Selects the rows of a table that belong to one transaction type.
"""

from typing import Iterable, Optional, Sequence
import logging
import re

from ..config import ClassificationRule, PatternRule, StructuralFilter
from ..models.table import CellValue, Row, Table, cell_at, cell_text, is_empty

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_NON_DIGIT = re.compile(r"[^0-9]")


def fold_text(value: CellValue) -> str:
    """Trim, collapse internal whitespace and case-fold a cell or pattern."""
    return _WHITESPACE.sub(" ", cell_text(value)).strip().casefold()


def pattern_matches(value: CellValue, pattern: PatternRule) -> bool:
    """
    Test one cell against one pattern.

    Empty cells and empty patterns never match.
    """
    text = fold_text(value)
    needle = fold_text(pattern.text)
    if not text or not needle:
        return False

    if pattern.match_type == "includes":
        return needle in text
    if pattern.match_type == "both":
        return text.startswith(needle) or needle in text
    return text.startswith(needle)


def first_matching_pattern(
    value: CellValue, patterns: Iterable[PatternRule]
) -> Optional[PatternRule]:
    """Return the first pattern that matches value, or None."""
    for pattern in patterns:
        if pattern_matches(value, pattern):
            return pattern
    return None


def digit_count(value: CellValue) -> int:
    return len(_NON_DIGIT.sub("", cell_text(value)))


class PatternClassifier:
    """
    Filters a table down to the rows of one classification rule.

    A row is kept when its search-column cell is non-empty, matches at
    least one pattern, and passes every structural filter. Row order is
    preserved.
    """

    def __init__(self, rule: ClassificationRule):
        self.rule = rule

    def classify(self, table: Table) -> list[Row]:
        """
        Classify the rows of a table.

        Args:
            table: Ledger or statement table

        Returns:
            Matching rows in their original order; empty when the search
            column is not among the table headers
        """
        search_index = table.column_index(self.rule.search_column)
        if search_index == -1:
            logger.warning(
                f"Search column '{self.rule.search_column}' not found in "
                f"{table.name or 'table'} headers, nothing classified"
            )
            return []

        if not self.rule.patterns:
            return []

        filters = self._resolve_filters(table)

        classified: list[Row] = []
        filter_rejects = 0
        for row in table.rows:
            search_value = cell_at(row, search_index)
            if is_empty(search_value):
                continue
            if first_matching_pattern(search_value, self.rule.patterns) is None:
                continue
            if all(self._passes(row, index, flt) for index, flt in filters):
                classified.append(row)
            else:
                filter_rejects += 1

        logger.debug(
            f"Classified {len(classified)} of {len(table)} rows on "
            f"'{self.rule.search_column}' ({filter_rejects} rejected by filters)"
        )
        return classified

    def first_match(self, value: CellValue) -> Optional[PatternRule]:
        """The pattern that classifies a search-column value, if any."""
        return first_matching_pattern(value, self.rule.patterns)

    def _resolve_filters(self, table: Table) -> list[tuple[int, StructuralFilter]]:
        resolved = []
        for flt in self.rule.structural_filters:
            index = table.column_index(flt.column)
            if index == -1:
                logger.debug(f"Filter column '{flt.column}' not found, filter skipped")
                continue
            resolved.append((index, flt))
        return resolved

    @staticmethod
    def _passes(row: Row, index: int, flt: StructuralFilter) -> bool:
        value = cell_at(row, index)
        if flt.condition == "has_exact_digit_count":
            return digit_count(value) == flt.digits
        if flt.condition == "lacks_exact_digit_count":
            return digit_count(value) != flt.digits
        if flt.condition == "has_value":
            return not is_empty(value)
        if flt.condition == "is_empty":
            return is_empty(value)
        return True


def collect_patterns(rules: Sequence[ClassificationRule]) -> list[PatternRule]:
    """Concatenate the pattern lists of several rules, keeping their order."""
    patterns: list[PatternRule] = []
    for rule in rules:
        patterns.extend(rule.patterns)
    return patterns

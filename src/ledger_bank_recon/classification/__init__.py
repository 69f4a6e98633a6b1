"""Row classification by text patterns."""

from .classifier import (
    PatternClassifier,
    collect_patterns,
    first_matching_pattern,
    fold_text,
    pattern_matches,
)

__all__ = [
    "PatternClassifier",
    "collect_patterns",
    "first_matching_pattern",
    "fold_text",
    "pattern_matches",
]

"""Configuration loader and validation for reconciliation rules."""

from pathlib import Path
from typing import Annotated, Any, Literal, Optional, Union
import logging

import yaml
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from .utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_COMPANY_SEARCH_COLUMN = "البيان"
DEFAULT_BANK_SEARCH_COLUMN = "NARRITIVE"
EXTRACTED_CHECK_COLUMN = "رقم الشيك المستخرج"
EXTRACTED_DATE_COLUMN = "التاريخ المستخرج"


class PatternRule(BaseModel):
    """A text pattern tested against a row's search column."""

    text: str
    match_type: Literal["starts_with", "includes", "both"] = "starts_with"


class StructuralFilter(BaseModel):
    """Secondary predicate applied to rows that already matched a pattern."""

    column: str
    condition: Literal[
        "has_exact_digit_count",
        "lacks_exact_digit_count",
        "has_value",
        "is_empty",
    ]
    digits: int = 8


class ClassificationRule(BaseModel):
    """Patterns and filters that select one side's rows for a transaction type."""

    search_column: str = ""
    patterns: list[PatternRule] = Field(default_factory=list)
    structural_filters: list[StructuralFilter] = Field(default_factory=list)


class MatchingColumnConfig(BaseModel):
    """One (company column, bank column, comparator) criterion."""

    label: str = ""
    company_column: str = ""
    bank_column: str = ""
    match_type: Literal["exact", "numeric", "date", "text"] = "exact"
    tolerance: Optional[float] = None
    use_date_tolerance: Optional[bool] = None
    date_tolerance: Optional[int] = None
    normalize: bool = False
    # None lets the comparator guess from the label and column names
    is_check_number: Optional[bool] = None

    @property
    def is_mapped(self) -> bool:
        return bool(self.company_column) and bool(self.bank_column)


class _RuleSetBase(BaseModel):
    name: str = ""
    company: ClassificationRule = Field(default_factory=ClassificationRule)
    bank: ClassificationRule = Field(default_factory=ClassificationRule)


class PairwiseRules(_RuleSetBase):
    """Greedy one-to-one matching over a generic list of matching columns."""

    strategy: Literal["pairwise"] = "pairwise"
    matching_columns: list[MatchingColumnConfig] = Field(default_factory=list)
    date_tolerance: int = 0
    use_date_tolerance: bool = False
    drop_incomplete_rows: bool = False


class PairwiseWithReviewRules(_RuleSetBase):
    """
    Check-backed matching on amount, check number and date.

    Pairs agreeing on amount and check number but not on date are routed
    to a review bucket instead of being left unmatched.
    """

    strategy: Literal["pairwise_with_review"] = "pairwise_with_review"
    amount: MatchingColumnConfig = Field(
        default_factory=lambda: MatchingColumnConfig(label="Amount", match_type="numeric")
    )
    check_number: MatchingColumnConfig = Field(
        default_factory=lambda: MatchingColumnConfig(label="Check Number", match_type="text")
    )
    date: MatchingColumnConfig = Field(
        default_factory=lambda: MatchingColumnConfig(label="Date", match_type="date")
    )
    date_tolerance: int = 0
    use_date_tolerance: bool = False

    def key_columns(
        self,
    ) -> tuple[MatchingColumnConfig, MatchingColumnConfig, MatchingColumnConfig]:
        """The amount, check and date keys with their comparators pinned."""
        return (
            self.amount.model_copy(update={"match_type": "numeric"}),
            self.check_number.model_copy(
                update={"match_type": "text", "is_check_number": True}
            ),
            self.date.model_copy(update={"match_type": "date"}),
        )


class SumComparisonRules(_RuleSetBase):
    """Compare the summed amount of both classified sides, without pairing."""

    strategy: Literal["sum_comparison"] = "sum_comparison"
    company_amount_column: str = ""
    bank_amount_column: str = ""
    # None keeps exact float equality for totals_match
    totals_tolerance: Optional[float] = None


class BankOnlyGroupingRules(_RuleSetBase):
    """Classify the bank statement only and bucket rows per matched pattern."""

    strategy: Literal["bank_only_grouping"] = "bank_only_grouping"
    bank_amount_column: Optional[str] = None


class ResidualRules(_RuleSetBase):
    """Rows matching no pattern of any other classification type."""

    strategy: Literal["residual"] = "residual"
    company: ClassificationRule = Field(
        default_factory=lambda: ClassificationRule(search_column=DEFAULT_COMPANY_SEARCH_COLUMN)
    )
    bank: ClassificationRule = Field(
        default_factory=lambda: ClassificationRule(search_column=DEFAULT_BANK_SEARCH_COLUMN)
    )


RuleSet = Annotated[
    Union[
        PairwiseRules,
        PairwiseWithReviewRules,
        SumComparisonRules,
        BankOnlyGroupingRules,
        ResidualRules,
    ],
    Field(discriminator="strategy"),
]

_RULE_SET_TYPES = (
    PairwiseRules,
    PairwiseWithReviewRules,
    SumComparisonRules,
    BankOnlyGroupingRules,
    ResidualRules,
)
_RULE_SET_ADAPTER: TypeAdapter = TypeAdapter(RuleSet)


class ValidationReport(BaseModel):
    """Outcome of a pre-flight rule check."""

    valid: bool
    errors: list[str] = Field(default_factory=list)


class IngestionConfig(BaseModel):
    """Configuration for reading ledgers and statements."""

    sheet: Union[int, str] = 0
    company_narrative_column: str = DEFAULT_COMPANY_SEARCH_COLUMN
    extract_check_numbers: bool = True


class ExcelOutputConfig(BaseModel):
    """Configuration for Excel output."""

    filename_template: str = "{name}_{timestamp}.xlsx"
    include_timestamp: bool = True
    summary_sheet_name: str = "Summary"


class OutputConfig(BaseModel):
    """Configuration for output."""

    excel: ExcelOutputConfig = Field(default_factory=ExcelOutputConfig)


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[str] = None


class ReconConfig(BaseModel):
    """Main configuration model for reconciliation."""

    classification_types: dict[str, RuleSet] = Field(default_factory=dict)
    ingestion: IngestionConfig = Field(default_factory=IngestionConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    batch_size: int = Field(default=500, ge=1)
    config_file_path: Optional[str] = None

    def get_rule_set(self, key: str):
        """
        Look up a classification type by key.

        Raises:
            ConfigurationError: If the key is unknown
        """
        try:
            return self.classification_types[key]
        except KeyError:
            available = ", ".join(self.classification_types) or "none"
            raise ConfigurationError(
                f"Unknown classification type '{key}' (available: {available})"
            ) from None


def parse_rule_set(data: Any):
    """
    Build a RuleSet from a mapping, dispatching on its 'strategy' field.

    Raises:
        ConfigurationError: If the mapping does not describe a valid rule set
    """
    if isinstance(data, _RULE_SET_TYPES):
        return data
    try:
        return _RULE_SET_ADAPTER.validate_python(_as_mapping(data))
    except ValidationError as e:
        errors = _format_validation_errors(e)
        raise ConfigurationError(f"Invalid rule set: {'; '.join(errors)}", errors) from e


def _as_mapping(data: Any) -> Any:
    # Non-rule-set models fail on the missing 'strategy' tag
    if isinstance(data, BaseModel):
        return data.model_dump()
    return data


def _format_validation_errors(error: ValidationError) -> list[str]:
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        messages.append(f"{location}: {item.get('msg')}" if location else str(item.get("msg")))
    return messages


def validate_rule_set(rules: Any) -> ValidationReport:
    """
    Check that a rule set carries everything its strategy needs.

    Never raises; schema problems in a raw mapping are reported as errors.

    Args:
        rules: A RuleSet model or a mapping describing one

    Returns:
        ValidationReport with the collected error messages
    """
    if rules is None:
        return ValidationReport(valid=False, errors=["No rules provided"])

    if not isinstance(rules, _RULE_SET_TYPES):
        try:
            rules = _RULE_SET_ADAPTER.validate_python(_as_mapping(rules))
        except ValidationError as e:
            return ValidationReport(valid=False, errors=_format_validation_errors(e))

    errors: list[str] = []

    if isinstance(rules, ResidualRules):
        # Search columns are optional, a missing one reports every row
        return ValidationReport(valid=True)

    if isinstance(rules, BankOnlyGroupingRules):
        _check_side(rules.bank, "Bank", errors)
        return ValidationReport(valid=not errors, errors=errors)

    _check_side(rules.company, "Company", errors)
    _check_side(rules.bank, "Bank", errors)

    if isinstance(rules, SumComparisonRules):
        if not rules.company_amount_column:
            errors.append("Company amount column not configured (required for sum calculation)")
        if not rules.bank_amount_column:
            errors.append("Bank amount column not configured (required for sum calculation)")

    elif isinstance(rules, PairwiseWithReviewRules):
        for column in rules.key_columns():
            _check_mapping(column, column.label or column.match_type, errors)

    elif isinstance(rules, PairwiseRules):
        if not rules.matching_columns:
            errors.append("No matching columns configured")
        for index, column in enumerate(rules.matching_columns, start=1):
            _check_mapping(column, f"Matching column {index}", errors)

    return ValidationReport(valid=not errors, errors=errors)


def _check_side(rule: ClassificationRule, side: str, errors: list[str]) -> None:
    if not rule.search_column:
        errors.append(f"{side} search column not configured")
    if not rule.patterns:
        errors.append(f"No {side.lower()} patterns configured")


def _check_mapping(column: MatchingColumnConfig, label: str, errors: list[str]) -> None:
    if not column.company_column:
        errors.append(f"{label}: Company column not selected")
    if not column.bank_column:
        errors.append(f"{label}: Bank column not selected")


def _patterns(*entries: tuple[str, str]) -> list[dict[str, str]]:
    return [{"text": text, "match_type": match_type} for text, match_type in entries]


def _side(patterns: list[dict[str, str]], search_column: str, filters=None) -> dict[str, Any]:
    return {
        "search_column": search_column,
        "patterns": patterns,
        "structural_filters": filters or [],
    }


def get_default_config() -> dict[str, Any]:
    """Return the default configuration, including built-in classification types."""
    company = DEFAULT_COMPANY_SEARCH_COLUMN
    bank = DEFAULT_BANK_SEARCH_COLUMN
    company_has_check = [
        {"column": EXTRACTED_CHECK_COLUMN, "condition": "has_exact_digit_count", "digits": 8}
    ]
    company_lacks_check = [
        {"column": EXTRACTED_CHECK_COLUMN, "condition": "lacks_exact_digit_count", "digits": 8}
    ]
    bank_has_doc = [{"column": "DOC-NUM", "condition": "has_exact_digit_count", "digits": 8}]
    bank_lacks_doc = [{"column": "DOC-NUM", "condition": "lacks_exact_digit_count", "digits": 8}]

    return {
        "classification_types": {
            "checks-collection": {
                "name": "Checks Collection",
                "strategy": "pairwise_with_review",
                "company": _side(
                    _patterns(
                        ("اعادة ايداع شيك راجع", "starts_with"),
                        ("ايداع شيكات مقاصة", "starts_with"),
                        ("و ذلك عن تحصيل شيك", "includes"),
                    ),
                    company,
                ),
                "bank": _side(
                    _patterns(
                        ("CHECK DEPOSIT", "starts_with"),
                        ("CLEAR. DEPO.", "starts_with"),
                        ("INTERNAL CLEARING", "includes"),
                    ),
                    bank,
                ),
                "amount": {"label": "Amount", "match_type": "numeric"},
                "check_number": {"label": "Check Number", "match_type": "text", "normalize": True},
                "date": {"label": "Date", "match_type": "date"},
                "date_tolerance": 4,
                "use_date_tolerance": True,
            },
            "returned-checks": {
                "name": "Returned Checks",
                "strategy": "pairwise",
                "company": _side(
                    _patterns(
                        ("شيك راجع", "starts_with"),
                        ("ارجاع شيك بعد اعادة ايداعه", "includes"),
                    ),
                    company,
                ),
                "bank": _side(
                    _patterns(
                        ("RETURN CHEQUE , TRANSIT", "starts_with"),
                        ("RETURNED CHECK FROM OTHER BANK", "includes"),
                        ("RETURNED POST DATED/INSTALLMENT CHEQUES", "includes"),
                    ),
                    bank,
                ),
                "matching_columns": [
                    {"label": "Amount", "match_type": "exact"},
                    {"label": "Check Number", "match_type": "text", "normalize": True},
                ],
                "date_tolerance": 0,
                "use_date_tolerance": False,
            },
            "cleared-checks": {
                "name": "Cleared Checks",
                "strategy": "pairwise_with_review",
                "company": _side(
                    _patterns(("سند صرف", "starts_with"), ("دفعة أدعاء", "starts_with")),
                    company,
                    company_has_check,
                ),
                "bank": _side(
                    _patterns(("CLEARING WITHDRAWAL", "starts_with")),
                    bank,
                    bank_has_doc,
                ),
                "amount": {"label": "Amount", "match_type": "numeric"},
                "check_number": {"label": "Check Number", "match_type": "text"},
                "date": {"label": "Date", "match_type": "date"},
                "use_date_tolerance": False,
            },
            "outgoing-transfers": {
                "name": "Outgoing Transfers",
                "strategy": "pairwise",
                "company": _side(
                    _patterns(("سند صرف", "starts_with"), ("دفعة أدعاء", "starts_with")),
                    company,
                    company_lacks_check,
                ),
                "bank": _side(
                    _patterns(
                        ("SWIFT TRANSFER", "starts_with"),
                        ("TRANSFER FROM AN ACCOUNT TO AN ACCOUNT", "starts_with"),
                    ),
                    bank,
                    bank_lacks_doc,
                ),
                "matching_columns": [
                    {"label": "Amount", "match_type": "exact"},
                    {"label": "Date", "match_type": "date"},
                ],
                "use_date_tolerance": False,
            },
            "cash-inflow": {
                "name": "Cash Inflow",
                "strategy": "pairwise",
                "company": _side(
                    _patterns(
                        ("حوالة ", "starts_with"),
                        ("نقل ختم", "starts_with"),
                        ("ايداع نقدي", "starts_with"),
                    ),
                    company,
                ),
                "bank": _side(
                    _patterns(
                        ("CASH DEPOSIT", "starts_with"),
                        ("Electronic Transfer", "starts_with"),
                        ("TRANSFER FROM AN ACCOUNT TO AN ACCOUNT", "includes"),
                    ),
                    bank,
                ),
                "matching_columns": [{"label": "Amount", "match_type": "exact"}],
                "date_tolerance": 0,
                "use_date_tolerance": False,
            },
            "visa-payment": {
                "name": "Visa Payment",
                "strategy": "pairwise",
                "company": _side(
                    _patterns(
                        ("ختم بوليصة سيارات", "starts_with"),
                        ("1112111102", "starts_with"),
                        ("فيزا", "starts_with"),
                    ),
                    company,
                ),
                "bank": _side(
                    _patterns(("Purchase", "starts_with"), ("LOAN TRANS", "includes")),
                    bank,
                ),
                "matching_columns": [
                    {"label": "Amount", "match_type": "numeric"},
                    {"label": "Date", "match_type": "date"},
                ],
                "date_tolerance": 3,
                "use_date_tolerance": True,
            },
            "salary": {
                "name": "Salary",
                "strategy": "sum_comparison",
                "company": _side(_patterns(("وذلك عن قيمة صافي رواتب", "starts_with")), company),
                "bank": _side(_patterns(("salary", "starts_with")), bank, bank_lacks_doc),
                "company_amount_column": "دائن",
                "bank_amount_column": "DEBIT",
            },
            "charges": {
                "name": "Bank Charges",
                "strategy": "bank_only_grouping",
                "bank": _side(
                    _patterns(
                        ("CHEQUES DEPOSIT CHARGES", "includes"),
                        ("RETURNED CHEQUES CHARGES", "includes"),
                        ("Returned Postdated cheques commission", "includes"),
                        ("ADDITIONAL COMMISSION", "includes"),
                        ("COMMISSION/OUTWARD TRANSFERS", "includes"),
                        ("CHEQUE BOOK ISSUE CHARGES", "includes"),
                        ("INTEREST CAPITALIZATION TRANSACTIONS", "includes"),
                        ("A/C MANAGEMENT COMMISSION", "includes"),
                        ("ATM TRANSACTION /POS /CARD FEES", "includes"),
                        ("DAILY DEPOSITS COMMISSION", "includes"),
                        ("MONTHLY DEPOSITS COMMISSION", "includes"),
                        ("STANDING INSTUCTION", "includes"),
                    ),
                    bank,
                ),
                "bank_amount_column": "DEBIT",
            },
            "fund-account": {
                "name": "Funding the Account",
                "strategy": "bank_only_grouping",
                "bank": _side(
                    _patterns(
                        ("BUYING/SELLING FOREIGN CURRENCY", "includes"),
                        ("FUND TRANSFER - OWN ACCOUNTS", "includes"),
                    ),
                    bank,
                ),
                "bank_amount_column": "DEBIT",
            },
            "unclassified": {
                "name": "Other Transactions (Unclassified)",
                "strategy": "residual",
                "company": _side([], company),
                "bank": _side([], bank),
            },
        },
        "ingestion": {
            "sheet": 0,
            "company_narrative_column": company,
            "extract_check_numbers": True,
        },
        "output": {
            "excel": {
                "filename_template": "{name}_{timestamp}.xlsx",
                "include_timestamp": True,
                "summary_sheet_name": "Summary",
            },
        },
        "logging": {
            "level": "INFO",
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        },
        "batch_size": 500,
    }


def load_config(config_path: Optional[Path] = None) -> ReconConfig:
    """
    Load configuration from a YAML file or use defaults.

    Args:
        config_path: Path to YAML configuration file (optional)

    Returns:
        ReconConfig object with loaded or default settings

    Raises:
        ConfigurationError: If the merged configuration is invalid
    """
    config_dict = get_default_config()

    if config_path and config_path.exists():
        logger.info(f"Loading configuration from: {config_path}")
        with open(config_path, "r", encoding="utf-8") as f:
            user_config = yaml.safe_load(f) or {}

        # Deep merge user config into defaults
        config_dict = _deep_merge(config_dict, user_config)
        config_dict["config_file_path"] = str(config_path)
    else:
        logger.info("Using default configuration")

    try:
        return ReconConfig(**config_dict)
    except ValidationError as e:
        errors = _format_validation_errors(e)
        raise ConfigurationError(f"Invalid configuration: {'; '.join(errors)}", errors) from e


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Deep merge two dictionaries.

    Args:
        base: Base dictionary
        override: Dictionary to merge on top

    Returns:
        Merged dictionary
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def generate_default_config(output_path: Path) -> None:
    """
    Generate a default configuration file.

    Args:
        output_path: Path to write the configuration file
    """
    config_dict = get_default_config()

    yaml_content = """# Company ledger / bank statement reconciliation configuration
# Fill in company_column / bank_column for each matching column before running

"""
    yaml_content += yaml.safe_dump(
        config_dict, default_flow_style=False, sort_keys=False, allow_unicode=True
    )

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        f.write(yaml_content)

    logger.info(f"Generated configuration file: {output_path}")

"""Company ledger / bank statement reconciliation."""

__version__ = "0.1.0"

from .config import ReconConfig, load_config, parse_rule_set, validate_rule_set
from .matching.engine import ReconciliationEngine
from .models import ReconciliationResult, Table

__all__ = [
    "__version__",
    "ReconConfig",
    "ReconciliationEngine",
    "ReconciliationResult",
    "Table",
    "load_config",
    "parse_rule_set",
    "validate_rule_set",
]

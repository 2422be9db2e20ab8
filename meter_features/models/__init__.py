"""Data models for meter records and run results."""

from .customer_record import CustomerRecord, DateFilter
from .results import Failure, RunResult, UnitOutcome, is_failure

__all__ = [
    "CustomerRecord",
    "DateFilter",
    "Failure",
    "RunResult",
    "UnitOutcome",
    "is_failure",
]

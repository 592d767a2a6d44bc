"""Public interface for the ``finance_flow`` package.

This module exposes the package's API functions and public models/types as the
stable import surface. There is no runtime logic here, only symbol re-exports.
"""

from .api import parse_statement_text, process_statement
from .models import (
    UNCATEGORIZED,
    CashRecord,
    CategoryRule,
    CreditRecord,
    DepositRecord,
    ExistingRecords,
    ProcessResult,
    RawCreditEntry,
    RawDepositEntry,
    ReplacementRule,
    SkipCounts,
    StatementType,
)

__all__ = [
    # API
    "parse_statement_text",
    "process_statement",
    # Models
    "UNCATEGORIZED",
    "CashRecord",
    "CategoryRule",
    "CreditRecord",
    "DepositRecord",
    "ExistingRecords",
    "ProcessResult",
    "RawCreditEntry",
    "RawDepositEntry",
    "ReplacementRule",
    "SkipCounts",
    "StatementType",
]

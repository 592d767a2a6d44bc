"""Data models and type aliases for ``finance_flow``.

Parsed statement rows are frozen, slotted dataclasses: they are created once
per parse invocation and never mutated afterwards (refinement stages build new
instances with :func:`dataclasses.replace`). User-supplied rules are Pydantic
models so they can be validated when loaded from JSON settings.

Amounts are :class:`~decimal.Decimal` values. Dates and times are kept as the
strings printed on the statement (``MM/DD`` or ``YYYY/MM/DD``; ``HH:MM:SS``)
because they participate verbatim in record identity.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from enum import StrEnum
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field

# Category assigned when neither a rule, the statement, nor the store supplies one.
UNCATEGORIZED = "未分類"


class StatementType(StrEnum):
    """Statement dialect family of a block of pasted text."""

    CREDIT_CARD = "credit_card"
    DEPOSIT_ACCOUNT = "deposit_account"
    UNKNOWN = "unknown"


class RecordFamily(StrEnum):
    """Output record family selected by a spreadsheet type tag."""

    CREDIT = "credit"
    DEPOSIT = "deposit"
    CASH = "cash"


# ---------------------------------------------------------------------------
# Parsed records
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RawCreditEntry:
    """A credit-card statement line as extracted by the parser.

    ``id`` hashes ``(transaction_date, posting_date, description, amount)``;
    ``initial_category`` is the category printed on the statement line, if
    the dialect carries one, and never participates in identity.
    """

    id: str
    transaction_date: str
    posting_date: str
    description: str
    amount: Decimal
    bank_code: str | None = None
    initial_category: str | None = None


@dataclass(frozen=True, slots=True)
class CreditRecord:
    """A credit-card entry after replacement and category rules."""

    id: str
    transaction_date: str
    posting_date: str
    description: str
    amount: Decimal
    category: str
    bank_code: str | None = None


@dataclass(frozen=True, slots=True)
class RawDepositEntry:
    """A deposit-account ledger entry as extracted by the parser.

    ``amount`` is positive for withdrawals (expense) and negative for deposits
    (income). ``bank_code`` carries the remark, which may be completed from a
    continuation line and is therefore excluded from ``id``.
    """

    id: str
    date: str
    time: str
    description: str
    amount: Decimal
    bank_code: str | None = None


@dataclass(frozen=True, slots=True)
class DepositRecord:
    id: str
    date: str
    time: str
    description: str
    amount: Decimal
    category: str
    bank_code: str | None = None


@dataclass(frozen=True, slots=True)
class CashRecord:
    id: str
    date: str
    description: str
    amount: Decimal
    category: str
    notes: str | None = None


class Identified(Protocol):
    """Anything carrying a content-derived record id."""

    @property
    def id(self) -> str: ...


@dataclass(frozen=True, slots=True)
class ExistingRecords:
    """The caller-owned record store, treated as read-only input."""

    credit: Sequence[CreditRecord] = ()
    deposit: Sequence[DepositRecord] = ()
    cash: Sequence[CashRecord] = ()


@dataclass(frozen=True, slots=True)
class SkipCounts:
    """Per-family count of records dropped because their id already exists."""

    credit: int = 0
    deposit: int = 0
    cash: int = 0


@dataclass(frozen=True, slots=True)
class ProcessResult:
    """Outcome of one :func:`finance_flow.api.process_statement` call.

    On failure every collection is empty, ``skipped_duplicates`` is all zeros
    and ``error`` holds a human-readable message.
    """

    success: bool
    credit_data: list[CreditRecord] = field(default_factory=list)
    deposit_data: list[DepositRecord] = field(default_factory=list)
    cash_data: list[CashRecord] = field(default_factory=list)
    detected_categories: list[str] = field(default_factory=list)
    skipped_duplicates: SkipCounts = field(default_factory=SkipCounts)
    error: str | None = None

    @classmethod
    def failure(cls, message: str) -> ProcessResult:
        return cls(success=False, error=message)


# ---------------------------------------------------------------------------
# User-supplied rules
# ---------------------------------------------------------------------------


class ReplacementRule(BaseModel):
    """Find/replace rule applied to descriptions and remarks.

    ``find`` is tried as a regular expression and falls back to a literal
    substring when it does not compile. ``delete_row`` drops the whole record
    on a match. The JSON alias ``deleteRow`` is accepted for settings exported
    by the web front end.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, str_strip_whitespace=False)

    find: str
    replace: str = ""
    delete_row: bool = Field(default=False, alias="deleteRow")
    notes: str | None = None


class CategoryRule(BaseModel):
    """Keyword -> category mapping; first substring match wins."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    keyword: str
    category: str


__all__ = [
    "UNCATEGORIZED",
    "StatementType",
    "RecordFamily",
    "RawCreditEntry",
    "CreditRecord",
    "RawDepositEntry",
    "DepositRecord",
    "CashRecord",
    "Identified",
    "ExistingRecords",
    "SkipCounts",
    "ProcessResult",
    "ReplacementRule",
    "CategoryRule",
]

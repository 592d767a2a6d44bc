"""JSON file persistence for user rules and the record store.

The parsing pipeline treats the record store as caller-owned, read-only input.
This module is the CLI's caller side of that contract: it loads rules and
previously accepted records from JSON files, and writes the merged store back.

File shapes use the camelCase keys of settings exported by the web front end
(``transactionDate``, ``bankCode``, ``deleteRow`` ...); snake_case keys are
accepted as well. Amounts are written as strings.

Locations (``.env`` values are honored; real environment variables win):

- ``FINANCE_FLOW_STORE_PATH``: store file, default ``./.finance_flow/store.json``
- ``FINANCE_FLOW_RULES_PATH``: rules file, optional

Atomicity: writes target ``.tmp`` first and then ``os.replace`` into place.
"""

from __future__ import annotations

import contextlib
import json
import os
from decimal import Decimal
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from .logging_setup import get_logger
from .models import (
    UNCATEGORIZED,
    CashRecord,
    CategoryRule,
    CreditRecord,
    DepositRecord,
    ExistingRecords,
    ProcessResult,
    ReplacementRule,
)

# Store schema version; bump only when the on-disk JSON shape changes.
SCHEMA_VERSION: int = 1

STORE_PATH_ENV = "FINANCE_FLOW_STORE_PATH"
RULES_PATH_ENV = "FINANCE_FLOW_RULES_PATH"

_logger = get_logger("finance_flow.store")


# ---------------------------------------------------------------------------
# File schemas
# ---------------------------------------------------------------------------


class _StoredModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class StoredCreditRecord(_StoredModel):
    id: str
    transaction_date: str = Field(alias="transactionDate")
    # Older exports carry no posting date.
    posting_date: str = Field(default="", alias="postingDate")
    description: str
    amount: Decimal
    category: str = UNCATEGORIZED
    bank_code: str | None = Field(default=None, alias="bankCode")

    @classmethod
    def from_record(cls, record: CreditRecord) -> StoredCreditRecord:
        return cls(
            id=record.id,
            transaction_date=record.transaction_date,
            posting_date=record.posting_date,
            description=record.description,
            amount=record.amount,
            category=record.category,
            bank_code=record.bank_code,
        )

    def to_record(self) -> CreditRecord:
        return CreditRecord(
            id=self.id,
            transaction_date=self.transaction_date,
            posting_date=self.posting_date or self.transaction_date,
            description=self.description,
            amount=self.amount,
            category=self.category,
            bank_code=self.bank_code,
        )


class StoredDepositRecord(_StoredModel):
    id: str
    date: str
    time: str = ""
    description: str
    amount: Decimal
    category: str = UNCATEGORIZED
    bank_code: str | None = Field(default=None, alias="bankCode")

    @classmethod
    def from_record(cls, record: DepositRecord) -> StoredDepositRecord:
        return cls(
            id=record.id,
            date=record.date,
            time=record.time,
            description=record.description,
            amount=record.amount,
            category=record.category,
            bank_code=record.bank_code,
        )

    def to_record(self) -> DepositRecord:
        return DepositRecord(
            id=self.id,
            date=self.date,
            time=self.time,
            description=self.description,
            amount=self.amount,
            category=self.category,
            bank_code=self.bank_code,
        )


class StoredCashRecord(_StoredModel):
    id: str
    date: str
    description: str
    amount: Decimal
    category: str = UNCATEGORIZED
    notes: str | None = None

    @classmethod
    def from_record(cls, record: CashRecord) -> StoredCashRecord:
        return cls(
            id=record.id,
            date=record.date,
            description=record.description,
            amount=record.amount,
            category=record.category,
            notes=record.notes,
        )

    def to_record(self) -> CashRecord:
        return CashRecord(
            id=self.id,
            date=self.date,
            description=self.description,
            amount=self.amount,
            category=self.category,
            notes=self.notes,
        )


class StoreFile(BaseModel):
    """Top-level schema of the record store JSON file."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    schema_version: int = Field(default=SCHEMA_VERSION, alias="schemaVersion")
    credit: list[StoredCreditRecord] = Field(default_factory=list)
    deposit: list[StoredDepositRecord] = Field(default_factory=list)
    cash: list[StoredCashRecord] = Field(default_factory=list)


class RulesFile(BaseModel):
    """Top-level schema of the user rules JSON file."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    replacement_rules: list[ReplacementRule] = Field(
        default_factory=list, alias="replacementRules"
    )
    category_rules: list[CategoryRule] = Field(default_factory=list, alias="categoryRules")


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


def resolve_store_path(path: str | os.PathLike[str] | None = None) -> Path:
    """Return the store path: argument, then ``FINANCE_FLOW_STORE_PATH``, then default."""

    if path is not None:
        return Path(path).expanduser()
    env_val = os.getenv(STORE_PATH_ENV)
    if env_val and env_val.strip():
        return Path(env_val.strip()).expanduser()
    return Path.cwd() / ".finance_flow" / "store.json"


def resolve_rules_path(path: str | os.PathLike[str] | None = None) -> Path | None:
    if path is not None:
        return Path(path).expanduser()
    env_val = os.getenv(RULES_PATH_ENV)
    if env_val and env_val.strip():
        return Path(env_val.strip()).expanduser()
    return None


# ---------------------------------------------------------------------------
# Load / save
# ---------------------------------------------------------------------------


def load_rules(path: str | os.PathLike[str] | None) -> RulesFile:
    """Load rules from ``path``; ``None`` means no rules.

    Raises ``OSError`` when the file cannot be read and ``ValueError``
    (pydantic ``ValidationError``) when its content is malformed.
    """

    if path is None:
        return RulesFile()
    text = Path(path).read_text(encoding="utf-8")
    rules = RulesFile.model_validate_json(text)
    _logger.debug(
        "Loaded %d replacement and %d category rules from %s",
        len(rules.replacement_rules),
        len(rules.category_rules),
        os.fspath(path),
    )
    return rules


def load_store(path: str | os.PathLike[str]) -> ExistingRecords:
    """Load the record store; a missing file is an empty store."""

    p = Path(path)
    if not p.exists():
        _logger.debug("No store at %s; starting empty", os.fspath(p))
        return ExistingRecords()
    parsed = StoreFile.model_validate_json(p.read_text(encoding="utf-8"))
    if parsed.schema_version != SCHEMA_VERSION:
        raise ValueError(
            f"Unsupported store schema_version {parsed.schema_version} in {os.fspath(p)} "
            f"(expected {SCHEMA_VERSION})"
        )
    return ExistingRecords(
        credit=tuple(r.to_record() for r in parsed.credit),
        deposit=tuple(r.to_record() for r in parsed.deposit),
        cash=tuple(r.to_record() for r in parsed.cash),
    )


def dump_store(records: ExistingRecords) -> dict[str, object]:
    """Return the JSON-ready mapping written by :func:`save_store`."""

    payload = StoreFile(
        credit=[StoredCreditRecord.from_record(r) for r in records.credit],
        deposit=[StoredDepositRecord.from_record(r) for r in records.deposit],
        cash=[StoredCashRecord.from_record(r) for r in records.cash],
    )
    return payload.model_dump(mode="json", by_alias=True)


def save_store(path: str | os.PathLike[str], records: ExistingRecords) -> None:
    """Write ``records`` to ``path`` atomically, creating parent directories."""

    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    tmp = p.with_suffix(p.suffix + ".tmp")

    # Write atomically, cleaning up the temp file on failure
    try:
        tmp.write_text(
            json.dumps(dump_store(records), ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
        os.replace(tmp, p)
    except Exception:
        with contextlib.suppress(FileNotFoundError):
            tmp.unlink()
        raise
    _logger.info(
        "Saved store to %s (%d credit, %d deposit, %d cash)",
        os.fspath(p),
        len(records.credit),
        len(records.deposit),
        len(records.cash),
    )


def merge_into_store(existing: ExistingRecords, result: ProcessResult) -> ExistingRecords:
    """Return a new store with the accepted records of ``result`` appended."""

    if not result.success:
        return existing
    return ExistingRecords(
        credit=(*existing.credit, *result.credit_data),
        deposit=(*existing.deposit, *result.deposit_data),
        cash=(*existing.cash, *result.cash_data),
    )


__all__ = [
    "SCHEMA_VERSION",
    "STORE_PATH_ENV",
    "RULES_PATH_ENV",
    "StoredCreditRecord",
    "StoredDepositRecord",
    "StoredCashRecord",
    "StoreFile",
    "RulesFile",
    "resolve_store_path",
    "resolve_rules_path",
    "load_rules",
    "load_store",
    "dump_store",
    "save_store",
    "merge_into_store",
]

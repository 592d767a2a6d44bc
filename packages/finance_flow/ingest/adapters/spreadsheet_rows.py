"""Adapter for spreadsheet imports handed over as a 2-D cell grid.

Column order (one transaction per row; an optional header row is skipped):

0. date: ``datetime``/``date``, Excel serial number, or ``YYYY/M/D`` text
1. category
2. description
3. amount (thousands separators allowed; unparseable -> 0)
4. type tag: selects the credit, cash or deposit record family
5. notes/remark

Unlike the text adapters this path is lossless: rows with imperfect fields
are kept (placeholder date, zero amount, default category); only rows with
no content at all are skipped.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any

from ...fingerprint import record_id
from ...logging_setup import get_logger
from ...models import (
    UNCATEGORIZED,
    CashRecord,
    CreditRecord,
    DepositRecord,
    RecordFamily,
)
from ..classifier import is_header_row, record_family_for_tag
from ..utils import normalize_full_date

_logger = get_logger("finance_flow.ingest.spreadsheet")

# Day zero of the spreadsheet serial-date system (with the 1900 leap-year bug folded in).
EXCEL_EPOCH = date(1899, 12, 30)
PLACEHOLDER_DATE = "0000/00/00"

_SERIAL_TEXT_RE = re.compile(r"^\d{4,6}(?:\.\d+)?$")

COL_DATE, COL_CATEGORY, COL_DESCRIPTION, COL_AMOUNT, COL_TYPE, COL_NOTES = range(6)


@dataclass(frozen=True, slots=True)
class ParsedSpreadsheet:
    credit: list[CreditRecord] = field(default_factory=list)
    deposit: list[DepositRecord] = field(default_factory=list)
    cash: list[CashRecord] = field(default_factory=list)
    detected_categories: list[str] = field(default_factory=list)


def _cell_text(cell: Any) -> str:
    if cell is None:
        return ""
    return str(cell).strip()


def _from_serial(serial: float) -> str | None:
    try:
        day = EXCEL_EPOCH + timedelta(days=int(serial))
    except (OverflowError, ValueError):
        return None
    return day.strftime("%Y/%m/%d")


def coerce_sheet_date(cell: Any) -> str | None:
    """Return ``YYYY/MM/DD`` for a date-like cell, or ``None``."""

    if isinstance(cell, (datetime, date)):
        return cell.strftime("%Y/%m/%d")
    if isinstance(cell, bool):
        return None
    if isinstance(cell, (int, float)):
        return _from_serial(cell)
    text = _cell_text(cell)
    if not text:
        return None
    # Drop a time-of-day suffix ("2024/05/01 00:00:00").
    first = text.split()[0]
    normalized = normalize_full_date(first)
    if normalized is not None:
        return normalized
    if _SERIAL_TEXT_RE.match(first):
        return _from_serial(float(first))
    return None


def coerce_sheet_amount(cell: Any) -> Decimal:
    """Return the cell as a Decimal; anything unparseable is zero."""

    if isinstance(cell, bool) or cell is None:
        return Decimal(0)
    if isinstance(cell, Decimal):
        return cell
    if isinstance(cell, (int, float)):
        value = Decimal(str(cell))
        return value if value.is_finite() else Decimal(0)
    text = _cell_text(cell).replace(",", "")
    if not text:
        return Decimal(0)
    try:
        value = Decimal(text)
    except InvalidOperation:
        return Decimal(0)
    return value if value.is_finite() else Decimal(0)


def _month_day(full_date: str) -> str:
    return full_date[5:] if normalize_full_date(full_date) == full_date else full_date


def parse_spreadsheet_rows(grid: Sequence[Sequence[Any]] | None) -> ParsedSpreadsheet:
    """Map ``grid`` rows onto credit, deposit and cash records."""

    if not grid:
        return ParsedSpreadsheet()

    rows = list(grid)
    if rows and rows[0] is not None and is_header_row(rows[0]):
        rows = rows[1:]

    result = ParsedSpreadsheet()
    categories: dict[str, None] = {}
    for pos, row in enumerate(rows):
        cells = list(row or ())
        if not any(_cell_text(c) for c in cells):
            continue
        cells.extend([None] * (6 - len(cells)))

        date_str = coerce_sheet_date(cells[COL_DATE])
        if date_str is None:
            date_str = _cell_text(cells[COL_DATE]) or PLACEHOLDER_DATE
            _logger.debug("sheet: row %d has no parseable date; keeping %r", pos, date_str)
        category = _cell_text(cells[COL_CATEGORY]) or UNCATEGORIZED
        description = _cell_text(cells[COL_DESCRIPTION])
        amount = coerce_sheet_amount(cells[COL_AMOUNT])
        type_tag = _cell_text(cells[COL_TYPE])
        notes = _cell_text(cells[COL_NOTES]) or None

        categories.setdefault(category, None)
        rid = record_id(date_str, description, amount, type_tag)

        family = record_family_for_tag(type_tag)
        if family is RecordFamily.CREDIT:
            result.credit.append(
                CreditRecord(
                    id=rid,
                    transaction_date=_month_day(date_str),
                    posting_date=date_str,
                    description=description,
                    amount=amount,
                    category=category,
                    bank_code=notes,
                )
            )
        elif family is RecordFamily.CASH:
            result.cash.append(
                CashRecord(
                    id=rid,
                    date=date_str,
                    description=description,
                    amount=amount,
                    category=category,
                    notes=notes,
                )
            )
        else:
            result.deposit.append(
                DepositRecord(
                    id=rid,
                    date=date_str,
                    time="",
                    description=description,
                    amount=amount,
                    category=category,
                    bank_code=notes,
                )
            )

    result.detected_categories.extend(categories)
    _logger.debug(
        "sheet: %d credit, %d deposit, %d cash rows",
        len(result.credit),
        len(result.deposit),
        len(result.cash),
    )
    return result


__all__ = [
    "EXCEL_EPOCH",
    "PLACEHOLDER_DATE",
    "ParsedSpreadsheet",
    "coerce_sheet_date",
    "coerce_sheet_amount",
    "parse_spreadsheet_rows",
]

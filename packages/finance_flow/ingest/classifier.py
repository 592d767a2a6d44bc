"""Line and section classification for pasted statement text.

Pasted text mixes several statement dialects. This module decides, per line,
which primary shape a line has and, per section, which parser family should
run first. Spreadsheet imports are classified by their explicit type-tag
column instead (:func:`record_family_for_tag`).
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import date, datetime
from enum import StrEnum
from typing import Any

from ..models import RecordFamily, StatementType
from .utils import (
    FULL_DATE_RE,
    LEADING_DATE_RE,
    LEADING_TIME_RE,
    normalize_line,
)


class LineKind(StrEnum):
    BLANK = "blank"
    HEADER = "header"
    DEPOSIT_DATE_HEADER = "deposit_date_header"
    DEPOSIT_TRANSACTION = "deposit_transaction"
    DEPOSIT_DATED_ROW = "deposit_dated_row"
    CREDIT_CANDIDATE = "credit_candidate"
    OTHER = "other"


# Column labels printed in statement header rows.
TEXT_HEADER_LABELS: tuple[str, ...] = (
    "交易日期",
    "入帳日期",
    "交易時間",
    "帳務日期",
    "摘要",
    "支出",
    "存入",
    "餘額",
    "交易項目",
)

# Column labels recognized in the first row of a spreadsheet grid.
SHEET_HEADER_LABELS: frozenset[str] = frozenset(
    {
        "日期",
        "種類",
        "用途",
        "內容",
        "金額",
        "備註",
        "date",
        "category",
        "type",
        "description",
        "amount",
        "notes",
    }
)

# Spreadsheet type tags naming bank products.
CREDIT_TYPE_TAGS: frozenset[str] = frozenset({"玉山信"})
CASH_TYPE_TAGS: frozenset[str] = frozenset({"現金"})
DEPOSIT_TYPE_TAGS: frozenset[str] = frozenset({"兆豐匯", "玉山匯"})

# Statements concatenated in one paste each begin with this column label.
SECTION_MARKER = "交易日期"

_SECTION_SPLIT_RE = re.compile(f"(?={SECTION_MARKER})")
# One row's amount glued onto the next row's two date columns: ``37812/28\t12/29``.
_GLUED_ROW_RE = re.compile(r"(\d)(\d{2}/\d{2}[ \t]+\d{2}/\d{2})")
# A row glued onto a card-number banner ending in a full-width parenthesis.
_BANNER_ROW_RE = re.compile(r"）[ \t]*(\d{2}/\d{2})")
_DATED_ROW_RE = re.compile(r"^\d{4}/\d{1,2}/\d{1,2}\s+\d{2}:\d{2}:\d{2}(?:\s|$)")
# Full-date row with tab columns and no time: a deposit layout that prints no time.
_UNTIMED_DEPOSIT_ROW_RE = re.compile(r"^\d{4}/\d{1,2}/\d{1,2}\t[^\t]*\t[^\t]*\t")


def _looks_like_header(line: str) -> bool:
    hits = sum(1 for label in TEXT_HEADER_LABELS if label in line)
    return hits >= 2 or line.startswith(SECTION_MARKER)


def classify_line(raw_line: str) -> LineKind:
    """Return the primary shape of a single statement line.

    Order matters: a bare ``YYYY/MM/DD`` line is a deposit date header even
    though it also starts with a credit-card date token.
    """

    line = normalize_line(raw_line)
    if not line:
        return LineKind.BLANK
    if FULL_DATE_RE.match(line):
        return LineKind.DEPOSIT_DATE_HEADER
    if LEADING_TIME_RE.match(line):
        return LineKind.DEPOSIT_TRANSACTION
    if _DATED_ROW_RE.match(line):
        return LineKind.DEPOSIT_DATED_ROW
    if LEADING_DATE_RE.match(line):
        return LineKind.CREDIT_CANDIDATE
    if _looks_like_header(line):
        return LineKind.HEADER
    return LineKind.OTHER


def split_sections(text: str) -> list[str]:
    """Split a paste into per-statement sections at each ``交易日期`` label."""

    sections = [s for s in _SECTION_SPLIT_RE.split(text) if s.strip()]
    return sections or ([text] if text.strip() else [])


def split_glued_rows(text: str) -> str:
    """Re-insert newlines lost when a card statement was copied from a PDF."""

    text = _GLUED_ROW_RE.sub(r"\1\n\2", text)
    return _BANNER_ROW_RE.sub("）\n\\1", text)


def detect_statement_type(section: str) -> StatementType:
    """Pick the parser family for ``section`` from the shapes of its lines."""

    kinds = {classify_line(line) for line in section.splitlines()}
    if LineKind.DEPOSIT_TRANSACTION in kinds or LineKind.DEPOSIT_DATED_ROW in kinds:
        return StatementType.DEPOSIT_ACCOUNT
    if LineKind.CREDIT_CANDIDATE in kinds:
        return StatementType.CREDIT_CARD
    return StatementType.UNKNOWN


def is_card_row(raw_line: str) -> bool:
    """True for a credit-card row that cannot be an untimed deposit row."""

    if classify_line(raw_line) is not LineKind.CREDIT_CANDIDATE:
        return False
    return not _UNTIMED_DEPOSIT_ROW_RE.match(normalize_line(raw_line, keep_tabs=True))


def is_mixed_section(section: str) -> bool:
    """True when ``section`` interleaves card rows with deposit transactions."""

    lines = section.splitlines()
    kinds = {classify_line(line) for line in lines}
    if LineKind.DEPOSIT_TRANSACTION not in kinds and LineKind.DEPOSIT_DATED_ROW not in kinds:
        return False
    return any(is_card_row(line) for line in lines)


def coerce_statement_type(value: Any) -> StatementType:
    """Map a classifier answer (enum or string) onto :class:`StatementType`."""

    if isinstance(value, StatementType):
        return value
    if isinstance(value, str):
        try:
            return StatementType(value.strip().lower())
        except ValueError:
            return StatementType.UNKNOWN
    return StatementType.UNKNOWN


# ---------------------------------------------------------------------------
# Spreadsheet grid
# ---------------------------------------------------------------------------


def is_header_row(cells: Sequence[Any]) -> bool:
    """True when any string cell of ``cells`` is a known column label."""

    for cell in cells:
        if isinstance(cell, (datetime, date)) or not isinstance(cell, str):
            continue
        if cell.strip().lower() in SHEET_HEADER_LABELS:
            return True
    return False


def record_family_for_tag(tag: str) -> RecordFamily:
    """Map a spreadsheet type tag to its output family (deposit by default)."""

    t = tag.strip()
    if t in CREDIT_TYPE_TAGS:
        return RecordFamily.CREDIT
    if t in CASH_TYPE_TAGS:
        return RecordFamily.CASH
    if t in DEPOSIT_TYPE_TAGS:
        return RecordFamily.DEPOSIT
    # Unrecognized tags: deposit account is the most general ledger shape.
    return RecordFamily.DEPOSIT


__all__ = [
    "LineKind",
    "TEXT_HEADER_LABELS",
    "SHEET_HEADER_LABELS",
    "CREDIT_TYPE_TAGS",
    "CASH_TYPE_TAGS",
    "DEPOSIT_TYPE_TAGS",
    "SECTION_MARKER",
    "classify_line",
    "split_sections",
    "split_glued_rows",
    "detect_statement_type",
    "is_card_row",
    "is_mixed_section",
    "coerce_statement_type",
    "is_header_row",
    "record_family_for_tag",
]

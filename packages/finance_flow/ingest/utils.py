"""Token-level helpers shared by the statement adapters.

Covers line normalization, the date/time token patterns every dialect is
recognized by, and amount parsing (thousands separators, explicit signs and
the empty-column placeholders some banks print).
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

# ---------------------------------------------------------------------------
# Token patterns
# ---------------------------------------------------------------------------

FULL_DATE_RE = re.compile(r"^\d{4}/\d{1,2}/\d{1,2}$")
# ``MM/DD`` or ``YYYY/MM/DD`` (single-digit month/day accepted).
DATE_TOKEN_RE = re.compile(r"^(?:\d{4}/)?\d{1,2}/\d{1,2}$")
LEADING_DATE_RE = re.compile(r"^(?:\d{4}/)?\d{1,2}/\d{1,2}")
LEADING_TIME_RE = re.compile(r"^\d{2}:\d{2}:\d{2}")

_AMOUNT_RE = re.compile(r"^[+-]?\d[\d,]*(?:\.\d+)?$")

# Printed in place of an empty numeric column by some deposit statements.
EMPTY_COLUMN_PLACEHOLDERS = frozenset({"-", "－", "--"})

# Three-letter ISO currency codes precede the foreign amount on card statements.
CURRENCY_CODE_RE = re.compile(r"^[A-Z]{3}$")


def normalize_line(line: str, *, keep_tabs: bool = False) -> str:
    """Replace ideographic spaces and trim.

    Inner tabs are always preserved. With ``keep_tabs`` leading/trailing tabs
    survive too, so trailing empty columns of a tab-delimited row still count.
    """

    line = line.replace("\u3000", " ")
    if keep_tabs:
        return line.strip(" \r\n\f\v")
    return line.strip()


def is_date_token(token: str) -> bool:
    return bool(DATE_TOKEN_RE.match(token))


def is_amount_token(token: str) -> bool:
    """True when ``token`` reads as a signed decimal with optional separators."""

    return bool(_AMOUNT_RE.match(token.strip()))


def parse_amount(token: str | None) -> Decimal | None:
    """Parse ``token`` into a :class:`Decimal`, or ``None`` when not numeric.

    Thousands separators are dropped; a leading ``+`` or ``-`` is honored.
    """

    if token is None:
        return None
    s = token.strip()
    if not _AMOUNT_RE.match(s):
        return None
    try:
        return Decimal(s.replace(",", ""))
    except InvalidOperation:
        return None


def parse_column_amount(cell: str | None) -> Decimal | None:
    """Parse a numeric ledger column; empty cells and placeholders are zero.

    Returns ``None`` only when the cell holds text that is not an amount.
    """

    if cell is None:
        return Decimal(0)
    s = cell.strip()
    if not s or s in EMPTY_COLUMN_PLACEHOLDERS:
        return Decimal(0)
    return parse_amount(s)


def normalize_full_date(text: str) -> str | None:
    """Return ``YYYY/MM/DD`` (zero-padded) for ``YYYY/M/D`` or ``YYYY-M-D``."""

    m = re.match(r"^(\d{4})[/-](\d{1,2})[/-](\d{1,2})$", text.strip())
    if not m:
        return None
    year, month, day = (int(g) for g in m.groups())
    if not (1 <= month <= 12 and 1 <= day <= 31):
        return None
    return f"{year:04d}/{month:02d}/{day:02d}"


__all__ = [
    "FULL_DATE_RE",
    "DATE_TOKEN_RE",
    "LEADING_DATE_RE",
    "LEADING_TIME_RE",
    "CURRENCY_CODE_RE",
    "EMPTY_COLUMN_PLACEHOLDERS",
    "normalize_line",
    "is_date_token",
    "is_amount_token",
    "parse_amount",
    "parse_column_amount",
    "normalize_full_date",
]

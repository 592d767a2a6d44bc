"""Adapter for credit-card statement text pasted from Taiwanese card issuers.

Line shapes handled (tokens are whitespace-delimited after normalizing
ideographic spaces):

``<txn date> [<posting date>] [<category>] <description...> <amount> [<ref>]``

- Dates are ``MM/DD`` or ``YYYY/MM/DD``; when the posting date is absent it
  equals the transaction date. Two dates glued together (``11/0211/02``) are
  split.
- ``amount`` is the trailing signed number (thousands separators allowed),
  kept with its printed sign.
- A known category label printed directly after the dates (``吃 摩斯漢堡``)
  becomes ``initial_category``. Any other leading token stays part of the
  merchant name (``麥當勞 信義店``).
- A reference of four or more digits after the amount becomes ``bank_code``
  unless the number pair is a foreign-currency amount (``USD 10.83 341``) or
  the would-be amount has a leading zero (``統一超商 0827 150``).

Lines without a numeric amount or with an empty description are skipped.
"""

from __future__ import annotations

import re
from collections.abc import Collection
from dataclasses import dataclass
from decimal import Decimal

from ...fingerprint import record_id
from ...logging_setup import get_logger
from ...models import UNCATEGORIZED, RawCreditEntry
from ..classifier import LineKind, classify_line, is_card_row, split_glued_rows
from ..utils import (
    CURRENCY_CODE_RE,
    LEADING_DATE_RE,
    is_amount_token,
    is_date_token,
    normalize_line,
    parse_amount,
)

_logger = get_logger("finance_flow.ingest.credit_card")

_GLUED_DATES_RE = re.compile(r"^(\d{1,2}/\d{2})(\d{2}/\d{1,2})$")
_REFERENCE_RE = re.compile(r"^[0-9]{4,}$")
_LEADING_ZERO_RE = re.compile(r"^0\d")
_REMARK_TOKEN_RE = re.compile(r"^[A-Za-z0-9/.\-]+$")


# Category labels users print in their own statement exports.
DEFAULT_CATEGORY_LABELS: frozenset[str] = frozenset(
    {"方", "吃", "家", "固定", "蘇", "秀", "弟", "玩", "姊", "收入", "華", "投資", UNCATEGORIZED}
)


@dataclass(frozen=True, slots=True)
class CreditCardDialect:
    """Per-dialect switches for the optional extraction heuristics.

    Attributes
    ----------
    category_labels:
        Category labels recognized right after the dates. A label is only
        taken when a description token remains after it. Callers may add
        labels per call (e.g. the categories of their rules). ``None``
        disables the hint.
    trailing_reference:
        Treat ``... <amount> <4+ digits>`` as amount plus reference number.
    strip_trailing_remark:
        Move an alphanumeric token printed before the amount into
        ``bank_code``. Off by default: it truncates multi-word merchant names,
        which breaks keyword rules; replacement-rule capture groups are the
        supported way to pull remarks out of descriptions.
    """

    name: str = "default"
    category_labels: frozenset[str] | None = DEFAULT_CATEGORY_LABELS
    trailing_reference: bool = True
    strip_trailing_remark: bool = False


DEFAULT_DIALECT = CreditCardDialect()


def _split_leading_dates(tokens: list[str]) -> tuple[str, str, int] | None:
    """Return ``(transaction_date, posting_date, body_start)``."""

    first = tokens[0]
    glued = _GLUED_DATES_RE.match(first)
    if glued:
        return glued.group(1), glued.group(2), 1
    if not is_date_token(first):
        return None
    if len(tokens) > 1 and is_date_token(tokens[1]):
        return first, tokens[1], 2
    return first, first, 1


def _take_amount(
    body: list[str], dialect: CreditCardDialect
) -> tuple[Decimal | None, str | None, list[str]]:
    """Strip the trailing amount (and optional reference) off ``body``."""

    if not body or not is_amount_token(body[-1]):
        return None, None, body
    if (
        dialect.trailing_reference
        and len(body) >= 3
        and _REFERENCE_RE.match(body[-1])
        and is_amount_token(body[-2])
        and not _LEADING_ZERO_RE.match(body[-2])
        and not CURRENCY_CODE_RE.match(body[-3])
    ):
        return parse_amount(body[-2]), body[-1], body[:-2]
    return parse_amount(body[-1]), None, body[:-1]


def strip_trailing_remark(body: list[str]) -> tuple[str | None, list[str]]:
    """Split a trailing alphanumeric remark token off the description tokens.

    The token is taken only when it is not itself numeric, the token before it
    is not numeric either, and at least one description token remains.
    """

    if len(body) < 2:
        return None, body
    candidate = body[-1]
    if not _REMARK_TOKEN_RE.match(candidate) or is_amount_token(candidate):
        return None, body
    if is_amount_token(body[-2]):
        return None, body
    return candidate, body[:-1]


def parse_credit_line(
    line: str,
    dialect: CreditCardDialect = DEFAULT_DIALECT,
    *,
    extra_category_labels: Collection[str] = (),
) -> RawCreditEntry | None:
    """Parse one statement line; ``None`` when the line is not a card row."""

    text = normalize_line(line)
    if not LEADING_DATE_RE.match(text):
        return None
    tokens = text.split()
    dates = _split_leading_dates(tokens)
    if dates is None:
        return None
    transaction_date, posting_date, start = dates

    amount, bank_code, body = _take_amount(tokens[start:], dialect)
    if amount is None:
        return None

    initial_category: str | None = None
    labels = dialect.category_labels
    if (
        labels is not None
        and len(body) >= 2
        and (body[0] in labels or body[0] in extra_category_labels)
    ):
        initial_category, body = body[0], body[1:]

    if dialect.strip_trailing_remark and bank_code is None:
        bank_code, body = strip_trailing_remark(body)

    description = " ".join(body).strip()
    if not description:
        return None

    return RawCreditEntry(
        id=record_id(transaction_date, posting_date, description, amount),
        transaction_date=transaction_date,
        posting_date=posting_date,
        description=description,
        amount=amount,
        bank_code=bank_code,
        initial_category=initial_category,
    )


def parse_credit_card(
    text: str,
    dialect: CreditCardDialect = DEFAULT_DIALECT,
    *,
    extra_category_labels: Collection[str] = (),
    skip_deposit_rows: bool = False,
) -> list[RawCreditEntry]:
    """Extract every card row from ``text`` in encounter order.

    ``skip_deposit_rows`` leaves full-date tab rows that fit an untimed
    deposit layout to the deposit parser (pastes mixing both statements).
    """

    results: list[RawCreditEntry] = []
    skipped = 0
    for line in split_glued_rows(text).splitlines():
        if classify_line(line) is not LineKind.CREDIT_CANDIDATE:
            continue
        if skip_deposit_rows and not is_card_row(line):
            continue
        entry = parse_credit_line(line, dialect, extra_category_labels=extra_category_labels)
        if entry is None:
            skipped += 1
            _logger.debug("credit: skipped unparseable line %r", line)
            continue
        results.append(entry)

    _logger.debug(
        "credit: parsed %d entries (%d candidate lines skipped, dialect=%s)",
        len(results),
        skipped,
        dialect.name,
    )
    return results


__all__ = [
    "DEFAULT_CATEGORY_LABELS",
    "CreditCardDialect",
    "DEFAULT_DIALECT",
    "parse_credit_line",
    "parse_credit_card",
    "strip_trailing_remark",
]

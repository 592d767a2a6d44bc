"""Adapter for deposit-account (savings/checking) ledger text.

Deposit statements print one date header per day followed by time-stamped
transaction lines; memo or account-number data that does not fit is wrapped
onto the next line::

    2024/05/01
    09:15:00<TAB>提款<TAB>2000<TAB><TAB>48000<TAB>ATM888
    10:02:11<TAB>跨行轉入<TAB><TAB>500<TAB>48500
    822-0001234567

Lines are fed through :class:`DepositStatementMachine`, an explicit state
machine (``IDLE`` -> ``ACCUMULATING`` -> ... -> ``DONE``). A transaction is
emitted when the next transaction line, date header, or end of input closes
it, so continuation lines can complete its remark first.

Column layouts are configuration: tab-delimited rows pick the widest
:class:`DepositColumnLayout` their column count satisfies; rows without usable
tab columns fall back to a reverse whitespace parse.

Sign convention: ``amount`` is the withdrawal when one is printed, otherwise
the negated deposit, otherwise zero.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date as _date
from decimal import Decimal
from enum import StrEnum

from ...fingerprint import record_id
from ...logging_setup import get_logger
from ...models import RawDepositEntry
from ..classifier import LineKind, classify_line, is_card_row
from ..utils import (
    EMPTY_COLUMN_PLACEHOLDERS,
    is_amount_token,
    normalize_full_date,
    normalize_line,
    parse_column_amount,
)

_logger = get_logger("finance_flow.ingest.deposit_account")

# Stamped on rows from layouts that print no time of day.
DEFAULT_TIME = "00:00:00"

_TIME_WIDTH = len("HH:MM:SS")
_DATED_ROW_RE = re.compile(r"^(\d{4}/\d{1,2}/\d{1,2})[ \t]+(.*)$", re.DOTALL)
_UNTIMED_ROW_RE = re.compile(r"^(\d{4}/\d{1,2}/\d{1,2})\t(.*)$", re.DOTALL)
_BRACKET_REMARK_RE = re.compile(r"(\[[^\]]+\])")
_NUMERIC_SUFFIX_RE = re.compile(r"^[\d/\-]+$")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DepositColumnLayout:
    """Column positions of a tab-delimited ledger row (time is column 0).

    ``summary`` is the first column of the free-text summary; every column
    from there on is joined into it. ``merge_summary`` folds the summary into
    the description instead of the remark.
    """

    name: str
    min_columns: int
    description: int = 1
    withdrawal: int = 2
    deposit: int = 3
    balance: int | None = None
    summary: int | None = None
    merge_summary: bool = False


SIX_COLUMN_LAYOUT = DepositColumnLayout("six_column", 6, balance=4, summary=5)
FOUR_COLUMN_LAYOUT = DepositColumnLayout("four_column", 4)
DEFAULT_LAYOUTS: tuple[DepositColumnLayout, ...] = (SIX_COLUMN_LAYOUT, FOUR_COLUMN_LAYOUT)


@dataclass(frozen=True, slots=True)
class SpecialDescriptionRule:
    """Override for a fixed description printed with a numeric suffix.

    ``suffix_to_remark`` moves the suffix (e.g. a billing period such as
    ``11409``) into the remark so the description stays constant across
    months. The summary column of such rows always goes to the remark.
    """

    suffix_to_remark: bool = True


SPECIAL_DESCRIPTIONS: Mapping[str, SpecialDescriptionRule] = {
    "國保保費": SpecialDescriptionRule(),
}


def select_layout(
    column_count: int, layouts: Sequence[DepositColumnLayout] = DEFAULT_LAYOUTS
) -> DepositColumnLayout | None:
    """Return the widest layout whose minimum column count is satisfied."""

    candidates = [lay for lay in layouts if column_count >= lay.min_columns]
    return max(candidates, key=lambda lay: lay.min_columns, default=None)


# ---------------------------------------------------------------------------
# Single-line field extraction
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class LedgerLine:
    """Fields extracted from one transaction line, before merging."""

    time: str
    description: str
    withdrawal: Decimal
    deposit: Decimal
    balance: Decimal | None = None
    summary: str | None = None
    merge_summary: bool = False

    @property
    def amount(self) -> Decimal:
        if self.withdrawal > 0:
            return self.withdrawal
        if self.deposit > 0:
            return -self.deposit
        return Decimal(0)


def _is_numeric_cell(token: str) -> bool:
    return is_amount_token(token) or token in EMPTY_COLUMN_PLACEHOLDERS


def _from_columns(parts: list[str], layout: DepositColumnLayout) -> LedgerLine | None:
    def cell(i: int | None) -> str:
        return parts[i] if i is not None and i < len(parts) else ""

    withdrawal = parse_column_amount(cell(layout.withdrawal))
    deposit = parse_column_amount(cell(layout.deposit))
    if withdrawal is None or deposit is None:
        return None
    balance = parse_column_amount(cell(layout.balance)) if layout.balance is not None else None
    summary = ""
    if layout.summary is not None:
        summary = " ".join(p for p in parts[layout.summary :] if p)
    return LedgerLine(
        time=parts[0],
        description=cell(layout.description),
        withdrawal=abs(withdrawal),
        deposit=abs(deposit),
        balance=balance,
        summary=summary or None,
        merge_summary=layout.merge_summary,
    )


def _signed_single_amount(token: str) -> tuple[Decimal, Decimal]:
    """Return ``(withdrawal, deposit)`` for a lone amount column."""

    value = parse_column_amount(token) or Decimal(0)
    if token.strip().startswith("+"):
        return Decimal(0), abs(value)
    return abs(value), Decimal(0)


def _from_tokens(time: str, tokens: list[str]) -> LedgerLine:
    """Reverse-parse whitespace tokens: [remark] <- balance <- deposit <- withdrawal."""

    body = list(tokens)
    summary: str | None = None
    if len(body) >= 2 and not _is_numeric_cell(body[-1]) and _is_numeric_cell(body[-2]):
        summary = body.pop()

    numbers: list[str] = []
    while len(body) > 1 and len(numbers) < 3 and _is_numeric_cell(body[-1]):
        numbers.insert(0, body.pop())

    withdrawal = deposit = Decimal(0)
    balance: Decimal | None = None
    if len(numbers) == 3:
        withdrawal = abs(parse_column_amount(numbers[0]) or Decimal(0))
        deposit = abs(parse_column_amount(numbers[1]) or Decimal(0))
        balance = parse_column_amount(numbers[2])
    elif len(numbers) == 2:
        withdrawal, deposit = _signed_single_amount(numbers[0])
        balance = parse_column_amount(numbers[1])
    elif len(numbers) == 1:
        withdrawal, deposit = _signed_single_amount(numbers[0])

    return LedgerLine(
        time=time,
        description=" ".join(body),
        withdrawal=withdrawal,
        deposit=deposit,
        balance=balance,
        summary=summary,
    )


def parse_transaction_line(
    line: str,
    layouts: Sequence[DepositColumnLayout] = DEFAULT_LAYOUTS,
    *,
    allow_whitespace: bool = True,
) -> LedgerLine | None:
    """Extract ledger fields from a line starting with ``HH:MM:SS``.

    Tab columns are preferred because they keep empty withdrawal/deposit
    cells apart; the whitespace reverse parse is the fallback.
    """

    text = normalize_line(line, keep_tabs=True).lstrip()
    time, rest = text[:_TIME_WIDTH], text[_TIME_WIDTH:]
    if "\t" in rest:
        cells = [c.strip() for c in rest.split("\t")]
        if cells and cells[0] == "":
            cells = cells[1:]
        parts = [time, *cells]
        layout = select_layout(len(parts), layouts)
        if layout is not None:
            parsed = _from_columns(parts, layout)
            if parsed is not None:
                return parsed
    if not allow_whitespace:
        return None
    return _from_tokens(time, rest.split())


def _match_special(
    description: str, table: Mapping[str, SpecialDescriptionRule]
) -> tuple[str, SpecialDescriptionRule, str | None] | None:
    for key, rule in table.items():
        if description == key:
            return key, rule, None
        if description.startswith(key):
            suffix = description[len(key) :].strip()
            if suffix and _NUMERIC_SUFFIX_RE.match(suffix):
                return key, rule, suffix
    return None


def merge_description(
    line: LedgerLine,
    special_descriptions: Mapping[str, SpecialDescriptionRule] = SPECIAL_DESCRIPTIONS,
) -> tuple[str, list[str]]:
    """Return ``(description, remark_parts)`` for an extracted line.

    The special-description table is consulted before the generic summary
    handling.
    """

    description = line.description.strip()
    remarks: list[str] = []
    special = _match_special(description, special_descriptions)
    if special is not None:
        key, rule, suffix = special
        if rule.suffix_to_remark:
            description = key
            if suffix:
                remarks.append(suffix)
        if line.summary:
            remarks.append(line.summary)
    elif line.summary and line.merge_summary:
        description = f"{description} {line.summary}".strip()
    elif line.summary:
        remarks.append(line.summary)

    bracket = _BRACKET_REMARK_RE.search(description)
    if bracket:
        remarks.insert(0, bracket.group(1))
        description = " ".join(description.replace(bracket.group(1), " ").split())
    return description, remarks


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------


class DepositParserState(StrEnum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"
    DONE = "done"


@dataclass(slots=True)
class _PendingEntry:
    date: str
    line: LedgerLine
    continuation: list[str] = field(default_factory=list)


class DepositStatementMachine:
    """Line-at-a-time deposit statement parser.

    ``feed`` returns the entries closed by the given line; ``close`` flushes
    the last open entry and moves the machine to ``DONE``.

    With ``card_rows_end_entries`` (pastes mixing card and deposit rows) a
    credit-card row closes the open entry instead of becoming its remark.
    """

    def __init__(
        self,
        *,
        layouts: Sequence[DepositColumnLayout] = DEFAULT_LAYOUTS,
        default_date: str | None = None,
        special_descriptions: Mapping[str, SpecialDescriptionRule] = SPECIAL_DESCRIPTIONS,
        card_rows_end_entries: bool = False,
    ) -> None:
        self.layouts = tuple(layouts)
        self.card_rows_end_entries = card_rows_end_entries
        self.default_date = default_date
        self.special_descriptions = special_descriptions
        self.current_date: str | None = None
        self._pending: _PendingEntry | None = None
        self._done = False
        self._warned_fallback = False

    @property
    def state(self) -> DepositParserState:
        if self._done:
            return DepositParserState.DONE
        if self._pending is not None:
            return DepositParserState.ACCUMULATING
        return DepositParserState.IDLE

    # -- transitions -------------------------------------------------------

    def feed(self, raw_line: str) -> list[RawDepositEntry]:
        if self._done:
            raise RuntimeError("DepositStatementMachine.feed() called after close()")

        kind = classify_line(raw_line)
        if kind in (LineKind.BLANK, LineKind.HEADER):
            return []
        if self.card_rows_end_entries and is_card_row(raw_line):
            return self._flush()

        text = normalize_line(raw_line, keep_tabs=True).lstrip()
        if kind is LineKind.DEPOSIT_DATE_HEADER:
            emitted = self._flush()
            self.current_date = normalize_full_date(text.strip()) or text.strip()
            return emitted

        if kind is LineKind.DEPOSIT_TRANSACTION:
            return self._open(self._row_date(), text)

        if kind is LineKind.DEPOSIT_DATED_ROW:
            m = _DATED_ROW_RE.match(text.strip(" "))
            if m is not None:
                emitted = self._flush()
                self.current_date = normalize_full_date(m.group(1)) or m.group(1)
                return emitted + self._open(self.current_date, m.group(2))

        untimed = _UNTIMED_ROW_RE.match(text)
        if untimed is not None:
            row_date = normalize_full_date(untimed.group(1)) or untimed.group(1)
            parsed = parse_transaction_line(
                f"{DEFAULT_TIME}\t{untimed.group(2)}", self.layouts, allow_whitespace=False
            )
            if parsed is not None:
                emitted = self._flush()
                self.current_date = row_date
                self._pending = _PendingEntry(date=row_date, line=parsed)
                return emitted

        return self._continue(text)

    def close(self) -> list[RawDepositEntry]:
        emitted = self._flush()
        self._done = True
        return emitted

    # -- helpers -----------------------------------------------------------

    def _row_date(self) -> str:
        if self.current_date is not None:
            return self.current_date
        fallback = self.default_date or _date.today().strftime("%Y/%m/%d")
        if not self._warned_fallback:
            _logger.warning(
                "deposit: transaction before any date header; stamping %s (ids depend on it)",
                fallback,
            )
            self._warned_fallback = True
        return fallback

    def _open(self, row_date: str, text: str) -> list[RawDepositEntry]:
        emitted = self._flush()
        parsed = parse_transaction_line(text, self.layouts)
        if parsed is None:
            _logger.debug("deposit: skipped unparseable transaction line %r", text)
            return emitted
        self._pending = _PendingEntry(date=row_date, line=parsed)
        return emitted

    def _continue(self, text: str) -> list[RawDepositEntry]:
        line = " ".join(text.split())
        if self._pending is None:
            _logger.debug("deposit: ignored line outside a transaction %r", line)
            return []
        self._pending.continuation.append(line)
        return []

    def _flush(self) -> list[RawDepositEntry]:
        pending, self._pending = self._pending, None
        if pending is None:
            return []
        entry = self._build(pending)
        return [entry] if entry is not None else []

    def _build(self, pending: _PendingEntry) -> RawDepositEntry | None:
        description, remarks = merge_description(pending.line, self.special_descriptions)
        remarks.extend(pending.continuation)
        amount = pending.line.amount
        if amount == 0 and not description:
            _logger.debug("deposit: dropped empty entry at %s %s", pending.date, pending.line.time)
            return None
        remark = " ".join(r for r in remarks if r).strip()
        return RawDepositEntry(
            id=record_id(pending.date, pending.line.time, description, amount),
            date=pending.date,
            time=pending.line.time,
            description=description,
            amount=amount,
            bank_code=remark or None,
        )


def parse_deposit_lines(
    lines: Iterable[str],
    *,
    layouts: Sequence[DepositColumnLayout] = DEFAULT_LAYOUTS,
    default_date: str | None = None,
    special_descriptions: Mapping[str, SpecialDescriptionRule] = SPECIAL_DESCRIPTIONS,
    card_rows_end_entries: bool = False,
) -> list[RawDepositEntry]:
    machine = DepositStatementMachine(
        layouts=layouts,
        default_date=default_date,
        special_descriptions=special_descriptions,
        card_rows_end_entries=card_rows_end_entries,
    )
    results: list[RawDepositEntry] = []
    for line in lines:
        results.extend(machine.feed(line))
    results.extend(machine.close())
    return results


def parse_deposit_account(
    text: str,
    *,
    layouts: Sequence[DepositColumnLayout] = DEFAULT_LAYOUTS,
    default_date: str | None = None,
    special_descriptions: Mapping[str, SpecialDescriptionRule] = SPECIAL_DESCRIPTIONS,
    card_rows_end_entries: bool = False,
) -> list[RawDepositEntry]:
    """Extract every ledger entry from deposit statement ``text``."""

    results = parse_deposit_lines(
        text.splitlines(),
        layouts=layouts,
        default_date=default_date,
        special_descriptions=special_descriptions,
        card_rows_end_entries=card_rows_end_entries,
    )
    _logger.debug("deposit: parsed %d entries", len(results))
    return results


__all__ = [
    "DEFAULT_TIME",
    "DepositColumnLayout",
    "SIX_COLUMN_LAYOUT",
    "FOUR_COLUMN_LAYOUT",
    "DEFAULT_LAYOUTS",
    "SpecialDescriptionRule",
    "SPECIAL_DESCRIPTIONS",
    "LedgerLine",
    "select_layout",
    "parse_transaction_line",
    "merge_description",
    "DepositParserState",
    "DepositStatementMachine",
    "parse_deposit_lines",
    "parse_deposit_account",
]

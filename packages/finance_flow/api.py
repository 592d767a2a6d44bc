"""Public API and orchestration for the ``finance_flow`` package.

:func:`process_statement` is the single entry point used by hosts (the CLI,
or a web front end): it parses pasted text or a spreadsheet grid, applies the
user's rules, reconciles against the caller's store and always returns a
:class:`~finance_flow.models.ProcessResult`, never raising past this boundary.

:func:`parse_statement_text` exposes the text-parsing stage on its own.
"""

from __future__ import annotations

from collections.abc import Callable, Collection, Sequence
from typing import Any

from .ingest.adapters.credit_card_text import DEFAULT_DIALECT, CreditCardDialect, parse_credit_card
from .ingest.adapters.deposit_account_text import (
    DEFAULT_LAYOUTS,
    DepositColumnLayout,
    parse_deposit_account,
)
from .ingest.adapters.spreadsheet_rows import parse_spreadsheet_rows
from .ingest.classifier import (
    coerce_statement_type,
    detect_statement_type,
    is_mixed_section,
    split_sections,
)
from .logging_setup import get_logger
from .models import (
    CategoryRule,
    ExistingRecords,
    ProcessResult,
    RawCreditEntry,
    RawDepositEntry,
    ReplacementRule,
    SkipCounts,
    StatementType,
)
from .reconcile import (
    detected_categories,
    reconcile_family,
    refine_credit_entries,
    refine_deposit_entries,
)
from .rules import compile_replacement_rules, deduplicate_batch_ids

_logger = get_logger("finance_flow.api")

NO_TEXT_ERROR = "No text provided."
UNKNOWN_ERROR = "An unknown error occurred during parsing."

# External statement-type classifier (e.g. an LLM prompt). Advisory only.
type StatementClassifier = Callable[[str], StatementType | str]


def _ask_classifier(classifier: StatementClassifier | None, section: str) -> StatementType:
    if classifier is None:
        return StatementType.UNKNOWN
    try:
        answer = coerce_statement_type(classifier(section))
    except Exception as exc:  # advisory only; never fatal
        _logger.warning("Statement classifier failed (%s); using local detection", exc)
        return StatementType.UNKNOWN
    if answer is StatementType.UNKNOWN:
        _logger.debug("Statement classifier gave no usable answer; using local detection")
    return answer


def parse_statement_text(
    text: str,
    classifier: StatementClassifier | None = None,
    *,
    credit_dialect: CreditCardDialect = DEFAULT_DIALECT,
    deposit_layouts: Sequence[DepositColumnLayout] = DEFAULT_LAYOUTS,
    default_date: str | None = None,
    category_labels: Collection[str] = (),
) -> tuple[list[RawCreditEntry], list[RawDepositEntry]]:
    """Parse pasted statement text into raw credit and deposit entries.

    Parameters
    ----------
    text:
        Statement text; several statements may be concatenated.
    classifier:
        Optional callable returning the statement type of a section. Its
        answer picks the parser to try first; local line-shape detection is
        used when it is absent, fails, or answers something unknown.
    credit_dialect, deposit_layouts:
        Parser configuration for the two text dialect families.
    default_date:
        ``YYYY/MM/DD`` stamped on deposit transactions printed before any date
        header (today when omitted).
    category_labels:
        Extra labels accepted as a category printed after card-row dates.

    Notes
    -----
    A section interleaving card rows with deposit transactions runs both
    parsers, whatever the classifier says. Otherwise, when the chosen parser
    extracts nothing from a section the other parser is tried; an undecided
    section runs both.
    """

    def _credit(section: str, *, mixed: bool = False) -> list[RawCreditEntry]:
        return parse_credit_card(
            section,
            credit_dialect,
            extra_category_labels=category_labels,
            skip_deposit_rows=mixed,
        )

    def _deposit(section: str, *, mixed: bool = False) -> list[RawDepositEntry]:
        return parse_deposit_account(
            section,
            layouts=deposit_layouts,
            default_date=default_date,
            card_rows_end_entries=mixed,
        )

    credit: list[RawCreditEntry] = []
    deposit: list[RawDepositEntry] = []
    for index, section in enumerate(split_sections(text)):
        if is_mixed_section(section):
            _logger.debug("section %d: card and deposit rows interleaved; parsing both", index)
            credit.extend(_credit(section, mixed=True))
            deposit.extend(_deposit(section, mixed=True))
            continue

        hint = _ask_classifier(classifier, section)
        kind = hint if hint is not StatementType.UNKNOWN else detect_statement_type(section)
        _logger.debug("section %d: hint=%s, parsing as %s", index, hint, kind)

        if kind is StatementType.CREDIT_CARD:
            found_credit = _credit(section)
            if found_credit:
                credit.extend(found_credit)
            else:
                deposit.extend(_deposit(section))
        elif kind is StatementType.DEPOSIT_ACCOUNT:
            found_deposit = _deposit(section)
            if found_deposit:
                deposit.extend(found_deposit)
            else:
                credit.extend(_credit(section))
        else:
            credit.extend(_credit(section))
            deposit.extend(_deposit(section))
    return credit, deposit


def _process_text(
    text: str,
    *,
    replacement_rules: Sequence[ReplacementRule],
    category_rules: Sequence[CategoryRule],
    existing: ExistingRecords,
    classifier: StatementClassifier | None,
    default_date: str | None,
) -> ProcessResult:
    labels = {rule.category for rule in category_rules}
    labels.update(record.category for record in existing.credit)
    raw_credit, raw_deposit = parse_statement_text(
        text, classifier, default_date=default_date, category_labels=labels
    )

    # Repeats within one paste get -dup-N ids before the store is consulted.
    compiled = compile_replacement_rules(replacement_rules)
    credit = refine_credit_entries(
        deduplicate_batch_ids(raw_credit), compiled, category_rules, existing.credit
    )
    deposit = refine_deposit_entries(deduplicate_batch_ids(raw_deposit), compiled, category_rules)

    credit, skipped_credit = reconcile_family(credit, {r.id for r in existing.credit})
    deposit, skipped_deposit = reconcile_family(deposit, {r.id for r in existing.deposit})
    return ProcessResult(
        success=True,
        credit_data=credit,
        deposit_data=deposit,
        detected_categories=detected_categories(credit, deposit),
        skipped_duplicates=SkipCounts(credit=skipped_credit, deposit=skipped_deposit),
    )


def _process_grid(grid: Sequence[Sequence[Any]], *, existing: ExistingRecords) -> ProcessResult:
    parsed = parse_spreadsheet_rows(grid)
    credit, skipped_credit = reconcile_family(
        deduplicate_batch_ids(parsed.credit), {r.id for r in existing.credit}
    )
    deposit, skipped_deposit = reconcile_family(
        deduplicate_batch_ids(parsed.deposit), {r.id for r in existing.deposit}
    )
    cash, skipped_cash = reconcile_family(
        deduplicate_batch_ids(parsed.cash), {r.id for r in existing.cash}
    )
    return ProcessResult(
        success=True,
        credit_data=credit,
        deposit_data=deposit,
        cash_data=cash,
        detected_categories=list(parsed.detected_categories),
        skipped_duplicates=SkipCounts(
            credit=skipped_credit, deposit=skipped_deposit, cash=skipped_cash
        ),
    )


def process_statement(
    text: str | None = None,
    *,
    grid: Sequence[Sequence[Any]] | None = None,
    replacement_rules: Sequence[ReplacementRule] = (),
    category_rules: Sequence[CategoryRule] = (),
    existing: ExistingRecords | None = None,
    classifier: StatementClassifier | None = None,
    default_date: str | None = None,
) -> ProcessResult:
    """Parse, refine and reconcile one batch of statement input.

    Parameters
    ----------
    text:
        Pasted statement text. Ignored when ``grid`` is given.
    grid:
        Spreadsheet cells, one list per row. Rows are imported as-is: the
        replacement and category rules do not apply to this path.
    replacement_rules, category_rules:
        User rules, applied in order.
    existing:
        The caller's current store. Records whose id is already stored are
        skipped and counted in ``skipped_duplicates``; the store itself is
        never modified.
    classifier:
        Optional advisory statement-type classifier, see
        :func:`parse_statement_text`.
    default_date:
        Date for deposit transactions printed before any date header.

    Returns
    -------
    ProcessResult
        ``success=False`` with an ``error`` message and empty collections when
        there is no input or an unexpected error occurs.
    """

    if grid is None and (text is None or not text.strip()):
        return ProcessResult.failure(NO_TEXT_ERROR)
    source = text or ""

    store = existing if existing is not None else ExistingRecords()
    try:
        if grid is not None:
            result = _process_grid(grid, existing=store)
        else:
            result = _process_text(
                source,
                replacement_rules=replacement_rules,
                category_rules=category_rules,
                existing=store,
                classifier=classifier,
                default_date=default_date,
            )
    except Exception as exc:
        _logger.exception("Failed to process statement input")
        return ProcessResult.failure(str(exc) or UNKNOWN_ERROR)

    _logger.info(
        "Processed statement: %d credit, %d deposit, %d cash new; skipped %d/%d/%d existing",
        len(result.credit_data),
        len(result.deposit_data),
        len(result.cash_data),
        result.skipped_duplicates.credit,
        result.skipped_duplicates.deposit,
        result.skipped_duplicates.cash,
    )
    return result


__all__ = [
    "NO_TEXT_ERROR",
    "StatementClassifier",
    "parse_statement_text",
    "process_statement",
]

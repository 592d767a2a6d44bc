"""Rule refinement and reconciliation against the caller's record store.

Two stages sit between the parsers and the result:

- *refine*: apply replacement rules and resolve categories, turning raw parser
  entries into output records. Category resolution for a credit record whose
  id is already stored reuses the stored category verbatim, so re-pasting a
  statement period never clobbers a manual re-categorization.
- *reconcile*: drop records whose id is already stored and count them.

Neither stage mutates its inputs.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping, Sequence
from typing import Protocol

from .logging_setup import get_logger
from .models import (
    UNCATEGORIZED,
    CategoryRule,
    CreditRecord,
    DepositRecord,
    Identified,
    RawCreditEntry,
    RawDepositEntry,
    ReplacementRule,
)
from .rules import (
    CompiledReplacementRule,
    apply_category_rules,
    apply_replacement_rules,
    compile_replacement_rules,
)

_logger = get_logger("finance_flow.reconcile")


class _HasCategory(Protocol):
    @property
    def category(self) -> str: ...


# ---------------------------------------------------------------------------
# Reconcile
# ---------------------------------------------------------------------------


def reconcile_family[R: Identified](
    records: Iterable[R], existing_ids: Collection[str]
) -> tuple[list[R], int]:
    """Split ``records`` into ``(accepted, skipped_count)`` by stored id."""

    accepted: list[R] = []
    skipped = 0
    for record in records:
        if record.id in existing_ids:
            skipped += 1
            continue
        accepted.append(record)
    return accepted, skipped


def detected_categories(*families: Iterable[_HasCategory]) -> list[str]:
    """Union of record categories in first-seen order."""

    seen: dict[str, None] = {}
    for family in families:
        for record in family:
            if record.category:
                seen.setdefault(record.category, None)
    return list(seen)


# ---------------------------------------------------------------------------
# Refine
# ---------------------------------------------------------------------------


def resolve_credit_category(
    entry: RawCreditEntry,
    description: str,
    category_rules: Sequence[CategoryRule],
    existing_by_id: Mapping[str, CreditRecord],
) -> str:
    """Pick the category of a credit entry.

    Order: stored category for a known id, then the first matching category
    rule, then the category printed on the statement, then ``未分類``.
    """

    stored = existing_by_id.get(entry.id)
    if stored is not None:
        return stored.category
    from_rules = apply_category_rules(description, category_rules)
    if from_rules != UNCATEGORIZED:
        return from_rules
    return entry.initial_category or UNCATEGORIZED


def _index_existing(
    existing: Iterable[CreditRecord] | Mapping[str, CreditRecord],
) -> Mapping[str, CreditRecord]:
    if isinstance(existing, Mapping):
        return existing
    return {record.id: record for record in existing}


def refine_credit_entries(
    entries: Iterable[RawCreditEntry],
    replacement_rules: Sequence[ReplacementRule | CompiledReplacementRule] = (),
    category_rules: Sequence[CategoryRule] = (),
    existing: Iterable[CreditRecord] | Mapping[str, CreditRecord] = (),
) -> list[CreditRecord]:
    """Apply rules to credit entries; deleted or emptied entries are dropped."""

    compiled = compile_replacement_rules(replacement_rules)
    existing_by_id = _index_existing(existing)
    out: list[CreditRecord] = []
    for entry in entries:
        result = apply_replacement_rules(entry.description, compiled)
        if result.should_delete or not result.processed_text:
            _logger.debug("refine: dropped credit entry %s (%r)", entry.id, entry.description)
            continue
        out.append(
            CreditRecord(
                id=entry.id,
                transaction_date=entry.transaction_date,
                posting_date=entry.posting_date,
                description=result.processed_text,
                amount=entry.amount,
                category=resolve_credit_category(
                    entry, result.processed_text, category_rules, existing_by_id
                ),
                bank_code=entry.bank_code,
            )
        )
    return out


def refine_deposit_entries(
    entries: Iterable[RawDepositEntry],
    replacement_rules: Sequence[ReplacementRule | CompiledReplacementRule] = (),
    category_rules: Sequence[CategoryRule] = (),
) -> list[DepositRecord]:
    """Apply rules to deposit descriptions and remarks.

    A text captured by a rule (from the description first, else from the
    remark) is appended to the remark as ``remark (captured)``, or becomes
    the remark when there is none.
    """

    compiled = compile_replacement_rules(replacement_rules)
    out: list[DepositRecord] = []
    for entry in entries:
        desc = apply_replacement_rules(entry.description, compiled)
        if desc.should_delete:
            _logger.debug("refine: dropped deposit entry %s (%r)", entry.id, entry.description)
            continue
        remark = apply_replacement_rules(entry.bank_code, compiled)

        bank_code = remark.processed_text
        captured = desc.captured or remark.captured
        if captured:
            bank_code = f"{bank_code} ({captured})" if bank_code else captured

        out.append(
            DepositRecord(
                id=entry.id,
                date=entry.date,
                time=entry.time,
                description=desc.processed_text,
                amount=entry.amount,
                category=apply_category_rules(desc.processed_text, category_rules),
                bank_code=bank_code or None,
            )
        )
    return out


__all__ = [
    "reconcile_family",
    "detected_categories",
    "resolve_credit_category",
    "refine_credit_entries",
    "refine_deposit_entries",
]

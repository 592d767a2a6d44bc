"""Content-derived record identifiers.

Record ids are SHA-1 digests over a canonical, hyphen-joined tuple of a
record's stable fields. SHA-1 is used as a fingerprint, not as a security
boundary; what matters is that re-parsing byte-identical statement text yields
byte-identical ids on every run and platform.
"""

from __future__ import annotations

import hashlib
from decimal import Decimal

_FIELD_SEPARATOR = "-"


def stable_hash(canonical: str) -> str:
    """Return the SHA-1 hex digest of ``canonical`` encoded as UTF-8."""

    return hashlib.sha1(canonical.encode("utf-8")).hexdigest()


def canonical_amount(amount: Decimal) -> str:
    """Render an amount the same way regardless of how it was printed.

    Amounts parsed from ``2,000``, ``2000.00`` and ``2000``
    all render as ``"2000"``; fractional values drop trailing zeros and zero
    never carries a sign.
    """

    if amount == 0:
        return "0"
    return format(amount.normalize(), "f")


def _canonical_field(value: str | Decimal | int | None) -> str:
    if value is None:
        return ""
    if isinstance(value, Decimal):
        return canonical_amount(value)
    if isinstance(value, int):
        return canonical_amount(Decimal(value))
    return value.strip()


def record_id(*fields: str | Decimal | int | None) -> str:
    """Hash the canonical form of ``fields`` into a record id.

    Each field is normalized independently (strings stripped, amounts via
    :func:`canonical_amount`, ``None`` as empty) before joining.
    """

    return stable_hash(_FIELD_SEPARATOR.join(_canonical_field(f) for f in fields))


__all__ = ["stable_hash", "canonical_amount", "record_id"]

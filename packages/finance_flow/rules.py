"""User rule evaluation: find/replace rules, keyword categories, batch ids.

Replacement rules are compiled once into a tagged matcher. A ``find`` that
compiles as a regular expression becomes a :class:`RegexMatcher`; anything
else becomes a :class:`LiteralMatcher` that matches the text verbatim. Rules
chain: each one runs on the output of the previous one.

Replacement strings use the ``$`` tokens users already write in their exported
settings: ``$1``..``$99`` for groups, ``$&`` for the whole match and ``$$`` for
a literal dollar sign.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from typing import Literal

from .logging_setup import get_logger
from .models import UNCATEGORIZED, CategoryRule, Identified, ReplacementRule

_logger = get_logger("finance_flow.rules")

_TOKEN_RE = re.compile(r"\$(\$|&|\d{1,2})")
# ``(?<name>...)`` is spelled ``(?P<name>...)`` in Python.
_JS_NAMED_GROUP_RE = re.compile(r"\(\?<(?=[A-Za-z_])")

DUPLICATE_SUFFIX = "-dup-"


# ---------------------------------------------------------------------------
# Compiled rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RegexMatcher:
    pattern: re.Pattern[str]
    kind: Literal["regex"] = "regex"


@dataclass(frozen=True, slots=True)
class LiteralMatcher:
    text: str
    kind: Literal["literal"] = "literal"


type Matcher = RegexMatcher | LiteralMatcher


@dataclass(frozen=True, slots=True)
class CompiledReplacementRule:
    rule: ReplacementRule
    matcher: Matcher


@dataclass(frozen=True, slots=True)
class ReplacementResult:
    """Outcome of running the rule chain over one text value."""

    processed_text: str
    should_delete: bool = False
    captured: str | None = None


def compile_matcher(find: str) -> Matcher:
    """Return the matcher for ``find``: a regex when it compiles, else literal."""

    try:
        return RegexMatcher(re.compile(_JS_NAMED_GROUP_RE.sub("(?P<", find)))
    except re.error as exc:
        _logger.debug("rules: %r is not a valid pattern (%s); matching literally", find, exc)
        return LiteralMatcher(find)


def compile_replacement_rules(
    rules: Iterable[ReplacementRule | CompiledReplacementRule],
) -> list[CompiledReplacementRule]:
    """Compile ``rules`` in order, dropping rules with an empty ``find``.

    Already compiled rules pass through unchanged.
    """

    compiled: list[CompiledReplacementRule] = []
    for rule in rules:
        if isinstance(rule, CompiledReplacementRule):
            compiled.append(rule)
            continue
        if not rule.find:
            continue
        compiled.append(CompiledReplacementRule(rule=rule, matcher=compile_matcher(rule.find)))
    return compiled


def expand_replacement(template: str, match: re.Match[str]) -> str:
    """Expand ``$`` tokens in ``template`` against ``match``.

    Unknown group numbers are left as written; groups that did not take part
    in the match expand to an empty string.
    """

    n_groups = match.re.groups

    def _token(tok: re.Match[str]) -> str:
        t = tok.group(1)
        if t == "$":
            return "$"
        if t == "&":
            return match.group(0)
        n = int(t)
        if len(t) == 2 and n > n_groups:
            # ``$12`` with a single group reads as ``$1`` followed by ``2``.
            first = int(t[0])
            if 1 <= first <= n_groups:
                return (match.group(first) or "") + t[1]
            return tok.group(0)
        if 1 <= n <= n_groups:
            return match.group(n) or ""
        return tok.group(0)

    return _TOKEN_RE.sub(_token, template)


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def _apply_one(
    text: str, compiled: CompiledReplacementRule
) -> tuple[bool, str, str | None]:
    """Return ``(matched, new_text, captured)`` for one rule."""

    matcher = compiled.matcher
    template = compiled.rule.replace
    if isinstance(matcher, RegexMatcher):
        first = matcher.pattern.search(text)
        if first is None:
            return False, text, None
        captured = first.group(1) if matcher.pattern.groups >= 1 else None
        if compiled.rule.delete_row:
            return True, text, captured or None
        new_text = matcher.pattern.sub(lambda m: expand_replacement(template, m), text)
        return True, new_text, captured or None

    if matcher.text not in text:
        return False, text, None
    if compiled.rule.delete_row:
        return True, text, None
    return True, text.replace(matcher.text, template), None


def apply_replacement_rules(
    text: str | None,
    rules: Sequence[ReplacementRule | CompiledReplacementRule],
) -> ReplacementResult:
    """Run the replacement chain over ``text``.

    A matching ``delete_row`` rule stops the chain and flags the record for
    deletion. The captured group of the last capturing rule that matched is
    reported; the final text is trimmed. ``None`` reads as an empty string.
    """

    if text is None:
        return ReplacementResult(processed_text="")

    processed = text
    captured: str | None = None
    for compiled in compile_replacement_rules(rules):
        matched, processed, group = _apply_one(processed, compiled)
        if not matched:
            continue
        if compiled.rule.delete_row:
            return ReplacementResult(processed_text=processed.strip(), should_delete=True)
        if group:
            captured = group
    return ReplacementResult(processed_text=processed.strip(), captured=captured)


def apply_category_rules(description: str, rules: Sequence[CategoryRule]) -> str:
    """Return the category of the first rule whose keyword occurs in ``description``."""

    for rule in rules:
        if rule.keyword and rule.keyword in description:
            return rule.category
    return UNCATEGORIZED


# ---------------------------------------------------------------------------
# Batch identity
# ---------------------------------------------------------------------------


def deduplicate_batch_ids[R: Identified](records: Iterable[R]) -> list[R]:
    """Give repeated ids within one batch a ``-dup-N`` suffix.

    The first occurrence keeps its id; later ones become ``<id>-dup-1``,
    ``<id>-dup-2`` ... in encounter order. Records must be dataclasses.
    """

    seen: dict[str, int] = {}
    out: list[R] = []
    for record in records:
        count = seen.get(record.id, 0)
        seen[record.id] = count + 1
        if count:
            new_id = f"{record.id}{DUPLICATE_SUFFIX}{count}"
            out.append(replace(record, id=new_id))  # type: ignore[type-var]
        else:
            out.append(record)
    return out


__all__ = [
    "DUPLICATE_SUFFIX",
    "RegexMatcher",
    "LiteralMatcher",
    "Matcher",
    "CompiledReplacementRule",
    "ReplacementResult",
    "compile_matcher",
    "compile_replacement_rules",
    "expand_replacement",
    "apply_replacement_rules",
    "apply_category_rules",
    "deduplicate_batch_ids",
]

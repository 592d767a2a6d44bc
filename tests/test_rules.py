from __future__ import annotations

from decimal import Decimal

from finance_flow.models import UNCATEGORIZED, CashRecord, CategoryRule, ReplacementRule
from finance_flow.rules import (
    LiteralMatcher,
    RegexMatcher,
    apply_category_rules,
    apply_replacement_rules,
    compile_replacement_rules,
    deduplicate_batch_ids,
)


def _rule(find: str, replace: str = "", *, delete: bool = False) -> ReplacementRule:
    return ReplacementRule(find=find, replace=replace, delete_row=delete)


def test_compile_picks_matcher_once_and_skips_empty_find():
    compiled = compile_replacement_rules([_rule(r"\d+"), _rule("["), _rule("")])
    assert [type(c.matcher) for c in compiled] == [RegexMatcher, LiteralMatcher]


def test_invalid_pattern_falls_back_to_literal_match():
    result = apply_replacement_rules("a[b[c", [_rule("[", "")])
    assert result.processed_text == "abc"
    assert not result.should_delete


def test_regex_replaces_every_occurrence_and_trims():
    result = apply_replacement_rules("  A 1 B 2  ", [_rule(r"\d", "#")])
    assert result.processed_text == "A # B #"


def test_dollar_tokens_in_replacement():
    result = apply_replacement_rules("me@host", [_rule(r"(\w+)@(\w+)", "$2 at $1 ($&) $$")])
    assert result.processed_text == "host at me (me@host) $"


def test_js_style_named_group_is_accepted():
    result = apply_replacement_rules("no 42", [_rule(r"(?<num>\d+)", "<$1>")])
    assert result.processed_text == "no <42>"
    assert result.captured == "42"


def test_rules_chain_and_delete_sees_the_running_text():
    rules = [_rule("X", "Y"), _rule("Y", delete=True), _rule("Y", "Z")]
    result = apply_replacement_rules("X", rules)
    assert result.should_delete

    untouched = apply_replacement_rules("W", rules)
    assert not untouched.should_delete
    assert untouched.processed_text == "W"


def test_captured_group_is_reported_and_last_capture_wins():
    result = apply_replacement_rules("退費 #12345", [_rule(r"\s*#(\d+)$")])
    assert result.processed_text == "退費"
    assert result.captured == "12345"

    rules = [_rule(r"#(\d+)"), _rule(r"@(\w+)")]
    both = apply_replacement_rules("a #1 @b", rules)
    assert both.captured == "b"
    assert both.processed_text == "a"


def test_none_text_is_empty_and_never_deleted():
    result = apply_replacement_rules(None, [_rule(".*", delete=True)])
    assert result.processed_text == ""
    assert not result.should_delete


def test_replacement_rule_accepts_camel_case_delete_flag():
    rule = ReplacementRule.model_validate({"find": "廣告", "deleteRow": True})
    assert rule.delete_row
    assert rule.replace == ""


def test_category_rules_first_match_wins_with_default():
    rules = [
        CategoryRule(keyword="", category="空"),
        CategoryRule(keyword="全家", category="吃"),
        CategoryRule(keyword="便利", category="雜"),
    ]
    assert apply_category_rules("全家便利商店", rules) == "吃"
    assert apply_category_rules("高鐵", rules) == UNCATEGORIZED
    assert apply_category_rules("anything", []) == "未分類"


def test_deduplicate_batch_ids_suffixes_repeats_in_order():
    def cash(rid: str) -> CashRecord:
        return CashRecord(
            id=rid, date="2024/05/01", description="d", amount=Decimal(1), category="c"
        )

    out = deduplicate_batch_ids([cash("a"), cash("a"), cash("b"), cash("a")])
    assert [r.id for r in out] == ["a", "a-dup-1", "b", "a-dup-2"]

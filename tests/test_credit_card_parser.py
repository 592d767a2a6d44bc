from __future__ import annotations

import textwrap
from decimal import Decimal

from finance_flow.fingerprint import record_id
from finance_flow.ingest.adapters.credit_card_text import (
    CreditCardDialect,
    parse_credit_card,
    parse_credit_line,
    strip_trailing_remark,
)


def _dedent(s: str) -> str:
    return textwrap.dedent(s).lstrip("\n")


def test_dual_date_line_with_category_hint_and_reference():
    entry = parse_credit_line("11/14 11/15 吃 摩斯漢堡 150 12345")
    assert entry is not None
    assert entry.transaction_date == "11/14"
    assert entry.posting_date == "11/15"
    assert entry.description == "摩斯漢堡"
    assert entry.amount == Decimal("150")
    assert entry.initial_category == "吃"
    assert entry.bank_code == "12345"
    assert entry.id == record_id("11/14", "11/15", "摩斯漢堡", Decimal("150"))


def test_single_date_line_reuses_transaction_date_as_posting_date():
    entry = parse_credit_line("11/14 全家便利商店 85")
    assert entry is not None
    assert (entry.transaction_date, entry.posting_date) == ("11/14", "11/14")
    assert entry.description == "全家便利商店"
    assert entry.amount == Decimal("85")
    assert entry.initial_category is None
    assert entry.bank_code is None


def test_negative_amount_with_thousands_separator_keeps_printed_sign():
    entry = parse_credit_line(
        "11/20 11/21 退款 NETFLIX -1,234", extra_category_labels={"退款"}
    )
    assert entry is not None
    assert entry.amount == Decimal("-1234")
    assert entry.description == "NETFLIX"
    assert entry.initial_category == "退款"


def test_leading_word_of_merchant_name_is_not_a_category():
    entry = parse_credit_line("11/14 11/15 麥當勞 信義店 150")
    assert entry is not None
    assert entry.description == "麥當勞 信義店"
    assert entry.initial_category is None
    assert entry.id == record_id("11/14", "11/15", "麥當勞 信義店", Decimal("150"))

    store_name = parse_credit_line("11/16 全家 便利商店 85")
    assert store_name is not None
    assert store_name.description == "全家 便利商店"


def test_short_or_zero_padded_numbers_are_not_reference_pairs():
    entry = parse_credit_line("11/14 統一超商 0827 150")
    assert entry is not None
    assert entry.amount == Decimal("150")
    assert entry.bank_code is None
    assert entry.description == "統一超商 0827"


def test_foreign_currency_pair_is_not_taken_as_reference():
    entry = parse_credit_line("11/02 11/03 APPLE.COM/BILL USD 10.83 341")
    assert entry is not None
    assert entry.amount == Decimal("341")
    assert entry.bank_code is None
    assert entry.description == "APPLE.COM/BILL USD 10.83"


def test_glued_leading_dates_are_split():
    entry = parse_credit_line("11/0211/03 UBER 250")
    assert entry is not None
    assert (entry.transaction_date, entry.posting_date) == ("11/02", "11/03")
    assert entry.description == "UBER"


def test_full_year_dates_are_kept_as_printed():
    entry = parse_credit_line("2024/11/14 2024/11/15 高鐵 1,490")
    assert entry is not None
    assert entry.transaction_date == "2024/11/14"
    assert entry.posting_date == "2024/11/15"
    assert entry.amount == Decimal("1490")


def test_lines_without_amount_or_description_are_skipped():
    assert parse_credit_line("11/14 11/15 摩斯漢堡") is None
    assert parse_credit_line("11/14 11/15 150") is None
    assert parse_credit_line("本期應繳金額 3,000") is None


def test_trailing_remark_stays_in_description_by_default():
    entry = parse_credit_line("11/14 11/15 STARBUCKS TAIPEI A123 150")
    assert entry is not None
    assert entry.description == "STARBUCKS TAIPEI A123"
    assert entry.bank_code is None


def test_trailing_remark_stripping_is_opt_in_per_dialect():
    dialect = CreditCardDialect(name="remarks", strip_trailing_remark=True)
    entry = parse_credit_line("11/14 11/15 STARBUCKS TAIPEI A123 150", dialect)
    assert entry is not None
    assert entry.description == "STARBUCKS TAIPEI"
    assert entry.bank_code == "A123"


def test_strip_trailing_remark_guards():
    assert strip_trailing_remark(["A123"]) == (None, ["A123"])
    assert strip_trailing_remark(["STORE", "999"]) == (None, ["STORE", "999"])
    assert strip_trailing_remark(["STORE", "X-1"]) == ("X-1", ["STORE"])


def test_category_hint_can_be_disabled():
    dialect = CreditCardDialect(name="plain", category_labels=None)
    entry = parse_credit_line(
        "11/14 11/15 吃 摩斯漢堡 150", dialect, extra_category_labels={"吃"}
    )
    assert entry is not None
    assert entry.initial_category is None
    assert entry.description == "吃 摩斯漢堡"


def test_parse_credit_card_skips_headers_and_summary_lines():
    text = _dedent(
        """
        交易日期 入帳日期 交易說明 金額
        11/14 11/15 吃 摩斯漢堡 150 12345
        本期應繳金額 3,000
        11/16 11/17 全家便利商店 85
        """
    )
    entries = parse_credit_card(text)
    assert [e.description for e in entries] == ["摩斯漢堡", "全家便利商店"]
    assert [e.amount for e in entries] == [Decimal("150"), Decimal("85")]


def test_parse_credit_card_recovers_rows_glued_by_pdf_copy():
    entries = parse_credit_card("11/14 11/15 摩斯漢堡 15011/16 11/17 全家 85")
    assert [(e.transaction_date, e.description, e.amount) for e in entries] == [
        ("11/14", "摩斯漢堡", Decimal("150")),
        ("11/16", "全家", Decimal("85")),
    ]


def test_ids_are_stable_across_runs():
    text = "11/14 11/15 吃 摩斯漢堡 150 12345\n11/16 11/17 全家便利商店 85\n"
    first = [e.id for e in parse_credit_card(text)]
    second = [e.id for e in parse_credit_card(text)]
    assert first == second
    assert len(set(first)) == 2


def test_untimed_deposit_rows_can_be_left_to_the_deposit_parser():
    text = "2024/05/01\t提款\t2000\t\t48000\t150\n11/14 11/15 摩斯漢堡 150\n"
    assert len(parse_credit_card(text)) == 2

    entries = parse_credit_card(text, skip_deposit_rows=True)
    assert [e.description for e in entries] == ["摩斯漢堡"]

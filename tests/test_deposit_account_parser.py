from __future__ import annotations

from decimal import Decimal

import pytest

from finance_flow.fingerprint import record_id
from finance_flow.ingest.adapters.deposit_account_text import (
    FOUR_COLUMN_LAYOUT,
    SIX_COLUMN_LAYOUT,
    DepositColumnLayout,
    DepositParserState,
    DepositStatementMachine,
    parse_deposit_account,
    parse_transaction_line,
    select_layout,
)


def test_six_column_withdrawal_with_summary_remark():
    text = "2024/05/01\n09:15:00\t提款\t2000\t\t\tATM888\n"
    entries = parse_deposit_account(text)
    assert len(entries) == 1
    e = entries[0]
    assert (e.date, e.time, e.description) == ("2024/05/01", "09:15:00", "提款")
    assert e.amount == Decimal("2000")
    assert e.bank_code == "ATM888"
    assert e.id == record_id("2024/05/01", "09:15:00", "提款", Decimal("2000"))


def test_deposit_only_row_is_negative_and_withdrawal_is_positive():
    text = (
        "2024/05/01\n"
        "10:02:11\t跨行轉入\t\t500\t48500\n"
        "11:00:00\t提款\t500\t\t48000\n"
    )
    entries = parse_deposit_account(text)
    assert [e.amount for e in entries] == [Decimal("-500"), Decimal("500")]


def test_continuation_line_completes_remark_without_changing_id():
    base = "2024/05/01\n10:02:11\t跨行轉入\t\t500\t48500\n"
    plain = parse_deposit_account(base)
    wrapped = parse_deposit_account(base + "822-0001234567\n")

    assert wrapped[0].bank_code == "822-0001234567"
    assert plain[0].bank_code is None
    assert wrapped[0].id == plain[0].id


def test_date_headers_switch_the_current_date():
    text = (
        "2024/05/01\n"
        "09:15:00\t提款\t2000\t\t48000\tATM888\n"
        "2024/05/02\n"
        "08:00:00\t薪資\t\t50,000\t98000\t\n"
    )
    entries = parse_deposit_account(text)
    assert [(e.date, e.description, e.amount) for e in entries] == [
        ("2024/05/01", "提款", Decimal("2000")),
        ("2024/05/02", "薪資", Decimal("-50000")),
    ]
    assert entries[1].bank_code is None


def test_whitespace_dialect_reverse_parse():
    text = (
        "2024/05/03\n"
        "11:00:00 ATM提款 1,000 47,000 ATM123\n"
        "12:00:00 轉入 +300 47,300\n"
        "13:00:00 手續費 15 - 47,285\n"
    )
    entries = parse_deposit_account(text)
    assert [(e.description, e.amount, e.bank_code) for e in entries] == [
        ("ATM提款", Decimal("1000"), "ATM123"),
        ("轉入", Decimal("-300"), None),
        ("手續費", Decimal("15"), None),
    ]


def test_special_description_suffix_moves_to_remark():
    text = "2024/05/10\n09:00:00\t國保保費11409\t1,000\t\t46,000\t\n"
    (entry,) = parse_deposit_account(text)
    assert entry.description == "國保保費"
    assert entry.bank_code == "11409"
    assert entry.amount == Decimal("1000")


def test_bracket_remark_moves_out_of_description():
    text = "2024/05/10\n09:30:00\t轉帳[房租]\t15,000\t\t31,000\t\n"
    (entry,) = parse_deposit_account(text)
    assert entry.description == "轉帳"
    assert entry.bank_code == "[房租]"


def test_dated_row_and_untimed_row():
    text = (
        "2024/05/04 13:00:00\t繳費\t500\t\t46500\t\n"
        "2024/05/05\t超商\t120\t\t46380\n"
    )
    entries = parse_deposit_account(text)
    assert [(e.date, e.time, e.description, e.amount) for e in entries] == [
        ("2024/05/04", "13:00:00", "繳費", Decimal("500")),
        ("2024/05/05", "00:00:00", "超商", Decimal("120")),
    ]


def test_transaction_before_any_date_header_uses_default_date():
    (entry,) = parse_deposit_account("09:15:00\t提款\t2000\t\t\t\n", default_date="2024/01/01")
    assert entry.date == "2024/01/01"


def test_headers_blank_lines_and_orphan_text_are_ignored():
    text = (
        "帳戶明細\n"
        "交易日期\t交易時間\t摘要\t支出\t存入\t餘額\n"
        "\n"
        "2024/05/01\n"
        "09:15:00\t提款\t2000\t\t48000\t\n"
    )
    entries = parse_deposit_account(text)
    assert len(entries) == 1
    assert entries[0].bank_code is None


def test_empty_transaction_is_dropped():
    assert parse_deposit_account("2024/05/01\n09:15:00\t\t\t\t\t\n") == []


def test_merge_summary_layout_folds_summary_into_description():
    merged = DepositColumnLayout("merged", 6, balance=4, summary=5, merge_summary=True)
    text = "2024/05/01\n09:15:00\t提款\t2000\t\t48000\tATM888\n"
    (entry,) = parse_deposit_account(text, layouts=(merged, FOUR_COLUMN_LAYOUT))
    assert entry.description == "提款 ATM888"
    assert entry.bank_code is None


@pytest.mark.parametrize(
    ("columns", "expected"),
    [
        (6, SIX_COLUMN_LAYOUT),
        (7, SIX_COLUMN_LAYOUT),
        (5, FOUR_COLUMN_LAYOUT),
        (4, FOUR_COLUMN_LAYOUT),
        (3, None),
    ],
)
def test_select_layout_picks_widest_satisfied_layout(columns: int, expected):
    assert select_layout(columns) is expected


def test_parse_transaction_line_prefers_tab_columns():
    line = parse_transaction_line("10:02:11\t跨行轉入\t\t500\t48500\t")
    assert line is not None
    assert line.withdrawal == Decimal("0")
    assert line.deposit == Decimal("500")
    assert line.balance == Decimal("48500")
    assert line.amount == Decimal("-500")


def test_state_machine_transitions():
    machine = DepositStatementMachine(default_date="2024/01/01")
    assert machine.state is DepositParserState.IDLE

    assert machine.feed("2024/05/01") == []
    assert machine.state is DepositParserState.IDLE

    assert machine.feed("09:15:00\t提款\t2000\t\t48000\t") == []
    assert machine.state is DepositParserState.ACCUMULATING

    assert machine.feed("ATM888") == []
    emitted = machine.feed("10:00:00\t轉入\t\t100\t48100\t")
    assert [e.description for e in emitted] == ["提款"]
    assert emitted[0].bank_code == "ATM888"

    closed = machine.close()
    assert [e.description for e in closed] == ["轉入"]
    assert machine.state is DepositParserState.DONE

    with pytest.raises(RuntimeError):
        machine.feed("2024/05/02")


def test_card_rows_close_the_open_entry_when_enabled():
    text = (
        "2024/05/01\n"
        "09:15:00\t提款\t2000\t\t48000\tATM888\n"
        "11/16 11/17 全家 便利商店 85\n"
        "10:02:11\t跨行轉入\t\t500\t48500\n"
        "822-0001234567\n"
    )
    default = parse_deposit_account(text)
    assert default[0].bank_code == "ATM888 11/16 11/17 全家 便利商店 85"

    entries = parse_deposit_account(text, card_rows_end_entries=True)
    assert [(e.description, e.bank_code) for e in entries] == [
        ("提款", "ATM888"),
        ("跨行轉入", "822-0001234567"),
    ]

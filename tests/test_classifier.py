from __future__ import annotations

from datetime import date

import pytest

from finance_flow.ingest.classifier import (
    LineKind,
    classify_line,
    coerce_statement_type,
    detect_statement_type,
    is_card_row,
    is_header_row,
    is_mixed_section,
    record_family_for_tag,
    split_glued_rows,
    split_sections,
)
from finance_flow.models import RecordFamily, StatementType


@pytest.mark.parametrize(
    ("line", "expected"),
    [
        ("", LineKind.BLANK),
        ("   \t ", LineKind.BLANK),
        ("2024/05/01", LineKind.DEPOSIT_DATE_HEADER),
        ("2024/5/1　", LineKind.DEPOSIT_DATE_HEADER),
        ("09:15:00\t提款\t2000\t\t\tATM888", LineKind.DEPOSIT_TRANSACTION),
        ("2024/05/01 09:15:00 提款 2000", LineKind.DEPOSIT_DATED_ROW),
        ("11/14 11/15 吃 摩斯漢堡 150 12345", LineKind.CREDIT_CANDIDATE),
        ("2024/11/14 摩斯漢堡 150", LineKind.CREDIT_CANDIDATE),
        ("交易日期\t交易時間\t摘要\t支出\t存入\t餘額", LineKind.HEADER),
        ("交易日期", LineKind.HEADER),
        ("822-0001234567", LineKind.OTHER),
        ("本期應繳金額 3,000", LineKind.OTHER),
    ],
)
def test_classify_line(line: str, expected: LineKind):
    assert classify_line(line) is expected


def test_split_sections_cuts_before_each_column_label():
    text = "交易日期 入帳日期\n11/14 A 1\n交易日期 交易時間\n2024/05/01\n"
    sections = split_sections(text)
    assert sections == ["交易日期 入帳日期\n11/14 A 1\n", "交易日期 交易時間\n2024/05/01\n"]


def test_split_sections_without_label_is_one_section():
    assert split_sections("11/14 A 1\n") == ["11/14 A 1\n"]
    assert split_sections("  \n") == []


def test_split_glued_rows_restores_lost_newline_after_amount():
    glued = "11/14 11/15 A 37812/28\t12/29 B 100"
    assert split_glued_rows(glued) == "11/14 11/15 A 378\n12/28\t12/29 B 100"


def test_split_glued_rows_splits_after_card_banner():
    glued = "卡號末四碼（1234） 11/14 11/15 X 100"
    assert split_glued_rows(glued) == "卡號末四碼（1234）\n11/14 11/15 X 100"


def test_detect_statement_type():
    deposit = "2024/05/01\n09:15:00\t提款\t2000\t\t\tATM888\n"
    credit = "交易日期 入帳日期\n11/14 11/15 摩斯漢堡 150\n"
    assert detect_statement_type(deposit) is StatementType.DEPOSIT_ACCOUNT
    assert detect_statement_type(credit) is StatementType.CREDIT_CARD
    assert detect_statement_type("hello\nworld") is StatementType.UNKNOWN


def test_coerce_statement_type_accepts_enum_and_strings():
    assert coerce_statement_type(StatementType.CREDIT_CARD) is StatementType.CREDIT_CARD
    assert coerce_statement_type(" Deposit_Account ") is StatementType.DEPOSIT_ACCOUNT
    assert coerce_statement_type("bogus") is StatementType.UNKNOWN
    assert coerce_statement_type(42) is StatementType.UNKNOWN


def test_is_header_row():
    assert is_header_row(["日期", "種類", "內容", "金額", "類型", "備註"])
    assert is_header_row(["Date", "Category", "Description", "Amount", "Type", "Notes"])
    assert not is_header_row([date(2024, 5, 1), "吃", "摩斯漢堡", 150, "玉山信", ""])


@pytest.mark.parametrize(
    ("tag", "family"),
    [
        ("玉山信", RecordFamily.CREDIT),
        (" 現金 ", RecordFamily.CASH),
        ("兆豐匯", RecordFamily.DEPOSIT),
        ("玉山匯", RecordFamily.DEPOSIT),
        ("", RecordFamily.DEPOSIT),
        ("其他", RecordFamily.DEPOSIT),
    ],
)
def test_record_family_for_tag(tag: str, family: RecordFamily):
    assert record_family_for_tag(tag) is family


def test_is_card_row_excludes_untimed_deposit_rows():
    assert is_card_row("11/14 11/15 摩斯漢堡 150")
    assert is_card_row("2024/11/14 2024/11/15 高鐵 1,490")
    assert not is_card_row("2024/05/01\t提款\t2000\t\t48000\tATM888")
    assert not is_card_row("09:15:00\t提款\t2000")
    assert not is_card_row("2024/05/01")


def test_is_mixed_section_needs_both_row_kinds():
    mixed = "11/14 11/15 摩斯漢堡 150\n2024/05/01\n09:15:00\t提款\t2000\t\t48000\tATM888\n"
    assert is_mixed_section(mixed)
    assert not is_mixed_section("11/14 11/15 摩斯漢堡 150\n11/16 全家 85\n")
    assert not is_mixed_section(
        "2024/05/01\n09:15:00\t提款\t2000\t\t48000\n2024/05/02\t存款\t\t100\t48100\n"
    )

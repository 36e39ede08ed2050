"""Tests for loading canonical record files."""

import json
from datetime import datetime

import pytest

from payledger.domain.errors import ValidationError
from payledger.domain.record_loader import load_records

CSV_HEADER = "transaction_time,type,counterparty,description,amount,payment_method,status,transaction_no\n"


def test_load_csv(tmp_path):
    csv_file = tmp_path / "bill.csv"
    csv_file.write_text(
        CSV_HEADER
        + "2024-01-15 12:30:00,支出,Restaurant ABC,Lunch,\"¥1,234.56\",Bank Card,交易成功, 2024011522001 \n"
        + "2024-01-16 08:00:00,收入,Employer,Salary,5000.00,Balance,交易成功,2024011622002\n",
        encoding="utf-8",
    )
    result = load_records(str(csv_file), source="alipay")

    assert result.errors == []
    assert len(result.records) == 2
    first = result.records[0]
    assert first.transaction_time == datetime(2024, 1, 15, 12, 30)
    assert first.amount == "¥1,234.56"
    assert first.transaction_no == "2024011522001"
    assert first.provider == "alipay"
    assert first.merchant_order_no == ""


def test_load_csv_with_bom_and_semicolons(tmp_path):
    csv_file = tmp_path / "bill.csv"
    csv_file.write_text(
        "transaction_time;amount;transaction_no;provider\n2024-01-15 12:30:00;12.00;T1;wechat\n",
        encoding="utf-8-sig",
    )
    result = load_records(str(csv_file), source="alipay")
    assert [r.transaction_no for r in result.records] == ["T1"]
    assert result.records[0].provider == "wechat"


def test_summary_rows_are_skipped(tmp_path):
    csv_file = tmp_path / "bill.csv"
    csv_file.write_text(
        CSV_HEADER
        + "2024-01-15 12:30:00,支出,Shop,Item,10.00,Card,ok,T1\n"
        + ",,,,,,,\n"
        + "Total,,,,10.00,,,\n",
        encoding="utf-8",
    )
    result = load_records(str(csv_file))
    assert len(result.records) == 1
    assert result.errors == []


def test_bad_timestamp_reported_with_row_number(tmp_path):
    csv_file = tmp_path / "bill.csv"
    csv_file.write_text(
        CSV_HEADER
        + "2024-01-15 12:30:00,支出,Shop,Item,10.00,Card,ok,T1\n"
        + "garbage,支出,Shop,Item,10.00,Card,ok,T2\n",
        encoding="utf-8",
    )
    result = load_records(str(csv_file))
    assert len(result.records) == 1
    assert len(result.errors) == 1
    assert result.errors[0].startswith("Row 3:")


def test_missing_required_columns(tmp_path):
    csv_file = tmp_path / "bill.csv"
    csv_file.write_text("date,amount\n2024-01-15,10\n", encoding="utf-8")
    with pytest.raises(ValidationError):
        load_records(str(csv_file))


def test_load_json(tmp_path):
    json_file = tmp_path / "bill.json"
    json_file.write_text(
        json.dumps(
            [
                {"transaction_time": "2024-01-15T12:30:00", "amount": 12.5, "transaction_no": "J1", "type": "支出"},
                {"transaction_time": "", "transaction_no": "J2"},
            ],
            ensure_ascii=False,
        ),
        encoding="utf-8",
    )
    result = load_records(str(json_file), source="alipay")
    assert len(result.records) == 1
    assert result.records[0].amount == "12.5"
    assert result.records[0].provider == "alipay"


def test_json_must_be_a_list(tmp_path):
    json_file = tmp_path / "bill.json"
    json_file.write_text('{"transaction_no": "J1"}', encoding="utf-8")
    with pytest.raises(ValidationError):
        load_records(str(json_file))


def test_missing_file():
    with pytest.raises(FileNotFoundError):
        load_records("/nonexistent/bill.csv")

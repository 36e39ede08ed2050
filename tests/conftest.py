"""Shared pytest fixtures for payledger tests."""

import os
import tempfile
from datetime import datetime

import pytest

from payledger.database.factories import create_sqlite_database
from payledger.domain.account import AccountService
from payledger.domain.commit import CommitService
from payledger.domain.entities import ImportRecord
from payledger.domain.ledger import LedgerService
from payledger.domain.matcher import MatchService
from payledger.domain.rules import RuleService
from payledger.domain.unmatched import UnmatchedService


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def account_service(temp_db):
    """Create an AccountService with a temporary database."""
    return AccountService(temp_db)


@pytest.fixture
def rule_service(temp_db):
    """Create a RuleService with a temporary database."""
    return RuleService(temp_db)


@pytest.fixture
def ledger_service(temp_db):
    """Create a LedgerService with a temporary database."""
    return LedgerService(temp_db)


@pytest.fixture
def match_service(temp_db):
    """Create a MatchService with a temporary database."""
    return MatchService(temp_db)


@pytest.fixture
def commit_service(temp_db):
    """Create a CommitService with a temporary database."""
    return CommitService(temp_db)


@pytest.fixture
def unmatched_service(temp_db):
    """Create an UnmatchedService with a temporary database."""
    return UnmatchedService(temp_db)


@pytest.fixture
def sample_accounts(account_service):
    """Default account tree plus the accounts used by the sample rules."""
    account_service.init_default_accounts()
    for path in ("Assets:Bank", "Assets:Alipay", "Expenses:Food", "Expenses:Transport", "Income:Salary"):
        account_service.ensure_account_path(path)
    return account_service


@pytest.fixture
def alipay_source(rule_service):
    """Create the 'alipay' import source."""
    return rule_service.create_source("alipay", name="Alipay")


@pytest.fixture
def food_rules(rule_service, sample_accounts, alipay_source):
    """Rules that classify restaurant payments made with a bank card."""
    food = rule_service.create_rule(
        "alipay", "restaurants", priority=10, peer_pattern="Restaurant|Cafe", target_account="Expenses:Food"
    )
    bank = rule_service.create_rule(
        "alipay", "bank card", priority=20, method_pattern="Bank", method_account="Assets:Bank"
    )
    return food, bank


@pytest.fixture
def make_record():
    """Factory for import records with sensible defaults."""

    def _make(transaction_no: str = "T1", **overrides) -> ImportRecord:
        values = {
            "transaction_time": datetime(2024, 1, 15, 12, 30),
            "type": "支出",
            "counterparty": "Restaurant ABC",
            "description": "Lunch",
            "amount": "¥1,234.56",
            "payment_method": "Bank Card 1234",
            "status": "交易成功",
            "transaction_no": transaction_no,
            "provider": "alipay",
        }
        values.update(overrides)
        return ImportRecord(**values)

    return _make


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()

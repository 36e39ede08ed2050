"""Tests for settings and logging configuration."""

import logging

import pytest

from payledger.config import DEFAULT_CURRENCY, load_settings
from payledger.logging_config import configure_logging


def test_load_settings_defaults():
    settings = load_settings({})
    assert settings.database_path is None
    assert settings.currency == DEFAULT_CURRENCY
    assert settings.log_level == "WARNING"


def test_load_settings_from_environment():
    settings = load_settings(
        {"PAYLEDGER_DB_PATH": "/tmp/ledger.db", "PAYLEDGER_CURRENCY": "USD", "PAYLEDGER_LOG_LEVEL": "debug"}
    )
    assert settings.database_path == "/tmp/ledger.db"
    assert settings.currency == "USD"
    assert settings.log_level == "DEBUG"


def test_configure_logging_sets_package_level():
    configure_logging("info")
    assert logging.getLogger("payledger").level == logging.INFO
    configure_logging()
    assert logging.getLogger("payledger").level == logging.WARNING


def test_configure_logging_rejects_unknown_level():
    with pytest.raises(ValueError):
        configure_logging("chatty")

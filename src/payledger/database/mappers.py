"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic, so the domain entities stay stable
when the database schema changes.
"""

from decimal import Decimal

from payledger.domain import entities as domain
from payledger.database.models import (
    Account as ORMAccount,
    ImportSource as ORMImportSource,
    ImportRule as ORMImportRule,
    RawTransaction as ORMRawTransaction,
    Transaction as ORMTransaction,
    Posting as ORMPosting,
)


def _decimal(value) -> Decimal:
    # SQLite hands Numeric columns back through float
    return Decimal(str(value)).quantize(Decimal("0.01"))


def account_to_domain(orm_account: ORMAccount) -> domain.Account:
    """Convert SQLAlchemy Account model to domain Account entity."""
    return domain.Account(
        id=orm_account.id,
        name=orm_account.name,
        account_type=domain.AccountType(orm_account.account_type),
        parent_id=orm_account.parent_id,
        currency=orm_account.currency,
        created_at=orm_account.created_at,
    )


def import_source_to_domain(orm_source: ORMImportSource) -> domain.ImportSource:
    """Convert SQLAlchemy ImportSource model to domain ImportSource entity."""
    return domain.ImportSource(
        id=orm_source.id,
        name=orm_source.name,
        created_at=orm_source.created_at,
    )


def import_rule_to_domain(orm_rule: ORMImportRule) -> domain.ImportRule:
    """Convert SQLAlchemy ImportRule model to domain ImportRule entity."""
    return domain.ImportRule(
        id=orm_rule.id,
        source_id=orm_rule.source_id,
        name=orm_rule.name,
        priority=orm_rule.priority if orm_rule.priority is not None else 0,
        enabled=bool(orm_rule.enabled) if orm_rule.enabled is not None else True,
        description=orm_rule.description,
        type_pattern=orm_rule.type_pattern,
        category_pattern=orm_rule.category_pattern,
        peer_pattern=orm_rule.peer_pattern,
        desc_pattern=orm_rule.desc_pattern,
        status_pattern=orm_rule.status_pattern,
        method_pattern=orm_rule.method_pattern,
        amount_min=_decimal(orm_rule.amount_min) if orm_rule.amount_min is not None else None,
        amount_max=_decimal(orm_rule.amount_max) if orm_rule.amount_max is not None else None,
        time_pattern=orm_rule.time_pattern,
        target_account=orm_rule.target_account,
        method_account=orm_rule.method_account,
        created_at=orm_rule.created_at,
    )


def raw_transaction_to_domain(orm_raw: ORMRawTransaction) -> domain.RawTransaction:
    """Convert SQLAlchemy RawTransaction model to domain RawTransaction entity."""
    return domain.RawTransaction(
        id=orm_raw.id,
        source=orm_raw.source,
        identifier=orm_raw.identifier,
        raw_data=dict(orm_raw.raw_data or {}),
        created_at=orm_raw.created_at,
        transaction_id=orm_raw.transaction_id,
    )


def posting_to_domain(orm_posting: ORMPosting) -> domain.Posting:
    """Convert SQLAlchemy Posting model to domain Posting entity."""
    return domain.Posting(
        id=orm_posting.id,
        transaction_id=orm_posting.transaction_id,
        account_id=orm_posting.account_id,
        amount=_decimal(orm_posting.amount),
        currency=orm_posting.currency,
    )


def transaction_to_domain(orm_transaction: ORMTransaction) -> domain.Transaction:
    """Convert SQLAlchemy Transaction model (with postings) to domain Transaction."""
    return domain.Transaction(
        id=orm_transaction.id,
        date=orm_transaction.date,
        payee=orm_transaction.payee,
        narration=orm_transaction.narration,
        postings=tuple(posting_to_domain(p) for p in orm_transaction.postings),
        tags=tuple(tag.name for tag in orm_transaction.tags),
        raw_transaction_ids=tuple(raw.id for raw in orm_transaction.raw_records),
        created_at=orm_transaction.created_at,
    )

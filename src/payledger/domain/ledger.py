"""Ledger domain service: balanced transaction writer and reader."""

import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Optional, Sequence

from payledger.database.base import Database
from payledger.domain.entities import Page, PostingDraft, Transaction
from payledger.domain.errors import (
    NotFoundError,
    ValidationError,
    account_not_found,
    transaction_not_found,
    unbalanced_postings,
)

logger = logging.getLogger(__name__)

# Postings of one transaction must sum to zero within this tolerance
BALANCE_TOLERANCE = Decimal("0.001")


def is_balanced(postings: Sequence[PostingDraft]) -> bool:
    """Return True when the postings sum to zero within BALANCE_TOLERANCE."""
    total = sum((p.amount for p in postings), Decimal("0"))
    return abs(total) <= BALANCE_TOLERANCE


def validate_page(page: int, page_size: int) -> None:
    """Reject page numbers and sizes below one."""
    if page < 1:
        raise ValidationError(f"Page must be at least 1, got {page}")
    if page_size < 1:
        raise ValidationError(f"Page size must be at least 1, got {page_size}")


class LedgerService:
    """Service for writing and reading double-entry transactions."""

    def __init__(self, db: Database):
        """Initialize ledger service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_transaction(
        self,
        date: datetime,
        payee: Optional[str],
        narration: Optional[str],
        postings: Sequence[PostingDraft],
        tags: Optional[Sequence[str]] = None,
        raw_transaction_ids: Sequence[int] = (),
    ) -> Transaction:
        """Create a balanced transaction.

        Every write to the ledger goes through here, so the checks below hold
        for imported, manual and adjustment transactions alike.

        Args:
            date: Transaction timestamp
            payee: Optional payee
            narration: Optional narration
            postings: At least two postings that sum to zero
            tags: Optional tag names
            raw_transaction_ids: Raw imports to link to the new transaction

        Returns:
            The created transaction

        Raises:
            ValidationError: If there are fewer than two postings, the postings
                do not balance, or a tag name is blank
            NotFoundError: If a posting references an unknown account
            DuplicateImport: If a raw import is already linked
        """
        if date is None:
            raise ValidationError("Transaction date is required")
        if len(postings) < 2:
            raise ValidationError("A transaction needs at least two postings")
        if not is_balanced(postings):
            total = sum((p.amount for p in postings), Decimal("0"))
            raise ValidationError(unbalanced_postings(total))

        for account_id in dict.fromkeys(p.account_id for p in postings):
            if self.db.get_account(account_id) is None:
                raise NotFoundError(account_not_found(account_id))

        tag_names = []
        for tag in tags or ():
            name = tag.strip()
            if not name:
                raise ValidationError("Tag names cannot be blank")
            tag_names.append(name)

        transaction = self.db.create_transaction(
            date=date,
            payee=payee,
            narration=narration,
            postings=postings,
            tags=tag_names,
            raw_transaction_ids=raw_transaction_ids,
        )
        logger.debug("Created transaction %s with %d postings", transaction.id, len(postings))
        return transaction

    def get_transaction(self, transaction_id: int) -> Optional[Transaction]:
        """Get transaction by ID."""
        return self.db.get_transaction(transaction_id)

    def require_transaction(self, transaction_id: int) -> Transaction:
        """Get transaction by ID or raise NotFoundError."""
        transaction = self.db.get_transaction(transaction_id)
        if transaction is None:
            raise NotFoundError(transaction_not_found(transaction_id))
        return transaction

    def list_transactions(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        account_id: Optional[str] = None,
        payee: Optional[str] = None,
        narration: Optional[str] = None,
        paying_account_id: Optional[str] = None,
        receiving_account_id: Optional[str] = None,
        min_amount: Optional[Decimal] = None,
        max_amount: Optional[Decimal] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Page[Transaction]:
        """List transactions with filters, newest first.

        Args:
            start_date: Optional first day (inclusive)
            end_date: Optional last day (inclusive)
            account_id: Optional account; postings anywhere in its subtree match
            payee: Optional case-insensitive payee substring
            narration: Optional case-insensitive narration substring
            paying_account_id: Optional account whose subtree has a negative posting
            receiving_account_id: Optional account whose subtree has a positive posting
            min_amount: Optional lower bound (inclusive) on one posting's signed amount
            max_amount: Optional upper bound (inclusive) on the same posting
            page: 1-based page number
            page_size: Transactions per page

        Returns:
            A page of transactions

        Raises:
            NotFoundError: If a filter account doesn't exist
            ValidationError: If min_amount exceeds max_amount, or the page is invalid
        """
        validate_page(page, page_size)
        for filter_account in (account_id, paying_account_id, receiving_account_id):
            if filter_account is not None and self.db.get_account(filter_account) is None:
                raise NotFoundError(account_not_found(filter_account))
        if min_amount is not None and max_amount is not None and min_amount > max_amount:
            raise ValidationError(f"Minimum amount {min_amount} is greater than maximum amount {max_amount}")

        start = datetime.combine(start_date, time.min) if start_date is not None else None
        end = datetime.combine(end_date + timedelta(days=1), time.min) if end_date is not None else None

        items, total = self.db.list_transactions(
            start_date=start,
            end_date=end,
            account_id=account_id,
            payee=payee,
            narration=narration,
            paying_account_id=paying_account_id,
            receiving_account_id=receiving_account_id,
            min_amount=min_amount,
            max_amount=max_amount,
            offset=(page - 1) * page_size,
            limit=page_size,
        )
        return Page(items=items, total=total, page=page, page_size=page_size)

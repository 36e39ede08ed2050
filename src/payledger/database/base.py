"""Abstract database interface."""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Optional, Any, Sequence

# Import entities directly, not through the domain package
from payledger.domain.entities import (
    Account,
    AccountType,
    ImportSource,
    ImportRule,
    RawTransaction,
    Transaction,
    PostingDraft,
)


class Database(ABC):
    """Abstract database interface for payledger."""

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    # Account operations
    @abstractmethod
    def create_account(
        self,
        account_id: str,
        name: str,
        account_type: AccountType,
        parent_id: Optional[str] = None,
        currency: str = "CNY",
    ) -> Account:
        """Create a new account keyed by its full path."""
        pass

    @abstractmethod
    def get_account(self, account_id: str) -> Optional[Account]:
        """Get account by path."""
        pass

    @abstractmethod
    def list_accounts(self) -> list[Account]:
        """List all accounts ordered by path."""
        pass

    @abstractmethod
    def list_posting_amounts(self, account_id: str, include_descendants: bool = False) -> list[Decimal]:
        """Return the posting amounts of an account.

        Args:
            account_id: Account path
            include_descendants: Also include every account whose path starts
                with ``account_id`` followed by the path separator
        """
        pass

    # Import source operations
    @abstractmethod
    def create_import_source(self, source_id: str, name: str) -> ImportSource:
        """Create an import source."""
        pass

    @abstractmethod
    def get_import_source(self, source_id: str) -> Optional[ImportSource]:
        """Get import source by ID."""
        pass

    @abstractmethod
    def list_import_sources(self) -> list[ImportSource]:
        """List all import sources."""
        pass

    # Import rule operations
    @abstractmethod
    def create_import_rule(self, source_id: str, name: str, **fields: Any) -> ImportRule:
        """Create an import rule. ``fields`` are ImportRule attribute values."""
        pass

    @abstractmethod
    def get_import_rule(self, rule_id: int) -> Optional[ImportRule]:
        """Get import rule by ID."""
        pass

    @abstractmethod
    def get_import_rule_by_name(self, source_id: str, name: str) -> Optional[ImportRule]:
        """Get import rule by its name within a source."""
        pass

    @abstractmethod
    def update_import_rule(self, rule_id: int, **fields: Any) -> ImportRule:
        """Overwrite the given attributes of an import rule."""
        pass

    @abstractmethod
    def list_import_rules(self, source_id: str, enabled_only: bool = False) -> list[ImportRule]:
        """List rules of a source by ascending priority, then ascending ID."""
        pass

    # Raw transaction operations
    @abstractmethod
    def create_raw_transaction(
        self, source: str, identifier: str, raw_data: dict[str, Any], created_at: datetime
    ) -> RawTransaction:
        """Create a raw transaction.

        Raises:
            DuplicateImport: If a row with the same (source, identifier) exists
        """
        pass

    @abstractmethod
    def get_raw_transaction(self, raw_tx_id: int) -> Optional[RawTransaction]:
        """Get raw transaction by ID."""
        pass

    @abstractmethod
    def find_raw_transaction(self, source: str, identifier: str) -> Optional[RawTransaction]:
        """Get raw transaction by its dedup key."""
        pass

    @abstractmethod
    def list_unlinked_raw_transactions(
        self, source: Optional[str] = None, offset: int = 0, limit: Optional[int] = None
    ) -> list[RawTransaction]:
        """List raw transactions without a ledger transaction, newest first."""
        pass

    @abstractmethod
    def count_unlinked_raw_transactions(self, source: Optional[str] = None) -> int:
        """Count raw transactions without a ledger transaction."""
        pass

    # Transaction operations
    @abstractmethod
    def create_transaction(
        self,
        date: datetime,
        payee: Optional[str],
        narration: Optional[str],
        postings: Sequence[PostingDraft],
        tags: Sequence[str] = (),
        raw_transaction_ids: Sequence[int] = (),
    ) -> Transaction:
        """Create a transaction with its postings in one commit.

        Listed raw transactions are linked to the new transaction in the same
        commit.

        Raises:
            DuplicateImport: If a listed raw transaction is already linked
        """
        pass

    @abstractmethod
    def get_transaction(self, transaction_id: int) -> Optional[Transaction]:
        """Get transaction by ID."""
        pass

    @abstractmethod
    def list_transactions(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        account_id: Optional[str] = None,
        payee: Optional[str] = None,
        narration: Optional[str] = None,
        paying_account_id: Optional[str] = None,
        receiving_account_id: Optional[str] = None,
        min_amount: Optional[Decimal] = None,
        max_amount: Optional[Decimal] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> tuple[list[Transaction], int]:
        """List transactions, newest first, with the unpaginated total.

        Args:
            start_date: Optional inclusive lower bound on the transaction date
            end_date: Optional exclusive upper bound on the transaction date
            account_id: Only transactions with a posting in this account's subtree
            payee: Case-insensitive substring of the payee
            narration: Case-insensitive substring of the narration
            paying_account_id: Only transactions with a negative posting in this subtree
            receiving_account_id: Only transactions with a positive posting in this subtree
            min_amount: Only transactions with a posting amount of at least this
            max_amount: Only transactions with a posting amount of at most this
        """
        pass

"""Domain model entities for payledger.

These are pure data classes representing business concepts, independent of
database schema. Services and the database layer exchange these objects; the
SQLAlchemy models never leave the database package.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from payledger.utils.date_parser import parse_timestamp

T = TypeVar("T")

ACCOUNT_SEPARATOR = ":"

# Record types that move money out of the payment method account.
OUTGOING_RECORD_TYPES = frozenset({"支出", "expense", "out", "outgoing"})


class AccountType(str, Enum):
    """The five kinds of ledger account."""

    ASSETS = "ASSETS"
    LIABILITIES = "LIABILITIES"
    INCOME = "INCOME"
    EXPENSES = "EXPENSES"
    EQUITY = "EQUITY"

    @property
    def root_name(self) -> str:
        """Conventional name of the top-level account of this type."""
        return self.value.capitalize()

    @classmethod
    def from_root_name(cls, name: str) -> Optional["AccountType"]:
        """Return the type whose root account is called ``name``."""
        for account_type in cls:
            if account_type.root_name == name:
                return account_type
        return None


@dataclass(frozen=True)
class Account:
    """Ledger account identified by its colon-delimited path."""

    id: str
    name: str
    account_type: AccountType
    parent_id: Optional[str]
    currency: str
    created_at: datetime

    @property
    def segments(self) -> list[str]:
        return self.id.split(ACCOUNT_SEPARATOR)

    @property
    def depth(self) -> int:
        return len(self.segments) - 1


@dataclass(frozen=True)
class ImportSource:
    """A payment provider that records are imported from (e.g. ``alipay``)."""

    id: str
    name: str
    created_at: datetime


@dataclass(frozen=True)
class ImportRule:
    """Classification rule scoped to one import source."""

    id: int
    source_id: str
    name: str
    priority: int = 0
    enabled: bool = True
    description: Optional[str] = None
    type_pattern: Optional[str] = None
    category_pattern: Optional[str] = None
    peer_pattern: Optional[str] = None
    desc_pattern: Optional[str] = None
    status_pattern: Optional[str] = None
    method_pattern: Optional[str] = None
    amount_min: Optional[Decimal] = None
    amount_max: Optional[Decimal] = None
    time_pattern: Optional[str] = None
    target_account: Optional[str] = None
    method_account: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class ImportRecord:
    """Canonical, provider-agnostic representation of one imported bill line."""

    transaction_time: Optional[datetime] = None
    category: str = ""
    counterparty: str = ""
    counterparty_account: str = ""
    description: str = ""
    type: str = ""
    amount: str = ""
    payment_method: str = ""
    status: str = ""
    transaction_no: str = ""
    merchant_order_no: str = ""
    remarks: str = ""
    provider: Optional[str] = None
    raw_tx_id: Optional[int] = None

    @property
    def identifier(self) -> str:
        """Dedup identifier: the provider transaction number without padding."""
        return (self.transaction_no or "").strip()

    @property
    def is_outgoing(self) -> bool:
        """True when the record moves money out of the payment method."""
        return (self.type or "").strip().lower() in OUTGOING_RECORD_TYPES

    def to_payload(self) -> dict[str, Any]:
        """Return a JSON-compatible copy of the record (without ``raw_tx_id``)."""
        payload: dict[str, Any] = {}
        for f in fields(self):
            if f.name == "raw_tx_id":
                continue
            value = getattr(self, f.name)
            if isinstance(value, datetime):
                value = value.isoformat(sep=" ")
            payload[f.name] = value
        return payload

    @classmethod
    def from_payload(cls, payload: dict[str, Any], raw_tx_id: Optional[int] = None) -> "ImportRecord":
        """Rebuild a record from a stored payload.

        Unknown keys are ignored and missing text fields default to "".
        """
        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}
        for key, value in payload.items():
            if key not in known or key == "raw_tx_id":
                continue
            if key == "transaction_time":
                if isinstance(value, str):
                    value = parse_timestamp(value) if value.strip() else None
            elif key != "provider":
                value = "" if value is None else str(value)
            values[key] = value
        return cls(raw_tx_id=raw_tx_id, **values)


@dataclass(frozen=True)
class RawTransaction:
    """Verbatim copy of an import record, unique on (source, identifier)."""

    id: int
    source: str
    identifier: str
    raw_data: dict[str, Any]
    created_at: datetime
    transaction_id: Optional[int] = None

    @property
    def is_linked(self) -> bool:
        return self.transaction_id is not None

    def to_record(self) -> ImportRecord:
        payload = dict(self.raw_data)
        # the row's key decides the source, whatever the payload says
        payload["provider"] = self.source
        return ImportRecord.from_payload(payload, raw_tx_id=self.id)


@dataclass(frozen=True)
class Posting:
    """One signed leg of a transaction against a single account."""

    id: int
    transaction_id: int
    account_id: str
    amount: Decimal
    currency: str


@dataclass(frozen=True)
class Tag:
    id: int
    name: str


@dataclass(frozen=True)
class Transaction:
    """Balanced double-entry transaction. Never edited after creation."""

    id: int
    date: datetime
    payee: Optional[str]
    narration: Optional[str]
    postings: tuple[Posting, ...]
    tags: tuple[str, ...] = ()
    raw_transaction_ids: tuple[int, ...] = ()
    created_at: Optional[datetime] = None

    @property
    def total(self) -> Decimal:
        return sum((p.amount for p in self.postings), Decimal("0"))


@dataclass(frozen=True)
class PostingDraft:
    """A posting that has not been written yet."""

    account_id: str
    amount: Decimal
    currency: str = "CNY"


@dataclass(frozen=True)
class MatchResult:
    """Outcome of classifying one record.

    The two slots are resolved independently, so ``target_rule_id`` and
    ``method_rule_id`` may name different rules.
    """

    record: ImportRecord
    target_account: Optional[str] = None
    method_account: Optional[str] = None
    target_rule_id: Optional[int] = None
    method_rule_id: Optional[int] = None

    @property
    def is_matched(self) -> bool:
        return bool(self.target_account) and bool(self.method_account)

    @property
    def contributing_rule_ids(self) -> tuple[int, ...]:
        """Ids of the rules that filled a slot, in evaluation order."""
        ids: list[int] = []
        for rule_id in (self.target_rule_id, self.method_rule_id):
            if rule_id is not None and rule_id not in ids:
                ids.append(rule_id)
        return tuple(ids)


@dataclass(frozen=True)
class MatchBatch:
    matched: list[MatchResult] = field(default_factory=list)
    unmatched: list[MatchResult] = field(default_factory=list)

    @property
    def results(self) -> list[MatchResult]:
        return self.matched + self.unmatched


@dataclass(frozen=True)
class CommitResult:
    """Outcome of committing one record.

    ``created`` is True only when a new ledger transaction was written.
    """

    created: bool
    transaction: Optional[Transaction] = None
    raw_transaction: Optional[RawTransaction] = None
    duplicate: bool = False


@dataclass(frozen=True)
class CommitFailure:
    identifier: str
    reason: str


@dataclass
class BatchCommitResult:
    """Per-batch counters plus the records that could not be committed."""

    committed: int = 0
    duplicates: int = 0
    unmatched: int = 0
    failures: list[CommitFailure] = field(default_factory=list)
    transactions: list[Transaction] = field(default_factory=list)


@dataclass
class ImportReport:
    """Result of matching and committing a batch of records."""

    source: str
    total: int
    matched: int
    result: BatchCommitResult
    unmatched: list[MatchResult] = field(default_factory=list)


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[T]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.page_size - 1) // self.page_size

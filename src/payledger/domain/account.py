"""Account domain service: the chart-of-accounts tree and balances."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

from payledger.config import DEFAULT_CURRENCY
from payledger.database.base import Database
from payledger.domain.entities import (
    ACCOUNT_SEPARATOR,
    Account as AccountEntity,
    AccountType,
    PostingDraft,
    Transaction,
)
from payledger.domain.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
    account_not_found,
)
from payledger.domain.ledger import LedgerService
from payledger.utils.amount_parser import parse_amount

logger = logging.getLogger(__name__)

OPENING_BALANCE_ACCOUNT = "Equity:OpenBalance"
ROUNDING_ACCOUNT = "Equity:RoundingErrors"
ADJUSTMENT_ACCOUNT = "Equity:UFO"

DEFAULT_ACCOUNT_PATHS = [t.root_name for t in AccountType] + [
    OPENING_BALANCE_ACCOUNT,
    ROUNDING_ACCOUNT,
    ADJUSTMENT_ACCOUNT,
]

AmountLike = Union[Decimal, int, str]


def coerce_account_type(account_type: Union[AccountType, str]) -> AccountType:
    """Accept an AccountType or its name in any case."""
    if isinstance(account_type, AccountType):
        return account_type
    try:
        return AccountType(str(account_type).strip().upper())
    except ValueError:
        valid = ", ".join(t.value for t in AccountType)
        raise ValidationError(f"Invalid account type '{account_type}'. Expected one of: {valid}")


def to_amount(value: AmountLike) -> Decimal:
    """Convert user input to a Decimal amount, raising ValidationError."""
    if isinstance(value, Decimal):
        return value
    try:
        return parse_amount(str(value))
    except ValueError as e:
        raise ValidationError(str(e)) from e


def validate_account_name(name: str) -> str:
    """Return the stripped name; reject blanks and path separators."""
    if name is None or not name.strip():
        raise ValidationError("Account name is required")
    name = name.strip()
    if ACCOUNT_SEPARATOR in name:
        raise ValidationError(f"Account name '{name}' cannot contain '{ACCOUNT_SEPARATOR}'")
    return name


class AccountService:
    """Service for managing the account hierarchy and balances."""

    def __init__(self, db: Database, currency: str = DEFAULT_CURRENCY):
        """Initialize account service.

        Args:
            db: Database instance
            currency: Currency for new accounts without an explicit one
        """
        self.db = db
        self.currency = currency
        self.ledger = LedgerService(db)

    def create_account(
        self,
        name: str,
        account_type: Union[AccountType, str],
        parent: Optional[str] = None,
        open_balance: Optional[AmountLike] = None,
        currency: Optional[str] = None,
    ) -> AccountEntity:
        """Create a new account.

        The account path is ``parent:name`` for children and ``name`` for roots.

        Args:
            name: Account name (last path segment)
            account_type: One of the five account types
            parent: Optional parent account path
            open_balance: Optional opening balance, offset against
                Equity:OpenBalance
            currency: Optional currency (defaults to the parent's, then the
                service default)

        Returns:
            The created account

        Raises:
            ValidationError: If the type or name is invalid, or the parent has
                a different type
            NotFoundError: If the parent does not exist
            ConflictError: If the path is already in use
        """
        account_type = coerce_account_type(account_type)
        name = validate_account_name(name)
        opening_amount = to_amount(open_balance) if open_balance is not None else None

        parent_account = None
        if parent is not None:
            parent_account = self.db.get_account(parent)
            if parent_account is None:
                raise NotFoundError(f"Parent account '{parent}' not found")
            if parent_account.account_type != account_type:
                raise ValidationError(
                    f"Account type {account_type.value} does not match parent "
                    f"'{parent}' of type {parent_account.account_type.value}"
                )
            account_id = f"{parent_account.id}{ACCOUNT_SEPARATOR}{name}"
        else:
            root_type = AccountType.from_root_name(name)
            if root_type is not None and root_type != account_type:
                raise ValidationError(f"Root account '{name}' must have type {root_type.value}")
            account_id = name

        if self.db.get_account(account_id) is not None:
            raise ConflictError(f"Account with path '{account_id}' already exists")

        if currency is None:
            currency = parent_account.currency if parent_account is not None else self.currency

        account = self.db.create_account(
            account_id=account_id,
            name=name,
            account_type=account_type,
            parent_id=parent_account.id if parent_account is not None else None,
            currency=currency,
        )
        logger.info("Created account %s (%s)", account.id, account_type.value)

        if opening_amount:
            self._post_against_equity(
                account,
                opening_amount,
                OPENING_BALANCE_ACCOUNT,
                payee="Opening Balance",
                narration=f"Opening balance for {account.id}",
            )
        return account

    def ensure_account_path(self, path: str) -> AccountEntity:
        """Get an account by path, creating it and any missing ancestors.

        The type of every created segment comes from the root segment, which
        must be one of Assets, Liabilities, Income, Expenses or Equity.

        Raises:
            ValidationError: If the root is unknown, a segment is blank, or an
                existing segment has a different type
        """
        segments = [validate_account_name(s) for s in (path or "").split(ACCOUNT_SEPARATOR)]
        account_type = AccountType.from_root_name(segments[0])
        if account_type is None:
            raise ValidationError(f"Cannot infer account type from root '{segments[0]}' of '{path}'")

        account: Optional[AccountEntity] = None
        current = ""
        for segment in segments:
            current = f"{current}{ACCOUNT_SEPARATOR}{segment}" if current else segment
            existing = self.db.get_account(current)
            if existing is not None:
                if existing.account_type != account_type:
                    raise ValidationError(
                        f"Account '{current}' has type {existing.account_type.value}, expected {account_type.value}"
                    )
                account = existing
                continue
            account = self.db.create_account(
                account_id=current,
                name=segment,
                account_type=account_type,
                parent_id=account.id if account is not None else None,
                currency=account.currency if account is not None else self.currency,
            )
            logger.info("Created account %s (%s)", current, account_type.value)
        return account

    def init_default_accounts(self) -> list[str]:
        """Create the five root accounts and the equity plug accounts.

        Returns:
            Paths of the accounts that did not exist before
        """
        created = [path for path in DEFAULT_ACCOUNT_PATHS if self.db.get_account(path) is None]
        for path in DEFAULT_ACCOUNT_PATHS:
            self.ensure_account_path(path)
        return created

    def get_account(self, account_id: str) -> Optional[AccountEntity]:
        """Get account by path."""
        return self.db.get_account(account_id)

    def require_account(self, account_id: str) -> AccountEntity:
        """Get account by path or raise NotFoundError."""
        account = self.db.get_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))
        return account

    def list_accounts(self) -> list[AccountEntity]:
        """List all accounts ordered by path."""
        return self.db.list_accounts()

    def balance(self, account_id: str) -> Decimal:
        """Sum of the postings made directly on this account."""
        self.require_account(account_id)
        amounts = self.db.list_posting_amounts(account_id)
        return sum(amounts, Decimal("0"))

    def subtree_balance(self, account_id: str) -> Decimal:
        """Sum of the postings on this account and every account below it."""
        self.require_account(account_id)
        amounts = self.db.list_posting_amounts(account_id, include_descendants=True)
        return sum(amounts, Decimal("0"))

    def adjust_balance(
        self, account_id: str, new_balance: AmountLike, date: Optional[datetime] = None
    ) -> Optional[Transaction]:
        """Bring an account's balance to ``new_balance``.

        Posts the difference to the account and the opposite amount to
        Equity:UFO. Nothing is written when the balance already matches.

        Returns:
            The adjustment transaction, or None if no adjustment was needed
        """
        account = self.require_account(account_id)
        if account.id == ADJUSTMENT_ACCOUNT:
            raise ValidationError(f"Cannot adjust the balance of {ADJUSTMENT_ACCOUNT} itself")
        target = to_amount(new_balance)
        delta = target - self.balance(account.id)
        if delta == 0:
            logger.info("Balance of %s already equals %s", account.id, target)
            return None
        return self._post_against_equity(
            account,
            delta,
            ADJUSTMENT_ACCOUNT,
            payee="Balance Adjustment",
            narration=f"Adjust {account.id} balance to {target}",
            date=date,
        )

    def _post_against_equity(
        self,
        account: AccountEntity,
        amount: Decimal,
        equity_path: str,
        payee: str,
        narration: str,
        date: Optional[datetime] = None,
    ) -> Transaction:
        equity = self.ensure_account_path(equity_path)
        postings = [
            PostingDraft(account_id=account.id, amount=amount, currency=account.currency),
            PostingDraft(account_id=equity.id, amount=-amount, currency=account.currency),
        ]
        return self.ledger.create_transaction(
            date=date or datetime.now(),
            payee=payee,
            narration=narration,
            postings=postings,
        )

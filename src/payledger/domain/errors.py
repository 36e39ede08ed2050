"""Shared domain error messages and error types."""


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity or path does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""


class DuplicateImport(DomainError):
    """A raw import with the same (source, identifier) key already exists.

    Raised by the storage layer when the unique constraint fires. The
    committer resolves it as a no-op; it never reaches callers of ``commit``.
    """


class PatternError(DomainError):
    """A rule carries a pattern that cannot be compiled or parsed."""


class StorageError(DomainError):
    """Persistence failed; the session was rolled back."""


def account_not_found(account_id: str) -> str:
    """Return message for missing account."""
    return f"Account '{account_id}' not found"


def source_not_found(source_id: str) -> str:
    """Return message for missing import source."""
    return f"Import source '{source_id}' not found"


def rule_not_found(rule_id: int) -> str:
    """Return message for missing import rule."""
    return f"Import rule {rule_id} not found"


def raw_transaction_not_found(raw_tx_id: int) -> str:
    """Return message for missing raw transaction."""
    return f"Raw transaction {raw_tx_id} not found"


def transaction_not_found(transaction_id: int) -> str:
    """Return message for missing transaction."""
    return f"Transaction {transaction_id} not found"


def duplicate_import(source: str, identifier: str) -> str:
    """Return message for an already imported record."""
    return f"Record '{identifier}' from source '{source}' has already been imported"


def unbalanced_postings(total) -> str:
    """Return message for postings that do not sum to zero."""
    return f"Transaction is not balanced: postings sum to {total}"

"""Ledger committer: idempotent write path from match results to the ledger.

A record is keyed by ``(source, transaction_no.strip())``. Its raw payload is
stored exactly once under that key, whether or not it could be classified.
Classified records become one two-posting transaction linked to the raw row;
unclassified ones stay unlinked and show up in the unmatched queue.
"""

import logging
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from payledger.config import DEFAULT_CURRENCY
from payledger.database.base import Database
from payledger.domain.entities import (
    BatchCommitResult,
    CommitFailure,
    CommitResult,
    ImportRecord,
    ImportReport,
    MatchResult,
    PostingDraft,
    RawTransaction,
    Transaction,
)
from payledger.domain.errors import (
    ConflictError,
    DomainError,
    DuplicateImport,
    NotFoundError,
    StorageError,
    ValidationError,
    account_not_found,
    raw_transaction_not_found,
    source_not_found,
)
from payledger.domain.ledger import LedgerService
from payledger.domain.matcher import MatchService
from payledger.utils.amount_parser import parse_amount

logger = logging.getLogger(__name__)


def record_amount(record: ImportRecord) -> Decimal:
    """Magnitude of a record's amount.

    Raises:
        ValidationError: If the amount cannot be parsed
    """
    try:
        return abs(parse_amount(record.amount))
    except ValueError as e:
        raise ValidationError(f"Record '{record.identifier}': {e}") from e


def build_import_postings(
    record: ImportRecord, target_account: str, method_account: str, currency: str = DEFAULT_CURRENCY
) -> list[PostingDraft]:
    """The two postings for a classified record.

    Outgoing records take the amount out of the method account and into the
    target account; every other record type reverses the signs.
    """
    amount = record_amount(record)
    if record.is_outgoing:
        method_amount, target_amount = -amount, amount
    else:
        method_amount, target_amount = amount, -amount
    return [
        PostingDraft(account_id=method_account, amount=method_amount, currency=currency),
        PostingDraft(account_id=target_account, amount=target_amount, currency=currency),
    ]


class CommitService:
    """Service that commits classified records into the ledger."""

    def __init__(self, db: Database, currency: str = DEFAULT_CURRENCY):
        """Initialize commit service.

        Args:
            db: Database instance
            currency: Currency of imported postings
        """
        self.db = db
        self.currency = currency
        self.ledger = LedgerService(db)
        self.matching = MatchService(db)

    def commit(self, record: ImportRecord, match_result: Optional[MatchResult] = None) -> CommitResult:
        """Commit one record.

        A classified record whose amount cannot be parsed is still stored as
        an unlinked raw row, so it waits in the unmatched queue, and then the
        ValidationError is raised.

        Args:
            record: The record to persist
            match_result: Its classification; None or a partial result leaves
                the raw row unlinked

        Returns:
            CommitResult; ``created`` is True only when a ledger transaction
            was written, ``duplicate`` when the record was already committed

        Raises:
            ValidationError: If the record lacks a source, identifier or
                timestamp, or a classified record has an unparseable amount
            NotFoundError: If the source or a classified account is unknown
            StorageError: If the database write fails
        """
        source, identifier = self._validate_record(record)
        classified = match_result is not None and match_result.is_matched
        postings = None
        amount_error = None
        if classified:
            for account_id in (match_result.target_account, match_result.method_account):
                if self.db.get_account(account_id) is None:
                    raise NotFoundError(account_not_found(account_id))
            try:
                postings = build_import_postings(
                    record, match_result.target_account, match_result.method_account, self.currency
                )
            except ValidationError as e:
                amount_error = e

        raw = self.db.find_raw_transaction(source, identifier)
        if raw is not None and raw.is_linked:
            logger.debug("Skipping %s/%s: already committed", source, identifier)
            return CommitResult(created=False, raw_transaction=raw, duplicate=True)

        if raw is None:
            raw = self._persist_raw(record, source, identifier)
            if raw.is_linked:
                return CommitResult(created=False, raw_transaction=raw, duplicate=True)

        if amount_error is not None:
            logger.warning("Parked %s/%s as unmatched: %s", source, identifier, amount_error)
            raise amount_error

        if postings is None:
            logger.debug("Parked %s/%s as unmatched", source, identifier)
            return CommitResult(created=False, raw_transaction=raw)

        try:
            transaction = self._post(record, postings, raw)
        except DuplicateImport:
            logger.debug("Skipping %s/%s: linked by another writer", source, identifier)
            return CommitResult(created=False, raw_transaction=self.db.get_raw_transaction(raw.id), duplicate=True)
        return CommitResult(
            created=True,
            transaction=transaction,
            raw_transaction=self.db.get_raw_transaction(raw.id),
        )

    def commit_batch(self, match_results: Iterable[MatchResult]) -> BatchCommitResult:
        """Commit records one at a time; a failing record never stops the rest."""
        result = BatchCommitResult()
        for match_result in match_results:
            record = match_result.record
            try:
                outcome = self.commit(record, match_result)
            except DomainError as e:
                logger.warning("Could not commit record '%s': %s", record.identifier, e)
                result.failures.append(CommitFailure(identifier=record.identifier, reason=str(e)))
                continue
            except Exception as e:
                logger.exception("Unexpected error committing record '%s'", record.identifier)
                result.failures.append(CommitFailure(identifier=record.identifier, reason=str(e)))
                continue
            if outcome.created:
                result.committed += 1
                result.transactions.append(outcome.transaction)
            elif outcome.duplicate:
                result.duplicates += 1
            else:
                result.unmatched += 1
        logger.info(
            "Batch committed %d, duplicates %d, unmatched %d, failed %d",
            result.committed,
            result.duplicates,
            result.unmatched,
            len(result.failures),
        )
        return result

    def import_records(self, records: Sequence[ImportRecord], source: str) -> ImportReport:
        """Match a batch against the current rules and commit every record.

        Matched records are posted; unmatched ones are parked in the queue.
        Use MatchService.match_transactions to preview without writing.
        """
        batch = self.matching.match_transactions(records, source)
        result = self.commit_batch(batch.results)
        failed = {f.identifier for f in result.failures}
        unmatched = [m for m in batch.unmatched if m.record.identifier not in failed]
        return ImportReport(
            source=source,
            total=len(records),
            matched=len(batch.matched),
            result=result,
            unmatched=unmatched,
        )

    def manual_match(self, raw_tx_id: int, target_account: str, method_account: str) -> Transaction:
        """Classify a queued raw transaction by hand.

        Raises:
            NotFoundError: If the raw transaction or an account does not exist
            ConflictError: If the raw transaction is already linked
            ValidationError: If the stored amount cannot be parsed
        """
        raw = self.db.get_raw_transaction(raw_tx_id)
        if raw is None:
            raise NotFoundError(raw_transaction_not_found(raw_tx_id))
        if raw.is_linked:
            raise ConflictError(f"Raw transaction {raw_tx_id} is already linked to transaction {raw.transaction_id}")
        for account_id in (target_account, method_account):
            if not account_id or self.db.get_account(account_id) is None:
                raise NotFoundError(account_not_found(account_id))

        record = raw.to_record()
        postings = build_import_postings(record, target_account, method_account, self.currency)
        try:
            transaction = self._post(record, postings, raw)
        except DuplicateImport as e:
            raise ConflictError(f"Raw transaction {raw_tx_id} is already linked") from e
        logger.info("Manually matched raw transaction %s to transaction %s", raw_tx_id, transaction.id)
        return transaction

    def rematch_unmatched(self, source: Optional[str] = None) -> BatchCommitResult:
        """Re-run the matcher over every unlinked raw transaction.

        Each source gets a fresh rule snapshot; records that now resolve are
        committed, the rest stay in the queue.
        """
        raws = self.db.list_unlinked_raw_transactions(source=source)
        by_source: dict[str, list[ImportRecord]] = {}
        for raw in raws:
            by_source.setdefault(raw.source, []).append(raw.to_record())

        total = BatchCommitResult()
        for source_id, records in by_source.items():
            try:
                batch = self.matching.match_transactions(records, source_id)
            except NotFoundError as e:
                logger.warning("Skipping %d queued records: %s", len(records), e)
                total.failures.extend(CommitFailure(identifier=r.identifier, reason=str(e)) for r in records)
                continue
            result = self.commit_batch(batch.matched)
            total.committed += result.committed
            total.duplicates += result.duplicates
            total.failures.extend(result.failures)
            total.transactions.extend(result.transactions)
            total.unmatched += len(batch.unmatched)
        return total

    def _validate_record(self, record: ImportRecord) -> tuple[str, str]:
        source = (record.provider or "").strip()
        if not source:
            raise ValidationError("Record has no import source")
        identifier = record.identifier
        if not identifier:
            raise ValidationError("Record has no transaction number")
        if record.transaction_time is None:
            raise ValidationError(f"Record '{identifier}' has no transaction time")
        if self.db.get_import_source(source) is None:
            raise NotFoundError(source_not_found(source))
        return source, identifier

    def _persist_raw(self, record: ImportRecord, source: str, identifier: str) -> RawTransaction:
        try:
            return self.db.create_raw_transaction(
                source=source,
                identifier=identifier,
                raw_data=record.to_payload(),
                created_at=record.transaction_time,
            )
        except DuplicateImport:
            # Another writer inserted the same key first; use its row
            raw = self.db.find_raw_transaction(source, identifier)
            if raw is None:
                raise StorageError(f"Raw transaction {source}/{identifier} vanished after a duplicate insert")
            return raw

    def _post(self, record: ImportRecord, postings: list[PostingDraft], raw: RawTransaction) -> Transaction:
        return self.ledger.create_transaction(
            date=record.transaction_time,
            payee=record.counterparty or None,
            narration=record.description or None,
            postings=postings,
            raw_transaction_ids=[raw.id],
        )

"""Unmatched queue: raw imports that have no ledger transaction yet."""

import logging
from typing import Optional

from payledger.database.base import Database
from payledger.domain.entities import ImportRecord, MatchResult, Page
from payledger.domain.errors import NotFoundError
from payledger.domain.ledger import validate_page
from payledger.domain.matcher import MatchService, RuleMatcher

logger = logging.getLogger(__name__)


class UnmatchedService:
    """Service for browsing and re-evaluating the unmatched queue."""

    def __init__(self, db: Database):
        """Initialize unmatched queue service.

        Args:
            db: Database instance
        """
        self.db = db
        self.matching = MatchService(db)

    def count_unmatched(self, source: Optional[str] = None) -> int:
        """Number of unlinked raw transactions, optionally for one source."""
        return self.db.count_unlinked_raw_transactions(source=source)

    def list_unmatched(
        self, source: Optional[str] = None, page: int = 1, page_size: int = 20
    ) -> Page[ImportRecord]:
        """List queued records, newest first.

        Each record carries ``raw_tx_id`` so it can be resolved by hand.

        Raises:
            ValidationError: If page or page_size is below one
        """
        validate_page(page, page_size)
        total = self.db.count_unlinked_raw_transactions(source=source)
        raws = self.db.list_unlinked_raw_transactions(
            source=source, offset=(page - 1) * page_size, limit=page_size
        )
        return Page(
            items=[raw.to_record() for raw in raws],
            total=total,
            page=page,
            page_size=page_size,
        )

    def preview(
        self, source: Optional[str] = None, page: int = 1, page_size: int = 20
    ) -> Page[MatchResult]:
        """A page of the queue re-evaluated against the current rules.

        Nothing is written; use CommitService.rematch_unmatched to commit.
        """
        records = self.list_unmatched(source=source, page=page, page_size=page_size)
        matchers: dict[str, Optional[RuleMatcher]] = {}
        results = []
        for record in records.items:
            if record.provider not in matchers:
                try:
                    matchers[record.provider] = self.matching.matcher_for(record.provider)
                except NotFoundError as e:
                    logger.warning("Cannot re-evaluate queued records: %s", e)
                    matchers[record.provider] = None
            matcher = matchers[record.provider]
            results.append(matcher.match(record) if matcher is not None else MatchResult(record=record))
        return Page(items=results, total=records.total, page=records.page, page_size=records.page_size)

"""Tests for committing records into the ledger."""

import dataclasses
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from payledger.domain.commit import build_import_postings, record_amount
from payledger.domain.entities import MatchResult
from payledger.domain.errors import ConflictError, NotFoundError, StorageError, ValidationError


class TestPostingConstruction:
    """Tests for amount and sign handling."""

    def test_record_amount_strips_symbols(self, make_record):
        assert record_amount(make_record(amount="¥1,234.56")) == Decimal("1234.56")

    def test_record_amount_is_unsigned(self, make_record):
        assert record_amount(make_record(amount="-88.00")) == Decimal("88.00")

    def test_record_amount_invalid(self, make_record):
        with pytest.raises(ValidationError):
            record_amount(make_record(amount="abc"))

    def test_outgoing_record_postings(self, make_record):
        postings = build_import_postings(make_record(), "Expenses:Food", "Assets:Bank")
        assert [(p.account_id, p.amount) for p in postings] == [
            ("Assets:Bank", Decimal("-1234.56")),
            ("Expenses:Food", Decimal("1234.56")),
        ]

    def test_incoming_record_reverses_signs(self, make_record):
        postings = build_import_postings(make_record(type="收入", amount="5000"), "Income:Salary", "Assets:Bank")
        amounts = {p.account_id: p.amount for p in postings}
        assert amounts == {"Assets:Bank": Decimal("5000"), "Income:Salary": Decimal("-5000")}
        assert sum(p.amount for p in postings) == 0


class TestCommit:
    """Tests for CommitService.commit."""

    def test_commit_matched_record(self, commit_service, match_service, account_service, food_rules, make_record):
        batch = match_service.match_transactions([make_record("2024011522001")], "alipay")
        result = commit_service.commit(batch.matched[0].record, batch.matched[0])

        assert result.created
        assert not result.duplicate
        amounts = {p.account_id: p.amount for p in result.transaction.postings}
        assert amounts == {"Assets:Bank": Decimal("-1234.56"), "Expenses:Food": Decimal("1234.56")}
        assert result.transaction.payee == "Restaurant ABC"
        assert result.transaction.narration == "Lunch"
        assert result.raw_transaction.transaction_id == result.transaction.id
        assert result.transaction.raw_transaction_ids == (result.raw_transaction.id,)
        assert account_service.balance("Assets:Bank") == Decimal("-1234.56")

    def test_resubmission_is_idempotent(self, commit_service, match_service, temp_db, food_rules, make_record):
        match = match_service.match_transactions([make_record("T1")], "alipay").matched[0]
        first = commit_service.commit(match.record, match)
        second = commit_service.commit(match.record, match)

        assert first.created
        assert not second.created
        assert second.duplicate
        assert second.raw_transaction.id == first.raw_transaction.id
        assert temp_db.list_transactions()[1] == 1

    def test_identifier_is_trimmed_for_dedup(self, commit_service, match_service, temp_db, food_rules, make_record):
        batch = match_service.match_transactions([make_record("T1"), make_record("  T1  ")], "alipay")
        result = commit_service.commit_batch(batch.results)
        assert result.committed == 1
        assert result.duplicates == 1
        assert temp_db.find_raw_transaction("alipay", "T1") is not None

    def test_unmatched_record_is_parked(self, commit_service, temp_db, food_rules, make_record):
        record = make_record(counterparty="Taxi")
        result = commit_service.commit(record, MatchResult(record=record, method_account="Assets:Bank"))

        assert not result.created
        assert not result.duplicate
        assert result.transaction is None
        assert not result.raw_transaction.is_linked
        assert temp_db.count_unlinked_raw_transactions("alipay") == 1

    def test_parked_record_is_posted_when_classified_later(self, commit_service, food_rules, make_record):
        record = make_record()
        parked = commit_service.commit(record)
        posted = commit_service.commit(
            record, MatchResult(record=record, target_account="Expenses:Food", method_account="Assets:Bank")
        )
        assert not parked.created
        assert posted.created
        assert posted.raw_transaction.id == parked.raw_transaction.id

    def test_raw_payload_is_stored_verbatim(self, commit_service, temp_db, food_rules, make_record):
        record = make_record(remarks="team lunch")
        commit_service.commit(record)
        raw = temp_db.find_raw_transaction("alipay", "T1")
        assert raw.raw_data["remarks"] == "team lunch"
        assert raw.raw_data["transaction_time"] == "2024-01-15 12:30:00"
        assert raw.to_record().counterparty == "Restaurant ABC"

    def test_unparseable_amount_is_parked(self, commit_service, temp_db, food_rules, make_record):
        record = make_record(amount="???")
        with pytest.raises(ValidationError):
            commit_service.commit(
                record, MatchResult(record=record, target_account="Expenses:Food", method_account="Assets:Bank")
            )
        raw = temp_db.find_raw_transaction("alipay", "T1")
        assert raw is not None
        assert not raw.is_linked
        assert raw.raw_data["amount"] == "???"
        assert temp_db.list_transactions()[1] == 0

    def test_missing_identifier(self, commit_service, food_rules, make_record):
        with pytest.raises(ValidationError):
            commit_service.commit(make_record(transaction_no="   "))

    def test_missing_time(self, commit_service, food_rules, make_record):
        with pytest.raises(ValidationError):
            commit_service.commit(make_record(transaction_time=None))

    def test_unknown_source(self, commit_service, sample_accounts, make_record):
        with pytest.raises(NotFoundError):
            commit_service.commit(make_record(provider="nowhere"))

    def test_unknown_account(self, commit_service, food_rules, make_record, temp_db):
        record = make_record()
        with pytest.raises(NotFoundError):
            commit_service.commit(
                record, MatchResult(record=record, target_account="Expenses:Nope", method_account="Assets:Bank")
            )
        assert temp_db.find_raw_transaction("alipay", "T1") is None


def stale_first_lookup(monkeypatch, db, first_result):
    """Make the first dedup lookup return ``first_result``, as if another writer raced us."""
    real_find = db.find_raw_transaction
    calls = []

    def find(source, identifier):
        calls.append(identifier)
        if len(calls) == 1:
            return first_result
        return real_find(source, identifier)

    monkeypatch.setattr(db, "find_raw_transaction", find)
    return calls


class TestConcurrentWriters:
    """A second writer commits the same key between our lookup and our write."""

    @pytest.fixture
    def match(self, match_service, food_rules, make_record):
        return match_service.match_transactions([make_record("T1")], "alipay").matched[0]

    def insert_raw(self, db, record):
        return db.create_raw_transaction("alipay", "T1", record.to_payload(), record.transaction_time)

    def post_elsewhere(self, ledger_service, record, raw):
        return ledger_service.create_transaction(
            date=record.transaction_time,
            payee=None,
            narration=None,
            postings=build_import_postings(record, "Expenses:Food", "Assets:Bank"),
            raw_transaction_ids=[raw.id],
        )

    def test_lost_insert_reuses_winning_row(self, commit_service, temp_db, match, monkeypatch):
        winner = self.insert_raw(temp_db, match.record)
        calls = stale_first_lookup(monkeypatch, temp_db, None)

        result = commit_service.commit(match.record, match)

        assert len(calls) == 2
        assert result.created
        assert result.raw_transaction.id == winner.id
        assert result.raw_transaction.transaction_id == result.transaction.id
        assert temp_db.list_transactions()[1] == 1

    def test_lost_insert_to_committed_row_is_duplicate(
        self, commit_service, ledger_service, temp_db, match, monkeypatch
    ):
        winner = self.insert_raw(temp_db, match.record)
        self.post_elsewhere(ledger_service, match.record, winner)
        stale_first_lookup(monkeypatch, temp_db, None)

        result = commit_service.commit(match.record, match)

        assert not result.created
        assert result.duplicate
        assert result.raw_transaction.id == winner.id
        assert temp_db.list_transactions()[1] == 1

    def test_row_linked_before_posting_is_duplicate(
        self, commit_service, ledger_service, temp_db, match, monkeypatch
    ):
        raw = self.insert_raw(temp_db, match.record)
        linked = self.post_elsewhere(ledger_service, match.record, raw)
        # our lookup still saw the row unlinked
        stale_first_lookup(monkeypatch, temp_db, dataclasses.replace(raw, transaction_id=None))

        result = commit_service.commit(match.record, match)

        assert not result.created
        assert result.duplicate
        assert result.raw_transaction.transaction_id == linked.id
        assert temp_db.list_transactions()[1] == 1


class TestCommitBatch:
    def test_failure_does_not_stop_batch(self, commit_service, match_service, temp_db, food_rules, make_record):
        records = [make_record("T1"), make_record("T2", amount="oops"), make_record("T3")]
        batch = match_service.match_transactions(records, "alipay")
        result = commit_service.commit_batch(batch.results)

        assert result.committed == 2
        assert [f.identifier for f in result.failures] == ["T2"]
        assert len(result.transactions) == 2
        assert not temp_db.find_raw_transaction("alipay", "T2").is_linked

    @pytest.mark.parametrize(
        "error",
        [
            StorageError("Database error: disk I/O error"),
            OperationalError("SELECT", {}, Exception("database is locked")),
        ],
    )
    def test_storage_failure_on_one_record(
        self, commit_service, match_service, temp_db, food_rules, make_record, monkeypatch, error
    ):
        real_find = temp_db.find_raw_transaction

        def find(source, identifier):
            if identifier == "T2":
                raise error
            return real_find(source, identifier)

        monkeypatch.setattr(temp_db, "find_raw_transaction", find)
        batch = match_service.match_transactions([make_record("T1"), make_record("T2"), make_record("T3")], "alipay")
        result = commit_service.commit_batch(batch.results)

        assert result.committed == 2
        assert [f.identifier for f in result.failures] == ["T2"]
        assert "database" in result.failures[0].reason.lower()
        assert temp_db.list_transactions()[1] == 2

    def test_import_records(self, commit_service, food_rules, make_record, temp_db):
        records = [make_record("T1"), make_record("T2", counterparty="Taxi"), make_record("T3", provider=None)]
        report = commit_service.import_records(records, "alipay")

        assert report.total == 3
        assert report.matched == 2
        assert report.result.committed == 2
        assert report.result.unmatched == 1
        assert [m.record.identifier for m in report.unmatched] == ["T2"]
        assert temp_db.count_unlinked_raw_transactions() == 1

    def test_import_twice_creates_nothing_new(self, commit_service, food_rules, make_record, temp_db):
        records = [make_record("T1"), make_record("T2", counterparty="Taxi")]
        commit_service.import_records(records, "alipay")
        report = commit_service.import_records(records, "alipay")

        assert report.result.committed == 0
        assert report.result.duplicates == 1
        assert report.result.unmatched == 1
        assert temp_db.list_transactions()[1] == 1
        assert temp_db.count_unlinked_raw_transactions() == 1

    def test_import_rejects_records_of_another_source(self, commit_service, food_rules, make_record, temp_db):
        records = [make_record("T1"), make_record("T2", provider="wechatpay")]
        with pytest.raises(ValidationError):
            commit_service.import_records(records, "alipay")
        assert temp_db.find_raw_transaction("alipay", "T1") is None
        assert temp_db.find_raw_transaction("wechatpay", "T2") is None


class TestManualMatch:
    def test_manual_match(self, commit_service, food_rules, make_record, temp_db):
        parked = commit_service.commit(make_record(counterparty="Taxi", amount="30"))
        transaction = commit_service.manual_match(parked.raw_transaction.id, "Expenses:Transport", "Assets:Alipay")

        amounts = {p.account_id: p.amount for p in transaction.postings}
        assert amounts == {"Assets:Alipay": Decimal("-30.00"), "Expenses:Transport": Decimal("30.00")}
        assert temp_db.get_raw_transaction(parked.raw_transaction.id).transaction_id == transaction.id

    def test_manual_match_already_linked(self, commit_service, food_rules, make_record):
        parked = commit_service.commit(make_record())
        commit_service.manual_match(parked.raw_transaction.id, "Expenses:Food", "Assets:Bank")
        with pytest.raises(ConflictError):
            commit_service.manual_match(parked.raw_transaction.id, "Expenses:Food", "Assets:Bank")

    def test_manual_match_unknown_raw(self, commit_service, food_rules):
        with pytest.raises(NotFoundError):
            commit_service.manual_match(999, "Expenses:Food", "Assets:Bank")

    def test_manual_match_unknown_account(self, commit_service, food_rules, make_record):
        parked = commit_service.commit(make_record())
        with pytest.raises(NotFoundError):
            commit_service.manual_match(parked.raw_transaction.id, "Expenses:Nope", "Assets:Bank")


class TestRematch:
    def test_rematch_commits_records_that_now_match(
        self, commit_service, rule_service, food_rules, make_record, temp_db
    ):
        commit_service.import_records([make_record("T1", counterparty="Taxi Co")], "alipay")
        assert temp_db.count_unlinked_raw_transactions() == 1

        rule_service.create_rule("alipay", "taxi", peer_pattern="Taxi", target_account="Expenses:Transport")
        result = commit_service.rematch_unmatched()

        assert result.committed == 1
        assert result.unmatched == 0
        assert temp_db.count_unlinked_raw_transactions() == 0

    def test_rematch_leaves_unresolved_records(self, commit_service, food_rules, make_record, temp_db):
        commit_service.import_records([make_record("T1", counterparty="Taxi Co")], "alipay")
        result = commit_service.rematch_unmatched(source="alipay")
        assert result.committed == 0
        assert result.unmatched == 1
        assert temp_db.count_unlinked_raw_transactions() == 1

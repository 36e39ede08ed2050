"""Rule matcher: resolves an import record against a prioritised rule set.

Matching is a pure function of (record, rules). Rules are evaluated by
ascending priority, ties broken by ascending rule id. Each rule may fill two
independent slots, the target account and the method account; the first
applicable rule that offers a slot wins it, and evaluation stops once both
slots are filled.
"""

import logging
import re
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Iterable, Optional, Pattern, Sequence

from payledger.database.base import Database
from payledger.domain.entities import ImportRecord, ImportRule, MatchBatch, MatchResult
from payledger.domain.errors import NotFoundError, PatternError, ValidationError, source_not_found
from payledger.utils.amount_parser import parse_amount
from payledger.utils.date_parser import minutes_of_day

logger = logging.getLogger(__name__)

# (rule attribute, record attribute) pairs for the regex conditions
PATTERN_FIELDS = (
    ("type_pattern", "type"),
    ("category_pattern", "category"),
    ("peer_pattern", "counterparty"),
    ("desc_pattern", "description"),
    ("status_pattern", "status"),
    ("method_pattern", "payment_method"),
)

TIME_PATTERN_RE = re.compile(r"^(\d{2}):(\d{2})-(\d{2}):(\d{2})$")


def parse_time_range(pattern: str) -> tuple[int, int]:
    """Parse ``HH:MM-HH:MM`` into (start, end) minutes of the day.

    Raises:
        PatternError: If the pattern is malformed or out of range
    """
    match = TIME_PATTERN_RE.match((pattern or "").strip())
    if match is None:
        raise PatternError(f"Invalid time pattern '{pattern}', expected HH:MM-HH:MM")
    start_h, start_m, end_h, end_m = (int(g) for g in match.groups())
    if start_h > 23 or end_h > 23 or start_m > 59 or end_m > 59:
        raise PatternError(f"Invalid time pattern '{pattern}': time out of range")
    return start_h * 60 + start_m, end_h * 60 + end_m


def time_in_range(minutes: int, start: int, end: int) -> bool:
    """Inclusive range check; a start after the end wraps past midnight."""
    if start <= end:
        return start <= minutes <= end
    return minutes >= start or minutes <= end


def amount_in_range(amount: Decimal, minimum: Optional[Decimal], maximum: Optional[Decimal]) -> bool:
    """Inclusive bounds; a missing bound leaves that side open."""
    if minimum is not None and amount < minimum:
        return False
    if maximum is not None and amount > maximum:
        return False
    return True


def compile_pattern(pattern: str) -> Pattern[str]:
    """Compile a rule regex, raising PatternError instead of re.error."""
    try:
        return re.compile(pattern)
    except re.error as e:
        raise PatternError(f"Invalid regular expression '{pattern}': {e}") from e


def sort_rules(rules: Iterable[ImportRule]) -> list[ImportRule]:
    """Enabled rules in evaluation order."""
    return sorted((r for r in rules if r.enabled), key=lambda r: (r.priority, r.id))


@dataclass(frozen=True)
class CompiledRule:
    """A rule with its patterns parsed once."""

    rule: ImportRule
    patterns: tuple[tuple[str, Pattern[str]], ...] = ()
    time_range: Optional[tuple[int, int]] = None
    error: Optional[str] = None

    @classmethod
    def build(cls, rule: ImportRule) -> "CompiledRule":
        try:
            patterns = tuple(
                (record_field, compile_pattern(getattr(rule, rule_field)))
                for rule_field, record_field in PATTERN_FIELDS
                if getattr(rule, rule_field)
            )
            time_range = parse_time_range(rule.time_pattern) if rule.time_pattern else None
        except PatternError as e:
            return cls(rule=rule, error=str(e))
        return cls(rule=rule, patterns=patterns, time_range=time_range)

    def applies_to(self, record: ImportRecord) -> bool:
        """True when every populated condition of the rule holds for the record."""
        if self.error is not None:
            return False

        for record_field, regex in self.patterns:
            if regex.search(getattr(record, record_field) or "") is None:
                return False

        if self.time_range is not None:
            if record.transaction_time is None:
                return False
            if not time_in_range(minutes_of_day(record.transaction_time), *self.time_range):
                return False

        rule = self.rule
        if rule.amount_min is not None or rule.amount_max is not None:
            try:
                amount = parse_amount(record.amount)
            except ValueError:
                return False
            if not amount_in_range(amount, rule.amount_min, rule.amount_max):
                return False

        return True


class RuleMatcher:
    """Matches records against one rule snapshot.

    Compiled rules are cached by rule id for the lifetime of the matcher,
    which is meant to be a single batch.
    """

    def __init__(self, rules: Sequence[ImportRule]):
        self.rules = sort_rules(rules)
        self._compiled: dict[int, CompiledRule] = {}

    def compiled(self, rule: ImportRule) -> CompiledRule:
        compiled = self._compiled.get(rule.id)
        if compiled is None:
            compiled = CompiledRule.build(rule)
            if compiled.error is not None:
                logger.warning("Rule %s (%s) will never match: %s", rule.id, rule.name, compiled.error)
            self._compiled[rule.id] = compiled
        return compiled

    def match(self, record: ImportRecord) -> MatchResult:
        """Resolve the target and method slots for one record."""
        target_account = method_account = None
        target_rule_id = method_rule_id = None

        for rule in self.rules:
            if not self.compiled(rule).applies_to(record):
                continue
            if rule.target_account and target_account is None:
                target_account = rule.target_account
                target_rule_id = rule.id
            if rule.method_account and method_account is None:
                method_account = rule.method_account
                method_rule_id = rule.id
            if target_account is not None and method_account is not None:
                break

        return MatchResult(
            record=record,
            target_account=target_account,
            method_account=method_account,
            target_rule_id=target_rule_id,
            method_rule_id=method_rule_id,
        )

    def match_all(self, records: Iterable[ImportRecord]) -> MatchBatch:
        """Match records and split them on whether both slots resolved."""
        matched: list[MatchResult] = []
        unmatched: list[MatchResult] = []
        for record in records:
            result = self.match(record)
            (matched if result.is_matched else unmatched).append(result)
        return MatchBatch(matched=matched, unmatched=unmatched)


def match_record(record: ImportRecord, rules: Sequence[ImportRule]) -> MatchResult:
    """Match a single record against a rule set."""
    return RuleMatcher(rules).match(record)


class MatchService:
    """Service that classifies batches of records using the stored rules."""

    def __init__(self, db: Database):
        """Initialize match service.

        Args:
            db: Database instance
        """
        self.db = db

    def matcher_for(self, source: str) -> RuleMatcher:
        """Build a matcher over a snapshot of the source's enabled rules."""
        if self.db.get_import_source(source) is None:
            raise NotFoundError(source_not_found(source))
        return RuleMatcher(self.db.list_import_rules(source, enabled_only=True))

    def match_transactions(self, records: Sequence[ImportRecord], source: str) -> MatchBatch:
        """Classify records of one source without writing anything.

        The rule set is read once for the whole batch. Records without a
        provider are stamped with ``source``.

        Raises:
            NotFoundError: If the source does not exist
            ValidationError: If a record carries a different provider; the
                whole batch is rejected
        """
        for record in records:
            if record.provider and record.provider.strip() != source:
                raise ValidationError(
                    f"Record '{record.identifier}' belongs to source '{record.provider}', not '{source}'"
                )
        matcher = self.matcher_for(source)
        stamped = [r if r.provider else replace(r, provider=source) for r in records]
        batch = matcher.match_all(stamped)
        logger.info(
            "Matched %d of %d records from %s against %d rules",
            len(batch.matched),
            len(stamped),
            source,
            len(matcher.rules),
        )
        return batch

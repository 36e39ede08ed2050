"""Rule store: import sources and their classification rules."""

import logging
from dataclasses import asdict
from decimal import Decimal
from typing import Any, Optional, Union

from payledger.database.base import Database
from payledger.domain.entities import ImportRule, ImportSource
from payledger.domain.errors import (
    ConflictError,
    NotFoundError,
    PatternError,
    ValidationError,
    account_not_found,
    rule_not_found,
    source_not_found,
)
from payledger.domain.matcher import PATTERN_FIELDS, compile_pattern, parse_time_range
from payledger.utils.amount_parser import parse_amount

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "name",
    "description",
    "priority",
    "enabled",
    "type_pattern",
    "category_pattern",
    "peer_pattern",
    "desc_pattern",
    "status_pattern",
    "method_pattern",
    "amount_min",
    "amount_max",
    "time_pattern",
    "target_account",
    "method_account",
)

OPTIONAL_TEXT_FIELDS = tuple(f for f in EDITABLE_FIELDS if f.endswith(("_pattern", "_account"))) + ("description",)


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _to_bound(name: str, value: Union[Decimal, int, str, None]) -> Optional[Decimal]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, Decimal):
        return value
    try:
        return parse_amount(str(value))
    except ValueError as e:
        raise ValidationError(f"Invalid {name}: {value}") from e


class RuleService:
    """Service for managing import sources and rules."""

    def __init__(self, db: Database):
        """Initialize rule service.

        Args:
            db: Database instance
        """
        self.db = db

    # Import sources
    def create_source(self, source_id: str, name: Optional[str] = None) -> ImportSource:
        """Create an import source.

        Args:
            source_id: Source identifier used on records (e.g. "alipay")
            name: Display name (defaults to the identifier)

        Raises:
            ValidationError: If the identifier is blank
            ConflictError: If the source already exists
        """
        source_id = (source_id or "").strip()
        if not source_id:
            raise ValidationError("Source ID is required")
        if self.db.get_import_source(source_id) is not None:
            raise ConflictError(f"Import source '{source_id}' already exists")
        return self.db.create_import_source(source_id=source_id, name=(name or "").strip() or source_id)

    def get_source(self, source_id: str) -> Optional[ImportSource]:
        """Get import source by ID."""
        return self.db.get_import_source(source_id)

    def require_source(self, source_id: str) -> ImportSource:
        source = self.db.get_import_source(source_id)
        if source is None:
            raise NotFoundError(source_not_found(source_id))
        return source

    def list_sources(self) -> list[ImportSource]:
        """List all import sources."""
        return self.db.list_import_sources()

    # Rules
    def create_rule(
        self,
        source_id: str,
        name: str,
        priority: int = 0,
        *,
        enabled: bool = True,
        description: Optional[str] = None,
        type_pattern: Optional[str] = None,
        category_pattern: Optional[str] = None,
        peer_pattern: Optional[str] = None,
        desc_pattern: Optional[str] = None,
        status_pattern: Optional[str] = None,
        method_pattern: Optional[str] = None,
        amount_min: Union[Decimal, int, str, None] = None,
        amount_max: Union[Decimal, int, str, None] = None,
        time_pattern: Optional[str] = None,
        target_account: Optional[str] = None,
        method_account: Optional[str] = None,
    ) -> ImportRule:
        """Create a classification rule for a source.

        Lower priorities are evaluated first.

        Raises:
            NotFoundError: If the source or a referenced account does not exist
            ValidationError: If the rule sets no outcome, or a pattern, time
                range or amount bound is malformed
            ConflictError: If the source already has a rule with this name
        """
        self.require_source(source_id)
        fields = self._validate(
            {
                "name": name,
                "description": description,
                "priority": priority,
                "enabled": enabled,
                "type_pattern": type_pattern,
                "category_pattern": category_pattern,
                "peer_pattern": peer_pattern,
                "desc_pattern": desc_pattern,
                "status_pattern": status_pattern,
                "method_pattern": method_pattern,
                "amount_min": amount_min,
                "amount_max": amount_max,
                "time_pattern": time_pattern,
                "target_account": target_account,
                "method_account": method_account,
            }
        )
        if self.db.get_import_rule_by_name(source_id, fields["name"]) is not None:
            raise ConflictError(f"Rule '{fields['name']}' already exists for source '{source_id}'")

        name = fields.pop("name")
        rule = self.db.create_import_rule(source_id=source_id, name=name, **fields)
        logger.info("Created rule %s '%s' for %s (priority %s)", rule.id, rule.name, source_id, rule.priority)
        return rule

    def update_rule(self, rule_id: int, **changes: Any) -> ImportRule:
        """Update a rule; the merged rule is validated like a new one.

        Raises:
            NotFoundError: If the rule or a referenced account does not exist
            ValidationError: If an unknown field is given or validation fails
            ConflictError: If the new name is taken within the source
        """
        rule = self.require_rule(rule_id)
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown rule fields: {', '.join(sorted(unknown))}")

        current = {key: value for key, value in asdict(rule).items() if key in EDITABLE_FIELDS}
        fields = self._validate({**current, **changes})
        if fields["name"] != rule.name:
            other = self.db.get_import_rule_by_name(rule.source_id, fields["name"])
            if other is not None and other.id != rule.id:
                raise ConflictError(f"Rule '{fields['name']}' already exists for source '{rule.source_id}'")

        updated = self.db.update_import_rule(rule_id, **{key: fields[key] for key in changes})
        logger.info("Updated rule %s: %s", rule_id, ", ".join(sorted(changes)))
        return updated

    def set_enabled(self, rule_id: int, enabled: bool) -> ImportRule:
        """Enable or disable a rule."""
        self.require_rule(rule_id)
        return self.db.update_import_rule(rule_id, enabled=bool(enabled))

    def get_rule(self, rule_id: int) -> Optional[ImportRule]:
        """Get rule by ID."""
        return self.db.get_import_rule(rule_id)

    def require_rule(self, rule_id: int) -> ImportRule:
        rule = self.db.get_import_rule(rule_id)
        if rule is None:
            raise NotFoundError(rule_not_found(rule_id))
        return rule

    def list_rules(self, source_id: str, enabled_only: bool = False) -> list[ImportRule]:
        """List a source's rules in evaluation order."""
        self.require_source(source_id)
        return self.db.list_import_rules(source_id, enabled_only=enabled_only)

    def _validate(self, fields: dict[str, Any]) -> dict[str, Any]:
        """Normalise and validate rule attributes; nothing is written here."""
        fields = dict(fields)
        fields["name"] = _blank_to_none(fields.get("name"))
        if fields["name"] is None:
            raise ValidationError("Rule name is required")
        for key in OPTIONAL_TEXT_FIELDS:
            fields[key] = _blank_to_none(fields.get(key))

        try:
            fields["priority"] = int(fields.get("priority") or 0)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid priority: {fields.get('priority')}") from e
        fields["enabled"] = bool(fields.get("enabled", True))

        if fields["target_account"] is None and fields["method_account"] is None:
            raise ValidationError("A rule must set a target account, a method account, or both")
        for key in ("target_account", "method_account"):
            if fields[key] is not None and self.db.get_account(fields[key]) is None:
                raise NotFoundError(account_not_found(fields[key]))

        for rule_field, _ in PATTERN_FIELDS:
            if fields[rule_field] is not None:
                try:
                    compile_pattern(fields[rule_field])
                except PatternError as e:
                    raise ValidationError(str(e)) from e

        if fields["time_pattern"] is not None:
            try:
                parse_time_range(fields["time_pattern"])
            except PatternError as e:
                raise ValidationError(str(e)) from e

        fields["amount_min"] = _to_bound("minimum amount", fields.get("amount_min"))
        fields["amount_max"] = _to_bound("maximum amount", fields.get("amount_max"))
        if (
            fields["amount_min"] is not None
            and fields["amount_max"] is not None
            and fields["amount_min"] > fields["amount_max"]
        ):
            raise ValidationError("Minimum amount cannot be greater than maximum amount")

        return fields

"""Tests for import sources and rules."""

from decimal import Decimal

import pytest

from payledger.domain.errors import ConflictError, NotFoundError, ValidationError


class TestSources:
    def test_create_source(self, rule_service):
        source = rule_service.create_source("wechat")
        assert source.id == "wechat"
        assert source.name == "wechat"
        assert [s.id for s in rule_service.list_sources()] == ["wechat"]

    def test_duplicate_source(self, rule_service):
        rule_service.create_source("alipay")
        with pytest.raises(ConflictError):
            rule_service.create_source("alipay")

    def test_blank_source(self, rule_service):
        with pytest.raises(ValidationError):
            rule_service.create_source("  ")


class TestCreateRule:
    def test_create_rule(self, rule_service, sample_accounts, alipay_source):
        rule = rule_service.create_rule(
            "alipay",
            "coffee",
            priority=5,
            peer_pattern="Starbucks",
            amount_min="10",
            amount_max="¥100",
            time_pattern="07:00-11:00",
            target_account="Expenses:Food",
        )
        assert rule.id is not None
        assert rule.enabled
        assert rule.amount_min == Decimal("10.00")
        assert rule.amount_max == Decimal("100.00")
        assert rule.method_account is None

    def test_blank_patterns_are_stored_as_none(self, rule_service, sample_accounts, alipay_source):
        rule = rule_service.create_rule("alipay", "any", type_pattern="  ", target_account="Expenses:Food")
        assert rule.type_pattern is None

    def test_rule_needs_an_outcome(self, rule_service, sample_accounts, alipay_source):
        with pytest.raises(ValidationError):
            rule_service.create_rule("alipay", "nothing", peer_pattern="x")

    def test_invalid_regex_rejected(self, rule_service, sample_accounts, alipay_source):
        with pytest.raises(ValidationError):
            rule_service.create_rule("alipay", "broken", peer_pattern="[", target_account="Expenses:Food")

    @pytest.mark.parametrize("pattern", ["7:00-11:00", "07:00~11:00", "25:00-01:00"])
    def test_invalid_time_pattern_rejected(self, rule_service, sample_accounts, alipay_source, pattern):
        with pytest.raises(ValidationError):
            rule_service.create_rule("alipay", "timed", time_pattern=pattern, target_account="Expenses:Food")

    def test_amount_bounds_order(self, rule_service, sample_accounts, alipay_source):
        with pytest.raises(ValidationError):
            rule_service.create_rule(
                "alipay", "bounds", amount_min="100", amount_max="10", target_account="Expenses:Food"
            )

    def test_unknown_account(self, rule_service, sample_accounts, alipay_source):
        with pytest.raises(NotFoundError):
            rule_service.create_rule("alipay", "ghost", target_account="Expenses:Ghost")

    def test_unknown_source(self, rule_service, sample_accounts):
        with pytest.raises(NotFoundError):
            rule_service.create_rule("nowhere", "r", target_account="Expenses:Food")

    def test_name_unique_per_source(self, rule_service, sample_accounts, alipay_source):
        rule_service.create_rule("alipay", "food", target_account="Expenses:Food")
        with pytest.raises(ConflictError):
            rule_service.create_rule("alipay", "food", target_account="Expenses:Food")

        rule_service.create_source("wechat")
        assert rule_service.create_rule("wechat", "food", target_account="Expenses:Food").name == "food"


class TestUpdateRule:
    def test_update_rule(self, rule_service, food_rules):
        food, _ = food_rules
        updated = rule_service.update_rule(food.id, priority=1, desc_pattern="Lunch")
        assert updated.priority == 1
        assert updated.desc_pattern == "Lunch"
        assert updated.peer_pattern == food.peer_pattern

    def test_update_clears_field(self, rule_service, food_rules):
        food, _ = food_rules
        assert rule_service.update_rule(food.id, peer_pattern="").peer_pattern is None

    def test_update_validates_merged_rule(self, rule_service, food_rules):
        food, _ = food_rules
        with pytest.raises(ValidationError):
            rule_service.update_rule(food.id, target_account="")

    def test_update_unknown_field(self, rule_service, food_rules):
        food, _ = food_rules
        with pytest.raises(ValidationError):
            rule_service.update_rule(food.id, source_id="wechat")

    def test_rename_conflict(self, rule_service, food_rules):
        food, bank = food_rules
        with pytest.raises(ConflictError):
            rule_service.update_rule(food.id, name=bank.name)

    def test_update_unknown_rule(self, rule_service, food_rules):
        with pytest.raises(NotFoundError):
            rule_service.update_rule(999, priority=1)


class TestListRules:
    def test_rules_listed_in_evaluation_order(self, rule_service, sample_accounts, alipay_source):
        late = rule_service.create_rule("alipay", "late", priority=50, target_account="Expenses:Food")
        early = rule_service.create_rule("alipay", "early", priority=-5, target_account="Expenses:Food")
        tie = rule_service.create_rule("alipay", "tie", priority=50, target_account="Expenses:Food")
        assert [r.id for r in rule_service.list_rules("alipay")] == [early.id, late.id, tie.id]

    def test_disabled_rules_filtered(self, rule_service, food_rules):
        food, bank = food_rules
        rule_service.set_enabled(food.id, False)
        assert [r.id for r in rule_service.list_rules("alipay", enabled_only=True)] == [bank.id]
        assert len(rule_service.list_rules("alipay")) == 2
        assert rule_service.get_rule(food.id).enabled is False

    def test_disabled_rule_stops_matching(self, rule_service, match_service, food_rules, make_record):
        food, _ = food_rules
        rule_service.set_enabled(food.id, False)
        batch = match_service.match_transactions([make_record()], "alipay")
        assert batch.matched == []

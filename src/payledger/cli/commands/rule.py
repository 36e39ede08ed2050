"""Classification rule commands."""

import click

from payledger.cli.error_handling import handle_domain_error
from payledger.domain.entities import ImportRule
from payledger.domain.errors import DomainError
from payledger.domain.rules import RuleService


def rule_options(func):
    """Options shared by 'rule create' and 'rule update'."""
    options = [
        click.option("--priority", type=int, help="Evaluation order, lowest first"),
        click.option("--description", help="Free-text description"),
        click.option("--type-pattern", help="Regex on the record type"),
        click.option("--category-pattern", help="Regex on the provider category"),
        click.option("--peer-pattern", help="Regex on the counterparty"),
        click.option("--desc-pattern", help="Regex on the description"),
        click.option("--status-pattern", help="Regex on the status"),
        click.option("--method-pattern", help="Regex on the payment method"),
        click.option("--amount-min", help="Inclusive lower amount bound"),
        click.option("--amount-max", help="Inclusive upper amount bound"),
        click.option("--time-pattern", help="Time of day range HH:MM-HH:MM, may wrap midnight"),
        click.option("--target", "target_account", help="Account that receives the counter posting"),
        click.option("--method", "method_account", help="Account the money moves through"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def format_rule(rule: ImportRule) -> str:
    state = "" if rule.enabled else " [disabled]"
    conditions = [
        f"{label}~/{value}/"
        for label, value in (
            ("type", rule.type_pattern),
            ("category", rule.category_pattern),
            ("peer", rule.peer_pattern),
            ("desc", rule.desc_pattern),
            ("status", rule.status_pattern),
            ("method", rule.method_pattern),
        )
        if value
    ]
    if rule.amount_min is not None or rule.amount_max is not None:
        low = rule.amount_min if rule.amount_min is not None else ""
        high = rule.amount_max if rule.amount_max is not None else ""
        conditions.append(f"amount {low}..{high}")
    if rule.time_pattern:
        conditions.append(f"time {rule.time_pattern}")
    outcome = f"target={rule.target_account or '-'} method={rule.method_account or '-'}"
    return (
        f"ID: {rule.id:3d} | p{rule.priority:<4d} | {rule.name}{state}\n"
        f"      when {' and '.join(conditions) or 'always'} -> {outcome}"
    )


@click.group()
def rule_group():
    """Manage classification rules."""
    pass


@rule_group.command("create")
@click.argument("source_id", metavar="SOURCE")
@click.argument("name")
@rule_options
@click.option("--disabled", is_flag=True, help="Create the rule disabled")
@click.pass_context
def create_rule(ctx, source_id: str, name: str, disabled: bool, priority: int | None, **fields):
    """Create a rule for SOURCE.

    Every given condition must hold for the rule to apply. A rule may set a
    target account, a method account, or both.

    Examples:
        payledger rule create alipay food --peer-pattern "Restaurant|Cafe" --target Expenses:Food
        payledger rule create alipay bank-card --method-pattern "Bank" --method Assets:Bank --priority 10
    """
    service = RuleService(ctx.obj["db"])
    try:
        rule = service.create_rule(source_id, name, priority=priority or 0, enabled=not disabled, **fields)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created rule '{rule.name}' for {rule.source_id} (ID: {rule.id})")


@rule_group.command("list")
@click.argument("source_id", metavar="SOURCE")
@click.pass_context
def list_rules(ctx, source_id: str):
    """List rules of SOURCE in evaluation order."""
    service = RuleService(ctx.obj["db"])
    try:
        rules = service.list_rules(source_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    if not rules:
        click.echo(f"No rules found for '{source_id}'.")
        return
    for rule in rules:
        click.echo(format_rule(rule))


@rule_group.command("update")
@click.argument("rule_id", type=int)
@click.option("--name", help="New rule name")
@rule_options
@click.pass_context
def update_rule(ctx, rule_id: int, **fields):
    """Update a rule. Only the given options change; pass "" to clear one.

    Examples:
        payledger rule update 3 --priority 5
        payledger rule update 3 --time-pattern ""
    """
    changes = {key: value for key, value in fields.items() if value is not None}
    if not changes:
        click.echo("Nothing to update.")
        return
    service = RuleService(ctx.obj["db"])
    try:
        rule = service.update_rule(rule_id, **changes)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Updated rule {rule.id} ({', '.join(sorted(changes))})")


def _set_enabled(ctx, rule_id: int, enabled: bool) -> None:
    service = RuleService(ctx.obj["db"])
    try:
        rule = service.set_enabled(rule_id, enabled)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Rule {rule.id} '{rule.name}' {'enabled' if rule.enabled else 'disabled'}")


@rule_group.command("enable")
@click.argument("rule_id", type=int)
@click.pass_context
def enable_rule(ctx, rule_id: int):
    """Enable a rule."""
    _set_enabled(ctx, rule_id, True)


@rule_group.command("disable")
@click.argument("rule_id", type=int)
@click.pass_context
def disable_rule(ctx, rule_id: int):
    """Disable a rule; it is skipped by the matcher."""
    _set_enabled(ctx, rule_id, False)


def register_commands(cli):
    """Register rule commands with main CLI."""
    cli.add_command(rule_group, name="rule")

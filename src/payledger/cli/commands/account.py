"""Account management commands."""

from datetime import datetime

import click

from payledger.cli.error_handling import currency_of, handle_domain_error
from payledger.domain.account import AccountService
from payledger.domain.entities import AccountType
from payledger.domain.errors import DomainError
from payledger.utils.amount_parser import parse_amount
from payledger.utils.date_parser import parse_date


@click.group()
def account_group():
    """Manage accounts."""
    pass


@account_group.command("create")
@click.argument("name", metavar="ACCOUNT_NAME")
@click.option(
    "--type",
    "account_type",
    type=click.Choice([t.value for t in AccountType], case_sensitive=False),
    help="Account type (defaults to the type of the parent account)",
)
@click.option("--parent", help="Parent account path, e.g. 'Assets:Bank'")
@click.option("--open-balance", help="Opening balance, offset against Equity:OpenBalance")
@click.option("--currency", help="Account currency (defaults to the parent's)")
@click.pass_context
def create_account(
    ctx, name: str, account_type: str | None, parent: str | None, open_balance: str | None, currency: str | None
):
    """Create a new account.

    The new account's path is PARENT:ACCOUNT_NAME, or ACCOUNT_NAME for a root.

    Examples:
        payledger account create Bank --parent Assets --open-balance 1000
        payledger account create Food --parent Expenses
        payledger account create Assets --type ASSETS
    """
    db = ctx.obj["db"]
    service = AccountService(db, currency=currency_of(ctx))

    try:
        if account_type is None:
            if parent is None:
                raise click.UsageError("--type is required for root accounts")
            account_type = service.require_account(parent).account_type
        balance = parse_amount(open_balance) if open_balance is not None else None
        account = service.create_account(
            name=name,
            account_type=account_type,
            parent=parent,
            open_balance=balance,
            currency=currency,
        )
    except (DomainError, ValueError) as e:
        handle_domain_error(ctx, e)

    click.echo(f"Created account '{account.id}' ({account.account_type.value})")
    if balance:
        click.echo(f"Opening balance: {balance:,.2f} {account.currency}")


@account_group.command("list")
@click.option("--balances", is_flag=True, help="Show the balance of each account")
@click.pass_context
def list_accounts(ctx, balances: bool):
    """List all accounts."""
    db = ctx.obj["db"]
    service = AccountService(db, currency=currency_of(ctx))

    accounts = service.list_accounts()
    if not accounts:
        click.echo("No accounts found. Run 'payledger init' to create the default tree.")
        return

    click.echo("\nAccounts:")
    click.echo("-" * 60)
    for acc in accounts:
        line = f"{'  ' * acc.depth}{acc.id:{40 - 2 * acc.depth}s} {acc.account_type.value:12s}"
        if balances:
            line += f" {service.subtree_balance(acc.id):>14,.2f} {acc.currency}"
        click.echo(line)


@account_group.command("balance")
@click.argument("account_id", metavar="ACCOUNT")
@click.option("--subtree", is_flag=True, help="Include every account below ACCOUNT")
@click.pass_context
def show_balance(ctx, account_id: str, subtree: bool):
    """Show the balance of an account.

    Examples:
        payledger account balance Assets:Bank
        payledger account balance Expenses --subtree
    """
    db = ctx.obj["db"]
    service = AccountService(db, currency=currency_of(ctx))

    try:
        account = service.require_account(account_id)
        amount = service.subtree_balance(account.id) if subtree else service.balance(account.id)
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo(f"{account.id}: {amount:,.2f} {account.currency}")


@account_group.command("adjust")
@click.argument("account_id", metavar="ACCOUNT")
@click.argument("new_balance", metavar="NEW_BALANCE")
@click.option("--date", "adjust_date", help="Date of the adjustment (YYYY-MM-DD or 'today')")
@click.pass_context
def adjust_balance(ctx, account_id: str, new_balance: str, adjust_date: str | None):
    """Set an account's balance, posting the difference against Equity:UFO.

    Examples:
        payledger account adjust Assets:Bank 250.00
        payledger account adjust Assets:Alipay 0 --date 2024-01-31
    """
    db = ctx.obj["db"]
    service = AccountService(db, currency=currency_of(ctx))

    try:
        amount = parse_amount(new_balance)
        when = datetime.combine(parse_date(adjust_date), datetime.min.time()) if adjust_date else None
        transaction = service.adjust_balance(account_id, amount, date=when)
    except (DomainError, ValueError) as e:
        handle_domain_error(ctx, e)

    if transaction is None:
        click.echo(f"Balance of {account_id} is already {amount:,.2f}; nothing to adjust.")
        return
    click.echo(f"Adjusted {account_id} to {amount:,.2f} (transaction {transaction.id})")


def register_commands(cli):
    """Register account commands with main CLI."""
    cli.add_command(account_group, name="account")

"""Initialize the default account tree."""

import click

from payledger.cli.error_handling import currency_of, handle_domain_error
from payledger.domain.account import DEFAULT_ACCOUNT_PATHS, AccountService
from payledger.domain.errors import DomainError


@click.command("init")
@click.pass_context
def init_accounts(ctx):
    """Create the root accounts and the equity accounts used for plugs.

    Safe to run more than once; existing accounts are left alone.
    """
    db = ctx.obj["db"]
    service = AccountService(db, currency=currency_of(ctx))

    try:
        created = service.init_default_accounts()
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not created:
        click.echo("Default accounts already exist.")
        return
    for path in created:
        click.echo(f"  {path}")
    click.echo(f"Created {len(created)} of {len(DEFAULT_ACCOUNT_PATHS)} default accounts.")


def register_commands(cli):
    """Register init command with main CLI."""
    cli.add_command(init_accounts)

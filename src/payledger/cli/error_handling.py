"""CLI error handling helpers."""

import click

from payledger.domain.errors import DomainError


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Render a domain error and exit with failure."""
    click.echo(f"Error: {error}", err=True)
    ctx.exit(1)


def currency_of(ctx: click.Context) -> str:
    """Currency from the settings loaded by the CLI group."""
    return ctx.obj["settings"].currency

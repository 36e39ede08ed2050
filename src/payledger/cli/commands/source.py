"""Import source commands."""

import click

from payledger.cli.error_handling import handle_domain_error
from payledger.domain.errors import DomainError
from payledger.domain.rules import RuleService


@click.group()
def source_group():
    """Manage import sources (payment providers)."""
    pass


@source_group.command("create")
@click.argument("source_id", metavar="SOURCE")
@click.option("--name", help="Display name (defaults to SOURCE)")
@click.pass_context
def create_source(ctx, source_id: str, name: str | None):
    """Create an import source.

    Examples:
        payledger source create alipay --name "Alipay"
        payledger source create wechat
    """
    service = RuleService(ctx.obj["db"])
    try:
        source = service.create_source(source_id, name=name)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created import source '{source.id}' ({source.name})")


@source_group.command("list")
@click.pass_context
def list_sources(ctx):
    """List import sources."""
    service = RuleService(ctx.obj["db"])
    sources = service.list_sources()
    if not sources:
        click.echo("No import sources found.")
        return
    for source in sources:
        rules = service.list_rules(source.id)
        click.echo(f"{source.id:15s} {source.name:25s} {len(rules)} rule(s)")


def register_commands(cli):
    """Register source commands with main CLI."""
    cli.add_command(source_group, name="source")

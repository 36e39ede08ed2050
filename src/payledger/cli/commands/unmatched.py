"""Unmatched queue commands."""

import click

from payledger.cli.commands.import_cmd import describe_match
from payledger.cli.error_handling import currency_of, handle_domain_error
from payledger.domain.commit import CommitService
from payledger.domain.errors import DomainError
from payledger.domain.unmatched import UnmatchedService


@click.group()
def unmatched_group():
    """Review records that no rule could classify."""
    pass


@unmatched_group.command("list")
@click.option("--source", help="Only records from this import source")
@click.option("--page", type=int, default=1, show_default=True)
@click.option("--page-size", type=int, default=20, show_default=True)
@click.pass_context
def list_unmatched(ctx, source: str | None, page: int, page_size: int):
    """List queued records, newest first, with what the current rules make of them."""
    service = UnmatchedService(ctx.obj["db"])
    try:
        results = service.preview(source=source, page=page, page_size=page_size)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not results.total:
        click.echo("No unmatched records.")
        return
    click.echo(f"\nUnmatched records (page {results.page}/{results.total_pages}, {results.total} total):")
    click.echo("-" * 100)
    for result in results.items:
        click.echo(f"[{result.record.raw_tx_id}] {result.record.provider}: {describe_match(result)}")


@unmatched_group.command("resolve")
@click.argument("raw_tx_id", type=int)
@click.option("--target", "target_account", required=True, help="Target account path")
@click.option("--method", "method_account", required=True, help="Method account path")
@click.pass_context
def resolve_unmatched(ctx, raw_tx_id: int, target_account: str, method_account: str):
    """Classify a queued record by hand and post it.

    Examples:
        payledger unmatched resolve 12 --target Expenses:Food --method Assets:Alipay
    """
    service = CommitService(ctx.obj["db"], currency=currency_of(ctx))
    try:
        transaction = service.manual_match(raw_tx_id, target_account, method_account)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Posted raw record {raw_tx_id} as transaction {transaction.id}")


@unmatched_group.command("rematch")
@click.option("--source", help="Only records from this import source")
@click.pass_context
def rematch_unmatched(ctx, source: str | None):
    """Run the current rules over the queue and post what now matches."""
    service = CommitService(ctx.obj["db"], currency=currency_of(ctx))
    result = service.rematch_unmatched(source=source)
    click.echo(f"Committed: {result.committed}")
    click.echo(f"Still unmatched: {result.unmatched}")
    for failure in result.failures:
        click.echo(f"  {failure.identifier}: {failure.reason}", err=True)


def register_commands(cli):
    """Register unmatched queue commands with main CLI."""
    cli.add_command(unmatched_group, name="unmatched")

"""Record import command."""

import click

from payledger.cli.error_handling import currency_of, handle_domain_error
from payledger.domain.commit import CommitService
from payledger.domain.entities import MatchResult
from payledger.domain.errors import DomainError
from payledger.domain.matcher import MatchService
from payledger.domain.record_loader import load_records


def describe_match(result: MatchResult) -> str:
    record = result.record
    when = record.transaction_time.strftime("%Y-%m-%d %H:%M") if record.transaction_time else "?"
    return (
        f"{record.identifier:24s} {when} {record.amount:>10s} {record.counterparty[:20]:20s} "
        f"target={result.target_account or '-'} method={result.method_account or '-'}"
    )


@click.command("import")
@click.argument("record_file", type=click.Path(exists=True))
@click.option("--source", required=True, help="Import source the records come from")
@click.option("--preview", is_flag=True, help="Classify only; nothing is written")
@click.pass_context
def import_records(ctx, record_file: str, source: str, preview: bool):
    """Import canonical records from a CSV or JSON file.

    Matched records are posted to the ledger; the rest wait in the unmatched
    queue. Re-importing the same file creates nothing new.
    """
    db = ctx.obj["db"]

    try:
        loaded = load_records(record_file, source=source)
        if preview:
            batch = MatchService(db).match_transactions(loaded.records, source)
        else:
            report = CommitService(db, currency=currency_of(ctx)).import_records(loaded.records, source)
    except (DomainError, FileNotFoundError) as e:
        handle_domain_error(ctx, e)

    if preview:
        click.echo(f"\nPreview: {len(batch.matched)} of {len(loaded.records)} records matched")
        for result in batch.results:
            marker = "+" if result.is_matched else "?"
            click.echo(f"  {marker} {describe_match(result)}")
    else:
        result = report.result
        click.echo("\nImport complete:")
        click.echo(f"  Imported: {result.committed} transactions")
        click.echo(f"  Skipped: {result.duplicates} duplicates")
        click.echo(f"  Unmatched: {result.unmatched} records")
        for failure in result.failures:
            click.echo(f"    {failure.identifier}: {failure.reason}", err=True)

    if loaded.errors:
        click.echo(f"  Errors: {len(loaded.errors)}")
        for error in loaded.errors:
            click.echo(f"    {error}", err=True)


def register_commands(cli):
    """Register import command with main CLI."""
    cli.add_command(import_records)

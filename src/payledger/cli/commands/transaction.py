"""Transaction management commands."""

from datetime import datetime

import click

from payledger.cli.error_handling import currency_of, handle_domain_error
from payledger.domain.entities import PostingDraft, Transaction
from payledger.domain.errors import DomainError, ValidationError
from payledger.domain.ledger import LedgerService
from payledger.utils.amount_parser import parse_amount
from payledger.utils.date_parser import parse_date, parse_timestamp


def parse_posting(value: str, currency: str) -> PostingDraft:
    """Parse ``ACCOUNT=AMOUNT`` into a posting draft."""
    account_id, sep, amount = value.rpartition("=")
    if not sep or not account_id.strip():
        raise ValidationError(f"Invalid posting '{value}', expected ACCOUNT=AMOUNT")
    try:
        return PostingDraft(account_id=account_id.strip(), amount=parse_amount(amount), currency=currency)
    except ValueError as e:
        raise ValidationError(f"Invalid posting '{value}': {e}") from e


def print_transaction(txn: Transaction) -> None:
    click.echo(f"\nTransaction ID: {txn.id}")
    click.echo(f"  Date: {txn.date:%Y-%m-%d %H:%M:%S}")
    if txn.payee:
        click.echo(f"  Payee: {txn.payee}")
    if txn.narration:
        click.echo(f"  Narration: {txn.narration}")
    if txn.tags:
        click.echo(f"  Tags: {', '.join(txn.tags)}")
    if txn.raw_transaction_ids:
        click.echo(f"  Imported from raw record(s): {', '.join(str(i) for i in txn.raw_transaction_ids)}")
    for posting in txn.postings:
        click.echo(f"    {posting.account_id:40s} {posting.amount:>14,.2f} {posting.currency}")


@click.group()
def transaction_group():
    """Manage transactions."""
    pass


@transaction_group.command("add")
@click.option("--date", "txn_date", required=True, help="Date (YYYY-MM-DD, 'YYYY-MM-DD HH:MM' or 'today')")
@click.option("--payee", help="Payee")
@click.option("--narration", help="Narration")
@click.option("--posting", "postings", multiple=True, required=True, help="ACCOUNT=AMOUNT, repeat per posting")
@click.option("--tag", "tags", multiple=True, help="Tag name, may be repeated")
@click.pass_context
def add_transaction(ctx, txn_date: str, payee: str | None, narration: str | None, postings, tags):
    """Add a balanced transaction by hand.

    Examples:
        payledger transaction add --date today --payee "Cafe" \\
            --posting Expenses:Food=12.50 --posting Assets:Bank=-12.50
    """
    service = LedgerService(ctx.obj["db"])
    currency = currency_of(ctx)

    try:
        drafts = [parse_posting(p, currency) for p in postings]
        try:
            when = parse_timestamp(txn_date)
        except ValueError:
            when = datetime.combine(parse_date(txn_date), datetime.min.time())
        transaction = service.create_transaction(
            date=when, payee=payee, narration=narration, postings=drafts, tags=list(tags)
        )
    except (DomainError, ValueError) as e:
        handle_domain_error(ctx, e)

    click.echo(f"Created transaction {transaction.id}")


@transaction_group.command("list")
@click.option("--start-date", help="Start date (YYYY-MM-DD or relative like 'yesterday')")
@click.option("--end-date", help="End date, inclusive")
@click.option("--account", help="Account path; postings anywhere below it match")
@click.option("--payee", help="Payee contains this text")
@click.option("--narration", help="Narration contains this text")
@click.option("--paying-account", help="Account path; a negative posting below it matches")
@click.option("--receiving-account", help="Account path; a positive posting below it matches")
@click.option("--min-amount", help="Some posting is at least this amount")
@click.option("--max-amount", help="Some posting is at most this amount")
@click.option("--page", type=int, default=1, show_default=True)
@click.option("--page-size", type=int, default=20, show_default=True)
@click.option("--verbose", "-v", is_flag=True, help="Show postings of each transaction")
@click.pass_context
def list_transactions(
    ctx,
    start_date: str | None,
    end_date: str | None,
    account: str | None,
    payee: str | None,
    narration: str | None,
    paying_account: str | None,
    receiving_account: str | None,
    min_amount: str | None,
    max_amount: str | None,
    page: int,
    page_size: int,
    verbose: bool,
):
    """View transactions with optional filters, newest first."""
    service = LedgerService(ctx.obj["db"])

    try:
        start = parse_date(start_date) if start_date else None
        end = parse_date(end_date) if end_date else None
        results = service.list_transactions(
            start_date=start,
            end_date=end,
            account_id=account,
            payee=payee,
            narration=narration,
            paying_account_id=paying_account,
            receiving_account_id=receiving_account,
            min_amount=parse_amount(min_amount) if min_amount is not None else None,
            max_amount=parse_amount(max_amount) if max_amount is not None else None,
            page=page,
            page_size=page_size,
        )
    except (DomainError, ValueError) as e:
        handle_domain_error(ctx, e)

    if not results.total:
        click.echo("No transactions found.")
        return

    click.echo(f"\nFound {results.total} transaction(s) (page {results.page}/{results.total_pages}):")
    if verbose:
        for txn in results.items:
            print_transaction(txn)
        return

    click.echo("-" * 90)
    for txn in results.items:
        amount = sum((p.amount for p in txn.postings if p.amount > 0), 0)
        click.echo(
            f"{txn.id:5d}  {txn.date:%Y-%m-%d}  {(txn.payee or '')[:25]:25s} "
            f"{(txn.narration or '')[:30]:30s} {amount:>12,.2f}"
        )


@transaction_group.command("show")
@click.argument("transaction_id", type=int)
@click.pass_context
def show_transaction(ctx, transaction_id: int):
    """Show a transaction with its postings."""
    service = LedgerService(ctx.obj["db"])
    try:
        txn = service.require_transaction(transaction_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    print_transaction(txn)


def register_commands(cli):
    """Register transaction commands with main CLI."""
    cli.add_command(transaction_group, name="transaction")

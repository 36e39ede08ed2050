"""Main CLI entry point."""

import logging

import click

from payledger.config import load_settings
from payledger.database.factories import create_sqlite_database
from payledger.logging_config import configure_logging

# Import and register all commands at module level
from payledger.cli.commands import (
    account,
    import_cmd,
    init,
    rule,
    source,
    transaction,
    unmatched,
)

logger = logging.getLogger(__name__)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides PAYLEDGER_DB_PATH environment variable)",
    envvar="PAYLEDGER_DB_PATH",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help="Log level for diagnostics on stderr (overrides PAYLEDGER_LOG_LEVEL)",
    envvar="PAYLEDGER_LOG_LEVEL",
)
@click.pass_context
def cli(ctx, db_path: str | None, log_level: str | None):
    """payledger - Payment records to double-entry ledger.

    Import bills from payment providers, classify them with per-source rules
    and post them as balanced transactions. Records no rule can classify wait
    in the unmatched queue.
    """
    ctx.ensure_object(dict)
    settings = load_settings()
    configure_logging(log_level or settings.log_level)

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        db = create_sqlite_database(database_path=db_path or settings.database_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.obj["settings"] = settings
        ctx.call_on_close(db.disconnect)
        logger.debug("Using database %s", db.database_url)


# Register all commands
init.register_commands(cli)
account.register_commands(cli)
source.register_commands(cli)
rule.register_commands(cli)
import_cmd.register_commands(cli)
unmatched.register_commands(cli)
transaction.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()

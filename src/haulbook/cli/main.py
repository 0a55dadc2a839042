"""Main CLI entry point."""

import os

import click
from haulbook import configure_logging
from haulbook.database.factories import create_database, create_sqlite_database

# Import and register all commands at module level
from haulbook.cli.commands import (
    account,
    trip,
    transaction,
    balance,
    fusion,
)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides HAULBOOK_DB_PATH environment variable)",
    envvar="HAULBOOK_DB_PATH",
)
@click.option("--verbose", "-v", is_flag=True, help="Log progress messages to stderr")
@click.pass_context
def cli(ctx, db_path: str | None, verbose: bool):
    """Haulbook - balances for mines, buyers and truckers.

    Record trips and payments, check who owes what, and merge duplicate
    accounts (with undo).
    """
    ctx.ensure_object(dict)
    configure_logging("INFO" if verbose else None)

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        if db_path is None and os.environ.get("HAULBOOK_DATABASE_URL"):
            db = create_database()
        else:
            db = create_sqlite_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.call_on_close(db.disconnect)


# Register all commands
account.register_commands(cli)
trip.register_commands(cli)
transaction.register_commands(cli)
balance.register_commands(cli)
fusion.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()

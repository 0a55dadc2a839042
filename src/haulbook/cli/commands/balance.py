"""Balance commands."""

import click
from haulbook.cli.account_resolution import ACCOUNT_TYPE_CHOICE, resolve_account_or_exit
from haulbook.cli.error_handling import handle_domain_error
from haulbook.domain.account import AccountService
from haulbook.domain.balance import BalanceCalculator
from haulbook.domain.balance_cache import BalanceCache
from haulbook.domain.balance_report import BalanceReportService
from haulbook.domain.entities import AccountType
from haulbook.domain.errors import DomainError


def _format_balance(amount) -> str:
    return f"{amount:,.2f}"


@click.group()
def balance_group():
    """Show, check and recalculate balances."""
    pass


@balance_group.command("show")
@click.argument("account_type", metavar="TYPE", type=ACCOUNT_TYPE_CHOICE)
@click.argument("account", metavar="ACCOUNT")
@click.pass_context
def show_balance(ctx, account_type: str, account: str):
    """Show the balance of one account, computed from the ledger.

    Examples:
        haulbook balance show mine "La Esperanza"
        haulbook balance show buyer 4
    """
    db = ctx.obj["db"]
    account_id = resolve_account_or_exit(ctx, AccountService(db), AccountType(account_type), account)
    cache = BalanceCache(db)

    try:
        balance = BalanceCalculator(db).compute_balance(AccountType(account_type), account_id)
        reading = cache.read(account_id)
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Balance: {_format_balance(balance)}")
    status = "stale" if reading.is_stale else "fresh"
    click.echo(f"Cached:  {_format_balance(reading.balance)} ({status})")


@balance_group.command("list")
@click.argument("account_type", metavar="TYPE", type=ACCOUNT_TYPE_CHOICE)
@click.pass_context
def list_balances(ctx, account_type: str):
    """List balances and trip counts of every account of a type."""
    db = ctx.obj["db"]
    account_type = AccountType(account_type)
    summaries = BalanceReportService(db).compute_all_balances(account_type)
    if not summaries:
        click.echo("No accounts found.")
        return

    names = {acc.id: acc.name for acc in AccountService(db).list_accounts(account_type)}
    click.echo(f"{'ID':>4} {'Name':<25} {'Balance':>18} {'Trips':>6} {'Last month':>11}")
    click.echo("-" * 68)
    for account_id in sorted(summaries, key=lambda key: names.get(key, "")):
        summary = summaries[account_id]
        click.echo(
            f"{account_id:>4} {names.get(account_id, '?')[:25]:<25} {_format_balance(summary.balance):>18} "
            f"{summary.trip_count:>6} {summary.trip_count_last_month:>11}"
        )


@balance_group.command("stale")
@click.option("--type", "account_type", type=ACCOUNT_TYPE_CHOICE, help="Only accounts of this type")
@click.pass_context
def stale_balances(ctx, account_type: str | None):
    """List accounts whose cached balance is outdated."""
    stale = BalanceCache(ctx.obj["db"]).get_stale_accounts(AccountType(account_type) if account_type else None)
    if not stale:
        click.echo("All cached balances are up to date.")
        return
    for acc in stale:
        click.echo(f"{acc.account_type.value:<11} {acc.id:>4} {acc.name}")


@balance_group.command("validate")
@click.option("--type", "account_type", type=ACCOUNT_TYPE_CHOICE, help="Only accounts of this type")
@click.pass_context
def validate_balances(ctx, account_type: str | None):
    """Compare cached balances with a fresh computation.

    Mismatches are reported only; run 'balance recalculate' to fix them.
    """
    try:
        validations = BalanceCache(ctx.obj["db"]).validate_all(AccountType(account_type) if account_type else None)
    except DomainError as e:
        handle_domain_error(ctx, e)

    mismatches = [v for v in validations if not v.valid]
    for v in mismatches:
        click.echo(
            f"MISMATCH {v.account_type.value} {v.account_id}: cached {_format_balance(v.cached)}, "
            f"computed {_format_balance(v.computed)} (difference {_format_balance(v.difference)})"
        )
    click.echo(f"Checked {len(validations)} account(s), {len(mismatches)} mismatch(es)")
    if mismatches:
        ctx.exit(1)


@balance_group.command("recalculate")
@click.option("--type", "account_type", type=ACCOUNT_TYPE_CHOICE, help="Only accounts of this type")
@click.pass_context
def recalculate_balances(ctx, account_type: str | None):
    """Recompute every cached balance from the ledger."""
    try:
        count = BalanceCache(ctx.obj["db"]).recalculate_all(AccountType(account_type) if account_type else None)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Recalculated {count} balance(s)")


def register_commands(cli):
    """Register balance commands with main CLI."""
    cli.add_command(balance_group, name="balance")

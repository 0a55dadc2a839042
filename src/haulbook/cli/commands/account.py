"""Account management commands."""

import click
from haulbook.cli.account_resolution import ACCOUNT_TYPE_CHOICE, resolve_account_or_exit
from haulbook.cli.error_handling import handle_domain_error
from haulbook.domain.account import AccountService
from haulbook.domain.entities import AccountType
from haulbook.domain.errors import DomainError


@click.group()
def account_group():
    """Manage mines, buyers, truckers and third parties."""
    pass


@account_group.command("create")
@click.argument("account_type", metavar="TYPE", type=ACCOUNT_TYPE_CHOICE)
@click.argument("name", metavar="NAME")
@click.option("--plate", help="Vehicle plate (truckers)")
@click.pass_context
def create_account(ctx, account_type: str, name: str, plate: str | None):
    """Create a new account.

    Examples:
        haulbook account create mine "La Esperanza"
        haulbook account create trucker "Juan Perez" --plate ABC123
    """
    service = AccountService(ctx.obj["db"])
    try:
        account_id = service.create_account(AccountType(account_type), name, plate=plate)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created {account_type.replace('_', ' ')} '{name.strip()}' (ID: {account_id})")


@account_group.command("list")
@click.option("--type", "account_type", type=ACCOUNT_TYPE_CHOICE, help="Only list accounts of this type")
@click.pass_context
def list_accounts(ctx, account_type: str | None):
    """List accounts."""
    service = AccountService(ctx.obj["db"])
    accounts = service.list_accounts(AccountType(account_type) if account_type else None)
    if not accounts:
        click.echo("No accounts found.")
        return

    click.echo("\nAccounts:")
    click.echo("-" * 60)
    for acc in accounts:
        plate = f" | Plate: {acc.plate}" if acc.plate else ""
        click.echo(f"ID: {acc.id:3d} | {acc.account_type.value:11s} | {acc.name:25s}{plate}")


@account_group.command("rename")
@click.argument("account_type", metavar="TYPE", type=ACCOUNT_TYPE_CHOICE)
@click.argument("account", metavar="ACCOUNT")
@click.argument("new_name", metavar="NEW_NAME")
@click.pass_context
def rename_account(ctx, account_type: str, account: str, new_name: str) -> None:
    """Rename an account.

    ACCOUNT can be an account name or ID.

    Examples:
        haulbook account rename buyer "Cementos" "Cementos del Norte"
        haulbook account rename mine 3 "La Esperanza II"
    """
    service = AccountService(ctx.obj["db"])
    account_id = resolve_account_or_exit(ctx, service, AccountType(account_type), account)
    try:
        service.rename_account(account_id, new_name)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Renamed {account_type.replace('_', ' ')} {account_id} to '{new_name.strip()}'")


@account_group.command("alias")
@click.argument("trucker", metavar="TRUCKER")
@click.argument("driver_name", metavar="DRIVER_NAME", required=False)
@click.pass_context
def alias(ctx, trucker: str, driver_name: str | None) -> None:
    """Add a driver-name spelling to a trucker, or list its spellings.

    Trips recorded under DRIVER_NAME count toward TRUCKER afterwards.

    Examples:
        haulbook account alias "Juan Perez" "J. Perez"
        haulbook account alias 7
    """
    service = AccountService(ctx.obj["db"])
    trucker_id = resolve_account_or_exit(ctx, service, AccountType.TRUCKER, trucker)

    if driver_name is None:
        for driver_key in service.list_driver_aliases(trucker_id):
            click.echo(driver_key)
        return

    try:
        driver_key = service.add_driver_alias(trucker_id, driver_name)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Driver name '{driver_key}' now resolves to trucker {trucker_id}")


def register_commands(cli):
    """Register account commands with main CLI."""
    cli.add_command(account_group, name="account")

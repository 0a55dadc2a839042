"""Account fusion commands."""

import click
from haulbook.cli.account_resolution import ACCOUNT_TYPE_CHOICE, resolve_account_or_exit
from haulbook.cli.error_handling import handle_domain_error
from haulbook.domain.account import AccountService
from haulbook.domain.entities import AccountType
from haulbook.domain.errors import DomainError
from haulbook.domain.fusion import FusionService


@click.group()
def fusion_group():
    """Merge duplicate accounts and undo merges."""
    pass


@fusion_group.command("merge")
@click.argument("account_type", metavar="TYPE", type=ACCOUNT_TYPE_CHOICE)
@click.argument("source", metavar="SOURCE")
@click.argument("destination", metavar="DESTINATION")
@click.option("--user", "user_id", help="User performing the merge")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def merge(ctx, account_type: str, source: str, destination: str, user_id: str | None, yes: bool):
    """Merge SOURCE into DESTINATION.

    Every trip and transaction of SOURCE moves to DESTINATION and SOURCE is
    deleted. The merge can be undone with 'fusion revert'.

    Examples:
        haulbook fusion merge mine "La Esperanza " "La Esperanza"
        haulbook fusion merge trucker 12 7 --yes
    """
    db = ctx.obj["db"]
    account_type = AccountType(account_type)
    account_service = AccountService(db)
    source_id = resolve_account_or_exit(ctx, account_service, account_type, source)
    destination_id = resolve_account_or_exit(ctx, account_service, account_type, destination)

    if not yes and not click.confirm(
        f"Merge {account_type.value} {source_id} into {destination_id}? {source_id} will be deleted"
    ):
        click.echo("Merge cancelled.")
        return

    try:
        result = FusionService(db).fuse(account_type, source_id, destination_id, acting_user_id=user_id)
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo(
        f"Merged {account_type.value} {source_id} into {destination_id}: "
        f"{result.transactions_moved} transaction(s), {result.trips_moved} trip(s) moved"
    )
    click.echo(f"Backup ID: {result.backup_id}")


@fusion_group.command("history")
@click.option("--user", "user_id", help="Only merges by this user")
@click.pass_context
def history(ctx, user_id: str | None):
    """List past merges, newest first."""
    entries = FusionService(ctx.obj["db"]).get_fusion_history(user_id)
    if not entries:
        click.echo("No merges found.")
        return

    for entry in entries:
        status = f"reverted {entry.reverted_at:%Y-%m-%d %H:%M}" if entry.reverted else "active"
        click.echo(
            f"{entry.id:>4} {entry.fused_at:%Y-%m-%d %H:%M} {entry.entity_type.value:<11} "
            f"'{entry.source_name}' -> '{entry.destination_name}' "
            f"({entry.transactions_affected} txn, {entry.trips_affected} trips) [{status}]"
        )


@fusion_group.command("revert")
@click.argument("backup_id", type=int, metavar="BACKUP_ID")
@click.option("--user", "user_id", help="User performing the revert")
@click.pass_context
def revert(ctx, backup_id: int, user_id: str | None):
    """Undo a merge from its backup."""
    try:
        result = FusionService(ctx.obj["db"]).revert(backup_id, acting_user_id=user_id)
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo(
        f"Restored '{result.restored_account_name}': {result.transactions_restored} transaction(s), "
        f"{result.trips_restored} trip(s)"
    )
    if result.partial is not None:
        click.echo(
            f"Warning: {result.transactions_missing} transaction(s) and {result.trips_missing} trip(s) "
            f"no longer exist; {result.transactions_failed} transaction(s) could not be restored",
            err=True,
        )


def register_commands(cli):
    """Register fusion commands with main CLI."""
    cli.add_command(fusion_group, name="fusion")

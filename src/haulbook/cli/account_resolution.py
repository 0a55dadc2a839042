"""CLI helpers for account resolution."""

from __future__ import annotations

import click
from haulbook.domain.account import AccountService
from haulbook.domain.entities import AccountType
from haulbook.cli.error_handling import handle_domain_error

ACCOUNT_TYPE_CHOICE = click.Choice([t.value for t in AccountType])


def resolve_account(account_service: AccountService, account_type: AccountType, account: str | int) -> int:
    """Resolve an account name or ID within a type to the account ID.

    Truckers can also be given by any of their driver aliases.

    Raises:
        ValueError: If account is not found
    """
    account_type = AccountType(account_type)
    try:
        account_id = int(account)
    except (ValueError, TypeError):
        account_id = None

    if account_id is not None:
        if account_service.get_account(account_id, account_type) is None:
            raise ValueError(f"{account_type.value.replace('_', ' ').capitalize()} ID {account_id} not found")
        return account_id

    for acc in account_service.list_accounts(account_type):
        if acc.name == account:
            return acc.id

    if account_type == AccountType.TRUCKER:
        trucker = account_service.resolve_driver(str(account))
        if trucker is not None:
            return trucker.id

    raise ValueError(f"{account_type.value.replace('_', ' ').capitalize()} '{account}' not found")


def resolve_account_or_exit(
    ctx: click.Context, account_service: AccountService, account_type: AccountType, account: str | int
) -> int:
    """Resolve account name or ID, or exit with a CLI error.

    This keeps error messaging and exit behavior consistent across commands.
    """
    try:
        return resolve_account(account_service, account_type, account)
    except ValueError as exc:
        handle_domain_error(ctx, exc)

"""Manual transaction commands."""

import click
from haulbook.cli.account_resolution import resolve_account_or_exit
from haulbook.cli.error_handling import handle_domain_error
from haulbook.domain.account import AccountService
from haulbook.domain.entities import AccountType, PartyType, TransactionStatus
from haulbook.domain.errors import DomainError
from haulbook.domain.transaction import TransactionService
from haulbook.utils.amount_parser import parse_amount
from haulbook.utils.date_parser import parse_date

PARTY_HELP = "TYPE:ACCOUNT for mine/buyer/trucker/third_party, or treasury, bank, lcdm, postobon"


def _parse_party(ctx: click.Context, account_service: AccountService, value: str) -> tuple[PartyType, str]:
    """Parse "mine:La Esperanza", "buyer:4" or "bank" into a party type and id."""
    party_type, _, party = value.partition(":")
    try:
        party_type = PartyType(party_type.strip().lower())
    except ValueError:
        click.echo(f"Error: Unknown party type '{party_type}'. Use {PARTY_HELP}", err=True)
        ctx.exit(1)

    if not party_type.is_account:
        # Virtual parties are identified by a free token; default to the type itself.
        return party_type, party.strip() or party_type.value
    if not party.strip():
        click.echo(f"Error: Missing account for {party_type.value} party", err=True)
        ctx.exit(1)
    account_id = resolve_account_or_exit(ctx, account_service, AccountType(party_type.value), party.strip())
    return party_type, str(account_id)


@click.group()
def transaction_group():
    """Record and list manual transactions."""
    pass


@transaction_group.command("add")
@click.option("--from", "from_party", required=True, help=f"Party sending the money ({PARTY_HELP})")
@click.option("--to", "to_party", required=True, help=f"Party receiving the money ({PARTY_HELP})")
@click.option("--amount", required=True, help="Amount (positive)")
@click.option("--concept", required=True, help="What the payment is for")
@click.option("--date", "txn_date", default="today", show_default=True, help="Transaction date")
@click.option("--method", "payment_method", default="cash", show_default=True, help="Payment method")
@click.option("--comment", help="Comment")
@click.option("--pending", is_flag=True, help="Record as pending (does not affect balances yet)")
@click.option(
    "--system-generated/--manual",
    "is_system_generated",
    default=None,
    help="Whether the row mirrors a trip; inferred from the concept if omitted",
)
@click.pass_context
def add_transaction(
    ctx,
    from_party: str,
    to_party: str,
    amount: str,
    concept: str,
    txn_date: str,
    payment_method: str,
    comment: str | None,
    pending: bool,
    is_system_generated: bool | None,
):
    """Record money moving from one party to another.

    Examples:
        haulbook transaction add --from "mine:La Esperanza" --to bank --amount 500000 --concept "Partial payment"
        haulbook transaction add --from treasury --to trucker:7 --amount 1,200,000 --concept "Advance"
    """
    db = ctx.obj["db"]
    service = TransactionService(db)
    account_service = AccountService(db)

    from_type, from_id = _parse_party(ctx, account_service, from_party)
    to_type, to_id = _parse_party(ctx, account_service, to_party)

    try:
        parsed_date = parse_date(txn_date)
    except ValueError as e:
        click.echo(f"Error: Invalid date format: {e}", err=True)
        ctx.exit(1)

    try:
        parsed_amount = parse_amount(amount)
    except ValueError as e:
        click.echo(f"Error: Invalid amount format: {e}", err=True)
        ctx.exit(1)

    try:
        transaction_id = service.create_transaction(
            from_party_type=from_type,
            from_party_id=from_id,
            to_party_type=to_type,
            to_party_id=to_id,
            concept=concept,
            amount=parsed_amount,
            date=parsed_date,
            payment_method=payment_method,
            comment=comment,
            status=TransactionStatus.PENDING if pending else TransactionStatus.COMPLETED,
            is_system_generated=is_system_generated,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Recorded transaction {transaction_id}: {parsed_amount:,.2f} from {from_party} to {to_party}")


@transaction_group.command("delete")
@click.argument("transaction_id", type=int, metavar="TRANSACTION_ID")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_transaction(ctx, transaction_id: int, yes: bool):
    """Delete a transaction."""
    service = TransactionService(ctx.obj["db"])
    txn = service.get_transaction(transaction_id)
    if txn is None:
        click.echo(f"Error: Transaction {transaction_id} not found", err=True)
        ctx.exit(1)

    if not yes and not click.confirm(
        f"Are you sure you want to delete transaction {transaction_id} ({txn.concept}, {txn.amount:,.2f})?"
    ):
        click.echo("Deletion cancelled.")
        return

    try:
        service.delete_transaction(transaction_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Deleted transaction {transaction_id}")


@transaction_group.command("list")
@click.argument("party", metavar="PARTY")
@click.pass_context
def list_transactions(ctx, party: str):
    """List transactions of a party.

    PARTY uses the same TYPE:ACCOUNT form as 'transaction add'.

    Examples:
        haulbook transaction list "buyer:Cementos"
        haulbook transaction list bank
    """
    db = ctx.obj["db"]
    service = TransactionService(db)
    party_type, party_id = _parse_party(ctx, AccountService(db), party)

    transactions = service.list_transactions_for_party(party_type, party_id)
    if not transactions:
        click.echo("No transactions found.")
        return

    click.echo(f"{'ID':>5} {'Date':<10} {'From':<18} {'To':<18} {'Amount':>15} Concept")
    click.echo("-" * 90)
    for txn in transactions:
        flags = []
        if txn.status == TransactionStatus.PENDING:
            flags.append("pending")
        if txn.is_system_generated:
            flags.append("trip")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        click.echo(
            f"{txn.id:>5} {txn.date.isoformat():<10} "
            f"{txn.from_party_type.value + ':' + txn.from_party_id:<18} "
            f"{txn.to_party_type.value + ':' + txn.to_party_id:<18} "
            f"{txn.amount:>15,.2f} {txn.concept}{suffix}"
        )


def register_commands(cli):
    """Register transaction commands with main CLI."""
    cli.add_command(transaction_group, name="transaction")

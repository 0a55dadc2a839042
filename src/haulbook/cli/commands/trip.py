"""Trip commands."""

import click
from haulbook.cli.account_resolution import resolve_account_or_exit
from haulbook.cli.error_handling import handle_domain_error
from haulbook.domain.account import AccountService
from haulbook.domain.entities import AccountType, FreightPayer
from haulbook.domain.errors import DomainError
from haulbook.domain.trip import TripService
from haulbook.utils.amount_parser import parse_amount
from haulbook.utils.date_parser import parse_date


@click.group()
def trip_group():
    """Record and list trips."""
    pass


@trip_group.command("add")
@click.option("--id", "trip_id", help="Trip ID (first free A1..Z100 if not provided)")
@click.option("--load-date", required=True, help="Load date (YYYY-MM-DD or 'today', 'yesterday')")
@click.option("--unload-date", help="Unload date; trips with one are recorded as completed")
@click.option("--driver", required=True, help="Driver name as written on the trip sheet")
@click.option("--plate", required=True, help="Vehicle plate")
@click.option("--vehicle-type", default="dump truck", show_default=True)
@click.option("--mine", required=True, help="Mine name or ID (created if the name is new)")
@click.option("--buyer", required=True, help="Buyer name or ID (created if the name is new)")
@click.option("--weight", required=True, help="Weight in tons")
@click.option("--purchase-price", required=True, help="Purchase price per ton")
@click.option("--sale-price", required=True, help="Sale price per ton")
@click.option("--freight-price", required=True, help="Freight price per ton")
@click.option("--other-freight-cost", default="0", show_default=True)
@click.option(
    "--freight-payer",
    type=click.Choice([p.value for p in FreightPayer]),
    default=FreightPayer.COMPANY.value,
    show_default=True,
    help="Who pays the trucker",
)
@click.option("--receipt", help="Receipt number")
@click.option("--notes", help="Notes")
@click.pass_context
def add_trip(
    ctx,
    trip_id: str | None,
    load_date: str,
    unload_date: str | None,
    driver: str,
    plate: str,
    vehicle_type: str,
    mine: str,
    buyer: str,
    weight: str,
    purchase_price: str,
    sale_price: str,
    freight_price: str,
    other_freight_cost: str,
    freight_payer: str,
    receipt: str | None,
    notes: str | None,
):
    """Record a trip.

    Examples:
        haulbook trip add --load-date 2024-03-01 --unload-date 2024-03-02 \\
            --driver "Juan Perez" --plate ABC123 --mine "La Esperanza" \\
            --buyer "Cementos" --weight 30 --purchase-price 70000 \\
            --sale-price 120000 --freight-price 15000
    """
    db = ctx.obj["db"]
    service = TripService(db)

    try:
        load = parse_date(load_date)
        unload = parse_date(unload_date) if unload_date else None
    except ValueError as e:
        click.echo(f"Error: Invalid date format: {e}", err=True)
        ctx.exit(1)

    try:
        amounts = {
            "weight": parse_amount(weight),
            "purchase_unit_price": parse_amount(purchase_price),
            "sale_unit_price": parse_amount(sale_price),
            "freight_unit_price": parse_amount(freight_price),
            "other_freight_cost": parse_amount(other_freight_cost),
        }
    except ValueError as e:
        click.echo(f"Error: Invalid amount format: {e}", err=True)
        ctx.exit(1)

    parties = {}
    for account_type, value in ((AccountType.MINE, mine), (AccountType.BUYER, buyer)):
        key = account_type.value
        if value.isdigit():
            parties[f"{key}_id"] = resolve_account_or_exit(ctx, service.accounts, account_type, value)
        else:
            parties[f"{key}_name"] = value

    try:
        new_id = service.create_trip(
            load_date=load,
            unload_date=unload,
            driver_name=driver,
            plate=plate,
            vehicle_type=vehicle_type,
            freight_payer=freight_payer,
            trip_id=trip_id,
            receipt=receipt,
            notes=notes,
            **parties,
            **amounts,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)

    trip = service.get_trip(new_id)
    click.echo(f"Recorded trip {new_id} ({trip.status.value})")
    click.echo(f"  Sale: {trip.total_sale:,.2f} | Purchase: {trip.total_purchase:,.2f} | Freight: {trip.total_freight:,.2f}")


@trip_group.command("delete")
@click.argument("trip_id", metavar="TRIP_ID")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_trip(ctx, trip_id: str, yes: bool):
    """Delete a trip."""
    service = TripService(ctx.obj["db"])
    if service.get_trip(trip_id) is None:
        click.echo(f"Error: Trip '{trip_id}' not found", err=True)
        ctx.exit(1)

    if not yes and not click.confirm(f"Are you sure you want to delete trip {trip_id}?"):
        click.echo("Deletion cancelled.")
        return

    try:
        service.delete_trip(trip_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Deleted trip {trip_id}")


@trip_group.command("list")
@click.option("--mine", help="Only trips of this mine (name or ID)")
@click.option("--buyer", help="Only trips of this buyer (name or ID)")
@click.option("--trucker", help="Only trips of this trucker (name or ID)")
@click.pass_context
def list_trips(ctx, mine: str | None, buyer: str | None, trucker: str | None):
    """List trips, newest first."""
    db = ctx.obj["db"]
    service = TripService(db)
    account_service = AccountService(db)

    filters = {}
    if mine:
        filters["mine_id"] = resolve_account_or_exit(ctx, account_service, AccountType.MINE, mine)
    if buyer:
        filters["buyer_id"] = resolve_account_or_exit(ctx, account_service, AccountType.BUYER, buyer)
    if trucker:
        filters["trucker_id"] = resolve_account_or_exit(ctx, account_service, AccountType.TRUCKER, trucker)

    trips = service.list_trips(**filters)
    if not trips:
        click.echo("No trips found.")
        return

    click.echo(f"{'ID':<6} {'Load':<10} {'Unload':<10} {'Driver':<20} {'Weight':>8} {'Sale':>15} {'Status':<10}")
    click.echo("-" * 85)
    for trip in trips:
        unload = trip.unload_date.isoformat() if trip.unload_date else "-"
        hidden = " (hidden)" if trip.hidden else ""
        click.echo(
            f"{trip.id:<6} {trip.load_date.isoformat():<10} {unload:<10} {trip.driver_name[:20]:<20} "
            f"{trip.weight:>8} {trip.total_sale:>15,.2f} {trip.status.value:<10}{hidden}"
        )


def register_commands(cli):
    """Register trip commands with main CLI."""
    cli.add_command(trip_group, name="trip")

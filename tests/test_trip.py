"""Tests for TripService."""

from datetime import date
from decimal import Decimal

import pytest

from haulbook.domain.entities import AccountType, FreightPayer, TripStatus
from haulbook.domain.errors import ConflictError, NotFoundError, ValidationError
from haulbook.domain.events import ChangeType
from haulbook.domain.trip import compute_trip_totals


def test_compute_trip_totals_company_pays_freight():
    totals = compute_trip_totals(
        weight=Decimal("30"),
        purchase_unit_price=Decimal("70000"),
        sale_unit_price=Decimal("112000"),
        freight_unit_price=Decimal("15000"),
        other_freight_cost=Decimal("20000"),
        freight_payer="company",
    )

    assert totals["total_sale"] == Decimal("3360000.00")
    assert totals["total_purchase"] == Decimal("2100000.00")
    assert totals["total_freight"] == Decimal("450000.00")
    assert totals["amount_to_remit"] == Decimal("3360000.00")
    assert totals["profit"] == Decimal("790000.00")


def test_compute_trip_totals_buyer_pays_freight():
    totals = compute_trip_totals(
        weight=Decimal("30"),
        purchase_unit_price=Decimal("70000"),
        sale_unit_price=Decimal("112000"),
        freight_unit_price=Decimal("15000"),
        other_freight_cost=Decimal("0"),
        freight_payer=FreightPayer.BUYER,
    )

    assert totals["amount_to_remit"] == Decimal("2910000.00")


def test_create_trip_auto_creates_accounts(temp_db, make_trip):
    trip = make_trip()

    mine = temp_db.get_account_by_name(AccountType.MINE, "La Esperanza")
    buyer = temp_db.get_account_by_name(AccountType.BUYER, "Cementos del Norte")
    assert trip.mine_id == mine.id
    assert trip.buyer_id == buyer.id
    assert temp_db.resolve_driver_key("juan perez") is not None
    assert trip.driver_key == "juan perez"


def test_create_trip_generates_sequential_ids(make_trip, trip_service):
    first = make_trip()
    second = make_trip()
    assert (first.id, second.id) == ("A1", "A2")

    trip_service.delete_trip("A1")
    assert make_trip().id == "A1"


def test_create_trip_with_explicit_id(make_trip):
    assert make_trip(trip_id="Z7").id == "Z7"
    with pytest.raises(ConflictError):
        make_trip(trip_id="Z7")


def test_status_follows_unload_date(make_trip):
    assert make_trip().status == TripStatus.COMPLETED
    assert make_trip(unload_date=None).status == TripStatus.PENDING


def test_create_trip_validates_input(make_trip):
    with pytest.raises(ValidationError):
        make_trip(weight=Decimal("-1"))
    with pytest.raises(ValidationError):
        make_trip(load_date=date(2024, 3, 5), unload_date=date(2024, 3, 1))
    with pytest.raises(ValidationError):
        make_trip(driver_name="  ")


def test_create_trip_unknown_mine_id(make_trip):
    with pytest.raises(NotFoundError):
        make_trip(mine_name=None, mine_id=999)


def test_update_trip_recomputes_totals_and_balances(temp_db, make_trip, trip_service, balance_cache):
    trip = make_trip()
    mine_id = trip.mine_id

    trip_service.update_trip(trip.id, weight=Decimal("10"))

    updated = trip_service.get_trip(trip.id)
    assert updated.total_purchase == Decimal("700000.00")
    assert balance_cache.read(mine_id).balance == Decimal("700000.00")


def test_update_trip_refreshes_old_and_new_mine(temp_db, make_trip, trip_service, account_service, balance_cache):
    trip = make_trip()
    old_mine = trip.mine_id
    new_mine = account_service.create_account(AccountType.MINE, "El Filo")

    trip_service.update_trip(trip.id, mine_id=new_mine)

    assert balance_cache.read(old_mine).balance == Decimal("0.00")
    assert balance_cache.read(new_mine).balance == Decimal("2100000.00")


def test_update_trip_rejects_unknown_fields(make_trip, trip_service):
    trip = make_trip()
    with pytest.raises(ValidationError):
        trip_service.update_trip(trip.id, total_sale=Decimal("1"))


def test_update_missing_trip(trip_service):
    with pytest.raises(NotFoundError):
        trip_service.update_trip("Q1", notes="x")


def test_delete_trip_refreshes_balances(make_trip, trip_service, balance_cache):
    trip = make_trip()

    trip_service.delete_trip(trip.id)

    assert trip_service.get_trip(trip.id) is None
    assert balance_cache.read(trip.mine_id).balance == Decimal("0.00")
    assert balance_cache.read(trip.buyer_id).balance == Decimal("0.00")


def test_trip_writes_publish_events(make_trip, trip_service, events):
    trip = make_trip()
    trip_service.update_trip(trip.id, notes="Checked")
    trip_service.delete_trip(trip.id)

    trip_events = [e for e in events if set(e.affected_account_ids) >= {trip.mine_id, trip.buyer_id}]
    assert [e.type for e in trip_events] == [ChangeType.CREATED, ChangeType.UPDATED, ChangeType.DELETED]
    assert set(trip_events[0].affected_account_types) == {
        AccountType.MINE,
        AccountType.BUYER,
        AccountType.TRUCKER,
    }


def test_list_trips_by_trucker(make_trip, trip_service, account_service):
    make_trip(driver_name="Juan Perez")
    make_trip(driver_name="Pedro Ruiz")
    juan = account_service.resolve_driver("juan perez")

    trips = trip_service.list_trips(trucker_id=juan.id)
    assert [t.driver_name for t in trips] == ["Juan Perez"]

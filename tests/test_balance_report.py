"""Tests for the aggregate balance report."""

from datetime import date, datetime
from decimal import Decimal

from haulbook.domain.entities import AccountType, PartyType


def _seed(make_trip, trip_service, transaction_service, temp_db):
    make_trip()
    make_trip(unload_date=date(2024, 2, 28), load_date=date(2024, 2, 27))
    make_trip(mine_name="El Filo", buyer_name="Ladrillera Sur", driver_name="Pedro Ruiz", freight_payer="buyer")
    hidden = make_trip(mine_name="El Filo")
    trip_service.set_trip_hidden(hidden.id, True)
    make_trip(unload_date=None)  # pending

    mine_id = temp_db.get_account_by_name(AccountType.MINE, "La Esperanza").id
    buyer_id = temp_db.get_account_by_name(AccountType.BUYER, "Ladrillera Sur").id
    transaction_service.create_transaction(
        PartyType.MINE, mine_id, PartyType.BANK, "main", "Pago parcial", Decimal("500000"), date(2024, 3, 5)
    )
    transaction_service.create_transaction(
        PartyType.BUYER, buyer_id, PartyType.TREASURY, "main", "Abono", Decimal("1000000"), date(2024, 3, 6)
    )
    transaction_service.create_transaction(
        PartyType.TREASURY, "main", PartyType.MINE, mine_id, "Pago trip A1", Decimal("2100000"), date(2024, 3, 6)
    )


def test_empty_type_returns_empty_dict(report_service):
    assert report_service.compute_all_balances(AccountType.MINE) == {}


def test_aggregate_matches_per_account_calculation(
    temp_db, report_service, calculator, balance_cache, make_trip, trip_service, transaction_service
):
    _seed(make_trip, trip_service, transaction_service, temp_db)

    for account_type in AccountType:
        # Stale every account so the aggregate path is exercised.
        for account in temp_db.list_accounts(account_type):
            balance_cache.mark_stale(account.id)

        summaries = report_service.compute_all_balances(account_type)
        for account in temp_db.list_accounts(account_type):
            assert summaries[account.id].balance == calculator.compute_balance(account_type, account.id), (
                account_type,
                account.name,
            )


def test_fresh_accounts_use_cached_balance(temp_db, report_service, make_trip, trip_service, transaction_service):
    _seed(make_trip, trip_service, transaction_service, temp_db)
    mine_id = temp_db.get_account_by_name(AccountType.MINE, "La Esperanza").id
    temp_db.write_cached_balance(mine_id, Decimal("42.00"), datetime(2024, 3, 1))

    summaries = report_service.compute_all_balances(AccountType.MINE)
    assert summaries[mine_id].balance == Decimal("42.00")


def test_trip_counts(temp_db, report_service, make_trip, trip_service, transaction_service):
    _seed(make_trip, trip_service, transaction_service, temp_db)
    la_esperanza = temp_db.get_account_by_name(AccountType.MINE, "La Esperanza").id
    el_filo = temp_db.get_account_by_name(AccountType.MINE, "El Filo").id

    summaries = report_service.compute_all_balances(AccountType.MINE, today=date(2024, 4, 15))

    # Pending trip is not counted; the February trip is outside last month.
    assert summaries[la_esperanza].trip_count == 2
    assert summaries[la_esperanza].trip_count_last_month == 1
    # Hidden trips are still hauls.
    assert summaries[el_filo].trip_count == 2
    assert summaries[el_filo].trip_count_last_month == 2


def test_last_month_boundaries_are_inclusive(temp_db, report_service, make_trip):
    make_trip(load_date=date(2024, 3, 1), unload_date=date(2024, 3, 1))
    make_trip(load_date=date(2024, 3, 30), unload_date=date(2024, 3, 31))
    make_trip(load_date=date(2024, 4, 1), unload_date=date(2024, 4, 1))
    mine_id = temp_db.get_account_by_name(AccountType.MINE, "La Esperanza").id

    summaries = report_service.compute_all_balances(AccountType.MINE, today=date(2024, 4, 10))
    assert summaries[mine_id].trip_count_last_month == 2


def test_trucker_counts_resolve_through_aliases(temp_db, report_service, account_service, make_trip):
    make_trip(driver_name="Juan Perez")
    make_trip(driver_name="JUAN PEREZ")
    trucker_id = temp_db.resolve_driver_key("juan perez")

    summaries = report_service.compute_all_balances(AccountType.TRUCKER)
    assert summaries[trucker_id].trip_count == 2

"""Tests for AccountService and account commands."""

from datetime import date
from decimal import Decimal

import pytest
from haulbook.cli.main import cli
from haulbook.domain.entities import AccountType
from haulbook.domain.errors import ConflictError, NotFoundError, ValidationError


def test_create_account_seeds_stale_cache(temp_db, account_service):
    account_id = account_service.create_account(AccountType.MINE, "  La Esperanza ")

    account = account_service.get_account(account_id)
    assert account.name == "La Esperanza"
    assert account.account_type == AccountType.MINE
    entry = temp_db.get_cache_entry(account_id)
    assert entry is not None and entry.is_stale is True


def test_create_duplicate_name_within_type(account_service):
    account_service.create_account(AccountType.BUYER, "Cementos")

    with pytest.raises(ConflictError):
        account_service.create_account(AccountType.BUYER, "Cementos")
    # Same name in another type is fine.
    account_service.create_account(AccountType.MINE, "Cementos")


def test_create_empty_name(account_service):
    with pytest.raises(ValidationError):
        account_service.create_account(AccountType.MINE, "   ")


def test_trucker_registers_own_name_as_alias(account_service):
    trucker_id = account_service.create_account(AccountType.TRUCKER, "Juan Perez", plate="ABC123")

    assert account_service.list_driver_aliases(trucker_id) == ["juan perez"]
    assert account_service.resolve_driver(" JUAN  PEREZ").id == trucker_id
    assert account_service.resolve_driver("Juan P.") is None


def test_trucker_alias_conflicts(account_service):
    account_service.create_account(AccountType.TRUCKER, "Juan Perez")
    other = account_service.create_account(AccountType.TRUCKER, "Pedro Ruiz")

    with pytest.raises(ConflictError):
        account_service.create_account(AccountType.TRUCKER, "juan perez")
    with pytest.raises(ConflictError):
        account_service.add_driver_alias(other, "JUAN PEREZ")


def test_add_driver_alias_requires_trucker(account_service):
    mine = account_service.create_account(AccountType.MINE, "Juan Perez")

    with pytest.raises(NotFoundError):
        account_service.add_driver_alias(mine, "J. Perez")


def test_add_driver_alias_to_unresolved_name_refreshes_balance(temp_db, account_service, trip_service, balance_cache):
    trucker = account_service.create_account(AccountType.TRUCKER, "Juan Perez")
    trip_id = trip_service.create_trip(
        load_date=date(2024, 3, 1),
        unload_date=date(2024, 3, 2),
        driver_name="Juan Perez",
        plate="ABC123",
        mine_name="La Esperanza",
        buyer_name="Cementos",
        weight=Decimal("10"),
        purchase_unit_price=Decimal("1"),
        sale_unit_price=Decimal("2"),
        freight_unit_price=Decimal("100"),
    )
    # Re-spell the trip's driver to a name nobody owns yet, then claim it.
    temp_db.update_trip(trip_id, driver_name="Juanito", driver_key="juanito")
    balance_cache.refresh([trucker])
    assert balance_cache.read(trucker).balance == Decimal("0.00")

    account_service.add_driver_alias(trucker, "Juanito")

    assert balance_cache.read(trucker).balance == Decimal("1000.00")


def test_find_or_create(account_service):
    first = account_service.find_or_create(AccountType.MINE, "El Filo")
    assert account_service.find_or_create(AccountType.MINE, "El Filo") == first
    trucker = account_service.find_or_create(AccountType.TRUCKER, "Juan Perez")
    assert account_service.find_or_create(AccountType.TRUCKER, "juan  PEREZ") == trucker


def test_rename_account(account_service):
    mine = account_service.create_account(AccountType.MINE, "El Filo")
    account_service.create_account(AccountType.MINE, "La Esperanza")

    account_service.rename_account(mine, "El Filo II")
    assert account_service.get_account(mine).name == "El Filo II"

    with pytest.raises(ConflictError):
        account_service.rename_account(mine, "La Esperanza")
    with pytest.raises(NotFoundError):
        account_service.rename_account(999, "Nada")


def test_rename_trucker_keeps_old_alias(account_service):
    trucker = account_service.create_account(AccountType.TRUCKER, "Juan Perez")

    account_service.rename_account(trucker, "Juan Perez Gomez")

    assert account_service.list_driver_aliases(trucker) == ["juan perez", "juan perez gomez"]


def test_account_create_and_list_cli(cli_runner, temp_db):
    result = cli_runner.invoke(
        cli, ["--db-path", temp_db.database_path, "account", "create", "trucker", "Juan Perez", "--plate", "ABC123"]
    )
    assert result.exit_code == 0
    assert "Created trucker 'Juan Perez'" in result.output
    assert "ID:" in result.output

    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "account", "list", "--type", "trucker"])
    assert result.exit_code == 0
    assert "Juan Perez" in result.output
    assert "ABC123" in result.output


def test_account_list_empty_cli(cli_runner, temp_db):
    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "account", "list"])

    assert result.exit_code == 0
    assert "No accounts found" in result.output


def test_account_create_duplicate_cli(cli_runner, temp_db):
    args = ["--db-path", temp_db.database_path, "account", "create", "mine", "El Filo"]
    assert cli_runner.invoke(cli, args).exit_code == 0

    result = cli_runner.invoke(cli, args)
    assert result.exit_code == 1
    assert "already exists" in result.output


def test_account_rename_and_alias_cli(cli_runner, temp_db):
    db_args = ["--db-path", temp_db.database_path]
    cli_runner.invoke(cli, db_args + ["account", "create", "trucker", "Juan Perez"])

    result = cli_runner.invoke(cli, db_args + ["account", "alias", "Juan Perez", "J. Perez"])
    assert result.exit_code == 0
    assert "'j. perez' now resolves" in result.output

    result = cli_runner.invoke(cli, db_args + ["account", "rename", "trucker", "j. perez", "Juan P. Gomez"])
    assert result.exit_code == 0

    result = cli_runner.invoke(cli, db_args + ["account", "alias", "Juan P. Gomez"])
    assert "juan perez" in result.output
    assert "juan p. gomez" in result.output

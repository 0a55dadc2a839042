"""Integration tests for end-to-end CLI workflows."""

import logging
from datetime import datetime
from decimal import Decimal

import pytest
from haulbook.cli.main import cli
from haulbook.domain.entities import AccountType

TRIP_ARGS = [
    "--load-date", "2024-03-01",
    "--unload-date", "2024-03-02",
    "--driver", "Juan Perez",
    "--plate", "ABC123",
    "--buyer", "Cementos del Norte",
    "--weight", "30",
    "--purchase-price", "70,000",
    "--sale-price", "112,000",
    "--freight-price", "15,000",
]


@pytest.fixture
def run(cli_runner, temp_db):
    """Invoke the CLI against the temporary database."""

    def _run(*args, **kwargs):
        return cli_runner.invoke(cli, ["--db-path", temp_db.database_path, *args], **kwargs)

    return _run


def _add_trip(run, mine="La Esperanza", *extra):
    return run("trip", "add", "--mine", mine, *TRIP_ARGS, *extra)


def test_trip_and_payment_workflow(run):
    """Trip → balance → payment → balance → listing."""
    result = _add_trip(run)
    assert result.exit_code == 0, result.output
    assert "Recorded trip A1 (completed)" in result.output
    assert "Purchase: 2,100,000.00" in result.output

    result = run("balance", "show", "mine", "La Esperanza")
    assert result.exit_code == 0
    assert "Balance: 2,100,000.00" in result.output
    assert "(fresh)" in result.output

    result = run(
        "transaction", "add",
        "--from", "treasury",
        "--to", "mine:La Esperanza",
        "--amount", "500,000",
        "--concept", "Abono",
        "--date", "2024-03-05",
    )
    assert result.exit_code == 0, result.output
    assert "Recorded transaction 1: 500,000.00" in result.output

    result = run("balance", "show", "mine", "La Esperanza")
    assert "Balance: 1,600,000.00" in result.output

    result = run("balance", "show", "trucker", "juan perez")
    assert "Balance: 450,000.00" in result.output

    result = run("balance", "list", "buyer")
    assert result.exit_code == 0
    assert "Cementos del Norte" in result.output
    assert "-3,360,000.00" in result.output

    result = run("trip", "list", "--trucker", "Juan Perez")
    assert result.exit_code == 0
    assert "A1" in result.output

    result = run("transaction", "list", "mine:La Esperanza")
    assert result.exit_code == 0
    assert "Abono" in result.output
    assert "treasury:treasury" in result.output


def test_delete_trip_and_transaction(run):
    _add_trip(run)
    run("transaction", "add", "--from", "mine:La Esperanza", "--to", "bank", "--amount", "100", "--concept", "Ajuste")

    result = run("trip", "delete", "A1", "--yes")
    assert result.exit_code == 0
    assert "Deleted trip A1" in result.output
    assert "No trips found." in run("trip", "list").output

    result = run("transaction", "delete", "1", "--yes")
    assert result.exit_code == 0
    assert "No transactions found." in run("transaction", "list", "mine:La Esperanza").output

    result = run("balance", "show", "mine", "La Esperanza")
    assert "Balance: 0.00" in result.output


def test_delete_asks_for_confirmation(run):
    _add_trip(run)

    result = run("trip", "delete", "A1", input="n\n")

    assert "Deletion cancelled." in result.output
    assert "A1" in run("trip", "list").output


def test_merge_history_and_revert(run):
    _add_trip(run)
    _add_trip(run, "Esperanza", "--id", "B7")

    result = run("fusion", "merge", "mine", "Esperanza", "La Esperanza", "--user", "ana", "--yes")
    assert result.exit_code == 0, result.output
    assert "0 transaction(s), 1 trip(s) moved" in result.output
    assert "Backup ID: 1" in result.output
    assert "Balance: 4,200,000.00" in run("balance", "show", "mine", "La Esperanza").output

    result = run("fusion", "history", "--user", "ana")
    assert "'Esperanza' -> 'La Esperanza'" in result.output
    assert "[active]" in result.output
    assert "No merges found." in run("fusion", "history", "--user", "someone-else").output

    result = run("fusion", "revert", "1")
    assert result.exit_code == 0, result.output
    assert "Restored 'Esperanza': 0 transaction(s), 1 trip(s)" in result.output
    assert "Balance: 2,100,000.00" in run("balance", "show", "mine", "Esperanza").output
    assert "reverted" in run("fusion", "history").output

    result = run("fusion", "revert", "1")
    assert result.exit_code == 1
    assert "Error:" in result.output


def test_merge_into_itself_fails(run):
    run("account", "create", "buyer", "Cementos")

    result = run("fusion", "merge", "buyer", "Cementos", "Cementos", "--yes")

    assert result.exit_code == 1
    assert "Error:" in result.output


def test_stale_validate_recalculate(run, temp_db):
    run("account", "create", "buyer", "Cementos")

    result = run("balance", "stale")
    assert "Cementos" in result.output

    result = run("balance", "recalculate", "--type", "buyer")
    assert result.exit_code == 0
    assert "Recalculated 1 balance(s)" in result.output
    assert "All cached balances are up to date." in run("balance", "stale").output

    result = run("balance", "validate")
    assert result.exit_code == 0
    assert "0 mismatch(es)" in result.output

    buyer = temp_db.get_account_by_name(AccountType.BUYER, "Cementos")
    temp_db.write_cached_balance(buyer.id, Decimal("99.00"), datetime(2024, 1, 1))

    result = run("balance", "validate", "--type", "buyer")
    assert result.exit_code == 1
    assert "MISMATCH buyer" in result.output
    assert "1 mismatch(es)" in result.output

    run("balance", "recalculate")
    assert run("balance", "validate").exit_code == 0


@pytest.mark.parametrize(
    "args, message",
    [
        (["balance", "show", "mine", "Nowhere"], "Mine 'Nowhere' not found"),
        (["balance", "show", "buyer", "42"], "Buyer ID 42 not found"),
        (["transaction", "list", "bogus:1"], "Unknown party type"),
        (["transaction", "add", "--from", "bank", "--to", "treasury", "--amount", "abc", "--concept", "x"],
         "Invalid amount format"),
        (["transaction", "add", "--from", "bank", "--to", "bank", "--amount", "10", "--concept", "x"], "Error:"),
        (["trip", "delete", "Z99", "--yes"], "Trip 'Z99' not found"),
        (["fusion", "revert", "5"], "Error:"),
    ],
)
def test_errors_exit_with_status_one(run, args, message):
    result = run(*args)

    assert result.exit_code == 1
    assert message in result.output


def test_duplicate_trip_id(run):
    _add_trip(run, "La Esperanza", "--id", "C3")

    result = _add_trip(run, "La Esperanza", "--id", "C3")

    assert result.exit_code == 1
    assert "Error:" in result.output


def test_verbose_logs_progress(run, caplog):
    run("account", "create", "mine", "La Esperanza")

    result = run("--verbose", "balance", "recalculate")

    assert result.exit_code == 0
    assert "Recalculated 1 balance(s)" in caplog.text

    run("balance", "stale")
    assert logging.getLogger("haulbook").level == logging.WARNING

"""Tests for the staleness-tracked balance cache."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from haulbook.domain.entities import AccountType, PartyType
from haulbook.domain.errors import NotFoundError, StaleBalanceDetectedError


@pytest.fixture
def mine_id(temp_db, make_trip):
    make_trip()
    return temp_db.get_account_by_name(AccountType.MINE, "La Esperanza").id


def test_new_account_reads_as_stale_zero(account_service, balance_cache):
    account_id = account_service.create_account(AccountType.MINE, "Nueva")

    reading = balance_cache.read(account_id)
    assert reading.balance == Decimal("0.00")
    assert reading.is_stale is True
    assert reading.last_recomputed_at is None


def test_writes_leave_cache_fresh_and_coherent(balance_cache, calculator, mine_id):
    reading = balance_cache.read(mine_id)

    assert reading.is_stale is False
    assert reading.last_recomputed_at is not None
    assert reading.balance == calculator.compute_balance(AccountType.MINE, mine_id)


def test_mark_stale_keeps_cached_value(balance_cache, mine_id):
    before = balance_cache.read(mine_id)

    balance_cache.mark_stale(mine_id)
    balance_cache.mark_stale(mine_id)

    after = balance_cache.read(mine_id)
    assert after.is_stale is True
    assert after.balance == before.balance


def test_recompute_clears_stale_flag(balance_cache, mine_id):
    balance_cache.mark_stale(mine_id)

    entry = balance_cache.recompute(mine_id)
    assert entry.is_stale is False
    assert entry.cached_balance == Decimal("2100000.00")
    assert balance_cache.read(mine_id).is_stale is False


def test_get_stale_accounts_lists_and_warns(balance_cache, account_service, mine_id, caplog):
    assert balance_cache.get_stale_accounts(AccountType.MINE) == []

    balance_cache.mark_stale(mine_id)
    with caplog.at_level("WARNING", logger="haulbook"):
        stale = balance_cache.get_stale_accounts()

    assert [acc.id for acc in stale] == [mine_id]
    assert "stale" in caplog.text


def test_validate_reports_mismatch_without_fixing(temp_db, balance_cache, mine_id):
    # Simulate drift: write a wrong value straight to the cache.
    temp_db.write_cached_balance(mine_id, Decimal("1.00"), datetime(2024, 1, 1))

    validation = balance_cache.validate(mine_id)

    assert validation.valid is False
    assert validation.cached == Decimal("1.00")
    assert validation.computed == Decimal("2100000.00")
    assert validation.difference == Decimal("2099999.00")
    # Not corrected.
    assert balance_cache.read(mine_id).balance == Decimal("1.00")


def test_validate_tolerates_one_cent(temp_db, balance_cache, mine_id):
    temp_db.write_cached_balance(mine_id, Decimal("2100000.01"), datetime(2024, 1, 1))

    assert balance_cache.validate(mine_id).valid is True


def test_assert_valid_raises_on_mismatch(temp_db, balance_cache, mine_id):
    temp_db.write_cached_balance(mine_id, Decimal("5.00"), datetime(2024, 1, 1))

    with pytest.raises(StaleBalanceDetectedError):
        balance_cache.assert_valid(mine_id)


def test_recalculate_all_fixes_drift(temp_db, balance_cache, mine_id):
    temp_db.write_cached_balance(mine_id, Decimal("5.00"), datetime(2024, 1, 1))

    count = balance_cache.recalculate_all()

    # Mine, buyer and trucker created by the trip.
    assert count == 3
    assert all(v.valid for v in balance_cache.validate_all())


def test_refresh_reraises_recompute_failure(balance_cache, mine_id, monkeypatch, caplog):
    def broken(account_type, account_id):
        raise RuntimeError("boom")

    monkeypatch.setattr(balance_cache.calculator, "compute_balance", broken)

    with caplog.at_level("ERROR", logger="haulbook"):
        with pytest.raises(RuntimeError):
            balance_cache.refresh([mine_id])

    assert balance_cache.read(mine_id).is_stale is True
    assert "Failed to recompute" in caplog.text


def test_cache_coherent_after_transaction_edits(balance_cache, calculator, transaction_service, mine_id):
    txn_id = transaction_service.create_transaction(
        PartyType.MINE, mine_id, PartyType.BANK, "main", "Pago", Decimal("500000"), date(2024, 3, 5)
    )
    transaction_service.update_transaction(txn_id, amount=Decimal("250000"))
    assert balance_cache.read(mine_id).balance == Decimal("2350000.00")

    transaction_service.delete_transaction(txn_id)
    reading = balance_cache.read(mine_id)
    assert reading.balance == calculator.compute_balance(AccountType.MINE, mine_id) == Decimal("2100000.00")
    assert reading.is_stale is False


def test_read_unknown_account_raises(balance_cache):
    with pytest.raises(NotFoundError):
        balance_cache.read(12345)

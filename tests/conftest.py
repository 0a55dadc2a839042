"""Shared pytest fixtures for haulbook tests."""

import tempfile
import os
from datetime import date
from decimal import Decimal
import pytest

from haulbook.database.factories import create_sqlite_database
from haulbook.domain.account import AccountService
from haulbook.domain.balance import BalanceCalculator
from haulbook.domain.balance_cache import BalanceCache
from haulbook.domain.balance_report import BalanceReportService
from haulbook.domain.events import ChangeNotifier
from haulbook.domain.fusion import FusionService
from haulbook.domain.transaction import TransactionService
from haulbook.domain.trip import TripService


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    # Create database
    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def events():
    """List collecting every published change event."""
    return []


@pytest.fixture
def notifier(events):
    """ChangeNotifier that records events into the ``events`` fixture."""
    return ChangeNotifier([events.append])


@pytest.fixture
def calculator(temp_db):
    return BalanceCalculator(temp_db)


@pytest.fixture
def balance_cache(temp_db, calculator):
    return BalanceCache(temp_db, calculator)


@pytest.fixture
def account_service(temp_db, balance_cache, notifier):
    """Create an AccountService with a temporary database."""
    return AccountService(temp_db, balance_cache, notifier)


@pytest.fixture
def trip_service(temp_db, balance_cache, notifier, account_service):
    """Create a TripService with a temporary database."""
    return TripService(temp_db, balance_cache, notifier, account_service)


@pytest.fixture
def transaction_service(temp_db, balance_cache, notifier):
    """Create a TransactionService with a temporary database."""
    return TransactionService(temp_db, balance_cache, notifier)


@pytest.fixture
def fusion_service(temp_db, balance_cache, notifier):
    """Create a FusionService with a temporary database."""
    return FusionService(temp_db, balance_cache, notifier)


@pytest.fixture
def report_service(temp_db):
    return BalanceReportService(temp_db)


@pytest.fixture
def make_trip(trip_service):
    """Factory recording a completed trip.

    Defaults: 30 t bought at 70,000 and sold at 112,000 per ton, freight
    15,000 per ton paid by the company. That gives a purchase total of
    2,100,000, an amount to remit of 3,360,000 and freight of 450,000.
    """

    def _make_trip(**overrides):
        fields = {
            "load_date": date(2024, 3, 1),
            "unload_date": date(2024, 3, 2),
            "driver_name": "Juan Perez",
            "plate": "ABC123",
            "mine_name": "La Esperanza",
            "buyer_name": "Cementos del Norte",
            "weight": Decimal("30"),
            "purchase_unit_price": Decimal("70000"),
            "sale_unit_price": Decimal("112000"),
            "freight_unit_price": Decimal("15000"),
        }
        fields.update(overrides)
        trip_id = trip_service.create_trip(**fields)
        return trip_service.get_trip(trip_id)

    return _make_trip


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()

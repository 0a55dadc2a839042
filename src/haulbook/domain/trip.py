"""Trip domain service."""

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from haulbook.database.base import Database
from haulbook.domain.account import AccountService
from haulbook.domain.balance_cache import BalanceCache
from haulbook.domain.entities import AccountType, FreightPayer, Trip as TripEntity, TripStatus
from haulbook.domain.errors import ConflictError, NotFoundError, ValidationError, trip_not_found
from haulbook.domain.events import ChangeNotifier, ChangeType
from haulbook.utils.driver_names import normalize_driver_name
from haulbook.utils.trip_ids import next_trip_id

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

_AMOUNT_FIELDS = (
    "weight",
    "purchase_unit_price",
    "sale_unit_price",
    "freight_unit_price",
    "other_freight_cost",
)
_UPDATABLE_FIELDS = frozenset(
    _AMOUNT_FIELDS
    + (
        "load_date",
        "unload_date",
        "driver_name",
        "vehicle_type",
        "plate",
        "mine_id",
        "buyer_id",
        "freight_payer",
        "status",
        "hidden",
        "receipt",
        "notes",
    )
)


def compute_trip_totals(
    weight: Decimal,
    purchase_unit_price: Decimal,
    sale_unit_price: Decimal,
    freight_unit_price: Decimal,
    other_freight_cost: Decimal,
    freight_payer: str,
) -> dict[str, Decimal]:
    """Derive the money totals of a trip from its weight and unit prices.

    When the buyer pays the trucker directly, the freight is deducted from
    what the buyer remits to the company.
    """
    total_sale = (weight * sale_unit_price).quantize(CENT)
    total_purchase = (weight * purchase_unit_price).quantize(CENT)
    total_freight = (weight * freight_unit_price).quantize(CENT)
    profit = (total_sale - total_purchase - total_freight - other_freight_cost).quantize(CENT)
    buyer_pays = FreightPayer(freight_payer) == FreightPayer.BUYER
    amount_to_remit = total_sale - total_freight if buyer_pays else total_sale
    return {
        "total_sale": total_sale,
        "total_purchase": total_purchase,
        "total_freight": total_freight,
        "amount_to_remit": amount_to_remit,
        "profit": profit,
    }


def trip_accounts(db: Database, trip: TripEntity) -> list[tuple[AccountType, int]]:
    """Accounts whose balance depends on the trip as it currently stands."""
    touched = []
    if trip.mine_id is not None:
        touched.append((AccountType.MINE, trip.mine_id))
    if trip.buyer_id is not None:
        touched.append((AccountType.BUYER, trip.buyer_id))
    trucker_id = db.resolve_driver_key(trip.driver_key)
    if trucker_id is not None:
        touched.append((AccountType.TRUCKER, trucker_id))
    return touched


class TripService:
    """Service for recording trips and keeping the touched balances current."""

    def __init__(
        self,
        db: Database,
        cache: Optional[BalanceCache] = None,
        notifier: Optional[ChangeNotifier] = None,
        accounts: Optional[AccountService] = None,
    ):
        """Initialize trip service.

        Args:
            db: Database instance
            cache: Balance cache to refresh after writes
            notifier: Receives change events after writes
            accounts: Account service used to auto-create counterparties by name
        """
        self.db = db
        self.cache = cache or BalanceCache(db)
        self.notifier = notifier or ChangeNotifier()
        self.accounts = accounts or AccountService(db, self.cache, self.notifier)

    def create_trip(
        self,
        load_date: date,
        driver_name: str,
        plate: str,
        weight: Decimal,
        purchase_unit_price: Decimal,
        sale_unit_price: Decimal,
        freight_unit_price: Decimal,
        trip_id: Optional[str] = None,
        unload_date: Optional[date] = None,
        vehicle_type: str = "dump truck",
        mine_id: Optional[int] = None,
        mine_name: Optional[str] = None,
        buyer_id: Optional[int] = None,
        buyer_name: Optional[str] = None,
        other_freight_cost: Decimal = Decimal("0"),
        freight_payer: FreightPayer | str = FreightPayer.COMPANY,
        status: Optional[TripStatus] = None,
        receipt: Optional[str] = None,
        notes: Optional[str] = None,
        owner_user_id: Optional[str] = None,
    ) -> str:
        """Record a trip.

        Mines, buyers and truckers given only by name are looked up or created.
        Status defaults to completed when an unload date is given, else pending.

        Returns:
            Trip ID (generated as the first free A1..Z100 when not given)

        Raises:
            ValidationError: If amounts are negative or dates are out of order
            NotFoundError: If a mine or buyer ID does not exist
            ConflictError: If the trip ID is already used
        """
        if not (driver_name or "").strip():
            raise ValidationError("Driver name cannot be empty")
        fields: dict[str, Any] = {
            "weight": Decimal(weight),
            "purchase_unit_price": Decimal(purchase_unit_price),
            "sale_unit_price": Decimal(sale_unit_price),
            "freight_unit_price": Decimal(freight_unit_price),
            "other_freight_cost": Decimal(other_freight_cost),
        }
        self._validate_amounts(fields)
        self._validate_dates(load_date, unload_date)
        freight_payer = FreightPayer(freight_payer).value

        if mine_id is None and mine_name:
            mine_id = self.accounts.find_or_create(AccountType.MINE, mine_name, owner_user_id)
        elif mine_id is not None:
            self.accounts.require_account(mine_id, AccountType.MINE)
        if buyer_id is None and buyer_name:
            buyer_id = self.accounts.find_or_create(AccountType.BUYER, buyer_name, owner_user_id)
        elif buyer_id is not None:
            self.accounts.require_account(buyer_id, AccountType.BUYER)
        self.accounts.find_or_create(AccountType.TRUCKER, driver_name, owner_user_id)

        if trip_id is None:
            trip_id = next_trip_id(self.db.list_trip_ids())
        elif self.db.get_trip(trip_id) is not None:
            raise ConflictError(f"Trip '{trip_id}' already exists")

        if status is None:
            status = TripStatus.COMPLETED if unload_date is not None else TripStatus.PENDING

        fields.update(compute_trip_totals(freight_payer=freight_payer, **fields))
        self.db.create_trip(
            trip_id,
            load_date=load_date,
            unload_date=unload_date,
            driver_name=driver_name.strip(),
            driver_key=normalize_driver_name(driver_name),
            vehicle_type=vehicle_type,
            plate=plate,
            mine_id=mine_id,
            buyer_id=buyer_id,
            freight_payer=freight_payer,
            status=TripStatus(status).value,
            receipt=receipt,
            notes=notes,
            owner_user_id=owner_user_id,
            **fields,
        )

        touched = self._touched_accounts(self.db.get_trip(trip_id))
        self._refresh(touched)
        self.notifier.notify(ChangeType.CREATED, touched)
        return trip_id

    def get_trip(self, trip_id: str) -> Optional[TripEntity]:
        """Get trip by ID.

        Args:
            trip_id: Trip ID

        Returns:
            Trip entity or None if not found
        """
        return self.db.get_trip(trip_id)

    def list_trips(
        self,
        mine_id: Optional[int] = None,
        buyer_id: Optional[int] = None,
        trucker_id: Optional[int] = None,
    ) -> list[TripEntity]:
        """List trips, optionally for one mine, buyer or trucker."""
        driver_keys = None
        if trucker_id is not None:
            driver_keys = self.db.list_driver_aliases(trucker_id)
        return self.db.list_trips(mine_id=mine_id, buyer_id=buyer_id, driver_keys=driver_keys)

    def update_trip(self, trip_id: str, **changes: Any) -> None:
        """Update trip fields and recompute its totals.

        Balances of the accounts the trip referenced before and after the
        edit are refreshed.

        Raises:
            NotFoundError: If the trip or a new mine/buyer does not exist
            ValidationError: If a field is unknown or a value is invalid
        """
        before = self._require_trip(trip_id)
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update trip field(s): {', '.join(sorted(unknown))}")

        for name in _AMOUNT_FIELDS:
            if name in changes:
                changes[name] = Decimal(changes[name])
        self._validate_amounts({name: changes[name] for name in _AMOUNT_FIELDS if name in changes})
        self._validate_dates(changes.get("load_date", before.load_date), changes.get("unload_date", before.unload_date))

        if changes.get("mine_id") is not None:
            self.accounts.require_account(changes["mine_id"], AccountType.MINE)
        if changes.get("buyer_id") is not None:
            self.accounts.require_account(changes["buyer_id"], AccountType.BUYER)
        if "driver_name" in changes:
            if not (changes["driver_name"] or "").strip():
                raise ValidationError("Driver name cannot be empty")
            self.accounts.find_or_create(AccountType.TRUCKER, changes["driver_name"], before.owner_user_id)
            changes["driver_name"] = changes["driver_name"].strip()
            changes["driver_key"] = normalize_driver_name(changes["driver_name"])
        if "freight_payer" in changes:
            changes["freight_payer"] = FreightPayer(changes["freight_payer"]).value
        if "status" in changes:
            changes["status"] = TripStatus(changes["status"]).value

        if any(name in changes for name in _AMOUNT_FIELDS + ("freight_payer",)):
            amounts = {name: changes.get(name, getattr(before, name)) for name in _AMOUNT_FIELDS}
            payer = changes.get("freight_payer", before.freight_payer)
            if payer not in (p.value for p in FreightPayer):
                # Imported trips may carry legacy payer spellings.
                payer = FreightPayer.BUYER.value if before.buyer_pays_freight else FreightPayer.COMPANY.value
            changes.update(compute_trip_totals(freight_payer=payer, **amounts))

        touched_before = self._touched_accounts(before)
        self.db.update_trip(trip_id, **changes)
        touched = list(dict.fromkeys(touched_before + self._touched_accounts(self.db.get_trip(trip_id))))
        self._refresh(touched)
        self.notifier.notify(ChangeType.UPDATED, touched)

    def set_trip_hidden(self, trip_id: str, hidden: bool) -> None:
        """Hide or unhide a trip. Hidden trips do not count toward balances."""
        self.update_trip(trip_id, hidden=hidden)

    def delete_trip(self, trip_id: str) -> None:
        """Delete a trip.

        Raises:
            NotFoundError: If trip not found
        """
        trip = self._require_trip(trip_id)
        touched = self._touched_accounts(trip)
        self.db.delete_trip(trip_id)
        self._refresh(touched)
        self.notifier.notify(ChangeType.DELETED, touched)

    def _require_trip(self, trip_id: str) -> TripEntity:
        trip = self.db.get_trip(trip_id)
        if trip is None:
            raise NotFoundError(trip_not_found(trip_id))
        return trip

    def _touched_accounts(self, trip: TripEntity) -> list[tuple[AccountType, int]]:
        return trip_accounts(self.db, trip)

    def _refresh(self, touched: list[tuple[AccountType, int]]) -> None:
        self.cache.refresh(account_id for _, account_id in touched)

    @staticmethod
    def _validate_amounts(amounts: dict[str, Decimal]) -> None:
        for name, value in amounts.items():
            if not value.is_finite() or value < 0:
                raise ValidationError(f"{name.replace('_', ' ').capitalize()} must be a non-negative amount")

    @staticmethod
    def _validate_dates(load_date: date, unload_date: Optional[date]) -> None:
        if unload_date is not None and unload_date < load_date:
            raise ValidationError("Unload date cannot be before load date")

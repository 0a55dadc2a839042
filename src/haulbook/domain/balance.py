"""Balance calculation for mines, buyers, truckers and third parties.

A balance is derived from scratch from the trips and manual transactions that
reference the account. Positive means the company owes the account.

- Mine:        + purchase total of its trips, + money it sent, - money it received
- Buyer:       - amount to remit of its trips, + money it sent, - money it received
- Trucker:     + company-paid freight of its unloaded trips, + sent, - received
- Third party: + sent, - received

Only completed, non-hidden trips and completed, non-system-generated
transactions count.
"""

import logging
from decimal import Decimal
from typing import Iterable

from haulbook.database.base import Database
from haulbook.domain.entities import AccountType, PartyType, Transaction, Trip
from haulbook.domain.errors import NotFoundError, account_not_found
from haulbook.utils.amount_parser import parse_amount_lenient

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def quantize(amount: Decimal) -> Decimal:
    """Round an amount to cents."""
    return Decimal(amount).quantize(CENT)


def trip_income(account_type: AccountType, trip: Trip) -> Decimal:
    """Amount a single trip adds to (or, for buyers, subtracts from) an account."""
    if not trip.counts_toward_balance:
        return Decimal("0")
    if account_type == AccountType.MINE:
        return parse_amount_lenient(trip.total_purchase)
    if account_type == AccountType.BUYER:
        return -parse_amount_lenient(trip.amount_to_remit)
    if account_type == AccountType.TRUCKER:
        if trip.unload_date is None or trip.buyer_pays_freight:
            return Decimal("0")
        return parse_amount_lenient(trip.total_freight)
    return Decimal("0")


def transaction_effect(account_type: AccountType, account_id: int, txn: Transaction) -> Decimal:
    """Signed effect of a manual transaction on an account.

    Money the account sent adds to its balance, money it received subtracts.
    """
    if not txn.counts_toward_balance:
        return Decimal("0")
    party_type = PartyType(account_type.value)
    party_id = str(account_id)
    amount = parse_amount_lenient(txn.amount)
    is_origin = txn.from_party_type == party_type and txn.from_party_id == party_id
    is_destination = txn.to_party_type == party_type and txn.to_party_id == party_id

    if is_origin and is_destination:
        # Only a fusion of the two sides can produce this; it nets out.
        return Decimal("0")
    if is_origin:
        return amount
    if is_destination:
        return -amount
    if account_type == AccountType.MINE and txn.to_party_type.is_treasury:
        return amount
    return Decimal("0")


class BalanceCalculator:
    """Computes account balances from the ledger."""

    def __init__(self, db: Database):
        """Initialize balance calculator.

        Args:
            db: Database instance
        """
        self.db = db

    def compute_balance(self, account_type: AccountType, account_id: int) -> Decimal:
        """Compute the balance of one account from scratch.

        Args:
            account_type: Type of the account
            account_id: Account ID

        Returns:
            Balance rounded to cents

        Raises:
            NotFoundError: If no account of that type has this ID
            DataLayerUnavailableError: If the database cannot be reached
        """
        account_type = AccountType(account_type)
        account = self.db.get_account(account_id, account_type)
        if account is None:
            raise NotFoundError(account_not_found(account_type.value, account_id))

        balance = sum(
            (trip_income(account_type, trip) for trip in self._trips_for(account_type, account_id)),
            Decimal("0"),
        )
        transactions = self.db.list_transactions_for_party(PartyType(account_type.value), str(account_id))
        balance += sum(
            (transaction_effect(account_type, account_id, txn) for txn in transactions),
            Decimal("0"),
        )
        return quantize(balance)

    def _trips_for(self, account_type: AccountType, account_id: int) -> Iterable[Trip]:
        if account_type == AccountType.MINE:
            return self.db.list_trips(mine_id=account_id)
        if account_type == AccountType.BUYER:
            return self.db.list_trips(buyer_id=account_id)
        if account_type == AccountType.TRUCKER:
            return self.db.list_trips(driver_keys=self.db.list_driver_aliases(account_id))
        return []

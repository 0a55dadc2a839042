"""Aggregate balance report across all accounts of a type."""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from haulbook.database.base import Database
from haulbook.domain.balance import quantize
from haulbook.domain.entities import AccountBalanceSummary, AccountType, PartyFlow, PartyType, TripStats
from haulbook.utils.date_parser import previous_month_range

logger = logging.getLogger(__name__)

# Sign applied to trip income per account type.
_INCOME_SIGN = {
    AccountType.MINE: Decimal("1"),
    AccountType.BUYER: Decimal("-1"),
    AccountType.TRUCKER: Decimal("1"),
    AccountType.THIRD_PARTY: Decimal("0"),
}


class BalanceReportService:
    """Builds the per-account balance table with a fixed number of queries."""

    def __init__(self, db: Database):
        """Initialize balance report service.

        Args:
            db: Database instance
        """
        self.db = db

    def compute_all_balances(
        self, account_type: AccountType, today: Optional[date] = None
    ) -> dict[int, AccountBalanceSummary]:
        """Balance and trip counts for every account of a type.

        Fresh cached balances are used as they are. Stale or uncached accounts
        are computed together from one trip aggregate and one transaction
        aggregate, so the cost does not grow with the number of accounts.

        Args:
            account_type: Type of accounts to report on
            today: Reference date for the "last month" count (defaults to today)

        Returns:
            Mapping of account ID to its summary
        """
        account_type = AccountType(account_type)
        accounts = self.db.list_accounts(account_type)
        if not accounts:
            return {}

        last_month_start, last_month_end = previous_month_range(today)
        stats = self.db.get_trip_stats(account_type, last_month_start, last_month_end)
        cache = self.db.list_cache_entries(account_type)

        stale_ids = [
            account.id for account in accounts if account.id not in cache or cache[account.id].is_stale
        ]
        flows = self.db.get_party_flows(PartyType(account_type.value), stale_ids) if stale_ids else {}
        if stale_ids:
            logger.debug("Computing %d uncached %s balance(s) in aggregate", len(stale_ids), account_type.value)

        summaries: dict[int, AccountBalanceSummary] = {}
        for account in accounts:
            account_stats = stats.get(account.id, TripStats())
            if account.id in cache and not cache[account.id].is_stale:
                balance = quantize(cache[account.id].cached_balance)
            else:
                flow = flows.get(account.id, PartyFlow())
                balance = quantize(
                    _INCOME_SIGN[account_type] * account_stats.income + flow.as_origin - flow.as_destination
                )
            summaries[account.id] = AccountBalanceSummary(
                balance=balance,
                trip_count=account_stats.trip_count,
                trip_count_last_month=account_stats.trip_count_last_month,
            )
        return summaries

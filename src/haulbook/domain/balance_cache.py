"""Balance cache with staleness tracking."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from haulbook.database.base import Database
from haulbook.domain.balance import BalanceCalculator, quantize
from haulbook.domain.entities import (
    Account,
    AccountType,
    BalanceCacheEntry,
    BalanceReading,
    BalanceValidation,
)
from haulbook.domain.errors import (
    NotFoundError,
    StaleBalanceDetectedError,
    account_not_found,
    stale_balance_detected,
)

logger = logging.getLogger(__name__)

TOLERANCE = Decimal("0.01")


class BalanceCache:
    """Keeps cached balances in step with the ledger.

    Writers call ``refresh`` for every account a write touches. Readers use
    ``read``, which reports whether the value may be outdated.
    """

    def __init__(self, db: Database, calculator: Optional[BalanceCalculator] = None):
        """Initialize balance cache.

        Args:
            db: Database instance
            calculator: Calculator to recompute with (defaults to one over ``db``)
        """
        self.db = db
        self.calculator = calculator or BalanceCalculator(db)

    def _get_account(self, account_id: int) -> Account:
        account = self.db.get_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found("account", account_id))
        return account

    def mark_stale(self, account_id: int) -> None:
        """Flag the cached balance as outdated. Idempotent."""
        self.db.mark_balance_stale(account_id)

    def recompute(self, account_id: int) -> BalanceCacheEntry:
        """Recompute the balance from the ledger and store it as fresh."""
        account = self._get_account(account_id)
        balance = self.calculator.compute_balance(account.account_type, account_id)
        recomputed_at = datetime.now()
        self.db.write_cached_balance(account_id, balance, recomputed_at)
        logger.debug("Recomputed %s %s (%s): %s", account.account_type.value, account_id, account.name, balance)
        return BalanceCacheEntry(
            account_id=account_id,
            cached_balance=balance,
            is_stale=False,
            last_recomputed_at=recomputed_at,
        )

    def read(self, account_id: int) -> BalanceReading:
        """Read the cached balance. A missing entry reads as zero and stale."""
        self._get_account(account_id)
        entry = self.db.get_cache_entry(account_id)
        if entry is None:
            return BalanceReading(account_id=account_id, balance=Decimal("0.00"), is_stale=True)
        return BalanceReading(
            account_id=account_id,
            balance=quantize(entry.cached_balance),
            is_stale=entry.is_stale,
            last_recomputed_at=entry.last_recomputed_at,
        )

    def refresh(self, account_ids: Iterable[int]) -> None:
        """Mark each account stale, then recompute it.

        Raises:
            Whatever the recompute raised, after logging it
        """
        for account_id in dict.fromkeys(account_ids):
            self.mark_stale(account_id)
            try:
                self.recompute(account_id)
            except Exception:
                logger.error("Failed to recompute balance for account %s; it stays stale", account_id)
                raise

    def get_stale_accounts(self, account_type: Optional[AccountType] = None) -> list[Account]:
        """List accounts whose cached balance is stale or missing."""
        stale = self.db.list_stale_accounts(account_type)
        if stale:
            logger.warning(
                "%d account(s) have stale balances: %s",
                len(stale),
                ", ".join(f"{acc.account_type.value} {acc.id}" for acc in stale),
            )
        return stale

    def validate(self, account_id: int) -> BalanceValidation:
        """Compare the cached balance with a fresh computation.

        A mismatch is logged and reported, never corrected here.
        """
        account = self._get_account(account_id)
        entry = self.db.get_cache_entry(account_id)
        cached = quantize(entry.cached_balance) if entry is not None else Decimal("0.00")
        computed = self.calculator.compute_balance(account.account_type, account_id)
        difference = quantize(computed - cached)
        valid = abs(difference) <= TOLERANCE
        if not valid:
            logger.warning(
                "Balance mismatch for %s %s (%s): cached %s, computed %s",
                account.account_type.value,
                account_id,
                account.name,
                cached,
                computed,
            )
        return BalanceValidation(
            account_id=account_id,
            account_type=account.account_type,
            cached=cached,
            computed=computed,
            difference=difference,
            valid=valid,
        )

    def validate_all(self, account_type: Optional[AccountType] = None) -> list[BalanceValidation]:
        """Validate every account, optionally of one type."""
        return [self.validate(account.id) for account in self.db.list_accounts(account_type)]

    def assert_valid(self, account_id: int) -> BalanceValidation:
        """Validate, raising StaleBalanceDetectedError on a mismatch."""
        validation = self.validate(account_id)
        if not validation.valid:
            raise StaleBalanceDetectedError(
                stale_balance_detected(account_id, validation.cached, validation.computed)
            )
        return validation

    def recalculate_all(self, account_type: Optional[AccountType] = None) -> int:
        """Recompute every account. Returns the number of accounts recomputed."""
        accounts = self.db.list_accounts(account_type)
        for account in accounts:
            self.recompute(account.id)
        logger.info("Recalculated %d balance(s)", len(accounts))
        return len(accounts)

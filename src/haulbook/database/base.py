"""Abstract database interface."""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Optional, Any, Iterable
from datetime import date, datetime
from decimal import Decimal

# Import entities directly to avoid circular import through domain/__init__.py
from haulbook.domain.entities import (
    Account,
    AccountType,
    BalanceCacheEntry,
    FusionBackup,
    PartyFlow,
    PartyType,
    Transaction,
    Trip,
    TripStats,
)


class Database(ABC):
    """Abstract database interface for haulbook."""

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    @abstractmethod
    def atomic(self) -> AbstractContextManager[None]:
        """Run the enclosed writes as one transaction.

        Commits when the block exits normally, rolls everything back when it
        raises. Nested calls join the outer transaction.
        """
        pass

    @abstractmethod
    def savepoint(self) -> AbstractContextManager[None]:
        """Run the enclosed writes in a savepoint that can fail on its own."""
        pass

    # Account operations
    @abstractmethod
    def create_account(
        self,
        account_type: AccountType,
        name: str,
        plate: Optional[str] = None,
        owner_user_id: Optional[str] = None,
    ) -> int:
        """Create a new account. Returns account ID."""
        pass

    @abstractmethod
    def get_account(self, account_id: int, account_type: Optional[AccountType] = None) -> Optional[Account]:
        """Get account by ID, optionally requiring a type."""
        pass

    @abstractmethod
    def get_account_by_name(self, account_type: AccountType, name: str) -> Optional[Account]:
        """Get account of a type by exact name."""
        pass

    @abstractmethod
    def list_accounts(self, account_type: Optional[AccountType] = None) -> list[Account]:
        """List accounts, optionally filtered by type."""
        pass

    @abstractmethod
    def update_account_name(self, account_id: int, name: str) -> None:
        """Rename an account."""
        pass

    @abstractmethod
    def lock_accounts(self, account_ids: Iterable[int]) -> None:
        """Lock account rows for the rest of the current transaction."""
        pass

    @abstractmethod
    def snapshot_account(self, account_id: int) -> dict[str, Any]:
        """Return a JSON-safe snapshot of the account row and its cache entry."""
        pass

    @abstractmethod
    def restore_account(self, snapshot: dict[str, Any]) -> int:
        """Re-insert an account from a snapshot, keeping its ID."""
        pass

    @abstractmethod
    def delete_account(self, account_id: int) -> None:
        """Delete an account with its cache entry and aliases."""
        pass

    # Driver alias operations
    @abstractmethod
    def add_driver_alias(self, driver_key: str, trucker_id: int) -> None:
        """Map a normalized driver name to a trucker."""
        pass

    @abstractmethod
    def reassign_driver_aliases(self, from_trucker_id: int, to_trucker_id: int) -> list[str]:
        """Move every alias of one trucker to another. Returns the moved keys."""
        pass

    @abstractmethod
    def resolve_driver_key(self, driver_key: str) -> Optional[int]:
        """Return the trucker ID for a normalized driver name, or None."""
        pass

    @abstractmethod
    def list_driver_aliases(self, trucker_id: int) -> list[str]:
        """List normalized driver names of a trucker."""
        pass

    # Balance cache operations
    @abstractmethod
    def get_cache_entry(self, account_id: int) -> Optional[BalanceCacheEntry]:
        """Get the cached balance entry of an account."""
        pass

    @abstractmethod
    def list_cache_entries(self, account_type: AccountType) -> dict[int, BalanceCacheEntry]:
        """Get cache entries of every account of a type, keyed by account ID."""
        pass

    @abstractmethod
    def mark_balance_stale(self, account_id: int) -> None:
        """Flag the cached balance as outdated, creating the entry if needed."""
        pass

    @abstractmethod
    def write_cached_balance(self, account_id: int, balance: Decimal, recomputed_at: datetime) -> None:
        """Store a recomputed balance and clear the stale flag."""
        pass

    @abstractmethod
    def list_stale_accounts(self, account_type: Optional[AccountType] = None) -> list[Account]:
        """List accounts whose cache entry is stale or missing."""
        pass

    # Trip operations
    @abstractmethod
    def create_trip(self, trip_id: str, **fields: Any) -> str:
        """Create a trip. Returns trip ID."""
        pass

    @abstractmethod
    def get_trip(self, trip_id: str) -> Optional[Trip]:
        """Get trip by ID."""
        pass

    @abstractmethod
    def list_trip_ids(self, owner_user_id: Optional[str] = None) -> set[str]:
        """List every trip ID, optionally for one owner."""
        pass

    @abstractmethod
    def update_trip(self, trip_id: str, **fields: Any) -> None:
        """Update trip fields."""
        pass

    @abstractmethod
    def delete_trip(self, trip_id: str) -> None:
        """Delete a trip."""
        pass

    @abstractmethod
    def list_trips(
        self,
        mine_id: Optional[int] = None,
        buyer_id: Optional[int] = None,
        driver_keys: Optional[Iterable[str]] = None,
    ) -> list[Trip]:
        """List trips with optional account filters."""
        pass

    @abstractmethod
    def get_trip_stats(
        self, account_type: AccountType, last_month_start: date, last_month_end: date
    ) -> dict[int, TripStats]:
        """Aggregate completed trips per account of a type in one query.

        Income is total_purchase for mines, amount_to_remit for buyers and
        company-paid total_freight for truckers. Hidden trips are counted but
        excluded from income.
        """
        pass

    # Transaction operations
    @abstractmethod
    def create_transaction(
        self,
        from_party_type: PartyType,
        from_party_id: str,
        to_party_type: PartyType,
        to_party_id: str,
        concept: str,
        amount: Decimal,
        date: date,
        payment_method: str,
        status: str,
        is_system_generated: bool,
        comment: Optional[str] = None,
        owner_user_id: Optional[str] = None,
    ) -> int:
        """Create a transaction. Returns transaction ID."""
        pass

    @abstractmethod
    def get_transaction(self, transaction_id: int) -> Optional[Transaction]:
        """Get transaction by ID."""
        pass

    @abstractmethod
    def update_transaction(self, transaction_id: int, **fields: Any) -> None:
        """Update transaction fields."""
        pass

    @abstractmethod
    def delete_transaction(self, transaction_id: int) -> None:
        """Delete a transaction."""
        pass

    @abstractmethod
    def list_transactions_for_party(self, party_type: PartyType, party_id: str) -> list[Transaction]:
        """List transactions where the party is on either side."""
        pass

    @abstractmethod
    def get_party_flows(self, party_type: PartyType, party_ids: Iterable[int]) -> dict[int, PartyFlow]:
        """Sum counted transactions per party as origin and as destination in one query."""
        pass

    # Fusion backup operations
    @abstractmethod
    def create_fusion_backup(
        self,
        entity_type: AccountType,
        source_id: int,
        destination_id: int,
        source_name: str,
        destination_name: str,
        original_snapshot: dict[str, Any],
        affected_transactions: list[dict[str, Any]],
        affected_trips: list[dict[str, Any]],
        owner_user_id: Optional[str] = None,
    ) -> int:
        """Create a fusion backup. Returns backup ID."""
        pass

    @abstractmethod
    def get_fusion_backup(self, backup_id: int, owner_user_id: Optional[str] = None) -> Optional[FusionBackup]:
        """Get fusion backup by ID, optionally restricted to an owner."""
        pass

    @abstractmethod
    def lock_fusion_backup(self, backup_id: int) -> Optional[FusionBackup]:
        """Re-read a fusion backup, locking its row for the rest of the current transaction."""
        pass

    @abstractmethod
    def list_fusion_backups(self, owner_user_id: Optional[str] = None) -> list[FusionBackup]:
        """List fusion backups, newest first."""
        pass

    @abstractmethod
    def mark_fusion_reverted(self, backup_id: int, reverted_at: datetime) -> None:
        """Flag a fusion backup as reverted."""
        pass

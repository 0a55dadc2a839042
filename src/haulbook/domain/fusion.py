"""Entity fusion: merging two accounts of a type, and reverting the merge.

A fusion moves every transaction and trip of the source account onto the
destination, records enough of the prior state to undo it, and deletes the
source. Both directions run in a single database transaction.
"""

import logging
import re
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from haulbook.database.base import Database
from haulbook.domain.balance_cache import BalanceCache
from haulbook.domain.entities import (
    Account,
    AccountType,
    FusionBackup,
    FusionHistoryEntry,
    FusionOutcome,
    FusionResult,
    PartialReversal,
    PartyType,
    ReversalResult,
    Transaction,
    Trip,
)
from haulbook.domain.errors import (
    AlreadyRevertedError,
    ConflictError,
    InvalidOperationError,
    NotFoundError,
    account_not_found,
    duplicate_account_name,
    fusion_already_reverted,
    fusion_backup_not_found,
)
from haulbook.domain.events import ChangeNotifier, ChangeType
from haulbook.domain.transaction import transaction_accounts
from haulbook.domain.trip import trip_accounts
from haulbook.utils.driver_names import normalize_driver_name

logger = logging.getLogger(__name__)


def replace_name(text: str, old_name: str, new_name: str) -> str:
    """Replace every occurrence of a name in free text, ignoring case."""
    if not text or not old_name:
        return text
    return re.sub(re.escape(old_name), lambda _match: new_name, text, flags=re.IGNORECASE)


class FusionService:
    """Merges duplicate accounts and reverts merges from their backups."""

    def __init__(
        self,
        db: Database,
        cache: Optional[BalanceCache] = None,
        notifier: Optional[ChangeNotifier] = None,
    ):
        """Initialize fusion service.

        Args:
            db: Database instance
            cache: Balance cache to refresh after a fusion or reversal
            notifier: Receives fused/reverted events
        """
        self.db = db
        self.cache = cache or BalanceCache(db)
        self.notifier = notifier or ChangeNotifier()

    def fuse(
        self,
        entity_type: AccountType,
        source_id: int,
        destination_id: int,
        acting_user_id: Optional[str] = None,
    ) -> FusionResult:
        """Merge the source account into the destination.

        Args:
            entity_type: Type of both accounts
            source_id: Account that disappears
            destination_id: Account that absorbs the source
            acting_user_id: User performing the fusion, stored on the backup

        Returns:
            FusionResult with the backup ID and the number of rows moved

        Raises:
            InvalidOperationError: If source and destination are the same account
            NotFoundError: If either account does not exist with that type
        """
        entity_type = AccountType(entity_type)
        if source_id == destination_id:
            raise InvalidOperationError(f"Cannot fuse {entity_type.value} {source_id} into itself")

        try:
            with self.db.atomic():
                self.db.lock_accounts([source_id, destination_id])
                source = self._require_account(entity_type, source_id)
                destination = self._require_account(entity_type, destination_id)

                transactions = self.db.list_transactions_for_party(PartyType(entity_type.value), str(source_id))
                trips = self._trips_of(entity_type, source_id)

                backup_id = self.db.create_fusion_backup(
                    entity_type=entity_type,
                    source_id=source_id,
                    destination_id=destination_id,
                    source_name=source.name,
                    destination_name=destination.name,
                    original_snapshot={
                        "source": self.db.snapshot_account(source_id),
                        "destination": self.db.snapshot_account(destination_id),
                        "taken_at": datetime.now().isoformat(),
                    },
                    affected_transactions=[
                        self._transaction_record(entity_type, source_id, txn) for txn in transactions
                    ],
                    affected_trips=[self._trip_record(entity_type, trip) for trip in trips],
                    owner_user_id=acting_user_id,
                )

                for txn in transactions:
                    self._move_transaction(entity_type, txn, source, destination)
                for trip in trips:
                    self._move_trip(entity_type, trip, destination)

                if entity_type == AccountType.TRUCKER:
                    self.db.reassign_driver_aliases(source_id, destination_id)
                self.db.delete_account(source_id)
        except Exception:
            logger.error(
                "Fusion of %s %s into %s %s rolled back; no changes were kept",
                entity_type.value,
                source_id,
                entity_type.value,
                destination_id,
            )
            raise

        result = FusionResult(
            backup_id=backup_id,
            transactions_moved=len(transactions),
            trips_moved=len(trips),
            outcome=FusionOutcome.COMMITTED,
        )
        logger.info(
            "Fused %s '%s' (%s) into '%s' (%s): %d transaction(s), %d trip(s), backup %s",
            entity_type.value,
            source.name,
            source_id,
            destination.name,
            destination_id,
            result.transactions_moved,
            result.trips_moved,
            backup_id,
        )

        self.cache.refresh([destination_id])
        self.notifier.notify(ChangeType.FUSED, [(entity_type, source_id), (entity_type, destination_id)])
        return result

    def revert(self, backup_id: int, acting_user_id: Optional[str] = None) -> ReversalResult:
        """Undo a fusion from its backup.

        Rows deleted since the fusion are skipped, and a row that cannot be
        rewritten is skipped without aborting the rest; both are reported in
        ``ReversalResult.partial``.

        Raises:
            NotFoundError: If the backup does not exist
            AlreadyRevertedError: If the fusion was already reverted
            ConflictError: If the source account's ID or name has been taken since
        """
        backup = self.get_backup(backup_id)
        if backup.reverted:
            raise AlreadyRevertedError(fusion_already_reverted(backup_id))

        entity_type = backup.entity_type
        source_snapshot = backup.original_snapshot["source"]
        # Accounts whose balance the reversal changes: both ends of the fusion plus
        # wherever the restored rows point now (they may have moved again since).
        touched: list[tuple[AccountType, int]] = [
            (entity_type, backup.source_id),
            (entity_type, backup.destination_id),
        ]

        restored_transactions = 0
        restored_trips = 0
        missing_transactions: list[int] = []
        missing_trips: list[str] = []
        failed_transactions: list[int] = []

        with self.db.atomic():
            self.db.lock_accounts([backup.source_id, backup.destination_id])
            backup = self.db.lock_fusion_backup(backup_id)
            if backup is None:
                raise NotFoundError(fusion_backup_not_found(backup_id))
            if backup.reverted:
                raise AlreadyRevertedError(fusion_already_reverted(backup_id))
            if self.db.get_account(backup.source_id) is not None:
                raise ConflictError(f"Account {backup.source_id} already exists; cannot restore {backup.source_name}")
            if self.db.get_account_by_name(entity_type, source_snapshot["name"]) is not None:
                raise ConflictError(duplicate_account_name(entity_type.value, source_snapshot["name"]))

            try:
                self.db.restore_account(source_snapshot)
            except IntegrityError as exc:
                raise ConflictError(f"Cannot restore {backup.source_name}: {exc.orig}") from exc

            for record in backup.affected_transactions:
                txn = self.db.get_transaction(record["id"])
                if txn is None:
                    missing_transactions.append(record["id"])
                    continue
                current = transaction_accounts(txn)
                try:
                    with self.db.savepoint():
                        self._restore_transaction(backup, txn, record)
                except SQLAlchemyError as exc:
                    logger.warning(
                        "Could not restore transaction %s while reverting fusion %s: %s",
                        record["id"],
                        backup_id,
                        exc,
                    )
                    failed_transactions.append(record["id"])
                    continue
                touched.extend(current)
                restored_transactions += 1

            for record in backup.affected_trips:
                trip = self.db.get_trip(record["id"])
                if trip is None:
                    missing_trips.append(record["id"])
                    continue
                touched.extend(trip_accounts(self.db, trip))
                self._restore_trip(backup, record)
                restored_trips += 1

            self.db.mark_fusion_reverted(backup_id, datetime.now())

        partial = None
        if missing_transactions or missing_trips or failed_transactions:
            partial = PartialReversal(
                missing_transaction_ids=tuple(missing_transactions),
                missing_trip_ids=tuple(missing_trips),
                failed_transaction_ids=tuple(failed_transactions),
            )
            logger.warning(
                "Fusion %s partially reverted: %d transaction(s) and %d trip(s) no longer exist, "
                "%d transaction(s) could not be restored",
                backup_id,
                len(missing_transactions),
                len(missing_trips),
                len(failed_transactions),
            )

        result = ReversalResult(
            restored_account_name=source_snapshot["name"],
            transactions_restored=restored_transactions,
            trips_restored=restored_trips,
            transactions_missing=len(missing_transactions),
            trips_missing=len(missing_trips),
            transactions_failed=len(failed_transactions),
            partial=partial,
        )
        logger.info(
            "Reverted fusion %s by %s: restored %s '%s' with %d transaction(s) and %d trip(s)",
            backup_id,
            acting_user_id or "unknown user",
            entity_type.value,
            result.restored_account_name,
            result.transactions_restored,
            result.trips_restored,
        )

        touched = list(dict.fromkeys(touched))
        # The destination may itself have been fused away since.
        refreshed = [account_id for _, account_id in touched if self.db.get_account(account_id) is not None]
        self.cache.refresh(refreshed)
        self.notifier.notify(ChangeType.REVERTED, touched)
        return result

    def get_fusion_history(self, user_id: Optional[str] = None) -> list[FusionHistoryEntry]:
        """List fusions, newest first, optionally only those of one user."""
        return [
            FusionHistoryEntry(
                id=backup.id,
                entity_type=backup.entity_type,
                source_name=backup.source_name,
                destination_name=backup.destination_name,
                fused_at=backup.fused_at,
                reverted=backup.reverted,
                reverted_at=backup.reverted_at,
                transactions_affected=len(backup.affected_transactions),
                trips_affected=len(backup.affected_trips),
            )
            for backup in self.db.list_fusion_backups(user_id)
        ]

    def get_backup(self, backup_id: int) -> FusionBackup:
        """Get the full backup of a fusion.

        Raises:
            NotFoundError: If the backup does not exist
        """
        backup = self.db.get_fusion_backup(backup_id)
        if backup is None:
            raise NotFoundError(fusion_backup_not_found(backup_id))
        return backup

    def _require_account(self, entity_type: AccountType, account_id: int) -> Account:
        account = self.db.get_account(account_id, entity_type)
        if account is None:
            raise NotFoundError(account_not_found(entity_type.value, account_id))
        return account

    def _trips_of(self, entity_type: AccountType, account_id: int) -> list[Trip]:
        if entity_type == AccountType.MINE:
            return self.db.list_trips(mine_id=account_id)
        if entity_type == AccountType.BUYER:
            return self.db.list_trips(buyer_id=account_id)
        if entity_type == AccountType.TRUCKER:
            return self.db.list_trips(driver_keys=self.db.list_driver_aliases(account_id))
        return []

    @staticmethod
    def _matched_sides(entity_type: AccountType, account_id: int, txn: Transaction) -> list[str]:
        party_type = PartyType(entity_type.value)
        sides = []
        if txn.from_party_type == party_type and txn.from_party_id == str(account_id):
            sides.append("from")
        if txn.to_party_type == party_type and txn.to_party_id == str(account_id):
            sides.append("to")
        return sides

    def _transaction_record(self, entity_type: AccountType, source_id: int, txn: Transaction) -> dict[str, Any]:
        return {
            "id": txn.id,
            "original_concept": txn.concept,
            "sides": self._matched_sides(entity_type, source_id, txn),
        }

    @staticmethod
    def _trip_record(entity_type: AccountType, trip: Trip) -> dict[str, Any]:
        record: dict[str, Any] = {"id": trip.id}
        if entity_type == AccountType.TRUCKER:
            record["original_driver_name"] = trip.driver_name
        return record

    def _move_transaction(self, entity_type: AccountType, txn: Transaction, source: Account, destination: Account) -> None:
        changes: dict[str, Any] = {"concept": replace_name(txn.concept, source.name, destination.name)}
        for side in self._matched_sides(entity_type, source.id, txn):
            changes[f"{side}_party_id"] = str(destination.id)
        self.db.update_transaction(txn.id, **changes)

    def _move_trip(self, entity_type: AccountType, trip: Trip, destination: Account) -> None:
        if entity_type == AccountType.MINE:
            self.db.update_trip(trip.id, mine_id=destination.id)
        elif entity_type == AccountType.BUYER:
            self.db.update_trip(trip.id, buyer_id=destination.id)
        elif entity_type == AccountType.TRUCKER:
            self.db.update_trip(
                trip.id,
                driver_name=destination.name,
                driver_key=normalize_driver_name(destination.name),
            )

    def _restore_transaction(self, backup: FusionBackup, txn: Transaction, record: dict[str, Any]) -> None:
        changes: dict[str, Any] = {"concept": record["original_concept"]}
        sides = record.get("sides", ["from", "to"])
        for side in self._matched_sides(backup.entity_type, backup.destination_id, txn):
            if side in sides:
                changes[f"{side}_party_id"] = str(backup.source_id)
        self.db.update_transaction(txn.id, **changes)

    def _restore_trip(self, backup: FusionBackup, record: dict[str, Any]) -> None:
        if backup.entity_type == AccountType.MINE:
            self.db.update_trip(record["id"], mine_id=backup.source_id)
        elif backup.entity_type == AccountType.BUYER:
            self.db.update_trip(record["id"], buyer_id=backup.source_id)
        elif backup.entity_type == AccountType.TRUCKER:
            original_name = record.get("original_driver_name") or backup.source_name
            self.db.update_trip(
                record["id"],
                driver_name=original_name,
                driver_key=normalize_driver_name(original_name),
            )

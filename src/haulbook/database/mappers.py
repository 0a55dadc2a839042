"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic, and also produces the plain-JSON
snapshots stored in fusion backups, so a backup stays readable after the
account schema changes.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from haulbook.domain import entities as domain
from haulbook.database.models import (
    Account as ORMAccount,
    BalanceCacheEntry as ORMBalanceCacheEntry,
    Trip as ORMTrip,
    Transaction as ORMTransaction,
    FusionBackup as ORMFusionBackup,
)


def _decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def account_to_domain(orm_account: ORMAccount) -> domain.Account:
    """Convert SQLAlchemy Account model to domain Account entity."""
    return domain.Account(
        id=orm_account.id,
        account_type=domain.AccountType(orm_account.account_type),
        name=orm_account.name,
        plate=orm_account.plate,
        owner_user_id=orm_account.owner_user_id,
        created_at=orm_account.created_at,
    )


def cache_entry_to_domain(orm_entry: ORMBalanceCacheEntry) -> domain.BalanceCacheEntry:
    """Convert SQLAlchemy BalanceCacheEntry model to domain entity."""
    return domain.BalanceCacheEntry(
        account_id=orm_entry.account_id,
        cached_balance=_decimal(orm_entry.cached_balance),
        is_stale=orm_entry.is_stale,
        last_recomputed_at=orm_entry.last_recomputed_at,
    )


def trip_to_domain(orm_trip: ORMTrip) -> domain.Trip:
    """Convert SQLAlchemy Trip model to domain Trip entity."""
    return domain.Trip(
        id=orm_trip.id,
        load_date=orm_trip.load_date,
        unload_date=orm_trip.unload_date,
        driver_name=orm_trip.driver_name,
        driver_key=orm_trip.driver_key,
        vehicle_type=orm_trip.vehicle_type,
        plate=orm_trip.plate,
        mine_id=orm_trip.mine_id,
        buyer_id=orm_trip.buyer_id,
        weight=_decimal(orm_trip.weight),
        purchase_unit_price=_decimal(orm_trip.purchase_unit_price),
        sale_unit_price=_decimal(orm_trip.sale_unit_price),
        freight_unit_price=_decimal(orm_trip.freight_unit_price),
        other_freight_cost=_decimal(orm_trip.other_freight_cost),
        freight_payer=orm_trip.freight_payer,
        total_sale=_decimal(orm_trip.total_sale),
        total_purchase=_decimal(orm_trip.total_purchase),
        total_freight=_decimal(orm_trip.total_freight),
        amount_to_remit=_decimal(orm_trip.amount_to_remit),
        profit=_decimal(orm_trip.profit),
        status=domain.TripStatus(orm_trip.status),
        hidden=orm_trip.hidden,
        receipt=orm_trip.receipt,
        notes=orm_trip.notes,
        owner_user_id=orm_trip.owner_user_id,
        created_at=orm_trip.created_at,
    )


def transaction_to_domain(orm_transaction: ORMTransaction) -> domain.Transaction:
    """Convert SQLAlchemy Transaction model to domain Transaction entity."""
    return domain.Transaction(
        id=orm_transaction.id,
        from_party_type=domain.PartyType(orm_transaction.from_party_type),
        from_party_id=orm_transaction.from_party_id,
        to_party_type=domain.PartyType(orm_transaction.to_party_type),
        to_party_id=orm_transaction.to_party_id,
        concept=orm_transaction.concept,
        amount=_decimal(orm_transaction.amount),
        date=orm_transaction.date,
        payment_method=orm_transaction.payment_method,
        comment=orm_transaction.comment,
        status=domain.TransactionStatus(orm_transaction.status),
        is_system_generated=orm_transaction.is_system_generated,
        hidden=orm_transaction.hidden,
        hidden_in_buyer_view=orm_transaction.hidden_in_buyer_view,
        hidden_in_mine_view=orm_transaction.hidden_in_mine_view,
        hidden_in_trucker_view=orm_transaction.hidden_in_trucker_view,
        owner_user_id=orm_transaction.owner_user_id,
        created_at=orm_transaction.created_at,
    )


def fusion_backup_to_domain(orm_backup: ORMFusionBackup) -> domain.FusionBackup:
    """Convert SQLAlchemy FusionBackup model to domain FusionBackup entity."""
    return domain.FusionBackup(
        id=orm_backup.id,
        entity_type=domain.AccountType(orm_backup.entity_type),
        source_id=orm_backup.source_id,
        destination_id=orm_backup.destination_id,
        source_name=orm_backup.source_name,
        destination_name=orm_backup.destination_name,
        original_snapshot=orm_backup.original_snapshot,
        affected_transactions=list(orm_backup.affected_transactions or []),
        affected_trips=list(orm_backup.affected_trips or []),
        fused_at=orm_backup.fused_at,
        reverted=orm_backup.reverted,
        reverted_at=orm_backup.reverted_at,
        owner_user_id=orm_backup.owner_user_id,
    )


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def account_to_snapshot(
    orm_account: ORMAccount, orm_entry: Optional[ORMBalanceCacheEntry] = None
) -> dict[str, Any]:
    """Serialize an account row (and its cache entry) to JSON-safe data."""
    snapshot: dict[str, Any] = {
        "id": orm_account.id,
        "account_type": orm_account.account_type,
        "name": orm_account.name,
        "plate": orm_account.plate,
        "owner_user_id": orm_account.owner_user_id,
        "created_at": _iso(orm_account.created_at),
    }
    if orm_entry is not None:
        snapshot["cache"] = {
            "cached_balance": str(_decimal(orm_entry.cached_balance)),
            "is_stale": orm_entry.is_stale,
            "last_recomputed_at": _iso(orm_entry.last_recomputed_at),
        }
    return snapshot


def account_from_snapshot(snapshot: dict[str, Any]) -> ORMAccount:
    """Rebuild an account row, keeping its original id."""
    account = ORMAccount(
        id=snapshot["id"],
        account_type=snapshot["account_type"],
        name=snapshot["name"],
        plate=snapshot.get("plate"),
        owner_user_id=snapshot.get("owner_user_id"),
    )
    if snapshot.get("created_at"):
        account.created_at = datetime.fromisoformat(snapshot["created_at"])
    return account

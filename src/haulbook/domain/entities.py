"""Domain model entities for haulbook.

These are pure data classes representing business concepts, independent of
database schema. Services and the database layer exchange these, never ORM rows.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class AccountType(str, Enum):
    """Counterparty variants that carry a balance."""

    MINE = "mine"
    BUYER = "buyer"
    TRUCKER = "trucker"
    THIRD_PARTY = "third_party"


class PartyType(str, Enum):
    """Every party a transaction can reference.

    The first four mirror AccountType. The rest are fixed virtual accounts
    that never get a cached balance.
    """

    MINE = "mine"
    BUYER = "buyer"
    TRUCKER = "trucker"
    THIRD_PARTY = "third_party"
    TREASURY = "treasury"
    BANK = "bank"
    LCDM = "lcdm"
    POSTOBON = "postobon"

    @property
    def is_account(self) -> bool:
        return self.value in ACCOUNT_PARTY_TYPES

    @property
    def is_treasury(self) -> bool:
        """Company-side parties (treasury and bank)."""
        return self in (PartyType.TREASURY, PartyType.BANK)


ACCOUNT_PARTY_TYPES = frozenset(t.value for t in AccountType)


class TripStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class FreightPayer(str, Enum):
    """Who pays the trucker for a trip."""

    BUYER = "buyer"
    COMPANY = "company"


# Legacy spellings that mean "the buyer pays freight" in imported trips.
BUYER_PAYS_FREIGHT_TOKENS = ("buyer", "comprador", "el comprador")


class TransactionView(str, Enum):
    """Per-module visibility flags of a transaction."""

    GLOBAL = "global"
    BUYER = "buyer"
    MINE = "mine"
    TRUCKER = "trucker"


class FusionOutcome(str, Enum):
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass(frozen=True)
class Account:
    """Counterparty identity. Balance data lives in BalanceCacheEntry."""

    id: int
    account_type: AccountType
    name: str
    created_at: datetime
    plate: Optional[str] = None
    owner_user_id: Optional[str] = None


@dataclass(frozen=True)
class BalanceCacheEntry:
    """Cached balance for one account."""

    account_id: int
    cached_balance: Decimal
    is_stale: bool
    last_recomputed_at: Optional[datetime]


@dataclass(frozen=True)
class BalanceReading:
    """Result of reading the balance cache."""

    account_id: int
    balance: Decimal
    is_stale: bool
    last_recomputed_at: Optional[datetime] = None


@dataclass(frozen=True)
class BalanceValidation:
    """Cached vs. freshly computed balance for operator review."""

    account_id: int
    account_type: AccountType
    cached: Decimal
    computed: Decimal
    difference: Decimal
    valid: bool


@dataclass(frozen=True)
class AccountBalanceSummary:
    """Per-account row of the aggregate balance report."""

    balance: Decimal
    trip_count: int
    trip_count_last_month: int


@dataclass(frozen=True)
class TripStats:
    """Trip aggregates for one account, as returned by the database layer."""

    trip_count: int = 0
    trip_count_last_month: int = 0
    income: Decimal = Decimal("0")


@dataclass(frozen=True)
class PartyFlow:
    """Manual-transaction totals for one account: money sent and money received."""

    as_origin: Decimal = Decimal("0")
    as_destination: Decimal = Decimal("0")


@dataclass(frozen=True)
class Trip:
    """Trip domain entity."""

    id: str
    load_date: date
    unload_date: Optional[date]
    driver_name: str
    driver_key: str
    vehicle_type: str
    plate: str
    mine_id: Optional[int]
    buyer_id: Optional[int]
    weight: Decimal
    purchase_unit_price: Decimal
    sale_unit_price: Decimal
    freight_unit_price: Decimal
    other_freight_cost: Decimal
    freight_payer: str
    total_sale: Decimal
    total_purchase: Decimal
    total_freight: Decimal
    amount_to_remit: Decimal
    profit: Decimal
    status: TripStatus
    hidden: bool
    created_at: datetime
    receipt: Optional[str] = None
    notes: Optional[str] = None
    owner_user_id: Optional[str] = None

    @property
    def buyer_pays_freight(self) -> bool:
        return (self.freight_payer or "").strip().lower() in BUYER_PAYS_FREIGHT_TOKENS

    @property
    def counts_toward_balance(self) -> bool:
        return self.status == TripStatus.COMPLETED and not self.hidden


@dataclass(frozen=True)
class Transaction:
    """Manual money movement between two parties (money flows from -> to)."""

    id: int
    from_party_type: PartyType
    from_party_id: str
    to_party_type: PartyType
    to_party_id: str
    concept: str
    amount: Decimal
    date: date
    payment_method: str
    status: TransactionStatus
    is_system_generated: bool
    created_at: datetime
    comment: Optional[str] = None
    hidden: bool = False
    hidden_in_buyer_view: bool = False
    hidden_in_mine_view: bool = False
    hidden_in_trucker_view: bool = False
    owner_user_id: Optional[str] = None

    def references(self, party_type: PartyType | AccountType, party_id: int | str) -> bool:
        """True if either side of the transaction is the given party."""
        party_type = PartyType(party_type.value)
        party_id = str(party_id)
        return (self.from_party_type == party_type and self.from_party_id == party_id) or (
            self.to_party_type == party_type and self.to_party_id == party_id
        )

    @property
    def counts_toward_balance(self) -> bool:
        return not self.is_system_generated and self.status == TransactionStatus.COMPLETED


@dataclass(frozen=True)
class FusionBackup:
    """Durable record of one fusion, sufficient to revert it."""

    id: int
    entity_type: AccountType
    source_id: int
    destination_id: int
    source_name: str
    destination_name: str
    original_snapshot: dict[str, Any]
    affected_transactions: list[dict[str, Any]]
    affected_trips: list[dict[str, Any]]
    fused_at: datetime
    reverted: bool
    reverted_at: Optional[datetime]
    owner_user_id: Optional[str] = None


@dataclass(frozen=True)
class FusionHistoryEntry:
    """Summary row of the fusion history."""

    id: int
    entity_type: AccountType
    source_name: str
    destination_name: str
    fused_at: datetime
    reverted: bool
    reverted_at: Optional[datetime]
    transactions_affected: int
    trips_affected: int


@dataclass(frozen=True)
class FusionResult:
    backup_id: int
    transactions_moved: int
    trips_moved: int
    outcome: FusionOutcome = FusionOutcome.COMMITTED


@dataclass(frozen=True)
class PartialReversal:
    """Rows a reversal could not restore. Reported, never raised."""

    missing_transaction_ids: tuple[int, ...] = ()
    missing_trip_ids: tuple[str, ...] = ()
    failed_transaction_ids: tuple[int, ...] = ()


@dataclass(frozen=True)
class ReversalResult:
    restored_account_name: str
    transactions_restored: int
    trips_restored: int
    transactions_missing: int = 0
    trips_missing: int = 0
    transactions_failed: int = 0
    partial: Optional[PartialReversal] = field(default=None)

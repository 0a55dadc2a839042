"""SQLAlchemy models for haulbook database."""

from datetime import datetime, UTC
from sqlalchemy import (
    JSON,
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    Date,
    Numeric,
    Boolean,
    UniqueConstraint,
    Index,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()


class Account(Base):
    """Counterparty model (mine, buyer, trucker or third party)."""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_type = Column(String(20), nullable=False)
    name = Column(String, nullable=False)
    plate = Column(String, nullable=True)
    owner_user_id = Column(String, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    __table_args__ = (
        UniqueConstraint("account_type", "name", name="uq_account_type_name"),
        Index("ix_accounts_type", "account_type"),
        # IDs of fused-away accounts must stay free so a reversal can reuse them.
        {"sqlite_autoincrement": True},
    )

    # Relationships
    cache_entry = relationship(
        "BalanceCacheEntry", back_populates="account", uselist=False, cascade="all, delete-orphan"
    )
    aliases = relationship("DriverAlias", back_populates="trucker", cascade="all, delete-orphan")


class BalanceCacheEntry(Base):
    """Cached balance of an account, kept apart from the account's identity."""

    __tablename__ = "balance_cache"

    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True)
    cached_balance = Column(Numeric(15, 2), default=0, nullable=False)
    is_stale = Column(Boolean, default=True, nullable=False)
    last_recomputed_at = Column(DateTime, nullable=True)

    account = relationship("Account", back_populates="cache_entry")


class DriverAlias(Base):
    """Normalized driver name resolving to a trucker account."""

    __tablename__ = "driver_aliases"

    driver_key = Column(String, primary_key=True)
    trucker_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)

    trucker = relationship("Account", back_populates="aliases")


class Trip(Base):
    """Trip model: one haul with its purchase, sale and freight legs."""

    __tablename__ = "trips"

    id = Column(String, primary_key=True)
    load_date = Column(Date, nullable=False)
    unload_date = Column(Date, nullable=True)
    driver_name = Column(String, nullable=False)
    driver_key = Column(String, nullable=False, index=True)
    vehicle_type = Column(String, nullable=False, default="dump truck")
    plate = Column(String, nullable=False)
    mine_id = Column(Integer, ForeignKey("accounts.id"), nullable=True, index=True)
    buyer_id = Column(Integer, ForeignKey("accounts.id"), nullable=True, index=True)
    weight = Column(Numeric(10, 2), nullable=False, default=0)
    purchase_unit_price = Column(Numeric(12, 2), nullable=False, default=0)
    sale_unit_price = Column(Numeric(12, 2), nullable=False, default=0)
    freight_unit_price = Column(Numeric(12, 2), nullable=False, default=0)
    other_freight_cost = Column(Numeric(12, 2), nullable=False, default=0)
    freight_payer = Column(String, nullable=False, default="company")
    total_sale = Column(Numeric(15, 2), nullable=False, default=0)
    total_purchase = Column(Numeric(15, 2), nullable=False, default=0)
    total_freight = Column(Numeric(15, 2), nullable=False, default=0)
    amount_to_remit = Column(Numeric(15, 2), nullable=False, default=0)
    profit = Column(Numeric(15, 2), nullable=False, default=0)
    status = Column(String, nullable=False, default="pending")
    hidden = Column(Boolean, default=False, nullable=False)
    receipt = Column(String, nullable=True)
    notes = Column(String, nullable=True)
    owner_user_id = Column(String, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)


class Transaction(Base):
    """Manual transaction model. Party ids are text so virtual parties fit."""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True)
    from_party_type = Column(String(20), nullable=False)
    from_party_id = Column(String, nullable=False)
    to_party_type = Column(String(20), nullable=False)
    to_party_id = Column(String, nullable=False)
    concept = Column(String, nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    date = Column(Date, nullable=False)
    payment_method = Column(String, nullable=False, default="cash")
    comment = Column(String, nullable=True)
    status = Column(String, nullable=False, default="completed")
    is_system_generated = Column(Boolean, default=False, nullable=False)
    hidden = Column(Boolean, default=False, nullable=False)
    hidden_in_buyer_view = Column(Boolean, default=False, nullable=False)
    hidden_in_mine_view = Column(Boolean, default=False, nullable=False)
    hidden_in_trucker_view = Column(Boolean, default=False, nullable=False)
    owner_user_id = Column(String, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    __table_args__ = (
        Index("ix_transactions_from", "from_party_type", "from_party_id"),
        Index("ix_transactions_to", "to_party_type", "to_party_id"),
    )


class FusionBackup(Base):
    """Snapshot taken when two accounts are fused, used to revert the fusion."""

    __tablename__ = "fusion_backups"

    id = Column(Integer, primary_key=True)
    entity_type = Column(String(20), nullable=False)
    source_id = Column(Integer, nullable=False)
    destination_id = Column(Integer, nullable=False)
    source_name = Column(String(255), nullable=False)
    destination_name = Column(String(255), nullable=False)
    original_snapshot = Column(JSON, nullable=False)
    affected_transactions = Column(JSON, nullable=False)
    affected_trips = Column(JSON, nullable=False)
    fused_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)
    reverted = Column(Boolean, default=False, nullable=False)
    reverted_at = Column(DateTime, nullable=True)
    owner_user_id = Column(String, nullable=True)


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)

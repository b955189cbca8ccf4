import enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    TIMESTAMP,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.sql import func
from cashback_engine.db import Base


class EntryKind(str, enum.Enum):
    PURCHASE = "purchase"
    REDEMPTION = "redemption"


class EntryStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class LedgerEntry(Base):
    __tablename__ = "ledger_entries"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_ledger_entries_amount_positive"),
        CheckConstraint("kind IN ('purchase', 'redemption')", name="ck_ledger_entries_kind"),
        CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="ck_ledger_entries_status"),
        UniqueConstraint("customer_id", "idempotency_key", name="uq_ledger_entries_customer_idempotency_key"),
        Index("ix_ledger_entries_customer_created", "customer_id", "created_at"),
        Index("ix_ledger_entries_customer_kind_status", "customer_id", "kind", "status"),
    )

    # autoincrement keeps ids monotonic with creation order
    id = Column(Integer, primary_key=True, autoincrement=True)

    customer_id = Column(Uuid(as_uuid=True), ForeignKey("customers.id"), nullable=False)

    amount = Column(Numeric(12, 2), nullable=False)
    cashback_amount = Column(Numeric(12, 2), nullable=False)  # + accrual / - redemption

    kind = Column(String(20), nullable=False)  # purchase / redemption
    status = Column(String(20), nullable=False, default=EntryStatus.PENDING.value)

    expires_at = Column(TIMESTAMP)  # purchases only, never updated

    latitude = Column(Float)
    longitude = Column(Float)
    store_id = Column(String(100))

    receipt_url = Column(String(500))
    comment = Column(String(500))
    idempotency_key = Column(String(150))

    created_at = Column(TIMESTAMP, nullable=False, server_default=func.now())
    updated_at = Column(TIMESTAMP, nullable=False, server_default=func.now())

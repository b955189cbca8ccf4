from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Iterator
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cashback_engine.errors import (
    CustomerNotFoundError,
    DuplicateError,
    EntryNotFoundError,
    InsufficientBalanceError,
    InvalidTransitionError,
    ValidationError,
)
from cashback_engine.models.customer import Customer
from cashback_engine.models.ledger_entry import EntryKind, EntryStatus, LedgerEntry
from cashback_engine.services.balance_engine import compute_balance
from cashback_engine.services.expiration_policy import to_money


logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    # Keep naive UTC timestamps to match existing DB column types/semantics.
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Striped per-customer write locks. The customer row lock (SELECT ... FOR UPDATE)
# serializes writers across processes on PostgreSQL; these cover in-process
# writers on backends that ignore FOR UPDATE (SQLite). A customer always maps
# to the same stripe; unrelated customers may share one.
LOCK_STRIPES = 64
_customer_locks: tuple[threading.Lock, ...] = tuple(threading.Lock() for _ in range(LOCK_STRIPES))


def _customer_lock(customer_id: UUID) -> threading.Lock:
    return _customer_locks[hash(customer_id) % LOCK_STRIPES]


@dataclass
class NewLedgerEntry:
    customer_id: UUID
    amount: Decimal
    cashback_amount: Decimal
    kind: EntryKind
    status: EntryStatus = EntryStatus.PENDING
    expires_at: datetime | None = None
    latitude: float | None = None
    longitude: float | None = None
    store_id: str | None = None
    receipt_url: str | None = None
    comment: str | None = None
    idempotency_key: str | None = None


@dataclass
class LedgerFilters:
    kind: EntryKind | None = None
    status: EntryStatus | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None
    ascending: bool = False
    limit: int | None = None
    offset: int = 0


class LedgerQuery:
    """Lazy, restartable view over a customer's entries; each iteration re-runs the query."""

    def __init__(self, db: Session, customer_id: UUID, filters: LedgerFilters):
        self._db = db
        self._customer_id = customer_id
        self._filters = filters

    def _build(self):
        f = self._filters
        q = self._db.query(LedgerEntry).filter(LedgerEntry.customer_id == self._customer_id)
        if f.kind is not None:
            q = q.filter(LedgerEntry.kind == EntryKind(f.kind).value)
        if f.status is not None:
            q = q.filter(LedgerEntry.status == EntryStatus(f.status).value)
        if f.created_from is not None:
            q = q.filter(LedgerEntry.created_at >= f.created_from)
        if f.created_to is not None:
            q = q.filter(LedgerEntry.created_at <= f.created_to)

        if f.ascending:
            q = q.order_by(LedgerEntry.created_at.asc(), LedgerEntry.id.asc())
        else:
            q = q.order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc())

        if f.offset:
            q = q.offset(max(0, f.offset))
        if f.limit is not None:
            q = q.limit(max(1, f.limit))
        return q

    def __iter__(self) -> Iterator[LedgerEntry]:
        return iter(self._build().all())

    def count(self) -> int:
        return self._build().order_by(None).count()


class LedgerStore:
    def __init__(
        self,
        db: Session,
        *,
        duplicate_window_seconds: int = 120,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.duplicate_window = timedelta(seconds=duplicate_window_seconds)
        self.clock = clock

    # ============================================================
    # APPEND
    # ============================================================
    def append(self, entry: NewLedgerEntry) -> int:
        self._validate(entry)
        amount = to_money(entry.amount)
        cashback_amount = to_money(entry.cashback_amount)

        with _customer_lock(entry.customer_id):
            try:
                customer = (
                    self.db.query(Customer)
                    .filter(Customer.id == entry.customer_id)
                    .with_for_update()
                    .first()
                )
                if not customer:
                    raise CustomerNotFoundError()

                now = self.clock()
                self._check_duplicate(entry, amount, now)

                if entry.kind == EntryKind.REDEMPTION:
                    self._check_balance(entry.customer_id, amount, now)

                row = LedgerEntry(
                    customer_id=entry.customer_id,
                    amount=amount,
                    cashback_amount=cashback_amount,
                    kind=EntryKind(entry.kind).value,
                    status=EntryStatus(entry.status).value,
                    expires_at=entry.expires_at,
                    latitude=entry.latitude,
                    longitude=entry.longitude,
                    store_id=entry.store_id,
                    receipt_url=entry.receipt_url,
                    comment=entry.comment,
                    idempotency_key=entry.idempotency_key,
                    created_at=now,
                    updated_at=now,
                )
                self.db.add(row)
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                raise DuplicateError()
            except Exception:
                self.db.rollback()
                raise

        logger.info(
            "ledger entry appended",
            extra={
                "entry_id": row.id,
                "customer_id": str(entry.customer_id),
                "kind": row.kind,
                "status": row.status,
                "amount": str(amount),
                "cashback_amount": str(cashback_amount),
            },
        )
        return row.id

    def _validate(self, entry: NewLedgerEntry) -> None:
        try:
            kind = EntryKind(entry.kind)
            status = EntryStatus(entry.status)
        except ValueError:
            raise ValidationError("Tipo ou status de transação inválido")

        if entry.customer_id is None:
            raise ValidationError("Cliente é obrigatório")
        if entry.amount is None or entry.cashback_amount is None:
            raise ValidationError()

        amount = to_money(entry.amount)
        cashback_amount = to_money(entry.cashback_amount)
        if amount <= 0:
            raise ValidationError()

        if kind == EntryKind.PURCHASE:
            if cashback_amount < 0:
                raise ValidationError("Cashback de compra não pode ser negativo")
            if entry.expires_at is None:
                raise ValidationError("Compra sem data de expiração")
        else:
            if cashback_amount != -amount:
                raise ValidationError("Resgate deve debitar exatamente o valor resgatado")
            if entry.expires_at is not None:
                raise ValidationError("Resgates não expiram")
            if status != EntryStatus.APPROVED:
                raise ValidationError("Resgates são registrados já aprovados")

    def _check_duplicate(self, entry: NewLedgerEntry, amount: Decimal, now: datetime) -> None:
        if entry.idempotency_key:
            reused = (
                self.db.query(LedgerEntry.id)
                .filter(LedgerEntry.customer_id == entry.customer_id)
                .filter(LedgerEntry.idempotency_key == entry.idempotency_key)
                .first()
            )
            if reused:
                logger.warning(
                    "duplicate ledger entry rejected (idempotency key)",
                    extra={"customer_id": str(entry.customer_id), "existing_entry_id": reused.id},
                )
                raise DuplicateError()

        if self.duplicate_window.total_seconds() <= 0:
            return

        recent = (
            self.db.query(LedgerEntry.id)
            .filter(LedgerEntry.customer_id == entry.customer_id)
            .filter(LedgerEntry.kind == EntryKind(entry.kind).value)
            .filter(LedgerEntry.amount == amount)
            .filter(LedgerEntry.created_at > now - self.duplicate_window)
            .first()
        )
        if recent:
            logger.warning(
                "duplicate ledger entry rejected",
                extra={
                    "customer_id": str(entry.customer_id),
                    "kind": EntryKind(entry.kind).value,
                    "amount": str(amount),
                    "existing_entry_id": recent.id,
                },
            )
            raise DuplicateError()

    def _check_balance(self, customer_id: UUID, amount: Decimal, now: datetime) -> None:
        entries = (
            self.db.query(LedgerEntry)
            .filter(LedgerEntry.customer_id == customer_id)
            .populate_existing()
            .all()
        )
        balance = compute_balance(entries, now)
        if amount > balance.available_balance:
            logger.info(
                "redemption rejected, insufficient balance",
                extra={
                    "customer_id": str(customer_id),
                    "requested": str(amount),
                    "available": str(balance.available_balance),
                },
            )
            raise InsufficientBalanceError(
                available=balance.available_balance,
                requested=amount,
                expired=balance.expired_amount,
            )

    # ============================================================
    # STATUS TRANSITION
    # ============================================================
    def update_status(self, entry_id: int, new_status: EntryStatus) -> LedgerEntry:
        try:
            new_status = EntryStatus(new_status)
        except ValueError:
            raise ValidationError("Status inválido")
        if new_status == EntryStatus.PENDING:
            raise InvalidTransitionError("Transações só podem ser aprovadas ou rejeitadas")

        now = self.clock()
        try:
            updated = (
                self.db.query(LedgerEntry)
                .filter(LedgerEntry.id == entry_id)
                .filter(LedgerEntry.status == EntryStatus.PENDING.value)
                .update(
                    {LedgerEntry.status: new_status.value, LedgerEntry.updated_at: now},
                    synchronize_session=False,
                )
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        entry = self.get(entry_id)
        if updated != 1:
            logger.warning(
                "invalid ledger status transition",
                extra={"entry_id": entry_id, "current_status": entry.status, "requested": new_status.value},
            )
            raise InvalidTransitionError(
                f"Transação {entry_id} já está com status {entry.status}"
            )

        logger.info(
            "ledger entry status updated",
            extra={"entry_id": entry_id, "status": new_status.value},
        )
        return entry

    def attach_receipt(self, entry_id: int, receipt_url: str) -> LedgerEntry:
        if not receipt_url or not receipt_url.strip():
            raise ValidationError("Comprovante inválido")

        try:
            updated = (
                self.db.query(LedgerEntry)
                .filter(LedgerEntry.id == entry_id)
                .filter(LedgerEntry.status == EntryStatus.PENDING.value)
                .update(
                    {LedgerEntry.receipt_url: receipt_url.strip(), LedgerEntry.updated_at: self.clock()},
                    synchronize_session=False,
                )
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        entry = self.get(entry_id)
        if updated != 1:
            raise InvalidTransitionError("Comprovantes só podem ser anexados a transações pendentes")
        return entry

    # ============================================================
    # QUERIES
    # ============================================================
    def get(self, entry_id: int) -> LedgerEntry:
        entry = self.db.query(LedgerEntry).filter(LedgerEntry.id == entry_id).first()
        if not entry:
            raise EntryNotFoundError()
        self.db.refresh(entry)
        return entry

    def query_by_customer(self, customer_id: UUID, filters: LedgerFilters | None = None) -> LedgerQuery:
        return LedgerQuery(self.db, customer_id, filters or LedgerFilters())

    def query_expiring_soon(self, customer_id: UUID) -> LedgerEntry | None:
        return (
            self.db.query(LedgerEntry)
            .filter(LedgerEntry.customer_id == customer_id)
            .filter(LedgerEntry.kind == EntryKind.PURCHASE.value)
            .filter(LedgerEntry.status == EntryStatus.APPROVED.value)
            .filter(LedgerEntry.expires_at > self.clock())
            .order_by(LedgerEntry.expires_at.asc(), LedgerEntry.created_at.asc(), LedgerEntry.id.asc())
            .first()
        )

    def list_pending(self, limit: int = 100, offset: int = 0) -> list[LedgerEntry]:
        limit = max(1, min(limit, 500))
        offset = max(0, offset)
        return (
            self.db.query(LedgerEntry)
            .filter(LedgerEntry.status == EntryStatus.PENDING.value)
            .order_by(LedgerEntry.created_at.asc(), LedgerEntry.id.asc())
            .offset(offset)
            .limit(limit)
            .all()
        )

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Callable
from uuid import UUID

from sqlalchemy.orm import Session

from cashback_engine.config import Settings
from cashback_engine.errors import (
    InsufficientBalanceError,
    LocationTimeoutError,
    OutOfRangeError,
    ValidationError,
)
from cashback_engine.models.ledger_entry import EntryKind, EntryStatus, LedgerEntry
from cashback_engine.services.expiration_policy import compute_cashback, compute_expires_at, to_money
from cashback_engine.services.geofence import ClosestStore, StoreGeofence
from cashback_engine.services.ledger_store import LedgerStore, NewLedgerEntry, utcnow
from cashback_engine.services.notification_service import Notifier
from cashback_engine.services.wallet_service import get_derived_balance


logger = logging.getLogger(__name__)

_geofence_pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="geofence")


def _parse_amount(value) -> Decimal:
    try:
        amount = to_money(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError("Por favor, insira um valor válido")
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("Por favor, insira um valor válido")
    return amount


class TransactionWorkflow:
    """Purchase submission, approval and redemption.

    One instance is built per request and carries the session, settings and
    collaborators explicitly; nothing is read from module state.
    """

    def __init__(
        self,
        db: Session,
        *,
        settings: Settings,
        geofence: StoreGeofence,
        notifier: Notifier,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.settings = settings
        self.geofence = geofence
        self.notifier = notifier
        self.clock = clock
        self.store = LedgerStore(
            db,
            duplicate_window_seconds=settings.duplicate_window_seconds,
            clock=clock,
        )

    # ============================================================
    # SUBMIT PURCHASE (customer self-service, geofenced)
    # ============================================================
    def submit_purchase(
        self,
        customer_id: UUID,
        amount,
        latitude: float | None,
        longitude: float | None,
        *,
        comment: str | None = None,
        idempotency_key: str | None = None,
    ) -> LedgerEntry:
        amount = _parse_amount(amount)
        closest = self._check_location(latitude, longitude)

        now = self.clock()
        entry_id = self.store.append(
            NewLedgerEntry(
                customer_id=customer_id,
                amount=amount,
                cashback_amount=compute_cashback(amount, self.settings.cashback_rate),
                kind=EntryKind.PURCHASE,
                status=EntryStatus.PENDING,
                expires_at=self._expires_at(now),
                latitude=latitude,
                longitude=longitude,
                store_id=closest.store_id if closest else None,
                comment=(comment or "").strip() or None,
                idempotency_key=idempotency_key,
            )
        )
        return self.store.get(entry_id)

    def _check_location(self, latitude, longitude) -> ClosestStore | None:
        if latitude is None or longitude is None:
            raise LocationTimeoutError(
                "Não foi possível obter sua localização. "
                "Por favor, verifique se o GPS está ativado e tente novamente."
            )

        future = _geofence_pool.submit(self._locate, latitude, longitude)
        try:
            on_premises, closest = future.result(timeout=self.settings.geolocation_timeout_seconds)
        except FutureTimeoutError:
            future.cancel()
            logger.warning(
                "geofence check timed out",
                extra={"timeout_seconds": self.settings.geolocation_timeout_seconds},
            )
            raise LocationTimeoutError()

        if not on_premises:
            logger.info(
                "purchase refused outside store range",
                extra={
                    "closest_store": closest.name if closest else None,
                    "distance_meters": round(closest.distance_meters, 1) if closest else None,
                },
            )
            if closest:
                raise OutOfRangeError(store_name=closest.name, distance_meters=closest.distance_meters)
            raise OutOfRangeError()
        return closest

    def _locate(self, latitude, longitude):
        return (
            self.geofence.is_on_premises(latitude, longitude),
            self.geofence.closest_store(latitude, longitude),
        )

    def _expires_at(self, now: datetime) -> datetime:
        return compute_expires_at(
            now,
            months_ahead=self.settings.cashback_expiry_months,
            timezone=self.settings.cashback_timezone,
        )

    # ============================================================
    # APPROVE / REJECT (admin)
    # ============================================================
    def approve_or_reject(self, entry_id: int, decision: EntryStatus) -> LedgerEntry:
        entry = self.store.update_status(entry_id, decision)

        if entry.status == EntryStatus.APPROVED and entry.kind == EntryKind.PURCHASE:
            self._notify(entry.customer_id, "purchase", entry.amount, entry.cashback_amount)
        return entry

    # ============================================================
    # REDEEM CASHBACK
    # ============================================================
    def redeem_cashback(self, customer_id: UUID, amount) -> LedgerEntry:
        amount = _parse_amount(amount)
        if amount < self.settings.min_redemption_amount:
            raise ValidationError(
                f"O valor mínimo para resgate é R$ {self.settings.min_redemption_amount:.2f}"
            )

        # Fast path on the caller's view; the store re-checks inside the write lock.
        observed = self.balance(customer_id)
        if amount > observed.available_balance:
            raise InsufficientBalanceError(
                available=observed.available_balance,
                requested=amount,
                expired=observed.expired_amount,
            )

        entry_id = self.store.append(
            NewLedgerEntry(
                customer_id=customer_id,
                amount=amount,
                cashback_amount=-amount,
                kind=EntryKind.REDEMPTION,
                status=EntryStatus.APPROVED,
            )
        )
        entry = self.store.get(entry_id)
        self._notify(customer_id, "redemption", entry.amount)
        return entry

    # ============================================================
    # ADMIN RECORD PURCHASE (no geofence, approved immediately)
    # ============================================================
    def admin_record_purchase(self, customer_id: UUID, amount, *, comment: str | None = None) -> LedgerEntry:
        amount = _parse_amount(amount)
        now = self.clock()
        entry_id = self.store.append(
            NewLedgerEntry(
                customer_id=customer_id,
                amount=amount,
                cashback_amount=compute_cashback(amount, self.settings.cashback_rate),
                kind=EntryKind.PURCHASE,
                status=EntryStatus.APPROVED,
                expires_at=self._expires_at(now),
                comment=(comment or "").strip() or None,
            )
        )
        entry = self.store.get(entry_id)
        self._notify(customer_id, "purchase", entry.amount, entry.cashback_amount)
        return entry

    def admin_redeem_balance(self, customer_id: UUID) -> LedgerEntry:
        available = self.balance(customer_id).available_balance
        if available <= 0:
            raise InsufficientBalanceError(available=available, requested=available)
        return self.redeem_cashback(customer_id, available)

    # ============================================================
    # HELPERS
    # ============================================================
    def balance(self, customer_id: UUID):
        return get_derived_balance(self.db, customer_id, self.clock())

    def _notify(self, customer_id, event_type, amount=None, cashback_amount=None) -> None:
        # The ledger write is already committed; delivery problems must not surface.
        try:
            self.notifier.notify(customer_id, event_type, amount=amount, cashback_amount=cashback_amount)
        except Exception as e:
            logger.warning(
                "notifier raised, ignoring",
                extra={"customer_id": str(customer_id), "event_type": event_type, "error": str(e)},
            )

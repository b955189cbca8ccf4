from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from zoneinfo import ZoneInfo

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from cashback_engine.errors import ValidationError
from cashback_engine.models.customer import Customer
from cashback_engine.models.ledger_entry import EntryKind, EntryStatus, LedgerEntry
from cashback_engine.services.balance_engine import ZERO, is_expired_accrual
from cashback_engine.services.expiration_policy import to_money


DATE_RANGE_PRESETS = ("today", "yesterday", "last7days", "last30days", "thisMonth", "lastMonth", "custom")


@dataclass
class CustomerMetrics:
    total_purchases: int = 0
    total_spent: Decimal = ZERO
    average_purchase: Decimal = ZERO
    last_purchase: datetime | None = None
    total_cashback: Decimal = ZERO
    redeemed_cashback: Decimal = ZERO
    expired_cashback: Decimal = ZERO

    def as_dict(self) -> dict:
        return asdict(self)


def customer_metrics(entries, now: datetime) -> CustomerMetrics:
    m = CustomerMetrics()
    for e in entries:
        if e.status != EntryStatus.APPROVED:
            continue
        if e.kind == EntryKind.PURCHASE:
            m.total_purchases += 1
            m.total_spent += to_money(e.amount)
            m.total_cashback += to_money(e.cashback_amount)
            if m.last_purchase is None or e.created_at > m.last_purchase:
                m.last_purchase = e.created_at
            if is_expired_accrual(e, now):
                m.expired_cashback += to_money(e.cashback_amount)
        elif e.kind == EntryKind.REDEMPTION:
            m.redeemed_cashback += to_money(e.amount)

    if m.total_purchases:
        m.average_purchase = to_money(m.total_spent / m.total_purchases)
    return m


# ============================================================
# DATE RANGES (admin dashboard filters)
# ============================================================
def resolve_date_range(
    preset: str,
    now: datetime,
    *,
    timezone: str = "UTC",
    start: date | None = None,
    end: date | None = None,
) -> tuple[datetime, datetime]:
    """Return ``(start, end)`` as naive UTC datetimes, both inclusive."""
    if preset not in DATE_RANGE_PRESETS:
        raise ValidationError(f"Período inválido: {preset}")

    tz = ZoneInfo(timezone)
    today = now.replace(tzinfo=ZoneInfo("UTC")).astimezone(tz).date()

    if preset == "today":
        first, last = today, today
    elif preset == "yesterday":
        first = last = today - timedelta(days=1)
    elif preset == "last7days":
        first, last = today - timedelta(days=7), today
    elif preset == "last30days":
        first, last = today - timedelta(days=30), today
    elif preset == "thisMonth":
        first = today.replace(day=1)
        next_month = (first + timedelta(days=32)).replace(day=1)
        last = next_month - timedelta(days=1)
    elif preset == "lastMonth":
        last = today.replace(day=1) - timedelta(days=1)
        first = last.replace(day=1)
    else:
        if start is None or end is None:
            raise ValidationError("Informe a data inicial e final")
        if start > end:
            raise ValidationError("A data inicial deve ser anterior à final")
        first, last = start, end

    def to_utc(d: date, t: time) -> datetime:
        return datetime.combine(d, t, tzinfo=tz).astimezone(ZoneInfo("UTC")).replace(tzinfo=None)

    return to_utc(first, time.min), to_utc(last, time.max)


# ============================================================
# DASHBOARD
# ============================================================
def outstanding_balance(db: Session, now: datetime) -> Decimal:
    """Sum of every customer's available balance, each floored at zero."""
    per_customer = (
        db.query(LedgerEntry.customer_id, func.coalesce(func.sum(LedgerEntry.cashback_amount), 0))
        .filter(LedgerEntry.status == EntryStatus.APPROVED.value)
        .filter(
            or_(
                and_(LedgerEntry.kind == EntryKind.PURCHASE.value, LedgerEntry.expires_at > now),
                LedgerEntry.kind == EntryKind.REDEMPTION.value,
            )
        )
        .group_by(LedgerEntry.customer_id)
        .all()
    )
    return to_money(sum((max(ZERO, to_money(total)) for _, total in per_customer), ZERO))


def dashboard_summary(db: Session, *, start: datetime, end: datetime, now: datetime) -> dict:
    in_range = (
        db.query(LedgerEntry)
        .filter(LedgerEntry.created_at >= start)
        .filter(LedgerEntry.created_at <= end)
        .all()
    )

    purchases = [e for e in in_range if e.kind == EntryKind.PURCHASE]
    redemptions = [e for e in in_range if e.kind == EntryKind.REDEMPTION]
    approved_purchases = [e for e in purchases if e.status == EntryStatus.APPROVED]
    approved_redemptions = [e for e in redemptions if e.status == EntryStatus.APPROVED]

    outstanding = outstanding_balance(db, now)

    return {
        "start": start,
        "end": end,
        "purchases": {
            "count": len(purchases),
            "approved": len(approved_purchases),
            "pending": sum(1 for e in purchases if e.status == EntryStatus.PENDING),
            "rejected": sum(1 for e in purchases if e.status == EntryStatus.REJECTED),
            "totalAmount": to_money(sum((to_money(e.amount) for e in approved_purchases), ZERO)),
            "totalCashback": to_money(sum((to_money(e.cashback_amount) for e in approved_purchases), ZERO)),
        },
        "redemptions": {
            "count": len(approved_redemptions),
            "totalAmount": to_money(sum((to_money(e.amount) for e in approved_redemptions), ZERO)),
        },
        "pendingTotal": db.query(LedgerEntry).filter(LedgerEntry.status == EntryStatus.PENDING.value).count(),
        "totalCustomers": db.query(Customer).count(),
        "outstandingBalance": to_money(outstanding),
    }

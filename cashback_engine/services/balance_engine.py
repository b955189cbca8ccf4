"""Derived cashback balance.

Pure functions over ledger entries (ORM rows or any object exposing ``kind``,
``status``, ``cashback_amount`` and ``expires_at``). Nothing here touches the
database; callers load the entries and pass a reference instant.

The balance is an aggregate: approved, unexpired purchase accruals plus every
approved redemption (negative), floored at zero. Redemptions are not matched
against specific accruals.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from cashback_engine.models.ledger_entry import EntryKind, EntryStatus
from cashback_engine.services.expiration_policy import to_money


ZERO = Decimal("0.00")


@dataclass(frozen=True)
class DerivedBalance:
    available_balance: Decimal
    next_expiring_amount: Decimal | None = None
    next_expiring_date: datetime | None = None
    expired_amount: Decimal = ZERO


def is_active_accrual(entry, now: datetime) -> bool:
    return (
        entry.kind == EntryKind.PURCHASE
        and entry.status == EntryStatus.APPROVED
        and entry.expires_at is not None
        and entry.expires_at > now
    )


def is_expired_accrual(entry, now: datetime) -> bool:
    return (
        entry.kind == EntryKind.PURCHASE
        and entry.status == EntryStatus.APPROVED
        and entry.expires_at is not None
        and entry.expires_at <= now
    )


def is_approved_redemption(entry) -> bool:
    return entry.kind == EntryKind.REDEMPTION and entry.status == EntryStatus.APPROVED


def next_expiring(entries: Iterable, now: datetime):
    active = [e for e in entries if is_active_accrual(e, now)]
    if not active:
        return None
    # same-month purchases share expires_at; the oldest accrual goes first
    return min(active, key=lambda e: (e.expires_at, e.created_at, e.id))


def compute_balance(entries: Iterable, now: datetime) -> DerivedBalance:
    entries = list(entries)

    accrued = ZERO
    redeemed = ZERO
    expired = ZERO
    for e in entries:
        if is_active_accrual(e, now):
            accrued += to_money(e.cashback_amount)
        elif is_approved_redemption(e):
            redeemed += to_money(e.cashback_amount)
        elif is_expired_accrual(e, now):
            expired += to_money(e.cashback_amount)

    available = max(ZERO, accrued + redeemed)

    soonest = next_expiring(entries, now)
    return DerivedBalance(
        available_balance=to_money(available),
        next_expiring_amount=to_money(soonest.cashback_amount) if soonest is not None else None,
        next_expiring_date=soonest.expires_at if soonest is not None else None,
        expired_amount=to_money(expired),
    )

from datetime import datetime

from sqlalchemy.orm import Session

from cashback_engine.models.ledger_entry import LedgerEntry
from cashback_engine.services.balance_engine import DerivedBalance, compute_balance
from cashback_engine.services.ledger_store import LedgerFilters, LedgerQuery, LedgerStore


def get_derived_balance(db: Session, customer_id, now: datetime) -> DerivedBalance:
    entries = (
        db.query(LedgerEntry)
        .filter(LedgerEntry.customer_id == customer_id)
        .order_by(LedgerEntry.created_at.asc(), LedgerEntry.id.asc())
        .all()
    )
    return compute_balance(entries, now)


def get_available_balance(db: Session, customer_id, now: datetime):
    return get_derived_balance(db, customer_id, now).available_balance


def get_next_expiring(db: Session, customer_id, now: datetime, balance: DerivedBalance | None = None):
    balance = balance or get_derived_balance(db, customer_id, now)
    if balance.next_expiring_date is None:
        return None
    return {"amount": balance.next_expiring_amount, "date": balance.next_expiring_date}


def get_expired_cashback(db: Session, customer_id, now: datetime):
    return get_derived_balance(db, customer_id, now).expired_amount


def list_transactions(db: Session, customer_id, filters: LedgerFilters | None = None) -> LedgerQuery:
    return LedgerStore(db).query_by_customer(customer_id, filters)

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cashback_engine.config import Settings, get_settings
from cashback_engine.db import get_db
from cashback_engine.deps.identity import get_current_admin
from cashback_engine.deps.workflow import get_clock, get_workflow
from cashback_engine.models.admin import Admin
from cashback_engine.models.customer import Customer
from cashback_engine.models.ledger_entry import EntryStatus
from cashback_engine.schemas.customer import AdminLogin
from cashback_engine.schemas.ledger_entry import AdminPurchaseCreate, LedgerEntryOut, StatusDecision
from cashback_engine.services.customer_service import authenticate_admin, get_customer
from cashback_engine.services.ledger_store import LedgerFilters
from cashback_engine.services.metrics_service import customer_metrics, dashboard_summary, resolve_date_range
from cashback_engine.services.transaction_workflow import TransactionWorkflow
from cashback_engine.services.wallet_service import get_available_balance, get_expired_cashback, list_transactions


router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/login")
def admin_login(payload: AdminLogin, db: Session = Depends(get_db)):
    admin = authenticate_admin(db, email=payload.email, password=payload.password)
    return {"adminId": str(admin.id), "email": admin.email, "role": admin.role}


# ============================================================
# PENDING PURCHASES
# ============================================================
@router.get("/transactions/pending", response_model=list[LedgerEntryOut])
def list_pending(
    limit: int = 100,
    offset: int = 0,
    admin: Admin = Depends(get_current_admin),
    workflow: TransactionWorkflow = Depends(get_workflow),
):
    return workflow.store.list_pending(limit=limit, offset=offset)


@router.post("/transactions/{entry_id}/decision", response_model=LedgerEntryOut)
def decide_transaction(
    entry_id: int,
    payload: StatusDecision,
    admin: Admin = Depends(get_current_admin),
    workflow: TransactionWorkflow = Depends(get_workflow),
):
    return workflow.approve_or_reject(entry_id, EntryStatus(payload.status))


@router.post("/purchases", response_model=LedgerEntryOut, status_code=201)
def record_purchase(
    payload: AdminPurchaseCreate,
    admin: Admin = Depends(get_current_admin),
    workflow: TransactionWorkflow = Depends(get_workflow),
):
    get_customer(workflow.db, payload.customerId)
    return workflow.admin_record_purchase(payload.customerId, payload.amount, comment=payload.comment)


@router.post("/customers/{customer_id}/redeem", response_model=LedgerEntryOut, status_code=201)
def redeem_customer_balance(
    customer_id: UUID,
    admin: Admin = Depends(get_current_admin),
    workflow: TransactionWorkflow = Depends(get_workflow),
):
    get_customer(workflow.db, customer_id)
    return workflow.admin_redeem_balance(customer_id)


# ============================================================
# CUSTOMERS / METRICS
# ============================================================
@router.get("/customers")
def list_customers(
    q: str | None = None,
    limit: int = 50,
    offset: int = 0,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    query = db.query(Customer)
    if q:
        like = f"%{q.strip()}%"
        query = query.filter((Customer.name.ilike(like)) | (Customer.phone.ilike(like)))

    limit = max(1, min(limit, 200))
    offset = max(0, offset)
    now = clock()

    items = query.order_by(Customer.created_at.desc()).offset(offset).limit(limit).all()
    return {
        "items": [
            {
                "id": str(c.id),
                "name": c.name,
                "phone": c.phone,
                "email": c.email,
                "lastLoginAt": c.last_login_at,
                "availableBalance": get_available_balance(db, c.id, now),
                "expiredCashback": get_expired_cashback(db, c.id, now),
            }
            for c in items
        ],
    }


@router.get("/customers/{customer_id}/metrics")
def read_customer_metrics(
    customer_id: UUID,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    get_customer(db, customer_id)
    now = clock()
    entries = list_transactions(db, customer_id, LedgerFilters(ascending=True))
    metrics = customer_metrics(entries, now)
    return {"customerId": str(customer_id), **metrics.as_dict()}


@router.get("/metrics")
def read_dashboard_metrics(
    preset: str = Query(default="today", alias="range"),
    start: date | None = None,
    end: date | None = None,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    clock=Depends(get_clock),
):
    now = clock()
    first, last = resolve_date_range(preset, now, timezone=settings.cashback_timezone, start=start, end=end)
    return dashboard_summary(db, start=first, end=last, now=now)

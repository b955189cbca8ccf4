from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cashback_engine.db import get_db
from cashback_engine.deps.identity import get_current_customer
from cashback_engine.deps.workflow import get_workflow
from cashback_engine.errors import EntryNotFoundError
from cashback_engine.models.customer import Customer
from cashback_engine.models.ledger_entry import EntryKind, EntryStatus
from cashback_engine.schemas.ledger_entry import (
    LedgerEntryOut,
    PurchaseSubmit,
    ReceiptAttach,
    RedemptionCreate,
)
from cashback_engine.services.ledger_store import LedgerFilters
from cashback_engine.services.transaction_workflow import TransactionWorkflow
from cashback_engine.services.wallet_service import list_transactions as list_customer_transactions


router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.post("/purchases", response_model=LedgerEntryOut, status_code=201)
def submit_purchase(
    payload: PurchaseSubmit,
    customer: Customer = Depends(get_current_customer),
    workflow: TransactionWorkflow = Depends(get_workflow),
):
    return workflow.submit_purchase(
        customer.id,
        payload.amount,
        payload.latitude,
        payload.longitude,
        comment=payload.comment,
        idempotency_key=payload.idempotencyKey,
    )


@router.post("/redemptions", response_model=LedgerEntryOut, status_code=201)
def redeem(
    payload: RedemptionCreate,
    customer: Customer = Depends(get_current_customer),
    workflow: TransactionWorkflow = Depends(get_workflow),
):
    return workflow.redeem_cashback(customer.id, payload.amount)


@router.get("", response_model=list[LedgerEntryOut])
def list_transactions(
    kind: EntryKind | None = None,
    status: EntryStatus | None = None,
    createdFrom: datetime | None = None,
    createdTo: datetime | None = None,
    ascending: bool = False,
    limit: int = 50,
    offset: int = 0,
    customer: Customer = Depends(get_current_customer),
    db: Session = Depends(get_db),
):
    limit = max(1, min(limit, 200))
    offset = max(0, offset)

    filters = LedgerFilters(
        kind=kind,
        status=status,
        created_from=createdFrom,
        created_to=createdTo,
        ascending=ascending,
        limit=limit,
        offset=offset,
    )
    return list(list_customer_transactions(db, customer.id, filters))


@router.post("/{entry_id}/receipt", response_model=LedgerEntryOut)
def attach_receipt(
    entry_id: int,
    payload: ReceiptAttach,
    customer: Customer = Depends(get_current_customer),
    workflow: TransactionWorkflow = Depends(get_workflow),
):
    entry = workflow.store.get(entry_id)
    if entry.customer_id != customer.id:
        raise EntryNotFoundError()
    return workflow.store.attach_receipt(entry_id, payload.receiptUrl)

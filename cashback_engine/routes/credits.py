from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cashback_engine.config import Settings, get_settings
from cashback_engine.db import get_db
from cashback_engine.deps.identity import get_current_customer
from cashback_engine.deps.workflow import get_clock
from cashback_engine.errors import ValidationError
from cashback_engine.models.customer import Customer
from cashback_engine.schemas.credit import CreditCheckout, CreditOut, PaymentEvent
from cashback_engine.services.credit_service import (
    CHECKOUT_EVENT_STATUS,
    apply_checkout_event,
    create_pending_credit,
)


router = APIRouter(prefix="/credits", tags=["credits"])


@router.post("/checkout", response_model=CreditOut, status_code=201)
def record_checkout(
    payload: CreditCheckout,
    customer: Customer = Depends(get_current_customer),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    clock=Depends(get_clock),
):
    return create_pending_credit(
        db,
        customer_id=customer.id,
        amount=payload.amount,
        session_id=payload.sessionId,
        payment_method=payload.paymentMethod,
        validity_days=settings.credit_validity_days,
        now=clock(),
    )


@router.post("/webhook")
def payment_webhook(event: PaymentEvent, db: Session = Depends(get_db), clock=Depends(get_clock)):
    session_id = event.session_id()
    if not session_id and event.type in CHECKOUT_EVENT_STATUS:
        raise ValidationError("Evento sem sessão de pagamento")

    credit = apply_checkout_event(db, event_type=event.type, session_id=session_id, now=clock())
    return {"received": True, "creditStatus": credit.status if credit else None}

"""Purchased credits: a separate pool filled through the payment gateway.

A checkout session creates a pending credit; the gateway webhook later
approves it (``checkout.session.completed``) or rejects it
(``checkout.session.expired``). Credits never mix with cashback.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from cashback_engine.errors import DuplicateError, EntryNotFoundError, ValidationError
from cashback_engine.models.credit import Credit
from cashback_engine.services.expiration_policy import to_money


logger = logging.getLogger(__name__)

PAYMENT_METHODS = {"pix", "credit_card", "debit_card", "cash"}

CHECKOUT_EVENT_STATUS = {
    "checkout.session.completed": "approved",
    "checkout.session.expired": "rejected",
}


def create_pending_credit(
    db: Session,
    *,
    customer_id,
    amount,
    session_id: str,
    now: datetime,
    validity_days: int = 90,
    payment_method: str = "credit_card",
) -> Credit:
    amount = to_money(amount)
    if amount <= 0:
        raise ValidationError()
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError("Forma de pagamento inválida")
    if not session_id:
        raise ValidationError("Sessão de pagamento é obrigatória")

    if db.query(Credit.id).filter(Credit.external_session_id == session_id).first():
        raise DuplicateError("Sessão de pagamento já registrada")

    credit = Credit(
        customer_id=customer_id,
        amount=amount,
        status="pending",
        payment_method=payment_method,
        external_session_id=session_id,
        expires_at=now + timedelta(days=validity_days),
        created_at=now,
        updated_at=now,
    )
    db.add(credit)
    db.commit()
    db.refresh(credit)
    return credit


def apply_checkout_event(db: Session, *, event_type: str, session_id: str, now: datetime) -> Credit | None:
    new_status = CHECKOUT_EVENT_STATUS.get(event_type)
    if new_status is None:
        logger.info("ignoring payment event", extra={"event_type": event_type})
        return None

    credit = db.query(Credit).filter(Credit.external_session_id == session_id).first()
    if not credit:
        raise EntryNotFoundError("Crédito não encontrado para a sessão de pagamento")

    if credit.status != "pending":
        # gateways redeliver webhooks; a settled credit is left untouched
        logger.info(
            "payment event for settled credit",
            extra={"credit_id": str(credit.id), "status": credit.status, "event_type": event_type},
        )
        return credit

    credit.status = new_status
    credit.updated_at = now
    db.commit()
    db.refresh(credit)

    logger.info(
        "credit status updated",
        extra={"credit_id": str(credit.id), "status": new_status, "session_id": session_id},
    )
    return credit


def get_credit_balance(db: Session, customer_id, now: datetime) -> Decimal:
    total = (
        db.query(func.coalesce(func.sum(Credit.amount), 0))
        .filter(
            Credit.customer_id == customer_id,
            Credit.status == "approved",
            Credit.expires_at > now,
        )
        .scalar()
    )
    return to_money(total or 0)

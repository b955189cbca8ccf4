import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cashback_engine.db import get_db
from cashback_engine.deps.identity import get_current_customer
from cashback_engine.deps.workflow import get_clock, get_notifier
from cashback_engine.models.customer import Customer
from cashback_engine.schemas.customer import CustomerLogin, CustomerOut, CustomerRegister
from cashback_engine.services.customer_service import authenticate_customer, register_customer
from cashback_engine.services.notification_service import Notifier


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/customers", tags=["customers"])


@router.post("/register", response_model=CustomerOut, status_code=201)
def register(
    payload: CustomerRegister,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    clock=Depends(get_clock),
):
    customer = register_customer(
        db,
        phone=payload.phone,
        password=payload.password,
        name=payload.name,
        email=payload.email,
        birthdate=payload.birthdate,
        now=clock(),
    )
    try:
        notifier.notify(customer.id, "welcome")
    except Exception as e:
        logger.warning("welcome notification failed", extra={"customer_id": str(customer.id), "error": str(e)})
    return customer


@router.post("/login", response_model=CustomerOut)
def login(payload: CustomerLogin, db: Session = Depends(get_db), clock=Depends(get_clock)):
    return authenticate_customer(db, phone=payload.phone, password=payload.password, now=clock())


@router.get("/me", response_model=CustomerOut)
def read_me(customer: Customer = Depends(get_current_customer)):
    return customer

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cashback_engine.db import get_db
from cashback_engine.deps.identity import get_current_customer
from cashback_engine.deps.workflow import get_clock
from cashback_engine.models.customer import Customer
from cashback_engine.schemas.wallet import WalletOut
from cashback_engine.services.credit_service import get_credit_balance
from cashback_engine.services.wallet_service import get_derived_balance, get_next_expiring

router = APIRouter(prefix="/wallet", tags=["wallet"])


@router.get("", response_model=WalletOut)
def read_wallet(
    customer: Customer = Depends(get_current_customer),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    now = clock()
    balance = get_derived_balance(db, customer.id, now)

    return {
        "customerId": customer.id,
        "availableBalance": balance.available_balance,
        "expiredCashback": balance.expired_amount,
        "nextExpiring": get_next_expiring(db, customer.id, now, balance=balance),
        "creditBalance": get_credit_balance(db, customer.id, now),
    }

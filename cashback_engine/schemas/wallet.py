from datetime import datetime
from decimal import Decimal
from typing import Optional

from uuid import UUID

from pydantic import BaseModel


class NextExpiringOut(BaseModel):
    amount: Decimal
    date: datetime


class WalletOut(BaseModel):
    customerId: UUID
    availableBalance: Decimal
    expiredCashback: Decimal
    nextExpiring: Optional[NextExpiringOut] = None
    creditBalance: Decimal

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from uuid import UUID

from pydantic import BaseModel, Field


class CreditCheckout(BaseModel):
    sessionId: str = Field(min_length=1, max_length=200)
    amount: Decimal = Field(default=Decimal("10.00"), gt=0)
    paymentMethod: str = "credit_card"


class PaymentEvent(BaseModel):
    type: str
    data: Dict[str, Any]

    def session_id(self) -> Optional[str]:
        obj = self.data.get("object") or {}
        return obj.get("id") if isinstance(obj, dict) else None


class CreditOut(BaseModel):
    id: UUID
    customer_id: UUID
    amount: Decimal
    status: str
    payment_method: str
    external_session_id: Optional[str] = None
    expires_at: datetime
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from uuid import UUID

from pydantic import BaseModel, Field


class PurchaseSubmit(BaseModel):
    amount: Decimal = Field(gt=0)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    comment: Optional[str] = Field(default=None, max_length=500)
    idempotencyKey: Optional[str] = Field(default=None, max_length=150)


class RedemptionCreate(BaseModel):
    amount: Decimal = Field(gt=0)


class AdminPurchaseCreate(BaseModel):
    customerId: UUID
    amount: Decimal = Field(gt=0)
    comment: Optional[str] = Field(default=None, max_length=500)


class StatusDecision(BaseModel):
    status: Literal["approved", "rejected"]


class ReceiptAttach(BaseModel):
    receiptUrl: str = Field(min_length=1, max_length=500)


class LedgerEntryOut(BaseModel):
    id: int
    customer_id: UUID

    amount: Decimal
    cashback_amount: Decimal

    kind: str
    status: str

    expires_at: Optional[datetime] = None

    latitude: Optional[float] = None
    longitude: Optional[float] = None
    store_id: Optional[str] = None
    receipt_url: Optional[str] = None
    comment: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

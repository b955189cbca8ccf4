from datetime import date, datetime
from typing import Optional

from uuid import UUID

from pydantic import BaseModel


class CustomerRegister(BaseModel):
    phone: str
    password: str

    name: Optional[str] = None
    email: Optional[str] = None
    birthdate: Optional[date] = None


class CustomerLogin(BaseModel):
    phone: str
    password: str


class AdminLogin(BaseModel):
    email: str
    password: str


class CustomerOut(BaseModel):
    id: UUID
    name: Optional[str] = None
    phone: str
    email: Optional[str] = None
    birthdate: Optional[date] = None

    created_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None

    class Config:
        from_attributes = True

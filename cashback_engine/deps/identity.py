from uuid import UUID

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from cashback_engine.db import get_db
from cashback_engine.models.admin import Admin
from cashback_engine.models.customer import Customer


def _parse_id(value: str | None, header: str) -> UUID:
    if not value:
        raise HTTPException(status_code=401, detail=f"Missing identity. Provide {header} header.")
    try:
        return UUID(value)
    except ValueError:
        raise HTTPException(status_code=401, detail=f"Invalid {header} header.")


def get_current_customer(
    x_customer_id: str | None = Header(default=None, alias="X-Customer-Id"),
    db: Session = Depends(get_db),
) -> Customer:
    customer_id = _parse_id(x_customer_id, "X-Customer-Id")
    customer = db.query(Customer).filter(Customer.id == customer_id).first()
    if not customer:
        raise HTTPException(status_code=401, detail="Unknown customer")
    return customer


def get_current_admin(
    x_admin_id: str | None = Header(default=None, alias="X-Admin-Id"),
    db: Session = Depends(get_db),
) -> Admin:
    admin_id = _parse_id(x_admin_id, "X-Admin-Id")
    admin = db.query(Admin).filter(Admin.id == admin_id).first()
    if not admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return admin

import uuid
from sqlalchemy import Column, ForeignKey, Numeric, String, TIMESTAMP, Uuid
from sqlalchemy.sql import func
from cashback_engine.db import Base


class Credit(Base):
    __tablename__ = "credits"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    customer_id = Column(Uuid(as_uuid=True), ForeignKey("customers.id"), nullable=False)

    amount = Column(Numeric(12, 2), nullable=False)
    status = Column(String(20), nullable=False, default="pending")  # pending / approved / rejected
    payment_method = Column(String(20), nullable=False, default="credit_card")

    external_session_id = Column(String(200), unique=True)

    expires_at = Column(TIMESTAMP, nullable=False)

    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())

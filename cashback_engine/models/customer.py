import uuid
from sqlalchemy import Column, String, TIMESTAMP, Date, Uuid
from sqlalchemy.sql import func
from cashback_engine.db import Base


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    name = Column(String(200))
    phone = Column(String(30), nullable=False, unique=True)
    email = Column(String(255), unique=True)
    password_hash = Column(String(255))

    birthdate = Column(Date)

    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())
    last_login_at = Column(TIMESTAMP)

import uuid
from sqlalchemy import Column, String, TIMESTAMP, Uuid
from sqlalchemy.sql import func
from cashback_engine.db import Base


class Admin(Base):
    __tablename__ = "admins"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="admin")

    created_at = Column(TIMESTAMP, server_default=func.now())

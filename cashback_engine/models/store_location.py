from sqlalchemy import Column, Float, String
from cashback_engine.db import Base


class StoreLocation(Base):
    __tablename__ = "store_locations"

    id = Column(String(100), primary_key=True)

    name = Column(String(200), nullable=False)
    address = Column(String(300))

    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    radius_meters = Column(Float, nullable=False, default=40)

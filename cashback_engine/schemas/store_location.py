from typing import Optional

from pydantic import BaseModel


class StoreLocationOut(BaseModel):
    id: str
    name: str
    address: Optional[str] = None
    latitude: float
    longitude: float
    radius_meters: float

    class Config:
        from_attributes = True

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cashback_engine.db import get_db
from cashback_engine.models.store_location import StoreLocation
from cashback_engine.schemas.store_location import StoreLocationOut


router = APIRouter(prefix="/stores", tags=["stores"])


@router.get("", response_model=list[StoreLocationOut])
def list_stores(db: Session = Depends(get_db)):
    return db.query(StoreLocation).order_by(StoreLocation.id.asc()).all()

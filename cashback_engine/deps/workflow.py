from fastapi import Depends
from sqlalchemy.orm import Session

from cashback_engine.config import Settings, get_settings
from cashback_engine.db import get_db
from cashback_engine.services.geofence import StoreGeofence, load_geofence
from cashback_engine.services.ledger_store import utcnow
from cashback_engine.services.notification_service import Notifier, build_notifier
from cashback_engine.services.transaction_workflow import TransactionWorkflow


def get_clock():
    return utcnow


def get_geofence(db: Session = Depends(get_db)) -> StoreGeofence:
    return load_geofence(db)


def get_notifier(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> Notifier:
    return build_notifier(settings, db)


def get_workflow(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    geofence: StoreGeofence = Depends(get_geofence),
    notifier: Notifier = Depends(get_notifier),
    clock=Depends(get_clock),
) -> TransactionWorkflow:
    return TransactionWorkflow(db, settings=settings, geofence=geofence, notifier=notifier, clock=clock)

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy.orm import Session


EARTH_RADIUS_METERS = 6371e3


@dataclass(frozen=True)
class StoreSite:
    id: str
    name: str
    latitude: float
    longitude: float
    radius_meters: float
    address: str | None = None


@dataclass(frozen=True)
class ClosestStore:
    store_id: str
    name: str
    distance_meters: float


DEFAULT_STORES: tuple[StoreSite, ...] = (
    StoreSite(
        id="store1",
        name="Loja 1",
        address="Rua Dois, 2130a - Residencial 1 - Cágado",
        latitude=-3.859981833155958,
        longitude=-38.63311136233465,
        radius_meters=40,
    ),
    StoreSite(
        id="store2",
        name="Loja 2",
        address="Rua Um, 1614c - Residencial 1 - Cágado",
        latitude=-3.8585200957980037,
        longitude=-38.63444706015108,
        radius_meters=40,
    ),
)


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def format_distance(meters: float) -> str:
    if meters < 1000:
        return f"{round(meters)} metros"
    return f"{meters / 1000:.1f} km"


class StoreGeofence:
    """On-premises check against a fixed set of store sites."""

    def __init__(self, stores: Iterable[StoreSite]):
        self.stores = tuple(stores)

    def is_on_premises(self, latitude: float, longitude: float) -> bool:
        return any(
            haversine_meters(latitude, longitude, s.latitude, s.longitude) <= s.radius_meters
            for s in self.stores
        )

    def closest_store(self, latitude: float, longitude: float) -> ClosestStore | None:
        closest = None
        for s in self.stores:
            distance = haversine_meters(latitude, longitude, s.latitude, s.longitude)
            if closest is None or distance < closest.distance_meters:
                closest = ClosestStore(store_id=s.id, name=s.name, distance_meters=distance)
        return closest


def load_geofence(db: Session) -> StoreGeofence:
    from cashback_engine.models.store_location import StoreLocation

    rows = db.query(StoreLocation).order_by(StoreLocation.id.asc()).all()
    if not rows:
        return StoreGeofence(DEFAULT_STORES)

    return StoreGeofence(
        StoreSite(
            id=r.id,
            name=r.name,
            address=r.address,
            latitude=r.latitude,
            longitude=r.longitude,
            radius_meters=r.radius_meters,
        )
        for r in rows
    )


def seed_store_locations(db: Session) -> int:
    from cashback_engine.models.store_location import StoreLocation

    if db.query(StoreLocation.id).first():
        return 0

    for s in DEFAULT_STORES:
        db.add(
            StoreLocation(
                id=s.id,
                name=s.name,
                address=s.address,
                latitude=s.latitude,
                longitude=s.longitude,
                radius_meters=s.radius_meters,
            )
        )
    db.commit()
    return len(DEFAULT_STORES)

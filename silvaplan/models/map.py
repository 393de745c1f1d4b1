"""Map context models."""

from typing import Literal

from pydantic import BaseModel

LocationSource = Literal["picked", "gps", "view"]


class GeoPoint(BaseModel):
    """A latitude/longitude pair."""

    lat: float
    lng: float


class MapView(GeoPoint):
    """Current map viewport center and zoom."""

    zoom: float


class MapContext(BaseModel):
    """Snapshot of where the user is looking or pointing."""

    picked_location: GeoPoint | None = None
    user_gps: GeoPoint | None = None
    current_view: MapView | None = None


class BestLocation(GeoPoint):
    """Best available location tagged with the slot it came from."""

    source: LocationSource

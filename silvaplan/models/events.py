"""Calendar, alert and weather records exchanged with the data collaborators."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum

from cuid2 import cuid_wrapper

cuid = cuid_wrapper()


class EventType(StrEnum):
    PLANTING = "planting"
    MAINTENANCE = "maintenance"
    OTHER = "other"


class EventStatus(StrEnum):
    PLANNED = "planned"
    DONE = "done"
    CANCELED = "canceled"


class AlertLevel(StrEnum):
    INFO = "info"
    WARNING = "warning"
    DANGER = "danger"


@dataclass
class EventItem:
    """Plant scheduled for an event."""

    species_name_latin: str
    quantity: int = 1
    size_class: str | None = None
    id: str = field(default_factory=lambda: cuid())


@dataclass
class CalendarEvent:
    """Planned planting or maintenance event."""

    title: str
    type: EventType
    status: EventStatus
    start_at: datetime
    lat: float
    lng: float
    address: str | None = None
    notes: str | None = None
    items: list[EventItem] = field(default_factory=list)
    end_at: datetime | None = None
    radius_m: int | None = None
    id: str | None = None


@dataclass
class MeteoAlert:
    """Weather alert valid for an interval around a location."""

    id: str
    level: AlertLevel
    type: str  # drought, storm, heat, frost
    title: str
    description: str
    valid_from: datetime
    valid_to: datetime
    affected_lat: float
    affected_lng: float


@dataclass
class DailyForecast:
    """One day of forecast data."""

    date: date
    temperature_max: float
    temperature_min: float
    precipitation: float
    soil_moisture: float | None  # 0-1 volumetric fraction, top 1 cm; None when not reported
    precipitation_probability: float = 0.0
    soil_temperature: float | None = None
    weather_code: int = 0


@dataclass
class CurrentWeather:
    """Point-in-time weather conditions."""

    temperature: float
    wind_speed: float
    precipitation: float
    soil_moisture: float | None
    weather_code: int = 0

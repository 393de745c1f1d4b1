"""Planting helpers: event drafts and species-specific planting conditions."""

from collections.abc import Iterable
from dataclasses import dataclass

from silvaplan.models.events import CalendarEvent, DailyForecast, EventItem, EventStatus, EventType
from silvaplan.models.map import GeoPoint
from silvaplan.utils.dates import parse_date
from silvaplan.utils.geo import assert_valid_lng_lat

UNSPECIFIED_SPECIES = "Unspecified"
MAX_PLANTING_PRECIPITATION_MM = 5.0
FROST_SAFE_MIN_TEMPERATURE_C = 2.0


@dataclass(frozen=True)
class SpeciesConditions:
    """Weather a species tolerates on its planting day."""

    temp_min: float
    temp_max: float
    moisture_min: float
    frost_sensitive: bool


DEFAULT_SPECIES_CONDITIONS = SpeciesConditions(temp_min=5, temp_max=25, moisture_min=0.2, frost_sensitive=True)

SPECIES_CONDITIONS: dict[str, SpeciesConditions] = {
    "quercus robur": SpeciesConditions(5, 25, 0.2, True),
    "quercus petraea": SpeciesConditions(5, 25, 0.2, True),
    "tilia cordata": SpeciesConditions(5, 22, 0.25, True),
    "acer platanoides": SpeciesConditions(5, 23, 0.2, True),
    "fagus sylvatica": SpeciesConditions(5, 20, 0.3, True),
    "betula pendula": SpeciesConditions(3, 25, 0.15, False),
    "fraxinus excelsior": SpeciesConditions(5, 24, 0.25, True),
    "carpinus betulus": SpeciesConditions(5, 22, 0.25, True),
    "sorbus aucuparia": SpeciesConditions(3, 22, 0.2, False),
    "aesculus hippocastanum": SpeciesConditions(5, 22, 0.25, True),
    "populus nigra": SpeciesConditions(5, 28, 0.3, False),
    "platanus hispanica": SpeciesConditions(8, 28, 0.2, True),
    "pinus sylvestris": SpeciesConditions(0, 25, 0.15, False),
    "picea abies": SpeciesConditions(0, 22, 0.2, False),
    "malus domestica": SpeciesConditions(5, 22, 0.25, True),
    "pyrus communis": SpeciesConditions(5, 22, 0.25, True),
}


def get_species_conditions(species: str) -> SpeciesConditions:
    """Conditions for a Latin species name; unknown species get the defaults."""
    return SPECIES_CONDITIONS.get(species.strip().lower(), DEFAULT_SPECIES_CONDITIONS)


def is_suitable_day(day: DailyForecast, conditions: SpeciesConditions) -> bool:
    if not conditions.temp_min < day.temperature_min:
        return False
    if not day.temperature_max < conditions.temp_max:
        return False
    if not day.precipitation < MAX_PLANTING_PRECIPITATION_MM:
        return False
    if day.soil_moisture is not None and not day.soil_moisture > conditions.moisture_min:
        return False
    if conditions.frost_sensitive and not day.temperature_min > FROST_SAFE_MIN_TEMPERATURE_C:
        return False
    return True


def suitable_days(forecast: Iterable[DailyForecast], conditions: SpeciesConditions) -> list[DailyForecast]:
    """Forecast days fit for planting, in forecast order."""
    return [day for day in forecast if is_suitable_day(day, conditions)]


@dataclass
class PlanEventInput:
    """Data collected by the planning form or a tool call."""

    title: str
    type: EventType
    date: str
    picked_location: GeoPoint | None
    address: str | None = None
    notes: str | None = None
    species: str | None = None
    quantity: int | None = None
    items: list[EventItem] | None = None


def build_plan_event(plan: PlanEventInput) -> CalendarEvent:
    """Build a planned event draft (no id) at the picked location.

    Planting events get the explicit items when a list is given, otherwise a
    single item from species/quantity ("Unspecified" x1 when neither is
    given); other event types carry no items.

    Raises:
        ValueError: If no location is picked or the date is malformed
        ValidationError: If the picked coordinates are invalid
    """
    if plan.picked_location is None:
        raise ValueError("Missing location")

    assert_valid_lng_lat(plan.picked_location.lat, plan.picked_location.lng, "event")

    items: list[EventItem] = []
    if plan.type == EventType.PLANTING:
        items = list(plan.items) if plan.items is not None else [
            EventItem(species_name_latin=plan.species or UNSPECIFIED_SPECIES, quantity=int(plan.quantity or 1))
        ]

    return CalendarEvent(
        title=plan.title,
        type=plan.type,
        status=EventStatus.PLANNED,
        start_at=parse_date(plan.date),
        lat=plan.picked_location.lat,
        lng=plan.picked_location.lng,
        address=plan.address or None,
        notes=plan.notes,
        items=items,
    )

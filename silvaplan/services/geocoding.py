"""Location resolution: free-text addresses and coordinates to concrete points."""

import re
from dataclasses import dataclass
from typing import Any

from silvaplan.clients.nominatim import NominatimClient
from silvaplan.models.map import GeoPoint
from silvaplan.utils.geo import is_finite_number, is_valid_lng_lat
from silvaplan.utils.logging import get_logger

logger = get_logger(__name__)

ROAD_KEYS = ("road", "pedestrian", "footway", "path")
LOCALITY_KEYS = ("city", "town", "village", "suburb", "city_district", "municipality")


@dataclass(frozen=True)
class ScoreWeights:
    """Points awarded when a candidate's address part appears in the query.

    Empirically chosen; tune here rather than in the scoring code.
    """

    house_number: int = 3
    road: int = 2
    locality: int = 2
    postcode: int = 1


@dataclass(frozen=True)
class StructuredQuery:
    """Street/city split guessed from a free-text address."""

    has_house_number: bool
    street: str | None = None
    city: str | None = None


@dataclass
class GeocodeCandidate:
    """Provider result with its disambiguation score."""

    raw: dict[str, Any]
    lat: float
    lng: float
    score: int


def normalize(value: str) -> str:
    return value.strip().lower()


def _includes_normalized(query: str, value: Any) -> bool:
    if not isinstance(value, str) or not value.strip():
        return False
    return normalize(value) in query


def _first_present(address: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if address.get(key) is not None:
            return address[key]
    return None


def parse_structured_query(value: str) -> StructuredQuery:
    """Split a query at the first token containing a digit.

    Tokens up to and including that token form the street, the rest the city.
    """
    tokens = [token for token in re.split(r"\s+", value.replace(",", " ")) if token]

    house_index = next((i for i, token in enumerate(tokens) if re.search(r"\d", token)), None)
    if house_index is None:
        return StructuredQuery(has_house_number=False)

    street = " ".join(tokens[: house_index + 1])
    city = " ".join(tokens[house_index + 1 :])
    return StructuredQuery(has_house_number=True, street=street or None, city=city or None)


def score_candidate(query: str, candidate: dict[str, Any], weights: ScoreWeights) -> int:
    """Score a candidate by which of its address parts occur in the normalized query."""
    address = candidate.get("address") or {}
    if not isinstance(address, dict):
        return 0

    score = 0
    if _includes_normalized(query, address.get("house_number")):
        score += weights.house_number
    if _includes_normalized(query, _first_present(address, ROAD_KEYS)):
        score += weights.road
    if _includes_normalized(query, _first_present(address, LOCALITY_KEYS)):
        score += weights.locality
    if _includes_normalized(query, address.get("postcode")):
        score += weights.postcode
    return score


def _candidate_coordinates(candidate: dict[str, Any]) -> tuple[float, float] | None:
    try:
        lat = float(candidate.get("lat"))  # type: ignore[arg-type]
        lng = float(candidate.get("lon"))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if not is_valid_lng_lat(lat, lng):
        return None
    return lat, lng


def pick_best_candidate(query: str, data: list[Any], weights: ScoreWeights) -> GeocodeCandidate | None:
    """Highest-scoring candidate with valid coordinates; ties keep provider order."""
    candidates: list[GeocodeCandidate] = []
    for item in data:
        if not isinstance(item, dict):
            continue
        coordinates = _candidate_coordinates(item)
        if coordinates is None:
            continue
        lat, lng = coordinates
        candidates.append(GeocodeCandidate(raw=item, lat=lat, lng=lng, score=score_candidate(query, item, weights)))

    if not candidates:
        return None

    # sorted() is stable, so equal scores stay in provider order
    return sorted(candidates, key=lambda c: c.score, reverse=True)[0]


def has_house_number_candidate(data: list[Any]) -> bool:
    """True if any candidate carries a non-blank house number."""
    for item in data:
        if not isinstance(item, dict):
            continue
        address = item.get("address")
        if not isinstance(address, dict):
            continue
        house_number = address.get("house_number")
        if isinstance(house_number, str) and house_number.strip():
            return True
    return False


class Geocoder:
    """Forward and reverse geocoding with candidate disambiguation."""

    def __init__(self, client: NominatimClient | None = None, weights: ScoreWeights | None = None):
        self.client = client or NominatimClient()
        self.weights = weights or ScoreWeights()

    async def forward_geocode(self, address: str) -> GeoPoint | None:
        """Resolve free text to coordinates, or None when nothing valid matches.

        Free-text queries containing a house number often come back as street
        centroids without one; in that case a single structured street/city
        query is tried and replaces the first result set when it is non-empty.
        """
        trimmed = address.strip()
        if not trimmed:
            return None

        structured = parse_structured_query(trimmed)
        query = normalize(trimmed)

        initial = await self.client.search(q=trimmed)
        if not initial:
            logger.info(f"No geocoding candidates for {trimmed!r}")
            return None

        data = initial
        if structured.has_house_number and structured.street and not has_house_number_candidate(initial):
            logger.debug(f"Retrying {trimmed!r} as structured query street={structured.street!r} city={structured.city!r}")
            retry = await self.client.search(street=structured.street, city=structured.city)
            if retry:
                data = retry

        best = pick_best_candidate(query, data, self.weights)
        if best is None:
            logger.info(f"No valid geocoding candidate for {trimmed!r}")
            return None

        logger.debug(f"Geocoded {trimmed!r} to {best.lat}, {best.lng} (score {best.score})")
        return GeoPoint(lat=best.lat, lng=best.lng)

    async def reverse_geocode(self, lat: float, lng: float) -> str | None:
        """Human-readable label for a coordinate, or None."""
        data = await self.client.reverse(lat, lng)
        if not data:
            return None
        label = data.get("display_name")
        if isinstance(label, str) and label.strip():
            return label.strip()
        return None


async def resolve_event_location(
    geocoder: Geocoder,
    lat: Any = None,
    lng: Any = None,
    address: str | None = None,
) -> GeoPoint | None:
    """Turn explicit coordinates or an address into a point.

    Explicit finite coordinates always win over the address. None means the
    user has to be asked; it must never be replaced by a default location.
    """
    if is_finite_number(lat) and is_finite_number(lng):
        return GeoPoint(lat=lat, lng=lng)

    if isinstance(address, str) and address.strip():
        return await geocoder.forward_geocode(address)

    return None

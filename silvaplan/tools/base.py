"""Base types and definitions for tools."""

import copy
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from silvaplan.config import DefaultLocation
from silvaplan.services.alerts import AlertService
from silvaplan.services.events import EventStore
from silvaplan.services.geocoding import Geocoder
from silvaplan.services.map_context import MapContextBridge
from silvaplan.services.weather import WeatherService
from silvaplan.utils.geo import is_finite_number


class ToolName(StrEnum):
    """Tool names exposed to the model; these strings are the external contract."""

    CREATE_EVENT = "createEvent"
    EDIT_EVENT = "editEvent"
    DELETE_EVENT = "deleteEvent"
    DELETE_EVENTS = "deleteEvents"
    GET_EVENTS = "getEvents"
    GET_WEATHER = "getWeather"
    GET_ALERTS = "getAlerts"
    ANALYZE_RISKS = "analyzeRisks"
    SUGGEST_PLANTING_DATE = "suggestPlantingDate"
    GET_MAP_CONTEXT = "getMapContext"


MUTATING_TOOLS = frozenset(
    {ToolName.CREATE_EVENT, ToolName.EDIT_EVENT, ToolName.DELETE_EVENT, ToolName.DELETE_EVENTS}
)


def is_failed_result(name: str, result: dict[str, Any]) -> bool:
    """A result failed if it says so, or if a mutating tool did not confirm success."""
    success = result.get("success")
    if success is False:
        return True
    return success is None and name in MUTATING_TOOLS


class ToolInput(BaseModel):
    """Base for tool argument models; wire names are camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class EmptyInput(ToolInput):
    """Empty input schema for tools that don't require parameters."""


@dataclass
class ResolvedLocation:
    lat: float
    lng: float
    source: str


@dataclass
class ToolContext:
    """Everything a tool handler may touch during one session's turn."""

    map_context: MapContextBridge
    event_store: EventStore
    weather: WeatherService
    alerts: AlertService
    geocoder: Geocoder
    default_location: DefaultLocation

    def lookup_location(self, lat: Any = None, lng: Any = None) -> ResolvedLocation:
        """Location for read-only lookups: explicit, then the map, then the default."""
        if is_finite_number(lat) and is_finite_number(lng):
            return ResolvedLocation(lat=lat, lng=lng, source="explicit")
        best = self.map_context.get_best_location()
        if best is not None:
            return ResolvedLocation(lat=best.lat, lng=best.lng, source=best.source)
        return ResolvedLocation(lat=self.default_location.lat, lng=self.default_location.lng, source="default")


ToolHandler = Callable[[Any, ToolContext], Awaitable[dict[str, Any]]]

_SCHEMA_KEYS = frozenset({"type", "description", "properties", "required", "enum", "items"})


def normalize_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Reduce a pydantic JSON schema to the subset every provider accepts.

    `$ref`s are inlined, `anyOf: [T, null]` and `allOf: [T]` become `T`, and keywords outside
    the subset (title, default, pattern, bounds...) are dropped.
    """
    definitions = schema.get("$defs", {})

    def resolve(node: Any) -> Any:
        if isinstance(node, list):
            return [resolve(item) for item in node]
        if not isinstance(node, dict):
            return node

        if "$ref" in node:
            target = copy.deepcopy(definitions[node["$ref"].split("/")[-1]])
            merged = {**target, **{k: v for k, v in node.items() if k != "$ref"}}
            return resolve(merged)

        for combinator in ("anyOf", "allOf"):
            if combinator not in node:
                continue
            variants = [v for v in node[combinator] if v.get("type") != "null"]
            if len(variants) == 1:
                merged = {**variants[0], **{k: v for k, v in node.items() if k != combinator}}
                return resolve(merged)

        result: dict[str, Any] = {}
        for key, value in node.items():
            if key == "properties":
                result[key] = {name: resolve(prop) for name, prop in value.items()}
            elif key == "items":
                result[key] = resolve(value)
            elif key in _SCHEMA_KEYS:
                result[key] = value
        return result

    normalized = resolve(schema)
    normalized.setdefault("type", "object")
    normalized.setdefault("properties", {})
    return normalized


@dataclass
class ToolDefinition:
    """Definition of a tool available to the assistant."""

    name: ToolName
    description: str
    input_schema_class: type[ToolInput]
    handler: ToolHandler

    def get_json_schema(self) -> dict[str, Any]:
        """Provider-neutral JSON schema of this tool's input."""
        return normalize_schema(self.input_schema_class.model_json_schema(by_alias=True))

    def parse_input(self, raw_input: dict[str, Any]) -> ToolInput:
        """Parse and validate tool input."""
        return self.input_schema_class.model_validate(raw_input)

    def function_spec(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": str(self.name),
                "description": self.description,
                "parameters": self.get_json_schema(),
            },
        }

"""Read-only weather tools: forecast, alerts, risk analysis and planting suggestions."""

import asyncio
from typing import Any

from pydantic import Field

from silvaplan.services.planting import get_species_conditions, suitable_days
from silvaplan.services.risk import ANALYSIS_WINDOW_DAYS, count_candidates, evaluate_risks
from silvaplan.services.weather import get_weather_description
from silvaplan.tools.base import EmptyInput, ToolContext, ToolDefinition, ToolInput, ToolName
from silvaplan.utils.dates import format_date, utc_now

MIN_FORECAST_DAYS = 1
MAX_FORECAST_DAYS = 16
DEFAULT_FORECAST_DAYS = 7
PLANTING_FORECAST_DAYS = 14


class GetWeatherInput(ToolInput):
    """Input schema for getWeather."""

    lat: float | None = Field(None, description="Latitude (default: the map location or the default location)")
    lng: float | None = Field(None, description="Longitude (default: the map location or the default location)")
    days: int | None = Field(None, description="Number of forecast days (default: 7)")


class AnalyzeRisksInput(ToolInput):
    """Input schema for analyzeRisks."""

    event_id: str | None = Field(None, description="ID of one event to analyze, or all upcoming events")


class SuggestPlantingDateInput(ToolInput):
    """Input schema for suggestPlantingDate."""

    species: str = Field(..., min_length=1, description='Latin species name, e.g. "Tilia cordata"')
    lat: float | None = Field(None, description="Latitude")
    lng: float | None = Field(None, description="Longitude")


def _percent(value: float | None) -> str:
    if value is None:
        return "unknown"
    return f"{value * 100:.0f}%"


def create_get_weather_tool() -> ToolDefinition:
    async def get_weather(params: GetWeatherInput, context: ToolContext) -> dict[str, Any]:
        location = context.lookup_location(params.lat, params.lng)
        days = min(max(params.days or DEFAULT_FORECAST_DAYS, MIN_FORECAST_DAYS), MAX_FORECAST_DAYS)

        current, forecast = await asyncio.gather(
            context.weather.fetch_current_weather(location.lat, location.lng),
            context.weather.fetch_weather_forecast(location.lat, location.lng, days),
        )

        return {
            "location": {"lat": location.lat, "lng": location.lng, "source": location.source},
            "current": {
                "temperature": f"{current.temperature:.1f}°C",
                "conditions": get_weather_description(current.weather_code),
                "soilMoisture": _percent(current.soil_moisture),
                "wind": f"{current.wind_speed:.0f} km/h",
                "precipitation": f"{current.precipitation:.1f} mm",
            }
            if current
            else None,
            "forecast": [
                {
                    "date": format_date(day.date),
                    "tempMax": f"{day.temperature_max:.0f}°C",
                    "tempMin": f"{day.temperature_min:.0f}°C",
                    "precipitation": f"{day.precipitation:.1f} mm",
                    "soilMoisture": _percent(day.soil_moisture),
                    "conditions": get_weather_description(day.weather_code),
                }
                for day in forecast
            ],
        }

    return ToolDefinition(
        name=ToolName.GET_WEATHER,
        description="Get the weather forecast including soil moisture. Use for planning or checking conditions.",
        input_schema_class=GetWeatherInput,
        handler=get_weather,
    )


def create_get_alerts_tool() -> ToolDefinition:
    async def get_alerts(params: EmptyInput, context: ToolContext) -> dict[str, Any]:
        location = context.lookup_location()
        alerts = await context.alerts.fetch_alerts(location.lat, location.lng)
        return {
            "count": len(alerts),
            "alerts": [
                {
                    "type": alert.type,
                    "level": str(alert.level),
                    "title": alert.title,
                    "description": alert.description,
                    "validUntil": format_date(alert.valid_to),
                }
                for alert in alerts
            ],
        }

    return ToolDefinition(
        name=ToolName.GET_ALERTS,
        description="Get current weather alerts (drought, frost, storms, heat).",
        input_schema_class=EmptyInput,
        handler=get_alerts,
    )


def create_analyze_risks_tool() -> ToolDefinition:
    async def analyze_risks(params: AnalyzeRisksInput, context: ToolContext) -> dict[str, Any]:
        location = context.default_location
        events = await context.event_store.fetch_events()
        alerts = await context.alerts.fetch_alerts(location.lat, location.lng)
        forecast = await context.weather.fetch_weather_forecast(location.lat, location.lng, ANALYSIS_WINDOW_DAYS)

        now = utc_now()
        warnings = evaluate_risks(
            events, alerts, forecast, now=now, window_days=ANALYSIS_WINDOW_DAYS, event_id=params.event_id
        )
        analyzed = count_candidates(events, now, ANALYSIS_WINDOW_DAYS, params.event_id)

        if not warnings:
            return {"analyzedEvents": analyzed, "message": "No risks found for upcoming events."}

        return {
            "analyzedEvents": analyzed,
            "risksFound": len(warnings),
            "details": [
                {
                    "eventId": warning.event_id,
                    "eventTitle": warning.event_title,
                    "eventDate": format_date(warning.event_date),
                    "severity": warning.severity,
                    "risks": list(warning.risks),
                }
                for warning in warnings
            ],
        }

    return ToolDefinition(
        name=ToolName.ANALYZE_RISKS,
        description="Analyze weather risks for planned events. Proactively warn about problems.",
        input_schema_class=AnalyzeRisksInput,
        handler=analyze_risks,
    )


def create_suggest_planting_date_tool() -> ToolDefinition:
    async def suggest_planting_date(params: SuggestPlantingDateInput, context: ToolContext) -> dict[str, Any]:
        location = context.lookup_location(params.lat, params.lng)
        forecast = await context.weather.fetch_weather_forecast(location.lat, location.lng, PLANTING_FORECAST_DAYS)
        conditions = get_species_conditions(params.species)
        requirements = {
            "tempRange": f"{conditions.temp_min:g}-{conditions.temp_max:g}°C",
            "minMoisture": _percent(conditions.moisture_min),
            "frostSensitive": conditions.frost_sensitive,
        }

        suitable = suitable_days(forecast, conditions)
        if not suitable:
            return {
                "species": params.species,
                "suggestion": f"No ideal conditions for {params.species} in the next {PLANTING_FORECAST_DAYS} days.",
                "alternatives": [
                    {
                        "date": format_date(day.date),
                        "conditions": (
                            f"{day.temperature_min:.0f}-{day.temperature_max:.0f}°C, "
                            f"precipitation {day.precipitation:.0f} mm"
                        ),
                    }
                    for day in forecast[:3]
                ],
                "speciesRequirements": requirements,
            }

        best = suitable[0]
        return {
            "species": params.species,
            "suggestedDate": format_date(best.date),
            "conditions": {
                "temperature": f"{best.temperature_min:.0f} to {best.temperature_max:.0f}°C",
                "precipitation": f"{best.precipitation:.0f} mm",
                "soilMoisture": _percent(best.soil_moisture),
            },
            "speciesRequirements": requirements,
            "reason": f"Optimal conditions for {params.species}",
        }

    return ToolDefinition(
        name=ToolName.SUGGEST_PLANTING_DATE,
        description="Suggest the best planting date for a species based on the weather forecast.",
        input_schema_class=SuggestPlantingDateInput,
        handler=suggest_planting_date,
    )

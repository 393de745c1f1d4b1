"""Weather data from the Open-Meteo forecast API."""

import time
from collections.abc import Callable
from datetime import date
from typing import Any, Protocol

import httpx
from cachetools import TTLCache

from silvaplan.models.events import CurrentWeather, DailyForecast
from silvaplan.utils.logging import get_logger

logger = get_logger(__name__)

OPEN_METEO_URL = "https://api.open-meteo.com/v1/forecast"
FORECAST_CACHE_MINUTES = 60
CURRENT_CACHE_MINUTES = 15
CACHE_MAX_LOCATIONS = 256

WEATHER_CODE_DESCRIPTIONS = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Fog",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    66: "Light freezing rain",
    67: "Heavy freezing rain",
    71: "Slight snow fall",
    73: "Moderate snow fall",
    75: "Heavy snow fall",
    77: "Snow grains",
    80: "Slight rain showers",
    81: "Moderate rain showers",
    82: "Violent rain showers",
    85: "Slight snow showers",
    86: "Heavy snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with slight hail",
    99: "Thunderstorm with heavy hail",
}


def get_weather_description(code: int) -> str:
    return WEATHER_CODE_DESCRIPTIONS.get(code, "Unknown")


class WeatherService(Protocol):
    """Interface for weather data providers."""

    async def fetch_current_weather(self, lat: float, lng: float) -> CurrentWeather | None:
        """Current conditions, or None when unavailable."""
        ...

    async def fetch_weather_forecast(self, lat: float, lng: float, days: int = 7) -> list[DailyForecast]:
        """Daily forecast starting today, or an empty list when unavailable."""
        ...


def _mean(values: list[Any]) -> float | None:
    numbers = [v for v in values if isinstance(v, int | float)]
    if not numbers:
        return None
    return sum(numbers) / len(numbers)


def _value(values: list[Any], index: int, default: float = 0.0) -> float:
    reading = _reading(values, index)
    return default if reading is None else reading


def _reading(values: list[Any], index: int) -> float | None:
    if 0 <= index < len(values) and isinstance(values[index], int | float):
        return float(values[index])
    return None


def parse_forecast(body: dict[str, Any]) -> list[DailyForecast]:
    """Convert an Open-Meteo response into daily records.

    Soil moisture and soil temperature only exist hourly; each day gets the
    mean of its 24 hourly values, or None when the provider reported none.
    """
    daily = body["daily"]
    hourly = body.get("hourly") or {}
    soil_moisture = hourly.get("soil_moisture_0_to_1cm") or []
    soil_temperature = hourly.get("soil_temperature_0cm") or []

    forecasts: list[DailyForecast] = []
    for i, day in enumerate(daily["time"]):
        hours = slice(i * 24, (i + 1) * 24)
        forecasts.append(
            DailyForecast(
                date=date.fromisoformat(day),
                temperature_max=_value(daily.get("temperature_2m_max", []), i),
                temperature_min=_value(daily.get("temperature_2m_min", []), i),
                precipitation=_value(daily.get("precipitation_sum", []), i),
                precipitation_probability=_value(daily.get("precipitation_probability_max", []), i),
                weather_code=int(_value(daily.get("weather_code", []), i)),
                soil_moisture=_mean(soil_moisture[hours]),
                soil_temperature=_mean(soil_temperature[hours]),
            )
        )
    return forecasts


def parse_current(body: dict[str, Any]) -> CurrentWeather:
    """Convert an Open-Meteo response into current conditions."""
    current = body["current"]
    hourly = (body.get("hourly") or {}).get("soil_moisture_0_to_1cm") or []

    # hourly series starts at local midnight; pick the hour of the current reading
    reading_time = current.get("time")
    hour = int(reading_time[11:13]) if isinstance(reading_time, str) and len(reading_time) >= 13 else 0
    soil_moisture = _reading(hourly, hour)
    if soil_moisture is None:
        soil_moisture = _reading(hourly, 0)

    return CurrentWeather(
        temperature=float(current["temperature_2m"]),
        weather_code=int(current.get("weather_code", 0)),
        wind_speed=float(current.get("wind_speed_10m", 0.0)),
        precipitation=float(current.get("precipitation", 0.0)),
        soil_moisture=soil_moisture,
    )


class OpenMeteoWeatherService:
    """Open-Meteo client with per-location TTL caches (forecast 60 min, current 15 min)."""

    def __init__(
        self,
        base_url: str = OPEN_METEO_URL,
        timezone: str = "Europe/Prague",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        timer: Callable[[], float] = time.monotonic,
    ):
        self.base_url = base_url
        self.timezone = timezone
        self.timeout = timeout
        self.transport = transport
        self.forecast_cache: TTLCache[str, list[DailyForecast]] = TTLCache(
            maxsize=CACHE_MAX_LOCATIONS, ttl=FORECAST_CACHE_MINUTES * 60, timer=timer
        )
        self.current_cache: TTLCache[str, CurrentWeather] = TTLCache(
            maxsize=CACHE_MAX_LOCATIONS, ttl=CURRENT_CACHE_MINUTES * 60, timer=timer
        )

    async def fetch_weather_forecast(self, lat: float, lng: float, days: int = 7) -> list[DailyForecast]:
        cache_key = f"forecast_{lat:.2f}_{lng:.2f}_{days}"
        cached = self.forecast_cache.get(cache_key)
        if cached is not None:
            return cached

        params = {
            "latitude": lat,
            "longitude": lng,
            "daily": "temperature_2m_max,temperature_2m_min,precipitation_sum,precipitation_probability_max,weather_code",
            "hourly": "soil_moisture_0_to_1cm,soil_temperature_0cm",
            "timezone": self.timezone,
            "forecast_days": days,
        }
        body = await self._get(params)
        if body is None:
            return []

        try:
            forecasts = parse_forecast(body)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Unexpected forecast payload: {e}")
            return []

        self.forecast_cache[cache_key] = forecasts
        return forecasts

    async def fetch_current_weather(self, lat: float, lng: float) -> CurrentWeather | None:
        cache_key = f"current_{lat:.2f}_{lng:.2f}"
        cached = self.current_cache.get(cache_key)
        if cached is not None:
            return cached

        params = {
            "latitude": lat,
            "longitude": lng,
            "current": "temperature_2m,weather_code,wind_speed_10m,precipitation",
            "hourly": "soil_moisture_0_to_1cm",
            "timezone": self.timezone,
            "forecast_days": 1,
        }
        body = await self._get(params)
        if body is None:
            return None

        try:
            current = parse_current(body)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Unexpected current weather payload: {e}")
            return None

        self.current_cache[cache_key] = current
        return current

    async def _get(self, params: dict[str, Any]) -> dict[str, Any] | None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(self.base_url, params=params)
                response.raise_for_status()
                body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Open-Meteo request failed: {e}")
            return None

        if not isinstance(body, dict):
            logger.warning("Open-Meteo returned an unexpected payload")
            return None
        return body


_weather_service: OpenMeteoWeatherService | None = None


def get_weather_service() -> OpenMeteoWeatherService:
    """Get or create the weather service instance."""
    global _weather_service
    if _weather_service is None:
        _weather_service = OpenMeteoWeatherService()
    return _weather_service

"""Shared fixtures and fakes for the test suite."""

import json
from collections.abc import Callable
from datetime import date, timedelta
from typing import Any

import httpx
import pytest

from silvaplan.clients.nominatim import NominatimClient
from silvaplan.config import DefaultLocation, Settings
from silvaplan.errors import ConfigurationError
from silvaplan.models.chat import FunctionCall, Message, ProviderReply, ToolCall
from silvaplan.models.events import CurrentWeather, DailyForecast
from silvaplan.services.alerts import AlertService
from silvaplan.services.conversation_store import InMemoryConversationStore
from silvaplan.services.events import InMemoryEventStore
from silvaplan.services.geocoding import Geocoder
from silvaplan.services.map_context import MapContextBridge
from silvaplan.tools.base import ToolContext
from silvaplan.utils.dates import utc_now


def tool_call(name: str, arguments: dict[str, Any] | str | None = None, call_id: str | None = None) -> ToolCall:
    """Build a tool call as a provider adapter would return it."""
    if arguments is None:
        arguments = {}
    encoded = arguments if isinstance(arguments, str) else json.dumps(arguments)
    return ToolCall(id=call_id or f"call_{name}", function=FunctionCall(name=name, arguments=encoded))


class FakeChatClient:
    """Chat client returning scripted replies and recording every call."""

    def __init__(self, replies: list[ProviderReply] | None = None, configured: bool = True):
        self.replies = list(replies or [])
        self.configured = configured
        self.calls: list[list[Message]] = []
        self.system_prompts: list[str] = []
        self.tools: list[list[dict[str, Any]]] = []

    def ensure_configured(self) -> str:
        if not self.configured:
            raise ConfigurationError("No API key configured for provider openrouter")
        return "test-key"

    async def complete(self, messages: list[Message], tools: list[dict[str, Any]], system_prompt: str) -> ProviderReply:
        self.calls.append(list(messages))
        self.tools.append(tools)
        self.system_prompts.append(system_prompt)
        if not self.replies:
            return ProviderReply(content="Done.")
        return self.replies.pop(0)


class FakeWeather:
    """Weather service serving fixed data."""

    def __init__(self, forecast: list[DailyForecast] | None = None, current: CurrentWeather | None = None):
        self.forecast = forecast or []
        self.current = current
        self.forecast_requests: list[tuple[float, float, int]] = []

    async def fetch_current_weather(self, lat: float, lng: float) -> CurrentWeather | None:
        return self.current

    async def fetch_weather_forecast(self, lat: float, lng: float, days: int = 7) -> list[DailyForecast]:
        self.forecast_requests.append((lat, lng, days))
        return self.forecast[:days]


def forecast_day(day: date, **overrides: Any) -> DailyForecast:
    """A benign forecast day, with selected values overridden."""
    values: dict[str, Any] = {
        "date": day,
        "temperature_max": 18.0,
        "temperature_min": 8.0,
        "precipitation": 1.0,
        "soil_moisture": 0.3,
    }
    values.update(overrides)
    return DailyForecast(**values)


def benign_forecast(start: date, days: int = 14) -> list[DailyForecast]:
    return [forecast_day(start + timedelta(days=i)) for i in range(days)]


def make_geocoder(handler: Callable[[httpx.Request], httpx.Response]) -> Geocoder:
    """Geocoder backed by a mock Nominatim server, without throttling."""
    client = NominatimClient(base_url="https://nominatim.test", transport=httpx.MockTransport(handler), rate_limiter=None)
    return Geocoder(client=client)


def offline_handler(request: httpx.Request) -> httpx.Response:
    """Nominatim double that knows no places."""
    if request.url.path == "/reverse":
        return httpx.Response(200, json={"error": "Unable to geocode"})
    return httpx.Response(200, json=[])


@pytest.fixture
def settings() -> Settings:
    return Settings(openrouter_api_key="test-key", default_location=DefaultLocation(lat=50.0755, lng=14.4378, name="Praha"))


@pytest.fixture
def event_store() -> InMemoryEventStore:
    return InMemoryEventStore()


@pytest.fixture
def conversation_store() -> InMemoryConversationStore:
    return InMemoryConversationStore()


@pytest.fixture
def weather() -> FakeWeather:
    return FakeWeather(forecast=benign_forecast(utc_now().date()))


@pytest.fixture
def map_context() -> MapContextBridge:
    return MapContextBridge()


@pytest.fixture
def geocoder() -> Geocoder:
    return make_geocoder(offline_handler)


@pytest.fixture
def tool_context(map_context, event_store, weather, geocoder, settings) -> ToolContext:
    return ToolContext(
        map_context=map_context,
        event_store=event_store,
        weather=weather,
        alerts=AlertService(event_store, weather),
        geocoder=geocoder,
        default_location=settings.default_location,
    )

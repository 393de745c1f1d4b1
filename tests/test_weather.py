"""Tests for the Open-Meteo weather service."""

from datetime import date

import httpx
import pytest

from silvaplan.services.weather import OpenMeteoWeatherService, parse_current, parse_forecast


def forecast_body(days: int = 2, soil_moisture: list | None = None, soil_temperature: list | None = None) -> dict:
    hourly = {}
    if soil_moisture is not None:
        hourly["soil_moisture_0_to_1cm"] = soil_moisture
    if soil_temperature is not None:
        hourly["soil_temperature_0cm"] = soil_temperature
    return {
        "daily": {
            "time": [f"2026-04-{10 + i:02d}" for i in range(days)],
            "temperature_2m_max": [15.0 + i for i in range(days)],
            "temperature_2m_min": [2.0 + i for i in range(days)],
            "precipitation_sum": [0.5] * days,
            "precipitation_probability_max": [40] * days,
            "weather_code": [3] * days,
        },
        "hourly": hourly,
    }


def current_body(time: str = "2026-04-10T14:00", soil_moisture: list | None = None) -> dict:
    return {
        "current": {
            "time": time,
            "temperature_2m": 12.5,
            "weather_code": 61,
            "wind_speed_10m": 8.0,
            "precipitation": 0.2,
        },
        "hourly": {"soil_moisture_0_to_1cm": soil_moisture if soil_moisture is not None else []},
    }


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class RecordingOpenMeteo:
    """Open-Meteo double that counts requests."""

    def __init__(self, body: dict | None = None, status: int = 200):
        self.body = body
        self.status = status
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status != 200:
            return httpx.Response(self.status, text="unavailable")
        return httpx.Response(200, json=self.body)


class TestParseForecast:
    """Tests for daily records built from the forecast payload."""

    def test_soil_values_are_hourly_means_per_day(self):
        """Test that each day averages its own 24 hourly readings."""
        moisture = [0.2] * 12 + [0.4] * 12 + [0.1] * 23 + [None]
        temperature = [5.0] * 24 + [9.0] * 24

        days = parse_forecast(forecast_body(soil_moisture=moisture, soil_temperature=temperature))

        assert [d.date for d in days] == [date(2026, 4, 10), date(2026, 4, 11)]
        assert days[0].soil_moisture == pytest.approx(0.3)
        assert days[1].soil_moisture == pytest.approx(0.1)
        assert [d.soil_temperature for d in days] == [5.0, 9.0]
        assert days[1].temperature_max == 16.0
        assert days[0].precipitation_probability == 40

    def test_missing_soil_data_is_none(self):
        """Test that unreported soil moisture is not turned into a dry reading."""
        days = parse_forecast(forecast_body(soil_moisture=[0.25] * 24))

        assert days[0].soil_moisture == pytest.approx(0.25)
        assert days[1].soil_moisture is None
        assert days[0].soil_temperature is None


class TestParseCurrent:
    """Tests for current conditions."""

    def test_soil_moisture_of_current_hour(self):
        """Test that the hourly series is indexed by the hour of the reading."""
        current = parse_current(current_body(soil_moisture=[i / 100 for i in range(24)]))

        assert current.soil_moisture == pytest.approx(0.14)
        assert current.temperature == 12.5
        assert current.weather_code == 61

    def test_short_series_falls_back_to_first_hour(self):
        """Test the first hourly value when the current hour is not covered."""
        current = parse_current(current_body(soil_moisture=[0.33, 0.34]))

        assert current.soil_moisture == pytest.approx(0.33)

    def test_no_soil_series(self):
        """Test that a missing series stays unknown."""
        assert parse_current(current_body(soil_moisture=[])).soil_moisture is None


class TestOpenMeteoWeatherService:
    """Tests for fetching and caching."""

    @pytest.fixture
    def clock(self) -> FakeClock:
        return FakeClock()

    def make_service(self, server: RecordingOpenMeteo, clock: FakeClock) -> OpenMeteoWeatherService:
        return OpenMeteoWeatherService(
            base_url="https://meteo.test/v1/forecast", transport=httpx.MockTransport(server), timer=clock
        )

    @pytest.mark.asyncio
    async def test_forecast_request_and_cache_hit(self, clock):
        """Test that a second lookup at the same rounded location is served from cache."""
        server = RecordingOpenMeteo(forecast_body(soil_moisture=[0.3] * 48))
        service = self.make_service(server, clock)

        first = await service.fetch_weather_forecast(50.081, 14.441, days=2)
        second = await service.fetch_weather_forecast(50.079, 14.438, days=2)

        assert len(first) == 2
        assert second == first
        assert len(server.requests) == 1
        params = server.requests[0].url.params
        assert params["forecast_days"] == "2"
        assert params["hourly"] == "soil_moisture_0_to_1cm,soil_temperature_0cm"

    @pytest.mark.asyncio
    async def test_forecast_cache_expires_after_an_hour(self, clock):
        """Test that the forecast is fetched again once its TTL has passed."""
        server = RecordingOpenMeteo(forecast_body(soil_moisture=[0.3] * 48))
        service = self.make_service(server, clock)

        await service.fetch_weather_forecast(50.1, 14.4, days=2)
        clock.now += 59 * 60
        await service.fetch_weather_forecast(50.1, 14.4, days=2)
        assert len(server.requests) == 1

        clock.now += 2 * 60
        await service.fetch_weather_forecast(50.1, 14.4, days=2)
        assert len(server.requests) == 2

    @pytest.mark.asyncio
    async def test_current_cache_expires_after_fifteen_minutes(self, clock):
        """Test the shorter TTL of current conditions."""
        server = RecordingOpenMeteo(current_body(soil_moisture=[0.3] * 24))
        service = self.make_service(server, clock)

        await service.fetch_current_weather(50.1, 14.4)
        clock.now += 14 * 60
        await service.fetch_current_weather(50.1, 14.4)
        assert len(server.requests) == 1

        clock.now += 2 * 60
        await service.fetch_current_weather(50.1, 14.4)
        assert len(server.requests) == 2

    @pytest.mark.asyncio
    async def test_days_are_part_of_the_cache_key(self, clock):
        """Test that a longer horizon is not answered by a shorter cached one."""
        server = RecordingOpenMeteo(forecast_body(soil_moisture=[0.3] * 48))
        service = self.make_service(server, clock)

        await service.fetch_weather_forecast(50.1, 14.4, days=2)
        await service.fetch_weather_forecast(50.1, 14.4, days=7)

        assert len(server.requests) == 2

    @pytest.mark.asyncio
    async def test_failures_are_empty_and_not_cached(self, clock):
        """Test that provider errors degrade to no data and are retried next time."""
        server = RecordingOpenMeteo(status=503)
        service = self.make_service(server, clock)

        assert await service.fetch_weather_forecast(50.1, 14.4) == []
        assert await service.fetch_current_weather(50.1, 14.4) is None
        assert await service.fetch_weather_forecast(50.1, 14.4) == []
        assert len(server.requests) == 3

    @pytest.mark.asyncio
    async def test_unexpected_payload_is_empty(self, clock):
        """Test that a body without the daily block is treated as unavailable."""
        service = self.make_service(RecordingOpenMeteo({"error": True}), clock)

        assert await service.fetch_weather_forecast(50.1, 14.4) == []
        assert await service.fetch_current_weather(50.1, 14.4) is None

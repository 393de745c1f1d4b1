"""Proactive risk evaluation of upcoming events against alerts and forecast."""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from silvaplan.config import DefaultLocation, get_settings
from silvaplan.models.events import AlertLevel, CalendarEvent, DailyForecast, EventStatus, MeteoAlert
from silvaplan.models.risk import RiskWarning, Severity
from silvaplan.services.events import EventStore
from silvaplan.services.weather import WeatherService
from silvaplan.utils.dates import utc_now
from silvaplan.utils.logging import get_logger

logger = get_logger(__name__)

PROACTIVE_WINDOW_DAYS = 7
ANALYSIS_WINDOW_DAYS = 14

FROST_TEMPERATURE_C = 0.0
CRITICAL_SOIL_MOISTURE = 0.1
HEAVY_RAIN_MM = 10.0
HEAT_STRESS_TEMPERATURE_C = 30.0


@dataclass(frozen=True)
class RiskThresholds:
    """Forecast limits beyond which a day is risky for planting."""

    frost_temperature_c: float = FROST_TEMPERATURE_C
    critical_soil_moisture: float = CRITICAL_SOIL_MOISTURE
    heavy_rain_mm: float = HEAVY_RAIN_MM
    heat_stress_temperature_c: float = HEAT_STRESS_TEMPERATURE_C


def _is_candidate(event: CalendarEvent, now: datetime, horizon: datetime, event_id: str | None) -> bool:
    if event.status != EventStatus.PLANNED:
        return False
    if event_id is not None and event.id != event_id:
        return False
    return now < event.start_at < horizon


def _alert_risks(start: datetime, alerts: Iterable[MeteoAlert]) -> tuple[list[str], bool]:
    risks: list[str] = []
    danger = False
    for alert in alerts:
        if not alert.valid_from <= start <= alert.valid_to:
            continue
        if alert.level == AlertLevel.DANGER:
            risks.append(f"CRITICAL: {alert.title} - {alert.description}")
            danger = True
        elif alert.level == AlertLevel.WARNING:
            risks.append(f"WARNING: {alert.title}")
    return risks, danger


def _forecast_risks(day: DailyForecast, thresholds: RiskThresholds) -> tuple[list[str], bool]:
    risks: list[str] = []
    danger = False
    if day.soil_moisture is not None and day.soil_moisture < thresholds.critical_soil_moisture:
        risks.append("Critically low soil moisture - water after planting")
        danger = True
    if day.temperature_min < thresholds.frost_temperature_c:
        risks.append(f"Frost risk (min {day.temperature_min:.0f}°C)")
        danger = True
    if day.precipitation > thresholds.heavy_rain_mm:
        risks.append(f"Heavy rain expected ({day.precipitation:.0f} mm)")
    if day.temperature_max > thresholds.heat_stress_temperature_c:
        risks.append(f"Heat stress for seedlings ({day.temperature_max:.0f}°C)")
    return risks, danger


def evaluate_risks(
    events: Iterable[CalendarEvent],
    alerts: Iterable[MeteoAlert],
    forecast: Iterable[DailyForecast],
    now: datetime | None = None,
    window_days: int = PROACTIVE_WINDOW_DAYS,
    event_id: str | None = None,
    thresholds: RiskThresholds = RiskThresholds(),
) -> list[RiskWarning]:
    """Correlate planned events with alerts and the forecast.

    Only planned events starting strictly inside (now, now + window_days) are
    considered. Alerts match when their validity interval contains the event
    start (inclusive); the forecast matches on the exact calendar date. Events
    without any risk produce no warning.

    Args:
        events: Calendar events
        alerts: Weather alerts
        forecast: Daily forecast entries
        now: Reference time, defaults to the current UTC time
        window_days: Look-ahead window in days
        event_id: Restrict the evaluation to a single event
        thresholds: Forecast limits

    Returns:
        One warning per risky event, in input order
    """
    now = now or utc_now()
    horizon = now + timedelta(days=window_days)
    alerts = list(alerts)
    forecast_by_date = {}
    for day in forecast:
        forecast_by_date.setdefault(day.date, day)

    warnings: list[RiskWarning] = []
    for event in events:
        if not _is_candidate(event, now, horizon, event_id):
            continue

        risks, danger = _alert_risks(event.start_at, alerts)

        day = forecast_by_date.get(event.start_at.date())
        if day is not None:
            forecast_risks, forecast_danger = _forecast_risks(day, thresholds)
            risks.extend(forecast_risks)
            danger = danger or forecast_danger

        if not risks:
            continue

        severity: Severity = "danger" if danger else "warning"
        warnings.append(
            RiskWarning(
                event_id=event.id or "",
                event_title=event.title,
                event_date=event.start_at,
                risks=tuple(risks),
                severity=severity,
            )
        )

    return warnings


def count_candidates(events: Iterable[CalendarEvent], now: datetime, window_days: int, event_id: str | None = None) -> int:
    """Number of events the evaluator would look at."""
    horizon = now + timedelta(days=window_days)
    return sum(1 for event in events if _is_candidate(event, now, horizon, event_id))


class RiskMonitor:
    """Periodic risk check of the calendar at the default location."""

    def __init__(
        self,
        event_store: EventStore,
        weather: WeatherService,
        location: DefaultLocation | None = None,
        window_days: int = PROACTIVE_WINDOW_DAYS,
    ):
        self.event_store = event_store
        self.weather = weather
        self.location = location or get_settings().default_location
        self.window_days = window_days

    async def check(self, now: datetime | None = None) -> list[RiskWarning]:
        """Evaluate upcoming events; danger warnings come first."""
        events = await self.event_store.fetch_events()
        alerts = await self.event_store.fetch_alerts(self.location.lat, self.location.lng)
        forecast = await self.weather.fetch_weather_forecast(self.location.lat, self.location.lng, self.window_days)

        warnings = evaluate_risks(events, alerts, forecast, now=now, window_days=self.window_days)
        logger.info(f"Risk check found {len(warnings)} risky events out of {len(events)}")
        return sorted(warnings, key=lambda w: 0 if w.severity == "danger" else 1)

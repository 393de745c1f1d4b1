"""Weather alerts: stored alerts plus drought detection from soil moisture."""

from datetime import timedelta

from silvaplan.models.events import AlertLevel, MeteoAlert
from silvaplan.services.events import EventStore
from silvaplan.services.weather import WeatherService
from silvaplan.utils.dates import utc_now
from silvaplan.utils.logging import get_logger

logger = get_logger(__name__)

SOIL_MOISTURE_CRITICAL = 0.1
SOIL_MOISTURE_LOW = 0.2
SOIL_MOISTURE_NORMAL = 0.3

DROUGHT_ALERT_HOURS = 24

_LEVEL_ORDER = {AlertLevel.DANGER: 0, AlertLevel.WARNING: 1, AlertLevel.INFO: 2}


class AlertService:
    """Combines alerts from the data store with a derived drought alert."""

    def __init__(self, event_store: EventStore, weather: WeatherService):
        self.event_store = event_store
        self.weather = weather

    async def fetch_alerts(self, lat: float, lng: float) -> list[MeteoAlert]:
        """All alerts for a location, de-duplicated by id, danger first then by start."""
        alerts = list(await self.event_store.fetch_alerts(lat, lng))

        drought = await self.generate_drought_alert(lat, lng)
        if drought is not None:
            alerts.append(drought)

        seen: set[str] = set()
        unique: list[MeteoAlert] = []
        for alert in alerts:
            if alert.id in seen:
                continue
            seen.add(alert.id)
            unique.append(alert)

        return sorted(unique, key=lambda a: (_LEVEL_ORDER[a.level], a.valid_from))

    async def generate_drought_alert(self, lat: float, lng: float) -> MeteoAlert | None:
        """Drought alert from current soil moisture, or None when moisture is normal."""
        current = await self.weather.fetch_current_weather(lat, lng)
        if current is None or current.soil_moisture is None:
            return None

        moisture = current.soil_moisture
        percent = f"{moisture * 100:.0f}%"
        if moisture < SOIL_MOISTURE_CRITICAL:
            level, title, description = (
                AlertLevel.DANGER,
                "Critical drought",
                f"Soil moisture is only {percent}. Immediate watering required.",
            )
        elif moisture < SOIL_MOISTURE_LOW:
            level, title, description = (
                AlertLevel.WARNING,
                "Drought risk",
                f"Soil moisture dropped to {percent}. Watering recommended.",
            )
        elif moisture < SOIL_MOISTURE_NORMAL:
            level, title, description = (
                AlertLevel.INFO,
                "Low soil moisture",
                f"Soil moisture is {percent}. Keep an eye on it.",
            )
        else:
            return None

        now = utc_now()
        logger.debug(f"Drought alert {level} for {lat}, {lng} (moisture {moisture:.3f})")
        return MeteoAlert(
            id=f"drought-{level}-{int(now.timestamp() * 1000)}",
            level=level,
            type="drought",
            title=title,
            description=description,
            valid_from=now,
            valid_to=now + timedelta(hours=DROUGHT_ALERT_HOURS),
            affected_lat=lat,
            affected_lng=lng,
        )

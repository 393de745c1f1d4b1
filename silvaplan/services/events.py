"""Calendar event data access interface and implementations."""

import copy
from dataclasses import replace
from typing import Any, Protocol

from silvaplan.models.events import CalendarEvent, MeteoAlert, cuid
from silvaplan.utils.geo import assert_valid_lng_lat
from silvaplan.utils.logging import get_logger

logger = get_logger(__name__)

UPDATABLE_FIELDS = frozenset({"title", "type", "status", "start_at", "end_at", "address", "notes", "items", "radius_m"})


class EventStore(Protocol):
    """Interface for calendar event storage."""

    async def fetch_events(self) -> list[CalendarEvent]:
        """Get all events ordered by start time."""
        ...

    async def create_event(self, event: CalendarEvent) -> CalendarEvent:
        """Store a new event.

        Args:
            event: Draft without an id

        Returns:
            The stored event with its id assigned
        """
        ...

    async def update_event(self, event_id: str, updates: dict[str, Any]) -> CalendarEvent:
        """Apply a partial update.

        Raises:
            KeyError: If the event does not exist
        """
        ...

    async def delete_event(self, event_id: str) -> None:
        """Delete an event.

        Raises:
            KeyError: If the event does not exist
        """
        ...

    async def fetch_alerts(self, lat: float, lng: float) -> list[MeteoAlert]:
        """Get stored alerts relevant to a location."""
        ...


class InMemoryEventStore:
    """In-memory event store."""

    def __init__(self, events: list[CalendarEvent] | None = None, alerts: list[MeteoAlert] | None = None):
        self._events: dict[str, CalendarEvent] = {}
        self._alerts: list[MeteoAlert] = list(alerts or [])
        for event in events or []:
            event_id = event.id or cuid()
            self._events[event_id] = replace(event, id=event_id)

    async def fetch_events(self) -> list[CalendarEvent]:
        return sorted((copy.deepcopy(e) for e in self._events.values()), key=lambda e: e.start_at)

    async def create_event(self, event: CalendarEvent) -> CalendarEvent:
        assert_valid_lng_lat(event.lat, event.lng, "event")
        stored = replace(copy.deepcopy(event), id=cuid())
        self._events[stored.id] = stored
        logger.info(f"Created event {stored.id} ({stored.title}) at {stored.lat}, {stored.lng}")
        return copy.deepcopy(stored)

    async def update_event(self, event_id: str, updates: dict[str, Any]) -> CalendarEvent:
        if event_id not in self._events:
            raise KeyError(f"Event {event_id} not found")

        unknown = set(updates) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        updated = replace(self._events[event_id], **updates)
        self._events[event_id] = updated
        logger.info(f"Updated event {event_id}: {sorted(updates)}")
        return copy.deepcopy(updated)

    async def delete_event(self, event_id: str) -> None:
        if event_id not in self._events:
            raise KeyError(f"Event {event_id} not found")
        del self._events[event_id]
        logger.info(f"Deleted event {event_id}")

    async def fetch_alerts(self, lat: float, lng: float) -> list[MeteoAlert]:
        # Alerts are country-wide; location is accepted for stores that filter by area.
        return list(self._alerts)

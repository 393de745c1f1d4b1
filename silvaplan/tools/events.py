"""Calendar event tools: create, edit, delete and list events."""

from typing import Any

from pydantic import Field

from silvaplan.models.events import CalendarEvent, EventItem, EventStatus, EventType
from silvaplan.services.geocoding import resolve_event_location
from silvaplan.services.planting import PlanEventInput, build_plan_event
from silvaplan.tools.base import ToolContext, ToolDefinition, ToolInput, ToolName
from silvaplan.utils.dates import format_date, parse_date
from silvaplan.utils.geo import format_coordinates
from silvaplan.utils.logging import get_logger

logger = get_logger(__name__)

MAX_BULK_DELETE = 200

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}"


class EventItemInput(ToolInput):
    species: str = Field(..., description='Latin species name, e.g. "Quercus robur"')
    quantity: int = Field(1, ge=1, description="Number of plants")
    size_class: str | None = Field(None, description='Size class, e.g. "150-200cm"')


class CreateEventInput(ToolInput):
    """Input schema for createEvent."""

    title: str = Field(..., min_length=1, description='Event title, e.g. "Oak planting in the park"')
    type: EventType = Field(EventType.PLANTING, description="Event type (default: planting)")
    date: str = Field(..., pattern=DATE_PATTERN, description="Date in YYYY-MM-DD format")
    lat: float | None = Field(None, description="Latitude of the location")
    lng: float | None = Field(None, description="Longitude of the location")
    address: str | None = Field(
        None, description='Human readable address or place name, e.g. "Volarska 548/26, Praha 4"'
    )
    notes: str | None = Field(None, description="Notes for the event")
    items: list[EventItemInput] | None = Field(None, description="Plants to be planted")


class EditEventInput(ToolInput):
    """Input schema for editEvent."""

    event_id: str = Field(..., min_length=1, description="ID of an existing event")
    title: str | None = Field(None, description="New title")
    date: str | None = Field(None, pattern=DATE_PATTERN, description="New date YYYY-MM-DD")
    status: EventStatus | None = Field(None, description="New status")
    notes: str | None = Field(None, description="New notes")


class DeleteEventInput(ToolInput):
    """Input schema for deleteEvent."""

    event_id: str | None = Field(None, description="ID of the event to delete")
    id: str | None = Field(None, description="Alternative key for the event ID")


class DeleteEventsInput(ToolInput):
    """Input schema for deleteEvents."""

    start_date: str | None = Field(None, pattern=DATE_PATTERN, description="Filter start date YYYY-MM-DD")
    end_date: str | None = Field(None, pattern=DATE_PATTERN, description="Filter end date YYYY-MM-DD")
    type: EventType | None = Field(None, description="Filter by type")
    status: EventStatus | None = Field(None, description="Filter by status")
    title_contains: str | None = Field(None, description="Part of the event title")
    missing_address: bool | None = Field(None, description="Only delete events without an address")
    max_count: int = Field(
        MAX_BULK_DELETE, ge=1, le=MAX_BULK_DELETE, description="Maximum number of deleted events (safety limit)"
    )

    def has_filter(self) -> bool:
        return any(
            (self.start_date, self.end_date, self.type, self.status, self.title_contains, self.missing_address)
        )


class GetEventsInput(ToolInput):
    """Input schema for getEvents."""

    start_date: str | None = Field(None, pattern=DATE_PATTERN, description="Filter start date YYYY-MM-DD")
    end_date: str | None = Field(None, pattern=DATE_PATTERN, description="Filter end date YYYY-MM-DD")
    type: EventType | None = Field(None, description="Filter by type")


def _in_date_range(event: CalendarEvent, start_date: str | None, end_date: str | None) -> bool:
    day = event.start_at.date()
    if start_date and day < parse_date(start_date).date():
        return False
    if end_date and day > parse_date(end_date).date():
        return False
    return True


def _describe_items(items: list[EventItem]) -> str:
    return ", ".join(f"{item.quantity}x {item.species_name_latin}" for item in items) or "no items"


def create_create_event_tool() -> ToolDefinition:
    async def create_event(params: CreateEventInput, context: ToolContext) -> dict[str, Any]:
        location = await resolve_event_location(context.geocoder, params.lat, params.lng, params.address)
        if location is None:
            logger.info(f"createEvent without a resolvable location (address={params.address!r})")
            return {
                "success": False,
                "error": "could not resolve location",
                "message": "No location could be determined. Ask the user where the event should take place.",
            }

        items = [
            EventItem(species_name_latin=i.species, quantity=i.quantity, size_class=i.size_class)
            for i in params.items or []
        ]

        draft = build_plan_event(
            PlanEventInput(
                title=params.title,
                type=params.type,
                date=params.date,
                picked_location=location,
                address=params.address,
                notes=params.notes,
                items=items,
            )
        )
        if not draft.address:
            draft.address = await context.geocoder.reverse_geocode(location.lat, location.lng)

        event = await context.event_store.create_event(draft)
        context.map_context.clear_picked_location()

        place = event.address or format_coordinates(event.lat, event.lng)
        return {
            "success": True,
            "event": {
                "id": event.id,
                "title": event.title,
                "date": format_date(event.start_at),
                "type": str(event.type),
                "lat": event.lat,
                "lng": event.lng,
                "address": event.address,
            },
            "message": f'Event "{event.title}" was created on {format_date(event.start_at)} at {place}.',
        }

    return ToolDefinition(
        name=ToolName.CREATE_EVENT,
        description=(
            "Create a new planned event (tree planting or maintenance). ALWAYS call getMapContext first "
            "to find out the location. Pass lat/lng from the map context, or an address to geocode."
        ),
        input_schema_class=CreateEventInput,
        handler=create_event,
    )


def create_edit_event_tool() -> ToolDefinition:
    async def edit_event(params: EditEventInput, context: ToolContext) -> dict[str, Any]:
        updates: dict[str, Any] = {}
        if params.title:
            updates["title"] = params.title
        if params.date:
            updates["start_at"] = parse_date(params.date)
        if params.status:
            updates["status"] = params.status
        if params.notes:
            updates["notes"] = params.notes

        try:
            event = await context.event_store.update_event(params.event_id, updates)
        except KeyError:
            return {"success": False, "error": "event not found", "message": f"Event {params.event_id} not found."}

        return {
            "success": True,
            "message": f'Event "{event.title}" was updated.',
            "event": {"id": event.id, "title": event.title, "status": str(event.status)},
        }

    return ToolDefinition(
        name=ToolName.EDIT_EVENT,
        description="Edit an existing calendar event. Use to change the date, status or notes.",
        input_schema_class=EditEventInput,
        handler=edit_event,
    )


def create_delete_event_tool() -> ToolDefinition:
    async def delete_event(params: DeleteEventInput, context: ToolContext) -> dict[str, Any]:
        event_id = params.event_id or params.id
        if not event_id:
            return {"success": False, "error": "missing event id", "message": "The ID of the event to delete is missing."}

        try:
            await context.event_store.delete_event(event_id)
        except KeyError:
            return {"success": False, "error": "event not found", "message": f"Event {event_id} not found."}

        return {"success": True, "message": "The event was deleted."}

    return ToolDefinition(
        name=ToolName.DELETE_EVENT,
        description="Delete an event from the calendar. Only use when the user explicitly asks for deletion.",
        input_schema_class=DeleteEventInput,
        handler=delete_event,
    )


def create_delete_events_tool() -> ToolDefinition:
    async def delete_events(params: DeleteEventsInput, context: ToolContext) -> dict[str, Any]:
        if not params.has_filter():
            return {
                "success": False,
                "error": "missing filter",
                "message": "At least one filter is required for bulk deletion.",
            }

        matched = [
            event
            for event in await context.event_store.fetch_events()
            if _in_date_range(event, params.start_date, params.end_date)
            and (params.type is None or event.type == params.type)
            and (params.status is None or event.status == params.status)
            and (not params.title_contains or params.title_contains.lower() in event.title.lower())
            and (not params.missing_address or not (event.address or "").strip())
        ]

        deleted_ids: list[str] = []
        for event in matched[: params.max_count]:
            await context.event_store.delete_event(event.id)
            deleted_ids.append(event.id)

        logger.info(f"Bulk deleted {len(deleted_ids)} of {len(matched)} matching events")
        return {
            "success": True,
            "deletedCount": len(deleted_ids),
            "matchedCount": len(matched),
            "deletedIds": deleted_ids,
            "message": f"Deleted {len(deleted_ids)} events.",
        }

    return ToolDefinition(
        name=ToolName.DELETE_EVENTS,
        description=(
            "Bulk delete events matching a filter (date range, type, status, title, missing address). "
            "Only use when the user explicitly asks for it."
        ),
        input_schema_class=DeleteEventsInput,
        handler=delete_events,
    )


def create_get_events_tool() -> ToolDefinition:
    async def get_events(params: GetEventsInput, context: ToolContext) -> dict[str, Any]:
        events = [
            event
            for event in await context.event_store.fetch_events()
            if _in_date_range(event, params.start_date, params.end_date)
            and (params.type is None or event.type == params.type)
        ]
        return {
            "count": len(events),
            "events": [
                {
                    "id": event.id,
                    "title": event.title,
                    "type": str(event.type),
                    "status": str(event.status),
                    "date": format_date(event.start_at),
                    "address": event.address,
                    "items": _describe_items(event.items),
                }
                for event in events
            ],
        }

    return ToolDefinition(
        name=ToolName.GET_EVENTS,
        description="List calendar events. Use to show the plan or to find specific events.",
        input_schema_class=GetEventsInput,
        handler=get_events,
    )

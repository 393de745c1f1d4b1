"""API endpoints for the planting assistant service."""

from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from silvaplan import __version__
from silvaplan.api.dependencies import (
    get_conversation_service,
    get_conversation_store,
    get_event_store,
    get_risk_monitor,
    get_session_manager,
)
from silvaplan.errors import ConfigurationError, TransportError
from silvaplan.models.conversation import (
    ConversationRequest,
    ConversationResponse,
    ConversationSummary,
    ConversationTitleUpdate,
    HealthResponse,
    MapContextResponse,
    MapContextUpdate,
    PlanEventRequest,
    RiskWarningResponse,
    StoredMessageResponse,
    ToolResultSummary,
)
from silvaplan.models.events import CalendarEvent
from silvaplan.models.session import Session
from silvaplan.services.conversation import ConversationService
from silvaplan.services.conversation_store import InMemoryConversationStore
from silvaplan.services.events import InMemoryEventStore
from silvaplan.services.planting import PlanEventInput, build_plan_event
from silvaplan.services.risk import RiskMonitor
from silvaplan.services.session_manager import InMemorySessionManager
from silvaplan.utils.dates import format_date
from silvaplan.utils.geo import filter_valid_map_points
from silvaplan.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()

SessionManagerDep = Annotated[InMemorySessionManager, Depends(get_session_manager)]
ConversationServiceDep = Annotated[ConversationService, Depends(get_conversation_service)]
ConversationStoreDep = Annotated[InMemoryConversationStore, Depends(get_conversation_store)]
EventStoreDep = Annotated[InMemoryEventStore, Depends(get_event_store)]
RiskMonitorDep = Annotated[RiskMonitor, Depends(get_risk_monitor)]


def _require_session(session_manager: InMemorySessionManager, session_id: str) -> Session:
    session = session_manager.get_session(session_id)
    if not session:
        logger.warning(f"Invalid session ID provided: {session_id}")
        raise HTTPException(status_code=404, detail=f"Unknown session ID: {session_id}")
    return session


def _event_summary(event: CalendarEvent) -> dict:
    return {
        "id": event.id,
        "title": event.title,
        "type": str(event.type),
        "status": str(event.status),
        "date": format_date(event.start_at),
        "lat": event.lat,
        "lng": event.lng,
        "address": event.address,
        "items": [{"species": i.species_name_latin, "quantity": i.quantity} for i in event.items],
    }


@router.post("/conversation", response_model=ConversationResponse, tags=["Conversation"])
async def handle_conversation(
    request: ConversationRequest,
    session_manager: SessionManagerDep,
    conversation_service: ConversationServiceDep,
) -> ConversationResponse:
    """Handle a conversation message and return the assistant's response."""
    if request.session_id:
        session = session_manager.get_session(request.session_id)
        if not session:
            logger.warning(f"Invalid session ID provided: {request.session_id}")
            raise HTTPException(status_code=400, detail=f"Invalid session ID: {request.session_id}")
    else:
        logger.info("Creating new session")
        session = session_manager.get_or_create_session()

    session_id = session.session_id
    try:
        logger.info(f"Processing message for session {session_id}: {request.message[:50]}...")
        reply = await conversation_service.process_message(session, request.message, request.attachments)
    except ConfigurationError as e:
        logger.warning(f"Assistant not configured: {e}")
        raise HTTPException(
            status_code=400,
            detail=f"{e}. Configure the API key (OPENROUTER_API_KEY or GEMINI_API_KEY) in settings.",
        ) from e
    except TransportError as e:
        logger.error(f"AI provider error for session {session_id}: {e}")
        raise HTTPException(status_code=502, detail=str(e)) from e
    except ValueError as e:
        logger.warning(f"Message validation error for session {session_id}: {e}")
        raise HTTPException(status_code=400, detail=str(e)) from e

    return ConversationResponse(
        response=reply.message.content,
        session_id=session_id,
        conversation_id=reply.conversation_id,
        tool_results=[ToolResultSummary(name=r.name, success=r.success) for r in reply.tool_results],
        events_changed=reply.events_changed,
    )


@router.put("/sessions/{session_id}/map-context", response_model=MapContextResponse, tags=["Map"])
async def update_map_context(
    session_id: str, update: MapContextUpdate, session_manager: SessionManagerDep
) -> MapContextResponse:
    """Apply a partial map context update; fields left out keep their value, null clears them."""
    session = _require_session(session_manager, session_id)
    session.map_context.set_context(**update.model_dump(exclude_unset=True))
    return MapContextResponse(
        session_id=session_id,
        context=session.map_context.get_context(),
        best_location=session.map_context.get_best_location(),
    )


@router.post("/sessions/{session_id}/plan", tags=["Map"])
async def plan_event(
    session_id: str, request: PlanEventRequest, session_manager: SessionManagerDep, event_store: EventStoreDep
) -> dict:
    """Plan an event at the location picked on the map."""
    session = _require_session(session_manager, session_id)
    context = session.map_context.get_context()
    try:
        draft = build_plan_event(
            PlanEventInput(
                title=request.title,
                type=request.type,
                date=request.date,
                picked_location=context.picked_location,
                address=request.address,
                notes=request.notes,
                species=request.species,
                quantity=request.quantity,
            )
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    event = await event_store.create_event(draft)
    session.map_context.clear_picked_location()
    return _event_summary(event)


@router.get("/map/events", tags=["Map"])
async def get_map_events(event_store: EventStoreDep) -> list[dict]:
    """Events that can be drawn as map pins; records without a valid coordinate pair are left out."""
    events = await event_store.fetch_events()
    pins = filter_valid_map_points(events)
    if len(pins) < len(events):
        logger.warning(f"Skipped {len(events) - len(pins)} events without valid coordinates")
    return [_event_summary(e) for e in pins]


@router.get("/conversations", response_model=list[ConversationSummary], tags=["Conversation"])
async def list_conversations(store: ConversationStoreDep, limit: int = 50) -> list[ConversationSummary]:
    """Stored conversations, most recently active first."""
    conversations = await store.list_conversations(limit)
    return [ConversationSummary.model_validate(c, from_attributes=True) for c in conversations]


@router.get(
    "/conversations/{conversation_id}/messages", response_model=list[StoredMessageResponse], tags=["Conversation"]
)
async def get_conversation_messages(conversation_id: str, store: ConversationStoreDep) -> list[StoredMessageResponse]:
    """Messages of one conversation in order."""
    if await store.get_conversation(conversation_id) is None:
        raise HTTPException(status_code=404, detail=f"Unknown conversation: {conversation_id}")
    messages = await store.get_messages(conversation_id)
    return [StoredMessageResponse.model_validate(m, from_attributes=True) for m in messages]


@router.patch("/conversations/{conversation_id}", response_model=ConversationSummary, tags=["Conversation"])
async def rename_conversation(
    conversation_id: str, update: ConversationTitleUpdate, store: ConversationStoreDep
) -> ConversationSummary:
    """Replace the title generated from the first message."""
    title = update.title.strip()
    if not title:
        raise HTTPException(status_code=400, detail="Title must not be empty")
    if await store.get_conversation(conversation_id) is None:
        raise HTTPException(status_code=404, detail=f"Unknown conversation: {conversation_id}")
    await store.update_conversation_title(conversation_id, title)
    conversation = await store.get_conversation(conversation_id)
    return ConversationSummary.model_validate(conversation, from_attributes=True)


@router.delete("/conversations/{conversation_id}", status_code=204, tags=["Conversation"])
async def delete_conversation(
    conversation_id: str, store: ConversationStoreDep, session_manager: SessionManagerDep
) -> None:
    """Delete a conversation with its messages and action log."""
    if await store.get_conversation(conversation_id) is None:
        raise HTTPException(status_code=404, detail=f"Unknown conversation: {conversation_id}")
    await store.delete_conversation(conversation_id)
    session_manager.detach_conversation(conversation_id)


@router.get("/risks", response_model=list[RiskWarningResponse], tags=["Risks"])
async def get_risks(monitor: RiskMonitorDep) -> list[RiskWarningResponse]:
    """Proactive risk warnings for events planned in the next days."""
    warnings = await monitor.check()
    return [
        RiskWarningResponse(
            event_id=w.event_id,
            event_title=w.event_title,
            event_date=w.event_date,
            risks=list(w.risks),
            severity=w.severity,
        )
        for w in warnings
    ]


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        version=__version__,
    )

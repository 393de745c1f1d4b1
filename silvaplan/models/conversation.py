"""API request and response models."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from silvaplan.models.chat import Attachment
from silvaplan.models.events import EventType
from silvaplan.models.map import BestLocation, GeoPoint, MapContext, MapView


class ConversationRequest(BaseModel):
    """Request model for conversation endpoint."""

    message: str
    session_id: str | None = None
    attachments: list[Attachment] | None = None


class ToolResultSummary(BaseModel):
    """Outcome of one tool call executed while answering."""

    name: str
    success: bool


class ConversationResponse(BaseModel):
    """Response model for conversation endpoint."""

    response: str
    session_id: str
    conversation_id: str
    tool_results: list[ToolResultSummary] = Field(default_factory=list)
    events_changed: bool = False


class MapContextUpdate(BaseModel):
    """Partial map context update; only the fields sent are applied."""

    picked_location: GeoPoint | None = None
    user_gps: GeoPoint | None = None
    current_view: MapView | None = None


class MapContextResponse(BaseModel):
    """Current map context of a session."""

    session_id: str
    context: MapContext
    best_location: BestLocation | None


class PlanEventRequest(BaseModel):
    """Plan an event at the session's picked location."""

    title: str = Field(..., min_length=1)
    type: EventType = EventType.PLANTING
    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$")
    address: str | None = None
    notes: str | None = None
    species: str | None = None
    quantity: int | None = Field(default=None, ge=1)


class ConversationTitleUpdate(BaseModel):
    """New title for a stored conversation."""

    title: str = Field(..., min_length=1, max_length=100)


class ConversationSummary(BaseModel):
    """Listing entry for a stored conversation."""

    id: str
    title: str | None
    started_at: datetime
    last_message_at: datetime
    message_count: int


class StoredMessageResponse(BaseModel):
    """Stored message as returned by the API."""

    id: str
    role: Literal["user", "assistant", "system", "tool"]
    content: str
    tool_calls: list[dict[str, Any]] | None = None
    tool_call_id: str | None = None
    created_at: datetime


class RiskWarningResponse(BaseModel):
    """Risk warning as returned by the API."""

    event_id: str
    event_title: str
    event_date: datetime
    risks: list[str]
    severity: Literal["warning", "danger"]


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: datetime
    version: str

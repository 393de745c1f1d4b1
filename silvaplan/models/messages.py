"""Conversation store records."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from silvaplan.models.chat import Role


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass
class Conversation:
    """A persisted conversation."""

    id: str
    title: str | None = None
    started_at: datetime = field(default_factory=_now)
    last_message_at: datetime = field(default_factory=_now)
    message_count: int = 0


@dataclass
class StoredMessage:
    """A persisted message row."""

    id: str
    conversation_id: str
    role: Role
    content: str
    tool_calls: list[dict[str, Any]] | None = None
    tool_call_id: str | None = None
    created_at: datetime = field(default_factory=_now)


@dataclass
class AgentAction:
    """Action-log row written for every executed tool call."""

    id: str
    conversation_id: str | None
    action_type: str
    action_data: dict[str, Any]
    result: dict[str, Any]
    success: bool
    created_at: datetime = field(default_factory=_now)

"""State definitions for the LangGraph chat loop."""

import operator
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Annotated, Literal

from langchain_core.runnables import RunnableConfig
from pydantic import BaseModel, Field

from silvaplan.models.chat import Message, ToolCall, ToolExecution
from silvaplan.services.conversation_store import ConversationStore
from silvaplan.tools.base import ToolContext

if TYPE_CHECKING:
    from silvaplan.clients.chat import ChatClient
    from silvaplan.tools.registry import ToolsRegistry

MAX_MODEL_ROUNDS = 5

EventsChangedCallback = Callable[[], Awaitable[None] | None]


class ChatState(BaseModel):
    """State of one user turn.

    `messages` holds the history sent to the model plus everything appended
    during the turn; `rounds` counts model invocations.
    """

    messages: Annotated[list[Message], operator.add] = Field(default_factory=list)
    pending_tool_calls: list[ToolCall] = Field(default_factory=list)
    tool_results: Annotated[list[ToolExecution], operator.add] = Field(default_factory=list)

    rounds: int = 0
    max_rounds: int = MAX_MODEL_ROUNDS
    next_step: Literal["tools", "end"] | None = None


@dataclass
class TurnDependencies:
    """Collaborators of one turn, passed to nodes through the runnable config."""

    chat_client: "ChatClient"
    registry: "ToolsRegistry"
    store: ConversationStore
    conversation_id: str
    tool_context: ToolContext
    system_prompt: str
    on_events_changed: EventsChangedCallback | None = None


def get_dependencies(config: RunnableConfig) -> TurnDependencies:
    """Extract the turn dependencies from a node's config."""
    return config["configurable"]["deps"]

"""Conversation persistence: conversations, messages and the agent action log."""

import copy
from typing import Any, Protocol

from silvaplan.models.chat import Role
from silvaplan.models.events import cuid
from silvaplan.models.messages import AgentAction, Conversation, StoredMessage
from silvaplan.utils.dates import utc_now
from silvaplan.utils.logging import get_logger

logger = get_logger(__name__)

TITLE_MAX_LENGTH = 50
TITLE_MIN_WORD_CUT = 20


def generate_title_from_message(content: str) -> str:
    """Conversation title from the first user message, cut at a word boundary when possible."""
    if len(content) <= TITLE_MAX_LENGTH:
        return content

    truncated = content[:TITLE_MAX_LENGTH]
    last_space = truncated.rfind(" ")
    if last_space > TITLE_MIN_WORD_CUT:
        return truncated[:last_space] + "..."
    return truncated + "..."


class ConversationStore(Protocol):
    """Interface for conversation storage."""

    async def create_conversation(self, title: str | None = None) -> Conversation: ...

    async def list_conversations(self, limit: int = 50) -> list[Conversation]:
        """Conversations ordered by last activity, newest first."""
        ...

    async def get_conversation(self, conversation_id: str) -> Conversation | None: ...

    async def update_conversation_title(self, conversation_id: str, title: str) -> None: ...

    async def save_message(
        self,
        conversation_id: str,
        role: Role,
        content: str,
        tool_calls: list[dict[str, Any]] | None = None,
        tool_call_id: str | None = None,
    ) -> StoredMessage: ...

    async def get_messages(self, conversation_id: str) -> list[StoredMessage]:
        """Messages of a conversation in creation order."""
        ...

    async def log_action(
        self,
        action_type: str,
        action_data: dict[str, Any],
        result: dict[str, Any],
        success: bool = True,
        conversation_id: str | None = None,
    ) -> AgentAction: ...

    async def get_conversation_actions(self, conversation_id: str) -> list[AgentAction]: ...

    async def delete_conversation(self, conversation_id: str) -> None:
        """Delete messages, then action-log rows, then the conversation itself.

        Errors from any step propagate and stop the remaining steps.
        """
        ...


class InMemoryConversationStore:
    """In-memory conversation store."""

    def __init__(self) -> None:
        self.conversations: dict[str, Conversation] = {}
        self.messages: list[StoredMessage] = []
        self.actions: list[AgentAction] = []

    async def create_conversation(self, title: str | None = None) -> Conversation:
        conversation = Conversation(id=cuid(), title=title)
        self.conversations[conversation.id] = conversation
        logger.info(f"Created conversation {conversation.id}")
        return copy.copy(conversation)

    async def list_conversations(self, limit: int = 50) -> list[Conversation]:
        ordered = sorted(self.conversations.values(), key=lambda c: c.last_message_at, reverse=True)
        return [copy.copy(c) for c in ordered[:limit]]

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        conversation = self.conversations.get(conversation_id)
        return copy.copy(conversation) if conversation else None

    async def update_conversation_title(self, conversation_id: str, title: str) -> None:
        conversation = self.conversations.get(conversation_id)
        if conversation is None:
            logger.warning(f"Cannot set title of unknown conversation {conversation_id}")
            return
        conversation.title = title

    async def save_message(
        self,
        conversation_id: str,
        role: Role,
        content: str,
        tool_calls: list[dict[str, Any]] | None = None,
        tool_call_id: str | None = None,
    ) -> StoredMessage:
        conversation = self.conversations.get(conversation_id)
        if conversation is None:
            raise KeyError(f"Conversation {conversation_id} not found")

        message = StoredMessage(
            id=cuid(),
            conversation_id=conversation_id,
            role=role,
            content=content,
            tool_calls=copy.deepcopy(tool_calls) or None,
            tool_call_id=tool_call_id or None,
        )
        self.messages.append(message)

        conversation.last_message_at = message.created_at
        conversation.message_count += 1
        logger.debug(f"Saved {role} message {message.id} to conversation {conversation_id}")
        return copy.deepcopy(message)

    async def get_messages(self, conversation_id: str) -> list[StoredMessage]:
        return [copy.deepcopy(m) for m in self.messages if m.conversation_id == conversation_id]

    async def log_action(
        self,
        action_type: str,
        action_data: dict[str, Any],
        result: dict[str, Any],
        success: bool = True,
        conversation_id: str | None = None,
    ) -> AgentAction:
        action = AgentAction(
            id=cuid(),
            conversation_id=conversation_id,
            action_type=action_type,
            action_data=copy.deepcopy(action_data),
            result=copy.deepcopy(result),
            success=success,
            created_at=utc_now(),
        )
        self.actions.append(action)
        return copy.deepcopy(action)

    async def get_conversation_actions(self, conversation_id: str) -> list[AgentAction]:
        return [copy.deepcopy(a) for a in self.actions if a.conversation_id == conversation_id]

    async def delete_messages(self, conversation_id: str) -> None:
        self.messages = [m for m in self.messages if m.conversation_id != conversation_id]

    async def delete_actions(self, conversation_id: str) -> None:
        self.actions = [a for a in self.actions if a.conversation_id != conversation_id]

    async def delete_conversation_row(self, conversation_id: str) -> None:
        if self.conversations.pop(conversation_id, None) is None:
            raise KeyError(f"Conversation {conversation_id} not found")

    async def delete_conversation(self, conversation_id: str) -> None:
        await self.delete_messages(conversation_id)
        await self.delete_actions(conversation_id)
        await self.delete_conversation_row(conversation_id)
        logger.info(f"Deleted conversation {conversation_id}")

"""Conversation service: one user message in, one assistant reply out."""

from dataclasses import dataclass, field

from silvaplan.clients.chat import ChatClient, get_chat_client
from silvaplan.config import Settings, get_settings
from silvaplan.graphs.conversation import ChatGraphManager, get_system_prompt
from silvaplan.graphs.state import EventsChangedCallback, TurnDependencies
from silvaplan.models.chat import Attachment, Message, ToolCall, ToolExecution
from silvaplan.models.messages import StoredMessage
from silvaplan.models.session import Session
from silvaplan.services.alerts import AlertService
from silvaplan.services.conversation_store import ConversationStore, generate_title_from_message
from silvaplan.services.events import EventStore
from silvaplan.services.geocoding import Geocoder
from silvaplan.services.weather import WeatherService
from silvaplan.tools.base import MUTATING_TOOLS, ToolContext
from silvaplan.tools.registry import ToolsRegistry, get_tools_registry
from silvaplan.utils.logging import get_logger

logger = get_logger(__name__)

MAX_MESSAGE_CHARS = 4000


@dataclass
class ChatReply:
    """Result of processing one user message."""

    conversation_id: str
    message: Message
    tool_results: list[ToolExecution] = field(default_factory=list)

    @property
    def events_changed(self) -> bool:
        """True if any calendar-mutating tool succeeded during the turn."""
        return any(r.success and r.name in MUTATING_TOOLS for r in self.tool_results)


def to_message(stored: StoredMessage) -> Message:
    """Rebuild a conversation message from its stored row."""
    return Message(
        role=stored.role,
        content=stored.content,
        tool_calls=[ToolCall.model_validate(tc) for tc in stored.tool_calls] if stored.tool_calls else None,
        tool_call_id=stored.tool_call_id,
    )


class ConversationService:
    """Drives a user turn: validation, persistence and the chat graph."""

    def __init__(
        self,
        store: ConversationStore,
        event_store: EventStore,
        weather: WeatherService,
        geocoder: Geocoder | None = None,
        chat_client: ChatClient | None = None,
        registry: ToolsRegistry | None = None,
        settings: Settings | None = None,
        on_events_changed: EventsChangedCallback | None = None,
    ):
        self.settings = settings or get_settings()
        self.store = store
        self.event_store = event_store
        self.weather = weather
        self.alerts = AlertService(event_store, weather)
        self.geocoder = geocoder or Geocoder()
        self.chat_client = chat_client or get_chat_client()
        self.registry = registry or get_tools_registry()
        self.on_events_changed = on_events_changed
        self.graph_manager = ChatGraphManager(max_rounds=self.settings.max_model_rounds)

        logger.info("ConversationService initialized")

    async def process_message(
        self, session: Session, text: str, attachments: list[Attachment] | None = None
    ) -> ChatReply:
        """Process a user message and return the assistant's reply.

        Args:
            session: Current session (its map context and active conversation)
            text: User's message
            attachments: Optional images or extracted documents

        Returns:
            Final assistant message and the tools executed on the way

        Raises:
            ValueError: If the message is empty or too long
            ConfigurationError: If no API key is configured
            TransportError: If the vendor call fails
        """
        self._validate_message(text)
        self.chat_client.ensure_configured()

        conversation_id = await self._ensure_conversation(session, text)
        history = [to_message(m) for m in await self.store.get_messages(conversation_id)]

        user_message = Message(role="user", content=text, attachments=attachments or None)
        await self.store.save_message(conversation_id, "user", text)

        deps = TurnDependencies(
            chat_client=self.chat_client,
            registry=self.registry,
            store=self.store,
            conversation_id=conversation_id,
            tool_context=ToolContext(
                map_context=session.map_context,
                event_store=self.event_store,
                weather=self.weather,
                alerts=self.alerts,
                geocoder=self.geocoder,
                default_location=self.settings.default_location,
            ),
            system_prompt=get_system_prompt(self.settings.default_location),
            on_events_changed=self.on_events_changed,
        )

        logger.info(f"Processing message for session {session.session_id} in conversation {conversation_id}")
        state = await self.graph_manager.run_turn([*history, user_message], deps)

        return ChatReply(
            conversation_id=conversation_id,
            message=state.messages[-1],
            tool_results=state.tool_results,
        )

    async def _ensure_conversation(self, session: Session, text: str) -> str:
        if session.conversation_id and await self.store.get_conversation(session.conversation_id):
            return session.conversation_id

        conversation = await self.store.create_conversation(title=generate_title_from_message(text))
        session.attach_conversation(conversation.id)
        return conversation.id

    def _validate_message(self, text: str) -> None:
        if not text.strip():
            raise ValueError("Message must not be empty.")
        if len(text) > MAX_MESSAGE_CHARS:
            raise ValueError(f"Your message is too long. Please keep messages under {MAX_MESSAGE_CHARS} characters.")

"""Shared service instances for the API, injectable through FastAPI dependencies."""

from silvaplan.services.conversation import ConversationService
from silvaplan.services.conversation_store import InMemoryConversationStore
from silvaplan.services.events import InMemoryEventStore
from silvaplan.services.risk import RiskMonitor
from silvaplan.services.session_manager import InMemorySessionManager, session_manager
from silvaplan.services.weather import OpenMeteoWeatherService, get_weather_service
from silvaplan.utils.logging import get_logger

logger = get_logger(__name__)

_conversation_store: InMemoryConversationStore | None = None
_event_store: InMemoryEventStore | None = None
_conversation_service: ConversationService | None = None


def get_session_manager() -> InMemorySessionManager:
    return session_manager


def get_conversation_store() -> InMemoryConversationStore:
    global _conversation_store
    if _conversation_store is None:
        _conversation_store = InMemoryConversationStore()
    return _conversation_store


def get_event_store() -> InMemoryEventStore:
    global _event_store
    if _event_store is None:
        _event_store = InMemoryEventStore()
    return _event_store


def get_weather() -> OpenMeteoWeatherService:
    return get_weather_service()


def _log_events_changed() -> None:
    logger.info("Calendar changed during the turn")


def get_conversation_service() -> ConversationService:
    global _conversation_service
    if _conversation_service is None:
        _conversation_service = ConversationService(
            store=get_conversation_store(),
            event_store=get_event_store(),
            weather=get_weather(),
            on_events_changed=_log_events_changed,
        )
    return _conversation_service


def get_risk_monitor() -> RiskMonitor:
    return RiskMonitor(get_event_store(), get_weather())

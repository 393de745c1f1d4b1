"""Session state models."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from silvaplan.services.map_context import MapContextBridge
from silvaplan.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class Session:
    """Per-user state: the active conversation and the map context."""

    session_id: str
    conversation_id: str | None = None
    map_context: MapContextBridge = field(default_factory=MapContextBridge)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    last_activity: datetime = field(default_factory=lambda: datetime.now(UTC))

    def update_activity(self) -> None:
        """Update the last activity timestamp."""
        self.last_activity = datetime.now(UTC)

    def attach_conversation(self, conversation_id: str) -> None:
        """Make a conversation the active one for this session."""
        logger.info(f"Session {self.session_id} now uses conversation {conversation_id}")
        self.conversation_id = conversation_id
        self.update_activity()

    def detach_conversation(self) -> None:
        """Forget the active conversation (a new one is created lazily)."""
        self.conversation_id = None
        self.update_activity()

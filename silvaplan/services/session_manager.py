"""Session management for in-memory storage."""

from datetime import UTC, datetime, timedelta

from cuid2 import cuid_wrapper

from silvaplan.models.session import Session

cuid = cuid_wrapper()


class InMemorySessionManager:
    """In-memory session manager.

    Each session owns its map context, so concurrent users never share a
    picked location.
    """

    def __init__(self, session_timeout_minutes: int = 60):
        """Initialize session manager.

        Args:
            session_timeout_minutes: Minutes of inactivity before a session expires
        """
        self.sessions: dict[str, Session] = {}
        self.session_timeout = timedelta(minutes=session_timeout_minutes)

    def get_or_create_session(self, session_id: str | None = None) -> Session:
        """Get existing session or create new one.

        Args:
            session_id: Optional existing session ID

        Returns:
            Session object (existing or newly created)
        """
        self._cleanup_expired_sessions()

        if session_id and session_id in self.sessions:
            session = self.sessions[session_id]
            session.update_activity()
            return session

        new_session_id = session_id or cuid()
        session = Session(session_id=new_session_id)
        self.sessions[new_session_id] = session
        return session

    def get_session(self, session_id: str) -> Session | None:
        """Get existing session by ID, or None if unknown or expired."""
        self._cleanup_expired_sessions()

        session = self.sessions.get(session_id)
        if session:
            session.update_activity()
        return session

    def detach_conversation(self, conversation_id: str) -> int:
        """Unlink a deleted conversation from every session using it.

        Returns:
            Number of sessions detached
        """
        detached = 0
        for session in self.sessions.values():
            if session.conversation_id == conversation_id:
                session.detach_conversation()
                detached += 1
        return detached

    def _cleanup_expired_sessions(self) -> None:
        current_time = datetime.now(UTC)
        expired_sessions = [
            session_id
            for session_id, session in self.sessions.items()
            if current_time - session.last_activity > self.session_timeout
        ]
        for session_id in expired_sessions:
            del self.sessions[session_id]


session_manager = InMemorySessionManager()

"""Session management for in-memory storage."""

from datetime import UTC, datetime, timedelta

from cuid2 import cuid_wrapper

from vea.models.session import ConversationSession

cuid = cuid_wrapper()


class InMemorySessionManager:
    """In-memory conversation session manager."""

    def __init__(self, session_timeout_minutes: int = 60):
        """Initialize session manager.

        Args:
            session_timeout_minutes: Minutes of inactivity before a session expires
        """
        self.sessions: dict[str, ConversationSession] = {}
        self.session_timeout = timedelta(minutes=session_timeout_minutes)

    def create_session(self, user_id: str) -> ConversationSession:
        """Create a new session greeted with the welcome message.

        Args:
            user_id: Acting user identity

        Returns:
            The new session
        """
        self._cleanup_expired_sessions()

        session = ConversationSession(session_id=self._generate_session_id(), user_id=user_id)
        session.add_welcome_message()
        self.sessions[session.session_id] = session
        return session

    def get_session(self, session_id: str, user_id: str) -> ConversationSession | None:
        """Get an existing session owned by a user.

        Args:
            session_id: Session identifier
            user_id: Acting user identity

        Returns:
            Session if found, not expired and owned by the user, None otherwise
        """
        self._cleanup_expired_sessions()

        session = self.sessions.get(session_id)
        if session is None or session.user_id != user_id:
            return None
        session.update_activity()
        return session

    def get_or_create_session(self, user_id: str, session_id: str | None = None) -> ConversationSession:
        """Get the user's session, or create one when the id is missing or unknown."""
        if session_id:
            session = self.get_session(session_id, user_id)
            if session:
                return session
        return self.create_session(user_id)

    def delete_session(self, session_id: str) -> bool:
        """Delete a session.

        Returns:
            True if session was deleted, False if not found
        """
        if session_id in self.sessions:
            del self.sessions[session_id]
            return True
        return False

    def _generate_session_id(self) -> str:
        """Generate a new CUID-based session ID."""
        return cuid()

    def _cleanup_expired_sessions(self) -> None:
        """Remove expired sessions from memory.

        Sessions with a video still generating are kept.
        """
        current_time = datetime.now(UTC)
        expired_sessions = [
            session_id
            for session_id, session in self.sessions.items()
            if current_time - session.last_activity > self.session_timeout and not session.generating_messages
        ]

        for session_id in expired_sessions:
            del self.sessions[session_id]

    def get_session_count(self) -> int:
        """Get current number of active sessions."""
        self._cleanup_expired_sessions()
        return len(self.sessions)

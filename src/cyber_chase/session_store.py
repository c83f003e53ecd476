"""Storage for per-user conversation sessions."""

from abc import ABC, abstractmethod
from typing import Optional

from .models import ConversationSession


class SessionStore(ABC):
    """Abstract interface for conversation session storage."""

    @abstractmethod
    def get(self, user_id: str) -> Optional[ConversationSession]:
        pass

    @abstractmethod
    def set(self, session: ConversationSession) -> None:
        pass

    @abstractmethod
    def delete(self, user_id: str) -> None:
        pass

    def get_or_create(self, user_id: str) -> ConversationSession:
        """Get the user's session, starting a fresh one on first contact."""
        session = self.get(user_id)
        if session is None:
            session = ConversationSession(user_id=user_id)
            self.set(session)
        return session


class InMemorySessionStore(SessionStore):
    """Process-local sessions; lost on restart.

    Not locked: the bot server mutates it from a single consumer.
    """

    def __init__(self):
        self._sessions: dict[str, ConversationSession] = {}

    def get(self, user_id: str) -> Optional[ConversationSession]:
        return self._sessions.get(user_id)

    def set(self, session: ConversationSession) -> None:
        self._sessions[session.user_id] = session

    def delete(self, user_id: str) -> None:
        self._sessions.pop(user_id, None)

    def __len__(self) -> int:
        return len(self._sessions)

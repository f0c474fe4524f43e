"""Registry of connected sessions and their chat colors."""

import random
import uuid
from typing import Optional, Sequence

from loguru import logger

from chocomenta.core.config import DEFAULT_CHAT_COLORS

from .models import Session, SessionId


class SessionRegistry:
    """Tracks connected participants.

    Mutated only on connect/disconnect. Colors are drawn at random from a
    fixed palette and may repeat between sessions.
    """

    def __init__(
        self,
        colors: Sequence[str] = DEFAULT_CHAT_COLORS,
        rng: Optional[random.Random] = None,
    ):
        if not colors:
            raise ValueError("Color palette must not be empty")
        self.colors = list(colors)
        self._rng = rng or random.Random()
        self._sessions: dict[SessionId, Session] = {}

    def new_session_id(self) -> SessionId:
        """Generate a fresh connection-scoped identifier."""
        return uuid.uuid4().hex

    def register(self, session_id: Optional[SessionId] = None) -> Session:
        """Create a session, generating an id when none is given."""
        session_id = session_id or self.new_session_id()
        if session_id in self._sessions:
            raise ValueError(f"Session already registered: {session_id}")
        session = Session(id=session_id, color=self._rng.choice(self.colors))
        self._sessions[session_id] = session
        logger.debug(f"Session registered: {session_id} ({session.color})")
        return session

    def unregister(self, session_id: SessionId) -> Optional[Session]:
        """Remove a session. Unknown ids are ignored."""
        return self._sessions.pop(session_id, None)

    def get(self, session_id: SessionId) -> Optional[Session]:
        return self._sessions.get(session_id)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    @property
    def count(self) -> int:
        return len(self._sessions)

    @property
    def ids(self) -> list[SessionId]:
        return list(self._sessions)

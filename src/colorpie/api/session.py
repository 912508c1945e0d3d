"""
In-memory session manager for ColorPie.

Stores one SessionDriver per session_id; sessions share only the read-only
question pool and similarity matrix.
"""

from __future__ import annotations

import logging
import uuid
from typing import Dict, List, Optional

from ..core.config import SessionConfig
from ..core.driver import SessionDriver
from ..core.likelihood import QuestionPool, SimilarityMatrix

logger = logging.getLogger(__name__)


class SessionManager:
    """
    Manages active questionnaire sessions in memory.

    Abandoning a session is just deleting it; nothing else is held.
    """

    def __init__(
        self,
        pool: QuestionPool,
        similarity: Optional[SimilarityMatrix] = None,
        config: Optional[SessionConfig] = None,
    ):
        self.pool = pool
        self.similarity = similarity or SimilarityMatrix()
        self.config = config or SessionConfig()
        self._sessions: Dict[str, SessionDriver] = {}

    def create_session(
        self,
        config: Optional[SessionConfig] = None,
        seed: Optional[int] = None,
    ) -> str:
        """Create a new session and return its ID."""
        session_id = str(uuid.uuid4())[:8]
        self._sessions[session_id] = SessionDriver(
            self.pool,
            self.similarity,
            config or self.config,
            seed=seed,
        )
        logger.info(f"Created session {session_id}")
        return session_id

    def get_driver(self, session_id: str) -> Optional[SessionDriver]:
        """Get the driver for a session."""
        return self._sessions.get(session_id)

    def session_exists(self, session_id: str) -> bool:
        """Check if a session exists."""
        return session_id in self._sessions

    def delete_session(self, session_id: str) -> None:
        """Delete a session."""
        self._sessions.pop(session_id, None)

    def list_sessions(self) -> List[str]:
        """List all active session IDs."""
        return list(self._sessions.keys())

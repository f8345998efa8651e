import uuid
from typing import Dict, Tuple

from damage_review.domain.entities.review_entity import ReviewSession
from damage_review.domain.errors import NotFound


class ReviewSessionRegistry:
    """Holds the latest ReviewSession value per open review, by session id."""

    def __init__(self) -> None:
        self._sessions: Dict[str, ReviewSession] = {}

    def add(self, session: ReviewSession) -> Tuple[str, ReviewSession]:
        session_id = str(uuid.uuid4())
        self._sessions[session_id] = session
        return session_id, session

    def get(self, session_id: str) -> ReviewSession:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise NotFound(f"Review session not found: {session_id}") from None

    def save(self, session_id: str, session: ReviewSession) -> ReviewSession:
        if session_id not in self._sessions:
            raise NotFound(f"Review session not found: {session_id}")
        self._sessions[session_id] = session
        return session

    def close(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

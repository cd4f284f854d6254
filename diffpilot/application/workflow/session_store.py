"""Workflow session repository - get-or-create store keyed by (user, conversation)."""

from collections.abc import Iterator

from diffpilot.domain.entities.workflow_session import SessionKey, WorkflowSession


class WorkflowSessionRepository:
    """In-memory session store.

    Sessions are created on first access and never removed: clearing resets
    the session in place so the slot is reused by the next flow.
    """

    def __init__(self) -> None:
        self._sessions: dict[SessionKey, WorkflowSession] = {}

    def get(self, user_id: object, conversation_id: object) -> WorkflowSession:
        """Return the session for the pair, creating an idle one if needed."""
        key = SessionKey.of(user_id, conversation_id)
        session = self._sessions.get(key)
        if session is None:
            session = WorkflowSession()
            self._sessions[key] = session
        return session

    def clear(self, user_id: object, conversation_id: object) -> WorkflowSession:
        session = self.get(user_id, conversation_id)
        session.clear()
        return session

    def __contains__(self, key: SessionKey) -> bool:
        return key in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[SessionKey]:
        return iter(self._sessions)

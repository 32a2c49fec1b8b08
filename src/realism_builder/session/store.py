from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from realism_builder.session.conversation import ChatSession
from realism_builder.session.generation import GenerationFlow
from realism_builder.session.references import ReferencePanel


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Session:
    session_id: str
    panel: ReferencePanel
    chat: ChatSession
    generation: GenerationFlow
    faceswap: GenerationFlow
    created_at: str = field(default_factory=_now_iso)


class SessionStore:
    """
    In-memory sessions. Nothing is written to disk; a restart starts over.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    def create(self, provider: Any) -> Session:
        # `provider` serves both the chat and the image calls.
        session_id = uuid.uuid4().hex[:12]
        panel = ReferencePanel()
        session = Session(
            session_id=session_id,
            panel=panel,
            chat=ChatSession(provider, panel=panel),
            generation=GenerationFlow(provider),
            faceswap=GenerationFlow(provider),
        )
        self._sessions[session_id] = session
        return session

    def get(self, session_id: str) -> Session:
        """Raises KeyError for unknown ids."""
        return self._sessions[session_id]

    def delete(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

from __future__ import annotations
import logging
import itertools
import uuid
from typing import Dict, Optional, Tuple

from .controller import ConversationController
from .llm import GenerationProvider
from ..storage.memory import ConversationMemory


class SessionRegistry:
    """Per-user conversation controllers sharing one memory store and one provider."""

    def __init__(self, memory: ConversationMemory, provider: GenerationProvider, max_sessions: int = 50):
        self.memory = memory
        self.provider = provider
        self.max_sessions = max_sessions
        self._sessions: Dict[str, Tuple[ConversationController, int]] = {}
        self._ticks = itertools.count()
        self.logger = logging.getLogger("shaheen.sessions")

    def create(self, doc_type: str) -> Tuple[str, ConversationController]:
        if len(self._sessions) >= self.max_sessions:
            self._evict_oldest()
        session_id = f"sess_{uuid.uuid4().hex[:12]}"
        controller = ConversationController(memory=self.memory, provider=self.provider, doc_type=doc_type)
        self._sessions[session_id] = (controller, next(self._ticks))
        self.logger.info("session.created id=%s doc_type=%s", session_id, doc_type)
        return session_id, controller

    def get(self, session_id: str) -> Optional[ConversationController]:
        entry = self._sessions.get(session_id)
        if entry is None:
            return None
        controller, _ = entry
        self._sessions[session_id] = (controller, next(self._ticks))
        return controller

    def remove(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def _evict_oldest(self) -> None:
        oldest = min(self._sessions, key=lambda sid: self._sessions[sid][1])
        del self._sessions[oldest]
        self.logger.info("session.evicted id=%s", oldest)

    def __len__(self) -> int:
        return len(self._sessions)

"""In-process registry of live editing sessions.

Each session pairs a ``MemeEditor`` with its ``InputRouter`` and belongs to
the wallet that created it. Sessions idle for longer than the TTL are dropped
on the next registry access.
"""
from __future__ import annotations

import logging
import os
import time
import uuid
from dataclasses import dataclass, field

from memelytics.domain.entities.content_frame import FramePolicy
from memelytics.domain.services.image_decoder import ImageDecoder
from memelytics.domain.services.input_router import InputRouter
from memelytics.domain.services.meme_editor import MemeEditor
from memelytics.domain.services.text_metrics import TextMeasurer

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60 * 60
DEFAULT_MAX_SESSIONS = 256


@dataclass
class EditorSession:
    id: str
    owner: str
    editor: MemeEditor
    router: InputRouter
    last_used: float = field(default_factory=time.monotonic)

    def touch(self) -> None:
        self.last_used = time.monotonic()


class SessionRegistry:
    def __init__(
        self,
        ttl_seconds: float | None = None,
        max_sessions: int | None = None,
        default_policy: FramePolicy | str | None = None,
    ) -> None:
        self.ttl_seconds = ttl_seconds or float(os.getenv("MEMELYTICS_SESSION_TTL", DEFAULT_TTL_SECONDS))
        self.max_sessions = max_sessions or int(os.getenv("MEMELYTICS_MAX_SESSIONS", DEFAULT_MAX_SESSIONS))
        self.default_policy = FramePolicy(default_policy or os.getenv("MEMELYTICS_FRAME_POLICY", "fixed"))
        # shared by every session: font lookups are cached per measurer
        self.measurer = TextMeasurer()
        self.decoder = ImageDecoder()
        self._sessions: dict[str, EditorSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, owner: str, policy: FramePolicy | str | None = None) -> EditorSession:
        self._evict_idle()
        if len(self._sessions) >= self.max_sessions:
            oldest = min(self._sessions.values(), key=lambda s: s.last_used)
            self.delete(oldest.id)
        editor = MemeEditor(
            FramePolicy(policy) if policy else self.default_policy,
            measurer=self.measurer,
            decoder=self.decoder,
        )
        session = EditorSession(id=uuid.uuid4().hex, owner=owner, editor=editor, router=InputRouter(editor))
        self._sessions[session.id] = session
        logger.info("Editor session %s opened for %s (%s)", session.id, owner, editor.policy.value)
        return session

    def get(self, session_id: str, owner: str) -> EditorSession:
        """Raises ``LookupError`` for unknown, expired or foreign sessions."""
        self._evict_idle()
        session = self._sessions.get(session_id)
        if session is None or session.owner != owner:
            raise LookupError("Editor session not found")
        session.touch()
        return session

    def delete(self, session_id: str) -> bool:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.editor.close()
        logger.info("Editor session %s closed", session_id)
        return True

    def _evict_idle(self) -> None:
        cutoff = time.monotonic() - self.ttl_seconds
        for session_id in [sid for sid, s in self._sessions.items() if s.last_used < cutoff]:
            self.delete(session_id)


_REGISTRY: SessionRegistry | None = None


def get_session_registry() -> SessionRegistry:
    global _REGISTRY
    if _REGISTRY is None:
        _REGISTRY = SessionRegistry()
    return _REGISTRY

"""
Session Store

Holds the process-wide assistant state:
- the shared connectivity indicator and the monitor that checks the backend
- one consultation assistant and one general assistant per session ID

Sessions are created lazily and live in memory only.
"""

from __future__ import annotations

import logging
from typing import Optional

from app.agents.assistant_workflow import AssistantSession
from app.agents.general_assistant import GeneralAssistant
from app.config import settings
from app.core.backend_client import AssistantBackendClient, backend_client
from app.core.connectivity import ConnectivityMonitor, ConnectivityState
from app.core.notifications import NotificationFeed

logger = logging.getLogger(__name__)


class SessionStore:
    """In-memory registry of assistant sessions keyed by session ID."""

    def __init__(
        self,
        backend: AssistantBackendClient,
        connectivity: ConnectivityState,
    ) -> None:
        self._backend = backend
        self._connectivity = connectivity
        self._sessions: dict[str, AssistantSession] = {}
        self._general: dict[str, GeneralAssistant] = {}

    def get(self, session_id: str) -> Optional[AssistantSession]:
        return self._sessions.get(session_id)

    def get_or_create(self, session_id: str) -> AssistantSession:
        """Return the consultation assistant of a session, creating it if needed."""
        session = self._sessions.get(session_id)
        if session is None:
            session = AssistantSession(
                session_id,
                backend=self._backend,
                connectivity=self._connectivity,
                notifier=NotificationFeed(),
                max_turns=settings.CONTEXT_MAX_TURNS,
                max_summaries=settings.CONTEXT_MAX_SUMMARIES,
            )
            self._sessions[session_id] = session
            logger.info("Created assistant session %s", session_id)
        return session

    def get_general(self, session_id: str) -> GeneralAssistant:
        """Return the general assistant of a session, creating it if needed."""
        assistant = self._general.get(session_id)
        if assistant is None:
            assistant = GeneralAssistant(session_id, backend=self._backend)
            self._general[session_id] = assistant
        return assistant

    def clear_session(self, session_id: str) -> None:
        """Forget both assistants of a single session."""
        self._sessions.pop(session_id, None)
        self._general.pop(session_id, None)

    def clear_all(self) -> None:
        self._sessions.clear()
        self._general.clear()


# ---------------------------------------------------------------------------
# Module-level singletons
# ---------------------------------------------------------------------------
connectivity_state = ConnectivityState()

# Notices from the connectivity monitor, not tied to a session
system_notices = NotificationFeed()

connectivity_monitor = ConnectivityMonitor(
    connectivity_state,
    health_check=backend_client.health,
    notifier=system_notices,
    interval=settings.HEALTH_CHECK_INTERVAL_SECONDS,
)

session_store = SessionStore(backend_client, connectivity_state)

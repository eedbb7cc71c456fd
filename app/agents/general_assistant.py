"""
General Assistant

The floating assistant available from every page.  It is not bound to a
consultation: each message goes to the general chat contract with the last
ten turns as history.  It opens with a dated greeting and answers a failed
dispatch with an apology turn instead of leaving the message unanswered.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from app.core.backend_client import AssistantBackendClient, BackendError
from app.core.context_assembler import recent_turns, to_message_history
from app.core.notifications import NotificationFeed
from app.models.schemas import (
    AssistantPhase,
    ChatRole,
    ChatTurn,
    SessionView,
    TurnResult,
    TurnStatus,
)
from app.prompts.assistant import format_french_date

logger = logging.getLogger(__name__)

HISTORY_WINDOW = 10

APOLOGY_TEXT = (
    "Désolé, je rencontre un problème technique. Veuillez réessayer dans quelques instants."
)


def greeting_text(now: datetime) -> str:
    return (
        "Bonjour ! Je suis votre assistant IA médical. "
        f"Nous sommes le {format_french_date(now)}. "
        "Comment puis-je vous aider aujourd'hui ?"
    )


class GeneralAssistant:
    """Conversation with the general assistant for one session."""

    def __init__(
        self,
        session_id: str,
        backend: AssistantBackendClient,
        notifier: Optional[NotificationFeed] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.session_id = session_id
        self.notifications = notifier if notifier is not None else NotificationFeed()
        self._backend = backend
        self._clock = clock
        self._phase = AssistantPhase.IDLE
        self._conversation: tuple[ChatTurn, ...] = (self._greeting(),)

    @property
    def conversation(self) -> tuple[ChatTurn, ...]:
        return self._conversation

    @property
    def phase(self) -> AssistantPhase:
        return self._phase

    def _greeting(self) -> ChatTurn:
        return ChatTurn(role=ChatRole.ASSISTANT, text=greeting_text(self._clock()))

    def _append(self, turn: ChatTurn) -> None:
        self._conversation = self._conversation + (turn,)

    def reset(self) -> None:
        """Start over with a fresh greeting."""
        self._conversation = (self._greeting(),)

    async def submit(self, text: str) -> TurnResult:
        text = (text or "").strip()
        if not text or self._phase != AssistantPhase.IDLE:
            return TurnResult(status=TurnStatus.IGNORED)

        self._phase = AssistantPhase.DISPATCHING
        try:
            history = to_message_history(recent_turns(self._conversation, HISTORY_WINDOW))
            self._append(ChatTurn(role=ChatRole.USER, text=text))
            try:
                reply = await self._backend.general_chat(text, history)
            except BackendError as exc:
                logger.warning("General chat dispatch failed: %s", exc)
                apology = ChatTurn(role=ChatRole.ASSISTANT, text=APOLOGY_TEXT)
                self._append(apology)
                self.notifications.notify(
                    "Erreur",
                    "Impossible de contacter l'assistant IA.",
                    "destructive",
                )
                return TurnResult(status=TurnStatus.UNANSWERED, turn=apology)

            turn = ChatTurn(role=ChatRole.ASSISTANT, text=reply)
            self._append(turn)
            return TurnResult(status=TurnStatus.ANSWERED, turn=turn)
        finally:
            self._phase = AssistantPhase.IDLE

    def view(self) -> SessionView:
        return SessionView(
            session_id=self.session_id,
            phase=self._phase,
            conversation=list(self._conversation),
            notifications=self.notifications.drain(),
        )

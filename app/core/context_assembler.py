"""
Context Assembler

Builds the bounded conversational context sent with each remote dispatch:
the active consultation, the patient's other consultations, the most recent
AI summaries, and a fixed window of the latest chat turns.

Pure functions only; every record must already be fetched by the caller.
Older turns are dropped from the context but stay in the transcript.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Sequence

from app.config import settings
from app.models.schemas import (
    AiSummary,
    ChatTurn,
    Consultation,
    ConversationContext,
    HistoryMessage,
)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _summary_sort_key(summary: AiSummary) -> tuple[datetime, int]:
    generated = summary.generated_at
    if generated is None:
        generated = _EPOCH
    elif generated.tzinfo is None:
        generated = generated.replace(tzinfo=timezone.utc)
    return generated, summary.id


def recent_summaries(
    summaries: Iterable[AiSummary],
    limit: int,
) -> list[AiSummary]:
    """Return at most *limit* summaries, newest first."""
    if limit <= 0:
        return []
    ordered = sorted(summaries, key=_summary_sort_key, reverse=True)
    return ordered[:limit]


def recent_turns(conversation: Sequence[ChatTurn], max_turns: int) -> list[ChatTurn]:
    """Return the last *max_turns* turns of *conversation*, in order."""
    if max_turns <= 0:
        return []
    return list(conversation[-max_turns:])


def build_context(
    active_consultation: Consultation,
    all_consultations: Iterable[Consultation],
    all_summaries: Iterable[AiSummary],
    conversation: Sequence[ChatTurn],
    max_summaries: int | None = None,
    max_turns: int | None = None,
) -> ConversationContext:
    """Assemble the context for one dispatch.

    Args:
        active_consultation: The consultation the doctor is working on.
        all_consultations: Every consultation of the same patient
            (the active one may be included; it is filtered out).
        all_summaries: Every AI summary of the same patient.
        conversation: The full transcript of the session.
        max_summaries: Cap on prior summaries (``CONTEXT_MAX_SUMMARIES``).
        max_turns: Size of the turn window (``CONTEXT_MAX_TURNS``).

    Returns:
        A ``ConversationContext`` valid for a single dispatch.
    """
    if max_summaries is None:
        max_summaries = settings.CONTEXT_MAX_SUMMARIES
    if max_turns is None:
        max_turns = settings.CONTEXT_MAX_TURNS

    prior = [c for c in all_consultations if c.id != active_consultation.id]

    return ConversationContext(
        active_consultation=active_consultation,
        prior_consultations=prior,
        prior_summaries=recent_summaries(all_summaries, max_summaries),
        recent_turns=recent_turns(conversation, max_turns),
    )


def to_message_history(turns: Iterable[ChatTurn]) -> list[HistoryMessage]:
    """Render turns in the ``{role, content, timestamp}`` wire shape."""
    return [
        HistoryMessage(role=turn.role, content=turn.text, timestamp=turn.created_at)
        for turn in turns
    ]


def turns_from_history(history: Iterable[HistoryMessage]) -> list[ChatTurn]:
    """Rebuild chat turns from a received message history."""
    turns: list[ChatTurn] = []
    for message in history:
        if message.timestamp is not None:
            turns.append(
                ChatTurn(role=message.role, text=message.content, created_at=message.timestamp)
            )
        else:
            turns.append(ChatTurn(role=message.role, text=message.content))
    return turns

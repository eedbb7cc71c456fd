"""
AI Backend Router

The remote contracts the assistant clients talk to, answered with Gemini:
  POST /api/ai-assistant/chat          - Consultation-scoped chat
  POST /api/ai-assistant/general-chat  - General assistant chat
  POST /api/ai-summaries/generate      - AI document for one consultation
  GET  /api/health                     - 200 when the language model is usable
"""

from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, HTTPException

from app.core import records
from app.core.context_assembler import build_context, turns_from_history
from app.core.gemini_client import gemini_client
from app.models.schemas import (
    ChatReply,
    ConsultationChatRequest,
    GeneralChatRequest,
    SummaryRequest,
    SummaryResponse,
)
from app.prompts.assistant import format_consultation_prompt, format_general_prompt
from app.prompts.summaries import format_summary_prompt

logger = logging.getLogger(__name__)

router = APIRouter()


async def _generate(system_prompt: str, user_prompt: str) -> str:
    if not gemini_client.is_available:
        raise HTTPException(status_code=503, detail="Language model unavailable")
    try:
        text = await gemini_client.generate(system_prompt, user_prompt)
    except Exception as exc:
        logger.error("Gemini generation failed: %s", exc, exc_info=True)
        raise HTTPException(status_code=503, detail="Language model error") from exc
    if not text:
        raise HTTPException(status_code=503, detail="Empty response from language model")
    return text


@router.post("/ai-assistant/chat", response_model=ChatReply)
async def consultation_chat(request: ConsultationChatRequest) -> ChatReply:
    """Answer a doctor's message in the context of one consultation.

    The patient's history is rebuilt from the records; the client only
    sends the consultation ID and the recent turns.
    """
    consultation = records.get_consultation(request.consultation_id)
    if consultation is None:
        raise HTTPException(
            status_code=404,
            detail=f"Consultation {request.consultation_id} not found",
        )

    context = build_context(
        consultation,
        records.list_patient_consultations(consultation.patient_id),
        records.list_patient_summaries(consultation.patient_id),
        turns_from_history(request.message_history),
    )
    system_prompt, user_prompt = format_consultation_prompt(
        context, request.message, datetime.now(),
    )
    return ChatReply(response=await _generate(system_prompt, user_prompt))


@router.post("/ai-assistant/general-chat", response_model=ChatReply)
async def general_chat(request: GeneralChatRequest) -> ChatReply:
    system_prompt, user_prompt = format_general_prompt(
        request.message,
        turns_from_history(request.message_history),
        datetime.now(),
    )
    return ChatReply(response=await _generate(system_prompt, user_prompt))


@router.post("/ai-summaries/generate", response_model=SummaryResponse, status_code=201)
async def generate_summary(request: SummaryRequest) -> SummaryResponse:
    """Write a consultation synthesis, prescription or referral letter.

    The generated document is stored with the patient's summaries, so it
    feeds the context of later consultation chats.
    """
    consultation = records.get_consultation(request.consultation_id)
    if consultation is None:
        raise HTTPException(
            status_code=404,
            detail=f"Consultation {request.consultation_id} not found",
        )

    system_prompt, user_prompt = format_summary_prompt(
        consultation, request.summary_type, datetime.now(),
    )
    content = await _generate(system_prompt, user_prompt)
    summary = records.add_summary(consultation, request.summary_type, content)
    return SummaryResponse(summary=summary, content=content)


@router.get("/health")
async def health() -> dict[str, str]:
    if not gemini_client.is_available:
        raise HTTPException(status_code=503, detail="Language model unavailable")
    return {"status": "ok"}

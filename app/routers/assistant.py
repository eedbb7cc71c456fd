"""
Assistant Router

Consultation assistant:
  GET    /assistant/sessions/{session_id}              - Transcript, phase, pending notices
  POST   /assistant/sessions/{session_id}/consultation - Select a consultation (+ welcome)
  POST   /assistant/sessions/{session_id}/messages     - Submit a message
  POST   /assistant/sessions/{session_id}/reset        - Empty the conversation
  POST   /assistant/sessions/{session_id}/summaries    - Generate an AI document
  DELETE /assistant/sessions/{session_id}              - Forget the session
  POST   /assistant/analyze                            - Live symptom analysis of a draft

Connectivity:
  GET    /assistant/connectivity          - Current mode and check state
  POST   /assistant/connectivity/mode     - Manual online/offline switch
  POST   /assistant/connectivity/dismiss  - Hide the offline prompt

Floating assistant:
  GET    /assistant/general/{session_id}
  POST   /assistant/general/{session_id}/messages
  POST   /assistant/general/{session_id}/reset
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException

from app.agents.assistant_workflow import AssistantSession
from app.core import records
from app.core.backend_client import BackendError
from app.core.symptom_analyzer import analyze, category_label, suggest_actions
from app.memory.session_store import (
    connectivity_monitor,
    connectivity_state,
    session_store,
    system_notices,
)
from app.models.schemas import (
    AnalyzeRequest,
    GenerateSummaryRequest,
    ModeRequest,
    SelectConsultationRequest,
    SessionView,
    SubmitRequest,
    SummaryResponse,
    TurnResult,
)

router = APIRouter()


def _require_session(session_id: str) -> AssistantSession:
    session = session_store.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Unknown session '{session_id}'")
    return session


# ── Consultation assistant ──────────────────────────────────────────────────

@router.get("/sessions/{session_id}", response_model=SessionView)
async def get_session(session_id: str) -> SessionView:
    return _require_session(session_id).view()


@router.post("/sessions/{session_id}/consultation", response_model=SessionView)
async def select_consultation(
    session_id: str, request: SelectConsultationRequest,
) -> SessionView:
    """Open a consultation in the session and greet the doctor.

    The greeting is best-effort: if it cannot be produced the session is
    still switched and a notice explains why.
    """
    consultation = records.get_consultation(request.consultation_id)
    if consultation is None:
        raise HTTPException(
            status_code=404,
            detail=f"Consultation {request.consultation_id} not found",
        )

    session = session_store.get_or_create(session_id)
    session.select_consultation(
        consultation,
        records.list_patient_consultations(consultation.patient_id),
        records.list_patient_summaries(consultation.patient_id),
    )
    await session.welcome()
    return session.view()


@router.post("/sessions/{session_id}/messages", response_model=TurnResult)
async def submit_message(session_id: str, request: SubmitRequest) -> TurnResult:
    return await _require_session(session_id).submit(request.message)


@router.post("/sessions/{session_id}/reset", response_model=SessionView)
async def reset_session(session_id: str) -> SessionView:
    session = _require_session(session_id)
    session.reset()
    return session.view()


@router.post(
    "/sessions/{session_id}/summaries", response_model=SummaryResponse, status_code=201,
)
async def generate_summary(session_id: str, request: GenerateSummaryRequest) -> SummaryResponse:
    """Generate a synthesis, prescription or referral for the open consultation."""
    session = _require_session(session_id)
    if session.consultation is None:
        raise HTTPException(status_code=404, detail="No consultation selected")
    try:
        result = await session.generate_summary(request.summary_type)
    except BackendError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    if result is None:
        raise HTTPException(status_code=404, detail="No consultation selected")
    return result


@router.delete("/sessions/{session_id}")
async def delete_session(session_id: str) -> dict[str, str]:
    session_store.clear_session(session_id)
    return {"status": "cleared", "session_id": session_id}


@router.post("/analyze")
async def analyze_text(request: AnalyzeRequest) -> dict[str, Any]:
    """Analyze a draft message as it is typed."""
    analysis = analyze(request.text)
    return {
        "analysis": analysis.model_dump(mode="json"),
        "labels": {c.value: category_label(c) for c in analysis.categories},
        "suggested_actions": sorted(a.value for a in suggest_actions(analysis)),
    }


# ── Connectivity ────────────────────────────────────────────────────────────

@router.get("/connectivity")
async def get_connectivity() -> dict[str, Any]:
    return {
        "connectivity": connectivity_state.view().model_dump(mode="json"),
        "notifications": [n.model_dump(mode="json") for n in system_notices.drain()],
    }


@router.post("/connectivity/mode")
async def set_mode(request: ModeRequest) -> dict[str, Any]:
    accepted = await connectivity_monitor.set_mode(request.mode)
    return {
        "accepted": accepted,
        "connectivity": connectivity_state.view().model_dump(mode="json"),
    }


@router.post("/connectivity/dismiss")
async def dismiss_prompt() -> dict[str, Any]:
    connectivity_monitor.dismiss_prompt()
    return {"connectivity": connectivity_state.view().model_dump(mode="json")}


# ── Floating assistant ──────────────────────────────────────────────────────

@router.get("/general/{session_id}", response_model=SessionView)
async def get_general(session_id: str) -> SessionView:
    return session_store.get_general(session_id).view()


@router.post("/general/{session_id}/messages", response_model=TurnResult)
async def submit_general(session_id: str, request: SubmitRequest) -> TurnResult:
    return await session_store.get_general(session_id).submit(request.message)


@router.post("/general/{session_id}/reset", response_model=SessionView)
async def reset_general(session_id: str) -> SessionView:
    assistant = session_store.get_general(session_id)
    assistant.reset()
    return assistant.view()

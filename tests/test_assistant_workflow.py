"""Tests for the consultation assistant workflow and session state machine."""

import asyncio
from typing import Optional

import pytest

from app.agents.assistant_workflow import AssistantSession
from app.core.backend_client import BackendError
from app.core.connectivity import ConnectivityState
from app.core.offline_responder import OFFLINE_NOTICE
from app.models.schemas import (
    AiSummary,
    AppointmentIntent,
    AssistantPhase,
    ChatRole,
    ConnectivityMode,
    Consultation,
    DeliveryStatus,
    Patient,
    Priority,
    SuggestedAction,
    SummaryResponse,
    SummaryType,
    TurnStatus,
)
from app.prompts.assistant import WELCOME_PROMPT

PATIENT = Patient(id=1, first_name="Marie", last_name="Dubois", birth_date="1968-03-12")

CONSULTATION = Consultation(
    id=11, patient_id=1, doctor_id=7, date="2026-10-16", time="09:00",
    reason="Douleur thoracique", patient=PATIENT,
)
OTHER_CONSULTATION = Consultation(
    id=12, patient_id=1, doctor_id=7, date="2026-10-17", time="10:00",
    reason="Contrôle tension", patient=PATIENT,
)
PRIOR = Consultation(
    id=5, patient_id=1, doctor_id=7, date="2026-06-03", time="10:30",
    reason="Suivi hypertension", patient=PATIENT,
)
SUMMARY = AiSummary(
    id=100, consultation_id=5, patient_id=1, doctor_id=7, type="synthesis",
    content="Hypertension suivie.",
)


class FakeBackend:
    """Records chat calls; can fail or block until released."""

    def __init__(
        self,
        reply: str = "Réponse de l'assistant",
        fail: bool = False,
        gated: bool = False,
        fail_appointments: bool = False,
    ):
        self.reply = reply
        self.fail = fail
        self.fail_appointments = fail_appointments
        self.appointment_requests = []
        self.summary_requests = []
        self.calls: list[tuple[int, str, list]] = []
        self.entered = asyncio.Event()
        self.gate: Optional[asyncio.Event] = asyncio.Event() if gated else None

    async def chat(self, consultation_id, message, message_history):
        self.calls.append((consultation_id, message, message_history))
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise BackendError("HTTP 500", status_code=500)
        return self.reply

    async def create_appointment(self, request):
        self.appointment_requests.append(request)
        if self.fail_appointments:
            raise BackendError("HTTP 500", status_code=500)
        return {"id": 1}

    async def generate_summary(self, consultation_id, summary_type):
        self.summary_requests.append((consultation_id, summary_type))
        summary = AiSummary(
            id=101, consultation_id=consultation_id, patient_id=1, doctor_id=7,
            type=summary_type.value, content="Synthèse générée",
        )
        return SummaryResponse(summary=summary, content=summary.content)


async def no_command(text, consultation):
    return None


async def always_command(text, consultation):
    return AppointmentIntent(iso_date="2026-10-17", time="15:00", reason="douleur thoracique")


def _session(backend=None, mode=ConnectivityMode.ONLINE, interpreter=no_command, **kwargs):
    session = AssistantSession(
        "s1",
        backend=backend or FakeBackend(),
        connectivity=ConnectivityState(mode=mode),
        interpreter=interpreter,
        **kwargs,
    )
    session.select_consultation(CONSULTATION, [PRIOR, CONSULTATION], [SUMMARY])
    return session


# ── Input gating ─────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_submit_ignored_without_consultation():
    session = AssistantSession("s1", backend=FakeBackend(), connectivity=ConnectivityState())
    result = await session.submit("Toux")
    assert result.status == TurnStatus.IGNORED
    assert session.conversation == ()


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["", "   ", None])
async def test_blank_submission_ignored(text):
    backend = FakeBackend()
    session = _session(backend)
    assert (await session.submit(text)).status == TurnStatus.IGNORED
    assert backend.calls == []


# ── Welcome ──────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_welcome_runs_exactly_once():
    backend = FakeBackend(reply="Bienvenue")
    session = _session(backend)

    first = await session.welcome()
    second = await session.welcome()

    assert first.status == TurnStatus.ANSWERED
    assert second.status == TurnStatus.IGNORED
    assert [t.text for t in session.conversation] == ["Bienvenue"]
    assert backend.calls == [(11, WELCOME_PROMPT, [])]


@pytest.mark.asyncio
async def test_welcome_offline_is_local():
    backend = FakeBackend()
    session = _session(backend, mode=ConnectivityMode.OFFLINE)

    result = await session.welcome()

    assert result.status == TurnStatus.ANSWERED
    assert backend.calls == []
    assert "Marie Dubois" in result.turn.text
    assert result.turn.medical_context.priority == Priority.HIGH


@pytest.mark.asyncio
async def test_welcome_not_repeated_after_reset():
    session = _session()
    await session.welcome()
    session.reset()
    assert (await session.welcome()).status == TurnStatus.IGNORED
    assert session.conversation == ()


@pytest.mark.asyncio
async def test_new_consultation_gets_its_own_welcome():
    session = _session()
    await session.welcome()

    session.select_consultation(OTHER_CONSULTATION)

    assert session.conversation == ()
    assert (await session.welcome()).status == TurnStatus.ANSWERED


@pytest.mark.asyncio
async def test_welcome_failure_notifies_and_leaves_conversation_empty():
    session = _session(FakeBackend(fail=True))
    result = await session.welcome()
    assert result.status == TurnStatus.UNANSWERED
    assert session.conversation == ()
    assert len(session.notifications) == 1


@pytest.mark.asyncio
async def test_welcome_requested_during_turn_runs_when_idle():
    backend = FakeBackend(reply="Bonjour", gated=True)
    session = _session(backend)

    task = asyncio.create_task(session.submit("Toux"))
    await asyncio.wait_for(backend.entered.wait(), timeout=1)
    session.select_consultation(OTHER_CONSULTATION)
    assert (await session.welcome()).status == TurnStatus.IGNORED

    backend.gate.set()
    result = await task

    assert result.status == TurnStatus.STALE
    assert session.phase == AssistantPhase.IDLE
    assert [t.text for t in session.conversation] == ["Bonjour"]
    assert backend.calls[-1] == (12, WELCOME_PROMPT, [])
    assert (await session.welcome()).status == TurnStatus.IGNORED


# ── Command path ─────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_failed_appointment_creation_falls_through_to_chat():
    backend = FakeBackend(reply="Pensez à un ECG.", fail_appointments=True)
    session = _session(backend, interpreter=None)

    result = await session.submit("planifie un rendez-vous demain à 15h pour douleur thoracique")

    assert result.status == TurnStatus.ANSWERED
    assert len(backend.appointment_requests) == 1
    assert len(backend.calls) == 1
    user_turn, assistant_turn = session.conversation
    assert user_turn.role == ChatRole.USER
    assert user_turn.delivery == DeliveryStatus.SENT
    assert assistant_turn.text == "Pensez à un ECG."
    assert all(n.title != "Rendez-vous planifié" for n in session.notifications.peek())


@pytest.mark.asyncio
async def test_appointment_command_short_circuits_chat():
    backend = FakeBackend()
    session = _session(backend, interpreter=always_command)

    result = await session.submit("Planifie un rendez-vous demain à 15h pour douleur thoracique")

    assert result.status == TurnStatus.COMMAND
    assert backend.calls == []
    assert len(session.conversation) == 1
    turn = session.conversation[0]
    assert turn.role == ChatRole.ASSISTANT
    assert "17/10/2026" in turn.text
    assert "15:00" in turn.text
    assert "douleur thoracique" in turn.text
    assert session.notifications.peek()[0].title == "Rendez-vous planifié"


@pytest.mark.asyncio
async def test_interpreter_sees_interpreting_phase():
    seen = []

    async def spy(text, consultation):
        seen.append((session.phase, consultation.id))
        return None

    session = _session(interpreter=spy)
    await session.submit("Toux")
    assert seen == [(AssistantPhase.INTERPRETING_COMMAND, 11)]


# ── Chat path ────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_online_chat_appends_annotated_turns():
    backend = FakeBackend(reply="Pensez à un ECG.")
    session = _session(backend)

    result = await session.submit("Douleur thoracique et palpitations depuis hier")

    assert result.status == TurnStatus.ANSWERED
    user_turn, assistant_turn = session.conversation
    assert user_turn.role == ChatRole.USER
    assert user_turn.delivery == DeliveryStatus.SENT
    assert user_turn.medical_context.priority == Priority.HIGH
    assert "palpitation" in user_turn.medical_context.symptoms
    assert user_turn.medical_context.suggested_actions == frozenset()

    assert assistant_turn.text == "Pensez à un ECG."
    assert SuggestedAction.REFERRAL in assistant_turn.medical_context.suggested_actions
    assert result.turn == assistant_turn


@pytest.mark.asyncio
async def test_history_excludes_current_message():
    backend = FakeBackend()
    session = _session(backend)

    await session.submit("Toux")
    await session.submit("Fièvre")

    first_history = backend.calls[0][2]
    second_history = backend.calls[1][2]
    assert first_history == []
    assert [m.content for m in second_history] == ["Toux", "Réponse de l'assistant"]
    assert backend.calls[1][1] == "Fièvre"


@pytest.mark.asyncio
async def test_history_bounded_by_turn_window():
    backend = FakeBackend()
    session = _session(backend, max_turns=2)

    for text in ["un", "deux", "trois"]:
        await session.submit(text)

    assert len(backend.calls[-1][2]) == 2
    assert len(session.conversation) == 6


@pytest.mark.asyncio
async def test_online_failure_marks_turn_unanswered():
    backend = FakeBackend(fail=True)
    session = _session(backend)

    result = await session.submit("Toux")

    assert result.status == TurnStatus.UNANSWERED
    assert len(session.conversation) == 1
    assert session.conversation[0].text == "Toux"
    assert session.conversation[0].delivery == DeliveryStatus.UNANSWERED
    notices = session.notifications.drain()
    assert len(notices) == 1
    assert notices[0].variant == "destructive"
    assert session.phase == AssistantPhase.IDLE
    assert session.can_submit


@pytest.mark.asyncio
async def test_offline_chat_answers_locally():
    backend = FakeBackend()
    session = _session(backend, mode=ConnectivityMode.OFFLINE)

    result = await session.submit("Fais une synthèse")

    assert result.status == TurnStatus.ANSWERED
    assert backend.calls == []
    assert result.turn.text.endswith(OFFLINE_NOTICE)
    assert len(session.conversation) == 2


@pytest.mark.asyncio
async def test_mode_read_at_dispatch_time():
    backend = FakeBackend()
    state = ConnectivityState()
    session = AssistantSession("s1", backend=backend, connectivity=state, interpreter=no_command)
    session.select_consultation(CONSULTATION)

    await session.submit("Toux")
    state.mode = ConnectivityMode.OFFLINE
    await session.submit("Toux encore")

    assert len(backend.calls) == 1


# ── Concurrency ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_busy_session_ignores_second_submission():
    backend = FakeBackend(gated=True)
    session = _session(backend)

    task = asyncio.create_task(session.submit("Toux"))
    await asyncio.wait_for(backend.entered.wait(), timeout=1)

    assert session.phase == AssistantPhase.DISPATCHING
    assert not session.can_submit
    assert (await session.submit("Fièvre")).status == TurnStatus.IGNORED

    backend.gate.set()
    result = await task

    assert result.status == TurnStatus.ANSWERED
    assert len(backend.calls) == 1
    assert session.phase == AssistantPhase.IDLE


@pytest.mark.asyncio
async def test_reply_after_reset_is_discarded():
    backend = FakeBackend(gated=True)
    session = _session(backend)

    task = asyncio.create_task(session.submit("Toux"))
    await asyncio.wait_for(backend.entered.wait(), timeout=1)
    session.reset()
    backend.gate.set()
    result = await task

    assert result.status == TurnStatus.STALE
    assert session.conversation == ()
    assert session.phase == AssistantPhase.IDLE


@pytest.mark.asyncio
async def test_failure_after_consultation_switch_is_silent():
    backend = FakeBackend(fail=True, gated=True)
    session = _session(backend)

    task = asyncio.create_task(session.submit("Toux"))
    await asyncio.wait_for(backend.entered.wait(), timeout=1)
    session.select_consultation(OTHER_CONSULTATION)
    backend.gate.set()
    result = await task

    assert result.status == TurnStatus.STALE
    assert session.conversation == ()
    assert len(session.notifications) == 0


# ── Reset ────────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_reset_is_idempotent():
    session = _session()
    await session.submit("Toux")

    session.reset()
    session.reset()

    assert session.conversation == ()
    assert session.consultation.id == 11
    assert session.can_submit


def test_view_reports_consultation_and_phase():
    session = _session()
    view = session.view()
    assert view.session_id == "s1"
    assert view.consultation_id == 11
    assert view.phase == AssistantPhase.IDLE
    assert view.conversation == []


# ── AI documents ─────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_generated_summary_joins_patient_context():
    backend = FakeBackend()
    session = _session(backend)

    result = await session.generate_summary(SummaryType.CONSULTATION)

    assert result.content == "Synthèse générée"
    assert backend.summary_requests == [(11, SummaryType.CONSULTATION)]
    context = session._context_for(CONSULTATION, ())
    assert [s.id for s in context.prior_summaries] == [101, 100]
    assert session.conversation == ()


@pytest.mark.asyncio
async def test_generate_summary_without_consultation():
    backend = FakeBackend()
    session = AssistantSession("s1", backend=backend, connectivity=ConnectivityState())
    assert await session.generate_summary(SummaryType.REFERRAL) is None
    assert backend.summary_requests == []

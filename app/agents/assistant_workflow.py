"""
Consultation Assistant Workflow

LangGraph workflow, one run per submitted turn:
  interpret_command
    -> [command]  -> confirm_appointment
    -> [chat]     -> analyze -> assemble_context
        -> [online]   -> dispatch_remote
        -> [offline]  -> dispatch_local

Each node moves the session through its phases (interpreting_command,
analyzing, assembling_context, dispatching) and the session returns to idle
when the run ends.  Submissions are refused while the session is not idle.

Every run captures the session epoch at submission.  Selecting another
consultation or resetting the conversation advances the epoch, and results
computed under an older epoch are discarded instead of being appended.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Awaitable, Callable, Optional, Sequence, TypedDict

from langgraph.graph import END, StateGraph

from app.core.appointment_interpreter import try_interpret
from app.core.backend_client import AssistantBackendClient, BackendError
from app.core.connectivity import ConnectivityState
from app.core.context_assembler import build_context, to_message_history
from app.core.notifications import NotificationFeed
from app.core.offline_responder import (
    analyze_consultation,
    generate_response,
    welcome_message,
)
from app.core.symptom_analyzer import analyze, flatten_symptoms, suggest_actions
from app.models.schemas import (
    AiSummary,
    AnalysisResult,
    AppointmentIntent,
    AssistantPhase,
    ChatRole,
    ChatTurn,
    Consultation,
    ConversationContext,
    DeliveryStatus,
    MedicalContext,
    SessionView,
    SummaryResponse,
    SummaryType,
    TurnResult,
    TurnStatus,
)
from app.prompts.assistant import WELCOME_PROMPT

logger = logging.getLogger(__name__)

CommandInterpreter = Callable[[str, Consultation], Awaitable[Optional[AppointmentIntent]]]

DISPATCH_ERROR_TITLE = "Erreur de communication"
DISPATCH_ERROR_DESCRIPTION = (
    "Impossible de contacter l'assistant IA. Réessayez ou passez en mode hors ligne."
)


# ---------------------------------------------------------------------------
# State schema
# ---------------------------------------------------------------------------

class TurnState(TypedDict):
    message: str
    epoch: int
    consultation: Consultation
    intent: Optional[AppointmentIntent]
    analysis: Optional[AnalysisResult]
    user_turn_id: Optional[str]
    context: Optional[ConversationContext]
    status: Optional[TurnStatus]
    turn: Optional[ChatTurn]


def _assistant_annotation(analysis: AnalysisResult) -> MedicalContext:
    return MedicalContext(
        symptoms=flatten_symptoms(analysis),
        suggested_actions=suggest_actions(analysis),
        priority=analysis.priority,
    )


def format_appointment_confirmation(intent: AppointmentIntent, consultation: Consultation) -> str:
    """Text of the synthetic assistant turn confirming a created appointment."""
    day = date.fromisoformat(intent.iso_date).strftime("%d/%m/%Y")
    patient = (
        consultation.patient.full_name
        if consultation.patient is not None
        else f"patient n°{consultation.patient_id}"
    )
    return (
        f"\U0001f4c5 Rendez-vous planifié pour {patient} le {day} à {intent.time}.\n"
        f"Motif : {intent.reason}"
    )


class AssistantSession:
    """Consultation-scoped assistant: conversation state plus the turn workflow.

    Parameters
    ----------
    session_id:
        Identifier of the hosting view.
    backend:
        Object exposing ``chat(consultation_id, message, history)``,
        ``create_appointment(request)`` and ``generate_summary(...)`` coroutines.
    connectivity:
        Shared online/offline state, read at dispatch time.
    notifier:
        Notification collaborator; a private feed is created when omitted.
    interpreter:
        Optional override of the appointment command interpreter.
    """

    def __init__(
        self,
        session_id: str,
        backend: AssistantBackendClient,
        connectivity: ConnectivityState,
        notifier: Optional[NotificationFeed] = None,
        interpreter: Optional[CommandInterpreter] = None,
        max_turns: Optional[int] = None,
        max_summaries: Optional[int] = None,
    ) -> None:
        self.session_id = session_id
        self.connectivity = connectivity
        self.notifications = notifier if notifier is not None else NotificationFeed()
        self._backend = backend
        self._interpret = interpreter or self._interpret_with_backend
        self._max_turns = max_turns
        self._max_summaries = max_summaries

        self._conversation: tuple[ChatTurn, ...] = ()
        self._phase = AssistantPhase.IDLE
        self._epoch = 0
        self._welcomed = False
        # Set when a welcome was requested while a turn was in flight
        self._welcome_deferred = False
        self._consultation: Optional[Consultation] = None
        self._patient_consultations: list[Consultation] = []
        self._patient_summaries: list[AiSummary] = []

        self._graph = self._build_graph()

    # ── Read-only views ──

    @property
    def conversation(self) -> tuple[ChatTurn, ...]:
        return self._conversation

    @property
    def phase(self) -> AssistantPhase:
        return self._phase

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def consultation(self) -> Optional[Consultation]:
        return self._consultation

    @property
    def can_submit(self) -> bool:
        """False while a turn is in flight or no consultation is selected."""
        return self._consultation is not None and self._phase == AssistantPhase.IDLE

    def view(self, drain_notifications: bool = True) -> SessionView:
        notices = (
            self.notifications.drain() if drain_notifications
            else self.notifications.peek()
        )
        return SessionView(
            session_id=self.session_id,
            phase=self._phase,
            consultation_id=self._consultation.id if self._consultation else None,
            conversation=list(self._conversation),
            notifications=notices,
        )

    # ── Context switches ──

    def select_consultation(
        self,
        consultation: Consultation,
        patient_consultations: Sequence[Consultation] = (),
        patient_summaries: Sequence[AiSummary] = (),
    ) -> None:
        """Make *consultation* active and start an empty conversation."""
        self._consultation = consultation
        self._patient_consultations = list(patient_consultations)
        self._patient_summaries = list(patient_summaries)
        self._welcomed = False
        self._welcome_deferred = False
        self._advance_epoch()
        logger.info(
            "Session %s switched to consultation %s (epoch %d)",
            self.session_id, consultation.id, self._epoch,
        )

    def reset(self) -> None:
        """Empty the conversation. Resetting an empty conversation changes nothing visible."""
        self._advance_epoch()

    async def generate_summary(self, summary_type: SummaryType) -> Optional[SummaryResponse]:
        """Have the backend write an AI document for the active consultation.

        The new summary joins the patient's summaries used to build the
        context of later turns.  BackendError propagates to the caller.

        Returns:
            The generated summary, or None when no consultation is selected.
        """
        consultation = self._consultation
        if consultation is None:
            return None

        result = await self._backend.generate_summary(consultation.id, summary_type)
        active = self._consultation
        if active is not None and active.patient_id == result.summary.patient_id:
            self._patient_summaries.append(result.summary)
        logger.info(
            "Session %s generated %s summary %d",
            self.session_id, result.summary.type, result.summary.id,
        )
        return result

    def _advance_epoch(self) -> None:
        self._epoch += 1
        self._conversation = ()

    def _is_current(self, epoch: int) -> bool:
        return epoch == self._epoch

    def _append(self, turn: ChatTurn) -> None:
        self._conversation = self._conversation + (turn,)

    def _mark_unanswered(self, turn_id: Optional[str]) -> None:
        self._conversation = tuple(
            t.model_copy(update={"delivery": DeliveryStatus.UNANSWERED})
            if t.id == turn_id else t
            for t in self._conversation
        )

    # ── Public transitions ──

    async def submit(self, text: str) -> TurnResult:
        """Handle one user submission.

        Returns:
            A ``TurnResult``: ``ignored`` when the input is disabled or
            empty, ``command`` for a created appointment, ``answered`` /
            ``unanswered`` for a chat turn, ``stale`` when the context
            changed while the turn was in flight.
        """
        text = (text or "").strip()
        if not text or not self.can_submit:
            return TurnResult(status=TurnStatus.IGNORED)

        # Set before the first await: a second submit now sees a busy session.
        self._phase = AssistantPhase.INTERPRETING_COMMAND
        initial_state: TurnState = {
            "message": text,
            "epoch": self._epoch,
            "consultation": self._consultation,
            "intent": None,
            "analysis": None,
            "user_turn_id": None,
            "context": None,
            "status": None,
            "turn": None,
        }
        try:
            result = await self._graph.ainvoke(initial_state)
        finally:
            self._phase = AssistantPhase.IDLE

        await self._run_deferred_welcome()
        return TurnResult(
            status=result.get("status") or TurnStatus.IGNORED,
            turn=result.get("turn"),
        )

    async def welcome(self) -> TurnResult:
        """Greet the doctor once per newly selected consultation.

        Runs only while the conversation is empty; online the greeting is
        written by the backend, offline it is built locally.  Requested
        while a turn is in flight, it is deferred and runs as soon as the
        session is idle again.
        """
        if self._consultation is None or self._welcomed or self._conversation:
            return TurnResult(status=TurnStatus.IGNORED)
        if self._phase != AssistantPhase.IDLE:
            self._welcome_deferred = True
            return TurnResult(status=TurnStatus.IGNORED)

        result = await self._greet(self._consultation)
        await self._run_deferred_welcome()
        return result

    async def _run_deferred_welcome(self) -> None:
        if self._welcome_deferred:
            self._welcome_deferred = False
            await self.welcome()

    async def _greet(self, consultation: Consultation) -> TurnResult:
        self._welcomed = True
        epoch = self._epoch
        self._phase = AssistantPhase.DISPATCHING
        try:
            context = self._context_for(consultation, ())
            if self.connectivity.is_online:
                try:
                    text = await self._backend.chat(consultation.id, WELCOME_PROMPT, [])
                except BackendError as exc:
                    logger.warning("Welcome dispatch failed: %s", exc)
                    if not self._is_current(epoch):
                        return TurnResult(status=TurnStatus.STALE)
                    self.notifications.notify(
                        DISPATCH_ERROR_TITLE, DISPATCH_ERROR_DESCRIPTION, "destructive",
                    )
                    return TurnResult(status=TurnStatus.UNANSWERED)
            else:
                text = welcome_message(context)

            if not self._is_current(epoch):
                logger.info("Discarding welcome for an outdated consultation")
                return TurnResult(status=TurnStatus.STALE)

            turn = ChatTurn(
                role=ChatRole.ASSISTANT,
                text=text,
                medical_context=_assistant_annotation(analyze_consultation(consultation)),
            )
            self._append(turn)
            return TurnResult(status=TurnStatus.ANSWERED, turn=turn)
        finally:
            self._phase = AssistantPhase.IDLE

    # ── Helpers ──

    async def _interpret_with_backend(
        self, text: str, consultation: Consultation,
    ) -> Optional[AppointmentIntent]:
        return await try_interpret(text, consultation, self._backend.create_appointment)

    def _context_for(
        self,
        consultation: Consultation,
        turns: Sequence[ChatTurn],
    ) -> ConversationContext:
        return build_context(
            consultation,
            self._patient_consultations,
            self._patient_summaries,
            turns,
            max_summaries=self._max_summaries,
            max_turns=self._max_turns,
        )

    # -----------------------------------------------------------------------
    # Node 1: interpret_command
    # -----------------------------------------------------------------------

    async def _interpret_command_node(self, state: TurnState) -> dict:
        """Try the message as a scheduling command first."""
        self._phase = AssistantPhase.INTERPRETING_COMMAND
        intent = await self._interpret(state["message"], state["consultation"])
        return {"intent": intent}

    @staticmethod
    def _route_after_interpret(state: TurnState) -> str:
        return "command" if state["intent"] is not None else "chat"

    # -----------------------------------------------------------------------
    # Node 1b: confirm_appointment (short-circuit, backend never contacted)
    # -----------------------------------------------------------------------

    async def _confirm_appointment_node(self, state: TurnState) -> dict:
        intent = state["intent"]
        if not self._is_current(state["epoch"]):
            logger.info("Appointment created for an outdated consultation; not shown")
            return {"status": TurnStatus.STALE}

        turn = ChatTurn(
            role=ChatRole.ASSISTANT,
            text=format_appointment_confirmation(intent, state["consultation"]),
        )
        self._append(turn)
        self.notifications.notify(
            "Rendez-vous planifié",
            f"{intent.iso_date} à {intent.time} - {intent.reason}",
        )
        return {"status": TurnStatus.COMMAND, "turn": turn}

    # -----------------------------------------------------------------------
    # Node 2: analyze (annotation only, does not gate dispatch)
    # -----------------------------------------------------------------------

    async def _analyze_node(self, state: TurnState) -> dict:
        self._phase = AssistantPhase.ANALYZING
        analysis = analyze(state["message"])
        if not self._is_current(state["epoch"]):
            return {"analysis": analysis, "status": TurnStatus.STALE}

        user_turn = ChatTurn(
            role=ChatRole.USER,
            text=state["message"],
            medical_context=MedicalContext(
                symptoms=flatten_symptoms(analysis),
                priority=analysis.priority,
            ),
            delivery=DeliveryStatus.SENT,
        )
        self._append(user_turn)
        logger.debug(
            "Analysis: %d symptoms, priority %s",
            analysis.total_symptom_count, analysis.priority.value,
        )
        return {"analysis": analysis, "user_turn_id": user_turn.id}

    @staticmethod
    def _route_after_analyze(state: TurnState) -> str:
        return "stale" if state["status"] == TurnStatus.STALE else "continue"

    # -----------------------------------------------------------------------
    # Node 3: assemble_context
    # -----------------------------------------------------------------------

    async def _assemble_context_node(self, state: TurnState) -> dict:
        """Bound the context; the current message travels separately."""
        self._phase = AssistantPhase.ASSEMBLING_CONTEXT
        history = [t for t in self._conversation if t.id != state["user_turn_id"]]
        return {"context": self._context_for(state["consultation"], history)}

    def _route_dispatch(self, state: TurnState) -> str:
        return "online" if self.connectivity.is_online else "offline"

    # -----------------------------------------------------------------------
    # Node 4a: dispatch_remote
    # -----------------------------------------------------------------------

    async def _dispatch_remote_node(self, state: TurnState) -> dict:
        self._phase = AssistantPhase.DISPATCHING
        context = state["context"]
        try:
            reply = await self._backend.chat(
                state["consultation"].id,
                state["message"],
                to_message_history(context.recent_turns),
            )
        except BackendError as exc:
            logger.warning("Chat dispatch failed: %s", exc)
            if not self._is_current(state["epoch"]):
                return {"status": TurnStatus.STALE}
            self._mark_unanswered(state["user_turn_id"])
            self.notifications.notify(
                DISPATCH_ERROR_TITLE, DISPATCH_ERROR_DESCRIPTION, "destructive",
            )
            return {"status": TurnStatus.UNANSWERED}

        if not self._is_current(state["epoch"]):
            logger.info("Discarding reply for an outdated conversation")
            return {"status": TurnStatus.STALE}

        turn = ChatTurn(
            role=ChatRole.ASSISTANT,
            text=reply,
            medical_context=_assistant_annotation(state["analysis"]),
        )
        self._append(turn)
        return {"status": TurnStatus.ANSWERED, "turn": turn}

    # -----------------------------------------------------------------------
    # Node 4b: dispatch_local (offline templates)
    # -----------------------------------------------------------------------

    async def _dispatch_local_node(self, state: TurnState) -> dict:
        self._phase = AssistantPhase.DISPATCHING
        reply = generate_response(state["message"], state["context"])
        if not self._is_current(state["epoch"]):
            return {"status": TurnStatus.STALE}

        turn = ChatTurn(
            role=ChatRole.ASSISTANT,
            text=reply,
            medical_context=_assistant_annotation(state["analysis"]),
        )
        self._append(turn)
        return {"status": TurnStatus.ANSWERED, "turn": turn}

    # -----------------------------------------------------------------------
    # Build and compile the graph
    # -----------------------------------------------------------------------

    def _build_graph(self):
        """Construct the LangGraph StateGraph for one assistant turn.

        Returns:
            A compiled LangGraph graph.
        """
        graph = StateGraph(TurnState)

        graph.add_node("interpret_command", self._interpret_command_node)
        graph.add_node("confirm_appointment", self._confirm_appointment_node)
        graph.add_node("analyze", self._analyze_node)
        graph.add_node("assemble_context", self._assemble_context_node)
        graph.add_node("dispatch_remote", self._dispatch_remote_node)
        graph.add_node("dispatch_local", self._dispatch_local_node)

        graph.set_entry_point("interpret_command")

        graph.add_conditional_edges(
            "interpret_command",
            self._route_after_interpret,
            {"command": "confirm_appointment", "chat": "analyze"},
        )
        graph.add_conditional_edges(
            "analyze",
            self._route_after_analyze,
            {"stale": END, "continue": "assemble_context"},
        )
        graph.add_conditional_edges(
            "assemble_context",
            self._route_dispatch,
            {"online": "dispatch_remote", "offline": "dispatch_local"},
        )

        graph.add_edge("confirm_appointment", END)
        graph.add_edge("dispatch_remote", END)
        graph.add_edge("dispatch_local", END)

        return graph.compile()

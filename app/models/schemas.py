"""
Pydantic Schemas

Defines the data model of the consultation assistant and the request /
response models of every API contract:
- Patient, Consultation, AiSummary records consumed by the assistant
- ChatTurn, AnalysisResult, AppointmentIntent, ConversationContext
- Wire models for the remote chat, health and appointment contracts
- Request / response models for the assistant router
"""

from __future__ import annotations

import uuid
from datetime import date as _date
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_turn_id() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class ChatRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SuggestedAction(str, Enum):
    SYNTHESIS = "synthesis"
    PRESCRIPTION = "prescription"
    EXAMINATION = "examination"
    REFERRAL = "referral"


class SymptomCategory(str, Enum):
    CARDIOVASCULAR = "cardiovascular"
    RESPIRATORY = "respiratory"
    NEUROLOGICAL = "neurological"
    GASTROINTESTINAL = "gastrointestinal"
    INFECTIOUS = "infectious"
    MUSCULOSKELETAL = "musculoskeletal"
    DERMATOLOGICAL = "dermatological"
    GENITOURINARY = "genitourinary"
    GENERAL = "general"


class SummaryType(str, Enum):
    """Kind of AI document generated from a consultation."""

    CONSULTATION = "consultation"
    PRESCRIPTION = "prescription"
    REFERRAL = "referral"


class DeliveryStatus(str, Enum):
    """Delivery state of a user turn."""

    SENT = "sent"
    UNANSWERED = "unanswered"


class ConnectivityMode(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


class AssistantPhase(str, Enum):
    IDLE = "idle"
    INTERPRETING_COMMAND = "interpreting_command"
    ANALYZING = "analyzing"
    ASSEMBLING_CONTEXT = "assembling_context"
    DISPATCHING = "dispatching"


class TurnStatus(str, Enum):
    """Outcome of one submission to an assistant session."""

    IGNORED = "ignored"
    COMMAND = "command"
    ANSWERED = "answered"
    UNANSWERED = "unanswered"
    STALE = "stale"


# ---------------------------------------------------------------------------
# Clinical records (fetched by the host application, read-only here)
# ---------------------------------------------------------------------------

class Patient(BaseModel):
    """Patient demographic information."""

    id: int
    first_name: str
    last_name: str
    birth_date: str
    phone: Optional[str] = None
    email: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def age(self, today: Optional[_date] = None) -> int:
        """Age in whole years at *today* (defaults to the current date)."""
        today = today or _date.today()
        birth = _date.fromisoformat(self.birth_date)
        years = today.year - birth.year
        if (today.month, today.day) < (birth.month, birth.day):
            years -= 1
        return years


class Consultation(BaseModel):
    """A consultation record, optionally joined with its patient."""

    id: int
    patient_id: int
    doctor_id: int
    date: str
    time: str
    reason: str
    status: str = "scheduled"
    notes: Optional[str] = None
    diagnosis: Optional[str] = None
    treatment: Optional[str] = None
    patient: Optional[Patient] = None


class AiSummary(BaseModel):
    """A previously generated AI document (synthesis, prescription, referral)."""

    id: int
    consultation_id: int
    patient_id: int
    doctor_id: int
    type: str
    content: str
    generated_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Conversation model
# ---------------------------------------------------------------------------

class MedicalContext(BaseModel):
    """Local annotation attached to turns that went through the analyzer."""

    model_config = ConfigDict(frozen=True)

    symptoms: list[str] = []
    suggested_actions: frozenset[SuggestedAction] = frozenset()
    priority: Priority = Priority.LOW


class ChatTurn(BaseModel):
    """One message of the conversation. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_turn_id)
    role: ChatRole
    text: str
    created_at: datetime = Field(default_factory=_utcnow)
    medical_context: Optional[MedicalContext] = None
    delivery: Optional[DeliveryStatus] = None

    @model_validator(mode="after")
    def _only_assistant_turns_suggest_actions(self) -> "ChatTurn":
        if (
            self.role == ChatRole.USER
            and self.medical_context is not None
            and self.medical_context.suggested_actions
        ):
            raise ValueError("user turns cannot carry suggested actions")
        if self.role == ChatRole.ASSISTANT and self.delivery is not None:
            raise ValueError("delivery status only applies to user turns")
        return self


class AnalysisResult(BaseModel):
    """Outcome of the local symptom analysis of one text."""

    detected_symptoms: dict[SymptomCategory, list[str]] = {}
    total_symptom_count: int = 0
    priority: Priority = Priority.LOW
    categories: set[SymptomCategory] = set()


class AppointmentIntent(BaseModel):
    """A scheduling command extracted from free text."""

    iso_date: str
    time: str
    reason: str


class ConversationContext(BaseModel):
    """Bounded context assembled for one remote dispatch."""

    active_consultation: Consultation
    prior_consultations: list[Consultation] = []
    prior_summaries: list[AiSummary] = []
    recent_turns: list[ChatTurn] = []


# ---------------------------------------------------------------------------
# Remote backend contracts (camelCase on the wire)
# ---------------------------------------------------------------------------

class HistoryMessage(BaseModel):
    role: ChatRole
    content: str
    timestamp: Optional[datetime] = None


class ConsultationChatRequest(BaseModel):
    """Consultation-scoped chat dispatch."""

    model_config = ConfigDict(populate_by_name=True)

    consultation_id: int = Field(alias="consultationId")
    message: str
    message_history: list[HistoryMessage] = Field(
        default_factory=list, alias="messageHistory",
    )


class GeneralChatRequest(BaseModel):
    """General (floating) assistant dispatch, not bound to a consultation."""

    model_config = ConfigDict(populate_by_name=True)

    message: str
    message_history: list[HistoryMessage] = Field(
        default_factory=list, alias="messageHistory",
    )


class ChatReply(BaseModel):
    response: str


class SummaryRequest(BaseModel):
    """AI document generation for one consultation."""

    model_config = ConfigDict(populate_by_name=True)

    consultation_id: int = Field(alias="consultationId")
    summary_type: SummaryType = Field(alias="summaryType")


class SummaryResponse(BaseModel):
    summary: AiSummary
    content: str


class AppointmentRequest(BaseModel):
    """Payload of the external appointment-creation operation."""

    model_config = ConfigDict(populate_by_name=True)

    patient_id: int = Field(alias="patientId")
    doctor_id: int = Field(alias="doctorId")
    date: str
    time: str
    reason: str


# ---------------------------------------------------------------------------
# Assistant router models
# ---------------------------------------------------------------------------

class Notification(BaseModel):
    """A one-shot notice for the host application's notification surface."""

    title: str
    description: str = ""
    variant: str = "default"
    created_at: datetime = Field(default_factory=_utcnow)


class SelectConsultationRequest(BaseModel):
    consultation_id: int


class SubmitRequest(BaseModel):
    message: str


class GenerateSummaryRequest(BaseModel):
    summary_type: SummaryType


class AnalyzeRequest(BaseModel):
    text: str


class ModeRequest(BaseModel):
    mode: ConnectivityMode


class TurnResult(BaseModel):
    """Result of a submission: what happened and the turn it produced, if any."""

    status: TurnStatus
    turn: Optional[ChatTurn] = None


class ConnectivityView(BaseModel):
    mode: ConnectivityMode
    last_check_at: Optional[datetime] = None
    last_check_ok: Optional[bool] = None
    offline_prompt_pending: bool = False
    refusal_reason: Optional[str] = None


class SessionView(BaseModel):
    """Snapshot of an assistant session for the UI."""

    session_id: str
    phase: AssistantPhase
    consultation_id: Optional[int] = None
    conversation: list[ChatTurn]
    notifications: list[Notification] = []

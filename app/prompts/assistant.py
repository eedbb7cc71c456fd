"""
Assistant Prompts

System and user prompts for the assistant backend endpoints:
consultation-scoped chat, general chat, and the welcome greeting request
sent by the orchestrator when a consultation is opened.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Sequence

from app.models.schemas import (
    AiSummary,
    ChatRole,
    ChatTurn,
    Consultation,
    ConversationContext,
)

_WEEKDAYS = ["lundi", "mardi", "mercredi", "jeudi", "vendredi", "samedi", "dimanche"]
_MONTHS = [
    "janvier", "février", "mars", "avril", "mai", "juin", "juillet",
    "août", "septembre", "octobre", "novembre", "décembre",
]


# ---------------------------------------------------------------------------
# System prompt for consultation-scoped chat
# ---------------------------------------------------------------------------
CONSULTATION_SYSTEM_PROMPT = """Vous êtes un assistant médical IA qui aide un \
médecin pendant ses consultations.

Date du jour : {today}, {clock}.

PATIENT ET CONSULTATION EN COURS :
{patient_block}

HISTORIQUE DES CONSULTATIONS :
{prior_consultations}

SYNTHÈSES IA PRÉCÉDENTES :
{prior_summaries}

Votre rôle :
1. Analyser les symptômes décrits en langage naturel
2. Proposer des diagnostics différentiels pertinents
3. Suggérer les examens complémentaires utiles
4. Rappeler les recommandations thérapeutiques en vigueur
5. Rédiger des synthèses structurées de la consultation

Répondez en français, de façon professionnelle, précise et concise, avec la \
terminologie médicale appropriée. Tenez compte de tout l'historique du patient. \
Ne présentez jamais une hypothèse comme un diagnostic certain."""


# ---------------------------------------------------------------------------
# System prompt for the general (floating) assistant
# ---------------------------------------------------------------------------
GENERAL_SYSTEM_PROMPT = """Tu es un assistant IA médical qui aide des \
médecins dans leurs tâches quotidiennes.

Date du jour : {today}, {clock}.

Consignes :
- Réponds en français, de manière professionnelle et bienveillante
- Donne des informations médicales fondées sur les preuves
- Si tu n'es pas sûr d'une information, dis-le clairement
- Ne pose jamais de diagnostic définitif sans examen clinique
- Tiens compte de la date du jour quand c'est pertinent

Tu peux aider à l'analyse de symptômes, aux diagnostics différentiels, aux \
traitements standard, aux examens complémentaires, à la rédaction de \
documents médicaux et à la planification."""


# ---------------------------------------------------------------------------
# User-turn template shared by both chat endpoints
# ---------------------------------------------------------------------------
CHAT_USER_TEMPLATE = """Date et heure : {today} à {clock}

Historique de la conversation :
{history}

Message du médecin : {message}"""


# ---------------------------------------------------------------------------
# Message sent in place of user input when a consultation is opened online
# ---------------------------------------------------------------------------
WELCOME_PROMPT = """Présente-toi en une phrase puis résume le dossier de ce \
patient : motif de la consultation, éléments marquants de l'historique et \
points de vigilance. Termine en proposant ton aide pour la suite de la \
consultation."""


# ===== Helper / formatting functions ========================================


def format_french_date(moment: datetime) -> str:
    """Render *moment* as e.g. "vendredi 16 octobre 2026"."""
    return (
        f"{_WEEKDAYS[moment.weekday()]} {moment.day} "
        f"{_MONTHS[moment.month - 1]} {moment.year}"
    )


def format_clock(moment: datetime) -> str:
    return f"{moment.hour:02d}:{moment.minute:02d}"


def format_patient_block(consultation: Consultation, today: datetime) -> str:
    """Describe the patient and the active consultation."""
    patient = consultation.patient
    if patient is not None:
        identity = (
            f"{patient.full_name}, {patient.age(today.date())} ans, "
            f"né(e) le {patient.birth_date}"
        )
    else:
        identity = f"Patient n°{consultation.patient_id}"
    return (
        f"- Patient : {identity}\n"
        f"- Motif : {consultation.reason}\n"
        f"- Notes : {consultation.notes or 'Aucune note'}\n"
        f"- Diagnostic : {consultation.diagnosis or 'Non établi'}\n"
        f"- Traitement : {consultation.treatment or 'Non prescrit'}"
    )


def format_prior_consultations(consultations: Sequence[Consultation]) -> str:
    if not consultations:
        return "(Aucune consultation précédente)"
    lines = []
    for i, prev in enumerate(consultations, 1):
        lines.append(
            f"{i}. {prev.date} - Motif : {prev.reason}, "
            f"Diagnostic : {prev.diagnosis or 'Non spécifié'}"
        )
        if prev.notes:
            lines.append(f"   Notes : {prev.notes}")
        if prev.treatment:
            lines.append(f"   Traitement : {prev.treatment}")
    return "\n".join(lines)


def format_prior_summaries(summaries: Sequence[AiSummary], excerpt: int = 200) -> str:
    """List summaries with a truncated excerpt of their content."""
    if not summaries:
        return "(Aucune synthèse précédente)"
    lines = []
    for i, summary in enumerate(summaries, 1):
        when = (
            summary.generated_at.strftime("%d/%m/%Y")
            if summary.generated_at else "date inconnue"
        )
        content = summary.content
        if len(content) > excerpt:
            content = content[:excerpt] + "..."
        lines.append(f"{i}. {summary.type} du {when}\n   {content}")
    return "\n".join(lines)


def format_history(turns: Iterable[ChatTurn], max_chars: int = 400) -> str:
    """Format turns as "Médecin: ..." / "Assistant: ..." lines.

    Assistant messages are truncated to *max_chars* characters to save
    prompt space.
    """
    lines = []
    for turn in turns:
        speaker = "Médecin" if turn.role == ChatRole.USER else "Assistant"
        text = turn.text
        if turn.role == ChatRole.ASSISTANT and len(text) > max_chars:
            text = text[:max_chars] + "..."
        lines.append(f"{speaker} : {text}")
    return "\n".join(lines) if lines else "(Début de la conversation)"


def format_consultation_prompt(
    context: ConversationContext,
    message: str,
    now: datetime,
) -> tuple[str, str]:
    """Build the ``(system_prompt, user_prompt)`` pair for consultation chat."""
    today = format_french_date(now)
    clock = format_clock(now)
    system_prompt = CONSULTATION_SYSTEM_PROMPT.format(
        today=today,
        clock=clock,
        patient_block=format_patient_block(context.active_consultation, now),
        prior_consultations=format_prior_consultations(context.prior_consultations),
        prior_summaries=format_prior_summaries(context.prior_summaries),
    )
    user_prompt = CHAT_USER_TEMPLATE.format(
        today=today,
        clock=clock,
        history=format_history(context.recent_turns),
        message=message,
    )
    return system_prompt, user_prompt


def format_general_prompt(
    message: str,
    turns: Sequence[ChatTurn],
    now: datetime,
) -> tuple[str, str]:
    """Build the ``(system_prompt, user_prompt)`` pair for general chat."""
    today = format_french_date(now)
    clock = format_clock(now)
    system_prompt = GENERAL_SYSTEM_PROMPT.format(today=today, clock=clock)
    user_prompt = CHAT_USER_TEMPLATE.format(
        today=today,
        clock=clock,
        history=format_history(turns),
        message=message,
    )
    return system_prompt, user_prompt

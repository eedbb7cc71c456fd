"""
Offline Responder

Local, template-based answers used when the assistant runs in offline mode.

The message is routed once to an ``Intent``; the intent selects a pure
generator from ``GENERATORS``.  Generators are parameterised by the analysis
of the active consultation's reason / diagnosis / notes, not by the live
message, so they produce a contextual summary rather than a literal answer.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Callable

from app.core.symptom_analyzer import analyze, category_label, flatten_symptoms
from app.models.schemas import (
    AnalysisResult,
    Consultation,
    ConversationContext,
    Priority,
    SymptomCategory,
)


class Intent(str, Enum):
    """What an offline message asks for; selects the generator."""

    SYNTHESIS = "synthesis"
    PRESCRIPTION = "prescription"
    DIAGNOSTIC = "diagnostic"
    EXAMINATION = "examination"
    GENERAL = "general"


# Checked in order; the first intent with a matching pattern wins.
_INTENT_PATTERNS: list[tuple[Intent, re.Pattern]] = [
    (Intent.SYNTHESIS, re.compile(
        r"\b(synth[èe]se|r[ée]sum[ée]?|r[ée]capitul\w*|compte[\s-]rendu)\b", re.IGNORECASE)),
    (Intent.PRESCRIPTION, re.compile(
        r"\b(ordonnance|prescri\w*|traitement|m[ée]dicaments?|posologie)\b", re.IGNORECASE)),
    (Intent.DIAGNOSTIC, re.compile(
        r"\b(diagnos\w*|hypoth[èe]ses?|diff[ée]rentiel)\b", re.IGNORECASE)),
    (Intent.EXAMINATION, re.compile(
        r"\b(examens?|bilan|imagerie|radio\w*|scanner|irm|[ée]chographie|prise de sang)\b",
        re.IGNORECASE)),
]

PRIORITY_LABELS: dict[Priority, str] = {
    Priority.LOW: "\U0001f7e2 Faible",
    Priority.MEDIUM: "\U0001f7e0 Modérée",
    Priority.HIGH: "\U0001f534 Élevée",
}

_EXAMS_BY_CATEGORY: dict[SymptomCategory, str] = {
    SymptomCategory.CARDIOVASCULAR: "ECG, troponine, mesure de la pression artérielle",
    SymptomCategory.RESPIRATORY: "auscultation, saturation, radiographie thoracique",
    SymptomCategory.NEUROLOGICAL: "examen neurologique complet, imagerie cérébrale si signe focal",
    SymptomCategory.GASTROINTESTINAL: "palpation abdominale, bilan hépatique, lipase",
    SymptomCategory.INFECTIOUS: "NFS, CRP, prélèvements selon le foyer suspecté",
    SymptomCategory.MUSCULOSKELETAL: "examen articulaire, radiographie ciblée",
    SymptomCategory.DERMATOLOGICAL: "examen cutané complet, photographie des lésions",
    SymptomCategory.GENITOURINARY: "bandelette urinaire, ECBU",
    SymptomCategory.GENERAL: "bilan biologique standard (NFS, ionogramme, TSH)",
}

OFFLINE_NOTICE = "_Mode hors ligne : réponse générée localement, sans analyse par l'IA._"


def resolve_intent(message: str) -> Intent:
    """Route *message* to the offline generator it asks for."""
    for intent, pattern in _INTENT_PATTERNS:
        if pattern.search(message or ""):
            return intent
    return Intent.GENERAL


def consultation_text(consultation: Consultation) -> str:
    """Concatenate the free-text fields the offline analysis runs on."""
    parts = [consultation.reason, consultation.diagnosis, consultation.notes]
    return " ".join(p for p in parts if p)


def analyze_consultation(consultation: Consultation) -> AnalysisResult:
    return analyze(consultation_text(consultation))


def _patient_name(consultation: Consultation) -> str:
    if consultation.patient is not None:
        return consultation.patient.full_name
    return f"patient n°{consultation.patient_id}"


def _symptom_line(analysis: AnalysisResult) -> str:
    symptoms = flatten_symptoms(analysis)
    return ", ".join(symptoms) if symptoms else "aucun symptôme repéré"


def _history_line(context: ConversationContext) -> str:
    count = len(context.prior_consultations)
    if count == 0:
        return "Première consultation enregistrée pour ce patient."
    if count == 1:
        return "1 consultation précédente au dossier."
    return f"{count} consultations précédentes au dossier."


def _with_notice(body: str) -> str:
    return f"{body}\n\n{OFFLINE_NOTICE}"


# ---------------------------------------------------------------------------
# Generators
# ---------------------------------------------------------------------------

def synthesis_response(context: ConversationContext, analysis: AnalysisResult) -> str:
    consultation = context.active_consultation
    body = (
        f"\U0001f4cb **Synthèse de consultation** - {_patient_name(consultation)}\n\n"
        f"- Motif : {consultation.reason}\n"
        f"- Diagnostic : {consultation.diagnosis or 'Non établi'}\n"
        f"- Traitement : {consultation.treatment or 'Non prescrit'}\n"
        f"- Symptômes repérés : {_symptom_line(analysis)}\n"
        f"- Priorité : {PRIORITY_LABELS[analysis.priority]}\n\n"
        f"{_history_line(context)}"
    )
    return _with_notice(body)


def prescription_response(context: ConversationContext, analysis: AnalysisResult) -> str:
    consultation = context.active_consultation
    lines = [
        f"\U0001f48a **Aide à la prescription** - {_patient_name(consultation)}",
        "",
        f"Traitement actuel : {consultation.treatment or 'aucun traitement renseigné'}",
        f"Diagnostic retenu : {consultation.diagnosis or 'non établi'}",
        "",
        "Avant de prescrire, vérifiez les allergies, les interactions et la fonction rénale.",
    ]
    if analysis.priority == Priority.HIGH:
        lines.append(
            "⚠️ Priorité élevée : envisagez une orientation urgente avant tout traitement ambulatoire."
        )
    return _with_notice("\n".join(lines))


def diagnostic_response(context: ConversationContext, analysis: AnalysisResult) -> str:
    consultation = context.active_consultation
    lines = [f"\U0001f50d **Pistes diagnostiques** - {_patient_name(consultation)}", ""]
    if analysis.detected_symptoms:
        for category in SymptomCategory:
            terms = analysis.detected_symptoms.get(category)
            if terms:
                lines.append(f"- {category_label(category)} : {', '.join(terms)}")
    else:
        lines.append("Aucun symptôme caractéristique relevé dans le dossier de consultation.")
    lines.append("")
    lines.append(f"Priorité estimée : {PRIORITY_LABELS[analysis.priority]}")
    return _with_notice("\n".join(lines))


def examination_response(context: ConversationContext, analysis: AnalysisResult) -> str:
    consultation = context.active_consultation
    lines = [f"\U0001fa7a **Examens à envisager** - {_patient_name(consultation)}", ""]
    categories = [c for c in SymptomCategory if c in analysis.categories]
    if not categories:
        categories = [SymptomCategory.GENERAL]
    for category in categories:
        lines.append(f"- {category_label(category)} : {_EXAMS_BY_CATEGORY[category]}")
    return _with_notice("\n".join(lines))


def general_response(context: ConversationContext, analysis: AnalysisResult) -> str:
    consultation = context.active_consultation
    body = (
        f"Consultation de {_patient_name(consultation)} pour « {consultation.reason} ».\n"
        f"Symptômes repérés : {_symptom_line(analysis)} "
        f"(priorité {PRIORITY_LABELS[analysis.priority]}).\n\n"
        "Je peux préparer une synthèse, une aide à la prescription, des pistes "
        "diagnostiques ou une liste d'examens à partir du dossier."
    )
    return _with_notice(body)


Generator = Callable[[ConversationContext, AnalysisResult], str]

GENERATORS: dict[Intent, Generator] = {
    Intent.SYNTHESIS: synthesis_response,
    Intent.PRESCRIPTION: prescription_response,
    Intent.DIAGNOSTIC: diagnostic_response,
    Intent.EXAMINATION: examination_response,
    Intent.GENERAL: general_response,
}


def generate_response(message: str, context: ConversationContext) -> str:
    """Produce the offline answer to *message* for the active consultation."""
    analysis = analyze_consultation(context.active_consultation)
    return GENERATORS[resolve_intent(message)](context, analysis)


def welcome_message(context: ConversationContext) -> str:
    """Local greeting summarising the selected consultation."""
    consultation = context.active_consultation
    analysis = analyze_consultation(consultation)
    body = (
        f"\U0001f44b Bonjour Docteur. Dossier ouvert : {_patient_name(consultation)}, "
        f"consultation du {consultation.date} à {consultation.time}.\n\n"
        f"- Motif : {consultation.reason}\n"
        f"- Symptômes repérés : {_symptom_line(analysis)}\n"
        f"- Priorité : {PRIORITY_LABELS[analysis.priority]}\n"
        f"- {_history_line(context)}\n\n"
        "Demandez-moi une synthèse, une prescription, un diagnostic ou des examens, "
        "ou planifiez un rendez-vous (« planifie un rendez-vous demain à 10h pour contrôle »)."
    )
    return _with_notice(body)

"""
Summary Prompts

System and user prompts for the AI documents generated from a consultation:
consultation synthesis, prescription and referral letter.
"""

from __future__ import annotations

from datetime import datetime

from app.models.schemas import Consultation, SummaryType

# ---------------------------------------------------------------------------
# Consultation synthesis
# ---------------------------------------------------------------------------
CONSULTATION_SYSTEM_PROMPT = """Vous êtes un médecin expérimenté spécialisé \
dans la rédaction de synthèses de consultations médicales.
Rédigez une synthèse professionnelle, structurée et complète en français \
médical approprié, avec les sections : MOTIF DE CONSULTATION, ANAMNÈSE, \
EXAMEN CLINIQUE, DIAGNOSTIC, CONDUITE À TENIR.
Soyez précis et factuel. Répondez uniquement avec le contenu de la synthèse, \
sans introduction ni conclusion."""

CONSULTATION_USER_TEMPLATE = """Rédigez une synthèse de consultation médicale pour :
Patient : {patient}
Date de consultation : {today}
Motif de consultation : {reason}
Notes de consultation : {notes}
Diagnostic : {diagnosis}
Traitement : {treatment}"""


# ---------------------------------------------------------------------------
# Prescription
# ---------------------------------------------------------------------------
PRESCRIPTION_SYSTEM_PROMPT = """Vous êtes un médecin expérimenté spécialisé \
dans la rédaction d'ordonnances médicales.
1. Commencez par un en-tête : médecin, patient, date.
2. Listez les médicaments adaptés au diagnostic : nom (DCI si possible), \
dosage, posologie, durée, renouvellement. Proposez une alternative en cas \
d'allergie si c'est pertinent.
3. Ajoutez une section « Conseils et recommandations » (mesures \
hygiéno-diététiques, signes d'alerte, suivi).
4. Terminez par une zone de signature (nom du médecin, numéro RPPS).

Format attendu :
ORDONNANCE
[En-tête médecin / patient / date]

Médicaments :
1. Nom - Dosage - Posologie - Durée - Renouvellement

Conseils & recommandations :
- ...

Signature

Répondez uniquement avec le contenu de l'ordonnance."""

PRESCRIPTION_USER_TEMPLATE = """Rédigez une ordonnance médicale détaillée pour :
Patient : {patient}
Date : {today}
Pathologie : {pathology}
Notes supplémentaires : {notes}"""


# ---------------------------------------------------------------------------
# Referral letter
# ---------------------------------------------------------------------------
REFERRAL_SYSTEM_PROMPT = """Vous êtes un médecin expérimenté spécialisé \
dans la rédaction de courriers de correspondance médicale.
Rédigez un courrier professionnel adressé à un confrère spécialiste, en \
français médical approprié : en-tête, formule d'introduction, présentation \
du patient, motif d'adressage, anamnèse, examen clinique, examens \
complémentaires, diagnostic provisoire, traitements instaurés, demande \
précise au spécialiste et formule de conclusion."""

REFERRAL_USER_TEMPLATE = """Rédigez un courrier de correspondance médicale pour :
Patient : {patient}
Date : {today}
Motif de consultation initiale : {reason}
Diagnostic actuel : {diagnosis}
Notes cliniques : {notes}
Traitement actuel : {treatment}

Adressez ce patient au spécialiste approprié selon le diagnostic ou les \
symptômes présentés."""


def _patient_line(consultation: Consultation, now: datetime) -> str:
    patient = consultation.patient
    if patient is None:
        return f"Patient n°{consultation.patient_id}"
    return (
        f"{patient.full_name}, {patient.age(now.date())} ans, "
        f"né(e) le {patient.birth_date}"
    )


def format_summary_prompt(
    consultation: Consultation,
    summary_type: SummaryType,
    now: datetime,
) -> tuple[str, str]:
    """Build the ``(system_prompt, user_prompt)`` pair for one AI document.

    Args:
        consultation: The consultation, joined with its patient.
        summary_type: Which document to write.
        now: Date printed on the document.

    Returns:
        The system and user prompts.
    """
    patient = _patient_line(consultation, now)
    today = now.strftime("%d/%m/%Y")
    summary_type = SummaryType(summary_type)

    if summary_type == SummaryType.PRESCRIPTION:
        return PRESCRIPTION_SYSTEM_PROMPT, PRESCRIPTION_USER_TEMPLATE.format(
            patient=patient,
            today=today,
            pathology=consultation.diagnosis or consultation.reason or "À préciser",
            notes=consultation.notes or "N/A",
        )

    if summary_type == SummaryType.REFERRAL:
        return REFERRAL_SYSTEM_PROMPT, REFERRAL_USER_TEMPLATE.format(
            patient=patient,
            today=today,
            reason=consultation.reason,
            diagnosis=consultation.diagnosis or "À préciser",
            notes=consultation.notes or "Examen clinique normal",
            treatment=consultation.treatment or "Aucun traitement en cours",
        )

    return CONSULTATION_SYSTEM_PROMPT, CONSULTATION_USER_TEMPLATE.format(
        patient=patient,
        today=today,
        reason=consultation.reason,
        notes=consultation.notes or "Examen de routine",
        diagnosis=consultation.diagnosis or "À déterminer",
        treatment=consultation.treatment or "À définir",
    )

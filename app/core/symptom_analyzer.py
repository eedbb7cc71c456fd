"""
Symptom Analyzer

Deterministic, keyword-based classification of free clinical text into
symptom categories and an urgency level.  No LLM calls, no I/O: cheap enough
to run on every keystroke.

Priority policy (first match wins):
    1. high    - any cardiovascular or neurological symptom
    2. medium  - three or more symptoms overall, or any infectious symptom
    3. low     - everything else
"""

from __future__ import annotations

from app.models.schemas import (
    AnalysisResult,
    Priority,
    SuggestedAction,
    SymptomCategory,
)

# Lower-cased French keywords, matched as plain substrings.
SYMPTOM_KEYWORDS: dict[SymptomCategory, list[str]] = {
    SymptomCategory.CARDIOVASCULAR: [
        "douleur thoracique", "oppression thoracique", "palpitation",
        "tachycardie", "bradycardie", "arythmie", "hypertension",
        "hypotension", "syncope", "œdème des membres",
    ],
    SymptomCategory.RESPIRATORY: [
        "toux", "dyspnée", "essoufflement", "sifflement", "expectoration",
        "crachat", "asthme", "bronchite", "respiration difficile",
    ],
    SymptomCategory.NEUROLOGICAL: [
        "céphalée", "mal de tête", "migraine", "vertige", "convulsion",
        "paralysie", "engourdissement", "trouble de la vision",
        "perte de connaissance", "confusion",
    ],
    SymptomCategory.GASTROINTESTINAL: [
        "nausée", "vomissement", "diarrhée", "constipation",
        "douleur abdominale", "mal au ventre", "brûlure d'estomac",
        "reflux", "ballonnement",
    ],
    SymptomCategory.INFECTIOUS: [
        "fièvre", "frisson", "infection", "sueurs nocturnes", "angine",
        "grippe", "température élevée",
    ],
    SymptomCategory.MUSCULOSKELETAL: [
        "douleur articulaire", "mal de dos", "lombalgie", "arthrose",
        "entorse", "fracture", "courbature", "raideur", "tendinite",
    ],
    SymptomCategory.DERMATOLOGICAL: [
        "éruption", "démangeaison", "prurit", "rougeur", "eczéma",
        "urticaire", "bouton", "lésion cutanée",
    ],
    SymptomCategory.GENITOURINARY: [
        "brûlure urinaire", "brûlures mictionnelles", "hématurie",
        "pollakiurie", "douleur pelvienne", "incontinence", "cystite",
    ],
    SymptomCategory.GENERAL: [
        "fatigue", "asthénie", "perte de poids", "perte d'appétit",
        "malaise", "faiblesse", "insomnie", "anxiété", "douleur",
    ],
}

_HIGH_PRIORITY_CATEGORIES: frozenset[SymptomCategory] = frozenset({
    SymptomCategory.CARDIOVASCULAR,
    SymptomCategory.NEUROLOGICAL,
})

_MEDIUM_PRIORITY_THRESHOLD = 3

_CATEGORY_LABELS: dict[SymptomCategory, str] = {
    SymptomCategory.CARDIOVASCULAR: "❤️ Cardiovasculaire",
    SymptomCategory.RESPIRATORY: "\U0001fac1 Respiratoire",
    SymptomCategory.NEUROLOGICAL: "\U0001f9e0 Neurologique",
    SymptomCategory.GASTROINTESTINAL: "\U0001f7e4 Gastro-intestinal",
    SymptomCategory.INFECTIOUS: "\U0001f9a0 Infectieux",
    SymptomCategory.MUSCULOSKELETAL: "\U0001f9b4 Musculo-squelettique",
    SymptomCategory.DERMATOLOGICAL: "\U0001fa79 Dermatologique",
    SymptomCategory.GENITOURINARY: "\U0001f4a7 Génito-urinaire",
    SymptomCategory.GENERAL: "\U0001fa7a Général",
}


def category_label(category: SymptomCategory) -> str:
    """Return the display label (with emoji) for *category*.

    Every member of ``SymptomCategory`` has a label; an unknown value raises
    ``KeyError`` instead of silently rendering nothing.
    """
    return _CATEGORY_LABELS[SymptomCategory(category)]


def _priority_for(
    detected: dict[SymptomCategory, list[str]],
    total: int,
) -> Priority:
    if any(category in detected for category in _HIGH_PRIORITY_CATEGORIES):
        return Priority.HIGH
    if total >= _MEDIUM_PRIORITY_THRESHOLD or SymptomCategory.INFECTIOUS in detected:
        return Priority.MEDIUM
    return Priority.LOW


def analyze(text: str) -> AnalysisResult:
    """Classify *text* into symptom categories and a priority.

    Each category records, in table order, the keywords found as substrings
    of the lower-cased input.  Categories without a match are omitted.

    Args:
        text: Free clinical text (user message or consultation notes).

    Returns:
        A fresh ``AnalysisResult``; never raises for any string input.
    """
    text_lower = (text or "").lower()

    detected: dict[SymptomCategory, list[str]] = {}
    for category, keywords in SYMPTOM_KEYWORDS.items():
        matches = [kw for kw in keywords if kw in text_lower]
        if matches:
            detected[category] = matches

    total = sum(len(matches) for matches in detected.values())

    return AnalysisResult(
        detected_symptoms=detected,
        total_symptom_count=total,
        priority=_priority_for(detected, total),
        categories=set(detected),
    )


def flatten_symptoms(analysis: AnalysisResult) -> list[str]:
    """Return matched terms in category order, without duplicates."""
    symptoms: list[str] = []
    for category in SymptomCategory:
        for term in analysis.detected_symptoms.get(category, []):
            if term not in symptoms:
                symptoms.append(term)
    return symptoms


def suggest_actions(analysis: AnalysisResult) -> frozenset[SuggestedAction]:
    """Derive the follow-up actions offered next to an assistant answer.

    A synthesis is always offered; symptoms add a prescription, a medium or
    high priority adds an examination, and a high priority adds a referral.
    """
    actions = {SuggestedAction.SYNTHESIS}
    if analysis.total_symptom_count:
        actions.add(SuggestedAction.PRESCRIPTION)
    if analysis.priority in (Priority.MEDIUM, Priority.HIGH):
        actions.add(SuggestedAction.EXAMINATION)
    if analysis.priority == Priority.HIGH:
        actions.add(SuggestedAction.REFERRAL)
    return frozenset(actions)

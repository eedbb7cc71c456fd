"""Tests for the keyword symptom analyzer.

Run with:  python -m pytest tests/test_symptom_analyzer.py -v
"""

import random

import pytest

from app.core.symptom_analyzer import (
    SYMPTOM_KEYWORDS,
    analyze,
    category_label,
    flatten_symptoms,
    suggest_actions,
)
from app.models.schemas import Priority, SuggestedAction, SymptomCategory


# ── Priority policy ──────────────────────────────────────────────────────
@pytest.mark.parametrize("text", [
    "Le patient décrit une douleur thoracique depuis ce matin",
    "Palpitations au repos",
    "Céphalée brutale",
    "Épisode de confusion hier soir",
])
def test_cardio_or_neuro_is_high(text: str):
    assert analyze(text).priority == Priority.HIGH


@pytest.mark.parametrize("text", [
    "Fièvre depuis deux jours",
    "Nausée, diarrhée et ballonnement",
    "Toux, fatigue et perte d'appétit",
])
def test_infectious_or_three_symptoms_is_medium(text: str):
    assert analyze(text).priority == Priority.MEDIUM


@pytest.mark.parametrize("text", [
    "",
    "Renouvellement d'ordonnance",
    "Toux sèche",
    "Eczéma et insomnie",
])
def test_everything_else_is_low(text: str):
    assert analyze(text).priority == Priority.LOW


def test_fever_and_cough_example():
    result = analyze("Fièvre et toux depuis 3 jours")
    assert result.detected_symptoms == {
        SymptomCategory.INFECTIOUS: ["fièvre"],
        SymptomCategory.RESPIRATORY: ["toux"],
    }
    assert result.total_symptom_count == 2
    assert result.priority == Priority.MEDIUM


def test_matching_is_case_insensitive():
    assert analyze("MIGRAINE").detected_symptoms == {
        SymptomCategory.NEUROLOGICAL: ["migraine"],
    }


def test_specific_and_generic_keywords_both_count():
    result = analyze("douleur thoracique")
    assert result.detected_symptoms[SymptomCategory.CARDIOVASCULAR] == ["douleur thoracique"]
    assert result.detected_symptoms[SymptomCategory.GENERAL] == ["douleur"]
    assert result.total_symptom_count == 2


def test_empty_text_detects_nothing():
    result = analyze("")
    assert result.detected_symptoms == {}
    assert result.total_symptom_count == 0
    assert result.categories == set()


# ── Invariants over random input ─────────────────────────────────────────
def test_counts_and_categories_are_consistent_on_random_text():
    rng = random.Random(1234)
    vocabulary = [kw for kws in SYMPTOM_KEYWORDS.values() for kw in kws]
    vocabulary += ["patient", "depuis", "hier", "et", "avec", "sans", "léger"]

    for _ in range(200):
        text = " ".join(rng.choice(vocabulary) for _ in range(rng.randint(0, 8)))
        result = analyze(text)

        assert result.total_symptom_count == sum(
            len(terms) for terms in result.detected_symptoms.values()
        )
        assert result.categories == set(result.detected_symptoms)
        assert all(result.detected_symptoms.values())
        if result.categories & {SymptomCategory.CARDIOVASCULAR, SymptomCategory.NEUROLOGICAL}:
            assert result.priority == Priority.HIGH


def test_analyze_is_deterministic():
    text = "Fièvre, frissons, toux et mal de dos"
    assert analyze(text) == analyze(text)


# ── Labels ───────────────────────────────────────────────────────────────
def test_every_category_has_a_label():
    for category in SymptomCategory:
        assert category_label(category)


def test_unknown_category_label_raises():
    with pytest.raises(ValueError):
        category_label("not-a-category")


# ── Helpers ──────────────────────────────────────────────────────────────
def test_flatten_follows_category_order():
    result = analyze("fièvre et douleur thoracique")
    assert flatten_symptoms(result) == ["douleur thoracique", "fièvre", "douleur"]


@pytest.mark.parametrize("text, expected", [
    ("Renouvellement", {SuggestedAction.SYNTHESIS}),
    ("Toux sèche", {SuggestedAction.SYNTHESIS, SuggestedAction.PRESCRIPTION}),
    ("Fièvre", {
        SuggestedAction.SYNTHESIS,
        SuggestedAction.PRESCRIPTION,
        SuggestedAction.EXAMINATION,
    }),
    ("Palpitations", {
        SuggestedAction.SYNTHESIS,
        SuggestedAction.PRESCRIPTION,
        SuggestedAction.EXAMINATION,
        SuggestedAction.REFERRAL,
    }),
])
def test_suggested_actions(text: str, expected: set):
    assert suggest_actions(analyze(text)) == frozenset(expected)

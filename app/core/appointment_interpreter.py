"""
Appointment Command Interpreter

Detects natural-language scheduling commands typed into the assistant
("planifie un rendez-vous demain à 15h pour douleur thoracique") and turns
them into a created appointment.

Steps:
  1. cheap keyword gate (scheduling verb AND appointment word)
  2. date/time extraction with dateparser (French)
  3. date + HH:MM from the first credible match
  4. reason = text after the last "pour", default "Consultation"
  5. external appointment creation; any failure means "no command"
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from dateparser.search import search_dates

from app.models.schemas import AppointmentIntent, AppointmentRequest, Consultation

logger = logging.getLogger(__name__)

# Verbs of the command ("planifie", "programmer", "réservez"...)
_SCHEDULING_VERBS: list[str] = [
    "planifie", "planifier", "planifiez",
    "programme", "programmer", "programmez",
    "prévois", "prévoir", "prévoyez",
    "réserve", "réserver", "réservez",
    "fixe", "fixer", "fixez",
    "cale", "caler", "calez",
    "ajoute", "ajouter", "ajoutez",
    "organise", "organiser", "organisez",
]

# Words naming the thing being scheduled
_APPOINTMENT_WORDS: list[str] = [
    "rendez-vous", "rendez vous", "rdv", "consultation de suivi",
    "visite de contrôle",
]

# Whole words only ("cale" must not fire inside "locale"); a form preceded
# by an article is a noun ("au programme", "le fixe"), not a command.
_SCHEDULING_VERB_RE = re.compile(
    r"(?<!\bau\s)(?<!\ble\s)(?<!\bdu\s)(?<!\bun\s)"
    r"\b(?:" + "|".join(re.escape(v) for v in _SCHEDULING_VERBS) + r")\b",
    re.IGNORECASE,
)
_APPOINTMENT_WORD_RE = re.compile(
    r"\b(?:" + "|".join(re.escape(w) for w in _APPOINTMENT_WORDS) + r")\b",
    re.IGNORECASE,
)

DEFAULT_REASON = "Consultation"
DEFAULT_TIME = "09:00"

# "15h", "15 h", "15h30", "9h05" -> clock time
_FRENCH_CLOCK_RE = re.compile(r"(?<![\d:])([01]?\d|2[0-3])\s?h\s?([0-5]\d)?(?![\w])", re.IGNORECASE)
_COLON_CLOCK_RE = re.compile(r"(?<![\d:])([01]?\d|2[0-3]):([0-5]\d)(?![\d])")
_REASON_RE = re.compile(r"\bpour\b", re.IGNORECASE)

# A match must carry a digit or a calendar word to be taken as a date;
# this filters out articles such as "un" read as numbers.
_DATE_HINT_RE = re.compile(
    r"\d|demain|aujourd|ce soir|ce matin|lundi|mardi|mercredi|jeudi|vendredi"
    r"|samedi|dimanche|janvier|février|fevrier|mars|avril|mai|juin|juillet"
    r"|août|aout|septembre|octobre|novembre|décembre|decembre|semaine|mois",
    re.IGNORECASE,
)

_DATEPARSER_LANGUAGES = ["fr"]

DateExtractor = Callable[[str, datetime], list[tuple[str, datetime]]]
AppointmentCreator = Callable[[AppointmentRequest], Awaitable[Any]]


def has_scheduling_intent(text: str) -> bool:
    """Return True if *text* names both a scheduling verb and an appointment."""
    return bool(_SCHEDULING_VERB_RE.search(text) and _APPOINTMENT_WORD_RE.search(text))


def normalize_clock_times(text: str) -> str:
    """Rewrite French clock forms ("15h", "9h30") as "HH:MM"."""

    def _replace(match: re.Match) -> str:
        hour = int(match.group(1))
        minute = int(match.group(2) or 0)
        return f"{hour:02d}:{minute:02d}"

    return _FRENCH_CLOCK_RE.sub(_replace, text)


def extract_datetimes(text: str, now: datetime) -> list[tuple[str, datetime]]:
    """Find date/time expressions in *text*, relative to *now*.

    Returns ``(matched_text, datetime)`` pairs in order of appearance, keeping
    only matches that look like real dates.
    """
    found = search_dates(
        normalize_clock_times(text),
        languages=_DATEPARSER_LANGUAGES,
        settings={
            "RELATIVE_BASE": now,
            "PREFER_DATES_FROM": "future",
            "RETURN_AS_TIMEZONE_AWARE": False,
        },
    )
    if not found:
        return []
    return [(matched, value) for matched, value in found if _DATE_HINT_RE.search(matched)]


def _clock_time(*candidates: str) -> Optional[str]:
    for candidate in candidates:
        match = _COLON_CLOCK_RE.search(normalize_clock_times(candidate))
        if match:
            return f"{int(match.group(1)):02d}:{match.group(2)}"
    return None


def extract_reason(text: str) -> str:
    """Return the text following the last "pour", or the default reason."""
    matches = list(_REASON_RE.finditer(text))
    if not matches:
        return DEFAULT_REASON
    reason = text[matches[-1].end():].strip().rstrip(".!?").strip()
    return reason or DEFAULT_REASON


def parse_appointment_command(
    text: str,
    now: Optional[datetime] = None,
    date_extractor: DateExtractor = extract_datetimes,
) -> Optional[AppointmentIntent]:
    """Interpret *text* as a scheduling command, without side effects.

    Args:
        text: The raw user message (original case).
        now: Reference instant for relative dates (defaults to now).
        date_extractor: Callable returning ``(matched_text, datetime)`` pairs.

    Returns:
        An ``AppointmentIntent``, or None when the text is not a scheduling
        command or carries no recognisable date.
    """
    if not text or not has_scheduling_intent(text):
        return None

    now = now or datetime.now()
    results = date_extractor(text, now)
    if not results:
        logger.debug("Scheduling keywords found but no date in %r", text)
        return None

    matched_text, when = results[0]
    time = _clock_time(matched_text, text) or DEFAULT_TIME

    return AppointmentIntent(
        iso_date=when.date().isoformat(),
        time=time,
        reason=extract_reason(text),
    )


async def try_interpret(
    text: str,
    consultation: Consultation,
    create_appointment: AppointmentCreator,
    now: Optional[datetime] = None,
    date_extractor: DateExtractor = extract_datetimes,
) -> Optional[AppointmentIntent]:
    """Detect a scheduling command and create the appointment.

    A failed creation is reported exactly like "no command": the caller
    falls through to normal chat handling and nothing is retried.

    Returns:
        The created ``AppointmentIntent``, or None.
    """
    intent = parse_appointment_command(text, now=now, date_extractor=date_extractor)
    if intent is None:
        return None

    payload = AppointmentRequest(
        patient_id=consultation.patient_id,
        doctor_id=consultation.doctor_id,
        date=intent.iso_date,
        time=intent.time,
        reason=intent.reason,
    )
    try:
        await create_appointment(payload)
    except Exception as exc:
        logger.warning(
            "Appointment creation failed for patient %s: %s",
            consultation.patient_id, exc,
        )
        return None

    logger.info(
        "Appointment created for patient %s on %s at %s",
        consultation.patient_id, intent.iso_date, intent.time,
    )
    return intent

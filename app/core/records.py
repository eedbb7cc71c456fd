"""
Clinical Records

Access to the patients, consultations and AI summaries the
assistant works on, loaded from the JSON export at ``RECORDS_PATH``.
The host application owns these records; only newly generated AI summaries
are added, and they live in memory until the next reload.
Can be run standalone: python -m app.core.records
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from app.config import settings
from app.models.schemas import AiSummary, Consultation, Patient, SummaryType

logger = logging.getLogger(__name__)

_PATIENTS: dict[int, Patient] = {}
_CONSULTATIONS: dict[int, Consultation] = {}
_SUMMARIES: list[AiSummary] = []
_LOADED = False


def load_records(path: str | Path | None = None) -> None:
    """Load (or reload) every record from the JSON file into memory."""
    global _LOADED
    path = Path(path or settings.RECORDS_PATH)

    _PATIENTS.clear()
    _CONSULTATIONS.clear()
    _SUMMARIES.clear()

    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        for raw in data.get("patients", []):
            patient = Patient(**raw)
            _PATIENTS[patient.id] = patient
        for raw in data.get("consultations", []):
            consultation = Consultation(**raw)
            _CONSULTATIONS[consultation.id] = consultation
        _SUMMARIES.extend(AiSummary(**raw) for raw in data.get("ai_summaries", []))
    else:
        logger.warning("Records file not found: %s", path)

    _LOADED = True
    logger.info(
        "Loaded %d patients, %d consultations, %d summaries",
        len(_PATIENTS), len(_CONSULTATIONS), len(_SUMMARIES),
    )


def _ensure_loaded() -> None:
    if not _LOADED:
        load_records()


def _with_patient(consultation: Consultation) -> Consultation:
    if consultation.patient is not None:
        return consultation
    patient = _PATIENTS.get(consultation.patient_id)
    return consultation.model_copy(update={"patient": patient})


def get_patient(patient_id: int) -> Optional[Patient]:
    _ensure_loaded()
    return _PATIENTS.get(patient_id)


def get_consultation(consultation_id: int) -> Optional[Consultation]:
    """Look up a consultation by ID, joined with its patient.

    Returns:
        The consultation if found, otherwise None.
    """
    _ensure_loaded()
    consultation = _CONSULTATIONS.get(consultation_id)
    if consultation is None:
        return None
    return _with_patient(consultation)


def list_patient_consultations(patient_id: int) -> list[Consultation]:
    """Return every consultation of a patient, oldest first."""
    _ensure_loaded()
    found = [c for c in _CONSULTATIONS.values() if c.patient_id == patient_id]
    found.sort(key=lambda c: (c.date, c.time, c.id))
    return [_with_patient(c) for c in found]


def list_patient_summaries(patient_id: int) -> list[AiSummary]:
    """Return every AI summary generated for a patient."""
    _ensure_loaded()
    return [s for s in _SUMMARIES if s.patient_id == patient_id]


def add_summary(
    consultation: Consultation,
    summary_type: SummaryType,
    content: str,
    generated_at: Optional[datetime] = None,
) -> AiSummary:
    """Store a newly generated AI document for a consultation."""
    _ensure_loaded()
    summary = AiSummary(
        id=max((s.id for s in _SUMMARIES), default=0) + 1,
        consultation_id=consultation.id,
        patient_id=consultation.patient_id,
        doctor_id=consultation.doctor_id,
        type=SummaryType(summary_type).value,
        content=content,
        generated_at=generated_at or datetime.now(),
    )
    _SUMMARIES.append(summary)
    logger.info(
        "Stored %s summary %d for consultation %d",
        summary.type, summary.id, consultation.id,
    )
    return summary


if __name__ == "__main__":
    load_records()
    for pid, patient in _PATIENTS.items():
        count = len(list_patient_consultations(pid))
        print(f"  {pid}: {patient.full_name} ({count} consultations)")

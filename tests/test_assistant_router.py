"""Tests for the assistant router, run in offline mode so no backend is needed."""

import json

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core import records
from app.memory import session_store as store_module
from app.core.backend_client import BackendError
from app.models.schemas import AiSummary, ConnectivityMode, SummaryResponse
from app.routers import assistant

RECORDS = {
    "patients": [
        {"id": 1, "first_name": "Marie", "last_name": "Dubois", "birth_date": "1968-03-12"},
    ],
    "consultations": [
        {"id": 11, "patient_id": 1, "doctor_id": 1, "date": "2026-10-16", "time": "09:00",
         "reason": "Fièvre et toux"},
    ],
    "ai_summaries": [],
}


@pytest.fixture
def client(tmp_path, monkeypatch):
    path = tmp_path / "records.json"
    path.write_text(json.dumps(RECORDS), encoding="utf-8")
    records.load_records(path)

    monkeypatch.setattr(store_module.connectivity_state, "mode", ConnectivityMode.OFFLINE)
    store_module.session_store.clear_all()

    app = FastAPI()
    app.include_router(assistant.router, prefix="/assistant")
    yield TestClient(app)

    store_module.session_store.clear_all()


def test_select_consultation_welcomes(client):
    response = client.post("/assistant/sessions/s1/consultation", json={"consultation_id": 11})

    assert response.status_code == 200
    body = response.json()
    assert body["consultation_id"] == 11
    assert body["phase"] == "idle"
    assert len(body["conversation"]) == 1
    assert "Marie Dubois" in body["conversation"][0]["text"]


def test_select_unknown_consultation_is_404(client):
    response = client.post("/assistant/sessions/s1/consultation", json={"consultation_id": 999})
    assert response.status_code == 404


def test_submit_to_unknown_session_is_404(client):
    response = client.post("/assistant/sessions/nope/messages", json={"message": "Toux"})
    assert response.status_code == 404


def test_submit_and_reset(client):
    client.post("/assistant/sessions/s1/consultation", json={"consultation_id": 11})

    response = client.post("/assistant/sessions/s1/messages", json={"message": "Fais une synthèse"})
    assert response.status_code == 200
    assert response.json()["status"] == "answered"
    assert len(client.get("/assistant/sessions/s1").json()["conversation"]) == 3

    reset = client.post("/assistant/sessions/s1/reset")
    assert reset.json()["conversation"] == []


def test_analyze_endpoint(client):
    response = client.post("/assistant/analyze", json={"text": "Fièvre et toux"})

    body = response.json()
    assert body["analysis"]["priority"] == "medium"
    assert body["analysis"]["total_symptom_count"] == 2
    assert set(body["labels"]) == {"infectious", "respiratory"}
    assert "examination" in body["suggested_actions"]


def test_connectivity_view(client):
    body = client.get("/assistant/connectivity").json()
    assert body["connectivity"]["mode"] == "offline"


def test_manual_offline_switch_accepted(client):
    response = client.post("/assistant/connectivity/mode", json={"mode": "offline"})
    assert response.json()["accepted"] is True
    assert response.json()["connectivity"]["mode"] == "offline"


def test_general_assistant_starts_with_greeting(client):
    body = client.get("/assistant/general/s1").json()
    assert len(body["conversation"]) == 1
    assert body["conversation"][0]["role"] == "assistant"
    assert body["conversation"][0]["text"].startswith("Bonjour")


def test_generate_summary_for_open_consultation(client, monkeypatch):
    requests = []

    async def fake_generate(consultation_id, summary_type):
        requests.append((consultation_id, summary_type))
        summary = AiSummary(
            id=1, consultation_id=consultation_id, patient_id=1, doctor_id=1,
            type=summary_type.value, content="ORDONNANCE",
        )
        return SummaryResponse(summary=summary, content="ORDONNANCE")

    monkeypatch.setattr(store_module.backend_client, "generate_summary", fake_generate)
    client.post("/assistant/sessions/s1/consultation", json={"consultation_id": 11})

    response = client.post(
        "/assistant/sessions/s1/summaries", json={"summary_type": "prescription"},
    )

    assert response.status_code == 201
    assert response.json()["content"] == "ORDONNANCE"
    assert response.json()["summary"]["type"] == "prescription"
    assert [(cid, t.value) for cid, t in requests] == [(11, "prescription")]


def test_generate_summary_backend_failure_is_502(client, monkeypatch):
    async def failing(consultation_id, summary_type):
        raise BackendError("POST /api/ai-summaries/generate returned HTTP 503", status_code=503)

    monkeypatch.setattr(store_module.backend_client, "generate_summary", failing)
    client.post("/assistant/sessions/s1/consultation", json={"consultation_id": 11})

    response = client.post(
        "/assistant/sessions/s1/summaries", json={"summary_type": "consultation"},
    )
    assert response.status_code == 502


def test_generate_summary_for_unknown_session_is_404(client):
    response = client.post(
        "/assistant/sessions/nope/summaries", json={"summary_type": "referral"},
    )
    assert response.status_code == 404

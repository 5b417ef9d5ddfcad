import json

import pytest
from fastapi.testclient import TestClient

from config.config import Settings
from config.constants import DISCLAIMER, EMERGENCY_MESSAGE
from main import AVAILABLE_ENDPOINTS, create_app
from services.symptom_check_service import set_symptom_check_service

ANALYSIS = json.dumps({
    "potentialConditions": [
        {
            "conditionName": "Migraine",
            "matchPercentage": 75,
            "reasoning": "Throbbing pain",
            "recommendations": ["Rest"],
            "source": "Mayo Clinic",
        }
    ],
    "summary": "Possibly migraine.",
    "urgencyLevel": "medium",
})


@pytest.fixture
def install_service(make_service):
    def install(*outcomes):
        service, client = make_service(*outcomes)
        set_symptom_check_service(service)
        return client

    yield install
    set_symptom_check_service(None)


@pytest.fixture
def api(settings):
    return TestClient(create_app(settings))


def test_health_reports_component_checks(api, install_service):
    install_service()
    response = api.get("/api/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["checks"] == {"api": True, "service_ready": True, "llm_configured": True}
    assert "X-Request-ID" in response.headers


def test_start_check_emergency(api, install_service):
    client = install_service()
    response = api.post("/api/start-check", json={"symptom": "I have chest pain"})

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "isEmergency": True,
        "message": EMERGENCY_MESSAGE,
    }
    assert client.calls == []


def test_start_check_questions(api, install_service):
    install_service('{"questions": ["How long?", "How bad?", "Any fever?"]}')
    response = api.post("/api/start-check", json={"symptom": "persistent cough"})

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "isEmergency": False,
        "questions": ["How long?", "How bad?", "Any fever?"],
    }


def test_start_check_strips_markup(api, install_service):
    client = install_service('{"questions": ["a", "b", "c"]}')
    api.post("/api/start-check", json={"symptom": "<b>sore throat</b> onclick=x"})
    assert '"bsore throat/b x"' in client.prompts()[0]


@pytest.mark.parametrize("payload, message", [
    ({"symptom": "ab"}, "Symptom must be at least 3 characters"),
    ({"symptom": "x" * 501}, "Symptom must not exceed 500 characters"),
    ({"symptom": "<>"}, "Symptom cannot be empty"),
])
def test_start_check_validation(api, install_service, payload, message):
    install_service()
    response = api.post("/api/start-check", json=payload)

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["code"] == "VALIDATION_ERROR"
    assert body["error"] == message


def test_missing_body_field_is_rejected(api, install_service):
    install_service()
    response = api.post("/api/analyze", json={})
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_analyze(api, install_service):
    install_service(ANALYSIS)
    response = api.post("/api/analyze", json={
        "fullContext": "Throbbing headache with sensitivity to light. How long? Two days.",
        "clarificationAnswers": [{"question": "How long?", "answer": "Two days"}],
    })

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["potentialConditions"][0]["conditionName"] == "Migraine"
    assert data["urgencyLevel"] == "medium"
    assert data["disclaimer"] == DISCLAIMER


def test_analyze_context_too_short(api, install_service):
    install_service()
    response = api.post("/api/analyze", json={"fullContext": "headache"})
    assert response.status_code == 400
    assert response.json()["error"] == "Context must be at least 10 characters"


def test_conditions_history_and_stats(api, install_service):
    install_service(ANALYSIS)
    api.post("/api/start-check", json={"symptom": "having a seizure"})

    conditions = api.get("/api/conditions").json()
    assert conditions["count"] == 8
    assert conditions["data"][0]["condition"] == "Anxiety Disorder"

    history = api.get("/api/history").json()
    assert history["count"] == 1
    assert history["data"][0]["isEmergency"] is True

    stats = api.get("/api/stats").json()["data"]
    assert stats["totalQueries"] == 1
    assert stats["emergencyQueries"] == 1
    assert stats["conditionsCount"] == 8


def test_unknown_route_lists_endpoints(api):
    response = api.get("/api/nope")
    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["code"] == "NOT_FOUND"
    assert body["path"] == "/api/nope"
    assert body["availableEndpoints"] == AVAILABLE_ENDPOINTS


def test_rate_limit(install_service):
    install_service()
    api = TestClient(create_app(Settings(
        llm_api_key="test-key", rate_limit_requests=2, rate_limit_window_seconds=60
    )))

    assert api.get("/api/conditions").status_code == 200
    assert api.get("/api/conditions").status_code == 200
    response = api.get("/api/conditions")
    assert response.status_code == 429
    assert response.json()["code"] == "RATE_LIMIT_EXCEEDED"
    assert api.get("/api/health").status_code == 200


def test_length_bounds_come_from_app_settings(install_service):
    install_service('{"questions": ["How long?", "How bad?", "Any fever?"]}')
    api = TestClient(create_app(Settings(
        llm_api_key="test-key",
        rate_limit_enabled=False,
        symptom_max_length=1000,
        context_min_length=30,
    )))

    response = api.post("/api/start-check", json={"symptom": "itchy " * 100})
    assert response.status_code == 200
    assert response.json()["questions"] == ["How long?", "How bad?", "Any fever?"]

    response = api.post("/api/analyze", json={"fullContext": "itchy eyes for days"})
    assert response.status_code == 400
    assert response.json()["error"] == "Context must be at least 30 characters"

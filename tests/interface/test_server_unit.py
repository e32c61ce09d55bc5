from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from phrasal.application.config import AppConfig
from phrasal.application.session import StudySessionOrchestrator
from phrasal.consts import VERSION
from phrasal.domain.errors import ProviderFailure
from phrasal.domain.models import DueItem, NarrativeResult, Phrase
from phrasal.server import app, get_config, get_orchestrator

client = TestClient(app)

PHRASES = [
    DueItem(phrase=Phrase(id="p1", text="hola mundo", translation="hello world")),
    DueItem(phrase=Phrase(id="p2", text="buenos días")),
]


@pytest.fixture
def provider():
    mock = AsyncMock()
    mock.fetch_due_items.return_value = list(PHRASES)
    return mock


@pytest.fixture
def writer():
    return AsyncMock()


@pytest.fixture
def narrator():
    mock = AsyncMock()
    mock.generate_narrative.return_value = NarrativeResult(text="Érase una vez...")
    return mock


@pytest.fixture
def orchestrator(provider, writer, narrator):
    orch = StudySessionOrchestrator(
        due_items=provider, review_writer=writer, narrative_generator=narrator
    )
    app.dependency_overrides[get_orchestrator] = lambda: orch
    app.dependency_overrides[get_config] = lambda: AppConfig(user_id="api-user")
    yield orch
    app.dependency_overrides.clear()


def test_health_check():
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == VERSION


def test_get_version():
    response = client.get("/version")
    assert response.status_code == 200
    assert response.json() == {"version": VERSION}


def test_start_and_grade(orchestrator, provider, writer):
    response = client.post("/session/start", json={"max_items": 5, "include_narrative": False})

    assert response.status_code == 200
    data = response.json()
    assert data["session"]["user_id"] == "api-user"
    assert data["session"]["total_items"] == 2
    assert data["phase"] == "drilling"
    assert data["next_item"]["id"] == "item_0"
    assert data["next_item"]["phrase"]["translation"] == "hello world"
    provider.fetch_due_items.assert_awaited_once_with("api-user", 5)

    response = client.post(
        "/session/grade", json={"item_id": "item_0", "grade": 3, "response_time_seconds": 5.5}
    )
    assert response.status_code == 200
    data = response.json()
    assert data["item"]["grade"] == 3
    assert data["item"]["is_correct"] is True
    assert data["item"]["next_review_at"] is not None
    assert data["progress"] == 50
    assert data["next_item"]["id"] == "item_1"
    writer.record_review.assert_awaited_once()

    response = client.get("/session/stats")
    assert response.status_code == 200
    assert response.json()["completed_items"] == 1
    assert response.json()["average_grade"] == 3.0


def test_next_skip_and_end_drill(orchestrator):
    client.post("/session/start", json={})

    assert client.get("/session/next").json()["item"]["id"] == "item_0"

    response = client.post("/session/skip", json={"item_id": "item_0"})
    assert response.status_code == 200
    assert response.json()["next_item"]["id"] == "item_1"

    response = client.post("/session/end-drill")
    assert response.json() == {"phase": "reviewing"}


def test_narrative_and_bulk_grade(orchestrator):
    client.post("/session/start", json={"include_drill": False})

    response = client.post("/session/narrative")
    assert response.status_code == 200
    data = response.json()
    assert data["phase"] == "grading"
    assert data["narrative"]["text"] == "Érase una vez..."

    response = client.post("/session/bulk-grade", json={"grade": 4})
    assert response.status_code == 200
    data = response.json()
    assert data["phase"] == "complete"
    assert [i["grade"] for i in data["graded"]] == [4, 4]

    progress = client.get("/session/progress").json()
    assert progress["progress"] == 100
    assert progress["is_complete"] is True

    response = client.post("/session/complete")
    assert response.status_code == 200
    assert response.json()["completed_at"] is not None


def test_error_mapping(orchestrator, provider, writer):
    assert client.get("/session/stats").status_code == 409
    assert client.get("/session/next").status_code == 409
    assert client.post("/session/complete").status_code == 409

    client.post("/session/start", json={"include_narrative": False})

    response = client.post("/session/grade", json={"item_id": "item_0", "grade": 5})
    assert response.status_code == 400
    assert response.json()["error"] == "InvalidGrade"

    assert client.post("/session/grade", json={"item_id": "x", "grade": 3}).status_code == 404
    assert client.post("/session/grade", json={"item_id": "item_0"}).status_code == 422
    assert client.post("/session/narrative").status_code == 409

    client.post("/session/grade", json={"item_id": "item_0", "grade": 3})
    response = client.post("/session/grade", json={"item_id": "item_0", "grade": 3})
    assert response.status_code == 409
    assert response.json()["error"] == "GradeAlreadySubmitted"

    writer.record_review.side_effect = ProviderFailure("record review", "offline")
    response = client.post("/session/grade", json={"item_id": "item_1", "grade": 3})
    assert response.status_code == 502
    assert orchestrator.has_unsynced_reviews


def test_start_with_nothing_due(orchestrator, provider):
    provider.fetch_due_items.return_value = []
    response = client.post("/session/start", json={})
    assert response.status_code == 404
    assert response.json()["detail"] == "No phrases available for study"


def test_start_rejects_invalid_body(orchestrator):
    assert client.post("/session/start", json={"max_items": 0}).status_code == 422
    assert client.post("/session/start", json={"proficiency": "expert"}).status_code == 422

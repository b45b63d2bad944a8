import pytest
from fastapi.testclient import TestClient

from api_server import create_app
from tests.fakes import ANALYZER_MARKER, FakeResponse


@pytest.fixture
def client(engine):
    return TestClient(create_app(engine=engine))


def _start(client: TestClient, repo_url: str) -> str:
    resp = client.post("/api/interview/start", json={"repo_url": repo_url})
    assert resp.status_code == 200
    return resp.json()["session"]["session_id"]


def test_full_interview_flow(client, repo_url):
    session_id = _start(client, repo_url)

    resp = client.patch("/api/interview/session", json={"session_id": session_id, "directories": []})
    assert resp.status_code == 200
    assert resp.json()["session"]["status"] == "analyzing"

    resp = client.post("/api/interview/analyze", json={"session_id": session_id})
    assert resp.status_code == 200
    session = resp.json()["session"]
    assert session["status"] == "active"
    assert session["analysis_cache"]["summary"].startswith("A small Express API")
    assert "file_contents" not in session["analysis_cache"]

    resp = client.post("/api/interview/question", json={"session_id": session_id})
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    question_id = body["question"]["id"]
    assert body["message"]["metadata"]["question_id"] == question_id

    resp = client.post("/api/interview/hint", json={"session_id": session_id, "question_id": question_id, "hint_level": "2"})
    assert resp.status_code == 200
    assert resp.json()["level"] == 2
    assert resp.json()["hints_remaining"] == 2

    resp = client.post(
        "/api/interview/answer",
        json={"session_id": session_id, "question_id": question_id, "answer": "It returns a 404 early."},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert 0 <= body["evaluation"]["score"] <= 100
    assert body["message"]["metadata"]["type"] == "evaluation"
    assert body["code_snippets"]

    resp = client.delete("/api/interview/session", params={"session_id": session_id})
    assert resp.status_code == 200
    session = resp.json()["session"]
    assert session["status"] == "ended"
    assert "You answered 1 questions" in session["messages"][-1]["content"]


def test_unknown_session_is_404(client):
    resp = client.get("/api/interview/session", params={"session_id": "missing"})
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "error": "Session missing not found"}


def test_invalid_inputs_are_400(client, repo_url):
    assert client.post("/api/interview/start", json={"repo_url": "ftp://github.com/a/b"}).status_code == 400
    resp = client.post("/api/interview/start", json={})
    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_out_of_order_operations_are_409(client, repo_url):
    session_id = _start(client, repo_url)
    resp = client.post("/api/interview/question", json={"session_id": session_id})
    assert resp.status_code == 409
    resp = client.post(
        "/api/interview/answer",
        json={"session_id": session_id, "question_id": "nope", "answer": "text"},
    )
    assert resp.status_code == 409


def test_upstream_failure_is_502_and_rolls_back(client, scripted_llm, repo_url):
    scripted_llm.script(ANALYZER_MARKER, FakeResponse({"error": "overloaded"}, status_code=503))
    session_id = _start(client, repo_url)
    resp = client.post("/api/interview/analyze", json={"session_id": session_id, "directories": []})
    assert resp.status_code == 502
    session = client.get("/api/interview/session", params={"session_id": session_id}).json()["session"]
    assert session["status"] == "selecting_dirs"


def test_unexpected_errors_are_500(client, engine, repo_url, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(engine, "start_session", boom)
    resp = client.post("/api/interview/start", json={"repo_url": repo_url})
    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "Unable to start session"}


def test_health_reports_store_state(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["store"]["active_backend"] == "memory"

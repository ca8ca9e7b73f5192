import random

import pytest
from fastapi.testclient import TestClient

from brezcode import api
from brezcode.fallbacks import GENERIC_RESPONSE
from brezcode.repository import InMemorySessionRepository
from brezcode.training import AvatarTrainingSessionService


@pytest.fixture
def client(clock, failing_generator):
    svc = AvatarTrainingSessionService(
        InMemorySessionRepository(), generator=failing_generator, now=clock, rng=random.Random(5)
    )
    api.set_service(svc)
    yield TestClient(api.app)
    api.set_service(None)


def _start(client, user="1", scenario_id="dr_sakura_initial_consultation"):
    resp = client.post(
        "/training/sessions/start",
        json={"scenario_id": scenario_id, "avatar_id": "dr_sakura"},
        headers={"X-User-Id": user},
    )
    assert resp.status_code == 200
    return resp.json()["session"]["session_id"]


def test_health_and_root(client):
    assert client.get("/health").json()["ok"] is True
    assert client.get("/").json()["status"] == "ok"

def test_debug_routes_lists_included_router(client):
    routes = client.get("/debug/routes").json()
    paths = [r["path"] for r in routes]
    assert None not in paths
    assert "/training/sessions/{session_id}/message" in paths
    assert "/training/stats" in paths
    assert paths.count("/training/stats") == 1
    stats = next(r for r in routes if r["path"] == "/training/stats")
    assert stats["methods"] == ["GET"]
    assert stats["endpoint"] == "brezcode.api.stats"
    assert "/health" in paths


def test_catalog_routes(client):
    assert len(client.get("/training/scenarios").json()["scenarios"]) == 8
    assert client.get("/training/scenarios", params={"avatar_type": "sales"}).json()["scenarios"] == []
    avatars = client.get("/training/avatars").json()["avatars"]
    assert avatars[0]["id"] == "health_coach"
    path = client.get("/training/paths/health_coach").json()["path"]
    assert path[0]["id"] == "dr_sakura_initial_consultation"
    assert client.get("/training/paths/unknown").status_code == 404


def test_start_validation(client):
    assert client.post("/training/sessions/start", json={}).status_code == 400
    assert client.post("/training/sessions/start", json={"scenario_id": "missing"}).status_code == 404
    bad_user = client.post(
        "/training/sessions/start", json={"scenario_id": "self_exam_guidance"}, headers={"X-User-Id": "abc"}
    )
    assert bad_user.status_code == 400


def test_conversation_round_trip_with_fallback(client):
    sid = _start(client)
    resp = client.post(f"/training/sessions/{sid}/message", json={"message": "I found a lump, what do I do?"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["response"] == GENERIC_RESPONSE
    assert body["quality_score"] == 75
    assert body["score_is_synthetic"] is True
    assert body["session"]["total_messages"] == 3

    full = client.get(f"/training/sessions/{sid}").json()["session"]
    assert [m["sequence_number"] for m in full["messages"]] == [1, 2, 3]
    assert full["conversation_history"][1]["content"] == "I found a lump, what do I do?"


def test_message_errors(client):
    assert client.post("/training/sessions/nope/message", json={"message": "hi"}).status_code == 404
    sid = _start(client)
    assert client.post(f"/training/sessions/{sid}/message", json={"message": "  "}).status_code == 400
    client.post(f"/training/sessions/{sid}/complete")
    closed = client.post(f"/training/sessions/{sid}/message", json={"message": "hi"})
    assert closed.status_code == 400


def test_continue_and_complete(client):
    sid = _start(client)
    resp = client.post(f"/training/sessions/{sid}/continue")
    assert resp.status_code == 200
    assert resp.json()["question"]["question"]
    done = client.post(f"/training/sessions/{sid}/complete").json()
    assert done["status"] == "completed"
    assert "3 messages exchanged" in done["session_summary"]
    assert len(done["learning_points"]) == 4
    assert client.post("/training/sessions/nope/complete").status_code == 404
    assert client.get("/training/sessions/nope").status_code == 404


def test_sessions_are_listed_per_user(client):
    _start(client, user="1")
    _start(client, user="1", scenario_id="self_exam_guidance")
    _start(client, user="2")
    listed = client.get("/training/sessions", headers={"X-User-Id": "1"}).json()["sessions"]
    assert len(listed) == 2
    assert client.get("/training/stats").json()["total_sessions"] == 3


def test_feedback_routes(client):
    sid = _start(client)
    body = client.post(f"/training/sessions/{sid}/message", json={"message": "hello"}).json()
    mid = body["avatar_message"]["message_id"]
    url = f"/training/sessions/{sid}/messages/{mid}/feedback"
    assert client.post(url, json={}).status_code == 400
    assert client.post(f"/training/sessions/{sid}/messages/nope/feedback", json={"feedback": "x"}).status_code == 404
    # no provider configured, improvement cannot be generated
    assert client.post(url, json={"feedback": "more detail"}).status_code == 502

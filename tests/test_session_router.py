from __future__ import annotations

import random

from fastapi import FastAPI
from fastapi.testclient import TestClient

from pftrainer.data.storage import MemoryStore
from pftrainer.features.session import SessionManager
from pftrainer.features.session.router import create_session_routers

BASE = "/api/v1/session"


def _client() -> tuple[TestClient, SessionManager]:
    manager = SessionManager(MemoryStore(), rng=random.Random(42))
    sessions, insights = create_session_routers(manager)

    app = FastAPI()
    app.include_router(sessions)
    app.include_router(insights)
    return TestClient(app), manager


def _play_session(client: TestClient, sid: str, answer: str = "raise") -> list[str]:
    hands: list[str] = []
    while True:
        payload = client.get(f"{BASE}/{sid}/question").json()
        if payload["done"]:
            return hands
        hands.append(payload["question"]["hand"])
        response = client.post(f"{BASE}/{sid}/answer", json={"answer": answer})
        assert response.status_code == 200
        assert set(response.json()) == {"result", "next"}


def test_session_lifecycle_over_http() -> None:
    client, _ = _client()

    created = client.post(BASE, json={})
    assert created.status_code == 201
    data = created.json()
    sid = data["session"]["id"]
    assert data["done"] is False
    assert data["question"]["number"] == 1

    hands = _play_session(client, sid)
    assert len(hands) == 20

    late = client.post(f"{BASE}/{sid}/answer", json={"answer": "RAISE"})
    assert late.status_code == 400
    assert "already complete" in late.json()["detail"]

    finished = client.post(f"{BASE}/{sid}/finish")
    assert finished.status_code == 200
    summary = finished.json()
    assert summary["question_count"] == 20
    assert summary["accuracy"] == 1.0
    assert "finished_at" in summary

    assert client.get(f"{BASE}/{sid}/question").status_code == 404

    stats = client.get("/api/v1/stats").json()
    assert stats["global"]["total_sessions"] == 1
    assert stats["global"]["total_questions"] == 20


def test_create_session_accepts_comma_separated_hands() -> None:
    client, _ = _client()
    data = client.post(BASE, json={"hands": "AA, KK ,AA"}).json()
    hands = _play_session(client, data["session"]["id"])
    assert set(hands) == {"AA", "KK"}


def test_review_without_history_is_a_bad_request() -> None:
    client, _ = _client()
    response = client.post(BASE, json={"review": True})
    assert response.status_code == 400
    assert "no weak hands" in response.json()["detail"]


def test_invalid_answers_and_unknown_sessions() -> None:
    client, _ = _client()
    sid = client.post(BASE, json={}).json()["session"]["id"]

    assert client.post(f"{BASE}/{sid}/answer", json={"answer": "check"}).status_code == 422
    assert client.post(f"{BASE}/{sid}/answer", json={}).status_code == 422
    assert client.post(f"{BASE}/nope/answer", json={"answer": "FOLD"}).status_code == 404
    assert client.post(f"{BASE}/nope/finish").status_code == 404
    assert client.delete(f"{BASE}/nope").status_code == 404


def test_abandon_session() -> None:
    client, manager = _client()
    sid = client.post(BASE, json={}).json()["session"]["id"]

    response = client.delete(f"{BASE}/{sid}")
    assert response.status_code == 204
    assert client.get(f"{BASE}/{sid}/question").status_code == 404
    assert manager.stats().global_.total_sessions == 0


def test_wrong_answers_surface_as_weak_hands() -> None:
    client, _ = _client()
    sid = client.post(BASE, json={"hands": ["AA"]}).json()["session"]["id"]
    _play_session(client, sid, answer="fold")
    client.post(f"{BASE}/{sid}/finish")

    weak = client.get("/api/v1/stats/weak-hands").json()
    assert weak == {"hands": ["AA"], "count": 1}

    review = client.post(BASE, json={"review": True}).json()
    assert _play_session(client, review["session"]["id"]) == ["AA"] * 20


def test_settings_round_trip() -> None:
    client, _ = _client()
    current = client.get("/api/v1/settings").json()
    assert current["judge_mode"] == "FREQUENCY"
    assert current["answer_policy"] == "resample-on-answer"

    updated = client.put("/api/v1/settings", json={"judge_mode": "PROBABILISTIC", "answer_policy": "freeze-at-build"})
    assert updated.status_code == 200
    assert updated.json()["judge_mode"] == "PROBABILISTIC"
    assert client.get("/api/v1/settings").json()["answer_policy"] == "freeze-at-build"

    assert client.put("/api/v1/settings", json={"judge_mode": "SOMETIMES"}).status_code == 422

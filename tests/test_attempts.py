from fastapi.testclient import TestClient

from main import app

client = TestClient(app)


def _submit(seed_questions):
    seed_questions({"id": "q1", "difficulty": "easy", "correct_answer": 2})
    r = client.post(
        "/quiz/submit",
        json={"player_name": "Grace", "time_taken": 12, "answers": [{"question_id": "q1", "user_answer": 2}]},
    )
    assert r.status_code == 200
    return r.json()["attempt_id"]


def test_get_attempt_roundtrip(seed_questions):
    attempt_id = _submit(seed_questions)

    r = client.get(f"/attempts/{attempt_id}")
    assert r.status_code == 200
    body = r.json()
    assert body["id"] == attempt_id
    assert body["total_questions"] == 1
    assert body["score"] == 100 and body["points"] == 1000
    assert body["time_taken"] == 12
    assert body["answers"][0]["is_correct"] is True
    assert "created_at" in body


def test_get_attempt_404():
    assert client.get("/attempts/999999").status_code == 404


def test_recent_list_requires_client_key(seed_questions):
    _submit(seed_questions)
    assert client.get("/attempts/recent-list").status_code == 401

    r = client.get("/attempts/recent-list", headers={"x-api-key": "client-key"})
    assert r.status_code == 200
    body = r.json()
    assert body["ok"] is True and body["count"] == 1
    assert "answers" not in body["items"][0]

    r = client.get("/attempts/recent-list", headers={"x-admin-token": "secret"})
    assert r.status_code == 200

import json

from sqlalchemy import select

from conftest import mcq_json, unique_per_topic
from learnpath.core.errors import UpstreamUnavailable
from learnpath.models.orm import PrerequisiteSet


async def test_health(client):
    r = await client.get("/health")
    assert r.status_code == 200 and r.json()["status"] == "healthy"


# ---------- prerequisites ----------

async def test_prerequisites_are_resolved_and_stored(client, gateway, session_factory):
    gateway.responses = ["1. Data Types\n2. Set Theory\n\n3. Logic"]
    r = await client.post("/api/prerequisites", json={"topic": "Databases"})
    assert r.status_code == 200
    assert r.json() == {"topic": "Databases", "prerequisites": ["Data Types", "Set Theory", "Logic"]}

    async with session_factory() as session:
        rows = (await session.scalars(select(PrerequisiteSet))).all()
    assert [(row.topic, row.prerequisites) for row in rows] == [("Databases", ["Data Types", "Set Theory", "Logic"])]


async def test_prerequisites_require_topic(client, gateway):
    for body in ({}, {"topic": "   "}):
        r = await client.post("/api/prerequisites", json=body)
        assert r.status_code == 400
        assert r.json()["error"]["type"] == "validation_error"
    assert gateway.calls == []


# ---------- MCQs ----------

async def test_mcq_returns_fifteen_questions(client, gateway):
    gateway.default = unique_per_topic()
    r = await client.post("/api/prerequisites/mcq", json={"prerequisites": ["Logic", "Sets", "Functions"]})
    assert r.status_code == 200
    mcqs = r.json()
    assert len(mcqs) == 15
    assert set(mcqs[0]) == {"id", "topic", "question", "options", "answer"}
    assert {q["topic"] for q in mcqs} == {"Logic", "Sets", "Functions"}


async def test_mcq_backfills_when_generation_fails(client, gateway):
    gateway.default = UpstreamUnavailable("down")
    r = await client.post("/api/prerequisites/mcq", json={"prerequisites": ["Logic"]})
    assert r.status_code == 200
    assert len(r.json()) == 15
    assert all(q["topic"] == "N/A" for q in r.json())


async def test_mcq_requires_prerequisites(client, gateway):
    for body in ({}, {"prerequisites": []}, {"prerequisites": ["  ", ""]}):
        r = await client.post("/api/prerequisites/mcq", json=body)
        assert r.status_code == 400
    assert gateway.calls == []


async def test_mcq_ignores_blank_prerequisites(client, gateway):
    gateway.default = unique_per_topic()
    r = await client.post("/api/prerequisites/mcq", json={"prerequisites": ["Logic", "  ", ""]})
    assert r.status_code == 200
    assert len(r.json()) == 15
    assert {q["topic"] for q in r.json()} == {"Logic"}


async def test_restart_forgets_history_for_those_topics(client, gateway, history):
    await history.add("Logic", "What is a tautology?")
    gateway.responses = [mcq_json("What is a tautology?")]
    gateway.default = unique_per_topic()
    r = await client.post("/api/prerequisites/mcq", json={"prerequisites": ["Logic"], "restart": True})
    assert r.json()[0]["question"] == "What is a tautology?"


async def test_reset_mcq_cache_clears_everything(client, history):
    await history.add("Logic", "q1")
    await history.add("Sets", "q2")
    r = await client.post("/api/prerequisites/reset-mcq-cache")
    assert r.status_code == 200
    assert r.json() == {"message": "MCQ cache reset successfully."}
    assert not await history.contains("Logic", "q1")
    assert not await history.contains("Sets", "q2")


# ---------- quiz attempts ----------

async def test_attempt_quota_flow(client):
    hdr = {"user-id": "u1"}
    r = await client.get("/api/quiz-attempts", params={"topic": "Algebra"}, headers=hdr)
    assert r.json() == {"canAttempt": True, "attemptsToday": 0, "message": "3 attempt(s) remaining today for Algebra."}

    for n in (1, 2, 3):
        r = await client.post("/api/quiz-attempts", headers=hdr,
                              json={"quizId": f"quiz-{n}", "score": 70, "passed": True, "topic": "Algebra"})
        assert r.status_code == 200
        assert r.json() == {"canAttempt": True, "attemptsToday": n, "message": "Attempt recorded."}

    r = await client.post("/api/quiz-attempts", headers=hdr, json={"quizId": "quiz-4", "score": 10, "passed": False, "topic": "Algebra"})
    assert r.status_code == 403
    assert r.json()["canAttempt"] is False and r.json()["attemptsToday"] == 3

    r = await client.get("/api/quiz-attempts", params={"topic": "Algebra"}, headers=hdr)
    assert r.json()["canAttempt"] is False

    r = await client.get("/api/quiz-attempts", params={"topic": "Algebra"}, headers={"user-id": "u2"})
    assert r.json()["attemptsToday"] == 0


async def test_attempts_require_topic(client):
    assert (await client.get("/api/quiz-attempts")).status_code == 400
    r = await client.post("/api/quiz-attempts", json={"quizId": "x", "score": 10, "passed": False})
    assert r.status_code == 400


async def test_bearer_token_identifies_user(client):
    token = (await client.post("/api/auth/mock-login", json={"user_id": "alice"})).json()["access_token"]
    auth = {"Authorization": f"Bearer {token}"}
    await client.post("/api/quiz-attempts", headers=auth, json={"quizId": "q", "score": 90, "passed": True, "topic": "Graphs"})

    r = await client.get("/api/quiz-attempts", params={"topic": "Graphs"}, headers=auth)
    assert r.json()["attemptsToday"] == 1
    r = await client.get("/api/quiz-attempts", params={"topic": "Graphs"}, headers={"user-id": "alice-impostor"})
    assert r.json()["attemptsToday"] == 0


async def test_invalid_token_is_rejected(client):
    r = await client.get("/api/quiz-attempts", params={"topic": "Graphs"}, headers={"Authorization": "Bearer nope"})
    assert r.status_code == 401
    assert r.json()["error"]["message"] == "Invalid or expired token"


# ---------- summary & learning path ----------

async def test_topic_summary(client, gateway):
    gateway.responses = ["Sets group objects; relations build on them."]
    r = await client.post("/api/topic-summary", json={"topic": "Set Theory", "mainTopic": "Databases"})
    assert r.status_code == 200
    assert r.json() == {"summary": "Sets group objects; relations build on them."}
    assert '"Set Theory"' in gateway.calls[0] and '"Databases"' in gateway.calls[0]


async def test_topic_summary_falls_back_on_upstream_failure(client, gateway):
    gateway.responses = [UpstreamUnavailable("timeout")]
    r = await client.post("/api/topic-summary", json={"topic": "Set Theory", "mainTopic": "Databases"})
    assert r.status_code == 200
    assert r.json() == {"summary": "⚠️ Failed to fetch summary."}


async def test_learning_path(client, gateway):
    gateway.responses = [json.dumps([{"week": 1, "tasks": ["Read", "Practice"]}, {"week": 2, "tasks": ["Build"]}])]
    r = await client.post("/api/learning-path", json={"topic": "Graphs", "scorePercentage": 60, "weeks": 2})
    assert r.status_code == 200
    assert r.json() == {"learningPath": [{"week": 1, "tasks": ["Read", "Practice"]}, {"week": 2, "tasks": ["Build"]}]}


async def test_learning_path_validates_input_before_generation(client, gateway):
    bad = [
        {"topic": "Graphs", "scorePercentage": 60, "weeks": 0},
        {"topic": "Graphs", "scorePercentage": 60, "weeks": 53},
        {"topic": "Graphs", "weeks": 4},
        {"scorePercentage": 60, "weeks": 4},
        {"topic": "Graphs", "scorePercentage": 140, "weeks": 4},
    ]
    for body in bad:
        r = await client.post("/api/learning-path", json=body)
        assert r.status_code == 400, body
    assert gateway.calls == []


async def test_learning_path_wrong_shape_is_a_server_error(client, gateway):
    gateway.responses = [json.dumps([{"week": 1, "tasks": ["Read"]}])]
    r = await client.post("/api/learning-path", json={"topic": "Graphs", "scorePercentage": 80, "weeks": 4})
    assert r.status_code == 500
    assert r.json()["error"]["message"] == "Failed to parse learning path from model response."


async def test_learning_path_upstream_failure_is_a_server_error(client, gateway):
    gateway.responses = [UpstreamUnavailable("timeout")]
    r = await client.post("/api/learning-path", json={"topic": "Graphs", "scorePercentage": 80, "weeks": 4})
    assert r.status_code == 500
    assert r.json()["error"]["message"] == "Failed to generate learning path."

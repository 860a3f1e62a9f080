"""
test_api_routes.py - HTTP surface tests through FastAPI's TestClient

The app's get_db dependency is overridden with a seeded SQLite file, so
no server or migrations are needed.

Run with: pytest tests/test_api_routes.py -v
"""

import asyncio

import aiosqlite
import pytest
from fastapi.testclient import TestClient

from app.db.database import get_db
from app.routes.auth import create_token
from app.server import app

from helpers import create_fixtures, setup_test_db


@pytest.fixture
def seeded(tmp_path):
    path = str(tmp_path / "api.db")

    async def _seed():
        db = await setup_test_db(path)
        try:
            return await create_fixtures(db)
        finally:
            await db.close()

    fx = asyncio.run(_seed())
    fx["db_path"] = path
    return fx


@pytest.fixture
def client(seeded):
    async def override_get_db():
        db = await aiosqlite.connect(seeded["db_path"])
        db.row_factory = aiosqlite.Row
        try:
            yield db
        finally:
            await db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth(seeded):
    token = create_token(seeded["user_id"], "student@test.com")
    return {"Authorization": f"Bearer {token}"}


class TestAuth:

    def test_health_is_public(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    def test_api_requires_bearer_token(self, client):
        resp = client.get("/api/assessments/latest")
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Not authenticated"

    def test_invalid_token(self, client):
        resp = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid token"

    def test_unknown_user(self, client):
        token = create_token(9999, "ghost@test.com")
        resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    def test_me(self, client, auth):
        resp = client.get("/api/auth/me", headers=auth)
        assert resp.status_code == 200
        body = resp.json()
        assert body["email"] == "student@test.com"
        assert body["onboarding_completed"] is False


class TestAssessmentRoutes:

    def test_full_run(self, client, auth, seeded):
        started = client.post("/api/assessments/start-with-check", headers=auth)
        assert started.status_code == 200
        body = started.json()
        assert len(body["questions"]) == 10
        assessment_id = body["assessment_id"]
        session_id = body["session"]["session_id"]

        first_q = body["questions"][0]["id"]
        saved = client.post(
            f"/api/assessments/sessions/{session_id}/save",
            json={"position": 1, "responses": [{"q_index": 0, "question_id": first_q, "answer_text": "0"}]},
            headers=auth,
        )
        assert saved.status_code == 200
        current = client.get("/api/assessments/current", headers=auth).json()
        assert current["session"]["current_position"] == 1
        assert current["responses"][0]["answer_text"] == "0"

        responses = [
            {"q_index": i, "question_id": q["id"], "answer": 0, "skipped": False}
            for i, q in enumerate(body["questions"])
        ]
        finished = client.post(f"/api/assessments/{assessment_id}/finish", json={"responses": responses}, headers=auth)
        assert finished.status_code == 200
        result = finished.json()
        assert result["score"] == 100
        assert result["passed"] is True
        assert result["learningPath"]["steps"]

        again = client.post(f"/api/assessments/{assessment_id}/finish", json={"responses": responses}, headers=auth)
        assert again.status_code == 409

        latest = client.get("/api/assessments/latest", headers=auth).json()
        assert latest["id"] == assessment_id
        assert latest["score"] == 100

        statuses = client.get("/api/learning-paths/user/module-status", headers=auth).json()
        assert {s["status"] for s in statuses} == {"optional"}

    def test_start_returns_runner_envelope(self, client, auth):
        resp = client.post("/api/assessments/start", headers=auth)
        assert resp.status_code == 200
        body = resp.json()
        assert set(body) == {"assessment_id", "questions", "lockedModules"}
        assert len(body["questions"]) == 10
        assert body["lockedModules"] == []

        latest = client.get("/api/assessments/latest", headers=auth).json()
        assert latest["id"] == body["assessment_id"]

    def test_save_accepts_option_index(self, client, auth):
        body = client.post("/api/assessments/start-with-check", headers=auth).json()
        session_id = body["session"]["session_id"]
        first_q = body["questions"][0]["id"]

        saved = client.post(
            f"/api/assessments/sessions/{session_id}/save",
            json={"position": 1, "responses": [{"q_index": 0, "question_id": first_q, "answer_text": 2}]},
            headers=auth,
        )
        assert saved.status_code == 200
        current = client.get("/api/assessments/current", headers=auth).json()
        assert current["responses"][0]["answer_text"] == "2"

    def test_finish_validation(self, client, auth):
        resp = client.post("/api/assessments/finish", json={}, headers=auth)
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Assessment ID is required"

        resp = client.post("/api/assessments/finish", json={"assessmentId": 1}, headers=auth)
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Responses array is required"

    def test_finish_unknown_assessment(self, client, auth):
        resp = client.post("/api/assessments/9999/finish", json={"responses": []}, headers=auth)
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Assessment 9999 not found"

    def test_evaluate(self, client, auth, seeded):
        qid = seeded["questions"][seeded["module_a"]][0]
        resp = client.post("/api/assessments/evaluate", json={"questionId": qid, "answer": 1}, headers=auth)
        assert resp.status_code == 200
        assert resp.json() == {"correct": False, "moduleId": seeded["module_a"], "subjectId": seeded["subject_id"]}

        missing = client.post("/api/assessments/evaluate", json={"answer": 1}, headers=auth)
        assert missing.status_code == 400

    def test_locked_modules(self, client, auth):
        resp = client.get("/api/assessments/locked-modules", headers=auth)
        assert resp.json() == {"lockedModules": []}

    def test_abandon_foreign_session(self, client, auth):
        resp = client.post("/api/assessments/sessions/9999/abandon", headers=auth)
        assert resp.status_code == 404


class TestLearningPathRoutes:

    def test_catalog(self, client, auth, seeded):
        paths = client.get("/api/learning-paths", headers=auth)
        assert paths.status_code == 200
        assert [p["id"] for p in paths.json()] == [seeded["path_id"]]

        details = client.get(f"/api/learning-paths/{seeded['path_id']}", headers=auth)
        assert len(details.json()["steps"]) == 2

        assert client.get("/api/learning-paths/9999", headers=auth).status_code == 404

    def test_recommend_from_posted_profile(self, client, auth, seeded):
        resp = client.post("/api/learning-paths/recommend", json={"career_goals": ["data"]}, headers=auth)
        assert resp.json()["id"] == seeded["path_id"]

    def test_my_path_enroll_and_progress(self, client, auth, seeded):
        my_path = client.get("/api/learning-paths/user/my-path", headers=auth).json()
        step_id = my_path["steps"][0]["id"]

        assert client.post(f"/api/learning-paths/{seeded['path_id']}/enroll", headers=auth).json() == {"success": True}
        done = client.patch(
            f"/api/learning-paths/user/progress/{step_id}/complete",
            json={"learning_path_id": seeded["path_id"], "time_spent_hours": 2, "rating": 5},
            headers=auth,
        )
        assert done.json() == {"success": True, "progress_percentage": 50}

        progress = client.get("/api/learning-paths/user/progress", headers=auth).json()
        assert progress[0]["completed_steps"] == [step_id]

        refreshed = client.post("/api/learning-paths/user/refresh", headers=auth).json()
        assert refreshed["success"] is True

        insights = client.get("/api/learning-paths/user/insights", headers=auth).json()
        assert insights["learning_paths_count"] == 1

    def test_invalid_rating(self, client, auth, seeded):
        resp = client.patch(
            "/api/learning-paths/user/progress/1/complete",
            json={"learning_path_id": seeded["path_id"], "rating": 9},
            headers=auth,
        )
        assert resp.status_code == 422


class TestOnboardingRoutes:

    def test_select_and_skip(self, client, auth, seeded):
        available = client.get("/api/subject-selection/available", headers=auth).json()
        assert [s["id"] for s in available["subjects"]] == [seeded["subject_id"]]

        selected = client.post(
            "/api/subject-selection/select",
            json={"selected_subjects": [seeded["subject_id"]]},
            headers=auth,
        ).json()
        assert selected["question_count"] == 10

        skipped = client.post("/api/subject-selection/skip", headers=auth)
        assert skipped.status_code == 200
        assert skipped.json()["modules_seeded"] == 2

        me = client.get("/api/auth/me", headers=auth).json()
        assert me["onboarding_completed"] is True

    def test_student_assessment_flow(self, client, auth):
        assert client.get("/api/student-assessments/status", headers=auth).status_code == 404

        started = client.post("/api/student-assessments/start", headers=auth).json()
        assessment_id = started["assessment"]["id"]
        missing = client.post("/api/student-assessments/finish", json={"assessmentId": assessment_id}, headers=auth)
        assert missing.status_code == 400

        finished = client.post(
            "/api/student-assessments/finish",
            json={"assessmentId": assessment_id, "responses": []},
            headers=auth,
        ).json()
        assert finished["redirectTo"] == "/learning-path"

        available = client.get("/api/student-assessments/available", headers=auth).json()
        assert available[0]["student_info"]["total_attempts"] == 1


class TestGamificationRoutes:

    def test_attempts_and_summary(self, client, auth):
        resp = client.post(
            "/api/gamification/question-attempt",
            json={"question_id": "q-1", "question_type": "practice", "difficulty": "hard", "is_correct": True},
            headers=auth,
        )
        assert resp.json()["xp_awarded"] == 60

        lecture = client.post("/api/gamification/lecture-complete", json={"lecture_id": "l-1"}, headers=auth)
        assert lecture.json()["total_xp"] == 110

        summary = client.get("/api/gamification/summary", headers=auth).json()
        assert summary["total_xp"] == 110
        assert summary["streak_days"] == 1

    def test_unknown_question_type_is_rejected(self, client, auth):
        resp = client.post(
            "/api/gamification/question-attempt",
            json={"question_id": "q-1", "question_type": "exam", "is_correct": True},
            headers=auth,
        )
        assert resp.status_code == 422

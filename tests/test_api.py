"""
HTTP API tests via FastAPI TestClient.
"""
import pytest
from fastapi.testclient import TestClient

from wellbeing_engine.api.app import create_app

from conftest import TODAY


@pytest.fixture
def client(engine):
    app = create_app(engine, enable_scheduler=False)
    return TestClient(app)


class TestCheckInEndpoints:

    def test_submit_then_duplicate(self, client):
        response = client.post("/api/check-ins", json={"mood_label": "good", "happy_text": "Sunny walk"})
        assert response.status_code == 201
        assert response.json()["date"] == TODAY.isoformat()

        duplicate = client.post("/api/check-ins", json={"mood_label": "bad"})
        assert duplicate.status_code == 409

    def test_unknown_activity_rejected(self, client):
        response = client.post("/api/check-ins", json={"mood_label": "good", "activities": ["skydiving"]})
        assert response.status_code == 422

    def test_level_out_of_range(self, client):
        response = client.post("/api/check-ins", json={"mood_label": "good", "sleep_level": 5})
        assert response.status_code == 422

    def test_list_and_today(self, client):
        assert client.get("/api/check-ins/today").json() is None
        client.post("/api/check-ins", json={"mood_label": "okay"})
        assert len(client.get("/api/check-ins", params={"timeframe": "month"}).json()) == 1
        assert client.get("/api/check-ins/today").json()["mood_label"] == "okay"

    def test_bad_timeframe(self, client):
        assert client.get("/api/check-ins", params={"timeframe": "decade"}).status_code == 422
        assert client.get("/api/summary", params={"timeframe": "year"}).json()["timeframe"] == "year"

    def test_summary_and_engagement(self, client):
        client.post("/api/check-ins", json={"mood_label": "good"})
        assert client.get("/api/summary").json()["check_in_days"] == 1
        assert client.get("/api/engagement").json()["current_streak"] == 1


class TestGoalEndpoints:

    def test_unknown_goal(self, client):
        assert client.get("/api/goals/missing/progress").status_code == 404

    def test_create_and_complete_milestone(self, client):
        goal = client.post("/api/goals", json={"title": "Run a 10k", "category": "fitness"}).json()
        milestone_id = goal["milestones"][0]["id"]
        url = f"/api/goals/{goal['id']}/milestones/{milestone_id}/complete"
        assert client.post(url).json() == {"completed": True}
        assert client.post(url).json() == {"completed": False}
        assert client.get(f"/api/goals/{goal['id']}/progress").json()["percentage"] == 25.0

    def test_invalid_category(self, client):
        response = client.post("/api/goals", json={"title": "Something", "category": "astrology"})
        assert response.status_code == 422

    def test_delete_blocked_by_sprint(self, client):
        goal = client.post("/api/goals", json={"title": "Learn Spanish", "category": "learning"}).json()
        client.post("/api/sprints", json={"title": "Basics", "goal_id": goal["id"]})
        assert client.delete(f"/api/goals/{goal['id']}").status_code == 409

    def test_log_progress(self, client):
        goal = client.post("/api/goals", json={"title": "Write daily", "category": "creativity"}).json()
        response = client.post(f"/api/goals/{goal['id']}/log", json={"progress_rating": 4})
        assert response.status_code == 201
        assert client.post(f"/api/goals/{goal['id']}/log", json={"progress_rating": 9}).status_code == 422
        assert client.get(f"/api/goals/{goal['id']}/ai-access").json()["log_streak"] == 1


class TestTaskEndpoints:

    def test_create_complete_and_list(self, client):
        task = client.post("/api/tasks", json={"title": "Book dentist", "priority": "high"}).json()
        assert client.post(f"/api/tasks/{task['id']}/complete").json()["is_completed"]
        assert client.get("/api/tasks/summary").json()["completed"] == 1
        assert client.get("/api/tasks", params={"order": "random"}).status_code == 422

    def test_extract_from_text(self, client):
        response = client.post("/api/tasks/extract", json={"text": "todo: renew the budget spreadsheet"})
        assert response.status_code == 201
        assert response.json()[0]["category"] == "finance"
        bad_source = client.post("/api/tasks/extract", json={"text": "todo: something long", "source": "telepathy"})
        assert bad_source.status_code == 422

    def test_habit_streak(self, client):
        habit = client.post("/api/habits", json={"title": "Stretch"}).json()
        client.post(f"/api/habits/{habit['id']}/complete", json={})
        streak = client.get(f"/api/habits/{habit['id']}/streak").json()
        assert streak["current_streak"] == 1


class TestDraftAndCoach:

    def test_brain_dump_unlock(self, client):
        response = client.put("/api/brain-dump", json={"text": "I slept well. Work was fine."})
        assert response.json()["is_ai_chat_unlocked"]
        assert client.get("/api/brain-dump").json()["content"] == "I slept well. Work was fine."

    def test_coach_reply(self, client, echo_coach):
        response = client.post("/api/coach", json={"message": "How was my week?"})
        assert response.status_code == 200
        assert response.json()["content"] == echo_coach.reply
        assert echo_coach.contexts[0].message == "How was my week?"

    def test_coach_reply_with_tasks(self, client, echo_coach):
        echo_coach.reply = "Nice work this week.\n- Book an urgent doctor appointment\n- Call a friend on Sunday"
        body = client.post("/api/coach", json={"extract_tasks": True}).json()
        assert [t["title"] for t in body["tasks"]] == ["Book an urgent doctor appointment", "Call a friend on Sunday"]
        assert {t["source"] for t in body["tasks"]} == {"ai_conversation"}
        assert "tasks" not in client.post("/api/coach", json={}).json()

    def test_brain_dump_tasks(self, client):
        client.put("/api/brain-dump", json={"text": "Long day. I need to finish the client report."})
        response = client.post("/api/brain-dump/extract-tasks")
        assert response.status_code == 201
        task = response.json()[0]
        assert task["title"] == "Finish the client report"
        assert task["source"] == "extracted"
        assert task["category"] == "work"


class TestServiceEndpoints:

    def test_health(self, client):
        health = client.get("/health").json()
        assert health["status"] == "healthy"
        assert "uptime_seconds" in health

    def test_ping(self, client):
        assert client.get("/ping").json() == {"status": "ok", "message": "pong"}

    def test_engine_missing(self):
        client = TestClient(create_app(None, enable_scheduler=False))
        assert client.get("/api/insights").status_code == 503
        assert client.get("/health").json()["status"] == "starting"

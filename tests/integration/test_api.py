"""
Integration tests for the TaskQuest analytics API.

Every router is exercised through FastAPI's TestClient against the shared
DuckDB storage, with authentication overridden to a fixed user except in
the auth tests themselves.

Endpoints covered:
- System: health
- Dashboard, wellness, goals, contacts, reports, productivity
- Predictive: goal prediction, workload forecast, bottlenecks, insights
- AI: task analysis, preferences, suggestion lifecycle, analytics
- Gamification: state, streaks, XP
- Notifications: preferences, delivery decisions
- Integrations: list, authorize, connect, sync
"""

from datetime import datetime, timedelta
from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient

from taskquest.auth.dependencies import get_current_user_id
from taskquest.auth.jwt import create_access_token
from taskquest.main import app
from taskquest.storage import get_storage
from taskquest.utils.timeutils import start_of_day, utcnow
from conftest import (
    USER_ID,
    FlakyStorage,
    make_contact,
    make_goal,
    make_interaction,
    make_suggestion,
    make_task,
    make_wellness_entry,
)


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture(autouse=True)
def authenticated_user():
    """Authenticate every request as USER_ID on an empty store."""
    get_storage().clear_for_testing()
    app.dependency_overrides[get_current_user_id] = lambda: USER_ID
    yield
    app.dependency_overrides.pop(get_current_user_id, None)


@pytest.fixture
def today():
    return start_of_day(utcnow())


def _data(response, status_code=200):
    assert response.status_code == status_code, response.text
    body = response.json()
    assert body["success"] is True
    return body["data"]


def _storage_down(monkeypatch, router_module, *failing):
    """Serve the router from a store whose named procedures fail."""
    flaky = FlakyStorage(get_storage(), failing)
    monkeypatch.setattr(f"taskquest.routers.{router_module}.get_storage", lambda: flaky)


def _assert_internal_error(response):
    assert response.status_code == 500, response.text
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Internal server error"
    assert body["request_id"]


# ============================================================================
# System & Auth
# ============================================================================


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_request_id_is_echoed(client):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


class TestAuthentication:
    @pytest.fixture(autouse=True)
    def real_auth(self):
        app.dependency_overrides.pop(get_current_user_id, None)

    def test_missing_token(self, client):
        response = client.get("/api/v1/dashboard")

        assert response.status_code == 401
        assert response.json()["detail"] == "Missing authentication token"

    def test_invalid_token(self, client):
        response = client.get(
            "/api/v1/gamification",
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert response.status_code == 401

    def test_valid_token(self, client):
        token = create_access_token({"sub": USER_ID})

        response = client.get(
            "/api/v1/gamification",
            headers={"Authorization": f"Bearer {token}"},
        )

        assert _data(response)["streak"]["user_id"] == USER_ID


# ============================================================================
# Analytics
# ============================================================================


class TestAnalyticsEndpoints:
    def test_dashboard(self, client):
        get_storage().insert("tasks", [make_task(completed_at=utcnow(), xp_earned=40)])

        data = _data(client.get("/api/v1/dashboard"))

        assert data["tasks_today"] == 1
        assert data["tasks_week"] >= 1
        assert len(data["chart"]) == 7
        assert data["errors"] == {}

    def test_wellness(self, client, today):
        get_storage().insert(
            "wellness_entries",
            [make_wellness_entry(today - timedelta(days=i)) for i in range(3)],
        )

        data = _data(client.get("/api/v1/wellness", params={"days": 30}))

        assert "burnout_score" in data["metrics"]
        assert "work_pattern" in data

    def test_wellness_days_out_of_range(self, client):
        assert client.get("/api/v1/wellness", params={"days": 3}).status_code == 422

    def test_goals(self, client):
        get_storage().insert("goals", [make_goal()])

        data = _data(client.get("/api/v1/goals"))

        assert data["overall"]["total_goals"] == 1
        assert data["goals"][0]["status"] == "on_track"

    def test_contacts(self, client, today):
        contact = make_contact("Alice", category="work")
        get_storage().insert("contacts", [contact])
        get_storage().insert("contact_interactions", [make_interaction(contact["id"], today)])

        data = _data(client.get("/api/v1/contacts"))

        assert [c["name"] for c in data["contacts"]] == ["Alice"]
        assert data["network"]["total_contacts"] == 1

    def test_productivity_patterns(self, client):
        data = _data(client.get("/api/v1/productivity/patterns", params={"days": 30}))

        assert len(data["hourly"]) == 24
        assert data["patterns"] == []


class TestReports:
    def _seed(self):
        get_storage().insert("tasks", [
            make_task("a", completed_at=datetime(2024, 3, 1, 9, 0), xp_earned=20, complexity="simple"),
            make_task("b", completed_at=datetime(2024, 3, 1, 14, 0), xp_earned=30, complexity="complex"),
            make_task("c", completed_at=datetime(2024, 3, 3, 14, 0), xp_earned=10),
        ])

    def test_report(self, client):
        self._seed()

        data = _data(client.get(
            "/api/v1/reports",
            params={"date_from": "2024-03-01", "date_to": "2024-03-03"},
        ))

        assert [b["count"] for b in data["buckets"]] == [2, 0, 1]
        assert data["stats"]["total_xp"] == 60

    def test_complexity_filter(self, client):
        self._seed()

        data = _data(client.get(
            "/api/v1/reports",
            params={"date_from": "2024-03-01", "date_to": "2024-03-03", "complexity": "complex"},
        ))

        assert data["stats"]["total_tasks"] == 1

    def test_reversed_range(self, client):
        response = client.get(
            "/api/v1/reports",
            params={"date_from": "2024-03-05", "date_to": "2024-03-01"},
        )
        assert response.status_code == 422

    def test_unknown_timeframe(self, client):
        assert client.get("/api/v1/reports", params={"timeframe": "hourly"}).status_code == 422

    def test_csv_export(self, client):
        self._seed()

        response = client.get(
            "/api/v1/reports/export.csv",
            params={"date_from": "2024-03-01", "date_to": "2024-03-03"},
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert response.headers["content-disposition"] == (
            'attachment; filename="taskquest-report-daily.csv"'
        )
        lines = response.text.strip().split("\n")
        assert lines[0] == "Date,Tasks Completed,XP Earned,Simple,Medium,Complex"
        assert lines[1] == "2024-03-01,2,50,1,0,1"
        assert len(lines) == 4


# ============================================================================
# Predictive
# ============================================================================


class TestPredictive:
    def test_goal_prediction(self, client):
        goal = make_goal(completed=True, completed_at=utcnow())
        get_storage().insert("goals", [goal])

        data = _data(client.get(f"/api/v1/predictive/goals/{goal['id']}"))

        assert data["goal_id"] == goal["id"]
        assert data["completion_probability"] == 1.0
        assert data["likely_to_complete"] is True

    def test_unknown_goal(self, client):
        assert client.get("/api/v1/predictive/goals/missing").status_code == 404

    def test_goal_prediction_storage_failure(self, client, monkeypatch):
        goal = make_goal()
        get_storage().insert("goals", [goal])
        _storage_down(monkeypatch, "predictive", "predict_goal_completion")

        _assert_internal_error(client.get(f"/api/v1/predictive/goals/{goal['id']}"))

    def test_workload_forecast(self, client):
        data = _data(client.post(
            "/api/v1/predictive/workload",
            json={"period_type": "week", "periods_ahead": 2, "external_factors": {"travel": True}},
        ))

        assert data["external_factors"] == {"travel": True}
        assert 0.0 <= data["burnout_risk_score"] <= 1.0

    def test_workload_forecast_validation(self, client):
        response = client.post("/api/v1/predictive/workload", json={"periods_ahead": 0})
        assert response.status_code == 422

    def test_bottlenecks(self, client):
        data = _data(client.post("/api/v1/predictive/bottlenecks", params={"days": 30}))
        assert data["count"] == len(data["bottlenecks"])

    def test_insights(self, client):
        data = _data(client.get("/api/v1/predictive/insights"))

        assert data["current_productivity_score"] == 0.5
        assert data["productivity_trend"] == "stable"


# ============================================================================
# AI
# ============================================================================


class TestAI:
    def test_analyze_task(self, client):
        data = _data(client.post(
            "/api/v1/ai/analyze-task",
            json={"title": "Urgent: fix the payment outage"},
        ))

        assert data["suggested_priority"] == "urgent"
        assert data["suggested_due_date"] is not None

    def test_analyze_task_requires_title(self, client):
        assert client.post("/api/v1/ai/analyze-task", json={"title": ""}).status_code == 422

    def test_preferences(self, client):
        assert _data(client.get("/api/v1/ai/preferences"))["enable_ai_suggestions"] is True

        updated = _data(client.put(
            "/api/v1/ai/preferences",
            json={"suggestion_frequency": "low"},
        ))

        assert updated["suggestion_frequency"] == "low"
        assert _data(client.get("/api/v1/ai/preferences"))["suggestion_frequency"] == "low"

    def test_unknown_preference_field(self, client):
        response = client.put("/api/v1/ai/preferences", json={"favourite_colour": "blue"})
        assert response.status_code == 422

    def test_suggestion_lifecycle(self, client):
        get_storage().insert("tasks", [
            make_task("Draft the quarterly plan", created_at=utcnow()),
            make_task("Email the accountant", created_at=utcnow()),
        ])

        generated = _data(client.post(
            "/api/v1/ai/suggestions",
            json={"suggestion_type": "pattern_based", "limit": 5},
        ))
        assert generated["count"] == 2
        first, second = generated["suggestions"]

        assert _data(client.get("/api/v1/ai/suggestions"))["count"] == 2

        accepted = _data(client.post(f"/api/v1/ai/suggestions/{first['id']}/accept"))
        assert accepted["task_id"]
        assert client.post(f"/api/v1/ai/suggestions/{first['id']}/accept").status_code == 404

        rejected = _data(client.post(
            f"/api/v1/ai/suggestions/{second['id']}/reject",
            json={"reason": "not now"},
        ))
        assert rejected["rejected"] is True

        assert _data(client.get("/api/v1/ai/suggestions"))["count"] == 0
        assert _data(client.get("/api/v1/ai/suggestions/history"))["count"] == 2
        stats = _data(client.get("/api/v1/ai/stats"))
        assert stats["suggestions_accepted"] == 1

    def test_accept_storage_failure(self, client, monkeypatch):
        suggestion = make_suggestion()
        get_storage().insert("ai_task_suggestions", [suggestion])
        _storage_down(monkeypatch, "ai", "accept_ai_suggestion")

        _assert_internal_error(client.post(f"/api/v1/ai/suggestions/{suggestion['id']}/accept"))
        assert get_storage().query("tasks") == []

    def test_reject_without_body(self, client):
        suggestion = make_suggestion()
        get_storage().insert("ai_task_suggestions", [suggestion])

        data = _data(client.post(f"/api/v1/ai/suggestions/{suggestion['id']}/reject"))

        assert data["rejected"] is True

    def test_dismiss(self, client):
        suggestion = make_suggestion()
        get_storage().insert("ai_task_suggestions", [suggestion])

        data = _data(client.post(f"/api/v1/ai/suggestions/{suggestion['id']}/dismiss"))

        assert data["dismissed"] is True
        assert client.post("/api/v1/ai/suggestions/missing/dismiss").status_code == 404

    def test_behavior_and_insights(self, client):
        behavior = _data(client.get("/api/v1/ai/behavior"))
        insights = _data(client.get("/api/v1/ai/insights"))

        assert "productivity_insights" in behavior
        assert insights["improvement_suggestions"] == ["Start using AI suggestions to see insights"]


# ============================================================================
# Gamification
# ============================================================================


class TestGamification:
    def test_initial_state(self, client):
        data = _data(client.get("/api/v1/gamification"))

        assert data["streak"]["current_streak"] == 0
        assert data["progress"]["level"] == 1

    def test_streak_progression(self, client):
        first = _data(client.post("/api/v1/gamification/streak", json={"activity_date": "2024-03-01"}))
        second = _data(client.post("/api/v1/gamification/streak", json={"activity_date": "2024-03-02"}))

        assert first["current_streak"] == 1
        assert second["current_streak"] == 2
        assert second["is_new_record"] is True

    def test_streak_without_body_uses_today(self, client):
        data = _data(client.post("/api/v1/gamification/streak"))
        assert data["last_activity_date"] == utcnow().date().isoformat()

    def test_streak_rejects_earlier_date(self, client):
        client.post("/api/v1/gamification/streak", json={"activity_date": "2024-03-05"})

        response = client.post("/api/v1/gamification/streak", json={"activity_date": "2024-03-01"})

        assert response.status_code == 422

    def test_award_xp(self, client):
        data = _data(client.post("/api/v1/gamification/xp", json={"amount": 250, "reason": "bonus"}))

        assert data["level"] == 2
        assert data["leveled_up"] is True
        assert _data(client.get("/api/v1/gamification"))["progress"]["total_xp"] == 250

    def test_award_xp_must_be_positive(self, client):
        assert client.post("/api/v1/gamification/xp", json={"amount": 0}).status_code == 422


# ============================================================================
# Notifications
# ============================================================================


class TestNotifications:
    def test_preferences_round_trip(self, client):
        assert _data(client.get("/api/v1/notifications/preferences"))["quiet_hours_start"] == "22:00"

        updated = _data(client.put(
            "/api/v1/notifications/preferences",
            json={"quiet_hours_start": "21:30", "max_per_hour": 3},
        ))

        assert updated["quiet_hours_start"] == "21:30"
        assert _data(client.get("/api/v1/notifications/preferences"))["max_per_hour"] == 3

    def test_invalid_preferences(self, client):
        response = client.put(
            "/api/v1/notifications/preferences",
            json={"quiet_hours_end": "25:00"},
        )
        assert response.status_code == 422

    def test_should_send_during_work(self, client):
        data = _data(client.post(
            "/api/v1/notifications/should-send",
            json={"hour": 10, "activity": "working"},
        ))

        assert data["send_now"] is True
        assert data["context_score"] == pytest.approx(0.86)
        assert data["delay_minutes"] == 0

    def test_should_wait_for_quiet_hours_to_end(self, client):
        data = _data(client.post("/api/v1/notifications/should-send", json={"hour": 23}))

        assert data["send_now"] is False
        assert data["delay_minutes"] == 540
        assert "Consider waiting until outside quiet hours" in data["reasons"]

    def test_context_validation(self, client):
        assert client.post("/api/v1/notifications/should-send", json={"hour": 24}).status_code == 422


# ============================================================================
# Integrations
# ============================================================================


class TestIntegrations:
    def test_empty_list(self, client):
        assert _data(client.get("/api/v1/integrations")) == {"integrations": [], "count": 0}

    def test_github_authorize(self, client):
        data = _data(client.get("/api/v1/integrations/github/authorize"))

        params = parse_qs(urlparse(data["authorization_url"]).query)
        assert params["client_id"] == ["test-github-client"]
        assert params["state"] == [data["state"]]

    def test_unknown_provider(self, client):
        assert client.get("/api/v1/integrations/myspace/authorize").status_code == 422

    def test_connect_without_credentials(self, client):
        response = client.post(
            "/api/v1/integrations/connect",
            json={"provider": "outlook", "code": "abc", "redirect_uri": "http://localhost/cb"},
        )

        assert response.status_code == 502
        assert response.json()["success"] is False
        assert "outlook" in response.json()["error"]

    def test_sync_unknown_integration(self, client):
        assert client.post("/api/v1/integrations/missing/sync").status_code == 404

    def test_sync_unsupported_provider(self, client):
        row = get_storage().insert(
            "api_integrations",
            [{"user_id": USER_ID, "provider": "notion", "access_token": "x", "error_count": 0}],
        )[0]

        data = _data(client.post(f"/api/v1/integrations/{row['id']}/sync"))

        assert data["success"] is False
        assert data["errors"] == ["Sync not implemented for notion"]
        listed = _data(client.get("/api/v1/integrations"))
        assert listed["count"] == 1
        assert "access_token" not in listed["integrations"][0]

"""Integration tests for the HTTP endpoints."""
from __future__ import annotations

from datetime import date, timedelta

from fastapi.testclient import TestClient

from builders import build_day, build_plan, build_plan_data, build_session


def seed_sessions(memory_store):
    memory_store.sessions = [
        build_session(1, date(2025, 1, 1), minutes=50, pace_min_km=5.0, average_heartrate=165),
        build_session(2, date(2025, 1, 4), minutes=100, pace_min_km=5.8, name="Long Run"),
        build_session(3, date(2025, 1, 10), minutes=60, pace_min_km=4.8),
    ]


def test_health(test_client: TestClient):
    response = test_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


class TestMatchingEndpoints:
    def test_run_against_plan(self, test_client: TestClient, memory_store):
        seed_sessions(memory_store)

        response = test_client.post("/api/matching/run", json={"plan_id": 1})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["matched"] == 2
        assert data["suggested"] == 1
        assert data["auto_matches"][0]["score"]["band"] == "high"

    def test_run_without_active_plan(self, test_client: TestClient):
        response = test_client.post("/api/matching/run")

        assert response.status_code == 200
        assert response.json()["message"] == "No active plan"

    def test_suggestion_accept_flow(self, test_client: TestClient, memory_store):
        seed_sessions(memory_store)
        test_client.post("/api/matching/run", json={"plan_id": 1})

        suggestions = test_client.get("/api/matching/suggestions/1").json()
        assert len(suggestions) == 1
        suggestion = suggestions[0]

        response = test_client.post(
            "/api/matching/suggestions/1/accept",
            json={
                "week_index": suggestion["week_index"],
                "day_index": suggestion["day_index"],
                "session": suggestion["session"],
            },
        )

        assert response.status_code == 200
        assert response.json()["success"] is True
        day = memory_store.plans[1].plan_data.schedule[suggestion["week_index"]].days[suggestion["day_index"]]
        assert day.match_type.value == "suggested_accepted"
        assert test_client.get("/api/matching/suggestions/1").json() == []

    def test_suggestion_reject(self, test_client: TestClient, memory_store):
        seed_sessions(memory_store)
        test_client.post("/api/matching/run", json={"plan_id": 1})
        suggestion = test_client.get("/api/matching/suggestions/1").json()[0]

        response = test_client.post(
            "/api/matching/suggestions/1/reject",
            json={"week_index": suggestion["week_index"], "day_index": suggestion["day_index"]},
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Suggestion rejected"
        assert memory_store.plans[1].plan_data.schedule[suggestion["week_index"]].days[
            suggestion["day_index"]
        ].matched_session_id is None

    def test_accept_out_of_range(self, test_client: TestClient):
        session = build_session(9, date(2025, 1, 1)).model_dump(mode="json")

        response = test_client.post(
            "/api/matching/suggestions/1/accept",
            json={"week_index": 8, "day_index": 0, "session": session},
        )

        assert response.status_code == 400
        assert "Week 8" in response.json()["detail"]


class TestPlanEndpoints:
    def test_get_plan(self, test_client: TestClient):
        response = test_client.get("/api/plans/1")

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Spring 10K"
        assert len(data["plan_data"]["schedule"]) == 2

    def test_unknown_plan(self, test_client: TestClient):
        assert test_client.get("/api/plans/999").status_code == 404

    def test_active_plan(self, test_client: TestClient, memory_store):
        assert test_client.get("/api/plans/active").status_code == 404

        current = build_plan(
            build_plan_data([[build_day(0, "Easy Run")]], start=date.today() - timedelta(days=2)),
            plan_id=2,
            name="Current Block",
        )
        memory_store.plans[2] = current

        response = test_client.get("/api/plans/active")
        assert response.status_code == 200
        assert response.json()["id"] == 2

    def test_missed_workouts(self, test_client: TestClient):
        response = test_client.get("/api/plans/1/missed")

        assert response.status_code == 200
        assert len(response.json()) == 7

    def test_missed_workouts_negative_grace(self, test_client: TestClient):
        assert test_client.get("/api/plans/1/missed", params={"grace_days": -1}).status_code == 422

    def test_compliance(self, test_client: TestClient):
        response = test_client.get("/api/plans/1/compliance")

        assert response.status_code == 200
        data = response.json()
        assert data["overall_compliance_rate"] == 0
        assert [w["week_status"] for w in data["weekly_compliance"]] == ["past", "past"]


class TestSlotActions:
    base = "/api/plans/1/weeks/0/days/0"

    def test_mark_missed_and_clear(self, test_client: TestClient, memory_store):
        response = test_client.post(f"{self.base}/missed", json={"reason": "travel"})

        assert response.status_code == 200
        day = response.json()["plan_data"]["schedule"][0]["days"][0]
        assert day["is_missed"] is True
        assert day["missed_reason"] == "travel"

        cleared = test_client.post(f"{self.base}/clear-missed").json()
        assert cleared["plan_data"]["schedule"][0]["days"][0]["is_missed"] is False
        assert memory_store.plans[1].plan_data.schedule[0].days[0].is_missed is False

    def test_manual_match_then_unmatch(self, test_client: TestClient):
        matched = test_client.post(f"{self.base}/manual-match", json={"session_id": 55})

        assert matched.status_code == 200
        day = matched.json()["plan_data"]["schedule"][0]["days"][0]
        assert day["matched_session_id"] == 55
        assert day["match_type"] == "manual"
        assert day["match_confidence"] == 1.0

        unmatched = test_client.post(f"{self.base}/unmatch").json()
        assert unmatched["plan_data"]["schedule"][0]["days"][0]["matched_session_id"] is None

    def test_manual_match_on_rest_day(self, test_client: TestClient, memory_store):
        response = test_client.post("/api/plans/1/weeks/0/days/1/manual-match", json={"session_id": 55})

        assert response.status_code == 400
        assert "rest day" in response.json()["detail"]
        assert memory_store.persist_calls == 0

    def test_complete_and_note(self, test_client: TestClient):
        completed = test_client.post(f"{self.base}/complete", json={"note": "treadmill"}).json()
        day = completed["plan_data"]["schedule"][0]["days"][0]
        assert day["completion_type"] == "manual_checkbox"
        assert day["user_notes"] == "treadmill"

        noted = test_client.post(f"{self.base}/note", json={"note": "legs heavy"}).json()
        assert noted["plan_data"]["schedule"][0]["days"][0]["user_notes"] == "legs heavy"

    def test_out_of_range_slot(self, test_client: TestClient):
        response = test_client.post("/api/plans/1/weeks/0/days/9/unmatch")

        assert response.status_code == 400
        assert response.json()["detail"] == "Day 9 does not exist in week 0"

    def test_unknown_plan(self, test_client: TestClient):
        assert test_client.post("/api/plans/999/weeks/0/days/0/unmatch").status_code == 404

    def test_persist_failure(self, test_client: TestClient, memory_store):
        memory_store.fail_persist = True

        response = test_client.post(f"{self.base}/missed")

        assert response.status_code == 502

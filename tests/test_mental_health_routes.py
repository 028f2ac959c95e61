"""
Tests for mental health API routes.
"""
import uuid
import pytest
from datetime import timedelta
from app.core.config import settings
from app.repositories import assessment_repo


CHECKIN = {"mood": {"score": 4, "label": "Good"}, "activities": []}


@pytest.fixture
def admin_enabled(monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_ROUTES_ENABLED", True)


def open_request(db, factory, clock, owner_id, helper_id):
    """A buddy-tier request by owner_id, with helper_id as buddy."""
    factory.user("owner", owner_id, display_name="Owner")
    factory.user("helper", helper_id)
    factory.buddies(owner_id, helper_id)
    a = assessment_repo.create_assessment(
        db, owner_id, timestamp=clock.now(), status="declining", confidence_score=0.7,
        needs_support=True, reasoning_data={}, analysis_metadata={"analysisType": "recent"},
    )
    a.support_request_status = "buddyRequested"
    a.support_request_time = clock.now()
    a.tier_changed_at = clock.now()
    return assessment_repo.save(db, a)


class TestBaselineRoutes:
    """Test baseline endpoints."""

    def test_establish_without_data(self, sync_client):
        """Test that establishing without data reports insufficient data."""
        response = sync_client.post("/mental-health/establish-baseline")

        assert response.status_code == 422
        assert response.json()["error_code"] == "INSUFFICIENT_DATA"

    def test_establish_and_read(self, sync_client, clock):
        """Test establishing a baseline and reading it back."""
        sync_client.post("/check-in", json=CHECKIN)
        clock.advance(minutes=1)

        response = sync_client.post("/mental-health/establish-baseline")

        assert response.status_code == 201
        created = response.json()
        assert created["averagedMetrics"]["averageMoodScore"] == 4.0
        assert created["rawAssessmentData"] is None

        current = sync_client.get("/mental-health/baseline").json()
        assert current["id"] == created["id"]
        assert current["rawAssessmentData"]["mentalHealthStatus"] == "stable"

        history = sync_client.get("/mental-health/baseline/history", params={"limit": 5}).json()
        assert [b["id"] for b in history] == [created["id"]]

    def test_establish_with_raw_data(self, sync_client):
        """Test that raw classifier output can be requested."""
        sync_client.post("/check-in", json=CHECKIN)
        response = sync_client.post("/mental-health/establish-baseline", params={"includeRawData": True})
        assert response.json()["rawAssessmentData"]["model"] == "stub"

    def test_baseline_missing(self, sync_client):
        """Test 404 without a baseline."""
        assert sync_client.get("/mental-health/baseline").status_code == 404
        assert sync_client.get("/mental-health/baseline/analyzed-data").status_code == 404

    def test_baseline_analyzed_data(self, sync_client, factory, clock, days_back, test_user_id):
        """Test reading the data behind the baseline."""
        factory.health(test_user_id, days_back(1), sleep_hours=7, quality="good", steps=9000)
        sync_client.post("/check-in", json=CHECKIN)
        sync_client.post("/mental-health/establish-baseline")

        data = sync_client.get("/mental-health/baseline/analyzed-data").json()

        assert data["analysisType"] == "baseline"
        assert data["period"]["totalDays"] == 30
        assert data["healthData"][0]["date"] == days_back(1).isoformat()
        assert data["healthData"][0]["sleepSeconds"] == 7 * 3600
        assert data["checkIns"][0]["mood"]["score"] == 4


class TestAssessmentRoutes:
    """Test assessment endpoints."""

    def test_analyze_recent_without_baseline(self, sync_client):
        """Test that recent analysis runs without a baseline."""
        sync_client.post("/check-in", json=CHECKIN)

        response = sync_client.post("/mental-health/analyze-recent")

        assert response.status_code == 200
        data = response.json()
        assert data["analysisType"] == "recent"
        assert data["baselineComparison"] is None
        assert data["status"] == "stable"
        assert 0 <= data["confidenceScore"] <= 1
        assert data["supportRequestStatus"] == "none"
        assert data["assessment"]["metadata"]["analysisType"] == "recent"

    def test_analyze_recent_with_baseline(self, sync_client, clock):
        """Test that an existing baseline is compared against."""
        sync_client.post("/check-in", json=CHECKIN)
        sync_client.post("/mental-health/establish-baseline")
        clock.advance(minutes=1)

        data = sync_client.post("/mental-health/analyze-recent").json()

        assert data["baselineComparison"]["moodChange"] == "Mood decreased by 50% compared to baseline"

    def test_assess_without_data(self, sync_client):
        """Test that assessing without data reports insufficient data."""
        response = sync_client.post("/mental-health/assess")
        assert response.status_code == 422

    def test_classifier_failure(self, sync_client, classifier):
        """Test that classifier failures surface as 502."""
        classifier.error = RuntimeError("model offline")
        sync_client.post("/check-in", json=CHECKIN)

        response = sync_client.post("/mental-health/assess")

        assert response.status_code == 502
        assert response.json()["error_code"] == "ANALYSIS_FAILED"

    def test_latest_and_history(self, sync_client, clock):
        """Test latest assessment and filtered history."""
        assert sync_client.get("/mental-health/assessment").status_code == 404
        sync_client.post("/check-in", json=CHECKIN)
        sync_client.post("/mental-health/assess")
        clock.advance(minutes=1)
        recent = sync_client.post("/mental-health/analyze-recent").json()

        latest = sync_client.get("/mental-health/assessment").json()
        assert latest["id"] == recent["assessment"]["id"]

        history = sync_client.get("/mental-health/history", params={"limit": 10}).json()
        assert len(history) == 2
        assert "supportRequestStatus" not in history[0]

        detailed = sync_client.get("/mental-health/history", params={
            "analysisType": "standard", "includeSupportDetails": True,
        }).json()
        assert len(detailed) == 1
        assert detailed[0]["supportRequestStatus"] == "none"

    def test_recent_analyzed_data(self, sync_client):
        """Test reading the data behind the latest recent assessment."""
        assert sync_client.get("/mental-health/recent/analyzed-data").status_code == 404
        sync_client.post("/check-in", json=CHECKIN)
        sync_client.post("/mental-health/analyze-recent")

        data = sync_client.get("/mental-health/recent/analyzed-data").json()
        assert data["analysisType"] == "recent"
        assert data["period"]["totalDays"] == 3

    def test_stats(self, sync_client):
        """Test the stats summary."""
        sync_client.post("/check-in", json=CHECKIN)
        sync_client.post("/mental-health/assess")

        data = sync_client.get("/mental-health/stats", params={"days": 30}).json()

        assert data["totalAssessments"] == 1
        assert data["statusDistribution"]["stable"] == 1
        assert data["period"]["days"] == 30


class TestSupportRoutes:
    """Test support request endpoints."""

    def test_buddy_requests_listed(self, sync_client, db_session, factory, clock,
                                   test_user_id, another_user_id):
        """Test that a buddy sees the request with the submitter attached."""
        a = open_request(db_session, factory, clock, another_user_id, test_user_id)

        response = sync_client.get("/mental-health/buddy-support-requests")

        assert response.status_code == 200
        [item] = response.json()
        assert item["id"] == str(a.id)
        assert item["user"] == {"id": str(another_user_id), "username": "owner", "displayName": "Owner"}
        assert sync_client.get("/mental-health/community-support-requests").json() == []
        assert sync_client.get("/mental-health/global-support-requests").json() == []

    def test_provide_support(self, sync_client, db_session, factory, clock, test_user_id, another_user_id):
        """Test answering a request, then answering it again."""
        a = open_request(db_session, factory, clock, another_user_id, test_user_id)

        response = sync_client.post(f"/mental-health/provide-support/{a.id}")

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Support marked as provided"
        assert data["assessment"]["supportRequestStatus"] == "supportProvided"
        assert data["assessment"]["supportProvidedBy"] == str(test_user_id)

        again = sync_client.post(f"/mental-health/provide-support/{a.id}")
        assert again.status_code == 409
        assert again.json()["error_code"] == "CONFLICT"

    def test_provide_support_unknown(self, sync_client):
        """Test 404 for unknown assessments."""
        response = sync_client.post(f"/mental-health/provide-support/{uuid.uuid4()}")
        assert response.status_code == 404


class TestAdminRoutes:
    """Test gated admin endpoints."""

    def test_disabled_by_default(self, sync_client, monkeypatch):
        """Test that admin routes are closed unless enabled."""
        monkeypatch.setattr(settings, "ADMIN_ROUTES_ENABLED", False)
        response = sync_client.post("/mental-health/admin/clear-assessments")
        assert response.status_code == 401

    def test_requires_admin_role(self, sync_client, admin_enabled, mock_auth_user):
        """Test that non-admin callers are rejected."""
        mock_auth_user["role"] = "authenticated"
        response = sync_client.post("/mental-health/admin/clear-assessments")
        assert response.status_code == 401

    def test_clear_assessments(self, sync_client, admin_enabled):
        """Test clearing assessments and baselines."""
        sync_client.post("/check-in", json=CHECKIN)
        sync_client.post("/mental-health/establish-baseline")
        sync_client.post("/mental-health/assess")

        response = sync_client.post("/mental-health/admin/clear-assessments", params={"includeBaselines": True})

        assert response.status_code == 200
        assert response.json() == {
            "message": "Mental health data cleared", "deletedAssessments": 1, "deletedBaselines": 1,
        }
        assert sync_client.get("/mental-health/assessment").status_code == 404

    def test_reset_and_sweep(self, sync_client, admin_enabled, db_session, factory, clock,
                             test_user_id, another_user_id):
        """Test the support sweep and the admin reset."""
        a = open_request(db_session, factory, clock, another_user_id, test_user_id)
        clock.advance(hours=13)

        sweep = sync_client.post("/mental-health/admin/sweep-support").json()
        assert sweep["widened"] == 1
        assert sweep["transitions"][0]["to"] == "globalRequested"

        reset = sync_client.post(f"/mental-health/admin/reset-support/{a.id}").json()
        assert reset["supportRequestStatus"] == "none"

"""
Tests for the health data sync route.
"""
from datetime import date
from app.repositories.health_repo import list_health_between


class TestHealthDataRoutes:
    """Test health data sync."""

    def test_sync_days(self, sync_client, db_session, test_user_id):
        """Test that synced days are stored."""
        response = sync_client.post("/health-data/sync", json={"days": [
            {"date": "2026-03-08", "sleepSeconds": 25200, "sleepQuality": "good", "totalSteps": 9000},
            {"date": "2026-03-09", "exerciseSeconds": 1800, "exerciseCount": 1},
        ]})

        assert response.status_code == 200
        assert response.json() == {"message": "Health data synced", "synced": 2}
        rows = list_health_between(db_session, test_user_id, date(2026, 3, 1), date(2026, 3, 10))
        assert [r.day for r in rows] == [date(2026, 3, 8), date(2026, 3, 9)]
        assert rows[0].sleep_seconds == 25200
        assert rows[1].exercise_count == 1

    def test_resync_merges(self, sync_client, db_session, test_user_id):
        """Test that a later sync of the same day only overwrites the fields it carries."""
        sync_client.post("/health-data/sync", json={"days": [{"date": "2026-03-08", "sleepSeconds": 25200}]})
        sync_client.post("/health-data/sync", json={"days": [{"date": "2026-03-08", "totalSteps": 4000}]})

        [row] = list_health_between(db_session, test_user_id, date(2026, 3, 8), date(2026, 3, 8))
        assert row.sleep_seconds == 25200
        assert row.total_steps == 4000

    def test_rejects_bad_payload(self, sync_client):
        """Test validation of the sync payload."""
        assert sync_client.post("/health-data/sync", json={"days": []}).status_code == 422
        bad_quality = {"days": [{"date": "2026-03-08", "sleepQuality": "amazing"}]}
        assert sync_client.post("/health-data/sync", json=bad_quality).status_code == 422
        negative = {"days": [{"date": "2026-03-08", "totalSteps": -5}]}
        assert sync_client.post("/health-data/sync", json=negative).status_code == 422

"""Tests for the reporting endpoints."""

from datetime import datetime, timedelta

import pytest  # type: ignore[import-not-found]
from fastapi.testclient import TestClient  # type: ignore[import-untyped]

from kimai.core.models import Project, Timesheet
from kimai.core.storage import StorageManager


def book(storage: StorageManager, user_id: int, project_id: int, activity_id: int, begin: datetime, hours: int, rate: float) -> None:  # noqa: E501
    storage.save_timesheet(
        Timesheet(
            user_id=user_id,
            project_id=project_id,
            activity_id=activity_id,
            begin=begin,
            end=begin + timedelta(hours=hours),
            duration=hours * 3600,
            rate=rate,
        )
    )


@pytest.fixture  # type: ignore[misc]
def booked(storage: StorageManager, records) -> None:  # type: ignore[no-untyped-def]
    book(storage, records.user.id, records.project.id, records.activity.id, datetime(2024, 5, 6, 8), 2, 200.0)
    book(storage, records.user.id, records.project.id, records.global_activity.id, datetime(2024, 5, 7, 8), 1, 100.0)
    book(storage, records.teamlead.id, records.project.id, records.activity.id, datetime(2024, 5, 6, 8), 4, 400.0)


class TestReporting:
    """Test /api/reporting."""

    def test_daily(self, client: TestClient, booked, user_headers: dict[str, str]) -> None:  # type: ignore[no-untyped-def]
        response = client.get("/api/reporting/daily?begin=2024-05-06&end=2024-05-12", headers=user_headers)

        assert response.status_code == 200
        stats = response.json()
        assert len(stats) == 1
        assert stats[0]["duration"] == 3 * 3600
        assert len(stats[0]["days"]) == 7
        assert stats[0]["days"][0] == {
            "date": "2024-05-06",
            "duration": 7200,
            "rate": 200.0,
            "internal_rate": 0.0,
            "billable_duration": 7200,
            "billable_rate": 200.0,
        }

    def test_other_users_need_permission(self, client: TestClient, booked, records, user_headers: dict[str, str], teamlead_headers: dict[str, str]) -> None:  # type: ignore[no-untyped-def]
        url = f"/api/reporting/daily?begin=2024-05-06&end=2024-05-06&users={records.user.id}&users={records.teamlead.id}"

        assert client.get(url, headers=user_headers).status_code == 403

        stats = client.get(url, headers=teamlead_headers).json()
        assert [s["duration"] for s in stats] == [7200, 4 * 3600]

    def test_invalid_range(self, client: TestClient, records, user_headers: dict[str, str]) -> None:  # type: ignore[no-untyped-def]
        response = client.get("/api/reporting/daily?begin=2024-05-06&end=2024-05-01", headers=user_headers)
        assert response.status_code == 400

    def test_daily_grouped(self, client: TestClient, booked, records, user_headers: dict[str, str]) -> None:  # type: ignore[no-untyped-def]
        entries = client.get("/api/reporting/daily-grouped?begin=2024-05-06&end=2024-05-12", headers=user_headers).json()

        by_activity = {e["activity"]: e["duration"] for e in entries}
        assert by_activity == {records.activity.id: 7200, records.global_activity.id: 3600}
        assert all(e["project"] == records.project.id for e in entries)

    def test_monthly(self, client: TestClient, booked, user_headers: dict[str, str]) -> None:  # type: ignore[no-untyped-def]
        years = client.get("/api/reporting/monthly?end=2024-12-31", headers=user_headers).json()

        assert [y["year"] for y in years] == ["2024"]
        assert years[0]["duration"] == 3 * 3600
        may = years[0]["months"][4]
        assert may["month"] == "05"
        assert may["rate"] == 300.0

    def test_monthly_unknown_user(self, client: TestClient, records, teamlead_headers: dict[str, str]) -> None:  # type: ignore[no-untyped-def]
        assert client.get("/api/reporting/monthly?user=999", headers=teamlead_headers).status_code == 404

    def test_project_date_range(self, client: TestClient, storage: StorageManager, records, user_headers: dict[str, str], teamlead_headers: dict[str, str]) -> None:  # type: ignore[no-untyped-def]
        project = storage.save_project(Project(name="Budget", customer_id=records.customer.id, time_budget=36000))
        book(storage, records.user.id, project.id, records.global_activity.id, datetime(2024, 5, 6, 8), 3, 300.0)  # type: ignore[arg-type]

        assert client.get("/api/reporting/project-date-range?month=2024-05-01", headers=user_headers).status_code == 403

        report = client.get("/api/reporting/project-date-range?month=2024-05-01", headers=teamlead_headers).json()
        assert len(report) == 1
        assert report[0]["customer_name"] == "Acme"
        assert report[0]["projects"][0]["project_name"] == "Budget"
        assert report[0]["projects"][0]["time_budget_percent"] == 30.0

    def test_duration_today(self, client: TestClient, records, user_headers: dict[str, str]) -> None:  # type: ignore[no-untyped-def]
        data = client.get("/api/reporting/widgets/duration-today", headers=user_headers).json()
        assert data == {"user": records.user.id, "duration": 0}

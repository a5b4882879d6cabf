"""Tests for the plugin and page action endpoints."""

import json
from datetime import datetime, timedelta
from pathlib import Path

from fastapi.testclient import TestClient  # type: ignore[import-untyped]

from kimai.api.endpoints.plugins import marketplace_client
from kimai.core.config import ConfigManager
from kimai.core.models import Timesheet
from kimai.core.storage import StorageManager


class TestPlugins:
    """Test /api/plugins."""

    def test_requires_super_admin(self, client: TestClient, admin_headers: dict[str, str]) -> None:
        assert client.get("/api/plugins/", headers=admin_headers).status_code == 403

    def test_list_installed(self, client: TestClient, config: ConfigManager, auth_headers: dict[str, str]) -> None:
        bundle = config.get_path("plugins.directory") / "AuditBundle"
        bundle.mkdir(parents=True)
        (bundle / "composer.json").write_text(
            json.dumps({"description": "Audit log", "extra": {"kimai": {"version": "2.0"}}})
        )

        plugins = client.get("/api/plugins/", headers=auth_headers).json()

        assert len(plugins) == 1
        assert plugins[0]["id"] == "Audit"
        assert plugins[0]["version"] == "2.0"
        assert plugins[0]["description"] == "Audit log"

    def test_marketplace_from_cache(self, client: TestClient, config: ConfigManager, auth_headers: dict[str, str]) -> None:
        cache_file = marketplace_client(config).cache_file
        cache_file.parent.mkdir(parents=True, exist_ok=True)
        cache_file.write_text(json.dumps([{"name": "ExpensesBundle"}]))

        data = client.get("/api/plugins/marketplace", headers=auth_headers).json()

        assert data == [{"name": "ExpensesBundle"}]

    def test_marketplace_cache_location(self, config: ConfigManager, temp_dir: Path) -> None:
        assert marketplace_client(config).cache_dir == temp_dir / "cache"


class TestPageActions:
    """Test /api/ui/actions."""

    def test_user_profile(self, client: TestClient, records, user_headers: dict[str, str]) -> None:  # type: ignore[no-untyped-def]
        actions = client.get(f"/api/ui/actions/user_profile?id={records.user.id}", headers=user_headers).json()

        assert "edit" in actions
        assert actions["divider1"] is None
        assert "roles" not in actions

    def test_timesheet(self, client: TestClient, storage: StorageManager, records, user_headers: dict[str, str]) -> None:  # type: ignore[no-untyped-def]
        begin = datetime(2024, 5, 6, 8)
        timesheet = storage.save_timesheet(
            Timesheet(
                user_id=records.user.id,
                project_id=records.project.id,
                activity_id=records.activity.id,
                begin=begin,
                end=begin + timedelta(hours=1),
                duration=3600,
            )
        )

        actions = client.get(f"/api/ui/actions/timesheet?id={timesheet.id}", headers=user_headers).json()

        assert actions["trash"]["url"] == f"/api/timesheets/{timesheet.id}"
        assert "export" not in actions

    def test_invoice_template_upload(self, client: TestClient, admin_headers: dict[str, str]) -> None:
        actions = client.get("/api/ui/actions/invoice_template_upload", headers=admin_headers).json()
        assert list(actions) == ["back", "help"]

    def test_errors(self, client: TestClient, records, user_headers: dict[str, str]) -> None:  # type: ignore[no-untyped-def]
        assert client.get("/api/ui/actions/unknown", headers=user_headers).status_code == 404
        assert client.get("/api/ui/actions/timesheet", headers=user_headers).status_code == 400
        assert client.get("/api/ui/actions/timesheet?id=999", headers=user_headers).status_code == 404

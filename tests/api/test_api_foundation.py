"""Tests for API foundation (server, auth, system endpoints)."""

from datetime import timedelta

from fastapi.testclient import TestClient  # type: ignore[import-untyped]

from kimai.api import create_app
from kimai.api.auth import create_access_token, create_token_for_user, get_token_expiry_seconds
from kimai.api.models import HealthResponse, TokenResponse
from kimai.core.config import ConfigManager
from kimai.core.storage import StorageManager

PASSWORD = "kitten123"


class TestServerCreation:
    """Test FastAPI server creation."""

    def test_create_app_with_config(self, config: ConfigManager) -> None:
        app = create_app(config)

        assert app.title == "Kimai API"
        assert app.state.config is config

    def test_app_has_routes(self, test_app) -> None:  # type: ignore[no-untyped-def]
        routes = [route.path for route in test_app.routes]

        assert "/api/health" in routes
        assert "/api/status" in routes
        assert "/api/timesheets/" in routes
        assert "/api/quick-entry/" in routes

    def test_root(self, client: TestClient) -> None:
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["health"] == "/api/health"


class TestSystemEndpoints:
    """Test the public and authenticated system endpoints."""

    def test_health(self, client: TestClient) -> None:
        response = client.get("/api/health")

        assert response.status_code == 200
        health = HealthResponse(**response.json())
        assert health.status == "healthy"

    def test_ping_and_version(self, client: TestClient) -> None:
        assert client.get("/api/ping").json() == {"message": "pong"}

        version = client.get("/api/version").json()
        assert version["name"] == "Kimai"
        assert version["version"] in version["copyright"]

    def test_status_requires_auth(self, client: TestClient, records) -> None:  # type: ignore[no-untyped-def]
        response = client.get("/api/status")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_status(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        response = client.get("/api/status", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["authentication_enabled"] is True
        assert data["active_timesheets"] == 0

    def test_timesheet_config(self, client: TestClient, config: ConfigManager, user_headers: dict[str, str]) -> None:
        config.set("timesheet.mode", "punch")

        data = client.get("/api/config/timesheet", headers=user_headers).json()

        assert data["tracking_mode"] == "punch"
        assert data["default_begin_time"] == "08:00"
        assert data["active_entries_hard_limit"] == 1

    def test_calendar_config_listener(self, client: TestClient, test_app, user_headers: dict[str, str]) -> None:  # type: ignore[no-untyped-def]
        test_app.state.dispatcher.add_listener(
            "calendar.configuration", lambda event: event.set_configuration({"day_limit": 8, "foo": 1})
        )

        data = client.get("/api/config/calendar", headers=user_headers).json()

        assert data["day_limit"] == 8
        assert "foo" not in data


class TestAuthentication:
    """Test tokens and the current user."""

    def test_token_endpoint(self, client: TestClient, records) -> None:  # type: ignore[no-untyped-def]
        response = client.post("/api/auth/token", json={"username": "john_user", "password": PASSWORD})

        assert response.status_code == 200
        token = TokenResponse(**response.json())
        me = client.get("/api/users/me", headers={"Authorization": f"Bearer {token.access_token}"})
        assert me.json()["username"] == "john_user"

    def test_token_with_email(self, client: TestClient, records) -> None:  # type: ignore[no-untyped-def]
        response = client.post("/api/auth/token", json={"username": "john_user@example.com", "password": PASSWORD})
        assert response.status_code == 200

    def test_wrong_password(self, client: TestClient, records) -> None:  # type: ignore[no-untyped-def]
        response = client.post("/api/auth/token", json={"username": "john_user", "password": "wrong"})
        assert response.status_code == 401

    def test_disabled_user(self, client: TestClient, storage: StorageManager, records, user_headers: dict[str, str]) -> None:  # type: ignore[no-untyped-def]
        records.user.enabled = False
        storage.save_user(records.user)

        token = client.post("/api/auth/token", json={"username": "john_user", "password": PASSWORD})
        assert token.status_code == 403

        # tokens issued before are rejected too
        assert client.get("/api/users/me", headers=user_headers).status_code == 403

    def test_invalid_token(self, client: TestClient, config: ConfigManager, records) -> None:  # type: ignore[no-untyped-def]
        config.ensure_api_secret_key()

        response = client.get("/api/users/me", headers={"Authorization": "Bearer invalid"})

        assert response.status_code == 401

    def test_expired_token(self, client: TestClient, config: ConfigManager, records) -> None:  # type: ignore[no-untyped-def]
        token = create_access_token(
            {"sub": "john_user"}, config.ensure_api_secret_key(), expires_delta=timedelta(seconds=-1)
        )

        response = client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    def test_unknown_user(self, client: TestClient, config: ConfigManager, records) -> None:  # type: ignore[no-untyped-def]
        token = create_token_for_user(config, "nobody")["access_token"]

        response = client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Unknown user"

    def test_authentication_disabled_uses_super_admin(self, client: TestClient, config: ConfigManager, records) -> None:  # type: ignore[no-untyped-def]
        config.set("api.authentication.enabled", False)

        response = client.get("/api/users/me")

        assert response.status_code == 200
        assert response.json()["username"] == "susan_super"

    def test_token_expiry(self, config: ConfigManager) -> None:
        config.set("api.authentication.token_expiry_hours", 2)

        data = create_token_for_user(config, "john_user")

        assert data["expires_in"] == get_token_expiry_seconds(config) == 7200
        assert data["token_type"] == "bearer"

"""Fixtures for the API tests."""

from typing import Callable

import pytest  # type: ignore[import-not-found]
from fastapi import FastAPI  # type: ignore[import-untyped]
from fastapi.testclient import TestClient  # type: ignore[import-untyped]

from kimai.api import create_app
from kimai.api.auth import create_token_for_user
from kimai.core.config import ConfigManager


@pytest.fixture  # type: ignore[misc]
def test_app(config: ConfigManager) -> FastAPI:
    """Create a test FastAPI application."""
    return create_app(config)


@pytest.fixture  # type: ignore[misc]
def client(test_app: FastAPI) -> TestClient:
    """Create a test client."""
    return TestClient(test_app)


@pytest.fixture  # type: ignore[misc]
def headers_for(config: ConfigManager, records) -> Callable[[str], dict[str, str]]:  # type: ignore[no-untyped-def]
    """Build bearer headers for a stored user."""

    def build(username: str) -> dict[str, str]:
        token = create_token_for_user(config, username)["access_token"]
        return {"Authorization": f"Bearer {token}"}

    return build


@pytest.fixture  # type: ignore[misc]
def auth_headers(headers_for) -> dict[str, str]:  # type: ignore[no-untyped-def]
    """Headers of the super admin."""
    return headers_for("susan_super")


@pytest.fixture  # type: ignore[misc]
def user_headers(headers_for) -> dict[str, str]:  # type: ignore[no-untyped-def]
    return headers_for("john_user")


@pytest.fixture  # type: ignore[misc]
def teamlead_headers(headers_for) -> dict[str, str]:  # type: ignore[no-untyped-def]
    return headers_for("tony_teamlead")


@pytest.fixture  # type: ignore[misc]
def admin_headers(headers_for) -> dict[str, str]:  # type: ignore[no-untyped-def]
    return headers_for("anna_admin")

"""Pytest configuration and shared fixtures."""

import tempfile
from dataclasses import dataclass
from pathlib import Path

import pytest  # type: ignore[import-not-found]

from kimai.core.config import ConfigManager
from kimai.core.models import Activity, Customer, Project, Role, User
from kimai.core.security import hash_password
from kimai.core.storage import StorageManager

PASSWORD = "kitten123"


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest."""
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow tests")


@dataclass
class Records:
    """Users and a customer/project/activity tree stored for a test."""

    user: User
    teamlead: User
    admin: User
    super_admin: User
    customer: Customer
    project: Project
    activity: Activity
    global_activity: Activity


@pytest.fixture  # type: ignore[misc]
def temp_dir() -> Path:
    """Create temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture  # type: ignore[misc]
def config(temp_dir: Path) -> ConfigManager:
    """Configuration with every directory below the temporary directory."""
    config_mgr = ConfigManager(temp_dir / "config.yml")
    config_mgr.set("general.data_dir", str(temp_dir / "data"))
    config_mgr.set("invoice.documents_dir", str(temp_dir / "invoices" / "documents"))
    config_mgr.set("invoice.archive_dir", str(temp_dir / "invoices" / "archive"))
    config_mgr.set("plugins.directory", str(temp_dir / "plugins"))
    config_mgr.set("translations.directory", str(temp_dir / "translations"))
    return config_mgr


@pytest.fixture  # type: ignore[misc]
def storage(config: ConfigManager) -> StorageManager:
    return StorageManager(config.get_path("general.data_dir"))


@pytest.fixture  # type: ignore[misc]
def records(storage: StorageManager) -> Records:
    """Store one user per role plus a customer, project and activities."""

    def user(name: str, role: Role) -> User:
        u = User(username=name, email=f"{name}@example.com", password_hash=hash_password(PASSWORD))
        u.add_role(role.value)
        return storage.save_user(u)

    customer = storage.save_customer(Customer(name="Acme", hourly_rate=100.0))
    assert customer.id is not None
    project = storage.save_project(Project(name="Website", customer_id=customer.id))
    assert project.id is not None

    return Records(
        user=user("john_user", Role.USER),
        teamlead=user("tony_teamlead", Role.TEAMLEAD),
        admin=user("anna_admin", Role.ADMIN),
        super_admin=user("susan_super", Role.SUPER_ADMIN),
        customer=customer,
        project=project,
        activity=storage.save_activity(Activity(name="Development", project_id=project.id)),
        global_activity=storage.save_activity(Activity(name="Support")),
    )

"""Tests for storage manager."""

import tempfile
from datetime import datetime, timedelta
from pathlib import Path

import pytest  # type: ignore[import-not-found]

from kimai.core.models import Activity, Customer, Invoice, Project, Timesheet, User
from kimai.core.storage import StorageManager


@pytest.fixture  # type: ignore[misc]
def temp_storage() -> StorageManager:
    """Create a storage manager with temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        storage = StorageManager(Path(tmpdir) / "data")
        yield storage


def make_timesheet(begin: datetime, hours: int = 1, user_id: int = 1) -> Timesheet:
    return Timesheet(
        user_id=user_id,
        project_id=1,
        activity_id=1,
        begin=begin,
        end=begin + timedelta(hours=hours),
        duration=hours * 3600,
    )


class TestStorageManager:
    """Test StorageManager."""

    def test_initialization_creates_csv_files(self, temp_storage: StorageManager) -> None:
        for table in ("users", "customers", "projects", "activities", "timesheets", "invoices"):
            path = temp_storage.table_file(table)
            assert path.exists()
            with open(path) as f:
                header = f.readline().strip()
                assert "id" in header.split(",")

        assert temp_storage.backup_dir.exists()

    def test_save_assigns_incrementing_ids(self, temp_storage: StorageManager) -> None:
        first = temp_storage.save_customer(Customer(name="Acme"))
        second = temp_storage.save_customer(Customer(name="Globex"))

        assert first.id == 1
        assert second.id == 2
        assert [c.name for c in temp_storage.load_customers()] == ["Acme", "Globex"]

    def test_update_existing_record(self, temp_storage: StorageManager) -> None:
        customer = temp_storage.save_customer(Customer(name="Acme"))
        customer.name = "Acme Corp"
        temp_storage.save_customer(customer)

        customers = temp_storage.load_customers()
        assert len(customers) == 1
        assert customers[0].name == "Acme Corp"

    def test_get_and_delete(self, temp_storage: StorageManager) -> None:
        project = temp_storage.save_project(Project(name="Website", customer_id=1))

        assert temp_storage.get_project(project.id).name == "Website"  # type: ignore[arg-type,union-attr]
        assert temp_storage.delete_project(project.id)  # type: ignore[arg-type]
        assert temp_storage.get_project(project.id) is None  # type: ignore[arg-type]
        assert not temp_storage.delete_project(project.id)  # type: ignore[arg-type]

    def test_load_projects_by_customer(self, temp_storage: StorageManager) -> None:
        temp_storage.save_project(Project(name="Website", customer_id=1))
        temp_storage.save_project(Project(name="App", customer_id=2))

        assert [p.name for p in temp_storage.load_projects(customer_id=2)] == ["App"]

    def test_load_activities_includes_global(self, temp_storage: StorageManager) -> None:
        temp_storage.save_activity(Activity(name="Support"))
        temp_storage.save_activity(Activity(name="Design", project_id=1))
        temp_storage.save_activity(Activity(name="Testing", project_id=2))

        names = {a.name for a in temp_storage.load_activities(project_id=1)}
        assert "Design" in names
        assert "Testing" not in names

    def test_get_user_by_username_or_email(self, temp_storage: StorageManager) -> None:
        temp_storage.save_user(User(username="John_User", email="john@example.com"))

        assert temp_storage.get_user_by_username("john_user") is not None
        assert temp_storage.get_user_by_username("JOHN@example.com") is not None
        assert temp_storage.get_user_by_username("nobody") is None

    def test_timesheets_sorted_most_recent_first(self, temp_storage: StorageManager) -> None:
        temp_storage.save_timesheet(make_timesheet(datetime(2024, 5, 1, 8)))
        temp_storage.save_timesheet(make_timesheet(datetime(2024, 5, 3, 8)))
        temp_storage.save_timesheet(make_timesheet(datetime(2024, 5, 2, 8), user_id=2))

        begins = [t.begin.day for t in temp_storage.load_timesheets()]
        assert begins == [3, 2, 1]
        assert len(temp_storage.load_timesheets(user_id=2)) == 1

    def test_active_timesheets(self, temp_storage: StorageManager) -> None:
        temp_storage.save_timesheet(make_timesheet(datetime(2024, 5, 1, 8)))
        temp_storage.save_timesheet(
            Timesheet(user_id=1, project_id=1, activity_id=1, begin=datetime(2024, 5, 2, 8))
        )

        active = temp_storage.get_active_timesheets(user_id=1)
        assert len(active) == 1
        assert active[0].is_running

    def test_save_timesheets_updates_in_one_write(self, temp_storage: StorageManager) -> None:
        first = temp_storage.save_timesheet(make_timesheet(datetime(2024, 5, 1, 8)))
        second = temp_storage.save_timesheet(make_timesheet(datetime(2024, 5, 2, 8)))
        first.exported = True
        second.exported = True

        temp_storage.save_timesheets([first, second])

        assert all(t.exported for t in temp_storage.load_timesheets())

    def test_load_invoices_by_customer(self, temp_storage: StorageManager) -> None:
        temp_storage.save_invoice(Invoice(invoice_number="1", customer_id=1, user_id=1))
        temp_storage.save_invoice(Invoice(invoice_number="2", customer_id=2, user_id=1))

        assert [i.invoice_number for i in temp_storage.load_invoices(customer_id=1)] == ["1"]

    def test_backup(self, temp_storage: StorageManager) -> None:
        temp_storage.save_customer(Customer(name="Acme"))

        backup_path = temp_storage.backup("before-import")

        assert backup_path.name == "before-import"
        assert (backup_path / "customers.csv").exists()

    def test_atomic_write_leaves_no_temp_file(self, temp_storage: StorageManager) -> None:
        temp_storage.save_customer(Customer(name="Acme"))
        assert not list(temp_storage.data_dir.glob("*.tmp"))

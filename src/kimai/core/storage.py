"""CSV storage manager with atomic operations.

Every record type lives in its own CSV file. Writes go to a temporary file
that is renamed over the table, so readers never observe a partial table.
"""

import csv
import logging
import os
import shutil
import sys
from dataclasses import fields
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from kimai.core.models import Activity, Customer, Invoice, InvoiceTemplate, Project, Timesheet, User

logger = logging.getLogger(__name__)

# table name -> record class
TABLES: dict[str, Any] = {
    "users": User,
    "customers": Customer,
    "projects": Project,
    "activities": Activity,
    "timesheets": Timesheet,
    "invoice_templates": InvoiceTemplate,
    "invoices": Invoice,
}


def _lock_file(file_obj: Any, exclusive: bool = True) -> None:
    """Lock a file in a cross-platform way.

    Args:
        file_obj: File object to lock
        exclusive: If True, acquire exclusive lock; if False, acquire shared lock
    """
    if sys.platform == "win32":
        import msvcrt  # type: ignore[import-not-found]

        mode = msvcrt.LK_NBLCK if exclusive else msvcrt.LK_NBRLCK
        msvcrt.locking(file_obj.fileno(), mode, 1)
    else:
        import fcntl  # type: ignore[import-not-found]

        mode = fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH
        fcntl.flock(file_obj.fileno(), mode)


def _unlock_file(file_obj: Any) -> None:
    if sys.platform == "win32":
        import msvcrt  # type: ignore[import-not-found]

        msvcrt.locking(file_obj.fileno(), msvcrt.LK_UNLCK, 1)
    else:
        import fcntl  # type: ignore[import-not-found]

        fcntl.flock(file_obj.fileno(), fcntl.LOCK_UN)


class StorageManager:
    """Manages CSV tables for users, customers, projects, activities,
    timesheets, invoice templates and invoices."""

    def __init__(self, data_dir: Optional[Path] = None):
        """Initialize storage manager.

        Args:
            data_dir: Custom data directory. Defaults to ~/.kimai/data
        """
        if data_dir is None:
            data_dir = Path.home() / ".kimai" / "data"

        self.data_dir = Path(data_dir)
        self.backup_dir = self.data_dir.parent / "backups"

        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.backup_dir.mkdir(parents=True, exist_ok=True)

        self._initialize_files()

    def table_file(self, table: str) -> Path:
        return self.data_dir / f"{table}.csv"

    @staticmethod
    def fieldnames(table: str) -> list[str]:
        return [f.name for f in fields(TABLES[table])]

    def _initialize_files(self) -> None:
        """Create CSV files with headers if they don't exist."""
        for table in TABLES:
            path = self.table_file(table)
            if not path.exists():
                self._write_csv_atomic(path, self.fieldnames(table), [])

    def _write_csv_atomic(
        self, file_path: Path, fieldnames: list[str], rows: list[dict[str, Any]]
    ) -> None:
        """Write CSV file atomically using temporary file and rename.

        Args:
            file_path: Target file path
            fieldnames: CSV field names
            rows: List of row dictionaries
        """
        temp_file = file_path.with_suffix(".tmp")

        try:
            with open(temp_file, "w", newline="", encoding="utf-8") as f:
                _lock_file(f, exclusive=True)

                writer = csv.DictWriter(f, fieldnames=fieldnames)
                writer.writeheader()
                writer.writerows(rows)

                f.flush()
                os.fsync(f.fileno())

                _unlock_file(f)

            temp_file.replace(file_path)

        except Exception as e:
            if temp_file.exists():
                temp_file.unlink()
            logger.error(f"Failed writing {file_path.name}: {e}")
            raise e

    def _read_csv(self, file_path: Path) -> list[dict[str, Any]]:
        """Read CSV file with a shared lock.

        Args:
            file_path: CSV file to read

        Returns:
            List of row dictionaries
        """
        if not file_path.exists():
            return []

        with open(file_path, encoding="utf-8", newline="") as f:
            _lock_file(f, exclusive=False)

            try:
                reader = csv.DictReader(f)
                rows = list(reader)
            finally:
                _unlock_file(f)

        return rows

    def backup(self, label: Optional[str] = None) -> Path:
        """Create backup of all data files.

        Args:
            label: Optional label for backup. Defaults to timestamp

        Returns:
            Path to backup directory
        """
        if label is None:
            label = datetime.now().strftime("%Y%m%d_%H%M%S")

        backup_path = self.backup_dir / label
        backup_path.mkdir(parents=True, exist_ok=True)

        for table in TABLES:
            file = self.table_file(table)
            if file.exists():
                shutil.copy2(file, backup_path / file.name)

        logger.info(f"Backup written to {backup_path}")
        return backup_path

    # Generic table operations

    def _save(self, table: str, record: Any) -> Any:
        """Insert or update a record, assigning the next free id on insert."""
        rows = self._read_csv(self.table_file(table))

        if record.id is None:
            record.id = max((int(r["id"]) for r in rows), default=0) + 1
            rows.append(record.to_dict())
        else:
            row = record.to_dict()
            for i, existing in enumerate(rows):
                if existing["id"] == str(record.id):
                    rows[i] = row
                    break
            else:
                rows.append(row)

        self._write_csv_atomic(self.table_file(table), self.fieldnames(table), rows)
        return record

    def _save_many(self, table: str, records: list[Any]) -> None:
        """Update several existing records with a single write."""
        by_id = {str(r.id): r for r in records}
        rows = self._read_csv(self.table_file(table))
        for i, existing in enumerate(rows):
            if existing["id"] in by_id:
                rows[i] = by_id[existing["id"]].to_dict()
        self._write_csv_atomic(self.table_file(table), self.fieldnames(table), rows)

    def _load(self, table: str) -> list[Any]:
        model = TABLES[table]
        return [model.from_dict(row) for row in self._read_csv(self.table_file(table))]

    def _get(self, table: str, record_id: int) -> Any:
        for row in self._read_csv(self.table_file(table)):
            if row["id"] == str(record_id):
                return TABLES[table].from_dict(row)
        return None

    def _delete(self, table: str, record_id: int) -> bool:
        rows = self._read_csv(self.table_file(table))
        remaining = [r for r in rows if r["id"] != str(record_id)]

        if len(remaining) == len(rows):
            return False

        self._write_csv_atomic(self.table_file(table), self.fieldnames(table), remaining)
        return True

    # User operations

    def save_user(self, user: User) -> User:
        saved: User = self._save("users", user)
        return saved

    def load_users(self) -> list[User]:
        return self._load("users")

    def get_user(self, user_id: int) -> Optional[User]:
        return self._get("users", user_id)

    def get_user_by_username(self, username: str) -> Optional[User]:
        """Find a user by username or email (case insensitive)."""
        needle = username.lower()
        for user in self.load_users():
            if user.username.lower() == needle or (user.email and user.email.lower() == needle):
                return user
        return None

    def delete_user(self, user_id: int) -> bool:
        return self._delete("users", user_id)

    # Customer operations

    def save_customer(self, customer: Customer) -> Customer:
        saved: Customer = self._save("customers", customer)
        return saved

    def load_customers(self) -> list[Customer]:
        return self._load("customers")

    def get_customer(self, customer_id: int) -> Optional[Customer]:
        return self._get("customers", customer_id)

    def delete_customer(self, customer_id: int) -> bool:
        return self._delete("customers", customer_id)

    # Project operations

    def save_project(self, project: Project) -> Project:
        saved: Project = self._save("projects", project)
        return saved

    def load_projects(self, customer_id: Optional[int] = None) -> list[Project]:
        projects: list[Project] = self._load("projects")
        if customer_id is not None:
            projects = [p for p in projects if p.customer_id == customer_id]
        return projects

    def get_project(self, project_id: int) -> Optional[Project]:
        return self._get("projects", project_id)

    def delete_project(self, project_id: int) -> bool:
        return self._delete("projects", project_id)

    # Activity operations

    def save_activity(self, activity: Activity) -> Activity:
        saved: Activity = self._save("activities", activity)
        return saved

    def load_activities(self, project_id: Optional[int] = None) -> list[Activity]:
        """Load activities, optionally those usable for one project
        (project specific plus global ones)."""
        activities: list[Activity] = self._load("activities")
        if project_id is not None:
            activities = [a for a in activities if a.project_id in (None, project_id)]
        return activities

    def get_activity(self, activity_id: int) -> Optional[Activity]:
        return self._get("activities", activity_id)

    def delete_activity(self, activity_id: int) -> bool:
        return self._delete("activities", activity_id)

    # Timesheet operations

    def save_timesheet(self, timesheet: Timesheet) -> Timesheet:
        timesheet.modified_at = datetime.now()
        saved: Timesheet = self._save("timesheets", timesheet)
        return saved

    def save_timesheets(self, timesheets: list[Timesheet]) -> None:
        """Persist several already stored timesheets with a single write."""
        for timesheet in timesheets:
            timesheet.modified_at = datetime.now()
        self._save_many("timesheets", timesheets)

    def load_timesheets(self, user_id: Optional[int] = None) -> list[Timesheet]:
        """Load timesheets, most recent first.

        Args:
            user_id: Only return records of this user

        Returns:
            List of Timesheet objects
        """
        timesheets: list[Timesheet] = self._load("timesheets")
        if user_id is not None:
            timesheets = [t for t in timesheets if t.user_id == user_id]
        timesheets.sort(key=lambda t: t.begin, reverse=True)
        return timesheets

    def get_timesheet(self, timesheet_id: int) -> Optional[Timesheet]:
        return self._get("timesheets", timesheet_id)

    def get_active_timesheets(self, user_id: Optional[int] = None) -> list[Timesheet]:
        return [t for t in self.load_timesheets(user_id) if t.is_running]

    def delete_timesheet(self, timesheet_id: int) -> bool:
        return self._delete("timesheets", timesheet_id)

    # Invoice template operations

    def save_invoice_template(self, template: InvoiceTemplate) -> InvoiceTemplate:
        saved: InvoiceTemplate = self._save("invoice_templates", template)
        return saved

    def load_invoice_templates(self) -> list[InvoiceTemplate]:
        templates: list[InvoiceTemplate] = self._load("invoice_templates")
        templates.sort(key=lambda t: t.name.lower())
        return templates

    def get_invoice_template(self, template_id: int) -> Optional[InvoiceTemplate]:
        return self._get("invoice_templates", template_id)

    def delete_invoice_template(self, template_id: int) -> bool:
        return self._delete("invoice_templates", template_id)

    # Invoice operations

    def save_invoice(self, invoice: Invoice) -> Invoice:
        saved: Invoice = self._save("invoices", invoice)
        return saved

    def load_invoices(self, customer_id: Optional[int] = None) -> list[Invoice]:
        invoices: list[Invoice] = self._load("invoices")
        if customer_id is not None:
            invoices = [i for i in invoices if i.customer_id == customer_id]
        invoices.sort(key=lambda i: i.created_at, reverse=True)
        return invoices

    def get_invoice(self, invoice_id: int) -> Optional[Invoice]:
        return self._get("invoices", invoice_id)

    def delete_invoice(self, invoice_id: int) -> bool:
        return self._delete("invoices", invoice_id)

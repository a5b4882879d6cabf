"""Core data models for time tracking, billing and user management."""

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional


class Role(str, Enum):
    """User roles, ordered from least to most privileged."""

    USER = "ROLE_USER"
    TEAMLEAD = "ROLE_TEAMLEAD"
    ADMIN = "ROLE_ADMIN"
    SUPER_ADMIN = "ROLE_SUPER_ADMIN"


class InvoiceStatus(str, Enum):
    NEW = "new"
    PENDING = "pending"
    PAID = "paid"
    CANCELED = "canceled"


class TrackingMode(str, Enum):
    """How begin and end of new timesheets are determined."""

    DEFAULT = "default"
    PUNCH = "punch"
    DURATION = "duration"


# CSV helpers


def _opt_str(value: Any) -> Optional[str]:
    return value if value else None


def _opt_int(value: Any) -> Optional[int]:
    return int(value) if value not in (None, "") else None


def _opt_float(value: Any) -> Optional[float]:
    return float(value) if value not in (None, "") else None


def _opt_datetime(value: Any) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _parse_bool(value: Any) -> bool:
    """Parse booleans written by csv.DictWriter ("True"/"False")."""
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes")


def _split_list(value: Any) -> list[str]:
    if not value:
        return []
    return [v.strip() for v in str(value).split(",") if v.strip()]


def _load_json(value: Any) -> dict[str, Any]:
    if not value:
        return {}
    loaded: dict[str, Any] = json.loads(value)
    return loaded


def _fmt(value: Any) -> Any:
    return "" if value is None else value


@dataclass
class User:
    """Application user.

    Attributes:
        username: Unique login name
        email: Contact address
        id: Numeric identifier (assigned by storage)
        alias: Display name used instead of the username
        title: Job title
        password_hash: werkzeug password hash
        roles: Assigned roles (ROLE_USER is implied)
        enabled: Disabled accounts cannot authenticate
        timezone: Preferred timezone
        language: Preferred locale
        preferences: Free-form settings such as hourly_rate and internal_rate
        created_at: Registration time
    """

    username: str
    email: str = ""
    id: Optional[int] = None
    alias: Optional[str] = None
    title: Optional[str] = None
    password_hash: str = ""
    roles: list[str] = field(default_factory=list)
    enabled: bool = True
    timezone: str = "UTC"
    language: str = "en"
    preferences: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def display_name(self) -> str:
        return self.alias or self.username

    def get_roles(self) -> list[str]:
        """Return all roles including the implicit ROLE_USER."""
        roles = list(self.roles)
        if Role.USER.value not in roles:
            roles.append(Role.USER.value)
        return roles

    def has_role(self, role: "Role | str") -> bool:
        value = role.value if isinstance(role, Role) else role
        return value in self.get_roles()

    def is_super_admin(self) -> bool:
        return self.has_role(Role.SUPER_ADMIN)

    def add_role(self, role: str) -> None:
        if role == Role.USER.value or role in self.roles:
            return
        self.roles.append(role)

    def remove_role(self, role: str) -> None:
        self.roles = [r for r in self.roles if r != role]

    def get_preference(self, name: str, default: Any = None) -> Any:
        return self.preferences.get(name, default)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for CSV serialization."""
        return {
            "id": _fmt(self.id),
            "username": self.username,
            "email": self.email,
            "alias": _fmt(self.alias),
            "title": _fmt(self.title),
            "password_hash": self.password_hash,
            "roles": ",".join(self.roles),
            "enabled": self.enabled,
            "timezone": self.timezone,
            "language": self.language,
            "preferences": json.dumps(self.preferences),
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "User":
        """Create User from dictionary (CSV deserialization)."""
        return cls(
            id=_opt_int(data["id"]),
            username=data["username"],
            email=data.get("email", ""),
            alias=_opt_str(data.get("alias")),
            title=_opt_str(data.get("title")),
            password_hash=data.get("password_hash", ""),
            roles=_split_list(data.get("roles")),
            enabled=_parse_bool(data.get("enabled", True)),
            timezone=data.get("timezone") or "UTC",
            language=data.get("language") or "en",
            preferences=_load_json(data.get("preferences")),
            created_at=datetime.fromisoformat(data["created_at"]),
        )


@dataclass
class Customer:
    """Customer that projects belong to and invoices are addressed to."""

    name: str
    id: Optional[int] = None
    number: Optional[str] = None
    comment: Optional[str] = None
    company: Optional[str] = None
    address: Optional[str] = None
    country: str = "DE"
    currency: str = "EUR"
    timezone: str = "UTC"
    visible: bool = True
    budget: float = 0.0
    time_budget: int = 0
    hourly_rate: Optional[float] = None
    fixed_rate: Optional[float] = None
    default_template_id: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": _fmt(self.id),
            "name": self.name,
            "number": _fmt(self.number),
            "comment": _fmt(self.comment),
            "company": _fmt(self.company),
            "address": _fmt(self.address),
            "country": self.country,
            "currency": self.currency,
            "timezone": self.timezone,
            "visible": self.visible,
            "budget": self.budget,
            "time_budget": self.time_budget,
            "hourly_rate": _fmt(self.hourly_rate),
            "fixed_rate": _fmt(self.fixed_rate),
            "default_template_id": _fmt(self.default_template_id),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Customer":
        return cls(
            id=_opt_int(data["id"]),
            name=data["name"],
            number=_opt_str(data.get("number")),
            comment=_opt_str(data.get("comment")),
            company=_opt_str(data.get("company")),
            address=_opt_str(data.get("address")),
            country=data.get("country") or "DE",
            currency=data.get("currency") or "EUR",
            timezone=data.get("timezone") or "UTC",
            visible=_parse_bool(data.get("visible", True)),
            budget=float(data.get("budget") or 0),
            time_budget=int(data.get("time_budget") or 0),
            hourly_rate=_opt_float(data.get("hourly_rate")),
            fixed_rate=_opt_float(data.get("fixed_rate")),
            default_template_id=_opt_int(data.get("default_template_id")),
        )


@dataclass
class Project:
    """Project of a customer.

    Attributes:
        name: Display name
        customer_id: Owning customer
        id: Numeric identifier
        order_number: Customer purchase order reference
        comment: Free text
        visible: Hidden projects cannot receive new timesheets
        budget: Money budget (0 = none)
        time_budget: Time budget in seconds (0 = none)
        budget_type: None for a lifetime budget, "month" or "quarter" for an
            interval budget
        hourly_rate: Overrides the customer rate
        fixed_rate: Flat rate per timesheet
    """

    name: str
    customer_id: int
    id: Optional[int] = None
    order_number: Optional[str] = None
    comment: Optional[str] = None
    visible: bool = True
    budget: float = 0.0
    time_budget: int = 0
    budget_type: Optional[str] = None
    hourly_rate: Optional[float] = None
    fixed_rate: Optional[float] = None

    def has_budget(self) -> bool:
        return self.budget > 0 or self.time_budget > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": _fmt(self.id),
            "name": self.name,
            "customer_id": self.customer_id,
            "order_number": _fmt(self.order_number),
            "comment": _fmt(self.comment),
            "visible": self.visible,
            "budget": self.budget,
            "time_budget": self.time_budget,
            "budget_type": _fmt(self.budget_type),
            "hourly_rate": _fmt(self.hourly_rate),
            "fixed_rate": _fmt(self.fixed_rate),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Project":
        return cls(
            id=_opt_int(data["id"]),
            name=data["name"],
            customer_id=int(data["customer_id"]),
            order_number=_opt_str(data.get("order_number")),
            comment=_opt_str(data.get("comment")),
            visible=_parse_bool(data.get("visible", True)),
            budget=float(data.get("budget") or 0),
            time_budget=int(data.get("time_budget") or 0),
            budget_type=_opt_str(data.get("budget_type")),
            hourly_rate=_opt_float(data.get("hourly_rate")),
            fixed_rate=_opt_float(data.get("fixed_rate")),
        )


@dataclass
class Activity:
    """Activity, either bound to one project or global (project_id None)."""

    name: str
    id: Optional[int] = None
    project_id: Optional[int] = None
    comment: Optional[str] = None
    visible: bool = True
    budget: float = 0.0
    time_budget: int = 0
    hourly_rate: Optional[float] = None
    fixed_rate: Optional[float] = None

    @property
    def is_global(self) -> bool:
        return self.project_id is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": _fmt(self.id),
            "name": self.name,
            "project_id": _fmt(self.project_id),
            "comment": _fmt(self.comment),
            "visible": self.visible,
            "budget": self.budget,
            "time_budget": self.time_budget,
            "hourly_rate": _fmt(self.hourly_rate),
            "fixed_rate": _fmt(self.fixed_rate),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Activity":
        return cls(
            id=_opt_int(data["id"]),
            name=data["name"],
            project_id=_opt_int(data.get("project_id")),
            comment=_opt_str(data.get("comment")),
            visible=_parse_bool(data.get("visible", True)),
            budget=float(data.get("budget") or 0),
            time_budget=int(data.get("time_budget") or 0),
            hourly_rate=_opt_float(data.get("hourly_rate")),
            fixed_rate=_opt_float(data.get("fixed_rate")),
        )


@dataclass
class Timesheet:
    """Recorded time of one user on a project activity.

    Attributes:
        user_id: Owner
        project_id: Project the time is booked on
        activity_id: Activity the time is booked on
        begin: Start of the record
        id: Numeric identifier
        end: End of the record (None while running)
        duration: Stored duration in seconds (set when stopped)
        description: Free text
        rate: Billable amount
        internal_rate: Internal cost
        hourly_rate: Hourly rate used for the calculation
        fixed_rate: Flat rate used instead of the hourly calculation
        billable: Whether the amount is invoiced
        exported: Set once the record was invoiced/exported
        tags: Free tags
        meta: Custom meta fields
        category: "work" for regular records
        modified_at: Last update time
    """

    user_id: int
    project_id: int
    activity_id: int
    begin: datetime
    id: Optional[int] = None
    end: Optional[datetime] = None
    duration: int = 0
    description: Optional[str] = None
    rate: float = 0.0
    internal_rate: Optional[float] = None
    hourly_rate: Optional[float] = None
    fixed_rate: Optional[float] = None
    billable: bool = True
    exported: bool = False
    tags: list[str] = field(default_factory=list)
    meta: dict[str, Any] = field(default_factory=dict)
    category: str = "work"
    modified_at: datetime = field(default_factory=datetime.now)

    @property
    def is_running(self) -> bool:
        return self.end is None

    @property
    def calculated_duration(self) -> int:
        """Duration in seconds, measured up to now for running records."""
        end = self.end or datetime.now()
        return max(0, int((end - self.begin).total_seconds()))

    def set_duration_from_end(self) -> None:
        if self.end is not None:
            self.duration = self.calculated_duration

    def set_end_from_duration(self, seconds: int) -> None:
        self.duration = seconds
        self.end = self.begin + timedelta(seconds=seconds)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for CSV serialization."""
        return {
            "id": _fmt(self.id),
            "user_id": self.user_id,
            "project_id": self.project_id,
            "activity_id": self.activity_id,
            "begin": self.begin.isoformat(),
            "end": self.end.isoformat() if self.end else "",
            "duration": self.duration,
            "description": _fmt(self.description),
            "rate": self.rate,
            "internal_rate": _fmt(self.internal_rate),
            "hourly_rate": _fmt(self.hourly_rate),
            "fixed_rate": _fmt(self.fixed_rate),
            "billable": self.billable,
            "exported": self.exported,
            "tags": ",".join(self.tags),
            "meta": json.dumps(self.meta),
            "category": self.category,
            "modified_at": self.modified_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Timesheet":
        """Create Timesheet from dictionary (CSV deserialization)."""
        return cls(
            id=_opt_int(data["id"]),
            user_id=int(data["user_id"]),
            project_id=int(data["project_id"]),
            activity_id=int(data["activity_id"]),
            begin=datetime.fromisoformat(data["begin"]),
            end=_opt_datetime(data.get("end")),
            duration=int(data.get("duration") or 0),
            description=_opt_str(data.get("description")),
            rate=float(data.get("rate") or 0),
            internal_rate=_opt_float(data.get("internal_rate")),
            hourly_rate=_opt_float(data.get("hourly_rate")),
            fixed_rate=_opt_float(data.get("fixed_rate")),
            billable=_parse_bool(data.get("billable", True)),
            exported=_parse_bool(data.get("exported", False)),
            tags=_split_list(data.get("tags")),
            meta=_load_json(data.get("meta")),
            category=data.get("category") or "work",
            modified_at=datetime.fromisoformat(data["modified_at"]),
        )


@dataclass
class InvoiceTemplate:
    """Settings used when rendering an invoice."""

    name: str
    title: str
    company: str
    id: Optional[int] = None
    address: Optional[str] = None
    vat_id: Optional[str] = None
    contact: Optional[str] = None
    payment_terms: Optional[str] = None
    payment_details: Optional[str] = None
    due_days: int = 30
    vat: float = 0.0
    calculator: str = "default"
    number_generator: str = "default"
    renderer: str = "default.json"
    language: str = "en"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": _fmt(self.id),
            "name": self.name,
            "title": self.title,
            "company": self.company,
            "address": _fmt(self.address),
            "vat_id": _fmt(self.vat_id),
            "contact": _fmt(self.contact),
            "payment_terms": _fmt(self.payment_terms),
            "payment_details": _fmt(self.payment_details),
            "due_days": self.due_days,
            "vat": self.vat,
            "calculator": self.calculator,
            "number_generator": self.number_generator,
            "renderer": self.renderer,
            "language": self.language,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InvoiceTemplate":
        return cls(
            id=_opt_int(data["id"]),
            name=data["name"],
            title=data["title"],
            company=data["company"],
            address=_opt_str(data.get("address")),
            vat_id=_opt_str(data.get("vat_id")),
            contact=_opt_str(data.get("contact")),
            payment_terms=_opt_str(data.get("payment_terms")),
            payment_details=_opt_str(data.get("payment_details")),
            due_days=int(data.get("due_days") or 30),
            vat=float(data.get("vat") or 0),
            calculator=data.get("calculator") or "default",
            number_generator=data.get("number_generator") or "default",
            renderer=data.get("renderer") or "default.json",
            language=data.get("language") or "en",
        )


@dataclass
class Invoice:
    """A generated invoice document and its payment state."""

    invoice_number: str
    customer_id: int
    user_id: int
    id: Optional[int] = None
    template_id: Optional[int] = None
    created_at: datetime = field(default_factory=datetime.now)
    total: float = 0.0
    tax: float = 0.0
    vat: float = 0.0
    currency: str = "EUR"
    due_days: int = 30
    status: str = InvoiceStatus.NEW.value
    payment_date: Optional[datetime] = None
    filename: Optional[str] = None

    @property
    def due_date(self) -> datetime:
        return self.created_at + timedelta(days=self.due_days)

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        if self.status in (InvoiceStatus.PAID.value, InvoiceStatus.CANCELED.value):
            return False
        return (now or datetime.now()) > self.due_date

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": _fmt(self.id),
            "invoice_number": self.invoice_number,
            "customer_id": self.customer_id,
            "user_id": self.user_id,
            "template_id": _fmt(self.template_id),
            "created_at": self.created_at.isoformat(),
            "total": self.total,
            "tax": self.tax,
            "vat": self.vat,
            "currency": self.currency,
            "due_days": self.due_days,
            "status": self.status,
            "payment_date": self.payment_date.isoformat() if self.payment_date else "",
            "filename": _fmt(self.filename),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Invoice":
        return cls(
            id=_opt_int(data["id"]),
            invoice_number=data["invoice_number"],
            customer_id=int(data["customer_id"]),
            user_id=int(data["user_id"]),
            template_id=_opt_int(data.get("template_id")),
            created_at=datetime.fromisoformat(data["created_at"]),
            total=float(data.get("total") or 0),
            tax=float(data.get("tax") or 0),
            vat=float(data.get("vat") or 0),
            currency=data.get("currency") or "EUR",
            due_days=int(data.get("due_days") or 30),
            status=data.get("status") or InvoiceStatus.NEW.value,
            payment_date=_opt_datetime(data.get("payment_date")),
            filename=_opt_str(data.get("filename")),
        )

"""Pydantic models for API requests and responses.

Response models are built from the core dataclasses with ``from_x``
classmethods; request models validate the incoming JSON bodies.
"""

from datetime import date, datetime, timezone
from typing import Any, Optional, Union

from pydantic import Base64Bytes, BaseModel, Field, field_validator  # type: ignore[import-untyped]

from kimai.core.models import Activity, Customer, Invoice, InvoiceTemplate, Project, Timesheet, User

# ============================================================================
# Response Models
# ============================================================================


class TimesheetResponse(BaseModel):
    """Response model for a timesheet."""

    id: int
    user: int
    project: int
    activity: int
    begin: datetime
    end: Optional[datetime] = None
    duration: int = 0
    description: Optional[str] = None
    rate: float = 0.0
    internal_rate: Optional[float] = None
    hourly_rate: Optional[float] = None
    fixed_rate: Optional[float] = None
    billable: bool = True
    exported: bool = False
    tags: list[str] = Field(default_factory=list)
    meta: dict[str, Any] = Field(default_factory=dict)
    # only filled with ?full=true
    user_name: Optional[str] = None
    project_name: Optional[str] = None
    activity_name: Optional[str] = None
    customer: Optional[int] = None
    customer_name: Optional[str] = None

    class Config:
        """Pydantic configuration."""

        from_attributes = True

    @classmethod
    def from_timesheet(
        cls,
        timesheet: Timesheet,
        user: Optional[User] = None,
        project: Optional[Project] = None,
        activity: Optional[Activity] = None,
        customer: Optional[Customer] = None,
    ) -> "TimesheetResponse":
        return cls(
            id=timesheet.id,
            user=timesheet.user_id,
            project=timesheet.project_id,
            activity=timesheet.activity_id,
            begin=timesheet.begin,
            end=timesheet.end,
            duration=timesheet.calculated_duration if timesheet.is_running else timesheet.duration,
            description=timesheet.description,
            rate=timesheet.rate,
            internal_rate=timesheet.internal_rate,
            hourly_rate=timesheet.hourly_rate,
            fixed_rate=timesheet.fixed_rate,
            billable=timesheet.billable,
            exported=timesheet.exported,
            tags=timesheet.tags,
            meta=timesheet.meta,
            user_name=user.display_name if user else None,
            project_name=project.name if project else None,
            activity_name=activity.name if activity else None,
            customer=customer.id if customer else None,
            customer_name=customer.name if customer else None,
        )


class UserResponse(BaseModel):
    """Response model for a user."""

    id: int
    username: str
    alias: Optional[str] = None
    title: Optional[str] = None
    email: str = ""
    enabled: bool = True
    roles: list[str] = Field(default_factory=list)
    timezone: str = "UTC"
    language: str = "en"

    class Config:
        """Pydantic configuration."""

        from_attributes = True

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            alias=user.alias,
            title=user.title,
            email=user.email,
            enabled=user.enabled,
            roles=user.get_roles(),
            timezone=user.timezone,
            language=user.language,
        )


class CustomerResponse(BaseModel):
    id: int
    name: str
    number: Optional[str] = None
    comment: Optional[str] = None
    company: Optional[str] = None
    address: Optional[str] = None
    country: str = "DE"
    currency: str = "EUR"
    visible: bool = True
    budget: float = 0.0
    time_budget: int = 0
    hourly_rate: Optional[float] = None
    fixed_rate: Optional[float] = None
    default_template: Optional[int] = None

    @classmethod
    def from_customer(cls, customer: Customer) -> "CustomerResponse":
        return cls(
            id=customer.id,
            name=customer.name,
            number=customer.number,
            comment=customer.comment,
            company=customer.company,
            address=customer.address,
            country=customer.country,
            currency=customer.currency,
            visible=customer.visible,
            budget=customer.budget,
            time_budget=customer.time_budget,
            hourly_rate=customer.hourly_rate,
            fixed_rate=customer.fixed_rate,
            default_template=customer.default_template_id,
        )


class ProjectResponse(BaseModel):
    id: int
    name: str
    customer: int
    order_number: Optional[str] = None
    comment: Optional[str] = None
    visible: bool = True
    budget: float = 0.0
    time_budget: int = 0
    budget_type: Optional[str] = None
    hourly_rate: Optional[float] = None
    fixed_rate: Optional[float] = None

    @classmethod
    def from_project(cls, project: Project) -> "ProjectResponse":
        return cls(
            id=project.id,
            name=project.name,
            customer=project.customer_id,
            order_number=project.order_number,
            comment=project.comment,
            visible=project.visible,
            budget=project.budget,
            time_budget=project.time_budget,
            budget_type=project.budget_type,
            hourly_rate=project.hourly_rate,
            fixed_rate=project.fixed_rate,
        )


class ActivityResponse(BaseModel):
    id: int
    name: str
    project: Optional[int] = None
    comment: Optional[str] = None
    visible: bool = True
    budget: float = 0.0
    time_budget: int = 0
    hourly_rate: Optional[float] = None
    fixed_rate: Optional[float] = None
    controllers: list[str] = Field(default_factory=list)

    @classmethod
    def from_activity(cls, activity: Activity, controllers: Optional[list[str]] = None) -> "ActivityResponse":
        return cls(
            id=activity.id,
            name=activity.name,
            project=activity.project_id,
            comment=activity.comment,
            visible=activity.visible,
            budget=activity.budget,
            time_budget=activity.time_budget,
            hourly_rate=activity.hourly_rate,
            fixed_rate=activity.fixed_rate,
            controllers=controllers or [],
        )


class InvoiceResponse(BaseModel):
    id: int
    invoice_number: str
    customer: int
    user: int
    template: Optional[int] = None
    created_at: datetime
    due_date: datetime
    total: float
    tax: float
    vat: float
    currency: str
    status: str
    overdue: bool = False
    payment_date: Optional[datetime] = None
    filename: Optional[str] = None

    @classmethod
    def from_invoice(cls, invoice: Invoice) -> "InvoiceResponse":
        return cls(
            id=invoice.id,
            invoice_number=invoice.invoice_number,
            customer=invoice.customer_id,
            user=invoice.user_id,
            template=invoice.template_id,
            created_at=invoice.created_at,
            due_date=invoice.due_date,
            total=invoice.total,
            tax=invoice.tax,
            vat=invoice.vat,
            currency=invoice.currency,
            status=invoice.status,
            overdue=invoice.is_overdue(),
            payment_date=invoice.payment_date,
            filename=invoice.filename,
        )


class InvoiceTemplateResponse(BaseModel):
    id: int
    name: str
    title: str
    company: str
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

    class Config:
        """Pydantic configuration."""

        from_attributes = True

    @classmethod
    def from_template(cls, template: InvoiceTemplate) -> "InvoiceTemplateResponse":
        return cls.model_validate(template)


# ============================================================================
# Request Models
# ============================================================================


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert offset-aware values to UTC without tzinfo, the way records are stored."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class RequestModel(BaseModel):
    """Base for request bodies; every datetime field is stored naive UTC."""

    @field_validator("*")
    @classmethod
    def _naive_datetimes(cls, value: Any) -> Any:
        if isinstance(value, datetime):
            return naive_utc(value)
        return value


class TimesheetCreateRequest(RequestModel):
    """Request model for recording a timesheet.

    ``duration`` accepts seconds or a duration string such as ``2:30``,
    ``2.5`` or ``2h30m``.
    """

    project: int
    activity: int
    begin: Optional[datetime] = None
    end: Optional[datetime] = None
    duration: Optional[Union[int, str]] = None
    description: Optional[str] = Field(None, max_length=5000)
    tags: Optional[list[str]] = None
    user: Optional[int] = None
    billable: Optional[bool] = None
    exported: Optional[bool] = None
    hourly_rate: Optional[float] = Field(None, ge=0)
    fixed_rate: Optional[float] = Field(None, ge=0)
    meta: Optional[dict[str, Any]] = None


class TimesheetUpdateRequest(RequestModel):
    project: Optional[int] = None
    activity: Optional[int] = None
    begin: Optional[datetime] = None
    end: Optional[datetime] = None
    duration: Optional[Union[int, str]] = None
    description: Optional[str] = Field(None, max_length=5000)
    tags: Optional[list[str]] = None
    user: Optional[int] = None
    billable: Optional[bool] = None
    exported: Optional[bool] = None
    hourly_rate: Optional[float] = Field(None, ge=0)
    fixed_rate: Optional[float] = Field(None, ge=0)
    meta: Optional[dict[str, Any]] = None


class StopRequest(RequestModel):
    end: Optional[datetime] = None


class RestartRequest(RequestModel):
    begin: Optional[datetime] = None
    copy_fields: Optional[str] = Field(None, alias="copy", description='"all" copies all fields')


class MetaFieldRequest(BaseModel):
    name: str = Field(..., min_length=1)
    value: Any = None


class UserCreateRequest(BaseModel):
    username: str = Field(..., min_length=2, max_length=64)
    email: str = Field(..., min_length=3, max_length=180)
    password: str = Field(..., min_length=8)
    alias: Optional[str] = Field(None, max_length=60)
    title: Optional[str] = Field(None, max_length=50)
    roles: list[str] = Field(default_factory=list)
    timezone: str = "UTC"
    language: str = "en"
    enabled: bool = True


class UserUpdateRequest(BaseModel):
    email: Optional[str] = Field(None, min_length=3, max_length=180)
    alias: Optional[str] = Field(None, max_length=60)
    title: Optional[str] = Field(None, max_length=50)
    timezone: Optional[str] = None
    language: Optional[str] = None
    enabled: Optional[bool] = None
    roles: Optional[list[str]] = None
    password: Optional[str] = Field(None, min_length=8)
    preferences: Optional[dict[str, Any]] = None


class CustomerRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    number: Optional[str] = None
    comment: Optional[str] = None
    company: Optional[str] = None
    address: Optional[str] = None
    country: Optional[str] = Field(None, pattern=r"^[A-Z]{2}$")
    currency: Optional[str] = Field(None, pattern=r"^[A-Z]{3}$")
    timezone: Optional[str] = None
    visible: Optional[bool] = None
    budget: Optional[float] = Field(None, ge=0)
    time_budget: Optional[int] = Field(None, ge=0)
    hourly_rate: Optional[float] = Field(None, ge=0)
    fixed_rate: Optional[float] = Field(None, ge=0)


class ProjectRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    customer: Optional[int] = None
    order_number: Optional[str] = None
    comment: Optional[str] = None
    visible: Optional[bool] = None
    budget: Optional[float] = Field(None, ge=0)
    time_budget: Optional[int] = Field(None, ge=0)
    budget_type: Optional[str] = Field(None, pattern=r"^(month|quarter)$")
    hourly_rate: Optional[float] = Field(None, ge=0)
    fixed_rate: Optional[float] = Field(None, ge=0)


class ActivityRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    project: Optional[int] = None
    comment: Optional[str] = None
    visible: Optional[bool] = None
    budget: Optional[float] = Field(None, ge=0)
    time_budget: Optional[int] = Field(None, ge=0)
    hourly_rate: Optional[float] = Field(None, ge=0)
    fixed_rate: Optional[float] = Field(None, ge=0)


class InvoiceQueryRequest(RequestModel):
    """Selects the timesheets to invoice."""

    template: Optional[int] = None
    customers: list[int] = Field(default_factory=list)
    projects: list[int] = Field(default_factory=list)
    activities: list[int] = Field(default_factory=list)
    users: list[int] = Field(default_factory=list)
    begin: Optional[datetime] = None
    end: Optional[datetime] = None
    exported: Optional[bool] = False
    billable: Optional[bool] = None
    mark_as_exported: bool = False


class InvoiceStatusRequest(RequestModel):
    status: str = Field(..., pattern=r"^(new|pending|paid|canceled)$")
    payment_date: Optional[datetime] = None


class InvoiceTemplateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=60)
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    company: Optional[str] = Field(None, min_length=1, max_length=255)
    address: Optional[str] = None
    vat_id: Optional[str] = None
    contact: Optional[str] = None
    payment_terms: Optional[str] = None
    payment_details: Optional[str] = None
    due_days: Optional[int] = Field(None, ge=0, le=999)
    vat: Optional[float] = Field(None, ge=0, le=100)
    calculator: Optional[str] = None
    number_generator: Optional[str] = None
    renderer: Optional[str] = None
    language: Optional[str] = None


class DocumentUploadRequest(BaseModel):
    filename: str = Field(..., min_length=1, max_length=255)
    content: Base64Bytes = Field(..., description="Base64 encoded file content")


class QuickEntryRowRequest(BaseModel):
    project: int
    activity: int
    days: dict[date, Optional[Union[int, str]]] = Field(default_factory=dict)


class QuickEntrySaveRequest(BaseModel):
    begin: date
    rows: list[QuickEntryRowRequest] = Field(default_factory=list)


# ============================================================================
# System Models
# ============================================================================


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(..., description="Health status (healthy, degraded, unhealthy)")
    timestamp: datetime = Field(..., description="Current server time")
    version: str = Field(..., description="API version")


class StatusResponse(BaseModel):
    """Response model for system status."""

    api_enabled: bool
    authentication_enabled: bool
    cors_enabled: bool
    active_timesheets: int
    uptime_seconds: float


class VersionResponse(BaseModel):
    name: str = "Kimai"
    version: str
    copyright: str


# ============================================================================
# Authentication Models
# ============================================================================


class TokenRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    """Response model for authentication token."""

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field("bearer", description="Token type")
    expires_in: int = Field(..., description="Token expiry in seconds")

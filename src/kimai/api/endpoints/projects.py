"""Project endpoints."""

import dataclasses
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status  # type: ignore[import-untyped]

from kimai.api.auth import get_current_user
from kimai.api.dependencies import get_storage
from kimai.api.models import ProjectRequest, ProjectResponse
from kimai.core.exceptions import ValidationError
from kimai.core.models import Project, User
from kimai.core.queries import ProjectQuery
from kimai.core.security import deny_access_unless_granted
from kimai.core.storage import StorageManager

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_project(storage: StorageManager, project_id: int) -> Project:
    project = storage.get_project(project_id)
    if project is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=f"Project {project_id} not found"
        )
    return project


def _values(request: ProjectRequest, exclude_unset: bool) -> dict:
    data = request.model_dump(exclude_unset=exclude_unset, exclude_none=not exclude_unset)
    if "customer" in data:
        data["customer_id"] = data.pop("customer")
    return data


def _check_customer(storage: StorageManager, customer_id: Optional[int]) -> None:
    if customer_id is None or storage.get_customer(customer_id) is None:
        raise ValidationError("Unknown customer.", field="customer")


@router.get("/", response_model=list[ProjectResponse])
async def list_projects(
    customer: Optional[int] = Query(None, description="Customer ID"),
    customers: list[int] = Query([], description="Customer IDs"),
    visible: int = Query(1, description="1 = visible, 2 = hidden, 3 = both"),
    term: Optional[str] = Query(None, description="Free text search"),
    order_by: Optional[str] = Query(None, alias="orderBy"),
    order: Optional[str] = Query(None, description="ASC or DESC"),
    current_user: User = Depends(get_current_user),
    storage: StorageManager = Depends(get_storage),
) -> list[ProjectResponse]:
    """List projects; with visible=1 the customer must be visible too."""
    deny_access_unless_granted(current_user, "view_project")
    query = ProjectQuery()
    query.set_visibility(visible)
    query.set_exclusive_visibility(query.visibility == ProjectQuery.SHOW_VISIBLE)
    query.customers = customers + ([customer] if customer is not None else [])
    query.set_order_by(order_by or "name")
    query.set_order(order)
    query.search_term = term
    owners = {c.id: c for c in storage.load_customers() if c.id is not None}
    return [ProjectResponse.from_project(p) for p in query.apply(storage.load_projects(), owners)]


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: int,
    current_user: User = Depends(get_current_user),
    storage: StorageManager = Depends(get_storage),
) -> ProjectResponse:
    deny_access_unless_granted(current_user, "view_project")
    return ProjectResponse.from_project(_get_project(storage, project_id))


@router.post("/", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    request: ProjectRequest,
    current_user: User = Depends(get_current_user),
    storage: StorageManager = Depends(get_storage),
) -> ProjectResponse:
    deny_access_unless_granted(current_user, "edit_project")
    data = _values(request, exclude_unset=False)
    if not data.get("name"):
        raise ValidationError("Name is required.", field="name")
    _check_customer(storage, data.get("customer_id"))
    saved = storage.save_project(Project(**data))
    logger.info(f"Created project {saved.name}")
    return ProjectResponse.from_project(saved)


@router.patch("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: int,
    request: ProjectRequest,
    current_user: User = Depends(get_current_user),
    storage: StorageManager = Depends(get_storage),
) -> ProjectResponse:
    deny_access_unless_granted(current_user, "edit_project")
    project = _get_project(storage, project_id)
    data = _values(request, exclude_unset=True)
    if "customer_id" in data:
        _check_customer(storage, data["customer_id"])
    updated = dataclasses.replace(project, **data)
    return ProjectResponse.from_project(storage.save_project(updated))


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: int,
    current_user: User = Depends(get_current_user),
    storage: StorageManager = Depends(get_storage),
) -> Response:
    deny_access_unless_granted(current_user, "delete_project")
    project = _get_project(storage, project_id)
    if any(t.project_id == project_id for t in storage.load_timesheets()):
        raise ValidationError("Project has timesheets and cannot be deleted", field="project")
    storage.delete_project(project_id)
    logger.info(f"Deleted project {project.name}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)

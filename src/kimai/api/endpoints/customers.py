"""Customer endpoints."""

import dataclasses
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status  # type: ignore[import-untyped]

from kimai.api.auth import get_current_user
from kimai.api.dependencies import get_storage
from kimai.api.models import CustomerRequest, CustomerResponse
from kimai.core.exceptions import ValidationError
from kimai.core.models import Customer, User
from kimai.core.queries import CustomerQuery
from kimai.core.security import deny_access_unless_granted
from kimai.core.storage import StorageManager

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_customer(storage: StorageManager, customer_id: int) -> Customer:
    customer = storage.get_customer(customer_id)
    if customer is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=f"Customer {customer_id} not found"
        )
    return customer


@router.get("/", response_model=list[CustomerResponse])
async def list_customers(
    visible: int = Query(1, description="1 = visible, 2 = hidden, 3 = both"),
    term: Optional[str] = Query(None, description="Free text search"),
    order_by: Optional[str] = Query(None, alias="orderBy"),
    order: Optional[str] = Query(None, description="ASC or DESC"),
    current_user: User = Depends(get_current_user),
    storage: StorageManager = Depends(get_storage),
) -> list[CustomerResponse]:
    deny_access_unless_granted(current_user, "view_customer")
    query = CustomerQuery()
    query.set_visibility(visible)
    query.set_order_by(order_by or "name")
    query.set_order(order)
    query.search_term = term
    return [CustomerResponse.from_customer(c) for c in query.apply(storage.load_customers())]


@router.get("/{customer_id}", response_model=CustomerResponse)
async def get_customer(
    customer_id: int,
    current_user: User = Depends(get_current_user),
    storage: StorageManager = Depends(get_storage),
) -> CustomerResponse:
    deny_access_unless_granted(current_user, "view_customer")
    return CustomerResponse.from_customer(_get_customer(storage, customer_id))


@router.post("/", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
async def create_customer(
    request: CustomerRequest,
    current_user: User = Depends(get_current_user),
    storage: StorageManager = Depends(get_storage),
) -> CustomerResponse:
    deny_access_unless_granted(current_user, "edit_customer")
    data = request.model_dump(exclude_none=True)
    if not data.get("name"):
        raise ValidationError("Name is required.", field="name")
    saved = storage.save_customer(Customer(**data))
    logger.info(f"Created customer {saved.name}")
    return CustomerResponse.from_customer(saved)


@router.patch("/{customer_id}", response_model=CustomerResponse)
async def update_customer(
    customer_id: int,
    request: CustomerRequest,
    current_user: User = Depends(get_current_user),
    storage: StorageManager = Depends(get_storage),
) -> CustomerResponse:
    deny_access_unless_granted(current_user, "edit_customer")
    customer = _get_customer(storage, customer_id)
    updated = dataclasses.replace(customer, **request.model_dump(exclude_unset=True))
    return CustomerResponse.from_customer(storage.save_customer(updated))


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_customer(
    customer_id: int,
    current_user: User = Depends(get_current_user),
    storage: StorageManager = Depends(get_storage),
) -> Response:
    deny_access_unless_granted(current_user, "delete_customer")
    customer = _get_customer(storage, customer_id)
    if storage.load_projects(customer_id):
        raise ValidationError("Customer has projects and cannot be deleted", field="customer")
    storage.delete_customer(customer_id)
    logger.info(f"Deleted customer {customer.name}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)

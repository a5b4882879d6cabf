"""Invoice endpoints: preview, creation, archive, templates and documents."""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status  # type: ignore[import-untyped]

from kimai.api.auth import get_current_user
from kimai.api.dependencies import get_invoice_service
from kimai.api.models import (
    DocumentUploadRequest,
    InvoiceQueryRequest,
    InvoiceResponse,
    InvoiceStatusRequest,
    InvoiceTemplateRequest,
    InvoiceTemplateResponse,
)
from kimai.core.models import User
from kimai.core.queries import InvoiceQuery
from kimai.core.security import deny_access_unless_granted
from kimai.invoice.renderer import InvoiceDocument, get_renderer
from kimai.invoice.service import InvoiceService, RenderedInvoice
from kimai.utils.formatting import content_disposition

logger = logging.getLogger(__name__)

router = APIRouter()


def _build_query(request: InvoiceQueryRequest) -> InvoiceQuery:
    query = InvoiceQuery()
    query.template_id = request.template
    query.customers = list(request.customers)
    query.projects = list(request.projects)
    query.activities = list(request.activities)
    query.users = list(request.users)
    query.begin = request.begin
    query.end = request.end
    if request.exported is None:
        query.set_export_state(InvoiceQuery.STATE_ALL)
    elif request.exported:
        query.set_export_state(InvoiceQuery.STATE_EXPORTED)
    if request.billable is not None:
        query.set_billable(
            InvoiceQuery.STATE_BILLABLE if request.billable else InvoiceQuery.STATE_NOT_BILLABLE
        )
    query.mark_as_exported = request.mark_as_exported
    return query


def _file_response(rendered: RenderedInvoice, inline: bool) -> Response:
    return Response(
        content=rendered.content,
        media_type=rendered.media_type,
        headers={"Content-Disposition": content_disposition(rendered.filename, inline)},
    )


# templates


@router.get("/templates", response_model=list[InvoiceTemplateResponse])
async def list_templates(
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
) -> list[InvoiceTemplateResponse]:
    deny_access_unless_granted(current_user, "manage_invoice_template")
    templates = sorted(service.storage.load_invoice_templates(), key=lambda t: t.name.lower())
    return [InvoiceTemplateResponse.from_template(t) for t in templates]


@router.post("/templates", response_model=InvoiceTemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template(
    request: InvoiceTemplateRequest,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
) -> InvoiceTemplateResponse:
    deny_access_unless_granted(current_user, "manage_invoice_template")
    template = service.create_template(request.model_dump(exclude_none=True))
    return InvoiceTemplateResponse.from_template(template)


@router.patch("/templates/{template_id}", response_model=InvoiceTemplateResponse)
async def update_template(
    template_id: int,
    request: InvoiceTemplateRequest,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
) -> InvoiceTemplateResponse:
    deny_access_unless_granted(current_user, "manage_invoice_template")
    template = service.update_template(
        service.get_template(template_id), request.model_dump(exclude_unset=True)
    )
    return InvoiceTemplateResponse.from_template(template)


@router.post(
    "/templates/{template_id}/copy",
    response_model=InvoiceTemplateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def copy_template(
    template_id: int,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
) -> InvoiceTemplateResponse:
    deny_access_unless_granted(current_user, "manage_invoice_template")
    return InvoiceTemplateResponse.from_template(service.copy_template(service.get_template(template_id)))


@router.delete("/templates/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_template(
    template_id: int,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
) -> Response:
    deny_access_unless_granted(current_user, "manage_invoice_template")
    service.delete_template(service.get_template(template_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# documents


@router.get("/documents")
async def list_documents(
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
) -> list[dict[str, Any]]:
    deny_access_unless_granted(current_user, "manage_invoice_template")
    return service.list_documents()


@router.post("/documents", status_code=status.HTTP_201_CREATED)
async def upload_document(
    request: DocumentUploadRequest,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
) -> dict[str, Any]:
    """Upload a JSON, Markdown or XLSX invoice document (base64 encoded)."""
    deny_access_unless_granted(current_user, "manage_invoice_template")
    document = service.upload_document(request.filename, request.content)
    return {"name": document.name, "built_in": document.built_in}


@router.delete("/documents/{name}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(
    name: str,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
) -> Response:
    deny_access_unless_granted(current_user, "manage_invoice_template")
    service.delete_document(name)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# invoices


@router.post("/preview/{customer_id}")
async def preview_invoice(
    customer_id: int,
    request: InvoiceQueryRequest,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
) -> Response:
    """Render the invoice for one customer without storing it."""
    deny_access_unless_granted(current_user, "create_invoice")
    rendered = service.preview(_build_query(request), customer_id, current_user)
    return _file_response(rendered, inline=True)


@router.post("/", response_model=list[InvoiceResponse], status_code=status.HTTP_201_CREATED)
async def create_invoices(
    request: InvoiceQueryRequest,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
) -> list[InvoiceResponse]:
    """Create and archive one invoice per customer of the selected timesheets."""
    deny_access_unless_granted(current_user, "create_invoice")
    invoices = service.create_invoices(_build_query(request), current_user)
    if not invoices:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No data to invoice")
    return [InvoiceResponse.from_invoice(i) for i in invoices]


@router.get("/", response_model=list[InvoiceResponse])
async def list_invoices(
    customer: Optional[int] = Query(None, description="Customer ID"),
    status_filter: Optional[str] = Query(None, alias="status", description="new, pending, paid or canceled"),
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
) -> list[InvoiceResponse]:
    deny_access_unless_granted(current_user, "view_invoice")
    invoices = service.storage.load_invoices(customer)
    if status_filter:
        invoices = [i for i in invoices if i.status == status_filter]
    invoices.sort(key=lambda i: i.created_at, reverse=True)
    return [InvoiceResponse.from_invoice(i) for i in invoices]


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: int,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
) -> InvoiceResponse:
    deny_access_unless_granted(current_user, "view_invoice")
    return InvoiceResponse.from_invoice(service.get_invoice(invoice_id))


@router.get("/{invoice_id}/download")
async def download_invoice(
    invoice_id: int,
    inline: bool = Query(False, description="Show in the browser instead of downloading"),
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
) -> Response:
    deny_access_unless_granted(current_user, "view_invoice")
    invoice = service.get_invoice(invoice_id)
    path = service.get_invoice_file(invoice)
    if path is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice file not found")
    renderer = get_renderer(InvoiceDocument(path.name, path))
    rendered = RenderedInvoice(content=path.read_bytes(), filename=path.name, media_type=renderer.media_type)
    return _file_response(rendered, inline)


@router.patch("/{invoice_id}/status", response_model=InvoiceResponse)
async def change_invoice_status(
    invoice_id: int,
    request: InvoiceStatusRequest,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
) -> InvoiceResponse:
    deny_access_unless_granted(current_user, "edit_invoice")
    invoice = service.change_status(service.get_invoice(invoice_id), request.status, request.payment_date)
    return InvoiceResponse.from_invoice(invoice)


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_invoice(
    invoice_id: int,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
) -> Response:
    deny_access_unless_granted(current_user, "edit_invoice")
    service.delete_invoice(service.get_invoice(invoice_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)

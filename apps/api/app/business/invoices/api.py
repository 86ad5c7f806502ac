from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Response, status

from app.api.dependencies import get_org_context, get_unit_of_work
from app.business.invoices.schemas import (
    InvoiceCreate,
    InvoiceRead,
    InvoiceUpdate,
    IssueInvoiceRequest,
    OverdueSweepResult,
)
from app.business.invoices.service import invoice_service
from app.platform.tenancy import OrgContext
from app.platform.unit_of_work import UnitOfWork


router = APIRouter(prefix="/invoices", tags=["invoices"])


@router.post("", response_model=InvoiceRead, status_code=status.HTTP_201_CREATED)
def create_invoice(
    payload: InvoiceCreate,
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> InvoiceRead:
    return invoice_service.create_invoice(uow, ctx, payload)


@router.get("", response_model=list[InvoiceRead])
def list_invoices(
    job_id: uuid.UUID | None = Query(default=None),
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> list[InvoiceRead]:
    return invoice_service.list_invoices(uow, ctx, job_id=job_id)


@router.post("/overdue-sweep", response_model=OverdueSweepResult)
def sweep_overdue_invoices(
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> OverdueSweepResult:
    return invoice_service.sweep_overdue_invoices(uow, ctx)


@router.get("/{invoice_id}", response_model=InvoiceRead)
def get_invoice(
    invoice_id: uuid.UUID,
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> InvoiceRead:
    return invoice_service.get_invoice(uow, ctx, invoice_id)


@router.patch("/{invoice_id}", response_model=InvoiceRead)
def update_invoice(
    invoice_id: uuid.UUID,
    payload: InvoiceUpdate,
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> InvoiceRead:
    return invoice_service.update_invoice(uow, ctx, invoice_id, payload)


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_invoice(
    invoice_id: uuid.UUID,
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> Response:
    invoice_service.delete_invoice(uow, ctx, invoice_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{invoice_id}/issue", response_model=InvoiceRead)
def issue_invoice(
    invoice_id: uuid.UUID,
    payload: IssueInvoiceRequest | None = None,
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> InvoiceRead:
    due_at = payload.due_at if payload is not None else None
    return invoice_service.issue_invoice(uow, ctx, invoice_id, due_at=due_at)


@router.post("/{invoice_id}/mark-paid", response_model=InvoiceRead)
def mark_invoice_paid(
    invoice_id: uuid.UUID,
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> InvoiceRead:
    return invoice_service.mark_invoice_paid(uow, ctx, invoice_id)

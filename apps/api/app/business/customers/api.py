from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status

from app.api.dependencies import get_org_context, get_unit_of_work
from app.business.customers.schemas import (
    CompanyCreate,
    CompanyRead,
    CompanyUpdate,
    LeadCreate,
    LeadRead,
    LeadStatusUpdate,
    LeadUpdate,
)
from app.business.customers.service import company_service, lead_service
from app.platform.tenancy import OrgContext
from app.platform.unit_of_work import UnitOfWork


leads_router = APIRouter(prefix="/leads", tags=["leads"])
companies_router = APIRouter(prefix="/companies", tags=["companies"])


@leads_router.post("", response_model=LeadRead, status_code=status.HTTP_201_CREATED)
def create_lead(
    payload: LeadCreate,
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> LeadRead:
    return lead_service.create_lead(uow, ctx, payload)


@leads_router.get("", response_model=list[LeadRead])
def list_leads(
    include_deleted: bool = Query(default=False),
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> list[LeadRead]:
    return lead_service.list_leads(uow, ctx, include_deleted=include_deleted)


@leads_router.get("/{lead_id}", response_model=LeadRead)
def get_lead(
    lead_id: uuid.UUID,
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> LeadRead:
    return lead_service.get_lead(uow, ctx, lead_id)


@leads_router.patch("/{lead_id}", response_model=LeadRead)
def update_lead(
    lead_id: uuid.UUID,
    payload: LeadUpdate,
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> LeadRead:
    return lead_service.update_lead(uow, ctx, lead_id, payload)


@leads_router.post("/{lead_id}/status", response_model=LeadRead)
def set_lead_status(
    lead_id: uuid.UUID,
    payload: LeadStatusUpdate,
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> LeadRead:
    return lead_service.set_lead_status(uow, ctx, lead_id, payload.status)


@leads_router.delete("/{lead_id}", response_model=LeadRead)
def delete_lead(
    lead_id: uuid.UUID,
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> LeadRead:
    return lead_service.delete_lead(uow, ctx, lead_id)


@companies_router.post("", response_model=CompanyRead, status_code=status.HTTP_201_CREATED)
def create_company(
    payload: CompanyCreate,
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> CompanyRead:
    return company_service.create_company(uow, ctx, payload)


@companies_router.get("", response_model=list[CompanyRead])
def list_companies(
    include_deleted: bool = Query(default=False),
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> list[CompanyRead]:
    return company_service.list_companies(uow, ctx, include_deleted=include_deleted)


@companies_router.get("/{company_id}", response_model=CompanyRead)
def get_company(
    company_id: uuid.UUID,
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> CompanyRead:
    return company_service.get_company(uow, ctx, company_id)


@companies_router.patch("/{company_id}", response_model=CompanyRead)
def update_company(
    company_id: uuid.UUID,
    payload: CompanyUpdate,
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> CompanyRead:
    return company_service.update_company(uow, ctx, company_id, payload)


@companies_router.delete("/{company_id}", response_model=CompanyRead)
def delete_company(
    company_id: uuid.UUID,
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> CompanyRead:
    return company_service.delete_company(uow, ctx, company_id)

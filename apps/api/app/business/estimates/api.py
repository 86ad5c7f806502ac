from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status

from app.api.dependencies import get_org_context, get_unit_of_work
from app.business.estimates.schemas import (
    AcceptEstimateRequest,
    AcceptEstimateResult,
    EstimateCreate,
    EstimateRead,
    EstimateUpdate,
)
from app.business.estimates.service import estimate_service
from app.platform.tenancy import OrgContext
from app.platform.unit_of_work import UnitOfWork


router = APIRouter(prefix="/estimates", tags=["estimates"])


@router.post("", response_model=EstimateRead, status_code=status.HTTP_201_CREATED)
def create_estimate(
    payload: EstimateCreate,
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> EstimateRead:
    return estimate_service.create_estimate(uow, ctx, payload)


@router.get("", response_model=list[EstimateRead])
def list_estimates(
    lead_id: uuid.UUID | None = Query(default=None),
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> list[EstimateRead]:
    return estimate_service.list_estimates(uow, ctx, lead_id=lead_id)


@router.get("/{estimate_id}", response_model=EstimateRead)
def get_estimate(
    estimate_id: uuid.UUID,
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> EstimateRead:
    return estimate_service.get_estimate(uow, ctx, estimate_id)


@router.patch("/{estimate_id}", response_model=EstimateRead)
def update_estimate(
    estimate_id: uuid.UUID,
    payload: EstimateUpdate,
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> EstimateRead:
    return estimate_service.update_estimate(uow, ctx, estimate_id, payload)


@router.post("/{estimate_id}/send", response_model=EstimateRead)
def send_estimate(
    estimate_id: uuid.UUID,
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> EstimateRead:
    return estimate_service.send_estimate(uow, ctx, estimate_id)


@router.post("/{estimate_id}/accept", response_model=AcceptEstimateResult)
def accept_estimate(
    estimate_id: uuid.UUID,
    payload: AcceptEstimateRequest,
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> AcceptEstimateResult:
    return estimate_service.accept_estimate(uow, ctx, estimate_id, payload)


@router.post("/{estimate_id}/reject", response_model=EstimateRead)
def reject_estimate(
    estimate_id: uuid.UUID,
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> EstimateRead:
    return estimate_service.reject_estimate(uow, ctx, estimate_id)

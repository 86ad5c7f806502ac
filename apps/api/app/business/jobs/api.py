from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Response, status

from app.api.dependencies import get_org_context, get_unit_of_work
from app.business.jobs.schemas import (
    ExpenseCreate,
    ExpenseRead,
    ExpenseUpdate,
    JobCreate,
    JobRead,
    MilestoneCreate,
    MilestoneRead,
    MilestoneUpdate,
)
from app.business.jobs.service import job_service
from app.platform.tenancy import OrgContext
from app.platform.unit_of_work import UnitOfWork


router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.post("", response_model=JobRead, status_code=status.HTTP_201_CREATED)
def create_job(
    payload: JobCreate,
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> JobRead:
    return job_service.create_job(uow, ctx, payload)


@router.get("", response_model=list[JobRead])
def list_jobs(
    lead_id: uuid.UUID | None = Query(default=None),
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> list[JobRead]:
    return job_service.list_jobs(uow, ctx, lead_id=lead_id)


@router.get("/{job_id}", response_model=JobRead)
def get_job(
    job_id: uuid.UUID,
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> JobRead:
    return job_service.get_job(uow, ctx, job_id)


@router.post("/{job_id}/start", response_model=JobRead)
def start_job(
    job_id: uuid.UUID,
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> JobRead:
    return job_service.start_job(uow, ctx, job_id)


@router.post("/{job_id}/complete", response_model=JobRead)
def complete_job(
    job_id: uuid.UUID,
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> JobRead:
    return job_service.complete_job(uow, ctx, job_id)


@router.post("/{job_id}/cancel", response_model=JobRead)
def cancel_job(
    job_id: uuid.UUID,
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> JobRead:
    return job_service.cancel_job(uow, ctx, job_id)


@router.post("/{job_id}/milestones", response_model=MilestoneRead, status_code=status.HTTP_201_CREATED)
def add_milestone(
    job_id: uuid.UUID,
    payload: MilestoneCreate,
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> MilestoneRead:
    return job_service.add_milestone(uow, ctx, job_id, payload)


@router.patch("/{job_id}/milestones/{milestone_id}", response_model=MilestoneRead)
def update_milestone(
    job_id: uuid.UUID,
    milestone_id: uuid.UUID,
    payload: MilestoneUpdate,
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> MilestoneRead:
    return job_service.update_milestone(uow, ctx, job_id, milestone_id, payload)


@router.delete("/{job_id}/milestones/{milestone_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_milestone(
    job_id: uuid.UUID,
    milestone_id: uuid.UUID,
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> Response:
    job_service.delete_milestone(uow, ctx, job_id, milestone_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{job_id}/expenses", response_model=ExpenseRead, status_code=status.HTTP_201_CREATED)
def add_expense(
    job_id: uuid.UUID,
    payload: ExpenseCreate,
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> ExpenseRead:
    return job_service.add_expense(uow, ctx, job_id, payload)


@router.patch("/{job_id}/expenses/{expense_id}", response_model=ExpenseRead)
def update_expense(
    job_id: uuid.UUID,
    expense_id: uuid.UUID,
    payload: ExpenseUpdate,
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> ExpenseRead:
    return job_service.update_expense(uow, ctx, job_id, expense_id, payload)


@router.delete("/{job_id}/expenses/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_expense(
    job_id: uuid.UUID,
    expense_id: uuid.UUID,
    uow: UnitOfWork = Depends(get_unit_of_work),
    ctx: OrgContext = Depends(get_org_context),
) -> Response:
    job_service.delete_expense(uow, ctx, job_id, expense_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

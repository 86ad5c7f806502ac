from __future__ import annotations

import uuid
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from app.business.customers.repository import LeadRepository
from app.business.estimates.repository import EstimateRepository
from app.business.jobs.models import Job, JobExpense, JobMilestone, JobStatus, MilestoneStatus
from app.business.jobs.repository import ExpenseRepository, JobRepository
from app.business.jobs.schemas import (
    ExpenseCreate,
    ExpenseRead,
    ExpenseUpdate,
    JobCreate,
    JobRead,
    MilestoneCreate,
    MilestoneRead,
    MilestoneTemplate,
    MilestoneUpdate,
)
from app.business.lifecycle import EntityKind, job_machine
from app.business.normalize import apply_text_fields, clean_text
from app.core.types import as_utc, utcnow
from app.platform.errors import ValidationError
from app.platform.ledger import LedgerLine, round_money
from app.platform.tenancy import OrgContext
from app.platform.unit_of_work import UnitOfWork


def parse_milestone_status(value: str | None) -> MilestoneStatus | None:
    normalized = (value or "").strip().lower()
    if not normalized:
        return None
    for candidate in MilestoneStatus:
        if normalized in {candidate.value.lower(), candidate.name.lower()}:
            return candidate
    raise ValidationError("Invalid milestone status")


def ensure_schedule(start_at: datetime, estimated_end_at: datetime) -> None:
    if estimated_end_at <= start_at:
        raise ValidationError("Estimated end date must be after the start date")


def build_milestones(templates: Iterable[MilestoneTemplate], start_at: datetime, now: datetime) -> list[JobMilestone]:
    """Milestones from caller templates.

    Blank titles are dropped; the default sort order is the position among the kept templates.
    """

    kept = [template for template in templates if clean_text(template.title) is not None]
    milestones = [
        JobMilestone(
            id=uuid.uuid4(),
            title=clean_text(template.title),
            notes=clean_text(template.notes),
            status=(parse_milestone_status(template.status) or MilestoneStatus.PENDING).value,
            occurred_at=as_utc(template.occurred_at) or start_at,
            sort_order=template.sort_order if template.sort_order is not None else position,
            created_at=now,
            updated_at=now,
        )
        for position, template in enumerate(kept, start=1)
    ]
    return sorted(milestones, key=lambda milestone: milestone.sort_order)


def milestones_from_lines(lines: Sequence[LedgerLine], start_at: datetime, now: datetime) -> list[JobMilestone]:
    charges = [line for line in lines if not line.is_tax_line]
    return [
        JobMilestone(
            id=uuid.uuid4(),
            title=line.description,
            notes=None,
            status=MilestoneStatus.PENDING.value,
            occurred_at=start_at,
            sort_order=position,
            created_at=now,
            updated_at=now,
        )
        for position, line in enumerate(charges, start=1)
    ]


def _validated_amount(amount: Decimal | None) -> Decimal:
    if amount is None or amount <= 0:
        raise ValidationError("Amount must be greater than 0")
    return round_money(amount)


@dataclass(slots=True)
class JobService:
    job_repository: JobRepository = JobRepository()
    expense_repository: ExpenseRepository = ExpenseRepository()
    lead_repository: LeadRepository = LeadRepository()
    estimate_repository: EstimateRepository = EstimateRepository()
    clock: Callable[[], datetime] = utcnow

    def create_job(self, uow: UnitOfWork, ctx: OrgContext, payload: JobCreate) -> JobRead:
        start_at = as_utc(payload.start_at)
        estimated_end_at = as_utc(payload.estimated_end_at)
        now = self.clock()

        with uow.transaction():
            self.lead_repository.get(uow.session, ctx, payload.lead_id)
            if payload.estimate_id is not None:
                self.estimate_repository.get(uow.session, ctx, payload.estimate_id)
            ensure_schedule(start_at, estimated_end_at)

            job = Job(
                id=uuid.uuid4(),
                lead_id=payload.lead_id,
                estimate_id=payload.estimate_id,
                description=clean_text(payload.description),
                status=JobStatus.SCHEDULED.value,
                start_at=start_at,
                estimated_end_at=estimated_end_at,
                created_at=now,
                updated_at=now,
            )
            job.milestones = build_milestones(payload.milestones or [], start_at, now)
            self.job_repository.add(uow.session, ctx, job)

        return self.get_job(uow, ctx, job.id)

    def start_job(self, uow: UnitOfWork, ctx: OrgContext, job_id: uuid.UUID) -> JobRead:
        return self._transition(uow, ctx, job_id, JobStatus.IN_PROGRESS)

    def complete_job(self, uow: UnitOfWork, ctx: OrgContext, job_id: uuid.UUID) -> JobRead:
        return self._transition(uow, ctx, job_id, JobStatus.COMPLETED)

    def cancel_job(self, uow: UnitOfWork, ctx: OrgContext, job_id: uuid.UUID) -> JobRead:
        return self._transition(uow, ctx, job_id, JobStatus.CANCELLED)

    def add_milestone(self, uow: UnitOfWork, ctx: OrgContext, job_id: uuid.UUID, payload: MilestoneCreate) -> MilestoneRead:
        title = clean_text(payload.title)
        now = self.clock()
        with uow.transaction():
            job = self.job_repository.get(uow.session, ctx, job_id, selectinload(Job.milestones))
            if title is None:
                raise ValidationError("Milestone title is required")

            next_sort = max((item.sort_order for item in job.milestones), default=0) + 1
            milestone = JobMilestone(
                id=uuid.uuid4(),
                title=title,
                notes=clean_text(payload.notes),
                status=(parse_milestone_status(payload.status) or MilestoneStatus.PENDING).value,
                occurred_at=as_utc(payload.occurred_at) or now,
                sort_order=payload.sort_order if payload.sort_order is not None else next_sort,
                created_at=now,
                updated_at=now,
            )
            job.milestones.append(milestone)

        return MilestoneRead.model_validate(milestone)

    def update_milestone(
        self,
        uow: UnitOfWork,
        ctx: OrgContext,
        job_id: uuid.UUID,
        milestone_id: uuid.UUID,
        payload: MilestoneUpdate,
    ) -> MilestoneRead:
        changes = payload.model_dump(exclude_unset=True)
        with uow.transaction():
            milestone = self.job_repository.get_milestone(uow.session, ctx, job_id, milestone_id)
            if changes.get("title") is not None:
                title = clean_text(payload.title)
                if title is None:
                    raise ValidationError("Milestone title is required")
                milestone.title = title
            apply_text_fields(milestone, changes, ("notes",))
            status = parse_milestone_status(payload.status)
            if status is not None:
                milestone.status = status.value
            if payload.occurred_at is not None:
                milestone.occurred_at = as_utc(payload.occurred_at)
            if payload.sort_order is not None:
                milestone.sort_order = payload.sort_order
            milestone.updated_at = self.clock()

        return MilestoneRead.model_validate(milestone)

    def delete_milestone(self, uow: UnitOfWork, ctx: OrgContext, job_id: uuid.UUID, milestone_id: uuid.UUID) -> None:
        with uow.transaction():
            self.job_repository.get(uow.session, ctx, job_id)
            milestone = self.job_repository.get_milestone(uow.session, ctx, job_id, milestone_id)
            uow.session.delete(milestone)

    def add_expense(self, uow: UnitOfWork, ctx: OrgContext, job_id: uuid.UUID, payload: ExpenseCreate) -> ExpenseRead:
        now = self.clock()
        with uow.transaction():
            job = self.job_repository.get(uow.session, ctx, job_id)
            vendor = clean_text(payload.vendor)
            if vendor is None:
                raise ValidationError("Vendor is required")

            expense = JobExpense(
                id=uuid.uuid4(),
                job_id=job.id,
                vendor=vendor,
                amount=_validated_amount(payload.amount),
                spent_at=as_utc(payload.spent_at) or now,
                created_at=now,
                updated_at=now,
            )
            apply_text_fields(expense, payload.model_dump(), ("category", "notes", "receipt_url"))
            self.expense_repository.add(uow.session, ctx, expense)

        return ExpenseRead.model_validate(expense)

    def update_expense(
        self,
        uow: UnitOfWork,
        ctx: OrgContext,
        job_id: uuid.UUID,
        expense_id: uuid.UUID,
        payload: ExpenseUpdate,
    ) -> ExpenseRead:
        changes = payload.model_dump(exclude_unset=True)
        with uow.transaction():
            expense = self.expense_repository.get_for_job(uow.session, ctx, job_id, expense_id)
            if changes.get("vendor") is not None:
                vendor = clean_text(payload.vendor)
                if vendor is None:
                    raise ValidationError("Vendor is required")
                expense.vendor = vendor
            if payload.amount is not None:
                expense.amount = _validated_amount(payload.amount)
            if payload.spent_at is not None:
                expense.spent_at = as_utc(payload.spent_at)
            apply_text_fields(expense, changes, ("category", "notes", "receipt_url"))
            expense.updated_at = self.clock()

        return ExpenseRead.model_validate(expense)

    def delete_expense(self, uow: UnitOfWork, ctx: OrgContext, job_id: uuid.UUID, expense_id: uuid.UUID) -> None:
        with uow.transaction():
            self.job_repository.get(uow.session, ctx, job_id)
            expense = self.expense_repository.get_for_job(uow.session, ctx, job_id, expense_id)
            uow.session.delete(expense)

    def get_job(self, uow: UnitOfWork, ctx: OrgContext, job_id: uuid.UUID) -> JobRead:
        job = self.job_repository.get(
            uow.session,
            ctx,
            job_id,
            selectinload(Job.milestones),
            selectinload(Job.expenses),
        )
        return JobRead.model_validate(job)

    def list_jobs(self, uow: UnitOfWork, ctx: OrgContext, *, lead_id: uuid.UUID | None = None) -> list[JobRead]:
        stmt = (
            select(Job)
            .options(selectinload(Job.milestones), selectinload(Job.expenses))
            .order_by(Job.created_at.desc())
        )
        if lead_id is not None:
            stmt = stmt.where(Job.lead_id == lead_id)
        return [JobRead.model_validate(row) for row in self.job_repository.list(uow.session, ctx, stmt)]

    def _transition(self, uow: UnitOfWork, ctx: OrgContext, job_id: uuid.UUID, target: JobStatus) -> JobRead:
        with uow.transaction():
            job = self.job_repository.get(uow.session, ctx, job_id)
            record = job_machine.transition(job, target, self.clock())
            uow.record_transition(EntityKind.JOB.value, job.id, job.organization_id, record)

        return self.get_job(uow, ctx, job_id)


job_service = JobService()

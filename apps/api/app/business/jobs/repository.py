from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.business.jobs.models import Job, JobExpense, JobMilestone
from app.platform.errors import NotFoundError
from app.platform.tenancy import OrgContext, TenantRepository


class JobRepository(TenantRepository[Job]):
    model = Job
    label = "Job"

    def get_milestone(self, session: Session, ctx: OrgContext, job_id: uuid.UUID, milestone_id: uuid.UUID) -> JobMilestone:
        stmt = (
            select(JobMilestone)
            .join(Job, Job.id == JobMilestone.job_id)
            .where(
                JobMilestone.id == milestone_id,
                JobMilestone.job_id == job_id,
                Job.organization_id == ctx.organization_id,
            )
        )
        milestone = session.scalar(stmt)
        if milestone is None:
            raise NotFoundError("Milestone not found")
        return milestone


class ExpenseRepository(TenantRepository[JobExpense]):
    model = JobExpense
    label = "Expense"

    def get_for_job(self, session: Session, ctx: OrgContext, job_id: uuid.UUID, expense_id: uuid.UUID) -> JobExpense:
        stmt = self.scoped(ctx).where(JobExpense.id == expense_id, JobExpense.job_id == job_id)
        expense = session.scalar(stmt)
        if expense is None:
            raise NotFoundError(f"{self.label} not found")
        return expense

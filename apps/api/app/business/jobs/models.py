from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import ForeignKey, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.business.customers.models import Lead
from app.business.estimates.models import Estimate
from app.core.database import Base
from app.core.types import UTCDateTime, utcnow


class JobStatus(str, Enum):
    SCHEDULED = "Scheduled"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class MilestoneStatus(str, Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"


class Job(Base):
    __tablename__ = "pipeline_job"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    lead_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("pipeline_lead.id", ondelete="RESTRICT"),
        nullable=False,
    )
    estimate_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("pipeline_estimate.id", ondelete="SET NULL"),
        nullable=True,
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=JobStatus.SCHEDULED.value)
    start_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    estimated_end_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)
    row_version: Mapped[int] = mapped_column(Integer, nullable=False)

    lead: Mapped[Lead] = relationship(Lead)
    estimate: Mapped[Estimate | None] = relationship(Estimate)
    milestones: Mapped[list[JobMilestone]] = relationship(
        "app.business.jobs.models.JobMilestone",
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="JobMilestone.sort_order",
    )
    expenses: Mapped[list[JobExpense]] = relationship(
        "app.business.jobs.models.JobExpense",
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="JobExpense.spent_at.desc()",
    )

    __mapper_args__ = {"version_id_col": row_version}
    __table_args__ = (Index("ix_pipeline_job_org_status", "organization_id", "status"),)


class JobMilestone(Base):
    __tablename__ = "pipeline_job_milestone"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("pipeline_job.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=MilestoneStatus.PENDING.value)
    occurred_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)

    job: Mapped[Job] = relationship("app.business.jobs.models.Job", back_populates="milestones")

    __table_args__ = (Index("ix_pipeline_job_milestone_job_sort", "job_id", "sort_order"),)


class JobExpense(Base):
    __tablename__ = "pipeline_job_expense"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("pipeline_job.id", ondelete="CASCADE"),
        nullable=False,
    )
    vendor: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str | None] = mapped_column(String(128), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    spent_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    receipt_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)

    job: Mapped[Job] = relationship("app.business.jobs.models.Job", back_populates="expenses")

    __table_args__ = (Index("ix_pipeline_job_expense_job_spent", "job_id", "spent_at"),)

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


JobStatusValue = Literal["Scheduled", "InProgress", "Completed", "Cancelled"]
MilestoneStatusValue = Literal["Pending", "Completed"]


class MilestoneTemplate(BaseModel):
    """Milestone seed supplied when a job is created or an estimate accepted."""

    title: str | None = None
    notes: str | None = None
    status: str | None = None
    occurred_at: datetime | None = None
    sort_order: int | None = None


class MilestoneCreate(MilestoneTemplate):
    pass


class MilestoneUpdate(MilestoneTemplate):
    pass


class MilestoneRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    job_id: UUID
    title: str
    notes: str | None
    status: MilestoneStatusValue | str
    occurred_at: datetime
    sort_order: int
    created_at: datetime
    updated_at: datetime


class ExpenseCreate(BaseModel):
    vendor: str | None = None
    category: str | None = None
    amount: Decimal = Decimal("0")
    spent_at: datetime | None = None
    notes: str | None = None
    receipt_url: str | None = None


class ExpenseUpdate(BaseModel):
    vendor: str | None = None
    category: str | None = None
    amount: Decimal | None = None
    spent_at: datetime | None = None
    notes: str | None = None
    receipt_url: str | None = None


class ExpenseRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    job_id: UUID
    vendor: str
    category: str | None
    amount: Decimal
    spent_at: datetime
    notes: str | None
    receipt_url: str | None
    created_at: datetime
    updated_at: datetime


class JobCreate(BaseModel):
    lead_id: UUID
    estimate_id: UUID | None = None
    description: str | None = None
    start_at: datetime
    estimated_end_at: datetime
    milestones: list[MilestoneTemplate] | None = None


class JobRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    organization_id: UUID
    lead_id: UUID
    estimate_id: UUID | None
    description: str | None
    status: JobStatusValue | str
    start_at: datetime
    estimated_end_at: datetime
    started_at: datetime | None
    completed_at: datetime | None
    cancelled_at: datetime | None
    created_at: datetime
    updated_at: datetime
    row_version: int
    milestones: list[MilestoneRead] = Field(default_factory=list)
    expenses: list[ExpenseRead] = Field(default_factory=list)

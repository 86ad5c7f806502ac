from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from app.business.jobs.schemas import JobRead, MilestoneTemplate
from app.platform.ledger.schemas import LineItemInput, LineItemRead


EstimateStatusValue = Literal["Draft", "Sent", "Accepted", "Rejected"]


class EstimateCreate(BaseModel):
    lead_id: UUID
    amount: Decimal = Decimal("0")
    description: str | None = None
    line_items: list[LineItemInput] | None = None


class EstimateUpdate(BaseModel):
    description: str | None = None
    line_items: list[LineItemInput] | None = None


class AcceptEstimateRequest(BaseModel):
    start_at: datetime
    estimated_end_at: datetime
    milestones: list[MilestoneTemplate] | None = None


class EstimateRead(BaseModel):
    id: UUID
    organization_id: UUID
    lead_id: UUID
    description: str | None
    subtotal: Decimal
    tax_total: Decimal
    amount: Decimal
    status: EstimateStatusValue | str
    sent_at: datetime | None
    accepted_at: datetime | None
    rejected_at: datetime | None
    created_at: datetime
    updated_at: datetime
    row_version: int
    line_items: list[LineItemRead] = Field(default_factory=list)


class AcceptEstimateResult(BaseModel):
    estimate: EstimateRead
    job: JobRead
    invoice_id: UUID | None = None

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from app.platform.ledger.schemas import LineItemInput, LineItemRead


InvoiceStatusValue = Literal["Draft", "Issued", "Paid", "Overdue"]


class InvoiceCreate(BaseModel):
    job_id: UUID
    line_items: list[LineItemInput] | None = None
    due_at: datetime | None = None
    notes: str | None = None


class InvoiceUpdate(BaseModel):
    line_items: list[LineItemInput] | None = None
    due_at: datetime | None = None
    notes: str | None = None


class IssueInvoiceRequest(BaseModel):
    due_at: datetime | None = None


class InvoiceRead(BaseModel):
    id: UUID
    organization_id: UUID
    job_id: UUID
    notes: str | None
    subtotal: Decimal
    tax_total: Decimal
    amount: Decimal
    status: InvoiceStatusValue | str
    due_at: datetime | None
    issued_at: datetime | None
    paid_at: datetime | None
    overdue_at: datetime | None
    created_at: datetime
    updated_at: datetime
    row_version: int
    line_items: list[LineItemRead] = Field(default_factory=list)


class OverdueSweepResult(BaseModel):
    swept_at: datetime
    invoice_ids: list[UUID] = Field(default_factory=list)
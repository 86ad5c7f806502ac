from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.platform.ledger.schemas import TaxLineInput, TaxLineRead


LeadStatusValue = Literal["New", "Lost", "Converted"]


class CompanyCreate(BaseModel):
    name: str | None = None
    phone: str | None = None
    email: str | None = None
    website: str | None = None
    notes: str | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    tax_id: str | None = None
    tax_lines: list[TaxLineInput] | None = None


class CompanyUpdate(CompanyCreate):
    pass


class CompanyRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    organization_id: UUID
    name: str
    phone: str | None
    email: str | None
    website: str | None
    notes: str | None
    address_line1: str | None
    address_line2: str | None
    city: str | None
    state: str | None
    postal_code: str | None
    tax_id: str | None
    is_deleted: bool
    deleted_at: datetime | None
    created_at: datetime
    updated_at: datetime
    tax_lines: list[TaxLineRead] = Field(default_factory=list)


class LeadCreate(BaseModel):
    name: str | None = None
    company: str | None = None
    company_id: UUID | None = None
    phone: str | None = None
    email: str | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    lead_source: str | None = None
    project_type: str | None = None
    estimated_value: Decimal | None = None
    notes: str | None = None
    tax_lines: list[TaxLineInput] | None = None


class LeadUpdate(LeadCreate):
    pass


class LeadStatusUpdate(BaseModel):
    status: str | None = None


class LeadRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    organization_id: UUID
    name: str
    company: str | None
    company_id: UUID | None
    phone: str | None
    email: str | None
    address_line1: str | None
    address_line2: str | None
    city: str | None
    state: str | None
    postal_code: str | None
    lead_source: str | None
    project_type: str | None
    estimated_value: Decimal | None
    notes: str | None
    status: LeadStatusValue | str
    is_deleted: bool
    deleted_at: datetime | None
    lost_at: datetime | None
    created_at: datetime
    updated_at: datetime
    row_version: int
    tax_lines: list[TaxLineRead] = Field(default_factory=list)

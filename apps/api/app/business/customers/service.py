from __future__ import annotations

import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.business.customers.models import Company, Lead, LeadStatus, TaxLine
from app.business.customers.repository import CompanyRepository, LeadRepository
from app.business.customers.schemas import (
    CompanyCreate,
    CompanyRead,
    CompanyUpdate,
    LeadCreate,
    LeadRead,
    LeadUpdate,
)
from app.business.lifecycle import EntityKind, lead_machine
from app.business.normalize import apply_text_fields, clean_text
from app.core.types import utcnow
from app.platform.errors import ConflictError, ValidationError
from app.platform.ledger import TaxLineDraft, TaxLineOwner, build_tax_lines
from app.platform.tenancy import OrgContext
from app.platform.unit_of_work import UnitOfWork


_LEAD_TEXT_FIELDS = (
    "phone",
    "email",
    "address_line1",
    "address_line2",
    "city",
    "state",
    "postal_code",
    "lead_source",
    "project_type",
    "notes",
)

_COMPANY_TEXT_FIELDS = (
    "phone",
    "email",
    "website",
    "notes",
    "address_line1",
    "address_line2",
    "city",
    "state",
    "postal_code",
    "tax_id",
)


def _tax_line_models(drafts: Iterable[TaxLineDraft]) -> list[TaxLine]:
    return [
        TaxLine(id=uuid.uuid4(), label=draft.label, rate=draft.rate, lead_id=draft.lead_id, company_id=draft.company_id)
        for draft in drafts
    ]


def parse_lead_status(value: str | None) -> LeadStatus:
    normalized = (value or "").strip()
    if not normalized:
        raise ValidationError("Status is required")
    for candidate in LeadStatus:
        if normalized.lower() in {candidate.value.lower(), candidate.name.lower()}:
            return candidate
    raise ValidationError("Invalid lead status")


@dataclass(slots=True)
class CompanyService:
    company_repository: CompanyRepository = CompanyRepository()
    clock: Callable[[], datetime] = utcnow

    def create_company(self, uow: UnitOfWork, ctx: OrgContext, payload: CompanyCreate) -> CompanyRead:
        name = clean_text(payload.name)
        if name is None:
            raise ValidationError("Company name is required")

        now = self.clock()
        with uow.transaction():
            existing = self.company_repository.find_by_name(uow.session, ctx, name, include_deleted=True)
            if existing is not None:
                company_id = existing.id
                if existing.is_deleted:
                    existing.is_deleted = False
                    existing.deleted_at = None
                    existing.updated_at = now
            else:
                company = Company(id=uuid.uuid4(), name=name, created_at=now, updated_at=now)
                apply_text_fields(company, payload.model_dump(), _COMPANY_TEXT_FIELDS)
                company.tax_lines = _tax_line_models(
                    build_tax_lines(payload.tax_lines, TaxLineOwner.for_company(company.id))
                )
                self.company_repository.add(uow.session, ctx, company)
                company_id = company.id

        return self.get_company(uow, ctx, company_id)

    def update_company(
        self,
        uow: UnitOfWork,
        ctx: OrgContext,
        company_id: uuid.UUID,
        payload: CompanyUpdate,
    ) -> CompanyRead:
        changes = payload.model_dump(exclude_unset=True)
        with uow.transaction():
            company = self.company_repository.get(uow.session, ctx, company_id, selectinload(Company.tax_lines))
            if company.is_deleted:
                raise ConflictError("Cannot update a deleted company")

            if "name" in changes and changes["name"] is not None:
                name = clean_text(changes["name"])
                if name is None:
                    raise ValidationError("Company name is required")
                company.name = name
            apply_text_fields(company, changes, _COMPANY_TEXT_FIELDS)

            if payload.tax_lines is not None:
                company.tax_lines = _tax_line_models(
                    build_tax_lines(payload.tax_lines, TaxLineOwner.for_company(company.id))
                )
            company.updated_at = self.clock()

        return self.get_company(uow, ctx, company_id)

    def delete_company(self, uow: UnitOfWork, ctx: OrgContext, company_id: uuid.UUID) -> CompanyRead:
        with uow.transaction():
            company = self.company_repository.get(uow.session, ctx, company_id)
            if not company.is_deleted:
                now = self.clock()
                company.is_deleted = True
                company.deleted_at = now
                company.updated_at = now
        return self.get_company(uow, ctx, company_id)

    def get_company(self, uow: UnitOfWork, ctx: OrgContext, company_id: uuid.UUID) -> CompanyRead:
        company = self.company_repository.get(uow.session, ctx, company_id, selectinload(Company.tax_lines))
        return CompanyRead.model_validate(company)

    def list_companies(self, uow: UnitOfWork, ctx: OrgContext, *, include_deleted: bool = False) -> list[CompanyRead]:
        stmt = select(Company).options(selectinload(Company.tax_lines)).order_by(Company.name.asc())
        if not include_deleted:
            stmt = stmt.where(Company.is_deleted.is_(False))
        return [CompanyRead.model_validate(row) for row in self.company_repository.list(uow.session, ctx, stmt)]


@dataclass(slots=True)
class LeadService:
    lead_repository: LeadRepository = LeadRepository()
    company_repository: CompanyRepository = CompanyRepository()
    clock: Callable[[], datetime] = utcnow

    def create_lead(self, uow: UnitOfWork, ctx: OrgContext, payload: LeadCreate) -> LeadRead:
        name = clean_text(payload.name)
        if name is None:
            raise ValidationError("Name is required")
        company_name = clean_text(payload.company)
        if payload.company_id is not None and company_name is not None:
            raise ValidationError("Provide either company_id or company name, not both")

        now = self.clock()
        with uow.transaction():
            company = self._resolve_company(uow.session, ctx, payload.company_id, company_name, now)
            lead = Lead(
                id=uuid.uuid4(),
                name=name,
                company=company.name if company is not None else company_name,
                company_id=company.id if company is not None else None,
                estimated_value=payload.estimated_value,
                status=LeadStatus.NEW.value,
                created_at=now,
                updated_at=now,
            )
            apply_text_fields(lead, payload.model_dump(), _LEAD_TEXT_FIELDS)
            lead.tax_lines = _tax_line_models(build_tax_lines(payload.tax_lines, TaxLineOwner.for_lead(lead.id)))
            self.lead_repository.add(uow.session, ctx, lead)

        return self.get_lead(uow, ctx, lead.id)

    def update_lead(self, uow: UnitOfWork, ctx: OrgContext, lead_id: uuid.UUID, payload: LeadUpdate) -> LeadRead:
        changes = payload.model_dump(exclude_unset=True)
        company_name = clean_text(payload.company)
        if payload.company_id is not None and company_name is not None:
            raise ValidationError("Provide either company_id or company name, not both")

        now = self.clock()
        with uow.transaction():
            lead = self.lead_repository.get(uow.session, ctx, lead_id, selectinload(Lead.tax_lines))
            if lead.is_deleted:
                raise ConflictError("Cannot update a deleted lead")

            if "name" in changes and changes["name"] is not None:
                name = clean_text(changes["name"])
                if name is None:
                    raise ValidationError("Name is required")
                lead.name = name

            if payload.company_id is not None or "company" in changes:
                company = self._resolve_company(uow.session, ctx, payload.company_id, company_name, now)
                lead.company_id = company.id if company is not None else None
                lead.company = company.name if company is not None else company_name

            if "estimated_value" in changes:
                lead.estimated_value = payload.estimated_value
            apply_text_fields(lead, changes, _LEAD_TEXT_FIELDS)

            if payload.tax_lines is not None:
                lead.tax_lines = _tax_line_models(build_tax_lines(payload.tax_lines, TaxLineOwner.for_lead(lead.id)))
            lead.updated_at = now

        return self.get_lead(uow, ctx, lead_id)

    def set_lead_status(self, uow: UnitOfWork, ctx: OrgContext, lead_id: uuid.UUID, status: str | None) -> LeadRead:
        target = parse_lead_status(status)
        with uow.transaction():
            lead = self.lead_repository.get(uow.session, ctx, lead_id)
            if lead.is_deleted:
                raise ConflictError("Cannot update a deleted lead")
            record = lead_machine.transition(lead, target, self.clock())
            uow.record_transition(EntityKind.LEAD.value, lead.id, lead.organization_id, record)

        return self.get_lead(uow, ctx, lead_id)

    def delete_lead(self, uow: UnitOfWork, ctx: OrgContext, lead_id: uuid.UUID) -> LeadRead:
        with uow.transaction():
            lead = self.lead_repository.get(uow.session, ctx, lead_id)
            if not lead.is_deleted:
                now = self.clock()
                lead.is_deleted = True
                lead.deleted_at = now
                lead.updated_at = now
        return self.get_lead(uow, ctx, lead_id)

    def get_lead(self, uow: UnitOfWork, ctx: OrgContext, lead_id: uuid.UUID) -> LeadRead:
        lead = self.lead_repository.get(uow.session, ctx, lead_id, selectinload(Lead.tax_lines))
        return LeadRead.model_validate(lead)

    def list_leads(self, uow: UnitOfWork, ctx: OrgContext, *, include_deleted: bool = False) -> list[LeadRead]:
        stmt = select(Lead).options(selectinload(Lead.tax_lines)).order_by(Lead.created_at.desc())
        if not include_deleted:
            stmt = stmt.where(Lead.is_deleted.is_(False))
        return [LeadRead.model_validate(row) for row in self.lead_repository.list(uow.session, ctx, stmt)]

    def _resolve_company(
        self,
        session: Session,
        ctx: OrgContext,
        company_id: uuid.UUID | None,
        company_name: str | None,
        now: datetime,
    ) -> Company | None:
        if company_id is not None:
            company = self.company_repository.get(session, ctx, company_id)
            if company.is_deleted:
                raise ConflictError("Company is deleted")
            return company
        if company_name is None:
            return None

        company = self.company_repository.find_by_name(session, ctx, company_name)
        if company is None:
            company = Company(id=uuid.uuid4(), name=company_name, created_at=now, updated_at=now)
            self.company_repository.add(session, ctx, company)
        return company


company_service = CompanyService()
lead_service = LeadService()
